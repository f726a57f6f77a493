"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .account import Account


class TokenPurpose(str, Enum):
    """
    What a pending verification key authorises.

    An account holds at most one pending key. Issuing a key of any purpose
    supersedes whatever key was pending before.
    """

    NEW_ACCOUNT = "NEW_ACCOUNT"
    PASSWORD_RESET = "PASSWORD_RESET"
    EMAIL_CHANGE = "EMAIL_CHANGE"


class Outcome(Enum):
    """
    Result of a lifecycle transition.

    The service collapses every non-SUCCESS value to ``False`` for callers;
    the distinct values exist for logging and tests.
    """

    SUCCESS = "success"
    CLOSED = "closed"
    INVALID_TOKEN = "invalid_token"
    WRONG_PURPOSE = "wrong_purpose"
    EXPIRED = "expired"
    NOT_VERIFIED = "not_verified"
    ALREADY_VERIFIED = "already_verified"
    LOGIN_DISABLED = "login_disabled"
    LOCKED = "locked"
    INVALID_CREDENTIALS = "invalid_credentials"
    IDENTITY_IMMUTABLE = "identity_immutable"
    EMAIL_MISMATCH = "email_mismatch"


class AccountRepository(Protocol):
    """
    Port interface for account persistence.

    Lookups return ``None`` when nothing matches. Writes either apply the
    whole record or raise ``PersistenceError``; ``update`` raises
    ``StaleAccountError`` when the stored version differs from
    ``account.version``.
    """

    def get(self, account_id: str) -> Account | None:
        ...

    def find_by_username(self, tenant: str, username: str) -> Account | None:
        ...

    def find_by_email(self, tenant: str, email: str) -> Account | None:
        ...

    def find_by_verification_key(self, key: str) -> Account | None:
        ...

    def list_active(self, tenant: str) -> list[Account]:
        """Return the tenant's accounts that are not closed."""
        ...

    def username_taken(self, username: str, tenant: str | None = None) -> bool:
        """Check a username within ``tenant``, or across all tenants when ``tenant`` is None."""
        ...

    def email_taken(self, tenant: str, email: str) -> bool:
        ...

    def add(self, account: Account) -> Account:
        """Insert a new account and return it with its store-assigned id."""
        ...

    def update(self, account: Account) -> Account:
        """Persist every field of ``account`` atomically and return it with a bumped version."""
        ...

    def remove(self, account: Account) -> None:
        ...


class NotificationGateway(Protocol):
    """
    Port interface for lifecycle notifications.

    Every method is best-effort: the service logs and swallows any
    exception raised here.
    """

    def send_account_created(self, account: Account) -> None:
        ...

    def send_account_verified(self, account: Account) -> None:
        ...

    def send_account_deleted(self, account: Account) -> None:
        ...

    def send_password_changed(self, account: Account) -> None:
        ...

    def send_password_reset(self, account: Account) -> None:
        ...

    def send_username_reminder(self, account: Account) -> None:
        ...

    def send_email_change_requested(self, account: Account, new_email: str) -> None:
        ...

    def send_email_changed(self, account: Account, old_email: str) -> None:
        ...


class PasswordPolicy(Protocol):
    """Port interface for password strength rules."""

    def validate(self, password: str) -> tuple[bool, str]:
        """
        Check a candidate password.

        Returns:
            Tuple of (ok, message). ``message`` explains a rejection.
        """
        ...


class PasswordHasher(Protocol):
    """Port interface for password hashing and verification."""

    def hash(self, password: str) -> str:
        ...

    def verify(self, password: str, password_hash: str) -> bool:
        ...
