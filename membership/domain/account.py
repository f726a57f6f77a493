"""
Account entity and the immutable values the lifecycle works with.

Accounts are frozen dataclasses: every transition produces a new Account
via ``dataclasses.replace`` and the service persists it as one record.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .ports import TokenPurpose


class AccountStage(str, Enum):
    """
    Lifecycle stage derived from the account's status flags.

    Transitions:
    - UNVERIFIED -> VERIFIED (verification key consumed)
    - UNVERIFIED -> CLOSED, VERIFIED -> CLOSED (soft delete)

    CLOSED is terminal.
    """

    UNVERIFIED = "UNVERIFIED"
    VERIFIED = "VERIFIED"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class VerificationToken:
    """Single-use key tagged with the transition it authorises."""

    value: str
    purpose: TokenPurpose
    issued_at: datetime

    @classmethod
    def issue(cls, purpose: TokenPurpose, now: datetime) -> VerificationToken:
        return cls(value=secrets.token_urlsafe(32), purpose=purpose, issued_at=now)

    def matches(self, key: str) -> bool:
        """Constant-time comparison against a presented key."""
        return secrets.compare_digest(self.value.encode(), key.encode())

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.issued_at > ttl


@dataclass(frozen=True)
class Account:
    """A tenant-scoped user identity."""

    tenant: str
    username: str
    email: str
    password_hash: str
    created_at: datetime
    id: str | None = None
    is_account_verified: bool = False
    is_login_allowed: bool = True
    is_account_closed: bool = False
    failed_login_count: int = 0
    last_failed_login_at: datetime | None = None
    last_login_at: datetime | None = None
    password_changed_at: datetime | None = None
    unconfirmed_email: str | None = None
    token: VerificationToken | None = None
    version: int = 0

    @property
    def stage(self) -> AccountStage:
        if self.is_account_closed:
            return AccountStage.CLOSED
        if self.is_account_verified:
            return AccountStage.VERIFIED
        return AccountStage.UNVERIFIED

    @property
    def verification_key(self) -> str | None:
        return self.token.value if self.token else None


@dataclass(frozen=True)
class LockoutOptions:
    """Failed-login threshold and the rolling window it is counted over."""

    max_failures: int
    window: timedelta


@dataclass(frozen=True)
class SecuritySettings:
    """
    Security configuration injected into the domain services.

    Built once from ``membership.config.settings.Settings.security()`` and
    never mutated afterwards.
    """

    multi_tenant: bool = False
    default_tenant: str = "default"
    email_is_username: bool = False
    usernames_unique_across_tenants: bool = False
    allow_account_deletion: bool = True
    require_account_verification: bool = True
    lockout_failed_attempts: int = 10
    lockout_duration: timedelta = timedelta(minutes=5)
    verification_key_ttl: timedelta = timedelta(hours=24)

    def lockout(self, options: LockoutOptions | None = None) -> LockoutOptions:
        """Return ``options`` or the configured lockout defaults."""
        if options is not None:
            return options
        return LockoutOptions(
            max_failures=self.lockout_failed_attempts,
            window=self.lockout_duration,
        )
