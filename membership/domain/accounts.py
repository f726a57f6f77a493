"""
Account domain service - Orchestrates the account lifecycle.

Each public operation follows the same sequence:

1. Resolve the tenant and reject blank arguments (reported as ``False``,
   never as an error, so callers cannot tell which input was wrong).
2. Validate password strength and email format (``ValidationFailed``).
3. Pre-check username/email uniqueness where identity changes
   (``AccountConflict``).
4. Re-read the account through TenantDirectory and compute the new state
   with AccountLifecycle, entirely in memory.
5. Commit the new state as one record update. Password checks that lose
   a concurrent write re-read the account and run again, up to
   ``_CONFLICT_ATTEMPTS`` times.
6. Only after the commit, send at most one notification. Notification
   failures are logged and swallowed; the committed state stays.

Persistence errors propagate unchanged and nothing is notified.

Password checks run bcrypt even when no account is found, against a
throwaway hash, so response time does not reveal whether an account
exists.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

from email_validator import EmailNotValidError, validate_email

from .account import Account, LockoutOptions, SecuritySettings
from .directory import TenantDirectory
from .exceptions import AccountConflict, StaleAccountError, ValidationFailed
from .lifecycle import AccountLifecycle, DeletionMode, Transition, deletion_policy, utcnow
from .passwords import BcryptPasswordHasher
from .ports import (
    AccountRepository,
    NotificationGateway,
    Outcome,
    PasswordHasher,
    PasswordPolicy,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONFLICT_ATTEMPTS = 5

# Compared against when no account matches, to keep the bcrypt cost on that path
_DUMMY_PASSWORD = "dummy_password_for_timing_safety"


def _blank(*values: str | None) -> bool:
    return any(value is None or not value.strip() for value in values)


@dataclass
class AccountService:
    """
    Domain service for account management.

    Wires the repository, notification gateway and password policy around
    the pure AccountLifecycle. ``notifications`` and ``password_policy``
    are optional: without a gateway nothing is sent, without a policy
    every password is accepted.
    """

    repository: AccountRepository
    settings: SecuritySettings = field(default_factory=SecuritySettings)
    notifications: NotificationGateway | None = None
    password_policy: PasswordPolicy | None = None
    hasher: PasswordHasher = field(default_factory=BcryptPasswordHasher)
    clock: Callable[[], datetime] = utcnow

    def __post_init__(self) -> None:
        self.directory = TenantDirectory(self.repository, self.settings)
        self.lifecycle = AccountLifecycle(self.settings, self.hasher, self.clock)
        self._dummy_hash = self.hasher.hash(_DUMMY_PASSWORD)

    # Queries

    def list_accounts(self, tenant: str | None = None) -> list[Account]:
        """Return the tenant's accounts, excluding closed ones."""
        return self.directory.list_accounts(tenant)

    def get_by_username(self, username: str, *, tenant: str | None = None) -> Account | None:
        return self.directory.find_by_username(tenant, username)

    def get_by_email(self, email: str, *, tenant: str | None = None) -> Account | None:
        return self.directory.find_by_email(tenant, self._normalize_email(email))

    def get_by_id(self, account_id: str) -> Account | None:
        return self.directory.find_by_id(account_id)

    def get_by_verification_key(self, key: str) -> Account | None:
        return self.directory.find_by_verification_key(key)

    def username_exists(self, username: str, *, tenant: str | None = None) -> bool:
        return self.directory.username_in_use(tenant, username)

    def email_exists(self, email: str, *, tenant: str | None = None) -> bool:
        return self.directory.email_in_use(tenant, self._normalize_email(email))

    # Registration

    def create_account(
        self, username: str, password: str, email: str, *, tenant: str | None = None
    ) -> Account:
        """
        Register a new account.

        Args:
            username: Desired username (ignored when email is the username)
            password: Plaintext password, checked against the policy then hashed
            email: Email address (normalized: stripped and lowercased)
            tenant: Requested tenant; ignored unless multi-tenancy is on

        Returns:
            The stored account, with its verification key when verification
            is required

        Raises:
            ValidationFailed: Blank input, weak password or malformed email
            AccountConflict: Username or email already in use
        """
        logger.info("[AccountService.create_account] called: %s, %s, %s", tenant, username, email)

        email = self._normalize_email(email)
        if self.settings.email_is_username:
            username = email
        resolved = self.directory.resolve_tenant(tenant)

        for name, value in (
            ("tenant", resolved),
            ("username", username),
            ("password", password),
            ("email", email),
        ):
            if _blank(value):
                raise ValidationFailed(f"A {name} is required.")
        username = username.strip()

        self._validate_password(password, resolved, username)
        self._validate_email(email, resolved, username)

        if self.directory.username_in_use(resolved, username):
            logger.debug(
                "[AccountService.create_account] username already exists: %s, %s",
                resolved,
                username,
            )
            raise AccountConflict("email" if self.settings.email_is_username else "username")
        if self.directory.email_in_use(resolved, email):
            logger.debug(
                "[AccountService.create_account] email already exists: %s, %s, %s",
                resolved,
                username,
                email,
            )
            raise AccountConflict("email")

        account = self.lifecycle.create(resolved, username, self.hasher.hash(password), email)
        account = self.repository.add(account)

        if self.settings.require_account_verification:
            self._notify("account_created", account)
        else:
            self._notify("account_verified", account)
        return account

    def verify_account(self, key: str) -> bool:
        logger.info("[AccountService.verify_account] called: %s...", (key or "")[:6])

        account = self._locate_by_key(key)
        if account is None:
            return False

        transition = self.lifecycle.verify(account, key)
        saved = self._commit(account, transition, "verify_account")
        if transition.succeeded:
            self._notify("account_verified", saved)
        return transition.succeeded

    def cancel_new_account(self, key: str) -> bool:
        """Delete an account that was never verified, using its new-account key."""
        logger.info("[AccountService.cancel_new_account] called: %s...", (key or "")[:6])

        account = self._locate_by_key(key)
        if account is None:
            return False

        transition = self.lifecycle.cancel_pending_creation(account, key)
        self._log_outcome("cancel_new_account", account, transition)
        if not transition.succeeded:
            return False

        return self._delete(account)

    def delete_account(self, username: str, *, tenant: str | None = None) -> bool:
        logger.info("[AccountService.delete_account] called: %s, %s", tenant, username)

        account = self.directory.find_by_username(tenant, username)
        if account is None:
            return False

        return self._delete(account)

    # Credentials

    def authenticate(
        self,
        username: str,
        password: str,
        *,
        tenant: str | None = None,
        options: LockoutOptions | None = None,
    ) -> bool:
        """
        Check a username/password pair, counting failures towards lockout.

        Args:
            options: Lockout threshold and window; defaults come from settings
        """
        logger.info("[AccountService.authenticate] called: %s, %s", tenant, username)

        if _blank(username, password):
            return False

        def attempt() -> bool:
            account = self.directory.find_by_username(tenant, username)
            if account is None:
                self._verify_dummy(password)
                return False
            transition = self.lifecycle.authenticate(account, password, options)
            self._commit(account, transition, "authenticate")
            return transition.succeeded

        return self._retry_on_conflict("authenticate", attempt)

    def change_password(
        self,
        username: str,
        old_password: str,
        new_password: str,
        *,
        tenant: str | None = None,
        options: LockoutOptions | None = None,
    ) -> bool:
        """
        Change a password after re-authenticating with the old one.

        A wrong old password counts as a failed login and leaves the
        password untouched.

        Raises:
            ValidationFailed: New password rejected by the policy
        """
        logger.info("[AccountService.change_password] called: %s, %s", tenant, username)

        if _blank(username, old_password, new_password):
            return False
        resolved = self.directory.resolve_tenant(tenant)
        self._validate_password(new_password, resolved, username)
        new_hash = self.hasher.hash(new_password)

        account = self.directory.find_by_username(tenant, username)
        if account is None:
            self._verify_dummy(old_password)
            return False

        transition = self.lifecycle.change_password(account, old_password, new_hash, options)
        saved = self._commit(account, transition, "change_password")
        if transition.succeeded:
            self._notify("password_changed", saved)
        return transition.succeeded

    def reset_password(self, email: str, *, tenant: str | None = None) -> bool:
        """
        Send a password reset key to a verified account.

        For an unverified account a fresh new-account key is sent instead,
        provided verification is required and a notification gateway is
        configured.
        """
        logger.info("[AccountService.reset_password] called: %s, %s", tenant, email)

        if _blank(email):
            return False
        account = self.directory.find_by_email(tenant, self._normalize_email(email))
        if account is None:
            return False

        transition = self.lifecycle.reset_password(account)
        if transition.outcome is Outcome.NOT_VERIFIED:
            return self._resend_account_created(account)

        saved = self._commit(account, transition, "reset_password")
        if transition.succeeded:
            self._notify("password_reset", saved)
        return transition.succeeded

    def change_password_from_reset_key(self, key: str, new_password: str) -> bool:
        """
        Set a new password using a password reset key.

        Raises:
            ValidationFailed: New password rejected by the policy
        """
        logger.info(
            "[AccountService.change_password_from_reset_key] called: %s...", (key or "")[:6]
        )

        if _blank(key, new_password):
            return False
        account = self._locate_by_key(key)
        if account is None:
            return False

        self._validate_password(new_password, account.tenant, account.username)

        transition = self.lifecycle.consume_password_reset(
            account, key, self.hasher.hash(new_password)
        )
        saved = self._commit(account, transition, "change_password_from_reset_key")
        if transition.succeeded:
            self._notify("password_changed", saved)
        return transition.succeeded

    def send_username_reminder(self, email: str, *, tenant: str | None = None) -> None:
        logger.info("[AccountService.send_username_reminder] called: %s, %s", tenant, email)

        if _blank(email):
            return
        account = self.directory.find_by_email(tenant, self._normalize_email(email))
        if account is not None:
            logger.debug(
                "[AccountService.send_username_reminder] account located: %s, %s",
                account.tenant,
                account.username,
            )
            self._notify("username_reminder", account)

    # Email change

    def change_email_request(
        self, username: str, new_email: str, *, tenant: str | None = None
    ) -> bool:
        """
        Start an email change by sending a key for ``new_email``.

        Raises:
            ValidationFailed: Malformed new email
            AccountConflict: New email already in use within the tenant
        """
        logger.info(
            "[AccountService.change_email_request] called: %s, %s, %s", tenant, username, new_email
        )

        if self.settings.email_is_username:
            logger.warning(
                "[AccountService.change_email_request] email is the username, "
                "change request refused: %s, %s",
                tenant,
                username,
            )
            return False

        if _blank(username, new_email):
            return False
        new_email = self._normalize_email(new_email)
        resolved = self.directory.resolve_tenant(tenant)
        if resolved is None:
            return False
        self._validate_email(new_email, resolved, username)

        account = self.directory.find_by_username(resolved, username)
        if account is None:
            return False

        if self.directory.email_in_use(account.tenant, new_email):
            raise AccountConflict("email")

        transition = self.lifecycle.request_email_change(account, new_email)
        saved = self._commit(account, transition, "change_email_request")
        if transition.succeeded:
            self._notify("email_change_requested", saved, new_email)
        return transition.succeeded

    def change_email_from_key(
        self,
        password: str,
        key: str,
        new_email: str,
        *,
        options: LockoutOptions | None = None,
    ) -> bool:
        """
        Confirm an email change; the account's password is required.

        The password check counts towards lockout exactly like
        ``authenticate`` and is committed even when it fails.

        Raises:
            AccountConflict: The new email was taken since the request
        """
        logger.info(
            "[AccountService.change_email_from_key] called: %s..., %s", (key or "")[:6], new_email
        )

        if _blank(password, key, new_email):
            return False
        new_email = self._normalize_email(new_email)

        def reauthenticate() -> Account | None:
            account = self._locate_by_key(key)
            if account is None:
                self._verify_dummy(password)
                return None
            auth = self.lifecycle.authenticate(account, password, options)
            saved = self._commit(account, auth, "change_email_from_key")
            return saved if auth.succeeded else None

        account = self._retry_on_conflict("change_email_from_key", reauthenticate)
        if account is None:
            return False

        old_email = account.email
        transition = self.lifecycle.confirm_email_change(account, key, new_email)
        # only a confirmable request can conflict
        if transition.succeeded and self.directory.email_in_use(account.tenant, new_email):
            raise AccountConflict("email")
        saved = self._commit(account, transition, "change_email_from_key")
        if transition.succeeded:
            self._notify("email_changed", saved, old_email)
        return transition.succeeded

    # Internals

    def _locate_by_key(self, key: str) -> Account | None:
        """Find the account holding ``key``; an expired key is purged and reported as missing."""
        account = self.directory.find_by_verification_key(key)
        if account is None:
            return None
        if self.lifecycle.is_key_expired(account):
            logger.debug(
                "[AccountService] verification key expired: %s, %s",
                account.tenant,
                account.username,
            )
            self.repository.update(self.lifecycle.expire_key(account))
            return None
        logger.debug(
            "[AccountService] account located: %s, %s", account.tenant, account.username
        )
        return account

    def _commit(self, before: Account, transition: Transition, operation: str) -> Account:
        """Persist the transition's account if it changed; return the stored state."""
        self._log_outcome(operation, before, transition)
        if transition.account == before:
            return before
        return self.repository.update(transition.account)

    def _retry_on_conflict(self, operation: str, attempt: Callable[[], T]) -> T:
        """Run ``attempt``, re-running it when its commit lost a concurrent write."""
        attempts_left = _CONFLICT_ATTEMPTS
        while True:
            try:
                return attempt()
            except StaleAccountError:
                attempts_left -= 1
                if attempts_left == 0:
                    raise
                logger.debug(
                    "[AccountService.%s] concurrent update, retrying: %d left",
                    operation,
                    attempts_left,
                )

    def _verify_dummy(self, password: str) -> None:
        self.hasher.verify(password, self._dummy_hash)

    def _delete(self, account: Account) -> bool:
        if account.is_account_closed:
            logger.debug(
                "[AccountService.delete_account] account already closed: %s, %s",
                account.tenant,
                account.username,
            )
            return False
        mode = deletion_policy(self.settings.allow_account_deletion, account.is_account_verified)
        if mode is DeletionMode.HARD_DELETE:
            logger.debug(
                "[AccountService.delete_account] removing account record: %s, %s",
                account.tenant,
                account.username,
            )
            self.repository.remove(account)
            deleted = account
        else:
            logger.debug(
                "[AccountService.delete_account] marking account closed: %s, %s",
                account.tenant,
                account.username,
            )
            deleted = self.repository.update(self.lifecycle.close(account))
        self._notify("account_deleted", deleted)
        return True

    def _resend_account_created(self, account: Account) -> bool:
        if account.is_account_closed:
            return False
        if self.settings.require_account_verification and self.notifications is not None:
            logger.debug(
                "[AccountService.reset_password] account not verified, "
                "re-sending account create notification: %s, %s",
                account.tenant,
                account.username,
            )
            transition = self.lifecycle.reissue_verification(account)
            saved = self._commit(account, transition, "reset_password")
            self._notify("account_created", saved)
            return True

        logger.warning(
            "[AccountService.reset_password] account not verified, "
            "no notification to re-send invite: %s, %s",
            account.tenant,
            account.username,
        )
        return False

    def _notify(self, event: str, account: Account, *args: str) -> None:
        """Send one notification after a commit; failures never propagate."""
        if self.notifications is None:
            return
        try:
            getattr(self.notifications, f"send_{event}")(account, *args)
        except Exception:
            logger.exception(
                "[AccountService] %s notification failed: %s, %s",
                event,
                account.tenant,
                account.username,
            )

    def _log_outcome(self, operation: str, account: Account, transition: Transition) -> None:
        logger.debug(
            "[AccountService.%s] outcome: %s, %s, %s",
            operation,
            account.tenant,
            account.username,
            transition.outcome.value,
        )

    def _validate_password(self, password: str, tenant: str | None, username: str) -> None:
        if self.password_policy is None:
            return
        ok, message = self.password_policy.validate(password)
        if not ok:
            logger.debug(
                "[AccountService] password failed validation: %s, %s, %s", tenant, username, message
            )
            raise ValidationFailed(f"Invalid password: {message}")

    def _validate_email(self, email: str, tenant: str | None, username: str) -> None:
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            logger.debug(
                "[AccountService] email validation failed: %s, %s, %s", tenant, username, email
            )
            raise ValidationFailed("Email is invalid.") from None

    @staticmethod
    def _normalize_email(email: str | None) -> str:
        """Strip whitespace and lowercase."""
        return (email or "").strip().lower()
