"""
Account lifecycle - Pure state transitions for a single account.

Every method takes the current Account and returns a Transition holding
the new Account and an Outcome. Nothing here touches storage or sends
notifications; AccountService persists ``transition.account`` whether or
not the transition succeeded, because failures such as a wrong password
or an expired key still change state.

Lifecycle stages
================

    UNVERIFIED --verify(key)--> VERIFIED
    UNVERIFIED --close()-----> CLOSED
    VERIFIED   --close()-----> CLOSED

CLOSED is terminal: every transition on a closed account returns
Outcome.CLOSED and leaves the account untouched.

Verification keys
=================

One key slot, tagged with a TokenPurpose:

    NEW_ACCOUNT     issued by create() / reissue_verification()
    PASSWORD_RESET  issued by reset_password()
    EMAIL_CHANGE    issued by request_email_change()

Issuing a key supersedes the pending one. A key is cleared when it is
consumed or found expired, so it can never be consumed twice. A key of
the wrong purpose is rejected with Outcome.WRONG_PURPOSE and stays
pending.

Lockout
=======

Failures are counted over a rolling window: a failure more than
``window`` after the previous one restarts the count at 1. Reaching
``max_failures`` disables login. The lockout lifts once ``window`` has
passed since the failure that triggered it; attempts made during the
lockout are counted but do not extend it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum

from .account import Account, LockoutOptions, SecuritySettings, VerificationToken
from .ports import Outcome, PasswordHasher, TokenPurpose


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeletionMode(Enum):
    HARD_DELETE = "hard_delete"
    SOFT_CLOSE = "soft_close"


def deletion_policy(deletion_allowed: bool, is_verified: bool) -> DeletionMode:
    """
    Decide how a delete request is carried out.

    Unverified accounts are always removed. Verified accounts are removed
    only when deletion is administratively allowed; otherwise they are
    closed and retained.
    """
    if deletion_allowed or not is_verified:
        return DeletionMode.HARD_DELETE
    return DeletionMode.SOFT_CLOSE


@dataclass(frozen=True)
class Transition:
    """New account state plus the outcome that produced it."""

    account: Account
    outcome: Outcome

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS


class AccountLifecycle:
    """State machine for one account's status, credentials and keys."""

    def __init__(
        self,
        settings: SecuritySettings,
        hasher: PasswordHasher,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings
        self._hasher = hasher
        self._clock = clock

    def create(self, tenant: str, username: str, password_hash: str, email: str) -> Account:
        """
        Build a new account.

        Callers validate input and uniqueness first. When verification is
        not required the account starts out verified and without a key.
        """
        now = self._clock()
        account = Account(
            tenant=tenant,
            username=username,
            email=email,
            password_hash=password_hash,
            created_at=now,
        )
        if self._settings.require_account_verification:
            return replace(account, token=VerificationToken.issue(TokenPurpose.NEW_ACCOUNT, now))
        return replace(account, is_account_verified=True)

    def verify(self, account: Account, key: str) -> Transition:
        failure = self._consume(account, key, TokenPurpose.NEW_ACCOUNT)
        if failure is not None:
            return failure
        return Transition(replace(account, is_account_verified=True, token=None), Outcome.SUCCESS)

    def cancel_pending_creation(self, account: Account, key: str) -> Transition:
        """
        Check that a pending new account may be cancelled with ``key``.

        The account itself is unchanged; removing it is up to the caller's
        deletion policy.
        """
        if account.is_account_closed:
            return Transition(account, Outcome.CLOSED)
        if account.is_account_verified:
            return Transition(account, Outcome.ALREADY_VERIFIED)
        if account.token is None or not account.token.matches(key):
            return Transition(account, Outcome.INVALID_TOKEN)
        if account.token.purpose is not TokenPurpose.NEW_ACCOUNT:
            return Transition(account, Outcome.WRONG_PURPOSE)
        return Transition(account, Outcome.SUCCESS)

    def reissue_verification(self, account: Account) -> Transition:
        """Issue a fresh new-account key for an account that is still unverified."""
        if account.is_account_closed:
            return Transition(account, Outcome.CLOSED)
        if account.is_account_verified:
            return Transition(account, Outcome.ALREADY_VERIFIED)
        token = VerificationToken.issue(TokenPurpose.NEW_ACCOUNT, self._clock())
        return Transition(replace(account, token=token), Outcome.SUCCESS)

    def authenticate(
        self, account: Account, password: str, options: LockoutOptions | None = None
    ) -> Transition:
        """
        Check ``password`` and update the failure counter.

        A correct password does not get through an active lockout. The
        hash comparison runs on every path, before any refusal, so a
        closed, unverified or locked account answers in the same time as
        a wrong password.
        """
        lockout = self._settings.lockout(options)
        now = self._clock()
        password_ok = self._hasher.verify(password, account.password_hash)

        if account.is_account_closed:
            return Transition(account, Outcome.CLOSED)
        if self._settings.require_account_verification and not account.is_account_verified:
            return Transition(account, Outcome.NOT_VERIFIED)

        if not account.is_login_allowed:
            if account.failed_login_count == 0:
                return Transition(account, Outcome.LOGIN_DISABLED)
            if self._within_window(account, lockout, now):
                counted = replace(account, failed_login_count=account.failed_login_count + 1)
                return Transition(counted, Outcome.LOCKED)
            account = replace(account, is_login_allowed=True, failed_login_count=0)

        if password_ok:
            return Transition(
                replace(self._clear_failures(account), last_login_at=now), Outcome.SUCCESS
            )
        return Transition(self._record_failure(account, lockout, now), Outcome.INVALID_CREDENTIALS)

    def change_password(
        self,
        account: Account,
        old_password: str,
        new_hash: str,
        options: LockoutOptions | None = None,
    ) -> Transition:
        auth = self.authenticate(account, old_password, options)
        if not auth.succeeded:
            return auth
        changed = replace(
            self._clear_failures(auth.account),
            password_hash=new_hash,
            password_changed_at=self._clock(),
        )
        return Transition(changed, Outcome.SUCCESS)

    def reset_password(self, account: Account) -> Transition:
        if account.is_account_closed:
            return Transition(account, Outcome.CLOSED)
        if not account.is_account_verified:
            return Transition(account, Outcome.NOT_VERIFIED)
        token = VerificationToken.issue(TokenPurpose.PASSWORD_RESET, self._clock())
        return Transition(replace(account, token=token, unconfirmed_email=None), Outcome.SUCCESS)

    def consume_password_reset(self, account: Account, key: str, new_hash: str) -> Transition:
        failure = self._consume(account, key, TokenPurpose.PASSWORD_RESET)
        if failure is not None:
            return failure
        changed = replace(
            self._clear_failures(account),
            password_hash=new_hash,
            password_changed_at=self._clock(),
            token=None,
        )
        return Transition(changed, Outcome.SUCCESS)

    def request_email_change(self, account: Account, new_email: str) -> Transition:
        if account.is_account_closed:
            return Transition(account, Outcome.CLOSED)
        if self._settings.email_is_username:
            # the email is the account's identity in this mode
            return Transition(account, Outcome.IDENTITY_IMMUTABLE)
        if not account.is_account_verified:
            return Transition(account, Outcome.NOT_VERIFIED)
        token = VerificationToken.issue(TokenPurpose.EMAIL_CHANGE, self._clock())
        changed = replace(account, token=token, unconfirmed_email=new_email)
        return Transition(changed, Outcome.SUCCESS)

    def confirm_email_change(self, account: Account, key: str, new_email: str) -> Transition:
        if account.is_account_closed:
            return Transition(account, Outcome.CLOSED)
        if self._settings.email_is_username:
            return Transition(account, Outcome.IDENTITY_IMMUTABLE)
        failure = self._consume(account, key, TokenPurpose.EMAIL_CHANGE)
        if failure is not None:
            return failure
        if account.unconfirmed_email is None or account.unconfirmed_email != new_email:
            return Transition(account, Outcome.EMAIL_MISMATCH)
        changed = replace(account, email=new_email, unconfirmed_email=None, token=None)
        return Transition(changed, Outcome.SUCCESS)

    def close(self, account: Account) -> Account:
        """Soft-close: login disabled, record retained, pending key dropped."""
        return replace(
            account,
            is_login_allowed=False,
            is_account_closed=True,
            token=None,
            unconfirmed_email=None,
        )

    def is_key_expired(self, account: Account) -> bool:
        token = account.token
        return token is not None and token.is_expired(
            self._clock(), self._settings.verification_key_ttl
        )

    @staticmethod
    def expire_key(account: Account) -> Account:
        """Drop the pending key together with any email awaiting confirmation."""
        return replace(account, token=None, unconfirmed_email=None)

    def _consume(self, account: Account, key: str, purpose: TokenPurpose) -> Transition | None:
        """Return a failed Transition, or None when ``key`` may be consumed for ``purpose``."""
        if account.is_account_closed:
            return Transition(account, Outcome.CLOSED)
        token = account.token
        if token is None or not token.matches(key):
            return Transition(account, Outcome.INVALID_TOKEN)
        if token.purpose is not purpose:
            return Transition(account, Outcome.WRONG_PURPOSE)
        if self.is_key_expired(account):
            return Transition(self.expire_key(account), Outcome.EXPIRED)
        return None

    def _record_failure(self, account: Account, lockout: LockoutOptions, now: datetime) -> Account:
        if self._within_window(account, lockout, now):
            count = account.failed_login_count + 1
        else:
            count = 1
        locked = 0 < lockout.max_failures <= count
        return replace(
            account,
            failed_login_count=count,
            last_failed_login_at=now,
            is_login_allowed=not locked,
        )

    @staticmethod
    def _within_window(account: Account, lockout: LockoutOptions, now: datetime) -> bool:
        last = account.last_failed_login_at
        return last is not None and now - last < lockout.window

    @staticmethod
    def _clear_failures(account: Account) -> Account:
        # a lockout (login disabled with failures counted) lifts with the counter
        allowed = account.is_login_allowed or account.failed_login_count > 0
        return replace(account, failed_login_count=0, is_login_allowed=allowed)
