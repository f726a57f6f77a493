"""
In-memory repository adapter - Implements AccountRepository protocol.

Keeps accounts in a dict guarded by a lock. Used for development and the
unit test suite; it applies the same optimistic concurrency rule as the
PostgreSQL adapter.
"""

import threading
import uuid
from dataclasses import replace

from membership.domain.account import Account
from membership.domain.exceptions import AccountConflict, PersistenceError, StaleAccountError


class InMemoryAccountRepository:
    """
    Implements AccountRepository protocol with process-local storage.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = threading.Lock()

    def get(self, account_id: str) -> Account | None:
        with self._lock:
            return self._accounts.get(account_id)

    def find_by_username(self, tenant: str, username: str) -> Account | None:
        return self._single(lambda a: a.tenant == tenant and a.username == username)

    def find_by_email(self, tenant: str, email: str) -> Account | None:
        return self._single(lambda a: a.tenant == tenant and a.email == email)

    def find_by_verification_key(self, key: str) -> Account | None:
        return self._single(lambda a: a.verification_key == key)

    def list_active(self, tenant: str) -> list[Account]:
        with self._lock:
            return [
                a
                for a in self._accounts.values()
                if a.tenant == tenant and not a.is_account_closed
            ]

    def username_taken(self, username: str, tenant: str | None = None) -> bool:
        return self._single(
            lambda a: a.username == username and (tenant is None or a.tenant == tenant),
            allow_many=True,
        ) is not None

    def email_taken(self, tenant: str, email: str) -> bool:
        return self.find_by_email(tenant, email) is not None

    def add(self, account: Account) -> Account:
        """
        Insert a new account.

        Raises:
            AccountConflict: Username or email already stored for the tenant
        """
        stored = replace(account, id=str(uuid.uuid4()), version=1)
        with self._lock:
            self._check_unique(stored)
            self._accounts[stored.id] = stored
        return stored

    def update(self, account: Account) -> Account:
        with self._lock:
            current = self._accounts.get(account.id)
            if current is None:
                raise PersistenceError(f"Account {account.id} does not exist")
            if current.version != account.version:
                raise StaleAccountError(f"Account {account.id} was modified concurrently")
            self._check_unique(account)
            stored = replace(account, version=account.version + 1)
            self._accounts[stored.id] = stored
            return stored

    def remove(self, account: Account) -> None:
        with self._lock:
            self._accounts.pop(account.id, None)

    def _check_unique(self, account: Account) -> None:
        # mirrors the UNIQUE (tenant, username) / (tenant, email) constraints; caller holds the lock
        for other in self._accounts.values():
            if other.id == account.id or other.tenant != account.tenant:
                continue
            if other.username == account.username:
                raise AccountConflict("username")
            if other.email == account.email:
                raise AccountConflict("email")

    def _single(self, predicate, allow_many: bool = False) -> Account | None:
        with self._lock:
            matches = [a for a in self._accounts.values() if predicate(a)]
        if len(matches) > 1 and not allow_many:
            raise PersistenceError("Lookup matched more than one account")
        return matches[0] if matches else None
