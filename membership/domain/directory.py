"""
Tenant directory - Tenant-scoped account lookup and uniqueness checks.

Every method resolves the tenant the same way: with multi-tenancy off the
configured default tenant is used whatever the caller asked for; with it
on, a blank tenant resolves to None and the lookup reports "not found"
instead of scanning every tenant.
"""

import logging

from .account import Account, SecuritySettings
from .ports import AccountRepository

logger = logging.getLogger(__name__)


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


class TenantDirectory:
    """Locates accounts for AccountService."""

    def __init__(self, repository: AccountRepository, settings: SecuritySettings) -> None:
        self._repository = repository
        self._settings = settings

    def resolve_tenant(self, requested: str | None) -> str | None:
        """
        Map a requested tenant to the tenant that is actually used.

        Returns:
            The tenant name, or None when multi-tenancy is on and
            ``requested`` is blank.
        """
        if not self._settings.multi_tenant:
            requested = self._settings.default_tenant
        if _blank(requested):
            return None
        return requested

    def list_accounts(self, tenant: str | None) -> list[Account]:
        resolved = self.resolve_tenant(tenant)
        if resolved is None:
            return []
        return self._repository.list_active(resolved)

    def normalize_username(self, username: str | None) -> str:
        """Strip whitespace; when the email is the username, also lowercase."""
        username = (username or "").strip()
        if self._settings.email_is_username:
            return username.lower()
        return username

    def find_by_username(self, tenant: str | None, username: str | None) -> Account | None:
        resolved = self.resolve_tenant(tenant)
        if resolved is None or _blank(username):
            return None
        username = self.normalize_username(username)
        account = self._repository.find_by_username(resolved, username)
        if account is None:
            logger.debug(
                "[TenantDirectory.find_by_username] failed to locate account: %s, %s",
                resolved,
                username,
            )
        return account

    def find_by_email(self, tenant: str | None, email: str | None) -> Account | None:
        resolved = self.resolve_tenant(tenant)
        if resolved is None or _blank(email):
            return None
        account = self._repository.find_by_email(resolved, email)
        if account is None:
            logger.debug(
                "[TenantDirectory.find_by_email] failed to locate account: %s, %s",
                resolved,
                email,
            )
        return account

    def find_by_id(self, account_id: str | None, tenant: str | None = None) -> Account | None:
        """
        Look up an account by id.

        When ``tenant`` is given the account must belong to the resolved
        tenant; a blank tenant under multi-tenancy finds nothing.
        """
        if _blank(account_id):
            return None
        account = self._repository.get(account_id)
        if account is not None and not self._in_scope(account, tenant):
            account = None
        if account is None:
            logger.debug("[TenantDirectory.find_by_id] failed to locate account: %s", account_id)
        return account

    def find_by_verification_key(
        self, key: str | None, tenant: str | None = None
    ) -> Account | None:
        if _blank(key):
            return None
        account = self._repository.find_by_verification_key(key)
        if account is not None and not self._in_scope(account, tenant):
            account = None
        if account is None:
            logger.debug(
                "[TenantDirectory.find_by_verification_key] failed to locate account: %s...",
                key[:6],
            )
        return account

    def username_in_use(self, tenant: str | None, username: str | None) -> bool:
        resolved = self.resolve_tenant(tenant)
        if resolved is None or _blank(username):
            return False
        username = self.normalize_username(username)
        if self._settings.usernames_unique_across_tenants:
            return self._repository.username_taken(username)
        return self._repository.username_taken(username, resolved)

    def email_in_use(self, tenant: str | None, email: str | None) -> bool:
        resolved = self.resolve_tenant(tenant)
        if resolved is None or _blank(email):
            return False
        return self._repository.email_taken(resolved, email)

    def _in_scope(self, account: Account, tenant: str | None) -> bool:
        if tenant is None:
            return True
        return self.resolve_tenant(tenant) == account.tenant
