"""
PostgreSQL repository adapter - Implements AccountRepository protocol.

This module provides the PostgreSQL implementation of the domain's
repository port using psycopg3 with raw SQL.

Concurrency Design - Optimistic Versioning:
------------------------------------------
Every account row carries a ``version`` column. ``update`` writes the whole
record in one statement guarded by ``WHERE id = %s AND version = %s`` and
bumps the version, so two requests that read the same account cannot both
commit: the second one matches zero rows and gets StaleAccountError. The
domain never locks; the row version is the single serialization point per
account.

Uniqueness Design:
-----------------
UNIQUE (tenant, username) and UNIQUE (tenant, email) back the directory's
pre-checks, so a concurrent registration that slips past the pre-check
still fails at commit with AccountConflict.
"""

import logging
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any

import psycopg
from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from membership.domain.account import Account, VerificationToken
from membership.domain.exceptions import AccountConflict, PersistenceError, StaleAccountError
from membership.domain.ports import TokenPurpose

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, tenant, username, email, password_hash, created_at,
    is_account_verified, is_login_allowed, is_account_closed,
    failed_login_count, last_failed_login_at, last_login_at, password_changed_at,
    unconfirmed_email, verification_key, verification_purpose, verification_key_sent_at,
    version
"""


def _to_account(row: dict[str, Any]) -> Account:
    token = None
    if row["verification_key"] is not None:
        token = VerificationToken(
            value=row["verification_key"],
            purpose=TokenPurpose(row["verification_purpose"]),
            issued_at=row["verification_key_sent_at"],
        )
    return Account(
        id=str(row["id"]),
        tenant=row["tenant"],
        username=row["username"],
        email=row["email"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
        is_account_verified=row["is_account_verified"],
        is_login_allowed=row["is_login_allowed"],
        is_account_closed=row["is_account_closed"],
        failed_login_count=row["failed_login_count"],
        last_failed_login_at=row["last_failed_login_at"],
        last_login_at=row["last_login_at"],
        password_changed_at=row["password_changed_at"],
        unconfirmed_email=row["unconfirmed_email"],
        token=token,
        version=row["version"],
    )


def _mutable_fields(account: Account) -> tuple[Any, ...]:
    token = account.token
    return (
        account.username,
        account.email,
        account.password_hash,
        account.is_account_verified,
        account.is_login_allowed,
        account.is_account_closed,
        account.failed_login_count,
        account.last_failed_login_at,
        account.last_login_at,
        account.password_changed_at,
        account.unconfirmed_email,
        token.value if token else None,
        token.purpose.value if token else None,
        token.issued_at if token else None,
    )


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def get(self, account_id: str) -> Account | None:
        try:
            uuid.UUID(account_id)
        except ValueError:
            return None
        return self._fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE id = %s", (account_id,))

    def find_by_username(self, tenant: str, username: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM accounts WHERE tenant = %s AND username = %s",
            (tenant, username),
        )

    def find_by_email(self, tenant: str, email: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM accounts WHERE tenant = %s AND email = %s",
            (tenant, email),
        )

    def find_by_verification_key(self, key: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM accounts WHERE verification_key = %s", (key,)
        )

    def list_active(self, tenant: str) -> list[Account]:
        sql = f"""
            SELECT {_COLUMNS} FROM accounts
            WHERE tenant = %s AND is_account_closed = FALSE
            ORDER BY created_at
        """
        try:
            with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(sql, (tenant,))
                return [_to_account(row) for row in cursor.fetchall()]
        except psycopg.Error as e:
            raise PersistenceError("Account listing failed") from e

    def username_taken(self, username: str, tenant: str | None = None) -> bool:
        if tenant is None:
            return self._exists("SELECT 1 FROM accounts WHERE username = %s", (username,))
        return self._exists(
            "SELECT 1 FROM accounts WHERE tenant = %s AND username = %s", (tenant, username)
        )

    def email_taken(self, tenant: str, email: str) -> bool:
        return self._exists(
            "SELECT 1 FROM accounts WHERE tenant = %s AND email = %s", (tenant, email)
        )

    def add(self, account: Account) -> Account:
        """
        Insert a new account.

        Raises:
            AccountConflict: A unique constraint on username or email fired
            PersistenceError: Any other database failure
        """
        stored = replace(account, id=str(uuid.uuid4()), version=1)
        sql = f"""
            INSERT INTO accounts ({_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        token = stored.token
        params = (
            stored.id,
            stored.tenant,
            stored.username,
            stored.email,
            stored.password_hash,
            stored.created_at,
            stored.is_account_verified,
            stored.is_login_allowed,
            stored.is_account_closed,
            stored.failed_login_count,
            stored.last_failed_login_at,
            stored.last_login_at,
            stored.password_changed_at,
            stored.unconfirmed_email,
            token.value if token else None,
            token.purpose.value if token else None,
            token.issued_at if token else None,
            stored.version,
        )
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, params)
                conn.commit()
        except errors.UniqueViolation as e:
            constraint = e.diag.constraint_name or ""
            raise AccountConflict("email" if "email" in constraint else "username") from e
        except psycopg.Error as e:
            raise PersistenceError("Account insert failed") from e
        return stored

    def update(self, account: Account) -> Account:
        """
        Write every mutable field of ``account`` in one statement.

        Raises:
            StaleAccountError: The stored version no longer matches
            AccountConflict: The new email collides with another account
            PersistenceError: Any other database failure
        """
        sql = """
            UPDATE accounts
            SET username = %s, email = %s, password_hash = %s,
                is_account_verified = %s, is_login_allowed = %s, is_account_closed = %s,
                failed_login_count = %s, last_failed_login_at = %s, last_login_at = %s,
                password_changed_at = %s, unconfirmed_email = %s,
                verification_key = %s, verification_purpose = %s, verification_key_sent_at = %s,
                version = version + 1
            WHERE id = %s AND version = %s
        """
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (*_mutable_fields(account), account.id, account.version))
                conn.commit()
                updated = cursor.rowcount
        except errors.UniqueViolation as e:
            raise AccountConflict("email") from e
        except psycopg.Error as e:
            raise PersistenceError("Account update failed") from e

        if updated != 1:
            logger.debug("Stale update rejected for account %s v%s", account.id, account.version)
            raise StaleAccountError(f"Account {account.id} was modified concurrently")
        return replace(account, version=account.version + 1)

    def remove(self, account: Account) -> None:
        try:
            with self._pool.connection() as conn:
                conn.execute("DELETE FROM accounts WHERE id = %s", (account.id,))
                conn.commit()
        except psycopg.Error as e:
            raise PersistenceError("Account delete failed") from e

    def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> Account | None:
        try:
            with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(sql, params)
                row = cursor.fetchone()
        except psycopg.Error as e:
            raise PersistenceError("Account lookup failed") from e
        return _to_account(row) if row is not None else None

    def _exists(self, sql: str, params: tuple[Any, ...]) -> bool:
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql + " LIMIT 1", params)
                return cursor.fetchone() is not None
        except psycopg.Error as e:
            raise PersistenceError("Account lookup failed") from e


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: membership/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            with pool.connection() as conn:
                conn.execute(sql_file.read_text())
            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
