"""
Integration tests for PostgresAccountRepository.

Tests repository operations against a real PostgreSQL database.
Requires PostgreSQL at MEMBERSHIP_DATABASE_URL; skipped otherwise.
"""

from collections.abc import Generator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from membership.adapters.repository.postgres import PostgresAccountRepository, run_migrations
from membership.config.settings import get_settings
from membership.domain.account import Account
from membership.domain.accounts import AccountService
from membership.domain.exceptions import AccountConflict, PersistenceError, StaleAccountError
from membership.domain.lifecycle import AccountLifecycle
from membership.domain.ports import TokenPurpose

pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
        open=True,
    )
    try:
        pool.wait(timeout=3.0)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def pg_repository(pool: ConnectionPool) -> PostgresAccountRepository:
    """Create repository instance for each test."""
    return PostgresAccountRepository(pool)


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Clean accounts table before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield


def _new(lifecycle: AccountLifecycle, username: str = "alice", email: str = "a@x.com",
         tenant: str = "acme") -> Account:
    return lifecycle.create(tenant, username, "$2b$04$hashedpasswordvalue", email)


class TestAdd:
    """Tests for add()."""

    def test_add_and_read_back(self, pg_repository, lifecycle) -> None:
        stored = pg_repository.add(_new(lifecycle))

        loaded = pg_repository.get(stored.id)

        assert loaded is not None
        assert loaded.version == 1
        assert loaded.username == "alice"
        assert loaded.created_at == stored.created_at
        assert loaded.token.purpose is TokenPurpose.NEW_ACCOUNT
        assert loaded.verification_key == stored.verification_key

    def test_duplicate_username_raises_conflict(self, pg_repository, lifecycle) -> None:
        pg_repository.add(_new(lifecycle))

        with pytest.raises(AccountConflict) as exc_info:
            pg_repository.add(_new(lifecycle, email="b@x.com"))
        assert exc_info.value.field == "username"

    def test_duplicate_email_raises_conflict(self, pg_repository, lifecycle) -> None:
        pg_repository.add(_new(lifecycle))

        with pytest.raises(AccountConflict) as exc_info:
            pg_repository.add(_new(lifecycle, username="bob"))
        assert exc_info.value.field == "email"

    def test_other_tenant_allowed(self, pg_repository, lifecycle) -> None:
        pg_repository.add(_new(lifecycle))
        pg_repository.add(_new(lifecycle, tenant="globex"))

        assert pg_repository.username_taken("alice") is True
        assert pg_repository.username_taken("alice", "initech") is False

    def test_concurrent_adds_exactly_one_succeeds(self, pg_repository, lifecycle) -> None:
        def attempt(i: int) -> bool:
            try:
                pg_repository.add(_new(lifecycle, email=f"a{i}@x.com"))
            except AccountConflict:
                return False
            return True

        with ThreadPoolExecutor(max_workers=5) as executor:
            results = list(executor.map(attempt, range(5)))

        assert results.count(True) == 1
        assert len(pg_repository.list_active("acme")) == 1


class TestUpdate:
    """Tests for update()."""

    def test_update_bumps_version(self, pg_repository, lifecycle) -> None:
        stored = pg_repository.add(_new(lifecycle))

        updated = pg_repository.update(replace(stored, is_account_verified=True, token=None))

        assert updated.version == 2
        loaded = pg_repository.get(stored.id)
        assert loaded.is_account_verified is True
        assert loaded.token is None
        assert loaded.version == 2

    def test_stale_update_rejected(self, pg_repository, lifecycle) -> None:
        stored = pg_repository.add(_new(lifecycle))
        pg_repository.update(replace(stored, failed_login_count=1))

        with pytest.raises(StaleAccountError):
            pg_repository.update(replace(stored, failed_login_count=7))
        assert pg_repository.get(stored.id).failed_login_count == 1

    def test_email_collision_raises_conflict(self, pg_repository, lifecycle) -> None:
        pg_repository.add(_new(lifecycle))
        bob = pg_repository.add(_new(lifecycle, username="bob", email="b@x.com"))

        with pytest.raises(AccountConflict):
            pg_repository.update(replace(bob, email="a@x.com"))


class TestLookups:
    """Tests for lookups and removal."""

    def test_find_by_email_and_key(self, pg_repository, lifecycle) -> None:
        stored = pg_repository.add(_new(lifecycle))

        assert pg_repository.find_by_email("acme", "a@x.com").id == stored.id
        assert pg_repository.find_by_verification_key(stored.verification_key).id == stored.id
        assert pg_repository.find_by_email("globex", "a@x.com") is None

    def test_get_with_malformed_id(self, pg_repository) -> None:
        assert pg_repository.get("not-a-uuid") is None

    def test_list_active_excludes_closed(self, pg_repository, lifecycle) -> None:
        alice = pg_repository.add(_new(lifecycle))
        pg_repository.add(_new(lifecycle, username="bob", email="b@x.com"))
        pg_repository.update(lifecycle.close(alice))

        assert [a.username for a in pg_repository.list_active("acme")] == ["bob"]
        assert pg_repository.email_taken("acme", "a@x.com") is True

    def test_remove(self, pg_repository, lifecycle) -> None:
        stored = pg_repository.add(_new(lifecycle))
        pg_repository.remove(stored)
        assert pg_repository.get(stored.id) is None


class TestServiceOnPostgres:
    """The account service end to end against PostgreSQL."""

    def test_verify_and_authenticate(self, pg_repository, settings, hasher, clock) -> None:
        service = AccountService(
            repository=pg_repository, settings=settings, hasher=hasher, clock=clock
        )
        account = service.create_account("alice", "password123", "a@x.com")

        assert service.verify_account(account.verification_key) is True
        assert service.authenticate("alice", "password123") is True
        assert service.get_by_username("alice").last_login_at == clock.now


class TestConnectionFailure:
    """Database failures surface as PersistenceError."""

    def test_closed_pool_raises_persistence_error(self) -> None:
        pool = ConnectionPool(
            conninfo="postgresql://nobody@127.0.0.1:1/none", min_size=1, open=False
        )
        repository = PostgresAccountRepository(pool)

        with pytest.raises(PersistenceError):
            repository.find_by_username("acme", "alice")
