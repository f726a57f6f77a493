"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock
- Security settings, hasher and in-memory repository
- An AccountService wired with a mocked notification gateway
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from membership.adapters.repository.memory import InMemoryAccountRepository
from membership.domain.account import SecuritySettings
from membership.domain.accounts import AccountService
from membership.domain.lifecycle import AccountLifecycle
from membership.domain.passwords import BcryptPasswordHasher, LengthPasswordPolicy


class FixedClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def settings() -> SecuritySettings:
    """Single-tenant defaults with a small lockout threshold."""
    return SecuritySettings(
        lockout_failed_attempts=5,
        lockout_duration=timedelta(minutes=5),
        verification_key_ttl=timedelta(hours=1),
    )


@pytest.fixture
def hasher() -> BcryptPasswordHasher:
    # minimum bcrypt cost keeps the suite fast
    return BcryptPasswordHasher(cost=4)


@pytest.fixture
def lifecycle(
    settings: SecuritySettings, hasher: BcryptPasswordHasher, clock: FixedClock
) -> AccountLifecycle:
    return AccountLifecycle(settings, hasher, clock)


@pytest.fixture
def repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def notifications() -> Mock:
    return Mock()


@pytest.fixture
def service(
    repository: InMemoryAccountRepository,
    settings: SecuritySettings,
    notifications: Mock,
    hasher: BcryptPasswordHasher,
    clock: FixedClock,
) -> AccountService:
    return AccountService(
        repository=repository,
        settings=settings,
        notifications=notifications,
        password_policy=LengthPasswordPolicy(min_length=8),
        hasher=hasher,
        clock=clock,
    )
