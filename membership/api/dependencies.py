"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from fastapi import Depends, Header, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from membership.adapters.smtp.console import ConsoleNotificationGateway
from membership.config.settings import get_settings
from membership.domain.accounts import AccountService
from membership.domain.passwords import BcryptPasswordHasher, LengthPasswordPolicy
from membership.domain.ports import AccountRepository

# Module-level singleton - ConsoleNotificationGateway is stateless
_notifications = ConsoleNotificationGateway()


def get_repository(request: Request) -> AccountRepository:
    """
    Get the account repository from app state.

    The repository is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.repository


def get_notifications() -> ConsoleNotificationGateway:
    """Get console notification gateway (singleton)."""
    return _notifications


def get_account_service(request: Request) -> AccountService:
    """
    Create account service with injected dependencies.

    Wires together the repository, notification gateway, password policy
    and hasher from the cached settings.
    """
    settings = get_settings()
    return AccountService(
        repository=get_repository(request),
        settings=settings.security(),
        notifications=get_notifications(),
        password_policy=LengthPasswordPolicy(min_length=settings.password_min_length),
        hasher=BcryptPasswordHasher(cost=settings.bcrypt_cost),
    )


def get_tenant(x_tenant: str | None = Header(default=None)) -> str | None:
    """Requested tenant from the X-Tenant header; ignored unless multi-tenancy is on."""
    return x_tenant


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


def get_basic_auth_credentials(
    credentials: HTTPBasicCredentials = Depends(http_basic),
) -> tuple[str, str]:
    """
    Extract credentials from HTTP BASIC AUTH header.

    FastAPI's HTTPBasic automatically returns 401 for a missing or
    malformed Authorization header.

    Returns:
        Tuple of (username, password), username stripped of whitespace
    """
    return credentials.username.strip(), credentials.password
