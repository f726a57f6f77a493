"""
Domain layer - Pure business logic with zero framework imports.

This package contains the account lifecycle state machine, the tenant
directory and the AccountService that orchestrates them. It defines its
own port interfaces for storage, notifications and password policy so
adapters can be swapped without touching the domain.
"""

from .account import Account, AccountStage, LockoutOptions, SecuritySettings, VerificationToken
from .accounts import AccountService
from .directory import TenantDirectory
from .exceptions import (
    AccountConflict,
    AccountError,
    PersistenceError,
    StaleAccountError,
    ValidationFailed,
)
from .lifecycle import AccountLifecycle, DeletionMode, Transition, deletion_policy
from .passwords import BcryptPasswordHasher, LengthPasswordPolicy
from .ports import (
    AccountRepository,
    NotificationGateway,
    Outcome,
    PasswordHasher,
    PasswordPolicy,
    TokenPurpose,
)

__all__ = [
    "Account",
    "AccountConflict",
    "AccountError",
    "AccountLifecycle",
    "AccountRepository",
    "AccountService",
    "AccountStage",
    "BcryptPasswordHasher",
    "DeletionMode",
    "LengthPasswordPolicy",
    "LockoutOptions",
    "NotificationGateway",
    "Outcome",
    "PasswordHasher",
    "PasswordPolicy",
    "PersistenceError",
    "SecuritySettings",
    "StaleAccountError",
    "TenantDirectory",
    "TokenPurpose",
    "Transition",
    "ValidationFailed",
    "VerificationToken",
    "deletion_policy",
]
