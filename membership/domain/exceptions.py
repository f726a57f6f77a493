"""
Domain exceptions - Semantic error types for the account lifecycle.

Only validation, conflict and collaborator failures are raised. Missing
accounts, bad tokens and wrong credentials are reported as ``False`` so
callers cannot enumerate accounts through error types.
"""


class AccountError(Exception):
    """Base class for account domain errors."""

    pass


class ValidationFailed(AccountError):
    """Weak password, malformed email, or blank required input."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class AccountConflict(AccountError):
    """Username or email is already in use within its uniqueness scope."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"{field.capitalize()} already in use.")
        self.field = field


class PersistenceError(AccountError):
    """The account store could not complete the operation."""

    pass


class StaleAccountError(PersistenceError):
    """The account was modified concurrently; the update was rejected."""

    pass
