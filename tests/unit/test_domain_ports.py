"""
Unit tests for domain ports and exceptions.

Tests verify:
- Enums are properly defined
- Exceptions are properly structured
- Domain purity (zero framework imports)
"""

import json
import subprocess
from enum import Enum
from pathlib import Path

import pytest

from membership.domain.exceptions import (
    AccountConflict,
    AccountError,
    PersistenceError,
    StaleAccountError,
    ValidationFailed,
)
from membership.domain.ports import (
    AccountRepository,
    NotificationGateway,
    Outcome,
    PasswordHasher,
    PasswordPolicy,
    TokenPurpose,
)

DOMAIN_DIR = str(Path(__file__).resolve().parents[2] / "membership" / "domain")


class TestTokenPurposeEnum:
    """Tests for TokenPurpose enum."""

    def test_token_purpose_is_str_enum(self) -> None:
        """TokenPurpose uses str mixin for storage and JSON."""
        assert issubclass(TokenPurpose, Enum)
        assert issubclass(TokenPurpose, str)

    def test_token_purpose_values(self) -> None:
        assert {p.value for p in TokenPurpose} == {"NEW_ACCOUNT", "PASSWORD_RESET", "EMAIL_CHANGE"}

    def test_token_purpose_json_serializable(self) -> None:
        assert json.dumps(TokenPurpose.PASSWORD_RESET) == '"PASSWORD_RESET"'
        assert TokenPurpose.EMAIL_CHANGE == "EMAIL_CHANGE"


class TestOutcomeEnum:
    """Tests for Outcome enum."""

    def test_outcome_has_success(self) -> None:
        assert Outcome.SUCCESS.value == "success"

    @pytest.mark.parametrize(
        "name", ["CLOSED", "INVALID_TOKEN", "WRONG_PURPOSE", "EXPIRED", "LOCKED"]
    )
    def test_outcome_failures(self, name: str) -> None:
        assert getattr(Outcome, name).value == name.lower()


class TestProtocols:
    """Tests for port protocol definitions."""

    @pytest.mark.parametrize(
        "method",
        [
            "get",
            "find_by_username",
            "find_by_email",
            "find_by_verification_key",
            "list_active",
            "username_taken",
            "email_taken",
            "add",
            "update",
            "remove",
        ],
    )
    def test_account_repository_methods(self, method: str) -> None:
        assert hasattr(AccountRepository, method)

    def test_notification_gateway_methods(self) -> None:
        assert hasattr(NotificationGateway, "send_account_created")
        assert hasattr(NotificationGateway, "send_email_changed")

    def test_password_policy_signature(self) -> None:
        """PasswordPolicy.validate returns (ok, message)."""
        assert hasattr(PasswordPolicy, "validate")

        class MockPolicy:
            def validate(self, password: str) -> tuple[bool, str]:
                return False, "too short"

        ok, message = MockPolicy().validate("x")
        assert ok is False
        assert message == "too short"

    def test_password_hasher_methods(self) -> None:
        assert hasattr(PasswordHasher, "hash")
        assert hasattr(PasswordHasher, "verify")


class TestDomainExceptions:
    """Tests for domain exceptions."""

    @pytest.mark.parametrize(
        "exc", [ValidationFailed, AccountConflict, PersistenceError, StaleAccountError]
    )
    def test_inherits_account_error(self, exc: type) -> None:
        assert issubclass(exc, AccountError)

    def test_stale_account_is_persistence_error(self) -> None:
        assert issubclass(StaleAccountError, PersistenceError)

    def test_validation_failed_keeps_reason(self) -> None:
        with pytest.raises(ValidationFailed) as exc_info:
            raise ValidationFailed("Email is invalid.")
        assert exc_info.value.reason == "Email is invalid."

    def test_account_conflict_default_message(self) -> None:
        error = AccountConflict("email")
        assert error.field == "email"
        assert str(error) == "Email already in use."


class TestDomainPurity:
    """Tests for domain purity - zero framework imports."""

    @pytest.mark.parametrize(
        "pattern",
        [
            "from fastapi",
            "import fastapi",
            "from pydantic",
            "import pydantic",
            "from psycopg",
            "import psycopg",
        ],
    )
    def test_no_framework_imports_in_domain(self, pattern: str) -> None:
        result = subprocess.run(
            ["grep", "-r", pattern, DOMAIN_DIR],
            capture_output=True,
            text=True,
        )
        assert result.returncode != 0, f"Framework import found: {result.stdout}"
