"""
Unit tests for API request/response models.

Tests Pydantic model validation for the account endpoints.
"""

from dataclasses import replace

import pytest
from pydantic import ValidationError

from membership.api.models import (
    AccountResponse,
    ChangeEmailConfirmRequest,
    CreateAccountRequest,
    ErrorResponse,
    KeyRequest,
)


class TestCreateAccountRequest:
    """Tests for CreateAccountRequest model."""

    def test_valid_request(self) -> None:
        request = CreateAccountRequest(username="alice", email="a@example.com", password="pw")
        assert request.username == "alice"
        assert request.email == "a@example.com"

    def test_username_optional(self) -> None:
        """Username may be omitted when the email is the username."""
        request = CreateAccountRequest(email="a@example.com", password="pw")
        assert request.username is None

    def test_email_domain_normalized(self) -> None:
        """EmailStr normalizes the domain to lowercase."""
        request = CreateAccountRequest(email="USER@EXAMPLE.COM", password="pw")
        assert request.email == "USER@example.com"

    def test_invalid_email_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            CreateAccountRequest(email="not-an-email", password="pw")
        assert "email" in str(exc_info.value)

    def test_empty_password_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            CreateAccountRequest(email="a@example.com", password="")
        assert "password" in str(exc_info.value)

    def test_empty_username_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreateAccountRequest(username="", email="a@example.com", password="pw")


class TestKeyRequests:
    """Tests for key-carrying request models."""

    def test_empty_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            KeyRequest(key="")

    def test_confirm_requires_password(self) -> None:
        with pytest.raises(ValidationError):
            ChangeEmailConfirmRequest(  # type: ignore[call-arg]
                key="abc", new_email="a@example.com"
            )


class TestAccountResponse:
    """Tests for AccountResponse model."""

    def test_from_account(self, lifecycle) -> None:
        account = replace(lifecycle.create("acme", "alice", "hash", "a@x.com"), id="abc")

        response = AccountResponse.from_account(account)

        assert response.model_dump() == {
            "id": "abc",
            "tenant": "acme",
            "username": "alice",
            "email": "a@x.com",
            "is_account_verified": False,
        }


class TestErrorResponse:
    """Tests for ErrorResponse model."""

    def test_error_response(self) -> None:
        assert ErrorResponse(detail="Registration failed").detail == "Registration failed"
