"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from pydantic import BaseModel, EmailStr, Field

from membership.domain.account import Account


class CreateAccountRequest(BaseModel):
    """Request model for account registration."""

    username: str | None = Field(
        default=None,
        min_length=1,
        max_length=100,
        description="Username (omit when the email is the username)",
    )
    email: EmailStr
    password: str = Field(..., min_length=1, description="User password")


class AccountResponse(BaseModel):
    """Public view of an account."""

    id: str
    tenant: str
    username: str
    email: str
    is_account_verified: bool

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            tenant=account.tenant,
            username=account.username,
            email=account.email,
            is_account_verified=account.is_account_verified,
        )


class KeyRequest(BaseModel):
    """Request model carrying a verification key."""

    key: str = Field(..., min_length=1, description="Verification key from the notification")


class EmailRequest(BaseModel):
    """Request model carrying an email address."""

    email: EmailStr


class ChangePasswordRequest(BaseModel):
    """Request model for changing a password (old password via HTTP BASIC AUTH)."""

    new_password: str = Field(..., min_length=1)


class ResetPasswordConfirmRequest(BaseModel):
    """Request model for completing a password reset."""

    key: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class ChangeEmailRequest(BaseModel):
    """Request model for starting an email change."""

    new_email: EmailStr


class ChangeEmailConfirmRequest(BaseModel):
    """Request model for confirming an email change."""

    key: str = Field(..., min_length=1)
    new_email: EmailStr
    password: str = Field(..., min_length=1, description="Current password")


class MessageResponse(BaseModel):
    """Response model for operations without a payload."""

    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
