"""
API v1 routes.

Defines REST endpoints over AccountService. Every failed operation maps to
a generic error body that does not reveal which input was wrong or
whether the account exists.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from membership.api.dependencies import (
    get_account_service,
    get_basic_auth_credentials,
    get_tenant,
)
from membership.api.models import (
    AccountResponse,
    ChangeEmailConfirmRequest,
    ChangeEmailRequest,
    ChangePasswordRequest,
    CreateAccountRequest,
    EmailRequest,
    ErrorResponse,
    KeyRequest,
    MessageResponse,
    ResetPasswordConfirmRequest,
)
from membership.domain.accounts import AccountService
from membership.domain.exceptions import AccountConflict, ValidationFailed

router = APIRouter(tags=["v1"])

_INVALID_KEY = "Invalid or expired key"
_INVALID_CREDENTIALS = "Invalid credentials"
_REQUEST_ACCEPTED = "If the account exists, a notification has been sent"


def _unprocessable(exc: ValidationFailed) -> HTTPException:
    return HTTPException(status_code=422, detail=exc.reason)


@router.post(
    "/accounts",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Username or email already in use"},
        422: {"model": ErrorResponse, "description": "Validation error"},
    },
    summary="Register a new account",
    description="Create an account. When verification is required a key is sent "
    "to the provided email.",
)
async def create_account(
    request_data: CreateAccountRequest,
    tenant: str | None = Depends(get_tenant),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    try:
        account = service.create_account(
            request_data.username or "",
            request_data.password,
            request_data.email,
            tenant=tenant,
        )
    except ValidationFailed as e:
        raise _unprocessable(e) from None
    except AccountConflict:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Registration failed",
        ) from None
    return AccountResponse.from_account(account)


@router.post(
    "/accounts/verify",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or expired key"}},
    summary="Verify a new account",
)
async def verify_account(
    request_data: KeyRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    if not service.verify_account(request_data.key):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_INVALID_KEY)
    return MessageResponse(message="Account verified")


@router.post(
    "/accounts/cancel",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or expired key"}},
    summary="Cancel an unverified account",
)
async def cancel_account(
    request_data: KeyRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    if not service.cancel_new_account(request_data.key):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_INVALID_KEY)
    return MessageResponse(message="Account cancelled")


@router.delete(
    "/accounts/{username}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        404: {"model": ErrorResponse, "description": "Account not found"},
    },
    summary="Delete or close an account",
    description="The account's own credentials are provided via HTTP BASIC AUTH header.",
)
async def delete_account(
    username: str,
    credentials: tuple[str, str] = Depends(get_basic_auth_credentials),
    tenant: str | None = Depends(get_tenant),
    service: AccountService = Depends(get_account_service),
) -> Response:
    auth_username, password = credentials
    if auth_username.casefold() != username.strip().casefold() or not service.authenticate(
        auth_username, password, tenant=tenant
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=_INVALID_CREDENTIALS
        )
    if not service.delete_account(auth_username, tenant=tenant):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/authenticate",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
    summary="Check account credentials",
    description="Credentials (username:password) are provided via HTTP BASIC AUTH header.",
)
async def authenticate(
    credentials: tuple[str, str] = Depends(get_basic_auth_credentials),
    tenant: str | None = Depends(get_tenant),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    username, password = credentials
    if not service.authenticate(username, password, tenant=tenant):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=_INVALID_CREDENTIALS
        )
    return MessageResponse(message="Authenticated")


@router.post(
    "/password/change",
    response_model=MessageResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        422: {"model": ErrorResponse, "description": "Validation error"},
    },
    summary="Change password",
    description="The current credentials are provided via HTTP BASIC AUTH header.",
)
async def change_password(
    request_data: ChangePasswordRequest,
    credentials: tuple[str, str] = Depends(get_basic_auth_credentials),
    tenant: str | None = Depends(get_tenant),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    username, password = credentials
    try:
        changed = service.change_password(
            username, password, request_data.new_password, tenant=tenant
        )
    except ValidationFailed as e:
        raise _unprocessable(e) from None
    if not changed:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=_INVALID_CREDENTIALS
        )
    return MessageResponse(message="Password changed")


@router.post(
    "/password/reset",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a password reset",
)
async def reset_password(
    request_data: EmailRequest,
    tenant: str | None = Depends(get_tenant),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.reset_password(request_data.email, tenant=tenant)
    return MessageResponse(message=_REQUEST_ACCEPTED)


@router.post(
    "/password/reset/confirm",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired key"},
        422: {"model": ErrorResponse, "description": "Validation error"},
    },
    summary="Set a new password with a reset key",
)
async def confirm_password_reset(
    request_data: ResetPasswordConfirmRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    try:
        changed = service.change_password_from_reset_key(
            request_data.key, request_data.new_password
        )
    except ValidationFailed as e:
        raise _unprocessable(e) from None
    if not changed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_INVALID_KEY)
    return MessageResponse(message="Password changed")


@router.post(
    "/username/reminder",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Send a username reminder",
)
async def username_reminder(
    request_data: EmailRequest,
    tenant: str | None = Depends(get_tenant),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.send_username_reminder(request_data.email, tenant=tenant)
    return MessageResponse(message=_REQUEST_ACCEPTED)


@router.post(
    "/email/change",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"model": ErrorResponse, "description": "Email change not possible"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        409: {"model": ErrorResponse, "description": "Email already in use"},
    },
    summary="Request an email change",
    description="Credentials are provided via HTTP BASIC AUTH header. A key is sent "
    "to the new email.",
)
async def change_email(
    request_data: ChangeEmailRequest,
    credentials: tuple[str, str] = Depends(get_basic_auth_credentials),
    tenant: str | None = Depends(get_tenant),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    username, password = credentials
    if not service.authenticate(username, password, tenant=tenant):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=_INVALID_CREDENTIALS
        )
    try:
        requested = service.change_email_request(username, request_data.new_email, tenant=tenant)
    except ValidationFailed as e:
        raise _unprocessable(e) from None
    except AccountConflict:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Email change failed"
        ) from None
    if not requested:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Email change failed"
        )
    return MessageResponse(message="Confirmation sent to the new email")


@router.post(
    "/email/change/confirm",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid key or credentials"},
        409: {"model": ErrorResponse, "description": "Email already in use"},
    },
    summary="Confirm an email change",
)
async def confirm_email_change(
    request_data: ChangeEmailConfirmRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    try:
        changed = service.change_email_from_key(
            request_data.password, request_data.key, request_data.new_email
        )
    except AccountConflict:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Email change failed"
        ) from None
    if not changed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_INVALID_KEY)
    return MessageResponse(message="Email changed")
