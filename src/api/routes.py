"""
API routes - Registration and email verification endpoints.

This module defines the HTTP endpoints:
- GET  /csrf-token          - Issue a CSRF token bound to the requester IP
- GET  /users/check-email   - Report whether an email is still available
- POST /users               - Run the registration pipeline
- GET  /users/verify-email  - Confirm an email address from a signed link

Domain exceptions are rendered by src.api.errors, so routes only handle
the success path.
"""

from fastapi import APIRouter, Depends, Header, Query, Response, status

from src.api.dependencies import (
    get_client_ip,
    get_registration_service,
    get_session_token,
    get_verification_service,
)
from src.api.models import (
    CsrfTokenResponse,
    EmailAvailabilityResponse,
    ErrorResponse,
    RegisterRequest,
    RegisterResponse,
    VerifyEmailResponse,
)
from src.domain.exceptions import FieldError, ValidationFailed
from src.domain.ports import VerifyResult
from src.domain.registration import RegistrationRequest, RegistrationService
from src.domain.verification import EmailVerificationService

router = APIRouter(tags=["registration"])

_INFRASTRUCTURE_ERROR = {"model": ErrorResponse, "description": "Cache or database unavailable"}


@router.get(
    "/csrf-token",
    response_model=CsrfTokenResponse,
    responses={500: _INFRASTRUCTURE_ERROR},
    summary="Issue a CSRF token",
    description="Issue a token bound to the requester IP, valid for five minutes. "
    "It must be sent as the x-csrf-token header when registering.",
)
def issue_csrf_token(
    response: Response,
    client_ip: str = Depends(get_client_ip),
    service: RegistrationService = Depends(get_registration_service),
) -> CsrfTokenResponse:
    """Issue a CSRF token for the calling IP."""
    token = service.issue_csrf_token(client_ip)
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return CsrfTokenResponse(token=token)


@router.get(
    "/users/check-email",
    response_model=EmailAvailabilityResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Email parameter missing"},
        429: {"model": ErrorResponse, "description": "Rate limited"},
        500: _INFRASTRUCTURE_ERROR,
    },
    summary="Check email availability",
    description="Lookups count against the same per-IP request limit as registration.",
)
def check_email(
    email: str | None = Query(default=None),
    client_ip: str = Depends(get_client_ip),
    service: RegistrationService = Depends(get_registration_service),
) -> EmailAvailabilityResponse:
    """Report whether an email address can still be registered."""
    if not email or not email.strip():
        raise ValidationFailed([FieldError("email", "Email is required")])
    available = service.check_email_available(email, client_ip)
    return EmailAvailabilityResponse(
        available=available,
        message="Email is available" if available else "Email already exists",
    )


@router.post(
    "/users",
    response_model=RegisterResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Validation, weak password or CAPTCHA failure"},
        401: {"model": ErrorResponse, "description": "Invalid bearer token"},
        403: {"model": ErrorResponse, "description": "Missing or invalid CSRF token"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
        429: {"model": ErrorResponse, "description": "Rate limited or locked out"},
        500: _INFRASTRUCTURE_ERROR,
    },
    summary="Register a new account",
    description="Create an individual or business account. Requires the x-csrf-token "
    "header and a reCAPTCHA token. A verification link is emailed on success.",
)
def register(
    request_data: RegisterRequest,
    client_ip: str = Depends(get_client_ip),
    csrf_token: str | None = Header(default=None, alias="x-csrf-token"),
    session_token: str | None = Depends(get_session_token),
    service: RegistrationService = Depends(get_registration_service),
) -> RegisterResponse:
    """
    Register a new account.

    The body carries the form fields, the reCAPTCHA token and the optional
    enable2FA flag. Returns the new account id, access and refresh tokens,
    and the TOTP secret when 2FA was requested.
    """
    result = service.register(
        RegistrationRequest(
            client_ip=client_ip,
            payload=request_data.form_fields(),
            csrf_token=csrf_token,
            captcha_token=request_data.recaptcha_token,
            enable_two_factor=request_data.enable_2fa,
            session_token=session_token,
        )
    )
    return RegisterResponse(
        message="User registered successfully",
        user_id=result.account_id,
        jwt_token=result.access_token,
        refresh_token=result.refresh_token,
        two_factor_secret=result.two_factor_secret,
        two_factor_uri=result.two_factor_uri,
        warnings=result.warnings or None,
    )


@router.get(
    "/users/verify-email",
    response_model=VerifyEmailResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired token"},
        500: _INFRASTRUCTURE_ERROR,
    },
    summary="Verify an email address",
    description="Confirm an email address using the token from the verification link. "
    "Accounts enrolled in 2FA must also pass a current one-time code.",
)
def verify_email(
    token: str | None = Query(default=None),
    two_fa_token: str | None = Query(default=None, alias="twoFAToken"),
    service: EmailVerificationService = Depends(get_verification_service),
) -> VerifyEmailResponse:
    """Verify an email address; repeating a successful call is a no-op."""
    result = service.verify(token, two_fa_token)
    if result == VerifyResult.ALREADY_VERIFIED:
        return VerifyEmailResponse(message="Email already verified")
    return VerifyEmailResponse(message="Email verified successfully")
