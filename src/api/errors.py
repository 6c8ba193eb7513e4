"""
API error mapping - domain exceptions to HTTP responses.

Every error body has the shape of ErrorResponse: a machine-readable
``kind``, a human-readable ``message`` and, for validation failures, the
full list of failing fields. Infrastructure failures are logged with the
client IP only and answered with a generic message.

Bodies FastAPI cannot parse at all (malformed JSON, a field of a type that
cannot be read as text) are answered with the same 400 validation_error
shape instead of FastAPI's default 422.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.api.models import ErrorResponse, FieldErrorModel
from src.domain.exceptions import (
    AccountLocked,
    AuthTokenInvalid,
    CaptchaRejected,
    CsrfRejected,
    DuplicateEmail,
    InfrastructureUnavailable,
    InvalidOrExpiredToken,
    RateLimited,
    RegistrationError,
    ValidationFailed,
    WeakPassword,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[RegistrationError], int] = {
    ValidationFailed: status.HTTP_400_BAD_REQUEST,
    WeakPassword: status.HTTP_400_BAD_REQUEST,
    CaptchaRejected: status.HTTP_400_BAD_REQUEST,
    InvalidOrExpiredToken: status.HTTP_400_BAD_REQUEST,
    AuthTokenInvalid: status.HTTP_401_UNAUTHORIZED,
    CsrfRejected: status.HTTP_403_FORBIDDEN,
    DuplicateEmail: status.HTTP_409_CONFLICT,
    RateLimited: status.HTTP_429_TOO_MANY_REQUESTS,
    AccountLocked: status.HTTP_429_TOO_MANY_REQUESTS,
    InfrastructureUnavailable: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_status(exc: RegistrationError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return status.HTTP_400_BAD_REQUEST


async def registration_error_handler(request: Request, exc: RegistrationError) -> JSONResponse:
    """Render a domain exception as an ErrorResponse."""
    status_code = error_status(exc)
    body = ErrorResponse(kind=exc.kind, message=exc.message)

    if isinstance(exc, ValidationFailed):
        body.errors = [FieldErrorModel(field=e.field, message=e.message) for e in exc.errors]
    elif isinstance(exc, WeakPassword):
        body.hints = exc.hints
    elif isinstance(exc, InfrastructureUnavailable):
        logger.error(
            "Infrastructure failure path=%s ip=%s: %s",
            request.url.path,
            getattr(request.state, "client_ip", "unknown"),
            exc,
        )
        body.message = "Internal server error"

    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


_REQUEST_SOURCES = frozenset({"body", "query", "header", "path", "cookie"})


def _request_field(error: dict) -> str:
    loc = [str(part) for part in error.get("loc", ())]
    if loc and loc[0] in _REQUEST_SOURCES:
        loc = loc[1:]
    if error.get("type") == "json_invalid" or not loc:
        return "body"
    return ".".join(loc)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render a request FastAPI could not parse as a validation_error."""
    logger.info("Unparseable request path=%s errors=%d", request.url.path, len(exc.errors()))
    body = ErrorResponse(
        kind=ValidationFailed.kind,
        message=ValidationFailed.default_message,
        errors=[
            FieldErrorModel(field=_request_field(error), message=error.get("msg", "Invalid value"))
            for error in exc.errors()
        ],
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(exclude_none=True)
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain and request-parsing exception handlers on an application."""
    app.add_exception_handler(RegistrationError, registration_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
