"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Wire names are camelCase; Python attributes are snake_case.

Registration fields are deliberately loose (optional strings) so that the
domain validator can report every failing field in one 400 response
instead of FastAPI rejecting the first malformed one. Numeric values are
read as text; anything else that is not a string (lists, objects) is
rejected by FastAPI and rendered as a 400 by src.api.errors.
"""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _scalar_as_text(value: Any) -> Any:
    # Numbers (e.g. an unquoted phone number) reach the domain validator as text.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


FormText = Annotated[str | None, BeforeValidator(_scalar_as_text)]


class RegisterRequest(BaseModel):
    """Request model for account registration."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: FormText = None
    first_name: FormText = Field(default=None, alias="firstName")
    last_name: FormText = Field(default=None, alias="lastName")
    password: FormText = None
    confirm_password: FormText = Field(default=None, alias="confirmPassword")
    account_type: FormText = Field(
        default=None, alias="accountType", description="individual or business"
    )
    business_name: FormText = Field(default=None, alias="businessName")
    registration_number: FormText = Field(default=None, alias="registrationNumber")
    business_document: FormText = Field(
        default=None,
        alias="businessDocument",
        description="Reference to a document uploaded separately",
    )
    phone_number: FormText = Field(
        default=None, alias="phoneNumber", description="UK mobile, 07xxxxxxxxx or +447xxxxxxxxx"
    )
    date_of_birth: FormText = Field(default=None, alias="dateOfBirth", description="YYYY-MM-DD")
    recaptcha_token: FormText = Field(default=None, alias="recaptchaToken")
    enable_2fa: bool = Field(default=False, alias="enable2FA")

    def form_fields(self) -> dict[str, str | None]:
        """Return the account form fields keyed by their wire names."""
        return self.model_dump(by_alias=True, exclude={"recaptcha_token", "enable_2fa"})


class RegisterResponse(BaseModel):
    """Response model for successful registration."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    user_id: str = Field(alias="userId")
    jwt_token: str | None = Field(default=None, alias="jwtToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")
    two_factor_secret: str | None = Field(default=None, alias="twoFactorSecret")
    two_factor_uri: str | None = Field(default=None, alias="twoFactorUri")
    warnings: list[str] | None = None


class CsrfTokenResponse(BaseModel):
    """Response model carrying a freshly issued CSRF token."""

    token: str


class EmailAvailabilityResponse(BaseModel):
    """Response model for the email availability check."""

    available: bool
    message: str


class VerifyEmailResponse(BaseModel):
    """Response model for successful email verification."""

    message: str


class FieldErrorModel(BaseModel):
    """A single failing field."""

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    kind: str
    message: str
    errors: list[FieldErrorModel] | None = None
    hints: list[str] | None = None
