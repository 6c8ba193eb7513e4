"""
Registration payload validation.

Validates and normalizes a raw registration payload (camelCase wire keys)
into an ``AccountInput`` variant. Every failing field is reported in one
pass; validation never stops at the first error.

Rules
=====

Shared fields:
- email: required, syntactically valid, not a disposable domain,
  top-level domain on the allow list; stored lower-cased
- firstName / lastName: required, non-blank
- password: at least 8 characters and at most 72 UTF-8 bytes, with an
  uppercase letter, a digit and a symbol from PASSWORD_SYMBOLS
- confirmPassword: must equal password exactly
- accountType: "individual" or "business"

Business accounts: businessName and registrationNumber required,
businessDocument optional.

Individual accounts: phoneNumber must be a UK mobile (07 + 9 digits,
+44/44 prefixes normalized first); dateOfBirth must give an age between
18 and 100 with a birth year in [current year - 100, current year].
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from email_validator import EmailNotValidError, validate_email

from .accounts import AccountInput, AccountType, BusinessAccountInput, IndividualAccountInput
from .exceptions import FieldError

DISPOSABLE_EMAIL_DOMAINS = frozenset(
    {
        "mailinator.com",
        "tempmail.com",
        "10minutemail.com",
        "guerrillamail.com",
        "throwawaymail.com",
        "yopmail.com",
        "dispostable.com",
        "getairmail.com",
        "trashmail.com",
        "maildrop.cc",
    }
)
ALLOWED_TLD_PATTERN = re.compile(r"\.(com|org|net|edu|gov|co|uk|ca|au|in|io|me|xyz|info)$", re.IGNORECASE)

PASSWORD_MIN_LENGTH = 8
# bcrypt only accepts secrets up to this many bytes.
PASSWORD_MAX_BYTES = 72
PASSWORD_SYMBOLS = '!@#$%^&*(),.?":{}|<>'

UK_MOBILE_PATTERN = re.compile(r"^07\d{9}$")
_PHONE_SEPARATORS = re.compile(r"[\s\-().]")

MIN_AGE = 18
MAX_AGE = 100

# Secrets are compared byte-for-byte and never trimmed.
_UNTRIMMED_FIELDS = frozenset({"password", "confirmPassword"})


@dataclass(frozen=True)
class PasswordStrength:
    """Outcome of the password strength predicate."""

    has_min_length: bool
    has_upper_case: bool
    has_number: bool
    has_special_char: bool
    avoids_personal_info: bool = True
    hints: list[str] = field(default_factory=list)

    @property
    def is_strong(self) -> bool:
        return not self.hints


def check_password_strength(password: str, user_inputs: Iterable[str] = ()) -> PasswordStrength:
    """
    Evaluate a password and collect remediation hints.

    ``user_inputs`` are values the password must not contain, such as the
    email local part or the account holder's names. Inputs shorter than
    three characters are ignored.
    """
    has_min_length = len(password) >= PASSWORD_MIN_LENGTH
    has_upper_case = any(ch.isupper() for ch in password)
    has_number = any(ch.isdigit() for ch in password)
    has_special_char = any(ch in PASSWORD_SYMBOLS for ch in password)

    lowered = password.lower()
    avoids_personal_info = not any(
        len(value) >= 3 and value.lower() in lowered for value in user_inputs if value
    )

    hints = []
    if not has_min_length:
        hints.append(f"Use at least {PASSWORD_MIN_LENGTH} characters")
    if not has_upper_case:
        hints.append("Add an uppercase letter")
    if not has_number:
        hints.append("Add a number")
    if not has_special_char:
        hints.append(f"Add a special character ({PASSWORD_SYMBOLS})")
    if not avoids_personal_info:
        hints.append("Avoid using your name or email address in the password")

    return PasswordStrength(
        has_min_length=has_min_length,
        has_upper_case=has_upper_case,
        has_number=has_number,
        has_special_char=has_special_char,
        avoids_personal_info=avoids_personal_info,
        hints=hints,
    )


def normalize_phone_number(phone: str) -> str:
    """Strip separators and rewrite +44/44-prefixed numbers to the 07... form."""
    cleaned = _PHONE_SEPARATORS.sub("", phone)
    if cleaned.startswith("+44"):
        return "0" + cleaned[3:]
    if cleaned.startswith("44") and len(cleaned) == 12:
        return "0" + cleaned[2:]
    return cleaned


def parse_date_of_birth(value: str) -> date | None:
    """Parse an ISO date (or ISO datetime) string; None when unparseable."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def age_on(born: date, today: date) -> int:
    """Whole years between born and today, adjusted for this year's birthday."""
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def validate_email_address(email: str) -> str | None:
    """Return an error message for an unacceptable email, or None."""
    if not email:
        return "Email is required"
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return "Invalid email format"

    domain = email.rsplit("@", 1)[1].lower()
    if domain in DISPOSABLE_EMAIL_DOMAINS:
        return "Disposable email addresses are not allowed"
    if not ALLOWED_TLD_PATTERN.search(domain):
        return "Email domain is not supported"
    return None


def validate_phone_number(phone: str) -> tuple[str, str | None]:
    """Return (normalized number, error message or None)."""
    if not phone:
        return phone, "Phone number is required"
    normalized = normalize_phone_number(phone)
    if not UK_MOBILE_PATTERN.match(normalized):
        return normalized, "Enter a valid UK mobile number (07xxxxxxxxx)"
    return normalized, None


def validate_date_of_birth(value: str, today: date) -> tuple[date | None, str | None]:
    """Return (parsed date, error message or None)."""
    if not value:
        return None, "Date of birth is required"
    born = parse_date_of_birth(value)
    if born is None:
        return None, "Invalid date format"

    age = age_on(born, today)
    if age < MIN_AGE:
        return born, f"Must be at least {MIN_AGE} years old"
    if age > MAX_AGE:
        return born, f"Cannot be older than {MAX_AGE} years"

    min_year = today.year - MAX_AGE
    if not min_year <= born.year <= today.year:
        return born, f"Year must be between {min_year} and {today.year}"
    return born, None


def _text(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    return value if key in _UNTRIMMED_FIELDS else value.strip()


def validate_registration(
    raw: Mapping[str, Any], today: date | None = None
) -> AccountInput | list[FieldError]:
    """
    Validate a raw registration payload.

    Args:
        raw: Decoded JSON body with camelCase keys; unknown keys are ignored
        today: Reference date for age checks (defaults to date.today())

    Returns:
        An IndividualAccountInput or BusinessAccountInput on success,
        otherwise the list of every FieldError found.
    """
    today = today or date.today()
    errors: list[FieldError] = []

    email = _text(raw, "email").lower()
    message = validate_email_address(email)
    if message:
        errors.append(FieldError("email", message))

    first_name = _text(raw, "firstName")
    if not first_name:
        errors.append(FieldError("firstName", "First name is required"))
    last_name = _text(raw, "lastName")
    if not last_name:
        errors.append(FieldError("lastName", "Last name is required"))

    password = _text(raw, "password")
    if not password:
        errors.append(FieldError("password", "Password is required"))
    else:
        strength = check_password_strength(password)
        if not strength.has_min_length:
            errors.append(
                FieldError("password", f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
            )
        if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
            errors.append(FieldError("password", f"Password must be at most {PASSWORD_MAX_BYTES} bytes"))
        if not strength.has_upper_case:
            errors.append(FieldError("password", "Must contain an uppercase letter"))
        if not strength.has_number:
            errors.append(FieldError("password", "Must contain a number"))
        if not strength.has_special_char:
            errors.append(FieldError("password", "Must contain a special character"))

    confirm_password = _text(raw, "confirmPassword")
    if not confirm_password:
        errors.append(FieldError("confirmPassword", "Please confirm your password"))
    elif confirm_password != password:
        errors.append(FieldError("confirmPassword", "Passwords do not match"))

    account_type = _text(raw, "accountType")
    if not account_type:
        errors.append(FieldError("accountType", "Account type is required"))
    elif account_type not in {t.value for t in AccountType}:
        errors.append(FieldError("accountType", "Account type must be individual or business"))

    if account_type == AccountType.BUSINESS.value:
        business_name = _text(raw, "businessName")
        if not business_name:
            errors.append(FieldError("businessName", "Business name is required"))
        registration_number = _text(raw, "registrationNumber")
        if not registration_number:
            errors.append(FieldError("registrationNumber", "Registration number is required"))
        business_document = _text(raw, "businessDocument") or None

        if errors:
            return errors
        return BusinessAccountInput(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password=password,
            business_name=business_name,
            registration_number=registration_number,
            business_document=business_document,
        )

    if account_type == AccountType.INDIVIDUAL.value:
        phone_number, message = validate_phone_number(_text(raw, "phoneNumber"))
        if message:
            errors.append(FieldError("phoneNumber", message))
        date_of_birth, message = validate_date_of_birth(_text(raw, "dateOfBirth"), today)
        if message:
            errors.append(FieldError("dateOfBirth", message))

        if errors:
            return errors
        return IndividualAccountInput(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password=password,
            phone_number=phone_number,
            date_of_birth=date_of_birth,
        )

    return errors
