"""
Account model - persisted identity records and validated registration input.

Registration input is a tagged union: ``IndividualAccountInput`` carries
personal fields, ``BusinessAccountInput`` carries business fields, and both
share the identity fields. The non-applicable branch simply does not exist on
a variant; ``record_fields()`` projects it to ``None`` for storage.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import ClassVar, Union


class AccountType(str, Enum):
    """Kind of marketplace account; selects the conditional field branch."""

    INDIVIDUAL = "individual"
    BUSINESS = "business"


@dataclass(frozen=True)
class IndividualAccountInput:
    """Validated input for a customer account."""

    account_type: ClassVar[AccountType] = AccountType.INDIVIDUAL

    email: str
    first_name: str
    last_name: str
    password: str = field(repr=False)
    phone_number: str
    date_of_birth: date

    def record_fields(self) -> dict[str, object]:
        return {
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "account_type": self.account_type,
            "business_name": None,
            "registration_number": None,
            "business_document_url": None,
            "phone_number": self.phone_number,
            "date_of_birth": self.date_of_birth,
        }


@dataclass(frozen=True)
class BusinessAccountInput:
    """Validated input for a business (farmer) account."""

    account_type: ClassVar[AccountType] = AccountType.BUSINESS

    email: str
    first_name: str
    last_name: str
    password: str = field(repr=False)
    business_name: str
    registration_number: str
    business_document: str | None = None

    def record_fields(self) -> dict[str, object]:
        return {
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "account_type": self.account_type,
            "business_name": self.business_name,
            "registration_number": self.registration_number,
            "business_document_url": self.business_document,
            "phone_number": None,
            "date_of_birth": None,
        }


AccountInput = Union[IndividualAccountInput, BusinessAccountInput]


@dataclass(frozen=True)
class NewAccount:
    """Row to insert: validated input plus server-generated identity."""

    account_id: str
    password_hash: str = field(repr=False)
    details: AccountInput

    @property
    def email(self) -> str:
        return self.details.email


@dataclass
class Account:
    """Persisted account record."""

    account_id: str
    email: str
    first_name: str
    last_name: str
    password_hash: str = field(repr=False)
    account_type: AccountType
    business_name: str | None = None
    registration_number: str | None = None
    business_document_url: str | None = None
    phone_number: str | None = None
    date_of_birth: date | None = None
    email_verified: bool = False
    two_factor_secret: str | None = field(default=None, repr=False)
    two_factor_enabled: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
