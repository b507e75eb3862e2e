"""
Marketplace Schema - Roles, Documents and Partial-Update Payloads

Documents are denormalised JSON records. Field names on the wire are
camelCase and declared once per field with json_field(); unknown keys in
an incoming document are kept in ``extra`` and written back on update so a
re-serialised document never drops data it did not understand.

All integer fields are monetary amounts and must be non-negative.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Optional, TypeVar, Union

from core.errors import InvalidInputError, SerializationError
from core.ledger.codec import decode_json_object, encode_json
from core.ledger.keys import EntityKind


R = TypeVar("R", bound="JsonRecord")


# =============================================================================
# Roles
# =============================================================================


class Role(Enum):
    """Caller affiliation. Values are the numeric codes used by CreateUser."""

    BUYER = 1
    SELLER = 2
    BANK = 3
    APPRAISER = 4
    AUDITOR = 5

    @classmethod
    def from_code(cls, code: Union[int, str]) -> "Role":
        """
        Parse a role code.

        Raises:
            InvalidInputError: If the code is not an integer in 1..5
        """
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            raise InvalidInputError(f"Invalid affiliation: {code!r}") from None

    @property
    def entity_kind(self) -> EntityKind:
        """Ledger kind of this role's party record."""
        return _ROLE_KINDS[self]

    @property
    def label(self) -> str:
        return self.name.title()


_ROLE_KINDS: dict[Role, EntityKind] = {
    Role.BUYER: EntityKind.BUYER,
    Role.SELLER: EntityKind.SELLER,
    Role.BANK: EntityKind.BANK,
    Role.APPRAISER: EntityKind.APPRAISER,
    Role.AUDITOR: EntityKind.AUDITOR,
}


# =============================================================================
# JSON Record Base
# =============================================================================


def json_field(name: str, default: Any = "", record: Optional[type] = None) -> Any:
    """
    Declare a dataclass field stored under a JSON key.

    Args:
        name: JSON key
        default: "" for text fields, 0 for amounts
        record: Nested JsonRecord type, for embedded sub-records
    """
    if record is not None:
        return field(default_factory=record, metadata={"json": name, "record": record})
    return field(default=default, metadata={"json": name})


def _coerce_amount(owner: str, name: str, raw: Any) -> int:
    if isinstance(raw, bool):
        raise SerializationError(f"{owner}.{name} must be a number")
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    if not isinstance(raw, int):
        raise SerializationError(f"{owner}.{name} must be an integer")
    if raw < 0:
        raise InvalidInputError(f"{owner}.{name} must not be negative")
    return raw


@dataclass
class JsonRecord:
    """Base for records stored as JSON objects."""

    extra: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls: type[R], data: dict[str, Any]) -> R:
        """
        Build a record from a parsed JSON object.

        Missing or null keys take the field default.

        Raises:
            SerializationError: If a value has the wrong JSON type
            InvalidInputError: If an amount is negative
        """
        values: dict[str, Any] = {}
        known: set[str] = set()

        for f in fields(cls):
            name = f.metadata.get("json")
            if name is None:
                continue
            known.add(name)

            raw = data.get(name)
            if raw is None:
                continue

            record = f.metadata.get("record")
            if record is not None:
                if not isinstance(raw, dict):
                    raise SerializationError(f"{cls.__name__}.{name} must be an object")
                values[f.name] = record.from_dict(raw)
            elif isinstance(f.default, int):
                values[f.name] = _coerce_amount(cls.__name__, name, raw)
            elif isinstance(raw, str):
                values[f.name] = raw
            else:
                raise SerializationError(f"{cls.__name__}.{name} must be a string")

        values["extra"] = {k: v for k, v in data.items() if k not in known}
        return cls(**values)

    @classmethod
    def from_json(cls: type[R], payload: Union[bytes, str]) -> R:
        """Parse a record from JSON text or bytes."""
        return cls.from_dict(decode_json_object(payload, what=cls.__name__))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dict, unknown keys last."""
        result: dict[str, Any] = {}
        for f in fields(self):
            name = f.metadata.get("json")
            if name is None:
                continue
            value = getattr(self, f.name)
            result[name] = value.to_dict() if isinstance(value, JsonRecord) else value

        for key, value in self.extra.items():
            result.setdefault(key, value)
        return result

    def to_json(self) -> bytes:
        return encode_json(self.to_dict())


# =============================================================================
# Reference Data
# =============================================================================


@dataclass
class Land(JsonRecord):
    """Land parcel. Reference data seeded at setup."""

    KIND: ClassVar[EntityKind] = EntityKind.LAND

    id: str = json_field("id")
    description: str = json_field("description")
    address: str = json_field("address")
    owner_id: str = json_field("ownerId")
    last_modified_date: str = json_field("lastModifiedDate")


@dataclass
class Property(JsonRecord):
    """Registered property built on a land parcel."""

    KIND: ClassVar[EntityKind] = EntityKind.PROPERTY

    id: str = json_field("id")
    land_id: str = json_field("landId")
    permit_id: str = json_field("permitId")
    description: str = json_field("description")
    address: str = json_field("address")
    owner_id: str = json_field("ownerId")
    registered_price: int = json_field("registeredPrice", 0)
    last_modified_date: str = json_field("lastModifiedDate")


@dataclass
class PropertyAd(JsonRecord):
    """Listing of a property for sale."""

    KIND: ClassVar[EntityKind] = EntityKind.PROPERTY_AD

    id: str = json_field("id")
    land_id: str = json_field("landId")
    permit_id: str = json_field("permitId")
    property_id: str = json_field("propertyId")
    description: str = json_field("description")
    address: str = json_field("address")
    seller_id: str = json_field("sellerId")
    bank_id: str = json_field("bankId")
    listed_price: int = json_field("listedPrice", 0)
    last_modified_date: str = json_field("lastModifiedDate")


# =============================================================================
# Workflow Documents
# =============================================================================


@dataclass
class PersonalInfo(JsonRecord):
    firstname: str = json_field("firstname")
    lastname: str = json_field("lastname")
    dob: str = json_field("dob")
    phone: str = json_field("phone")
    mobile: str = json_field("mobile")
    email: str = json_field("email")


@dataclass
class FinancialInfo(JsonRecord):
    monthly_salary: int = json_field("monthlySalary", 0)
    other_income: int = json_field("otherIncome", 0)
    other_expenditure: int = json_field("otherExpenditure", 0)
    monthly_rent: int = json_field("monthlyRent", 0)
    monthly_loan_payment: int = json_field("monthlyLoanPayment", 0)


@dataclass
class MortgageApplication(JsonRecord):
    """
    Mortgage application submitted by a buyer and reviewed by a bank.

    ``reviewer_id`` is the reviewing bank. ``fair_market_value`` is filled
    in by the appraiser through the linked appraiser application.
    """

    KIND: ClassVar[EntityKind] = EntityKind.MORTGAGE_APPLICATION

    id: str = json_field("id")
    property_id: str = json_field("propertyId")
    land_id: str = json_field("landId")
    permit_id: str = json_field("permitId")
    buyer_id: str = json_field("buyerId")
    appraiser_application_id: str = json_field("appraiserApplicationId")
    sales_contract_id: str = json_field("salesContractId")
    personal_info: PersonalInfo = json_field("personalInfo", record=PersonalInfo)
    financial_info: FinancialInfo = json_field("financialInfo", record=FinancialInfo)
    status: str = json_field("status")
    requested_amount: int = json_field("requestedAmount", 0)
    fair_market_value: int = json_field("fairMarketValue", 0)
    approved_amount: int = json_field("approvedAmount", 0)
    reviewer_id: str = json_field("reviewerId")
    last_modified_date: str = json_field("lastModifiedDate")


@dataclass
class SalesContract(JsonRecord):
    """Sales contract between a buyer and a seller, reviewed by a bank."""

    KIND: ClassVar[EntityKind] = EntityKind.SALES_CONTRACT

    id: str = json_field("id")
    property_id: str = json_field("propertyId")
    buyer_id: str = json_field("buyerId")
    seller_id: str = json_field("sellerId")
    reviewer_id: str = json_field("reviewerId")
    buyer_signature: str = json_field("buyerSignature")
    seller_signature: str = json_field("sellerSignature")
    status: str = json_field("status")
    price: int = json_field("price", 0)
    last_modified_date: str = json_field("lastModifiedDate")


@dataclass
class AppraiserApplication(JsonRecord):
    """Appraisal request raised by a bank for a mortgage application."""

    KIND: ClassVar[EntityKind] = EntityKind.APPRAISER_APPLICATION

    id: str = json_field("id")
    mortgage_application_id: str = json_field("mortgageApplicationId")
    appraiser_id: str = json_field("appraiserId")
    reviewer_id: str = json_field("reviewerId")
    property_id: str = json_field("propertyId")
    status: str = json_field("status")
    fair_market_value: int = json_field("fairMarketValue", 0)
    last_modified_date: str = json_field("lastModifiedDate")


# =============================================================================
# Partial Updates
# =============================================================================


@dataclass
class PartialUpdate(JsonRecord):
    """
    Partial-update payload.

    Only the fields a caller wants to change are present. Text is stripped;
    an empty string or a zero amount means "not present", so these payloads
    cannot reset a field to empty or zero.
    """

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, str):
                setattr(self, f.name, value.strip())


@dataclass
class MortgageApplicationUpdate(PartialUpdate):
    status: str = json_field("status")
    sales_contract_id: str = json_field("salesContractId")
    fair_market_value: int = json_field("fairMarketValue", 0)
    approved_amount: int = json_field("approvedAmount", 0)


@dataclass
class AppraiserApplicationUpdate(PartialUpdate):
    status: str = json_field("status")
    fair_market_value: int = json_field("fairMarketValue", 0)


@dataclass
class SalesContractUpdate(PartialUpdate):
    status: str = json_field("status")
    buyer_signature: str = json_field("buyerSignature")
    seller_signature: str = json_field("sellerSignature")
    price: int = json_field("price", 0)
