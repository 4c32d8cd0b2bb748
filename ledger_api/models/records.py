"""
Pydantic models for ledger records and write payloads.

Records are owned by the record store; the cache only ever holds their
JSON form produced by ``Record.public()``. Field names are snake_case in
Python and camelCase on the wire.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model accepting both snake_case and camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    CLOSED = "CLOSED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    ONLINE = "ONLINE"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class ActivityType(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    OTHER = "OTHER"


class Address(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip: Optional[str] = None


class Record(CamelModel):
    """
    Fields shared by every stored record.

    Attributes:
        id: Store-assigned identifier
        created_by: Requester that created the record (tenant scope)
        created_at: Creation time (UTC)
        updated_at: Last write time (UTC)
    """

    id: str = Field(default_factory=new_id)
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def public(self) -> Dict[str, Any]:
        """JSON-ready camelCase representation returned to clients and cached."""
        return self.model_dump(mode="json", by_alias=True, exclude={"is_deleted"})


class Account(Record):
    name: str
    email: str
    phone: str
    address: Address = Field(default_factory=Address)
    balance: float = 0
    status: AccountStatus = AccountStatus.ACTIVE
    is_deleted: bool = False

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class Payment(Record):
    account_id: str
    amount: float = Field(..., ge=0)
    method: PaymentMethod = PaymentMethod.CASH
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: Optional[str] = None
    paid_at: datetime = Field(default_factory=utcnow)


class Activity(Record):
    account_id: str
    type: ActivityType
    message: str
    timestamp: datetime = Field(default_factory=utcnow)


class AccountCreate(CamelModel):
    """Payload for creating an account."""

    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    phone: str = Field(..., pattern=r"^[0-9]{8,15}$")
    address: Optional[Address] = None
    balance: float = Field(0, ge=0)


class AccountUpdate(CamelModel):
    """
    Partial account update.

    Only name, phone, address, status and balance may change; any other
    field (email included) is rejected.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{8,15}$")
    address: Optional[Address] = None
    status: Optional[AccountStatus] = None
    balance: Optional[float] = Field(None, ge=0)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class PaymentCreate(CamelModel):
    amount: float = Field(..., gt=0)
    method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = None


class PaymentStatusUpdate(CamelModel):
    status: PaymentStatus


class ActivityCreate(CamelModel):
    type: ActivityType
    message: str = Field(..., min_length=1)

    @field_validator("type", mode="before")
    @classmethod
    def upper_type(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class BulkLookup(CamelModel):
    """Body of the bulk payment/activity lookups."""

    account_ids: List[str] = Field(..., min_length=1)
