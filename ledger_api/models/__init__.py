"""Record models and response envelopes."""

from ledger_api.models.records import (
    Account,
    AccountCreate,
    AccountStatus,
    AccountUpdate,
    Activity,
    ActivityCreate,
    ActivityType,
    Address,
    BulkLookup,
    Payment,
    PaymentCreate,
    PaymentMethod,
    PaymentStatus,
    PaymentStatusUpdate,
    Record,
)
from ledger_api.models.responses import (
    ErrorResponse,
    HealthCheckResponse,
    MessageEnvelope,
    PageEnvelope,
    RecordEnvelope,
)

__all__ = [
    # Records
    "Record",
    "Account",
    "Address",
    "AccountStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Activity",
    "ActivityType",
    # Write payloads
    "AccountCreate",
    "AccountUpdate",
    "PaymentCreate",
    "PaymentStatusUpdate",
    "ActivityCreate",
    "BulkLookup",
    # Envelopes
    "RecordEnvelope",
    "PageEnvelope",
    "MessageEnvelope",
    "ErrorResponse",
    "HealthCheckResponse",
]
