"""Domain event types for invoice and payment operations.

All events are:
- Immutable (frozen dataclasses)
- Emitted only after the state change they describe has been persisted
- Serializable for outbound delivery (to_dict/to_json)
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    INVOICE = "invoice"
    PAYMENT = "payment"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: UUID
    actor_id: str | None
    source_service: str = "ledger_engine"
    version: int = 1

    @classmethod
    def create(
        cls,
        actor_id: str | None = None,
        correlation_id: UUID | None = None,
        timestamp: datetime | None = None,
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=timestamp or datetime.now(timezone.utc),
            correlation_id=correlation_id or uuid4(),
            actor_id=actor_id,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        data = _serialize(asdict(self))
        data["event_type"] = self.event_type
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


def _serialize(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(v) for v in obj]
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    return obj


# =============================================================================
# Invoice Events
# =============================================================================


@dataclass(frozen=True)
class InvoiceCreated(DomainEvent):
    invoice_id: UUID
    invoice_number: str
    client_id: UUID
    total_amount: Decimal
    currency: str
    status: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.INVOICE


@dataclass(frozen=True)
class InvoiceUpdated(DomainEvent):
    invoice_id: UUID
    total_amount: Decimal
    currency: str
    status: str
    version: int

    @property
    def category(self) -> EventCategory:
        return EventCategory.INVOICE


@dataclass(frozen=True)
class InvoiceFinalized(DomainEvent):
    invoice_id: UUID
    invoice_number: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.INVOICE


@dataclass(frozen=True)
class InvoiceCancelled(DomainEvent):
    invoice_id: UUID
    invoice_number: str
    previous_status: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.INVOICE


@dataclass(frozen=True)
class InvoiceDeleted(DomainEvent):
    invoice_id: UUID
    invoice_number: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.INVOICE


# =============================================================================
# Payment Events
# =============================================================================


@dataclass(frozen=True)
class PaymentApplied(DomainEvent):
    """A payment was reconciled against an invoice and committed."""

    invoice_id: UUID
    invoice_number: str
    client_id: UUID
    payment_id: UUID
    amount: Decimal
    currency: str
    method: str
    reference: str | None
    new_status: str
    balance_due: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT
