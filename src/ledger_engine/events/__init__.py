"""Domain events emitted after invoice and payment state changes commit."""

from ledger_engine.events.emitter import EventEmitter, EventHandler
from ledger_engine.events.ledger import LedgerRecorder, LedgerTransaction
from ledger_engine.events.types import (
    DomainEvent,
    EventCategory,
    EventMetadata,
    InvoiceCancelled,
    InvoiceCreated,
    InvoiceDeleted,
    InvoiceFinalized,
    InvoiceUpdated,
    PaymentApplied,
)

__all__ = [
    "DomainEvent",
    "EventCategory",
    "EventEmitter",
    "EventHandler",
    "EventMetadata",
    "InvoiceCancelled",
    "InvoiceCreated",
    "InvoiceDeleted",
    "InvoiceFinalized",
    "InvoiceUpdated",
    "LedgerRecorder",
    "LedgerTransaction",
    "PaymentApplied",
]
