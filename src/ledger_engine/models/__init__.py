"""SQLAlchemy ORM models."""

from ledger_engine.models.base import Base, TimestampMixin
from ledger_engine.models.directory import ClientRow, ProjectRow
from ledger_engine.models.invoice import (
    InvoiceItemRow,
    InvoicePaymentRow,
    InvoiceRow,
    LedgerTransactionRow,
)

__all__ = [
    "Base",
    "ClientRow",
    "InvoiceItemRow",
    "InvoicePaymentRow",
    "InvoiceRow",
    "LedgerTransactionRow",
    "ProjectRow",
    "TimestampMixin",
]
