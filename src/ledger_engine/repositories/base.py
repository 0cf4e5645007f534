"""Repository contracts consumed by the engine, plus query value objects."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable
from uuid import UUID

from ledger_engine.domain.invoice import Invoice
from ledger_engine.domain.state_machine import InvoiceStatus
from ledger_engine.errors import ValidationError

if TYPE_CHECKING:
    from ledger_engine.events.ledger import LedgerTransaction


@runtime_checkable
class ClientRepository(Protocol):
    def exists(self, client_id: UUID) -> bool: ...


@runtime_checkable
class ProjectRepository(Protocol):
    def exists(self, project_id: UUID) -> bool: ...


@runtime_checkable
class LedgerSink(Protocol):
    """Fire-and-forget bookkeeping append."""

    def record(self, transaction: LedgerTransaction) -> None: ...


@dataclass(frozen=True)
class InvoiceFilters:
    """Listing filters. ``status`` matches the status as read on ``today``."""

    status: InvoiceStatus | None = None
    client_id: UUID | None = None
    start_date: date | None = None  # issue_date >= start_date
    end_date: date | None = None  # issue_date <= end_date
    min_amount: Decimal | None = None  # total_amount >= min_amount
    max_amount: Decimal | None = None
    search: str | None = None  # substring of invoice_number, case-insensitive
    currency: str | None = None
    statuses: frozenset[InvoiceStatus] = field(default_factory=frozenset)

    def matches(self, invoice: Invoice, today: date) -> bool:
        read_status = invoice.status_as_of(today)
        if self.status is not None and read_status != self.status:
            return False
        if self.statuses and read_status not in self.statuses:
            return False
        if self.client_id is not None and invoice.client_id != self.client_id:
            return False
        if self.start_date is not None and invoice.issue_date < self.start_date:
            return False
        if self.end_date is not None and invoice.issue_date > self.end_date:
            return False
        if self.min_amount is not None and invoice.total_amount.amount < self.min_amount:
            return False
        if self.max_amount is not None and invoice.total_amount.amount > self.max_amount:
            return False
        if self.search and self.search.lower() not in invoice.invoice_number.lower():
            return False
        if self.currency is not None and invoice.currency != self.currency:
            return False
        return True


SORT_FIELDS: dict[str, Callable[[Invoice], Any]] = {
    "created_at": lambda inv: inv.created_at,
    "updated_at": lambda inv: inv.updated_at,
    "issue_date": lambda inv: inv.issue_date,
    "due_date": lambda inv: inv.due_date,
    "invoice_number": lambda inv: inv.invoice_number,
    "total_amount": lambda inv: inv.total_amount.amount,
    "status": lambda inv: inv.status.value,
}

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    page_size: int = 20
    sort_field: str = "created_at"
    sort_direction: str = "desc"

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError("Page must be at least 1", field="page")
        if not (1 <= self.page_size <= MAX_PAGE_SIZE):
            raise ValidationError(
                f"Page size must be between 1 and {MAX_PAGE_SIZE}", field="page_size"
            )
        if self.sort_field not in SORT_FIELDS:
            raise ValidationError(
                f"Cannot sort by {self.sort_field!r}; choose one of {sorted(SORT_FIELDS)}",
                field="sort_field",
            )
        if self.sort_direction.lower() not in ("asc", "desc"):
            raise ValidationError(
                "Sort direction must be 'asc' or 'desc'", field="sort_direction"
            )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def descending(self) -> bool:
        return self.sort_direction.lower() == "desc"


@dataclass(frozen=True)
class Page:
    items: list[Invoice]
    total_count: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.total_count else 0


@runtime_checkable
class InvoiceRepository(Protocol):
    """Persistence for the invoice aggregate.

    Implementations hand out independent copies, refuse a ``save`` whose
    ``version`` is stale with ``ConcurrentModificationError`` and surface a
    duplicate invoice number on ``add`` as ``DuplicateInvoiceNumberError``.
    """

    def get(self, invoice_id: UUID) -> Invoice | None: ...

    def add(self, invoice: Invoice) -> None: ...

    def save(self, invoice: Invoice) -> None: ...

    def delete(self, invoice: Invoice) -> None: ...

    def find(self, filters: InvoiceFilters, today: date) -> list[Invoice]: ...

    def list(self, filters: InvoiceFilters, pagination: Pagination, today: date) -> Page: ...
