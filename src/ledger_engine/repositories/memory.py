"""In-process repositories for tests and embedded use."""

from __future__ import annotations

import threading
from datetime import date
from typing import Iterable
from uuid import UUID

from ledger_engine.domain.invoice import Invoice
from ledger_engine.errors import ConcurrentModificationError, DuplicateInvoiceNumberError
from ledger_engine.events.ledger import LedgerTransaction
from ledger_engine.repositories.base import SORT_FIELDS, InvoiceFilters, Page, Pagination


class _InMemoryDirectory:
    def __init__(self, ids: Iterable[UUID] = ()) -> None:
        self._ids = set(ids)

    def register(self, entity_id: UUID) -> None:
        self._ids.add(entity_id)

    def exists(self, entity_id: UUID) -> bool:
        return entity_id in self._ids


class InMemoryClientRepository(_InMemoryDirectory):
    """Known client ids."""


class InMemoryProjectRepository(_InMemoryDirectory):
    """Known project ids."""


class InMemoryInvoiceRepository:
    """Dict-backed invoice store with version checks.

    Stored aggregates are never handed out directly; ``get`` returns a copy
    and ``add``/``save`` store one.
    """

    def __init__(self) -> None:
        self._rows: dict[UUID, Invoice] = {}
        self._numbers: dict[str, UUID] = {}
        self._mutex = threading.RLock()

    def get(self, invoice_id: UUID) -> Invoice | None:
        with self._mutex:
            stored = self._rows.get(invoice_id)
            return stored.copy() if stored else None

    def add(self, invoice: Invoice) -> None:
        invoice.check_invariants()
        with self._mutex:
            if invoice.invoice_number in self._numbers:
                raise DuplicateInvoiceNumberError(invoice.invoice_number)
            invoice.version = 1
            self._rows[invoice.invoice_id] = invoice.copy()
            self._numbers[invoice.invoice_number] = invoice.invoice_id

    def save(self, invoice: Invoice) -> None:
        invoice.check_invariants()
        with self._mutex:
            stored = self._rows.get(invoice.invoice_id)
            if stored is None or stored.version != invoice.version:
                raise ConcurrentModificationError(invoice.invoice_id, invoice.version)
            invoice.version += 1
            self._rows[invoice.invoice_id] = invoice.copy()

    def delete(self, invoice: Invoice) -> None:
        with self._mutex:
            stored = self._rows.get(invoice.invoice_id)
            if stored is None or stored.version != invoice.version:
                raise ConcurrentModificationError(invoice.invoice_id, invoice.version)
            del self._rows[invoice.invoice_id]
            del self._numbers[stored.invoice_number]

    def find(self, filters: InvoiceFilters, today: date) -> list[Invoice]:
        with self._mutex:
            return [inv.copy() for inv in self._rows.values() if filters.matches(inv, today)]

    def list(self, filters: InvoiceFilters, pagination: Pagination, today: date) -> Page:
        matching = self.find(filters, today)
        key = SORT_FIELDS[pagination.sort_field]
        # invoice_id breaks ties so pages are stable
        matching.sort(key=lambda inv: str(inv.invoice_id))
        matching.sort(key=key, reverse=pagination.descending)
        start = pagination.offset
        return Page(
            items=matching[start:start + pagination.page_size],
            total_count=len(matching),
            page=pagination.page,
            page_size=pagination.page_size,
        )


class InMemoryLedgerSink:
    """Collects ledger transactions in memory."""

    def __init__(self) -> None:
        self._transactions: list[LedgerTransaction] = []
        self._mutex = threading.Lock()

    def record(self, transaction: LedgerTransaction) -> None:
        with self._mutex:
            self._transactions.append(transaction)

    @property
    def transactions(self) -> tuple[LedgerTransaction, ...]:
        with self._mutex:
            return tuple(self._transactions)
