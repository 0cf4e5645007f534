"""Per-invoice serialization for read-check-write cycles."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator, TypeVar
from uuid import UUID

from ledger_engine.errors import ConcurrentModificationError, NotFoundError

if TYPE_CHECKING:
    from ledger_engine.domain.invoice import Invoice
    from ledger_engine.repositories.base import InvoiceRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class InvoiceLocks:
    """Process-local mutual exclusion keyed by invoice id.

    Locks for different invoices are independent. An entry is discarded once
    nobody holds or waits on it, so the table only grows with contention.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[UUID, _LockEntry] = {}

    @contextmanager
    def hold(self, invoice_id: UUID) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(invoice_id)
            if entry is None:
                entry = self._entries[invoice_id] = _LockEntry()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[invoice_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


def mutate_invoice(
    invoices: InvoiceRepository,
    locks: InvoiceLocks,
    invoice_id: UUID,
    mutate: Callable[[Invoice], T],
    attempts: int,
    commit: Callable[[Invoice], None] | None = None,
) -> tuple[Invoice, T]:
    """Load, mutate and commit one invoice under its lock.

    The lock covers writers in this process. The repository version check
    covers everyone else: on a stale version the invoice is reloaded and
    ``mutate`` runs again against fresh state, up to ``attempts`` times.
    Business-rule errors raised by ``mutate`` propagate immediately.
    """
    commit = commit or invoices.save
    with locks.hold(invoice_id):
        for attempt in range(1, attempts + 1):
            invoice = invoices.get(invoice_id)
            if invoice is None:
                raise NotFoundError("Invoice", invoice_id)
            result = mutate(invoice)
            try:
                commit(invoice)
            except ConcurrentModificationError:
                logger.warning(
                    "Invoice %s changed underneath us (attempt %d of %d)",
                    invoice_id,
                    attempt,
                    attempts,
                )
                if attempt == attempts:
                    raise
                continue
            return invoice, result
    raise AssertionError("unreachable")
