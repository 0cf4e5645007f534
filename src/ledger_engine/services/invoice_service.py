"""Invoice lifecycle service: create, read, update, cancel, finalize, delete."""

from __future__ import annotations

import logging
import random
from datetime import datetime
from uuid import UUID

from ledger_engine.clock import Clock, utcnow
from ledger_engine.config import EngineConfig
from ledger_engine.domain.invoice import (
    Invoice,
    InvoiceUpdatePatch,
    NewInvoice,
    generate_invoice_number,
)
from ledger_engine.errors import (
    DuplicateInvoiceNumberError,
    NotFoundError,
    ValidationError,
)
from ledger_engine.events.emitter import EventEmitter
from ledger_engine.events.types import (
    EventMetadata,
    InvoiceCancelled,
    InvoiceCreated,
    InvoiceDeleted,
    InvoiceFinalized,
    InvoiceUpdated,
)
from ledger_engine.money import validate_currency
from ledger_engine.repositories.base import (
    ClientRepository,
    InvoiceFilters,
    InvoiceRepository,
    Page,
    Pagination,
    ProjectRepository,
)
from ledger_engine.services.locking_service import InvoiceLocks, mutate_invoice

logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for invoice lifecycle operations.

    Every mutation goes through the aggregate's own methods, is committed
    under the per-invoice lock with a version check, and only then is the
    matching domain event emitted.
    """

    def __init__(
        self,
        invoices: InvoiceRepository,
        clients: ClientRepository,
        projects: ProjectRepository,
        emitter: EventEmitter,
        locks: InvoiceLocks,
        config: EngineConfig,
        clock: Clock = utcnow,
        rng: random.Random | None = None,
    ):
        self.invoices = invoices
        self.clients = clients
        self.projects = projects
        self.emitter = emitter
        self.locks = locks
        self.config = config
        self.clock = clock
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------ #
    # Create
    # ------------------------------------------------------------------ #

    def create(self, data: NewInvoice, actor_id: str | None = None) -> Invoice:
        """Create an invoice in draft or pending with an empty payment history.

        Raises:
            NotFoundError: If the client or project does not exist
            ValidationError: If the input is malformed or the number is taken
        """
        if not self.clients.exists(data.client_id):
            raise NotFoundError("Client", data.client_id)
        if data.project_id is not None and not self.projects.exists(data.project_id):
            raise NotFoundError("Project", data.project_id)

        currency = validate_currency(data.currency or self.config.default_currency)
        tax_rate = data.tax_rate if data.tax_rate is not None else self.config.default_tax_rate
        now = self.clock()

        invoice = Invoice.create(
            data,
            invoice_number=data.invoice_number or generate_invoice_number(now.date(), self._rng),
            currency=currency,
            tax_rate=tax_rate,
            created_by=actor_id,
            now=now,
        )

        if data.invoice_number:
            try:
                self.invoices.add(invoice)
            except DuplicateInvoiceNumberError:
                raise ValidationError(
                    f"Invoice number '{data.invoice_number}' already exists",
                    field="invoice_number",
                ) from None
        else:
            self._add_with_generated_number(invoice, now)

        logger.info(
            "Created invoice %s (%s) for client %s: %s",
            invoice.invoice_number,
            invoice.status.value,
            invoice.client_id,
            invoice.total_amount,
        )
        self.emitter.emit(
            InvoiceCreated(
                metadata=EventMetadata.create(actor_id=actor_id, timestamp=now),
                invoice_id=invoice.invoice_id,
                invoice_number=invoice.invoice_number,
                client_id=invoice.client_id,
                total_amount=invoice.total_amount.amount,
                currency=invoice.currency,
                status=invoice.status.value,
            )
        )
        return invoice

    def _add_with_generated_number(self, invoice: Invoice, now: datetime) -> None:
        attempts = self.config.invoice_number_attempts
        for attempt in range(1, attempts + 1):
            try:
                self.invoices.add(invoice)
                return
            except DuplicateInvoiceNumberError:
                logger.warning(
                    "Invoice number %s already taken (attempt %d of %d)",
                    invoice.invoice_number,
                    attempt,
                    attempts,
                )
                invoice.invoice_number = generate_invoice_number(now.date(), self._rng)
        raise ValidationError(
            f"Could not allocate a unique invoice number after {attempts} attempts",
            field="invoice_number",
        )

    # ------------------------------------------------------------------ #
    # Read
    # ------------------------------------------------------------------ #

    def get(self, invoice_id: UUID) -> Invoice:
        invoice = self.invoices.get(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def list(self, filters: InvoiceFilters, pagination: Pagination) -> Page:
        return self.invoices.list(filters, pagination, self.clock().date())

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def update(
        self, invoice_id: UUID, patch: InvoiceUpdatePatch, actor_id: str | None = None
    ) -> Invoice:
        """Apply a closed patch; item, discount or rate changes recompute totals.

        Raises:
            NotFoundError: If the invoice does not exist
            InvalidStateError: If the invoice is paid or cancelled
            ValidationError: If the patch is invalid or the new total would
                fall below the amount already paid
        """
        now = self.clock()
        invoice, _ = mutate_invoice(
            self.invoices,
            self.locks,
            invoice_id,
            lambda inv: inv.apply_patch(patch, now),
            self.config.payment_retry_attempts,
        )
        logger.info(
            "Updated invoice %s: total %s, status %s",
            invoice.invoice_number,
            invoice.total_amount,
            invoice.status.value,
        )
        self.emitter.emit(
            InvoiceUpdated(
                metadata=EventMetadata.create(actor_id=actor_id, timestamp=now),
                invoice_id=invoice.invoice_id,
                total_amount=invoice.total_amount.amount,
                currency=invoice.currency,
                status=invoice.status.value,
                version=invoice.version,
            )
        )
        return invoice

    def finalize(self, invoice_id: UUID, actor_id: str | None = None) -> Invoice:
        """Promote a draft to pending."""
        now = self.clock()
        invoice, _ = mutate_invoice(
            self.invoices,
            self.locks,
            invoice_id,
            lambda inv: inv.finalize(now),
            self.config.payment_retry_attempts,
        )
        logger.info("Finalized invoice %s", invoice.invoice_number)
        self.emitter.emit(
            InvoiceFinalized(
                metadata=EventMetadata.create(actor_id=actor_id, timestamp=now),
                invoice_id=invoice.invoice_id,
                invoice_number=invoice.invoice_number,
            )
        )
        return invoice

    def cancel(self, invoice_id: UUID, actor_id: str | None = None) -> Invoice:
        """Administrative cancel from any non-terminal status."""
        now = self.clock()

        def _cancel(inv: Invoice) -> str:
            previous = inv.status.value
            inv.cancel(now)
            return previous

        invoice, previous_status = mutate_invoice(
            self.invoices,
            self.locks,
            invoice_id,
            _cancel,
            self.config.payment_retry_attempts,
        )
        logger.info("Cancelled invoice %s (was %s)", invoice.invoice_number, previous_status)
        self.emitter.emit(
            InvoiceCancelled(
                metadata=EventMetadata.create(actor_id=actor_id, timestamp=now),
                invoice_id=invoice.invoice_id,
                invoice_number=invoice.invoice_number,
                previous_status=previous_status,
            )
        )
        return invoice

    def delete(self, invoice_id: UUID, actor_id: str | None = None) -> None:
        """Hard-delete a draft. Any other status is refused."""
        invoice, _ = mutate_invoice(
            self.invoices,
            self.locks,
            invoice_id,
            lambda inv: inv.ensure_deletable(),
            self.config.payment_retry_attempts,
            commit=self.invoices.delete,
        )
        logger.info("Deleted draft invoice %s", invoice.invoice_number)
        self.emitter.emit(
            InvoiceDeleted(
                metadata=EventMetadata.create(actor_id=actor_id, timestamp=self.clock()),
                invoice_id=invoice.invoice_id,
                invoice_number=invoice.invoice_number,
            )
        )
