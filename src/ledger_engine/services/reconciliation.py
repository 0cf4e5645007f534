"""Payment reconciliation: apply a payment against an invoice's balance."""

from __future__ import annotations

import logging
from uuid import UUID

from ledger_engine.clock import Clock, utcnow
from ledger_engine.domain.invoice import Invoice, PaymentMethod, PaymentRecord
from ledger_engine.events.emitter import EventEmitter
from ledger_engine.events.types import EventMetadata, PaymentApplied
from ledger_engine.money import Money
from ledger_engine.repositories.base import InvoiceRepository
from ledger_engine.services.locking_service import InvoiceLocks, mutate_invoice

logger = logging.getLogger(__name__)


class PaymentReconciliationService:
    """Applies payments one invoice at a time.

    Concurrency contract:
    - Payments against one invoice are serialized by its lock for the whole
      check-then-commit cycle
    - A commit that loses a version race reloads the invoice and re-checks
      the balance before trying again
    - Payments against different invoices proceed in parallel

    The ``PaymentApplied`` event is emitted after the commit; ledger
    recording hangs off that event and cannot undo the payment.
    """

    def __init__(
        self,
        invoices: InvoiceRepository,
        emitter: EventEmitter,
        locks: InvoiceLocks,
        retry_attempts: int = 3,
        clock: Clock = utcnow,
    ):
        self.invoices = invoices
        self.emitter = emitter
        self.locks = locks
        self.retry_attempts = retry_attempts
        self.clock = clock

    def apply_payment(
        self,
        invoice_id: UUID,
        amount: Money,
        method: PaymentMethod | str,
        reference: str | None = None,
        actor_id: str | None = None,
    ) -> Invoice:
        """Apply a payment and return the updated invoice.

        Raises:
            NotFoundError: If the invoice does not exist
            InvalidStateError: If the invoice is draft, paid or cancelled
            CurrencyMismatch: If the payment is in another currency
            ValidationError: If the amount is not positive or the method unknown
            AmountExceedsBalance: If the amount is above the balance due
        """
        now = self.clock()
        invoice, record = mutate_invoice(
            self.invoices,
            self.locks,
            invoice_id,
            lambda inv: inv.record_payment(amount, method, reference, actor_id, now),
            self.retry_attempts,
        )
        logger.info(
            "Applied %s %s to invoice %s via %s; status %s, balance %s",
            record.amount.amount,
            record.amount.currency,
            invoice.invoice_number,
            record.method.value,
            invoice.status.value,
            invoice.balance_due.amount,
        )
        self._publish(invoice, record, actor_id)
        return invoice

    def _publish(self, invoice: Invoice, record: PaymentRecord, actor_id: str | None) -> None:
        self.emitter.emit(
            PaymentApplied(
                metadata=EventMetadata.create(actor_id=actor_id, timestamp=record.timestamp),
                invoice_id=invoice.invoice_id,
                invoice_number=invoice.invoice_number,
                client_id=invoice.client_id,
                payment_id=record.payment_id,
                amount=record.amount.amount,
                currency=record.amount.currency,
                method=record.method.value,
                reference=record.reference,
                new_status=invoice.status.value,
                balance_due=invoice.balance_due.amount,
            )
        )
