"""Bridge from committed payments to the external bookkeeping ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from ledger_engine.events.types import DomainEvent, PaymentApplied
from ledger_engine.money import Money

if TYPE_CHECKING:
    from ledger_engine.repositories.base import LedgerSink

logger = logging.getLogger(__name__)

PAYMENT_RECEIVED = "payment_received"


@dataclass(frozen=True)
class LedgerTransaction:
    """Append-only bookkeeping record of money received."""

    transaction_id: UUID  # Same as the originating event id
    transaction_type: str
    amount: Money
    invoice_id: UUID
    client_id: UUID
    payment_id: UUID
    method: str
    reference: str | None
    actor_id: str | None
    recorded_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": str(self.transaction_id),
            "transaction_type": self.transaction_type,
            "amount": str(self.amount.amount),
            "currency": self.amount.currency,
            "invoice_id": str(self.invoice_id),
            "client_id": str(self.client_id),
            "payment_id": str(self.payment_id),
            "method": self.method,
            "reference": self.reference,
            "actor_id": self.actor_id,
            "recorded_at": self.recorded_at.isoformat(),
        }


def transaction_from_payment(event: PaymentApplied) -> LedgerTransaction:
    return LedgerTransaction(
        transaction_id=event.metadata.event_id,
        transaction_type=PAYMENT_RECEIVED,
        amount=Money(event.amount, event.currency),
        invoice_id=event.invoice_id,
        client_id=event.client_id,
        payment_id=event.payment_id,
        method=event.method,
        reference=event.reference,
        actor_id=event.metadata.actor_id,
        recorded_at=event.metadata.timestamp,
    )


class LedgerRecorder:
    """Event handler that appends a ledger transaction per applied payment.

    The payment is already committed when this runs; a sink failure is
    logged here and goes no further.
    """

    def __init__(self, sink: LedgerSink):
        self.sink = sink

    def __call__(self, event: DomainEvent) -> None:
        if not isinstance(event, PaymentApplied):
            return
        transaction = transaction_from_payment(event)
        try:
            self.sink.record(transaction)
        except Exception:
            logger.exception(
                "Ledger sink failed to record payment %s on invoice %s",
                event.payment_id,
                event.invoice_number,
            )
            return
        logger.info(
            "Recorded %s of %s %s for invoice %s",
            PAYMENT_RECEIVED,
            event.amount,
            event.currency,
            event.invoice_number,
        )
