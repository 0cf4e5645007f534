"""Invoice aggregate: line items, derived totals and payment history.

The aggregate is the consistency boundary for everything an invoice owns.
Collaborators read it through properties; every mutation goes through one of
the methods below, each of which re-establishes the invariants:

- ``subtotal``, ``tax_amount`` and ``total_amount`` always equal a fresh
  ``compute_invoice_totals`` over the current items, rate and discount
- ``amount_paid <= total_amount``
- ``status == paid`` iff ``amount_paid == total_amount``;
  ``status == partially_paid`` iff ``0 < amount_paid < total_amount``
"""

from __future__ import annotations

import copy
import random
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Sequence
from uuid import UUID, uuid4

from ledger_engine.calculators.invoice_totals import InvoiceTotals, compute_invoice_totals
from ledger_engine.domain.state_machine import InvoiceStateMachine, InvoiceStatus
from ledger_engine.errors import (
    AmountExceedsBalance,
    CurrencyMismatch,
    InvalidStateError,
    InvariantViolation,
    ValidationError,
)
from ledger_engine.money import Money, sum_money, to_decimal


class PaymentMethod(str, Enum):
    """Accepted payment methods."""

    MPESA = "mpesa"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    CASH = "cash"

    @classmethod
    def parse(cls, value: str | PaymentMethod) -> PaymentMethod:
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Unknown payment method {value!r}", field="method"
            ) from None


def _validate_tax_rate(rate: Any, field_name: str = "tax_rate") -> Decimal:
    value = to_decimal(rate)
    if not (0 <= value <= 100):
        raise ValidationError(
            f"Tax rate must be between 0 and 100, got {value}", field=field_name
        )
    return value


@dataclass(frozen=True)
class LineItem:
    """A billed line. ``tax_rate`` None means the invoice rate applies."""

    description: str
    quantity: int
    unit_price: Money
    tax_rate: Decimal | None = None

    def __post_init__(self) -> None:
        if not self.description or not self.description.strip():
            raise ValidationError("Line item description is required", field="description")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValidationError("Quantity must be an integer", field="quantity")
        if self.quantity < 1:
            raise ValidationError(
                f"Quantity must be at least 1, got {self.quantity}", field="quantity"
            )
        if not self.unit_price.is_non_negative():
            raise ValidationError("Unit price cannot be negative", field="unit_price")
        if self.tax_rate is not None:
            object.__setattr__(self, "tax_rate", _validate_tax_rate(self.tax_rate))

    @property
    def line_total(self) -> Money:
        return self.unit_price.multiply(self.quantity)


@dataclass(frozen=True)
class PaymentRecord:
    """One applied payment. Append-only."""

    payment_id: UUID
    amount: Money
    method: PaymentMethod
    reference: str | None
    processed_by: str | None
    timestamp: datetime


@dataclass(frozen=True)
class NewInvoice:
    """Input for invoice creation."""

    client_id: UUID
    items: Sequence[LineItem]
    issue_date: date
    due_date: date
    currency: str | None = None  # None = configured default
    project_id: UUID | None = None
    tax_rate: Decimal | None = None  # None = configured default
    discount: Money | None = None
    invoice_number: str | None = None
    status: InvoiceStatus = InvoiceStatus.PENDING
    notes: str | None = None


@dataclass(frozen=True)
class InvoiceUpdatePatch:
    """Closed set of fields an update may change. None = leave unchanged."""

    items: Sequence[LineItem] | None = None
    discount: Money | None = None
    tax_rate: Decimal | None = None
    due_date: date | None = None
    notes: str | None = None

    @property
    def touches_totals(self) -> bool:
        return (
            self.items is not None
            or self.discount is not None
            or self.tax_rate is not None
        )


def generate_invoice_number(today: date, rng: random.Random | None = None) -> str:
    """``INV-{YYYY}{MM}-{NNN}`` with a random 3-digit suffix."""
    rng = rng or random.Random()
    return f"INV-{today.year}{today.month:02d}-{rng.randrange(1000):03d}"


@dataclass(eq=False)
class Invoice:
    """The invoice aggregate. Construct with ``Invoice.create``."""

    invoice_id: UUID
    invoice_number: str
    client_id: UUID
    project_id: UUID | None
    issue_date: date
    due_date: date
    currency: str
    tax_rate: Decimal
    discount: Money
    status: InvoiceStatus
    subtotal: Money
    tax_amount: Money
    total_amount: Money
    created_at: datetime
    updated_at: datetime
    notes: str | None = None
    created_by: str | None = None
    paid_at: datetime | None = None
    version: int = 0
    _items: list[LineItem] = field(default_factory=list, repr=False)
    _payments: list[PaymentRecord] = field(default_factory=list, repr=False)

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def create(
        cls,
        data: NewInvoice,
        *,
        invoice_number: str,
        currency: str,
        tax_rate: Decimal,
        created_by: str | None,
        now: datetime,
    ) -> Invoice:
        """Build a new invoice in its initial state with no payments."""
        status = InvoiceStatus(data.status)
        if status not in InvoiceStateMachine.INITIAL:
            raise ValidationError(
                f"Invoices are created as draft or pending, not '{status.value}'",
                field="status",
            )
        if data.due_date < data.issue_date:
            raise ValidationError("Due date cannot be before issue date", field="due_date")

        rate = _validate_tax_rate(tax_rate)
        discount = data.discount if data.discount is not None else Money.zero(currency)
        items = list(data.items)
        totals = compute_invoice_totals(items, rate, discount, currency)

        invoice = cls(
            invoice_id=uuid4(),
            invoice_number=invoice_number,
            client_id=data.client_id,
            project_id=data.project_id,
            issue_date=data.issue_date,
            due_date=data.due_date,
            currency=currency,
            tax_rate=rate,
            discount=totals.discount,
            status=status,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            created_at=now,
            updated_at=now,
            notes=data.notes,
            created_by=created_by,
            _items=items,
        )
        if status != InvoiceStatus.DRAFT:
            invoice._ensure_collectable(totals)
        return invoice

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #

    @property
    def items(self) -> tuple[LineItem, ...]:
        return tuple(self._items)

    @property
    def payment_history(self) -> tuple[PaymentRecord, ...]:
        return tuple(self._payments)

    @property
    def amount_paid(self) -> Money:
        return sum_money((p.amount for p in self._payments), self.currency)

    @property
    def balance_due(self) -> Money:
        return self.total_amount.subtract(self.amount_paid)

    def status_as_of(self, today: date) -> InvoiceStatus:
        """Stored status, or OVERDUE when the due date has passed unpaid."""
        return InvoiceStateMachine.derive_status(self.status, self.due_date, today)

    def is_overdue(self, today: date) -> bool:
        return self.status_as_of(today) == InvoiceStatus.OVERDUE

    def totals(self) -> InvoiceTotals:
        return InvoiceTotals(
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            discount=self.discount,
            total_amount=self.total_amount,
        )

    def copy(self) -> Invoice:
        """Independent copy; repositories hand these out so callers never alias state."""
        return copy.deepcopy(self)

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def recalculate(self) -> InvoiceTotals:
        """Recompute derived totals from items, tax rate and discount."""
        totals = compute_invoice_totals(self._items, self.tax_rate, self.discount, self.currency)
        self._assign_totals(totals)
        return totals

    def apply_patch(self, patch: InvoiceUpdatePatch, now: datetime) -> None:
        """Apply a closed update patch, recomputing totals when needed."""
        if not InvoiceStateMachine.can_modify(self.status):
            raise InvalidStateError("update", self.status.value)

        if patch.due_date is not None and patch.due_date < self.issue_date:
            raise ValidationError("Due date cannot be before issue date", field="due_date")

        if patch.touches_totals:
            items = list(patch.items) if patch.items is not None else list(self._items)
            rate = (
                _validate_tax_rate(patch.tax_rate)
                if patch.tax_rate is not None
                else self.tax_rate
            )
            discount = patch.discount if patch.discount is not None else self.discount
            totals = compute_invoice_totals(items, rate, discount, self.currency)

            if self.status != InvoiceStatus.DRAFT:
                self._ensure_collectable(totals)

            self._items = items
            self.tax_rate = rate
            self._assign_totals(totals)

            if self.status == InvoiceStatus.PARTIALLY_PAID and self.amount_paid == self.total_amount:
                self._transition("update", InvoiceStatus.PAID)
                self.paid_at = now

        if patch.due_date is not None:
            self.due_date = patch.due_date
        if patch.notes is not None:
            self.notes = patch.notes
        self.updated_at = now

    def record_payment(
        self,
        amount: Money,
        method: PaymentMethod | str,
        reference: str | None,
        processed_by: str | None,
        now: datetime,
    ) -> PaymentRecord:
        """Reconcile a payment against the remaining balance.

        Equality with the balance settles the invoice; anything above it is
        rejected outright, never clamped.
        """
        if not InvoiceStateMachine.can_pay(self.status):
            raise InvalidStateError("apply payment to", self.status.value)
        if amount.currency != self.currency:
            raise CurrencyMismatch(self.currency, amount.currency)
        if not amount.is_positive():
            raise ValidationError("Payment amount must be positive", field="amount")
        payment_method = PaymentMethod.parse(method)

        balance = self.balance_due
        if amount > balance:
            raise AmountExceedsBalance(amount.amount, balance.amount, self.currency)

        record = PaymentRecord(
            payment_id=uuid4(),
            amount=amount,
            method=payment_method,
            reference=reference,
            processed_by=processed_by,
            timestamp=now,
        )
        self._payments.append(record)

        if self.amount_paid == self.total_amount:
            self._transition("apply payment to", InvoiceStatus.PAID)
            self.paid_at = now
        else:
            self._transition("apply payment to", InvoiceStatus.PARTIALLY_PAID)
        self.updated_at = now
        return record

    def finalize(self, now: datetime) -> None:
        """Promote a draft to pending so it can collect payments."""
        if self.status != InvoiceStatus.DRAFT:
            raise InvalidStateError("finalize", self.status.value, "only drafts can be finalized")
        self._ensure_collectable(self.totals())
        self._transition("finalize", InvoiceStatus.PENDING)
        self.updated_at = now

    def cancel(self, now: datetime) -> None:
        """Administrative override to cancelled."""
        self._transition("cancel", InvoiceStatus.CANCELLED)
        self.updated_at = now

    def ensure_deletable(self) -> None:
        if not InvoiceStateMachine.can_delete(self.status):
            raise InvalidStateError("delete", self.status.value, "only drafts can be deleted")

    def check_invariants(self) -> None:
        """Verify the aggregate invariants; used by repositories before commit.

        Raises:
            InvariantViolation: If derived totals, payments and status disagree
        """
        fresh = compute_invoice_totals(self._items, self.tax_rate, self.discount, self.currency)
        if fresh != self.totals():
            raise InvariantViolation(self.invoice_id, "derived totals drifted from items")
        paid = self.amount_paid
        if paid > self.total_amount:
            raise InvariantViolation(self.invoice_id, "payments exceed total")
        if self.status == InvoiceStatus.PAID and paid != self.total_amount:
            raise InvariantViolation(self.invoice_id, "paid invoice has outstanding balance")
        if self.status == InvoiceStatus.PARTIALLY_PAID and not (
            0 < paid.amount < self.total_amount.amount
        ):
            raise InvariantViolation(self.invoice_id, "partial payment out of range")

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _assign_totals(self, totals: InvoiceTotals) -> None:
        self.subtotal = totals.subtotal
        self.tax_amount = totals.tax_amount
        self.discount = totals.discount
        self.total_amount = totals.total_amount

    def _ensure_collectable(self, totals: InvoiceTotals) -> None:
        if not totals.total_amount.is_positive():
            raise ValidationError(
                "An issued invoice must have a positive total", field="total_amount"
            )
        paid = self.amount_paid
        if totals.total_amount < paid:
            raise ValidationError(
                f"Total {totals.total_amount} would fall below amount already paid {paid}",
                field="total_amount",
            )

    def _transition(self, operation: str, to_status: InvoiceStatus) -> None:
        InvoiceStateMachine.validate_transition(operation, self.status, to_status)
        self.status = to_status

    def to_dict(self, today: date | None = None) -> dict[str, Any]:
        """Serialize for exports and CLI output."""
        return {
            "invoice_id": str(self.invoice_id),
            "invoice_number": self.invoice_number,
            "client_id": str(self.client_id),
            "project_id": str(self.project_id) if self.project_id else None,
            "issue_date": self.issue_date.isoformat(),
            "due_date": self.due_date.isoformat(),
            "currency": self.currency,
            "tax_rate": str(self.tax_rate),
            "status": (self.status_as_of(today) if today else self.status).value,
            "items": [
                {
                    "description": item.description,
                    "quantity": item.quantity,
                    "unit_price": str(item.unit_price.amount),
                    "tax_rate": str(item.tax_rate) if item.tax_rate is not None else None,
                    "line_total": str(item.line_total.amount),
                }
                for item in self._items
            ],
            "subtotal": str(self.subtotal.amount),
            "tax_amount": str(self.tax_amount.amount),
            "discount": str(self.discount.amount),
            "total_amount": str(self.total_amount.amount),
            "amount_paid": str(self.amount_paid.amount),
            "balance_due": str(self.balance_due.amount),
            "payment_history": [
                {
                    "payment_id": str(p.payment_id),
                    "amount": str(p.amount.amount),
                    "method": p.method.value,
                    "reference": p.reference,
                    "processed_by": p.processed_by,
                    "timestamp": p.timestamp.isoformat(),
                }
                for p in self._payments
            ],
            "notes": self.notes,
            "created_by": self.created_by,
            "version": self.version,
        }
