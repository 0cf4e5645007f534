"""Invoice state machine with transition validation."""

from __future__ import annotations

from datetime import date
from enum import Enum

from ledger_engine.errors import InvalidStateError


class InvoiceStatus(str, Enum):
    """Invoice status values.

    OVERDUE is never stored; it is derived at read time.
    """

    DRAFT = "draft"
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceStateMachine:
    """State machine for invoice status transitions.

    Allowed transitions:
    - draft → pending (finalize)
    - draft → cancelled
    - pending → partially_paid | paid (payment)
    - pending → cancelled
    - partially_paid → partially_paid | paid (payment)
    - partially_paid → cancelled
    - paid, cancelled: terminal
    """

    VALID_TRANSITIONS: dict[InvoiceStatus, list[InvoiceStatus]] = {
        InvoiceStatus.DRAFT: [InvoiceStatus.PENDING, InvoiceStatus.CANCELLED],
        InvoiceStatus.PENDING: [
            InvoiceStatus.PARTIALLY_PAID,
            InvoiceStatus.PAID,
            InvoiceStatus.CANCELLED,
        ],
        InvoiceStatus.PARTIALLY_PAID: [
            InvoiceStatus.PARTIALLY_PAID,
            InvoiceStatus.PAID,
            InvoiceStatus.CANCELLED,
        ],
        InvoiceStatus.PAID: [],  # Terminal state
        InvoiceStatus.CANCELLED: [],  # Terminal state
    }

    # Statuses that may be chosen at creation
    INITIAL = {InvoiceStatus.DRAFT, InvoiceStatus.PENDING}

    # Statuses where payments are accepted
    PAYABLE = {InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID}

    # Statuses where items, discount, tax rate and due date can change
    MUTABLE = {
        InvoiceStatus.DRAFT,
        InvoiceStatus.PENDING,
        InvoiceStatus.PARTIALLY_PAID,
    }

    # Statuses that read as overdue once the due date passes
    OVERDUE_ELIGIBLE = {InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID}

    TERMINAL = {InvoiceStatus.PAID, InvoiceStatus.CANCELLED}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(InvoiceStatus(from_status), [])
        return InvoiceStatus(to_status) in allowed

    @classmethod
    def validate_transition(cls, operation: str, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidStateError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateError(
                operation,
                InvoiceStatus(from_status).value,
                f"transition to '{InvoiceStatus(to_status).value}' is not allowed",
            )

    @classmethod
    def can_pay(cls, status: str) -> bool:
        return InvoiceStatus(status) in cls.PAYABLE

    @classmethod
    def can_modify(cls, status: str) -> bool:
        return InvoiceStatus(status) in cls.MUTABLE

    @classmethod
    def can_delete(cls, status: str) -> bool:
        """Only drafts can be hard-deleted."""
        return InvoiceStatus(status) == InvoiceStatus.DRAFT

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return InvoiceStatus(status) in cls.TERMINAL

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[InvoiceStatus]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(InvoiceStatus(current_status), [])

    @classmethod
    def derive_status(cls, status: str, due_date: date, today: date) -> InvoiceStatus:
        """Status as seen by readers on ``today``."""
        stored = InvoiceStatus(status)
        if stored in cls.OVERDUE_ELIGIBLE and due_date < today:
            return InvoiceStatus.OVERDUE
        return stored
