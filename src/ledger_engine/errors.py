"""Error taxonomy for the ledger engine.

Every business-rule violation is raised as a typed ``LedgerError`` carrying a
stable ``code``. The HTTP layer maps codes to status codes; nothing else about
the failure (stack, internal state) crosses that boundary.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID


class LedgerError(Exception):
    """Base class for all engine failures visible to callers."""

    code: str = "LEDGER_ERROR"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(LedgerError):
    """Malformed or missing input. Recoverable by fixing the input."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, **details: Any):
        self.field = field
        super().__init__(message, field=field, **details)


class NotFoundError(LedgerError):
    """A referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: UUID | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", entity=entity)


class InvalidStateError(LedgerError):
    """Operation not permitted in the invoice's current lifecycle state."""

    code = "INVALID_STATE"

    def __init__(self, operation: str, status: str, reason: str | None = None):
        self.operation = operation
        self.status = status
        self.reason = reason
        msg = f"Cannot {operation} an invoice in status '{status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, operation=operation, status=status)


class AmountExceedsBalance(LedgerError):
    """A payment would overshoot the invoice's remaining balance."""

    code = "AMOUNT_EXCEEDS_BALANCE"

    def __init__(self, amount: Decimal, balance_due: Decimal, currency: str):
        self.amount = amount
        self.balance_due = balance_due
        self.currency = currency
        super().__init__(
            f"Payment of {amount} {currency} exceeds balance due of "
            f"{balance_due} {currency}",
        )


class CurrencyMismatch(LedgerError):
    """Arithmetic attempted across different currencies.

    This is an integration error, not something an end user can fix.
    """

    code = "CURRENCY_MISMATCH"

    def __init__(self, left: str, right: str):
        self.left = left
        self.right = right
        super().__init__(f"Currency mismatch: {left} vs {right}")


class ConcurrentModificationError(Exception):
    """The persisted invoice changed since it was loaded.

    Raised by repositories on a stale ``version``; services reload and retry.
    """

    def __init__(self, invoice_id: UUID, expected_version: int):
        self.invoice_id = invoice_id
        self.expected_version = expected_version
        super().__init__(
            f"Invoice {invoice_id} was modified concurrently "
            f"(expected version {expected_version})"
        )


class DuplicateInvoiceNumberError(Exception):
    """The storage layer already holds an invoice with this number."""

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice number '{invoice_number}' already exists")


class InvariantViolation(Exception):
    """An aggregate reached a state its rules forbid; it must not be stored."""

    def __init__(self, invoice_id: UUID | None, rule: str):
        self.invoice_id = invoice_id
        self.rule = rule
        super().__init__(f"Invoice {invoice_id} violates invariant: {rule}")
