"""Invoice aggregate, its state machine and payroll value objects."""

from ledger_engine.domain.invoice import (
    Invoice,
    InvoiceUpdatePatch,
    LineItem,
    NewInvoice,
    PaymentMethod,
    PaymentRecord,
)
from ledger_engine.domain.payroll import (
    ControlTotals,
    EmployeeSnapshot,
    PayrollBatch,
    PayrollEntry,
    PayrollPeriod,
)
from ledger_engine.domain.state_machine import InvoiceStateMachine, InvoiceStatus

__all__ = [
    "ControlTotals",
    "EmployeeSnapshot",
    "Invoice",
    "InvoiceStateMachine",
    "InvoiceStatus",
    "InvoiceUpdatePatch",
    "LineItem",
    "NewInvoice",
    "PaymentMethod",
    "PaymentRecord",
    "PayrollBatch",
    "PayrollEntry",
    "PayrollPeriod",
]
