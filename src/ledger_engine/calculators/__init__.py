"""Pure calculators: payroll deductions, allowances and invoice totals."""

from ledger_engine.calculators.allowances import AllowanceComposer
from ledger_engine.calculators.deductions import DeductionCalculator
from ledger_engine.calculators.invoice_totals import InvoiceTotals, compute_invoice_totals
from ledger_engine.calculators.types import (
    DEFAULT_ALLOWANCES,
    DEFAULT_SCHEDULE,
    Allowances,
    AllowanceTable,
    DeductionSchedule,
    Deductions,
)

__all__ = [
    "AllowanceComposer",
    "AllowanceTable",
    "Allowances",
    "DEFAULT_ALLOWANCES",
    "DEFAULT_SCHEDULE",
    "DeductionCalculator",
    "DeductionSchedule",
    "Deductions",
    "InvoiceTotals",
    "compute_invoice_totals",
]
