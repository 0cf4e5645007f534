"""Ledger engine services."""

from ledger_engine.services.invoice_service import InvoiceService
from ledger_engine.services.locking_service import InvoiceLocks
from ledger_engine.services.payroll_service import PayrollRunService
from ledger_engine.services.reconciliation import PaymentReconciliationService
from ledger_engine.services.reporting import ReportGrouping, ReportingService

__all__ = [
    "InvoiceLocks",
    "InvoiceService",
    "PaymentReconciliationService",
    "PayrollRunService",
    "ReportGrouping",
    "ReportingService",
]
