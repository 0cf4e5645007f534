"""Invoicing, payment reconciliation and payroll engine."""

from ledger_engine.engine import LedgerEngine
from ledger_engine.money import Money

__version__ = "0.1.0"

__all__ = ["LedgerEngine", "Money", "__version__"]
