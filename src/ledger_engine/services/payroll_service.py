"""Payroll run: roster snapshot in, batch with control totals out."""

from __future__ import annotations

import logging
from typing import Sequence

from ledger_engine.calculators.allowances import AllowanceComposer
from ledger_engine.calculators.deductions import DeductionCalculator
from ledger_engine.clock import Clock, utcnow
from ledger_engine.domain.payroll import (
    ControlTotals,
    EmployeeSnapshot,
    PayrollBatch,
    PayrollEntry,
    PayrollPeriod,
)
from ledger_engine.errors import CurrencyMismatch
from ledger_engine.money import validate_currency

logger = logging.getLogger(__name__)


class PayrollRunService:
    """Computes a payroll batch for one period.

    The run reads only its arguments and the configured schedule and
    allowance table, so runs for different periods can execute concurrently.
    Nothing is persisted; the caller stores or exports the batch.
    """

    def __init__(
        self,
        deductions: DeductionCalculator,
        allowances: AllowanceComposer,
        default_currency: str = "KES",
        clock: Clock = utcnow,
    ):
        self.deductions = deductions
        self.allowances = allowances
        self.default_currency = default_currency
        self.clock = clock

    def run(
        self,
        period: PayrollPeriod,
        roster: Sequence[EmployeeSnapshot],
        currency: str | None = None,
    ) -> PayrollBatch:
        """Build entries for every payable employee, in roster order."""
        currency = validate_currency(currency or self.default_currency)
        entries = tuple(
            self._entry_for(employee, currency)
            for employee in roster
            if employee.is_payable_in(period)
        )
        batch = PayrollBatch(
            period=period,
            generated_at=self.clock(),
            currency=currency,
            entries=entries,
            control_totals=ControlTotals.from_entries(entries, currency),
        )

        logger.info(
            "Payroll %s: %d of %d employees, net %s",
            period.label,
            len(entries),
            len(roster),
            batch.control_totals.total_net,
        )
        for entry in batch.anomalies:
            logger.warning(
                "Employee %s has negative net pay %s in %s",
                entry.employee_code,
                entry.net_salary,
                period.label,
            )
        return batch

    def _entry_for(self, employee: EmployeeSnapshot, currency: str) -> PayrollEntry:
        if employee.basic_salary.currency != currency:
            raise CurrencyMismatch(currency, employee.basic_salary.currency)
        return PayrollEntry(
            employee_id=employee.employee_id,
            employee_code=employee.employee_code,
            employee_name=employee.full_name,
            department=employee.department,
            role=employee.role,
            basic_salary=employee.basic_salary,
            allowances=self.allowances.compose(employee.department, employee.role, currency),
            deductions=self.deductions.compute_deductions(employee.basic_salary),
        )
