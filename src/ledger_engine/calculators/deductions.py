"""Payroll deductions: progressive income tax plus capped statutory levies."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from ledger_engine.calculators.types import (
    DEFAULT_SCHEDULE,
    DeductionSchedule,
    Deductions,
    StatutoryRule,
)
from ledger_engine.money import Money

OUTPUT_PRECISION = Decimal("0.01")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places, half-up."""
    return amount.quantize(OUTPUT_PRECISION, rounding=ROUND_HALF_UP)


class DeductionCalculator:
    """Maps a salary component to tax and statutory withholdings.

    Brackets and levy rates come from the ``DeductionSchedule`` so a change of
    jurisdiction or tax year is a configuration change. All outputs are
    rounded to 2 dp half-up; ``total`` is the sum of the rounded parts.
    """

    def __init__(self, schedule: DeductionSchedule = DEFAULT_SCHEDULE):
        self.schedule = schedule

    def compute_deductions(self, amount: Money) -> Deductions:
        """Compute tax, statutory A and statutory B for ``amount``."""
        value = amount.amount
        return Deductions(
            tax=Money.rounded(self._calculate_progressive_tax(value), amount.currency),
            statutory_a=Money.rounded(
                self._calculate_capped_levy(value, self.schedule.statutory_a),
                amount.currency,
            ),
            statutory_b=Money.rounded(
                self._calculate_capped_levy(value, self.schedule.statutory_b),
                amount.currency,
            ),
        )

    def _calculate_progressive_tax(self, wages: Decimal) -> Decimal:
        """Tax from the bracket containing ``wages``."""
        if wages <= 0:
            return Decimal("0")

        for bracket in self.schedule.brackets:
            if bracket.contains(wages):
                tax = bracket.flat_amount + (wages - bracket.min_amount) * bracket.rate
                return round_to_cents(tax)

        # Schedule validation guarantees an open-ended last bracket.
        raise AssertionError(f"No tax bracket contains {wages}")

    def _calculate_capped_levy(self, wages: Decimal, rule: StatutoryRule) -> Decimal:
        if wages <= 0:
            return Decimal("0")
        return round_to_cents(min(wages * rule.rate, rule.cap))
