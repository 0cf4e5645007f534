"""Allowance composition from the department/role lookup table."""

from __future__ import annotations

from ledger_engine.calculators.types import (
    DEFAULT_ALLOWANCES,
    AllowanceRule,
    Allowances,
    AllowanceTable,
)
from ledger_engine.money import Money


class AllowanceComposer:
    """Resolves allowances using department/role matching.

    Rule selection:
    1. Rules for the employee's department are candidates
    2. A rule naming the employee's role beats a department-wide rule
    3. Ties go to the rule listed first
    4. No matching rule means no allowances
    """

    def __init__(self, table: AllowanceTable = DEFAULT_ALLOWANCES):
        self.table = table

    def resolve_rule(self, department: str | None, role: str | None) -> AllowanceRule | None:
        best: AllowanceRule | None = None
        best_score = 0
        for rule in self.table.rules:
            score = rule.matches(department, role)
            if score > best_score:
                best, best_score = rule, score
        return best

    def compose(self, department: str | None, role: str | None, currency: str) -> Allowances:
        rule = self.resolve_rule(department, role)
        if rule is None:
            return Allowances.none(currency)
        return Allowances(
            housing=Money(rule.housing, currency),
            transport=Money(rule.transport, currency),
            medical=Money(rule.medical, currency),
            other=Money(rule.other, currency),
        )
