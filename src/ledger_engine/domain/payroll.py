"""Payroll value objects: roster snapshot in, batch with control totals out."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID

from ledger_engine.calculators.types import Allowances, Deductions
from ledger_engine.errors import ValidationError
from ledger_engine.money import Money, sum_money

ACTIVE = "active"


@dataclass(frozen=True)
class PayrollPeriod:
    """A calendar month."""

    month: int
    year: int

    def __post_init__(self) -> None:
        if not (1 <= self.month <= 12):
            raise ValidationError(f"Month must be 1-12, got {self.month}", field="month")
        if not (1900 <= self.year <= 9999):
            raise ValidationError(f"Year out of range: {self.year}", field="year")

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def label(self) -> str:
        return f"{self.month}/{self.year}"


@dataclass(frozen=True)
class EmployeeSnapshot:
    """Roster row as read at run time."""

    employee_id: UUID
    employee_code: str
    full_name: str
    basic_salary: Money
    status: str = ACTIVE
    hire_date: date | None = None
    department: str | None = None
    role: str | None = None

    def is_payable_in(self, period: PayrollPeriod) -> bool:
        return (
            self.status == ACTIVE
            and self.hire_date is not None
            and self.hire_date <= period.start
        )


@dataclass(frozen=True)
class PayrollEntry:
    """One employee's computed pay for the period."""

    employee_id: UUID
    employee_code: str
    employee_name: str
    department: str | None
    role: str | None
    basic_salary: Money
    allowances: Allowances
    deductions: Deductions

    @property
    def gross_salary(self) -> Money:
        return self.basic_salary.add(self.allowances.total)

    @property
    def net_salary(self) -> Money:
        return self.gross_salary.subtract(self.deductions.total)

    @property
    def has_negative_net(self) -> bool:
        """Deductions exceed gross. Reported, never clamped."""
        return not self.net_salary.is_non_negative()

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": str(self.employee_id),
            "employee_code": self.employee_code,
            "employee_name": self.employee_name,
            "department": self.department,
            "role": self.role,
            "basic_salary": str(self.basic_salary.amount),
            "allowances": self.allowances.to_dict(),
            "deductions": self.deductions.to_dict(),
            "gross_salary": str(self.gross_salary.amount),
            "net_salary": str(self.net_salary.amount),
            "has_negative_net": self.has_negative_net,
        }


@dataclass(frozen=True)
class ControlTotals:
    """Aggregate sums over a batch, for reconciliation and audit."""

    total_basic: Money
    total_allowances: Money
    total_gross: Money
    total_deductions: Money
    total_net: Money
    employee_count: int

    @classmethod
    def from_entries(cls, entries: tuple[PayrollEntry, ...], currency: str) -> ControlTotals:
        return cls(
            total_basic=sum_money((e.basic_salary for e in entries), currency),
            total_allowances=sum_money((e.allowances.total for e in entries), currency),
            total_gross=sum_money((e.gross_salary for e in entries), currency),
            total_deductions=sum_money((e.deductions.total for e in entries), currency),
            total_net=sum_money((e.net_salary for e in entries), currency),
            employee_count=len(entries),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_basic": str(self.total_basic.amount),
            "total_allowances": str(self.total_allowances.amount),
            "total_gross": str(self.total_gross.amount),
            "total_deductions": str(self.total_deductions.amount),
            "total_net": str(self.total_net.amount),
            "employee_count": self.employee_count,
        }


@dataclass(frozen=True)
class PayrollBatch:
    """Result of a payroll run. Not persisted by the engine."""

    period: PayrollPeriod
    generated_at: datetime
    currency: str
    entries: tuple[PayrollEntry, ...]
    control_totals: ControlTotals

    @property
    def anomalies(self) -> tuple[PayrollEntry, ...]:
        return tuple(e for e in self.entries if e.has_negative_net)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period.label,
            "generated_at": self.generated_at.isoformat(),
            "currency": self.currency,
            "entries": [e.to_dict() for e in self.entries],
            "control_totals": self.control_totals.to_dict(),
        }
