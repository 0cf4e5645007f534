"""Type definitions for the payroll calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ledger_engine.money import Money, sum_money, to_decimal


@dataclass(frozen=True)
class TaxBracket:
    """Tax bracket for progressive withholding.

    Amounts inside the bracket pay ``flat_amount + (amount - min_amount) * rate``.
    """

    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.25 for 25%
    flat_amount: Decimal = Decimal("0")  # Tax accrued below min_amount

    def contains(self, amount: Decimal) -> bool:
        if amount <= self.min_amount and self.min_amount > 0:
            return False
        return self.max_amount is None or amount <= self.max_amount


@dataclass(frozen=True)
class StatutoryRule:
    """Percentage withholding with a hard cap (e.g. NHIF, NSSF)."""

    name: str
    rate: Decimal
    cap: Decimal


@dataclass(frozen=True)
class DeductionSchedule:
    """Jurisdiction configuration for payroll deductions.

    Loaded from a JSON payload with structure:
    {
        "brackets": [
            {"min": 0, "max": 24000, "rate": 0.10, "flat": 0},
            {"min": 24000, "max": 32333, "rate": 0.25, "flat": 2400},
            {"min": 32333, "max": null, "rate": 0.30, "flat": 4483.25}
        ],
        "statutory_a": {"name": "NHIF", "rate": 0.015, "cap": 1700},
        "statutory_b": {"name": "NSSF", "rate": 0.06, "cap": 1080}
    }
    """

    brackets: tuple[TaxBracket, ...]
    statutory_a: StatutoryRule
    statutory_b: StatutoryRule

    def __post_init__(self) -> None:
        if not self.brackets:
            raise ValueError("Deduction schedule needs at least one tax bracket")
        if self.brackets[0].min_amount != 0:
            raise ValueError("First tax bracket must start at 0")
        if self.brackets[-1].max_amount is not None:
            raise ValueError("Last tax bracket must be open-ended")
        for lower, upper in zip(self.brackets, self.brackets[1:]):
            if lower.max_amount is None or lower.max_amount != upper.min_amount:
                raise ValueError(
                    f"Tax brackets must be contiguous: {lower.max_amount} != {upper.min_amount}"
                )
        for bracket in self.brackets:
            if not (0 <= bracket.rate <= 1):
                raise ValueError(f"Bracket rate must be within [0, 1], got {bracket.rate}")
        for rule in (self.statutory_a, self.statutory_b):
            if not (0 <= rule.rate <= 1):
                raise ValueError(f"{rule.name} rate must be within [0, 1], got {rule.rate}")
            if rule.cap < 0:
                raise ValueError(f"{rule.name} cap must be non-negative")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> DeductionSchedule:
        brackets = tuple(
            TaxBracket(
                min_amount=to_decimal(b["min"]),
                max_amount=to_decimal(b["max"]) if b.get("max") is not None else None,
                rate=to_decimal(b["rate"]),
                flat_amount=to_decimal(b.get("flat", 0)),
            )
            for b in payload.get("brackets", [])
        )
        return cls(
            brackets=brackets,
            statutory_a=_statutory_from_payload(payload["statutory_a"], "statutory_a"),
            statutory_b=_statutory_from_payload(payload["statutory_b"], "statutory_b"),
        )


def _statutory_from_payload(payload: dict[str, Any], default_name: str) -> StatutoryRule:
    return StatutoryRule(
        name=payload.get("name", default_name),
        rate=to_decimal(payload["rate"]),
        cap=to_decimal(payload["cap"]),
    )


# Kenyan PAYE (simplified monthly bands), NHIF and NSSF tier I.
DEFAULT_SCHEDULE = DeductionSchedule(
    brackets=(
        TaxBracket(Decimal("0"), Decimal("24000"), Decimal("0.10")),
        TaxBracket(Decimal("24000"), Decimal("32333"), Decimal("0.25"), Decimal("2400")),
        TaxBracket(Decimal("32333"), None, Decimal("0.30"), Decimal("4483.25")),
    ),
    statutory_a=StatutoryRule("NHIF", Decimal("0.015"), Decimal("1700")),
    statutory_b=StatutoryRule("NSSF", Decimal("0.06"), Decimal("1080")),
)


@dataclass(frozen=True)
class Deductions:
    """Withholdings for one employee."""

    tax: Money
    statutory_a: Money
    statutory_b: Money

    @property
    def total(self) -> Money:
        return sum_money(
            (self.tax, self.statutory_a, self.statutory_b), self.tax.currency
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "tax": str(self.tax.amount),
            "statutory_a": str(self.statutory_a.amount),
            "statutory_b": str(self.statutory_b.amount),
            "total": str(self.total.amount),
        }


@dataclass(frozen=True)
class Allowances:
    """Allowance components for one employee."""

    housing: Money
    transport: Money
    medical: Money
    other: Money

    @property
    def total(self) -> Money:
        return sum_money(
            (self.housing, self.transport, self.medical, self.other),
            self.housing.currency,
        )

    @classmethod
    def none(cls, currency: str) -> Allowances:
        zero = Money.zero(currency)
        return cls(housing=zero, transport=zero, medical=zero, other=zero)

    def to_dict(self) -> dict[str, str]:
        return {
            "housing": str(self.housing.amount),
            "transport": str(self.transport.amount),
            "medical": str(self.medical.amount),
            "other": str(self.other.amount),
            "total": str(self.total.amount),
        }


@dataclass(frozen=True)
class AllowanceRule:
    """Allowance amounts for a department, optionally narrowed to a role."""

    department: str
    role: str | None = None
    housing: Decimal = Decimal("0")
    transport: Decimal = Decimal("0")
    medical: Decimal = Decimal("0")
    other: Decimal = Decimal("0")

    def matches(self, department: str | None, role: str | None) -> int:
        """Match score: 0 = no match, 1 = department, 2 = department and role."""
        if department is None or self.department.lower() != department.lower():
            return 0
        if self.role is None:
            return 1
        if role is not None and self.role.lower() == role.lower():
            return 2
        return 0


@dataclass(frozen=True)
class AllowanceTable:
    """Lookup table from department/role to allowance amounts.

    Payload structure:
    {"rules": [{"department": "management", "housing": 20000, "transport": 15000}, ...]}
    """

    rules: tuple[AllowanceRule, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for rule in self.rules:
            for name in ("housing", "transport", "medical", "other"):
                if getattr(rule, name) < 0:
                    raise ValueError(
                        f"Allowance '{name}' for {rule.department} must be non-negative"
                    )

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AllowanceTable:
        return cls(
            rules=tuple(
                AllowanceRule(
                    department=r["department"],
                    role=r.get("role"),
                    housing=to_decimal(r.get("housing", 0)),
                    transport=to_decimal(r.get("transport", 0)),
                    medical=to_decimal(r.get("medical", 0)),
                    other=to_decimal(r.get("other", 0)),
                )
                for r in payload.get("rules", [])
            )
        )


DEFAULT_ALLOWANCES = AllowanceTable(
    rules=(
        AllowanceRule("management", housing=Decimal("20000"), transport=Decimal("15000")),
        AllowanceRule("development", transport=Decimal("8000"), medical=Decimal("5000")),
    )
)
