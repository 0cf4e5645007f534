"""Fixed-precision money primitives.

Amounts are ``Decimal`` values at the currency's minor unit. Input finer than
the minor unit is rejected; only computed results (percentages, products,
averages) are rounded, ROUND_HALF_UP, through ``Money.rounded``. Currency
codes are opaque 3-letter strings; nothing here converts between them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from ledger_engine.errors import CurrencyMismatch, ValidationError

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")

# Currencies whose minor unit differs from 2 decimal places.
MINOR_UNITS: dict[str, int] = {
    "BIF": 0,
    "CLP": 0,
    "JPY": 0,
    "KRW": 0,
    "RWF": 0,
    "UGX": 0,
    "VND": 0,
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "OMR": 3,
    "TND": 3,
}
DEFAULT_MINOR_UNITS = 2

HUNDRED = Decimal("100")


def minor_unit(currency: str) -> Decimal:
    """Smallest representable step for a currency, e.g. Decimal('0.01')."""
    places = MINOR_UNITS.get(currency, DEFAULT_MINOR_UNITS)
    return Decimal(1).scaleb(-places)


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert input to Decimal without binary float drift."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError("Boolean is not a monetary amount")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid decimal value: {value!r}") from e


def validate_currency(currency: str) -> str:
    if not isinstance(currency, str) or not _CURRENCY_RE.match(currency):
        raise ValidationError(
            f"Currency must be a 3-letter uppercase code, got {currency!r}",
            field="currency",
        )
    return currency


@dataclass(frozen=True, order=False)
class Money:
    """Signed amount in a single currency."""

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        validate_currency(self.currency)
        amount = to_decimal(self.amount)
        if not amount.is_finite():
            raise ValidationError(f"Amount must be finite, got {amount}")
        quantized = amount.quantize(minor_unit(self.currency), rounding=ROUND_HALF_UP)
        if quantized != amount:
            raise ValidationError(
                f"Amount {amount} is finer than the {self.currency} minor unit "
                f"{minor_unit(self.currency)}",
                field="amount",
            )
        object.__setattr__(self, "amount", quantized)

    @classmethod
    def of(cls, value: Decimal | int | float | str, currency: str) -> Money:
        return cls(to_decimal(value), currency)

    @classmethod
    def rounded(cls, value: Decimal | int | float | str, currency: str) -> Money:
        """Computed amount rounded half-up to the currency minor unit."""
        validate_currency(currency)
        amount = to_decimal(value)
        if not amount.is_finite():
            raise ValidationError(f"Amount must be finite, got {amount}")
        return cls(amount.quantize(minor_unit(currency), rounding=ROUND_HALF_UP), currency)

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(Decimal("0"), currency)

    def _check(self, other: Money) -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatch(self.currency, other.currency)

    def add(self, other: Money) -> Money:
        self._check(other)
        return Money(self.amount + other.amount, self.currency)

    def subtract(self, other: Money) -> Money:
        self._check(other)
        return Money(self.amount - other.amount, self.currency)

    def multiply(self, factor: Decimal | int) -> Money:
        """Scale by a quantity, rounding half-up to the minor unit."""
        return Money.rounded(self.amount * to_decimal(factor), self.currency)

    def percent_of(self, percent: Decimal | int | float | str) -> Money:
        """Return ``amount x percent / 100`` rounded half-up to the minor unit."""
        return Money.rounded(self.amount * to_decimal(percent) / HUNDRED, self.currency)

    def is_non_negative(self) -> bool:
        return self.amount >= 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def is_zero(self) -> bool:
        return self.amount == 0

    def __add__(self, other: Money) -> Money:
        return self.add(other)

    def __sub__(self, other: Money) -> Money:
        return self.subtract(other)

    def __neg__(self) -> Money:
        return Money(-self.amount, self.currency)

    def __lt__(self, other: Money) -> bool:
        self._check(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        self._check(other)
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        self._check(other)
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        self._check(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


def add(a: Money, b: Money) -> Money:
    return a.add(b)


def subtract(a: Money, b: Money) -> Money:
    return a.subtract(b)


def percent_of(amount: Money, percent: Decimal | int | float | str) -> Money:
    return amount.percent_of(percent)


def is_non_negative(amount: Money) -> bool:
    return amount.is_non_negative()


def sum_money(values: Iterable[Money], currency: str) -> Money:
    """Sum amounts, starting from zero in ``currency``."""
    total = Money.zero(currency)
    for value in values:
        total = total.add(value)
    return total
