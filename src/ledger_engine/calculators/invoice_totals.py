"""Invoice totals: a pure recomputation from items, tax rate and discount."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Sequence

from ledger_engine.errors import InvariantViolation, ValidationError
from ledger_engine.money import Money, sum_money

if TYPE_CHECKING:
    from ledger_engine.domain.invoice import LineItem


@dataclass(frozen=True)
class InvoiceTotals:
    """Derived monetary fields of an invoice."""

    subtotal: Money
    tax_amount: Money
    discount: Money
    total_amount: Money


def effective_tax_rate(item: LineItem, invoice_rate: Decimal) -> Decimal:
    return item.tax_rate if item.tax_rate is not None else invoice_rate


def compute_invoice_totals(
    items: Sequence[LineItem],
    tax_rate: Decimal,
    discount: Money,
    currency: str,
) -> InvoiceTotals:
    """Recompute subtotal, tax and total.

    Line totals are grouped by effective tax rate and each group's tax is
    rounded once, so the result does not depend on item order and equals
    ``subtotal x tax_rate / 100`` when no item overrides the rate.

    Raises:
        ValidationError: no items, or a discount outside [0, subtotal]
        CurrencyMismatch: an item or the discount is in another currency
    """
    if not items:
        raise ValidationError("Invoice must have at least one line item", field="items")

    subtotal = Money.zero(currency)
    by_rate: dict[Decimal, Money] = {}
    for item in items:
        line_total = item.line_total
        subtotal = subtotal.add(line_total)
        rate = effective_tax_rate(item, tax_rate)
        by_rate[rate] = by_rate.get(rate, Money.zero(currency)).add(line_total)

    tax_amount = sum_money(
        (by_rate[rate].percent_of(rate) for rate in sorted(by_rate)), currency
    )

    if not discount.is_non_negative():
        raise ValidationError("Discount cannot be negative", field="discount")
    if discount > subtotal:
        raise ValidationError(
            f"Discount {discount} exceeds subtotal {subtotal}", field="discount"
        )

    total_amount = subtotal.add(tax_amount).subtract(discount)
    if not total_amount.is_non_negative():
        raise InvariantViolation(None, f"negative total {total_amount}")

    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount=discount,
        total_amount=total_amount,
    )
