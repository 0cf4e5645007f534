"""Read-side rollups over invoices and payroll batches.

Financial figures are summed in one currency; a report never mixes
currencies. Sales figures count invoices whose stored status is ``paid`` or
``partially_paid``; the status breakdown uses the status as read today, so
overdue invoices appear under ``overdue``.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Sequence
from uuid import UUID

from ledger_engine.clock import Clock, utcnow
from ledger_engine.domain.invoice import Invoice
from ledger_engine.domain.payroll import ControlTotals, PayrollBatch
from ledger_engine.domain.state_machine import InvoiceStatus
from ledger_engine.errors import ValidationError
from ledger_engine.money import Money, sum_money, validate_currency
from ledger_engine.repositories.base import InvoiceFilters, InvoiceRepository

COLLECTED_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID})
DEFAULT_TOP_CLIENTS = 10


class ReportGrouping(str, Enum):
    """Bucket width for sales trends."""

    DAY = "day"
    MONTH = "month"
    YEAR = "year"

    def bucket(self, day: date) -> date:
        if self is ReportGrouping.DAY:
            return day
        if self is ReportGrouping.MONTH:
            return day.replace(day=1)
        return day.replace(month=1, day=1)


@dataclass(frozen=True)
class SalesSummary:
    total_sales: Money
    total_tax: Money
    subtotal: Money
    amount_collected: Money
    invoice_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_sales": str(self.total_sales.amount),
            "total_tax": str(self.total_tax.amount),
            "subtotal": str(self.subtotal.amount),
            "amount_collected": str(self.amount_collected.amount),
            "invoice_count": self.invoice_count,
        }


@dataclass(frozen=True)
class StatusBreakdown:
    status: InvoiceStatus
    count: int
    total: Money

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "count": self.count, "total": str(self.total.amount)}


@dataclass(frozen=True)
class PeriodBucket:
    period: date  # First day of the bucket
    total: Money
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"period": self.period.isoformat(), "total": str(self.total.amount), "count": self.count}


@dataclass(frozen=True)
class ClientRanking:
    client_id: UUID
    total_spent: Money
    invoice_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_id": str(self.client_id),
            "total_spent": str(self.total_spent.amount),
            "invoice_count": self.invoice_count,
        }


@dataclass(frozen=True)
class FinancialReport:
    currency: str
    start_date: date | None
    end_date: date | None
    grouping: ReportGrouping
    summary: SalesSummary
    by_status: list[StatusBreakdown]
    trends: list[PeriodBucket]
    top_clients: list[ClientRanking]

    def to_dict(self) -> dict[str, Any]:
        return {
            "currency": self.currency,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "group_by": self.grouping.value,
            "summary": self.summary.to_dict(),
            "by_status": [row.to_dict() for row in self.by_status],
            "trends": [row.to_dict() for row in self.trends],
            "top_clients": [row.to_dict() for row in self.top_clients],
        }


@dataclass(frozen=True)
class PayrollSummary:
    period: str
    currency: str
    control_totals: ControlTotals
    average_net: Money
    highest_net: Money
    lowest_net: Money
    negative_net_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "currency": self.currency,
            "control_totals": self.control_totals.to_dict(),
            "average_net": str(self.average_net.amount),
            "highest_net": str(self.highest_net.amount),
            "lowest_net": str(self.lowest_net.amount),
            "negative_net_count": self.negative_net_count,
        }


# ============================================================================
# Pure rollups
# ============================================================================


def _collected(invoices: Sequence[Invoice]) -> list[Invoice]:
    return [inv for inv in invoices if inv.status in COLLECTED_STATUSES]


def summarize_sales(invoices: Sequence[Invoice], currency: str) -> SalesSummary:
    collected = _collected(invoices)
    return SalesSummary(
        total_sales=sum_money((inv.total_amount for inv in collected), currency),
        total_tax=sum_money((inv.tax_amount for inv in collected), currency),
        subtotal=sum_money((inv.subtotal for inv in collected), currency),
        amount_collected=sum_money((inv.amount_paid for inv in collected), currency),
        invoice_count=len(collected),
    )


def breakdown_by_status(
    invoices: Sequence[Invoice], currency: str, today: date
) -> list[StatusBreakdown]:
    groups: dict[InvoiceStatus, list[Invoice]] = defaultdict(list)
    for inv in invoices:
        groups[inv.status_as_of(today)].append(inv)
    return [
        StatusBreakdown(
            status=status,
            count=len(groups[status]),
            total=sum_money((inv.total_amount for inv in groups[status]), currency),
        )
        for status in InvoiceStatus
        if status in groups
    ]


def bucket_by_period(
    invoices: Sequence[Invoice], currency: str, grouping: ReportGrouping
) -> list[PeriodBucket]:
    groups: dict[date, list[Invoice]] = defaultdict(list)
    for inv in _collected(invoices):
        groups[grouping.bucket(inv.issue_date)].append(inv)
    return [
        PeriodBucket(
            period=period,
            total=sum_money((inv.total_amount for inv in groups[period]), currency),
            count=len(groups[period]),
        )
        for period in sorted(groups)
    ]


def rank_clients(
    invoices: Sequence[Invoice], currency: str, limit: int = DEFAULT_TOP_CLIENTS
) -> list[ClientRanking]:
    if limit < 1:
        raise ValidationError("Limit must be at least 1", field="limit")
    groups: dict[UUID, list[Invoice]] = defaultdict(list)
    for inv in _collected(invoices):
        groups[inv.client_id].append(inv)
    rankings = [
        ClientRanking(
            client_id=client_id,
            total_spent=sum_money((inv.total_amount for inv in rows), currency),
            invoice_count=len(rows),
        )
        for client_id, rows in groups.items()
    ]
    # client_id breaks ties so the order is stable
    rankings.sort(key=lambda r: str(r.client_id))
    rankings.sort(key=lambda r: r.total_spent.amount, reverse=True)
    return rankings[:limit]


def summarize_payroll(batch: PayrollBatch) -> PayrollSummary:
    """Control totals plus average, highest and lowest net pay."""
    currency = batch.currency
    nets = [entry.net_salary for entry in batch.entries]
    totals = batch.control_totals
    if nets:
        average = Money.rounded(totals.total_net.amount / len(nets), currency)
        highest = max(nets, key=lambda m: m.amount)
        lowest = min(nets, key=lambda m: m.amount)
    else:
        average = highest = lowest = Money.zero(currency)
    return PayrollSummary(
        period=batch.period.label,
        currency=currency,
        control_totals=totals,
        average_net=average,
        highest_net=highest,
        lowest_net=lowest,
        negative_net_count=len(batch.anomalies),
    )


# ============================================================================
# Service
# ============================================================================


class ReportingService:
    """Loads invoices for a currency and issue-date window, then rolls them up."""

    def __init__(self, invoices: InvoiceRepository, clock: Clock = utcnow):
        self.invoices = invoices
        self.clock = clock

    def _load(
        self, currency: str, start_date: date | None, end_date: date | None
    ) -> tuple[list[Invoice], date]:
        currency = validate_currency(currency)
        if start_date and end_date and start_date > end_date:
            raise ValidationError("Start date must not be after end date", field="start_date")
        today = self.clock().date()
        filters = InvoiceFilters(currency=currency, start_date=start_date, end_date=end_date)
        return self.invoices.find(filters, today), today

    def sales_summary(
        self, currency: str, start_date: date | None = None, end_date: date | None = None
    ) -> SalesSummary:
        invoices, _ = self._load(currency, start_date, end_date)
        return summarize_sales(invoices, currency)

    def sales_by_status(
        self, currency: str, start_date: date | None = None, end_date: date | None = None
    ) -> list[StatusBreakdown]:
        invoices, today = self._load(currency, start_date, end_date)
        return breakdown_by_status(invoices, currency, today)

    def sales_by_period(
        self,
        currency: str,
        start_date: date | None = None,
        end_date: date | None = None,
        grouping: ReportGrouping = ReportGrouping.MONTH,
    ) -> list[PeriodBucket]:
        invoices, _ = self._load(currency, start_date, end_date)
        return bucket_by_period(invoices, currency, ReportGrouping(grouping))

    def top_clients(
        self,
        currency: str,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int = DEFAULT_TOP_CLIENTS,
    ) -> list[ClientRanking]:
        invoices, _ = self._load(currency, start_date, end_date)
        return rank_clients(invoices, currency, limit)

    def financial_report(
        self,
        currency: str,
        start_date: date | None = None,
        end_date: date | None = None,
        grouping: ReportGrouping = ReportGrouping.MONTH,
        limit: int = DEFAULT_TOP_CLIENTS,
    ) -> FinancialReport:
        """All four rollups over a single read of the window."""
        invoices, today = self._load(currency, start_date, end_date)
        grouping = ReportGrouping(grouping)
        return FinancialReport(
            currency=currency,
            start_date=start_date,
            end_date=end_date,
            grouping=grouping,
            summary=summarize_sales(invoices, currency),
            by_status=breakdown_by_status(invoices, currency, today),
            trends=bucket_by_period(invoices, currency, grouping),
            top_clients=rank_clients(invoices, currency, limit),
        )

    @staticmethod
    def payroll_summary(batch: PayrollBatch) -> PayrollSummary:
        return summarize_payroll(batch)
