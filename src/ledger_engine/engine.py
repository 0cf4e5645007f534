"""LedgerEngine: the single entry point the HTTP and CLI layers build on."""

from __future__ import annotations

import random
from concurrent.futures import Executor
from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from ledger_engine.calculators.allowances import AllowanceComposer
from ledger_engine.calculators.deductions import DeductionCalculator
from ledger_engine.clock import Clock, utcnow
from ledger_engine.config import EngineConfig
from ledger_engine.domain.invoice import Invoice, InvoiceUpdatePatch, NewInvoice, PaymentMethod
from ledger_engine.domain.payroll import EmployeeSnapshot, PayrollBatch, PayrollPeriod
from ledger_engine.events.emitter import EventEmitter
from ledger_engine.events.ledger import LedgerRecorder
from ledger_engine.events.types import PaymentApplied
from ledger_engine.money import Money
from ledger_engine.repositories.base import (
    ClientRepository,
    InvoiceFilters,
    InvoiceRepository,
    LedgerSink,
    Page,
    Pagination,
    ProjectRepository,
)
from ledger_engine.repositories.memory import (
    InMemoryClientRepository,
    InMemoryInvoiceRepository,
    InMemoryLedgerSink,
    InMemoryProjectRepository,
)
from ledger_engine.repositories.sql import (
    SqlClientRepository,
    SqlInvoiceRepository,
    SqlLedgerSink,
    SqlProjectRepository,
)
from ledger_engine.services.invoice_service import InvoiceService
from ledger_engine.services.locking_service import InvoiceLocks
from ledger_engine.services.payroll_service import PayrollRunService
from ledger_engine.services.reconciliation import PaymentReconciliationService
from ledger_engine.services.reporting import (
    DEFAULT_TOP_CLIENTS,
    ClientRanking,
    FinancialReport,
    PayrollSummary,
    PeriodBucket,
    ReportGrouping,
    ReportingService,
    SalesSummary,
    StatusBreakdown,
)


class LedgerEngine:
    """Wires repositories, services and the event emitter together.

    Collaborators are injected; nothing here is module-global. The ledger
    sink is subscribed to ``PaymentApplied`` so every committed payment is
    forwarded to bookkeeping.

    Usage:
        engine = LedgerEngine.in_memory()
        invoice = engine.create_invoice(new_invoice, actor_id="u-1")
        engine.apply_payment(invoice.invoice_id, Money.of("100", "KES"), "mpesa")
    """

    def __init__(
        self,
        invoices: InvoiceRepository,
        clients: ClientRepository,
        projects: ProjectRepository,
        ledger_sink: LedgerSink,
        config: EngineConfig | None = None,
        clock: Clock = utcnow,
        executor: Executor | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config or EngineConfig()
        self.invoices = invoices
        self.clients = clients
        self.projects = projects
        self.ledger_sink = ledger_sink
        self.clock = clock
        self.emitter = EventEmitter(executor=executor)
        self.locks = InvoiceLocks()

        self.emitter.on(PaymentApplied, LedgerRecorder(ledger_sink))

        self.invoice_service = InvoiceService(
            invoices,
            clients,
            projects,
            self.emitter,
            self.locks,
            self.config,
            clock=clock,
            rng=rng,
        )
        self.reconciliation = PaymentReconciliationService(
            invoices,
            self.emitter,
            self.locks,
            retry_attempts=self.config.payment_retry_attempts,
            clock=clock,
        )
        self.payroll = PayrollRunService(
            DeductionCalculator(self.config.deduction_schedule),
            AllowanceComposer(self.config.allowance_table),
            default_currency=self.config.default_currency,
            clock=clock,
        )
        self.reporting = ReportingService(invoices, clock=clock)

    @classmethod
    def in_memory(cls, config: EngineConfig | None = None, **kwargs) -> LedgerEngine:
        """Engine over in-process repositories."""
        return cls(
            InMemoryInvoiceRepository(),
            InMemoryClientRepository(),
            InMemoryProjectRepository(),
            InMemoryLedgerSink(),
            config=config,
            **kwargs,
        )

    @classmethod
    def from_session_factory(
        cls, factory: sessionmaker[Session], config: EngineConfig | None = None, **kwargs
    ) -> LedgerEngine:
        """Engine over the SQL repositories."""
        return cls(
            SqlInvoiceRepository(factory),
            SqlClientRepository(factory),
            SqlProjectRepository(factory),
            SqlLedgerSink(factory),
            config=config,
            **kwargs,
        )

    # ------------------------------------------------------------------ #
    # Invoices
    # ------------------------------------------------------------------ #

    def today(self) -> date:
        """Date used to derive overdue status."""
        return self.clock().date()

    def create_invoice(self, data: NewInvoice, actor_id: str | None = None) -> Invoice:
        return self.invoice_service.create(data, actor_id=actor_id)

    def update_invoice(
        self, invoice_id: UUID, patch: InvoiceUpdatePatch, actor_id: str | None = None
    ) -> Invoice:
        return self.invoice_service.update(invoice_id, patch, actor_id=actor_id)

    def delete_invoice(self, invoice_id: UUID, actor_id: str | None = None) -> None:
        self.invoice_service.delete(invoice_id, actor_id=actor_id)

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return self.invoice_service.get(invoice_id)

    def list_invoices(
        self, filters: InvoiceFilters | None = None, pagination: Pagination | None = None
    ) -> Page:
        return self.invoice_service.list(filters or InvoiceFilters(), pagination or Pagination())

    def finalize_invoice(self, invoice_id: UUID, actor_id: str | None = None) -> Invoice:
        return self.invoice_service.finalize(invoice_id, actor_id=actor_id)

    def cancel_invoice(self, invoice_id: UUID, actor_id: str | None = None) -> Invoice:
        return self.invoice_service.cancel(invoice_id, actor_id=actor_id)

    def apply_payment(
        self,
        invoice_id: UUID,
        amount: Money,
        method: PaymentMethod | str,
        reference: str | None = None,
        actor_id: str | None = None,
    ) -> Invoice:
        return self.reconciliation.apply_payment(
            invoice_id, amount, method, reference=reference, actor_id=actor_id
        )

    # ------------------------------------------------------------------ #
    # Payroll
    # ------------------------------------------------------------------ #

    def run_payroll(
        self,
        period: PayrollPeriod,
        roster: Sequence[EmployeeSnapshot],
        currency: str | None = None,
    ) -> PayrollBatch:
        return self.payroll.run(period, roster, currency=currency)

    # ------------------------------------------------------------------ #
    # Reports
    # ------------------------------------------------------------------ #

    def _currency(self, currency: str | None) -> str:
        return currency or self.config.default_currency

    def sales_summary(
        self,
        currency: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> SalesSummary:
        return self.reporting.sales_summary(self._currency(currency), start_date, end_date)

    def sales_by_status(
        self,
        currency: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[StatusBreakdown]:
        return self.reporting.sales_by_status(self._currency(currency), start_date, end_date)

    def sales_by_period(
        self,
        currency: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        grouping: ReportGrouping = ReportGrouping.MONTH,
    ) -> list[PeriodBucket]:
        return self.reporting.sales_by_period(
            self._currency(currency), start_date, end_date, grouping
        )

    def top_clients(
        self,
        currency: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int = DEFAULT_TOP_CLIENTS,
    ) -> list[ClientRanking]:
        return self.reporting.top_clients(self._currency(currency), start_date, end_date, limit)

    def financial_report(
        self,
        currency: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        grouping: ReportGrouping = ReportGrouping.MONTH,
        limit: int = DEFAULT_TOP_CLIENTS,
    ) -> FinancialReport:
        return self.reporting.financial_report(
            self._currency(currency), start_date, end_date, grouping, limit
        )

    def payroll_summary(self, batch: PayrollBatch) -> PayrollSummary:
        return self.reporting.payroll_summary(batch)
