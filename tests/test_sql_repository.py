"""SQLite-backed tests for the SQL repositories."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import NOW, TODAY, fixed_clock, kes
from ledger_engine.domain.invoice import Invoice, InvoiceUpdatePatch, LineItem
from ledger_engine.domain.state_machine import InvoiceStatus
from ledger_engine.engine import LedgerEngine
from ledger_engine.errors import (
    ConcurrentModificationError,
    DuplicateInvoiceNumberError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ledger_engine.repositories.base import InvoiceFilters, Pagination
from ledger_engine.repositories.sql import (
    SqlClientRepository,
    SqlInvoiceRepository,
    SqlLedgerSink,
)


@pytest.fixture
def repo(session_factory) -> SqlInvoiceRepository:
    return SqlInvoiceRepository(session_factory)


@pytest.fixture
def registered_client(session_factory, client_id):
    SqlClientRepository(session_factory).register(client_id, "Acme Ltd")
    return client_id


@pytest.fixture
def make_invoice(new_invoice, registered_client):
    def _make(number: str = "INV-202403-001", **overrides) -> Invoice:
        return Invoice.create(
            new_invoice(**overrides),
            invoice_number=number,
            currency=overrides.get("currency", "KES"),
            tax_rate=Decimal("16"),
            created_by="user-1",
            now=NOW,
        )

    return _make


class TestInvoicePersistence:
    """Round trips through the relational schema."""

    def test_add_and_get(self, repo, make_invoice):
        invoice = make_invoice()
        repo.add(invoice)

        loaded = repo.get(invoice.invoice_id)

        assert invoice.version == 1
        assert loaded.version == 1
        assert loaded.invoice_number == "INV-202403-001"
        assert loaded.total_amount == kes("396.00")
        assert loaded.tax_rate == Decimal("16")
        assert [item.description for item in loaded.items] == [
            "Website design",
            "Hosting (1 year)",
        ]
        assert loaded.created_at == NOW
        assert loaded.created_at.tzinfo is not None
        loaded.check_invariants()

    def test_get_missing(self, repo):
        assert repo.get(uuid4()) is None

    def test_duplicate_number(self, repo, make_invoice):
        repo.add(make_invoice("INV-DUP"))
        with pytest.raises(DuplicateInvoiceNumberError):
            repo.add(make_invoice("INV-DUP"))

    def test_payments_round_trip(self, repo, make_invoice):
        invoice = make_invoice()
        repo.add(invoice)

        invoice.record_payment(kes("100"), "mpesa", "QK12", "cashier", NOW)
        repo.save(invoice)
        invoice.record_payment(kes("296"), "card", None, "cashier", NOW)
        repo.save(invoice)

        loaded = repo.get(invoice.invoice_id)
        assert loaded.version == 3
        assert loaded.status == InvoiceStatus.PAID
        assert loaded.paid_at == NOW
        assert [p.amount.amount for p in loaded.payment_history] == [
            Decimal("100.00"),
            Decimal("296.00"),
        ]
        assert loaded.payment_history[0].reference == "QK12"

    def test_item_replacement(self, repo, make_invoice):
        invoice = make_invoice()
        repo.add(invoice)

        invoice.apply_patch(
            InvoiceUpdatePatch(
                items=[
                    LineItem("Audit", 1, kes("500")),
                    LineItem("Travel", 2, kes("25"), tax_rate=Decimal("0")),
                ]
            ),
            NOW,
        )
        repo.save(invoice)

        loaded = repo.get(invoice.invoice_id)
        assert [item.description for item in loaded.items] == ["Audit", "Travel"]
        assert loaded.items[1].tax_rate == Decimal("0")
        assert loaded.total_amount == kes("620.00")
        loaded.check_invariants()

    def test_stale_version_rejected(self, repo, make_invoice):
        invoice = make_invoice()
        repo.add(invoice)

        first = repo.get(invoice.invoice_id)
        second = repo.get(invoice.invoice_id)
        first.record_payment(kes("100"), "cash", None, None, NOW)
        repo.save(first)

        second.record_payment(kes("100"), "cash", None, None, NOW)
        with pytest.raises(ConcurrentModificationError):
            repo.save(second)
        assert repo.get(invoice.invoice_id).amount_paid == kes("100.00")

    def test_delete(self, repo, make_invoice):
        invoice = make_invoice(status=InvoiceStatus.DRAFT)
        repo.add(invoice)

        repo.delete(invoice)

        assert repo.get(invoice.invoice_id) is None

    def test_delete_stale(self, repo, make_invoice):
        invoice = make_invoice(status=InvoiceStatus.DRAFT)
        repo.add(invoice)
        stale = repo.get(invoice.invoice_id)
        invoice.apply_patch(InvoiceUpdatePatch(notes="edited"), NOW)
        repo.save(invoice)

        with pytest.raises(ConcurrentModificationError):
            repo.delete(stale)


class TestInvoiceQueries:
    """Filters and pagination translated to SQL."""

    @pytest.fixture
    def seeded(self, repo, make_invoice):
        current = make_invoice("INV-A-001")
        overdue = make_invoice("INV-A-002", due_date=date(2024, 3, 10))
        draft = make_invoice("INV-B_001", status=InvoiceStatus.DRAFT, due_date=date(2024, 3, 2))
        paid = make_invoice(
            "INV-B-002",
            issue_date=date(2024, 2, 1),
            due_date=date(2024, 2, 29),
            items=[LineItem("Retainer", 1, kes("1000"))],
            discount=None,
        )
        paid.record_payment(kes("1160"), "bank_transfer", None, None, NOW)
        for invoice in (current, overdue, draft, paid):
            repo.add(invoice)

    def _numbers(self, invoices):
        return sorted(inv.invoice_number for inv in invoices)

    def test_overdue(self, repo, seeded):
        found = repo.find(InvoiceFilters(status=InvoiceStatus.OVERDUE), TODAY)
        assert self._numbers(found) == ["INV-A-002"]

    def test_pending_excludes_overdue(self, repo, seeded):
        found = repo.find(InvoiceFilters(status=InvoiceStatus.PENDING), TODAY)
        assert self._numbers(found) == ["INV-A-001"]

    def test_amount_and_date_filters(self, repo, seeded):
        found = repo.find(
            InvoiceFilters(min_amount=Decimal("1000"), start_date=date(2024, 1, 1)), TODAY
        )
        assert self._numbers(found) == ["INV-B-002"]

    def test_search_escapes_wildcards(self, repo, seeded):
        found = repo.find(InvoiceFilters(search="b_0"), TODAY)
        assert self._numbers(found) == ["INV-B_001"]

    def test_currency_filter(self, repo, seeded):
        assert repo.find(InvoiceFilters(currency="USD"), TODAY) == []

    def test_list_pages(self, repo, seeded):
        page = repo.list(
            InvoiceFilters(),
            Pagination(page=1, page_size=3, sort_field="total_amount", sort_direction="desc"),
            TODAY,
        )
        assert page.total_count == 4
        assert page.pages == 2
        assert page.items[0].invoice_number == "INV-B-002"
        assert len(page.items) == 3


class TestLedgerSink:
    """Ledger transactions persisted per payment."""

    def test_engine_over_sql(self, session_factory, registered_client, new_invoice):
        engine = LedgerEngine.from_session_factory(session_factory, clock=fixed_clock)
        invoice = engine.create_invoice(new_invoice(), actor_id="user-1")

        engine.apply_payment(invoice.invoice_id, kes("100"), "mpesa", actor_id="cashier")
        engine.apply_payment(invoice.invoice_id, kes("296"), "mpesa", actor_id="cashier")

        stored = engine.get_invoice(invoice.invoice_id)
        assert stored.status == InvoiceStatus.PAID
        transactions = SqlLedgerSink(session_factory).transactions_for(invoice.invoice_id)
        assert [t.amount.amount for t in sorted(transactions, key=lambda t: t.amount.amount)] == [
            Decimal("100.00"),
            Decimal("296.00"),
        ]
        assert {t.actor_id for t in transactions} == {"cashier"}

    def test_engine_rules_over_sql(self, session_factory, registered_client, new_invoice):
        engine = LedgerEngine.from_session_factory(session_factory, clock=fixed_clock)

        with pytest.raises(NotFoundError):
            engine.create_invoice(new_invoice(client_id=uuid4()))

        invoice = engine.create_invoice(new_invoice(invoice_number="INV-SQL-1"))
        with pytest.raises(ValidationError):
            engine.create_invoice(new_invoice(invoice_number="INV-SQL-1"))
        with pytest.raises(InvalidStateError):
            engine.delete_invoice(invoice.invoice_id)

        engine.cancel_invoice(invoice.invoice_id)
        assert engine.get_invoice(invoice.invoice_id).status == InvoiceStatus.CANCELLED
