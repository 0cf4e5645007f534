"""Tests for invoice lifecycle operations through the engine."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import fixed_clock, kes
from ledger_engine.config import EngineConfig
from ledger_engine.domain.invoice import InvoiceUpdatePatch, LineItem
from ledger_engine.domain.state_machine import InvoiceStatus
from ledger_engine.engine import LedgerEngine
from ledger_engine.errors import InvalidStateError, NotFoundError, ValidationError
from ledger_engine.events.types import (
    InvoiceCancelled,
    InvoiceCreated,
    InvoiceDeleted,
    InvoiceFinalized,
    InvoiceUpdated,
)
from ledger_engine.repositories.base import InvoiceFilters, Pagination


class ScriptedRng:
    """Stands in for random.Random; ``randrange`` replays fixed values."""

    def __init__(self, *values: int, repeat_last: bool = False):
        self._values = list(values)
        self._repeat_last = repeat_last

    def randrange(self, stop: int) -> int:
        if len(self._values) == 1 and self._repeat_last:
            return self._values[0]
        return self._values.pop(0)


@pytest.fixture
def events(engine):
    captured = []
    engine.emitter.on_all(captured.append)
    return captured


class TestCreateInvoice:
    """Test invoice creation."""

    def test_create_pending(self, engine, new_invoice, events):
        invoice = engine.create_invoice(new_invoice(), actor_id="user-1")

        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.total_amount == kes("396.00")
        assert invoice.payment_history == ()
        assert invoice.created_by == "user-1"
        assert invoice.version == 1
        assert invoice.invoice_number.startswith("INV-202403-")
        assert engine.get_invoice(invoice.invoice_id).total_amount == kes("396.00")

        assert len(events) == 1
        assert isinstance(events[0], InvoiceCreated)
        assert events[0].metadata.actor_id == "user-1"
        assert events[0].total_amount == Decimal("396.00")

    def test_defaults_from_config(self, engine, new_invoice):
        invoice = engine.create_invoice(new_invoice(currency=None, tax_rate=None))
        assert invoice.currency == "KES"
        assert invoice.tax_rate == Decimal("16.0")

    def test_create_draft(self, engine, new_invoice):
        invoice = engine.create_invoice(new_invoice(status=InvoiceStatus.DRAFT))
        assert invoice.status == InvoiceStatus.DRAFT

    def test_unknown_client(self, engine, new_invoice):
        with pytest.raises(NotFoundError) as exc_info:
            engine.create_invoice(new_invoice(client_id=uuid4()))
        assert exc_info.value.entity == "Client"

    def test_unknown_project(self, engine, new_invoice):
        with pytest.raises(NotFoundError) as exc_info:
            engine.create_invoice(new_invoice(project_id=uuid4()))
        assert exc_info.value.entity == "Project"

    def test_known_project(self, engine, new_invoice):
        project_id = uuid4()
        engine.projects.register(project_id)
        invoice = engine.create_invoice(new_invoice(project_id=project_id))
        assert invoice.project_id == project_id

    def test_invalid_currency(self, engine, new_invoice):
        with pytest.raises(ValidationError):
            engine.create_invoice(new_invoice(currency="kes"))

    def test_invalid_tax_rate(self, engine, new_invoice):
        with pytest.raises(ValidationError):
            engine.create_invoice(new_invoice(tax_rate=Decimal("-1")))

    def test_duplicate_supplied_number(self, engine, new_invoice):
        engine.create_invoice(new_invoice(invoice_number="INV-CUSTOM-1"))
        with pytest.raises(ValidationError) as exc_info:
            engine.create_invoice(new_invoice(invoice_number="INV-CUSTOM-1"))
        assert exc_info.value.field == "invoice_number"


class TestInvoiceNumberAllocation:
    """Generated numbers retry on collision."""

    def _engine(self, client_id, rng, attempts=5) -> LedgerEngine:
        ledger = LedgerEngine.in_memory(
            EngineConfig(invoice_number_attempts=attempts), clock=fixed_clock, rng=rng
        )
        ledger.clients.register(client_id)
        return ledger

    def test_collision_retries_with_fresh_number(self, client_id, new_invoice):
        ledger = self._engine(client_id, ScriptedRng(5, 5, 6))

        first = ledger.create_invoice(new_invoice())
        second = ledger.create_invoice(new_invoice())

        assert first.invoice_number == "INV-202403-005"
        assert second.invoice_number == "INV-202403-006"

    def test_exhausted_attempts(self, client_id, new_invoice):
        ledger = self._engine(client_id, ScriptedRng(5, repeat_last=True), attempts=2)
        ledger.create_invoice(new_invoice())

        with pytest.raises(ValidationError, match="unique invoice number"):
            ledger.create_invoice(new_invoice())
        assert ledger.list_invoices().total_count == 1


class TestUpdateInvoice:
    """Test the closed update patch through the service."""

    def test_items_recompute_totals(self, engine, new_invoice, events):
        invoice = engine.create_invoice(new_invoice())
        patch = InvoiceUpdatePatch(items=[LineItem("Audit", 1, kes("500.00"))])

        updated = engine.update_invoice(invoice.invoice_id, patch, actor_id="user-2")

        assert updated.total_amount == kes("570.00")
        assert updated.version == 2
        assert engine.get_invoice(invoice.invoice_id).total_amount == kes("570.00")
        assert isinstance(events[-1], InvoiceUpdated)
        assert events[-1].version == 2

    def test_paid_invoice_rejected(self, engine, new_invoice):
        invoice = engine.create_invoice(new_invoice())
        engine.apply_payment(invoice.invoice_id, kes("396"), "mpesa")

        with pytest.raises(InvalidStateError):
            engine.update_invoice(invoice.invoice_id, InvoiceUpdatePatch(notes="late"))

    def test_total_below_paid_leaves_invoice_untouched(self, engine, new_invoice):
        invoice = engine.create_invoice(new_invoice())
        engine.apply_payment(invoice.invoice_id, kes("300"), "cash")

        with pytest.raises(ValidationError):
            engine.update_invoice(
                invoice.invoice_id,
                InvoiceUpdatePatch(items=[LineItem("Smaller", 1, kes("50"))]),
            )
        stored = engine.get_invoice(invoice.invoice_id)
        assert stored.total_amount == kes("396.00")
        assert stored.version == 2

    def test_missing_invoice(self, engine):
        with pytest.raises(NotFoundError):
            engine.update_invoice(uuid4(), InvoiceUpdatePatch(notes="x"))


class TestLifecycleOperations:
    """Finalize, cancel and delete."""

    def test_finalize_draft(self, engine, new_invoice, events):
        draft = engine.create_invoice(new_invoice(status=InvoiceStatus.DRAFT))
        invoice = engine.finalize_invoice(draft.invoice_id)

        assert invoice.status == InvoiceStatus.PENDING
        assert isinstance(events[-1], InvoiceFinalized)

    def test_cancel_pending(self, engine, new_invoice, events):
        invoice = engine.create_invoice(new_invoice())
        cancelled = engine.cancel_invoice(invoice.invoice_id, actor_id="admin")

        assert cancelled.status == InvoiceStatus.CANCELLED
        assert isinstance(events[-1], InvoiceCancelled)
        assert events[-1].previous_status == "pending"

    def test_cancel_is_terminal(self, engine, new_invoice):
        invoice = engine.create_invoice(new_invoice())
        engine.cancel_invoice(invoice.invoice_id)
        with pytest.raises(InvalidStateError):
            engine.cancel_invoice(invoice.invoice_id)

    def test_delete_draft(self, engine, new_invoice, events):
        draft = engine.create_invoice(new_invoice(status=InvoiceStatus.DRAFT))
        engine.delete_invoice(draft.invoice_id)

        with pytest.raises(NotFoundError):
            engine.get_invoice(draft.invoice_id)
        assert isinstance(events[-1], InvoiceDeleted)

    def test_deleted_number_can_be_reused(self, engine, new_invoice):
        draft = engine.create_invoice(
            new_invoice(status=InvoiceStatus.DRAFT, invoice_number="INV-REUSE")
        )
        engine.delete_invoice(draft.invoice_id)
        assert engine.create_invoice(new_invoice(invoice_number="INV-REUSE"))

    @pytest.mark.parametrize("action", [None, "100", "396", "cancel"])
    def test_delete_non_draft_rejected(self, engine, new_invoice, action):
        invoice = engine.create_invoice(new_invoice())
        if action == "cancel":
            engine.cancel_invoice(invoice.invoice_id)
        elif action:
            engine.apply_payment(invoice.invoice_id, kes(action), "cash")

        with pytest.raises(InvalidStateError):
            engine.delete_invoice(invoice.invoice_id)
        assert engine.get_invoice(invoice.invoice_id)

    def test_delete_missing(self, engine):
        with pytest.raises(NotFoundError):
            engine.delete_invoice(uuid4())


class TestListInvoices:
    """Filtering, derived overdue and pagination."""

    @pytest.fixture
    def seeded(self, engine, new_invoice, client_id):
        other_client = uuid4()
        engine.clients.register(other_client)
        created = {
            "current": engine.create_invoice(new_invoice(invoice_number="INV-A-001")),
            "overdue": engine.create_invoice(
                new_invoice(invoice_number="INV-A-002", due_date=date(2024, 3, 10))
            ),
            "draft": engine.create_invoice(
                new_invoice(
                    invoice_number="INV-B-001",
                    status=InvoiceStatus.DRAFT,
                    due_date=date(2024, 3, 2),
                )
            ),
            "other": engine.create_invoice(
                new_invoice(
                    invoice_number="INV-B-002",
                    client_id=other_client,
                    issue_date=date(2024, 2, 1),
                    due_date=date(2024, 2, 29),
                    items=[LineItem("Retainer", 1, kes("1000"))],
                    discount=None,
                )
            ),
        }
        engine.apply_payment(created["other"].invoice_id, kes("1160"), "bank_transfer")
        return created

    def _numbers(self, page):
        return sorted(inv.invoice_number for inv in page.items)

    def test_overdue_is_derived(self, engine, seeded):
        page = engine.list_invoices(InvoiceFilters(status=InvoiceStatus.OVERDUE))
        assert self._numbers(page) == ["INV-A-002"]

    def test_pending_excludes_overdue(self, engine, seeded):
        page = engine.list_invoices(InvoiceFilters(status=InvoiceStatus.PENDING))
        assert self._numbers(page) == ["INV-A-001"]

    def test_draft_past_due_is_not_overdue(self, engine, seeded):
        page = engine.list_invoices(InvoiceFilters(status=InvoiceStatus.DRAFT))
        assert self._numbers(page) == ["INV-B-001"]

    def test_client_filter(self, engine, seeded, client_id):
        page = engine.list_invoices(InvoiceFilters(client_id=client_id))
        assert page.total_count == 3

    def test_issue_date_range(self, engine, seeded):
        page = engine.list_invoices(
            InvoiceFilters(start_date=date(2024, 2, 1), end_date=date(2024, 2, 28))
        )
        assert self._numbers(page) == ["INV-B-002"]

    def test_amount_range(self, engine, seeded):
        page = engine.list_invoices(InvoiceFilters(min_amount=Decimal("1000")))
        assert self._numbers(page) == ["INV-B-002"]
        page = engine.list_invoices(InvoiceFilters(max_amount=Decimal("396.00")))
        assert page.total_count == 3

    def test_search_is_case_insensitive(self, engine, seeded):
        page = engine.list_invoices(InvoiceFilters(search="inv-b"))
        assert self._numbers(page) == ["INV-B-001", "INV-B-002"]

    def test_pagination(self, engine, seeded):
        pagination = Pagination(
            page=2, page_size=3, sort_field="invoice_number", sort_direction="asc"
        )
        page = engine.list_invoices(InvoiceFilters(), pagination)

        assert page.total_count == 4
        assert page.pages == 2
        assert page.page == 2
        assert [inv.invoice_number for inv in page.items] == ["INV-B-002"]

    def test_sort_descending_by_total(self, engine, seeded):
        page = engine.list_invoices(
            pagination=Pagination(sort_field="total_amount", sort_direction="desc")
        )
        assert page.items[0].invoice_number == "INV-B-002"

    def test_empty_result(self, engine):
        page = engine.list_invoices()
        assert page.items == []
        assert page.total_count == 0
        assert page.pages == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"page": 0},
            {"page_size": 0},
            {"page_size": 101},
            {"sort_field": "client_id; drop table"},
            {"sort_direction": "sideways"},
        ],
    )
    def test_invalid_pagination(self, kwargs):
        with pytest.raises(ValidationError):
            Pagination(**kwargs)
