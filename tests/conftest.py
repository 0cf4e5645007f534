"""Pytest fixtures for ledger engine tests."""

from __future__ import annotations

import random
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Iterator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from ledger_engine.config import EngineConfig
from ledger_engine.database import create_engine_from_url, init_schema, make_session_factory
from ledger_engine.domain.invoice import LineItem, NewInvoice
from ledger_engine.domain.payroll import EmployeeSnapshot
from ledger_engine.domain.state_machine import InvoiceStatus
from ledger_engine.engine import LedgerEngine
from ledger_engine.money import Money

# Fixed "now" so derived overdue status is deterministic
NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)
TODAY = NOW.date()


def fixed_clock() -> datetime:
    return NOW


def kes(value: str) -> Money:
    return Money.of(value, "KES")


def standard_items(currency: str = "KES") -> list[LineItem]:
    """2 x 100.00 + 1 x 150.00 = 350.00."""
    return [
        LineItem("Website design", 2, Money.of("100.00", currency)),
        LineItem("Hosting (1 year)", 1, Money.of("150.00", currency)),
    ]


@pytest.fixture
def client_id() -> UUID:
    return uuid4()


@pytest.fixture
def engine(client_id: UUID) -> LedgerEngine:
    """In-memory engine with one registered client and a pinned clock."""
    ledger = LedgerEngine.in_memory(
        EngineConfig(default_currency="KES", default_tax_rate=Decimal("16.0")),
        clock=fixed_clock,
        rng=random.Random(42),
    )
    ledger.clients.register(client_id)
    return ledger


@pytest.fixture
def new_invoice(client_id: UUID) -> Callable[..., NewInvoice]:
    """Factory for invoice input: 350.00 subtotal, 16% tax, 10.00 discount -> 396.00."""

    def _make(**overrides) -> NewInvoice:
        values = {
            "client_id": client_id,
            "items": standard_items(),
            "issue_date": date(2024, 3, 1),
            "due_date": date(2024, 3, 31),
            "currency": "KES",
            "tax_rate": Decimal("16"),
            "discount": kes("10.00"),
            "status": InvoiceStatus.PENDING,
        }
        values.update(overrides)
        return NewInvoice(**values)

    return _make


@pytest.fixture
def employee() -> Callable[..., EmployeeSnapshot]:
    """Factory for roster rows hired well before any test period."""

    def _make(code: str = "EMP-001", salary: str = "30000", **overrides) -> EmployeeSnapshot:
        values = {
            "employee_id": uuid4(),
            "employee_code": code,
            "full_name": f"Employee {code}",
            "basic_salary": kes(salary),
            "status": "active",
            "hire_date": date(2023, 1, 1),
            "department": "development",
            "role": None,
        }
        values.update(overrides)
        return EmployeeSnapshot(**values)

    return _make


@pytest.fixture
def session_factory() -> Iterator[sessionmaker[Session]]:
    """Fresh in-memory SQLite database per test."""
    db_engine = create_engine_from_url("sqlite://")
    init_schema(db_engine)
    yield make_session_factory(db_engine)
    db_engine.dispose()
