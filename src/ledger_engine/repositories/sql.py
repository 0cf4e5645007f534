"""SQLAlchemy-backed repositories.

Each call runs in its own short transaction from the injected session
factory. Invoice writes are guarded by the ``version`` column: ``save`` only
touches the row when the stored version still equals the one the aggregate
was loaded with.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import and_, false, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload, sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from ledger_engine.domain.invoice import Invoice, LineItem, PaymentMethod, PaymentRecord
from ledger_engine.domain.state_machine import InvoiceStateMachine, InvoiceStatus
from ledger_engine.errors import ConcurrentModificationError, DuplicateInvoiceNumberError
from ledger_engine.events.ledger import LedgerTransaction
from ledger_engine.models.directory import ClientRow, ProjectRow
from ledger_engine.models.invoice import (
    InvoiceItemRow,
    InvoicePaymentRow,
    InvoiceRow,
    LedgerTransactionRow,
)
from ledger_engine.money import Money
from ledger_engine.repositories.base import InvoiceFilters, Page, Pagination

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": InvoiceRow.created_at,
    "updated_at": InvoiceRow.updated_at,
    "issue_date": InvoiceRow.issue_date,
    "due_date": InvoiceRow.due_date,
    "invoice_number": InvoiceRow.invoice_number,
    "total_amount": InvoiceRow.total_amount,
    "status": InvoiceRow.status,
}


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# Row <-> aggregate mapping
# ============================================================================


def _header_values(invoice: Invoice) -> dict[str, Any]:
    return {
        "invoice_number": invoice.invoice_number,
        "client_id": invoice.client_id,
        "project_id": invoice.project_id,
        "issue_date": invoice.issue_date,
        "due_date": invoice.due_date,
        "currency": invoice.currency,
        "tax_rate": invoice.tax_rate,
        "discount": invoice.discount.amount,
        "subtotal": invoice.subtotal.amount,
        "tax_amount": invoice.tax_amount.amount,
        "total_amount": invoice.total_amount.amount,
        "status": invoice.status.value,
        "notes": invoice.notes,
        "created_by": invoice.created_by,
        "paid_at": invoice.paid_at,
        "created_at": invoice.created_at,
        "updated_at": invoice.updated_at,
    }


def _item_rows(invoice: Invoice) -> list[InvoiceItemRow]:
    return [
        InvoiceItemRow(
            position=position,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price.amount,
            tax_rate=item.tax_rate,
        )
        for position, item in enumerate(invoice.items)
    ]


def _payment_row(record: PaymentRecord, sequence: int) -> InvoicePaymentRow:
    return InvoicePaymentRow(
        payment_id=record.payment_id,
        sequence=sequence,
        amount=record.amount.amount,
        method=record.method.value,
        reference=record.reference,
        processed_by=record.processed_by,
        paid_at=record.timestamp,
    )


def invoice_to_row(invoice: Invoice) -> InvoiceRow:
    row = InvoiceRow(invoice_id=invoice.invoice_id, version=invoice.version, **_header_values(invoice))
    row.items = _item_rows(invoice)
    row.payments = [
        _payment_row(record, sequence)
        for sequence, record in enumerate(invoice.payment_history)
    ]
    return row


def row_to_invoice(row: InvoiceRow) -> Invoice:
    currency = row.currency
    return Invoice(
        invoice_id=row.invoice_id,
        invoice_number=row.invoice_number,
        client_id=row.client_id,
        project_id=row.project_id,
        issue_date=row.issue_date,
        due_date=row.due_date,
        currency=currency,
        tax_rate=Decimal(row.tax_rate),
        discount=Money(Decimal(row.discount), currency),
        status=InvoiceStatus(row.status),
        subtotal=Money(Decimal(row.subtotal), currency),
        tax_amount=Money(Decimal(row.tax_amount), currency),
        total_amount=Money(Decimal(row.total_amount), currency),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        notes=row.notes,
        created_by=row.created_by,
        paid_at=_aware(row.paid_at),
        version=row.version,
        _items=[
            LineItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=Money(Decimal(item.unit_price), currency),
                tax_rate=Decimal(item.tax_rate) if item.tax_rate is not None else None,
            )
            for item in row.items
        ],
        _payments=[
            PaymentRecord(
                payment_id=payment.payment_id,
                amount=Money(Decimal(payment.amount), currency),
                method=PaymentMethod(payment.method),
                reference=payment.reference,
                processed_by=payment.processed_by,
                timestamp=_aware(payment.paid_at),
            )
            for payment in row.payments
        ],
    )


# ============================================================================
# Filters
# ============================================================================


def _status_clause(status: InvoiceStatus, today: date) -> ColumnElement[bool]:
    """Translate a status as read on ``today`` into a clause on stored columns."""
    eligible = [s.value for s in InvoiceStateMachine.OVERDUE_ELIGIBLE]
    if status == InvoiceStatus.OVERDUE:
        return and_(InvoiceRow.status.in_(eligible), InvoiceRow.due_date < today)
    if status in InvoiceStateMachine.OVERDUE_ELIGIBLE:
        return and_(InvoiceRow.status == status.value, InvoiceRow.due_date >= today)
    return InvoiceRow.status == status.value


def filter_clauses(filters: InvoiceFilters, today: date) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    if filters.status is not None:
        clauses.append(_status_clause(filters.status, today))
    if filters.statuses:
        clauses.append(or_(false(), *(_status_clause(s, today) for s in filters.statuses)))
    if filters.client_id is not None:
        clauses.append(InvoiceRow.client_id == filters.client_id)
    if filters.start_date is not None:
        clauses.append(InvoiceRow.issue_date >= filters.start_date)
    if filters.end_date is not None:
        clauses.append(InvoiceRow.issue_date <= filters.end_date)
    if filters.min_amount is not None:
        clauses.append(InvoiceRow.total_amount >= filters.min_amount)
    if filters.max_amount is not None:
        clauses.append(InvoiceRow.total_amount <= filters.max_amount)
    if filters.search:
        clauses.append(InvoiceRow.invoice_number.icontains(filters.search, autoescape=True))
    if filters.currency is not None:
        clauses.append(InvoiceRow.currency == filters.currency)
    return clauses


def _with_children(stmt):
    return stmt.options(selectinload(InvoiceRow.items), selectinload(InvoiceRow.payments))


# ============================================================================
# Repositories
# ============================================================================


class SqlInvoiceRepository:
    """Invoice persistence over a relational database."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get(self, invoice_id: UUID) -> Invoice | None:
        with self._session_factory() as session:
            row = session.scalars(
                _with_children(select(InvoiceRow).where(InvoiceRow.invoice_id == invoice_id))
            ).one_or_none()
            return row_to_invoice(row) if row is not None else None

    def add(self, invoice: Invoice) -> None:
        invoice.check_invariants()
        row = invoice_to_row(invoice)
        row.version = 1
        try:
            with self._session_factory.begin() as session:
                session.add(row)
        except IntegrityError as exc:
            if self._number_taken(invoice.invoice_number):
                raise DuplicateInvoiceNumberError(invoice.invoice_number) from exc
            raise
        invoice.version = 1

    def save(self, invoice: Invoice) -> None:
        invoice.check_invariants()
        with self._session_factory.begin() as session:
            result = session.execute(
                update(InvoiceRow)
                .where(
                    InvoiceRow.invoice_id == invoice.invoice_id,
                    InvoiceRow.version == invoice.version,
                )
                .values(version=invoice.version + 1, **_header_values(invoice))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConcurrentModificationError(invoice.invoice_id, invoice.version)

            row = session.scalars(
                _with_children(
                    select(InvoiceRow)
                    .where(InvoiceRow.invoice_id == invoice.invoice_id)
                    .with_for_update()
                )
            ).one()
            self._sync_items(session, row, invoice)
            self._append_payments(row, invoice)
        invoice.version += 1

    def delete(self, invoice: Invoice) -> None:
        with self._session_factory.begin() as session:
            row = session.get(InvoiceRow, invoice.invoice_id, with_for_update=True)
            if row is None or row.version != invoice.version:
                raise ConcurrentModificationError(invoice.invoice_id, invoice.version)
            session.delete(row)

    def find(self, filters: InvoiceFilters, today: date) -> list[Invoice]:
        stmt = _with_children(select(InvoiceRow).where(*filter_clauses(filters, today)))
        with self._session_factory() as session:
            return [row_to_invoice(row) for row in session.scalars(stmt)]

    def list(self, filters: InvoiceFilters, pagination: Pagination, today: date) -> Page:
        base = select(InvoiceRow).where(*filter_clauses(filters, today))
        column = SORT_COLUMNS[pagination.sort_field]
        ordering = column.desc() if pagination.descending else column.asc()

        with self._session_factory() as session:
            total = session.scalar(select(func.count()).select_from(base.subquery()))
            rows = session.scalars(
                _with_children(base)
                .order_by(ordering, InvoiceRow.invoice_id)
                .offset(pagination.offset)
                .limit(pagination.page_size)
            ).all()
            items = [row_to_invoice(row) for row in rows]

        return Page(
            items=items,
            total_count=total or 0,
            page=pagination.page,
            page_size=pagination.page_size,
        )

    def _number_taken(self, invoice_number: str) -> bool:
        with self._session_factory() as session:
            found = session.scalar(
                select(InvoiceRow.invoice_id).where(InvoiceRow.invoice_number == invoice_number)
            )
            return found is not None

    @staticmethod
    def _sync_items(session: Session, row: InvoiceRow, invoice: Invoice) -> None:
        fresh = _item_rows(invoice)
        current = [
            (item.description, item.quantity, Decimal(item.unit_price), item.tax_rate)
            for item in row.items
        ]
        wanted = [
            (item.description, item.quantity, Decimal(item.unit_price), item.tax_rate)
            for item in fresh
        ]
        if current == wanted:
            return
        # Positions are unique per invoice: flush the orphan deletes first.
        row.items.clear()
        session.flush()
        row.items.extend(fresh)

    @staticmethod
    def _append_payments(row: InvoiceRow, invoice: Invoice) -> None:
        stored = {payment.payment_id for payment in row.payments}
        history = invoice.payment_history
        if len(history) < len(stored):
            raise ConcurrentModificationError(invoice.invoice_id, invoice.version)
        for sequence, record in enumerate(history):
            if record.payment_id not in stored:
                row.payments.append(_payment_row(record, sequence))


class SqlClientRepository:
    """Client lookups against the ``client`` table."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def exists(self, client_id: UUID) -> bool:
        with self._session_factory() as session:
            return session.get(ClientRow, client_id) is not None

    def register(self, client_id: UUID, company_name: str) -> None:
        with self._session_factory.begin() as session:
            session.add(ClientRow(client_id=client_id, company_name=company_name))


class SqlProjectRepository:
    """Project lookups against the ``project`` table."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def exists(self, project_id: UUID) -> bool:
        with self._session_factory() as session:
            return session.get(ProjectRow, project_id) is not None

    def register(self, project_id: UUID, client_id: UUID, project_name: str) -> None:
        with self._session_factory.begin() as session:
            session.add(
                ProjectRow(project_id=project_id, client_id=client_id, project_name=project_name)
            )


class SqlLedgerSink:
    """Writes ledger transactions to the ``ledger_transaction`` table."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def record(self, transaction: LedgerTransaction) -> None:
        with self._session_factory.begin() as session:
            session.add(
                LedgerTransactionRow(
                    transaction_id=transaction.transaction_id,
                    transaction_type=transaction.transaction_type,
                    amount=transaction.amount.amount,
                    currency=transaction.amount.currency,
                    invoice_id=transaction.invoice_id,
                    client_id=transaction.client_id,
                    payment_id=transaction.payment_id,
                    method=transaction.method,
                    reference=transaction.reference,
                    actor_id=transaction.actor_id,
                    recorded_at=transaction.recorded_at,
                )
            )
        logger.debug("Ledger transaction %s stored", transaction.transaction_id)

    def transactions_for(self, invoice_id: UUID) -> list[LedgerTransaction]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(LedgerTransactionRow)
                .where(LedgerTransactionRow.invoice_id == invoice_id)
                .order_by(LedgerTransactionRow.recorded_at)
            ).all()
            return [
                LedgerTransaction(
                    transaction_id=row.transaction_id,
                    transaction_type=row.transaction_type,
                    amount=Money(Decimal(row.amount), row.currency),
                    invoice_id=row.invoice_id,
                    client_id=row.client_id,
                    payment_id=row.payment_id,
                    method=row.method,
                    reference=row.reference,
                    actor_id=row.actor_id,
                    recorded_at=_aware(row.recorded_at),
                )
                for row in rows
            ]
