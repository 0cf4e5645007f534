"""Invoice, line item, payment and ledger transaction tables."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.models.base import Base, money_column


class InvoiceRow(Base):
    """Persisted invoice aggregate root."""

    __tablename__ = "invoice"

    invoice_id: Mapped[UUID] = mapped_column(primary_key=True)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.client_id", ondelete="RESTRICT"),
        nullable=False,
    )
    project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("project.project_id", ondelete="RESTRICT"),
        nullable=True,
    )
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    discount: Mapped[Decimal] = money_column()
    subtotal: Mapped[Decimal] = money_column()
    tax_amount: Mapped[Decimal] = money_column()
    total_amount: Mapped[Decimal] = money_column()
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("invoice_number", name="invoice_number_unique"),
        CheckConstraint(
            "status IN ('draft', 'pending', 'partially_paid', 'paid', 'cancelled')",
            name="invoice_status_check",
        ),
        CheckConstraint("due_date >= issue_date", name="invoice_dates_check"),
        CheckConstraint("total_amount >= 0", name="invoice_total_non_negative"),
        CheckConstraint("discount >= 0", name="invoice_discount_non_negative"),
        Index("ix_invoice_status", "status"),
        Index("ix_invoice_due_date", "due_date"),
        Index("ix_invoice_client_id", "client_id"),
    )

    items: Mapped[list[InvoiceItemRow]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItemRow.position",
    )
    payments: Mapped[list[InvoicePaymentRow]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePaymentRow.sequence",
    )


class InvoiceItemRow(Base):
    """Line item, ordered by ``position`` within its invoice."""

    __tablename__ = "invoice_item"

    invoice_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice.invoice_id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = money_column()
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    __table_args__ = (
        UniqueConstraint("invoice_id", "position", name="invoice_item_position_unique"),
        CheckConstraint("quantity >= 1", name="invoice_item_quantity_check"),
        CheckConstraint("unit_price >= 0", name="invoice_item_price_check"),
    )

    invoice: Mapped[InvoiceRow] = relationship(back_populates="items")


class InvoicePaymentRow(Base):
    """Applied payment. Rows are only ever inserted."""

    __tablename__ = "invoice_payment"

    payment_id: Mapped[UUID] = mapped_column(primary_key=True)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice.invoice_id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = money_column()
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("invoice_id", "sequence", name="invoice_payment_sequence_unique"),
        CheckConstraint("amount > 0", name="invoice_payment_amount_positive"),
        CheckConstraint(
            "method IN ('mpesa', 'bank_transfer', 'card', 'cash')",
            name="invoice_payment_method_check",
        ),
    )

    invoice: Mapped[InvoiceRow] = relationship(back_populates="payments")


class LedgerTransactionRow(Base):
    """Append-only bookkeeping record written by the ledger sink."""

    __tablename__ = "ledger_transaction"

    transaction_id: Mapped[UUID] = mapped_column(primary_key=True)
    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = money_column()
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    invoice_id: Mapped[UUID] = mapped_column(nullable=False)
    client_id: Mapped[UUID] = mapped_column(nullable=False)
    payment_id: Mapped[UUID] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    actor_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("payment_id", name="ledger_transaction_payment_unique"),
    )
