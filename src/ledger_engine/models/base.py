"""Declarative base and shared column helpers for the ledger tables."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, MetaData, Numeric, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Up to 3 minor-unit decimals (BHD, KWD, ...).
MONEY_PRECISION = 14
MONEY_SCALE = 3

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all ORM models.

    UUIDs map to the portable ``Uuid`` type so the same models run on
    PostgreSQL and on SQLite in tests.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map = {
        UUID: Uuid(as_uuid=True),
        datetime: DateTime(timezone=True),
    }


def money_column(nullable: bool = False) -> Mapped[Decimal]:
    return mapped_column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=nullable)


class TimestampMixin:
    """Reference rows record when they were registered."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
