"""Configuration management for the ledger engine."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ledger_engine.calculators.types import (
    DEFAULT_ALLOWANCES,
    DEFAULT_SCHEDULE,
    AllowanceTable,
    DeductionSchedule,
)
from ledger_engine.money import to_decimal, validate_currency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    host: str
    port: int
    debug: bool
    log_level: str
    default_currency: str
    default_tax_rate: Decimal
    invoice_number_attempts: int
    payment_retry_attempts: int
    payroll_schedule_path: str | None = None
    allowance_table_path: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./ledger_engine.db"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            default_currency=os.getenv("DEFAULT_CURRENCY", "KES"),
            default_tax_rate=Decimal(os.getenv("DEFAULT_TAX_RATE", "16.0")),
            invoice_number_attempts=int(os.getenv("INVOICE_NUMBER_ATTEMPTS", "5")),
            payment_retry_attempts=int(os.getenv("PAYMENT_RETRY_ATTEMPTS", "3")),
            payroll_schedule_path=os.getenv("PAYROLL_SCHEDULE_PATH") or None,
            allowance_table_path=os.getenv("ALLOWANCE_TABLE_PATH") or None,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


def _read_json(path: str) -> dict[str, Any]:
    with Path(path).open(encoding="utf-8") as fh:
        return json.load(fh)


def load_schedule(path: str | None) -> DeductionSchedule:
    """Deduction schedule from a JSON file, or the built-in default."""
    if not path:
        return DEFAULT_SCHEDULE
    logger.info("Loading deduction schedule from %s", path)
    return DeductionSchedule.from_payload(_read_json(path))


def load_allowance_table(path: str | None) -> AllowanceTable:
    """Allowance table from a JSON file, or the built-in default."""
    if not path:
        return DEFAULT_ALLOWANCES
    logger.info("Loading allowance table from %s", path)
    return AllowanceTable.from_payload(_read_json(path))


@dataclass(frozen=True)
class EngineConfig:
    """Behavioral configuration handed to the engine services."""

    default_currency: str = "KES"
    default_tax_rate: Decimal = Decimal("16.0")
    invoice_number_attempts: int = 5
    payment_retry_attempts: int = 3
    deduction_schedule: DeductionSchedule = DEFAULT_SCHEDULE
    allowance_table: AllowanceTable = DEFAULT_ALLOWANCES

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_currency", validate_currency(self.default_currency))
        rate = to_decimal(self.default_tax_rate)
        if not (0 <= rate <= 100):
            raise ValueError(f"Default tax rate must be between 0 and 100, got {rate}")
        object.__setattr__(self, "default_tax_rate", rate)
        if self.invoice_number_attempts < 1:
            raise ValueError("invoice_number_attempts must be at least 1")
        if self.payment_retry_attempts < 1:
            raise ValueError("payment_retry_attempts must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineConfig:
        return cls(
            default_currency=settings.default_currency,
            default_tax_rate=settings.default_tax_rate,
            invoice_number_attempts=settings.invoice_number_attempts,
            payment_retry_attempts=settings.payment_retry_attempts,
            deduction_schedule=load_schedule(settings.payroll_schedule_path),
            allowance_table=load_allowance_table(settings.allowance_table_path),
        )
