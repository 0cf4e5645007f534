"""Repository contracts and their in-memory and SQL implementations."""

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

__all__ = [
    "ClientRepository",
    "InMemoryClientRepository",
    "InMemoryInvoiceRepository",
    "InMemoryLedgerSink",
    "InMemoryProjectRepository",
    "InvoiceFilters",
    "InvoiceRepository",
    "LedgerSink",
    "Page",
    "Pagination",
    "ProjectRepository",
    "SqlClientRepository",
    "SqlInvoiceRepository",
    "SqlLedgerSink",
    "SqlProjectRepository",
]
