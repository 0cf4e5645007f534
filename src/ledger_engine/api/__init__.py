"""HTTP API for the ledger engine."""

from ledger_engine.api.app import create_app

__all__ = ["create_app"]
