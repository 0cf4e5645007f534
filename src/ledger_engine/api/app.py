"""FastAPI application factory."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from ledger_engine.api.routes import health_router, invoices_router, payroll_router, reports_router
from ledger_engine.config import EngineConfig, Settings, get_settings
from ledger_engine.database import create_engine_from_url, init_schema, make_session_factory
from ledger_engine.engine import LedgerEngine
from ledger_engine.errors import (
    AmountExceedsBalance,
    ConcurrentModificationError,
    CurrencyMismatch,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS = (
    (AmountExceedsBalance, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (CurrencyMismatch, status.HTTP_400_BAD_REQUEST),
)


def status_for(exc: LedgerError) -> int:
    for kind, code in ERROR_STATUS:
        if isinstance(exc, kind):
            return code
    return status.HTTP_400_BAD_REQUEST


def _error(status_code: int, detail: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def create_app(
    engine: LedgerEngine | None = None,
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Without an ``engine`` one is built over the SQL repositories using the
    database named in ``settings`` (environment by default).
    """
    settings = settings or get_settings()
    if engine is None:
        db_engine = create_engine_from_url(settings.database_url, echo=settings.debug)
        init_schema(db_engine)
        session_factory = make_session_factory(db_engine)
        engine = LedgerEngine.from_session_factory(
            session_factory, EngineConfig.from_settings(settings)
        )

    app = FastAPI(
        title="Ledger Engine API",
        description="Invoicing, payment reconciliation and payroll",
        version="0.1.0",
    )
    app.state.engine = engine
    app.state.session_factory = session_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        """Map engine error kinds to status codes."""
        return _error(status_for(exc), exc.message, exc.code)

    @app.exception_handler(ConcurrentModificationError)
    async def conflict_handler(
        request: Request, exc: ConcurrentModificationError
    ) -> JSONResponse:
        """Retries exhausted against a busy invoice."""
        logger.warning("Giving up on %s %s: %s", request.method, request.url.path, exc)
        return _error(
            status.HTTP_409_CONFLICT,
            "The invoice was modified concurrently; retry the request",
            "CONCURRENT_MODIFICATION",
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed request bodies and parameters."""
        messages = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY, "; ".join(messages), "VALIDATION_ERROR"
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "INTERNAL_ERROR",
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(invoices_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")
    app.include_router(reports_router, prefix="/api/v1")

    return app
