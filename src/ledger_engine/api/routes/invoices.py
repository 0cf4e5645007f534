"""Invoice and payment API endpoints."""

from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from ledger_engine.api.dependencies import ActorId, Engine
from ledger_engine.api.schemas import (
    ErrorResponse,
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceUpdate,
    PaymentCreate,
)
from ledger_engine.domain.invoice import Invoice
from ledger_engine.domain.state_machine import InvoiceStatus
from ledger_engine.money import Money
from ledger_engine.repositories.base import MAX_PAGE_SIZE, InvoiceFilters, Pagination

router = APIRouter(prefix="/invoices", tags=["invoices"])

ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def to_response(invoice: Invoice, today: date) -> InvoiceResponse:
    return InvoiceResponse.model_validate(invoice.to_dict(today))


# ============================================================================
# Invoice CRUD
# ============================================================================


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
def create_invoice(engine: Engine, actor_id: ActorId, payload: InvoiceCreate) -> InvoiceResponse:
    """Create an invoice in draft or pending status."""
    invoice = engine.create_invoice(
        payload.to_domain(engine.config.default_currency), actor_id=actor_id
    )
    return to_response(invoice, engine.today())


@router.get("", response_model=InvoiceListResponse, responses=ERRORS)
def list_invoices(
    engine: Engine,
    status_filter: Annotated[InvoiceStatus | None, Query(alias="status")] = None,
    client_id: UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    search: Annotated[str | None, Query(max_length=50)] = None,
    currency: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 20,
    sort_field: str = "created_at",
    sort_direction: str = "desc",
) -> InvoiceListResponse:
    """List invoices. ``status=overdue`` selects unpaid invoices past due."""
    filters = InvoiceFilters(
        status=status_filter,
        client_id=client_id,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        search=search,
        currency=currency,
    )
    pagination = Pagination(
        page=page,
        page_size=page_size,
        sort_field=sort_field,
        sort_direction=sort_direction,
    )
    result = engine.list_invoices(filters, pagination)
    today = engine.today()
    return InvoiceListResponse(
        items=[to_response(inv, today) for inv in result.items],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.get("/{invoice_id}", response_model=InvoiceResponse, responses=ERRORS)
def get_invoice(engine: Engine, invoice_id: UUID) -> InvoiceResponse:
    """Get an invoice with its items and payment history."""
    return to_response(engine.get_invoice(invoice_id), engine.today())


@router.patch("/{invoice_id}", response_model=InvoiceResponse, responses=ERRORS)
def update_invoice(
    engine: Engine, actor_id: ActorId, invoice_id: UUID, payload: InvoiceUpdate
) -> InvoiceResponse:
    """Update items, discount, tax rate, due date or notes."""
    current = engine.get_invoice(invoice_id)
    invoice = engine.update_invoice(
        invoice_id, payload.to_domain(current.currency), actor_id=actor_id
    )
    return to_response(invoice, engine.today())


@router.delete(
    "/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=ERRORS,
)
def delete_invoice(engine: Engine, actor_id: ActorId, invoice_id: UUID) -> Response:
    """Delete a draft invoice."""
    engine.delete_invoice(invoice_id, actor_id=actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Lifecycle
# ============================================================================


@router.post("/{invoice_id}/finalize", response_model=InvoiceResponse, responses=ERRORS)
def finalize_invoice(engine: Engine, actor_id: ActorId, invoice_id: UUID) -> InvoiceResponse:
    """Promote a draft to pending so it can collect payments."""
    return to_response(engine.finalize_invoice(invoice_id, actor_id=actor_id), engine.today())


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse, responses=ERRORS)
def cancel_invoice(engine: Engine, actor_id: ActorId, invoice_id: UUID) -> InvoiceResponse:
    """Cancel an invoice that is not yet paid."""
    return to_response(engine.cancel_invoice(invoice_id, actor_id=actor_id), engine.today())


# ============================================================================
# Payments
# ============================================================================


@router.post(
    "/{invoice_id}/payments",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
def apply_payment(
    engine: Engine, actor_id: ActorId, invoice_id: UUID, payload: PaymentCreate
) -> InvoiceResponse:
    """Apply a payment. Overpayment is rejected, never clamped."""
    currency = payload.currency or engine.get_invoice(invoice_id).currency
    invoice = engine.apply_payment(
        invoice_id,
        Money(payload.amount, currency),
        payload.method,
        reference=payload.reference,
        actor_id=actor_id,
    )
    return to_response(invoice, engine.today())
