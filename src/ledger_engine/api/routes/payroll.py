"""Payroll run API endpoints."""

from fastapi import APIRouter, status

from ledger_engine.api.dependencies import Engine
from ledger_engine.api.schemas import ErrorResponse, PayrollBatchResponse, PayrollRunCreate
from ledger_engine.domain.payroll import PayrollPeriod

router = APIRouter(prefix="/payroll", tags=["payroll"])


@router.post(
    "/runs",
    response_model=PayrollBatchResponse,
    status_code=status.HTTP_200_OK,
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def run_payroll(engine: Engine, payload: PayrollRunCreate) -> PayrollBatchResponse:
    """Compute a payroll batch for the period. The batch is not stored."""
    currency = payload.currency or engine.config.default_currency
    period = PayrollPeriod(month=payload.month, year=payload.year)
    roster = [employee.to_domain(currency) for employee in payload.employees]

    batch = engine.run_payroll(period, roster, currency=currency)
    summary = engine.payroll_summary(batch)

    body = batch.to_dict()
    body["summary"] = summary.to_dict()
    return PayrollBatchResponse.model_validate(body)
