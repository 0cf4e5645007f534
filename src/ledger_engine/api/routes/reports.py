"""Financial report API endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Query

from ledger_engine.api.dependencies import Engine
from ledger_engine.api.schemas import (
    ClientRankingResponse,
    ErrorResponse,
    FinancialReportResponse,
    PeriodBucketResponse,
    SalesSummaryResponse,
    StatusBreakdownResponse,
)
from ledger_engine.services.reporting import DEFAULT_TOP_CLIENTS, ReportGrouping

router = APIRouter(
    prefix="/reports",
    tags=["reports"],
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)

Currency = Annotated[str | None, Query(min_length=3, max_length=3)]
Limit = Annotated[int, Query(ge=1, le=100)]


@router.get("/financial", response_model=FinancialReportResponse)
def financial_report(
    engine: Engine,
    currency: Currency = None,
    start_date: date | None = None,
    end_date: date | None = None,
    group_by: ReportGrouping = ReportGrouping.MONTH,
    limit: Limit = DEFAULT_TOP_CLIENTS,
) -> FinancialReportResponse:
    """Sales summary, status breakdown, trends and top clients in one call."""
    report = engine.financial_report(currency, start_date, end_date, group_by, limit)
    return FinancialReportResponse.model_validate(report.to_dict())


@router.get("/sales-summary", response_model=SalesSummaryResponse)
def sales_summary(
    engine: Engine,
    currency: Currency = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> SalesSummaryResponse:
    summary = engine.sales_summary(currency, start_date, end_date)
    return SalesSummaryResponse.model_validate(summary.to_dict())


@router.get("/sales-by-status", response_model=list[StatusBreakdownResponse])
def sales_by_status(
    engine: Engine,
    currency: Currency = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[StatusBreakdownResponse]:
    rows = engine.sales_by_status(currency, start_date, end_date)
    return [StatusBreakdownResponse.model_validate(row.to_dict()) for row in rows]


@router.get("/trends", response_model=list[PeriodBucketResponse])
def sales_trends(
    engine: Engine,
    currency: Currency = None,
    start_date: date | None = None,
    end_date: date | None = None,
    group_by: ReportGrouping = ReportGrouping.MONTH,
) -> list[PeriodBucketResponse]:
    rows = engine.sales_by_period(currency, start_date, end_date, group_by)
    return [PeriodBucketResponse.model_validate(row.to_dict()) for row in rows]


@router.get("/top-clients", response_model=list[ClientRankingResponse])
def top_clients(
    engine: Engine,
    currency: Currency = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: Limit = DEFAULT_TOP_CLIENTS,
) -> list[ClientRankingResponse]:
    rows = engine.top_clients(currency, start_date, end_date, limit)
    return [ClientRankingResponse.model_validate(row.to_dict()) for row in rows]
