"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ledger_engine.domain.invoice import InvoiceUpdatePatch, LineItem, NewInvoice
from ledger_engine.domain.payroll import EmployeeSnapshot
from ledger_engine.domain.state_machine import InvoiceStatus
from ledger_engine.money import Money


class RequestModel(BaseModel):
    """Request bodies reject unknown fields."""

    model_config = ConfigDict(extra="forbid")


# ============================================================================
# Invoice requests
# ============================================================================


class LineItemIn(RequestModel):
    """A billed line."""

    description: str
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal | None = None

    def to_domain(self, currency: str) -> LineItem:
        return LineItem(
            description=self.description,
            quantity=self.quantity,
            unit_price=Money(self.unit_price, currency),
            tax_rate=self.tax_rate,
        )


class InvoiceCreate(RequestModel):
    """Schema for creating an invoice."""

    client_id: UUID
    project_id: UUID | None = None
    items: list[LineItemIn]
    issue_date: date
    due_date: date
    currency: str | None = None
    tax_rate: Decimal | None = None
    discount: Decimal | None = None
    invoice_number: str | None = None
    status: Literal["draft", "pending"] = "pending"
    notes: str | None = None

    def to_domain(self, default_currency: str) -> NewInvoice:
        currency = self.currency or default_currency
        return NewInvoice(
            client_id=self.client_id,
            project_id=self.project_id,
            items=[item.to_domain(currency) for item in self.items],
            issue_date=self.issue_date,
            due_date=self.due_date,
            currency=currency,
            tax_rate=self.tax_rate,
            discount=Money(self.discount, currency) if self.discount is not None else None,
            invoice_number=self.invoice_number,
            status=InvoiceStatus(self.status),
            notes=self.notes,
        )


class InvoiceUpdate(RequestModel):
    """Closed set of updatable fields. Omitted fields stay unchanged."""

    items: list[LineItemIn] | None = None
    discount: Decimal | None = None
    tax_rate: Decimal | None = None
    due_date: date | None = None
    notes: str | None = None

    def to_domain(self, currency: str) -> InvoiceUpdatePatch:
        return InvoiceUpdatePatch(
            items=[item.to_domain(currency) for item in self.items] if self.items is not None else None,
            discount=Money(self.discount, currency) if self.discount is not None else None,
            tax_rate=self.tax_rate,
            due_date=self.due_date,
            notes=self.notes,
        )


class PaymentCreate(RequestModel):
    """Schema for applying a payment. Currency defaults to the invoice's."""

    amount: Decimal
    method: str
    currency: str | None = None
    reference: str | None = Field(default=None, max_length=100)


# ============================================================================
# Invoice responses
# ============================================================================


class LineItemResponse(BaseModel):
    description: str
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal | None = None
    line_total: Decimal


class PaymentResponse(BaseModel):
    payment_id: UUID
    amount: Decimal
    method: str
    reference: str | None = None
    processed_by: str | None = None
    timestamp: datetime


class InvoiceResponse(BaseModel):
    """Schema for invoice response. ``status`` is the status as read today."""

    invoice_id: UUID
    invoice_number: str
    client_id: UUID
    project_id: UUID | None = None
    issue_date: date
    due_date: date
    currency: str
    tax_rate: Decimal
    status: InvoiceStatus
    items: list[LineItemResponse]
    subtotal: Decimal
    tax_amount: Decimal
    discount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    payment_history: list[PaymentResponse]
    notes: str | None = None
    created_by: str | None = None
    version: int


class InvoiceListResponse(BaseModel):
    """Schema for listing invoices."""

    items: list[InvoiceResponse]
    total_count: int
    page: int
    page_size: int
    pages: int


# ============================================================================
# Payroll
# ============================================================================


class EmployeeIn(RequestModel):
    """Roster row supplied with a payroll run."""

    employee_id: UUID
    employee_code: str
    full_name: str
    basic_salary: Decimal
    status: str = "active"
    hire_date: date | None = None
    department: str | None = None
    role: str | None = None

    def to_domain(self, currency: str) -> EmployeeSnapshot:
        return EmployeeSnapshot(
            employee_id=self.employee_id,
            employee_code=self.employee_code,
            full_name=self.full_name,
            basic_salary=Money(self.basic_salary, currency),
            status=self.status,
            hire_date=self.hire_date,
            department=self.department,
            role=self.role,
        )


class PayrollRunCreate(RequestModel):
    """Schema for computing a payroll batch."""

    month: int = Field(ge=1, le=12)
    year: int
    currency: str | None = None
    employees: list[EmployeeIn]


class AllowancesResponse(BaseModel):
    housing: Decimal
    transport: Decimal
    medical: Decimal
    other: Decimal
    total: Decimal


class DeductionsResponse(BaseModel):
    tax: Decimal
    statutory_a: Decimal
    statutory_b: Decimal
    total: Decimal


class PayrollEntryResponse(BaseModel):
    employee_id: UUID
    employee_code: str
    employee_name: str
    department: str | None = None
    role: str | None = None
    basic_salary: Decimal
    allowances: AllowancesResponse
    deductions: DeductionsResponse
    gross_salary: Decimal
    net_salary: Decimal
    has_negative_net: bool


class ControlTotalsResponse(BaseModel):
    total_basic: Decimal
    total_allowances: Decimal
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    employee_count: int


class PayrollSummaryResponse(BaseModel):
    average_net: Decimal
    highest_net: Decimal
    lowest_net: Decimal
    negative_net_count: int


class PayrollBatchResponse(BaseModel):
    """Computed batch. Nothing is stored server-side."""

    period: str
    generated_at: datetime
    currency: str
    entries: list[PayrollEntryResponse]
    control_totals: ControlTotalsResponse
    summary: PayrollSummaryResponse


# ============================================================================
# Reports
# ============================================================================


class SalesSummaryResponse(BaseModel):
    total_sales: Decimal
    total_tax: Decimal
    subtotal: Decimal
    amount_collected: Decimal
    invoice_count: int


class StatusBreakdownResponse(BaseModel):
    status: InvoiceStatus
    count: int
    total: Decimal


class PeriodBucketResponse(BaseModel):
    period: date
    total: Decimal
    count: int


class ClientRankingResponse(BaseModel):
    client_id: UUID
    total_spent: Decimal
    invoice_count: int


class FinancialReportResponse(BaseModel):
    currency: str
    start_date: date | None = None
    end_date: date | None = None
    group_by: str
    summary: SalesSummaryResponse
    by_status: list[StatusBreakdownResponse]
    trends: list[PeriodBucketResponse]
    top_clients: list[ClientRankingResponse]


class ErrorResponse(BaseModel):
    """Error body for every failure."""

    detail: str
    code: str
