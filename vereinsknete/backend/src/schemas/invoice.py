"""Invoice schemas."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, model_validator

from vereinsknete.backend.src.models import InvoiceStatus

from .line_item import InvoiceLineItemRead


class InvoiceGenerateRequest(BaseModel):
    """Bill a client for completed sessions within ``[start_date, end_date]``."""

    client_id: int
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_period(self) -> "InvoiceGenerateRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self


class InvoiceSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    client_id: int
    client_name: str | None = None
    issue_date: date
    total_amount: Decimal
    status: InvoiceStatus
    due_date: date | None
    paid_date: date | None


class InvoiceRead(InvoiceSummary):
    year: int
    sequence_number: int
    period_start: date
    period_end: date
    total_hours: Decimal
    pdf_path: str | None
    line_items: list[InvoiceLineItemRead] = []


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    paid_date: date | None = None


class DashboardRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    period_start: date
    period_end: date
    total_revenue_period: Decimal
    pending_invoices_amount: Decimal
    total_invoices_count: int
    paid_invoices_count: int
    pending_invoices_count: int
