"""Invoice queries, status changes and dashboard figures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import structlog
from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from vereinsknete.backend.src.core.errors import IllegalTransition, NotFound, ValidationFailed
from vereinsknete.backend.src.models import Invoice, InvoiceStatus
from vereinsknete.backend.src.services.earnings import ZERO

LOGGER = structlog.get_logger(__name__)

ALLOWED_INVOICE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.CREATED: frozenset({InvoiceStatus.SENT, InvoiceStatus.PAID}),
    InvoiceStatus.SENT: frozenset({InvoiceStatus.PAID}),
    InvoiceStatus.PAID: frozenset(),
}

DASHBOARD_PERIODS = ("month", "quarter", "year")


@dataclass(frozen=True, slots=True)
class DashboardMetrics:
    period_start: date
    period_end: date
    total_revenue_period: Decimal
    pending_invoices_amount: Decimal
    total_invoices_count: int
    paid_invoices_count: int
    pending_invoices_count: int


def get_invoice_or_404(session: Session, invoice_id: int) -> Invoice:
    invoice = session.scalars(
        select(Invoice)
        .options(selectinload(Invoice.line_items), selectinload(Invoice.client))
        .where(Invoice.id == invoice_id)
    ).one_or_none()
    if invoice is None:
        raise NotFound("Invoice not found", invoice_id=invoice_id)
    return invoice


def list_invoices(
    session: Session,
    *,
    client_id: int | None = None,
    year: int | None = None,
    status: InvoiceStatus | None = None,
) -> list[Invoice]:
    """Return invoices newest number first."""

    statement = (
        select(Invoice)
        .options(selectinload(Invoice.client))
        .order_by(Invoice.year.desc(), Invoice.sequence_number.desc())
    )
    if client_id is not None:
        statement = statement.where(Invoice.client_id == client_id)
    if year is not None:
        statement = statement.where(Invoice.year == year)
    if status is not None:
        statement = statement.where(Invoice.status == status)
    return list(session.scalars(statement))


def update_invoice_status(
    session: Session,
    invoice_id: int,
    status: InvoiceStatus,
    paid_date: date | None = None,
) -> Invoice:
    """Move an invoice along CREATED -> SENT -> PAID with compare-and-set."""

    invoice = get_invoice_or_404(session, invoice_id)
    current = invoice.status
    if status not in ALLOWED_INVOICE_TRANSITIONS[current]:
        exc = IllegalTransition(
            "Invoice status change is not allowed",
            invoice_id=invoice_id,
            current=current.value,
            target=status.value,
        )
        LOGGER.warning("invoice_transition_rejected", **exc.context)
        raise exc
    if status is InvoiceStatus.PAID and paid_date is None:
        raise ValidationFailed(
            "Paid date is required when marking an invoice as paid",
            invoice_id=invoice_id,
        )

    result = session.execute(
        update(Invoice)
        .where(Invoice.id == invoice_id, Invoice.status == current)
        .values(
            status=status,
            paid_date=paid_date if status is InvoiceStatus.PAID else invoice.paid_date,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        LOGGER.warning(
            "invoice_transition_lost_race",
            invoice_id=invoice_id,
            expected=current.value,
            target=status.value,
        )
        raise IllegalTransition(
            "Invoice status changed concurrently",
            invoice_id=invoice_id,
            expected=current.value,
            target=status.value,
        )

    session.commit()
    session.refresh(invoice)
    LOGGER.info(
        "invoice_status_updated",
        invoice_id=invoice_id,
        invoice_number=invoice.invoice_number,
        previous=current.value,
        status=status.value,
    )
    return invoice


def _period_range(period: str, year: int, month: int | None) -> tuple[date, date]:
    """Return the half-open ``[start, end)`` date range for a dashboard period."""

    if period not in DASHBOARD_PERIODS:
        raise ValidationFailed(
            "Invalid period, use 'month', 'quarter' or 'year'", period=period
        )
    if not 2000 <= year <= 9998:
        raise ValidationFailed("Invalid year", year=year)
    if month is not None and not 1 <= month <= 12:
        raise ValidationFailed("Invalid month", month=month)

    if period == "year":
        return date(year, 1, 1), date(year + 1, 1, 1)
    reference_month = month or date.today().month
    if period == "quarter":
        first_month = ((reference_month - 1) // 3) * 3 + 1
        span = 3
    else:
        first_month = reference_month
        span = 1
    start = date(year, first_month, 1)
    next_month = first_month + span
    end = date(year + 1, 1, 1) if next_month > 12 else date(year, next_month, 1)
    return start, end


def dashboard_metrics(
    session: Session, *, period: str, year: int, month: int | None = None
) -> DashboardMetrics:
    """Revenue of paid invoices issued in the period plus outstanding totals."""

    start, end = _period_range(period, year, month)
    rows = session.execute(
        select(Invoice.status, Invoice.total_amount, Invoice.issue_date)
    ).all()

    revenue = sum(
        (
            row.total_amount
            for row in rows
            if row.status is InvoiceStatus.PAID and start <= row.issue_date < end
        ),
        ZERO,
    )
    pending = [row.total_amount for row in rows if row.status is InvoiceStatus.SENT]
    return DashboardMetrics(
        period_start=start,
        period_end=end,
        total_revenue_period=revenue,
        pending_invoices_amount=sum(pending, ZERO),
        total_invoices_count=len(rows),
        paid_invoices_count=sum(1 for row in rows if row.status is InvoiceStatus.PAID),
        pending_invoices_count=len(pending),
    )


__all__ = [
    "ALLOWED_INVOICE_TRANSITIONS",
    "DashboardMetrics",
    "dashboard_metrics",
    "get_invoice_or_404",
    "list_invoices",
    "update_invoice_status",
]
