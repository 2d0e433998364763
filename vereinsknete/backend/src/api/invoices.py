"""Invoice endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from vereinsknete.backend.src.db import get_session_dependency
from vereinsknete.backend.src.models import Invoice, InvoiceStatus
from vereinsknete.backend.src.schemas.invoice import (
    DashboardRead,
    InvoiceGenerateRequest,
    InvoiceRead,
    InvoiceStatusUpdate,
    InvoiceSummary,
)
from vereinsknete.backend.src.services import invoices as invoice_service
from vereinsknete.backend.src.services.invoice_builder import BillingRequest, InvoiceBuilder
from vereinsknete.backend.src.services.pdf_generation import (
    build_filename,
    store_invoice_document,
)

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])

SessionDep = Annotated[Session, Depends(get_session_dependency)]


def get_invoice_builder() -> InvoiceBuilder:
    return InvoiceBuilder()


@router.post("/generate", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def generate_invoice(
    payload: InvoiceGenerateRequest,
    session: SessionDep,
    builder: Annotated[InvoiceBuilder, Depends(get_invoice_builder)],
) -> Invoice:
    """Bill every completed, uninvoiced session of the client in the period."""

    invoice = builder.build(
        session,
        BillingRequest(
            client_id=payload.client_id,
            period_start=payload.start_date,
            period_end=payload.end_date,
        ),
    )
    return invoice_service.get_invoice_or_404(session, invoice.id)


@router.get("", response_model=list[InvoiceSummary])
def list_invoices(
    session: SessionDep,
    client_id: int | None = Query(None),
    year: int | None = Query(None),
    status_filter: InvoiceStatus | None = Query(None, alias="status"),
) -> list[Invoice]:
    return invoice_service.list_invoices(
        session, client_id=client_id, year=year, status=status_filter
    )


@router.get("/dashboard", response_model=DashboardRead)
def dashboard(
    session: SessionDep,
    period: str = Query("month"),
    year: int = Query(...),
    month: int | None = Query(None),
) -> invoice_service.DashboardMetrics:
    return invoice_service.dashboard_metrics(
        session, period=period, year=year, month=month
    )


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(invoice_id: int, session: SessionDep) -> Invoice:
    return invoice_service.get_invoice_or_404(session, invoice_id)


@router.patch("/{invoice_id}/status", response_model=InvoiceRead)
def update_invoice_status(
    invoice_id: int, payload: InvoiceStatusUpdate, session: SessionDep
) -> Invoice:
    invoice_service.update_invoice_status(
        session, invoice_id, payload.status, payload.paid_date
    )
    return invoice_service.get_invoice_or_404(session, invoice_id)


@router.get("/{invoice_id}/pdf")
def download_invoice_pdf(invoice_id: int, session: SessionDep) -> Response:
    """Return the invoice document, rendering it on first request."""

    invoice = invoice_service.get_invoice_or_404(session, invoice_id)
    filename = build_filename(invoice)
    if invoice.pdf_path and Path(invoice.pdf_path).is_file():
        return FileResponse(
            invoice.pdf_path, media_type="application/pdf", filename=filename
        )

    document = store_invoice_document(session, invoice_id)
    LOGGER.info("invoice_document_rendered_on_demand", invoice_id=invoice_id)
    return Response(
        content=document.content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )
