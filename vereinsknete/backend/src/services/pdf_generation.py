"""Render committed invoices to PDF documents on local storage."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from time import perf_counter

import structlog
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from vereinsknete.backend.src.core.config import get_settings
from vereinsknete.backend.src.core.errors import NotFound
from vereinsknete.backend.src.models import Client, Invoice, UserProfile
from vereinsknete.backend.src.services.invoices import get_invoice_or_404
from vereinsknete.backend.src.services.metrics import pdf_generation_seconds
from vereinsknete.backend.src.services.user_profile import get_profile

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class InvoicePdf:
    """A rendered invoice document and where it was written."""

    path: Path
    filename: str
    content: bytes


def build_filename(invoice: Invoice) -> str:
    return f"invoice_{invoice.invoice_number}.pdf"


def _money(value: Decimal, currency: str) -> str:
    return f"{value:,.2f} {currency}"


def render_invoice_pdf(
    invoice: Invoice, client: Client, profile: UserProfile, *, currency: str = "EUR"
) -> bytes:
    """Draw the invoice header, one row per billed session and the total."""

    start = perf_counter()
    buffer = BytesIO()
    pdf_canvas = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    margin = 50
    primary_color = HexColor("#0F172A")
    muted_text = HexColor("#64748B")
    light_panel = HexColor("#F8FAFC")
    border_color = HexColor("#E2E8F0")
    columns = [margin + 10, margin + 110, margin + 330, margin + 400, width - margin - 10]

    def draw_header() -> float:
        pdf_canvas.setFillColor(primary_color)
        pdf_canvas.setFont("Helvetica-Bold", 16)
        pdf_canvas.drawString(margin, height - 60, profile.name)
        pdf_canvas.setFont("Helvetica", 9)
        pdf_canvas.setFillColor(muted_text)
        y = height - 76
        for line in profile.address.splitlines():
            pdf_canvas.drawString(margin, y, line)
            y -= 12
        if profile.tax_id:
            pdf_canvas.drawString(margin, y, f"Tax ID: {profile.tax_id}")
            y -= 12

        pdf_canvas.setFillColor(primary_color)
        pdf_canvas.setFont("Helvetica-Bold", 14)
        pdf_canvas.drawRightString(width - margin, height - 60, f"Invoice {invoice.invoice_number}")
        pdf_canvas.setFont("Helvetica", 9)
        pdf_canvas.drawRightString(
            width - margin, height - 76, f"Date: {invoice.issue_date.isoformat()}"
        )
        if invoice.due_date:
            pdf_canvas.drawRightString(
                width - margin, height - 88, f"Due: {invoice.due_date.isoformat()}"
            )
        pdf_canvas.drawRightString(
            width - margin,
            height - 100,
            f"Period: {invoice.period_start.isoformat()} - {invoice.period_end.isoformat()}",
        )

        y -= 20
        pdf_canvas.setFont("Helvetica-Bold", 11)
        pdf_canvas.drawString(margin, y, "Bill To")
        pdf_canvas.setFont("Helvetica", 10)
        y -= 14
        pdf_canvas.drawString(margin, y, client.name)
        for line in (client.address or "").splitlines():
            y -= 12
            pdf_canvas.drawString(margin, y, line)
        if client.contact_person:
            y -= 12
            pdf_canvas.drawString(margin, y, client.contact_person)
        return y - 30

    def draw_table_header(top: float) -> float:
        pdf_canvas.setFillColor(light_panel)
        pdf_canvas.rect(margin, top - 20, width - 2 * margin, 20, fill=1, stroke=0)
        pdf_canvas.setFillColor(primary_color)
        pdf_canvas.setFont("Helvetica-Bold", 10)
        pdf_canvas.drawString(columns[0], top - 14, "Date")
        pdf_canvas.drawString(columns[1], top - 14, "Class")
        pdf_canvas.drawRightString(columns[2], top - 14, "Hours")
        pdf_canvas.drawRightString(columns[3], top - 14, "Rate")
        pdf_canvas.drawRightString(columns[4], top - 14, "Amount")
        pdf_canvas.setFont("Helvetica", 10)
        return top - 36

    y_position = draw_table_header(draw_header())
    for line in invoice.line_items:
        if y_position < 100:
            pdf_canvas.showPage()
            y_position = draw_table_header(height - 60)
        pdf_canvas.drawString(columns[0], y_position, line.service_start.strftime("%Y-%m-%d %H:%M"))
        pdf_canvas.drawString(columns[1], y_position, line.description[:40])
        pdf_canvas.drawRightString(columns[2], y_position, f"{line.hours:.2f}")
        pdf_canvas.drawRightString(columns[3], y_position, _money(line.rate, currency))
        pdf_canvas.drawRightString(columns[4], y_position, _money(line.amount, currency))
        y_position -= 18

    pdf_canvas.setStrokeColor(border_color)
    pdf_canvas.line(margin, y_position + 6, width - margin, y_position + 6)
    pdf_canvas.setFont("Helvetica-Bold", 11)
    pdf_canvas.drawRightString(columns[2], y_position - 12, f"{invoice.total_hours:.2f}")
    pdf_canvas.drawRightString(columns[3], y_position - 12, "Total")
    pdf_canvas.drawRightString(
        columns[4], y_position - 12, _money(invoice.total_amount, currency)
    )
    if profile.bank_details:
        pdf_canvas.setFont("Helvetica", 9)
        pdf_canvas.setFillColor(muted_text)
        pdf_canvas.drawString(margin, 60, profile.bank_details.replace("\n", "  "))

    pdf_canvas.save()
    pdf_generation_seconds.observe(perf_counter() - start)
    return buffer.getvalue()


def store_invoice_document(session: Session, invoice_id: int) -> InvoicePdf:
    """Render an already committed invoice and record where the file lives.

    Runs outside the billing unit of work: a failure here leaves the invoice
    and its number untouched.
    """

    settings = get_settings()
    invoice = get_invoice_or_404(session, invoice_id)
    profile = get_profile(session)
    if profile is None:
        raise NotFound("User profile not found, create it before rendering invoices")

    content = render_invoice_pdf(invoice, invoice.client, profile, currency=settings.currency)
    directory = Path(settings.invoice_dir)
    directory.mkdir(parents=True, exist_ok=True)
    filename = build_filename(invoice)
    path = directory / filename
    path.write_bytes(content)

    invoice.pdf_path = str(path)
    session.add(invoice)
    session.commit()
    LOGGER.info(
        "invoice_document_stored",
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        path=str(path),
        size=len(content),
    )
    return InvoicePdf(path=path, filename=filename, content=content)


__all__ = ["InvoicePdf", "build_filename", "render_invoice_pdf", "store_invoice_document"]
