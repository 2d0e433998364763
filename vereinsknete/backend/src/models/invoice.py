"""Invoice model."""

from __future__ import annotations

import enum
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Enum, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vereinsknete.backend.src.db.base import Base, TimestampMixin


class InvoiceStatus(str, enum.Enum):
    CREATED = "created"
    SENT = "sent"
    PAID = "paid"


def format_invoice_number(year: int, sequence_number: int) -> str:
    """Return the human readable ``YYYY-NNNN`` form of an invoice number."""

    return f"{year:04d}-{sequence_number:04d}"


class Invoice(TimestampMixin, Base):
    """A numbered bill covering a set of completed sessions for one client."""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("year", "sequence_number", name="uq_invoices_year_sequence"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id"), nullable=False, index=True
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(
            InvoiceStatus,
            native_enum=False,
            length=16,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=InvoiceStatus.CREATED,
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    pdf_path: Mapped[str | None] = mapped_column(String(512), nullable=True)

    client: Mapped["Client"] = relationship("Client", back_populates="invoices")
    sessions: Mapped[list["ClassSession"]] = relationship(
        "ClassSession", back_populates="invoice"
    )
    line_items: Mapped[list["InvoiceLineItem"]] = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.service_start",
    )

    @property
    def client_name(self) -> str | None:
        return self.client.name if self.client is not None else None

    @property
    def invoice_number(self) -> str:
        """Return the formatted number derived from ``year`` and ``sequence_number``."""

        return format_invoice_number(self.year, self.sequence_number)


__all__ = ["Invoice", "InvoiceStatus", "format_invoice_number"]
