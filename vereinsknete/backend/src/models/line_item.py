"""Invoice line item model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vereinsknete.backend.src.db.base import Base, TimestampMixin


class InvoiceLineItem(TimestampMixin, Base):
    """Snapshot of one billed session: hours, rate and amount at issue time."""

    __tablename__ = "invoice_line_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id"), nullable=False, index=True
    )
    session_id: Mapped[int] = mapped_column(
        ForeignKey("class_sessions.id"), nullable=False, unique=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    service_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    service_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="line_items")


__all__ = ["InvoiceLineItem"]
