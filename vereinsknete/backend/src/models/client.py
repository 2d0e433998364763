"""Client (studio) model."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Integer, Numeric, String, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vereinsknete.backend.src.db.base import Base, TimestampMixin


class Client(TimestampMixin, Base):
    """A billable counterparty: the studio or club a session is taught for."""

    __tablename__ = "clients"
    __table_args__ = (
        CheckConstraint("hourly_rate > 0", name="ck_clients_hourly_rate_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    sessions: Mapped[list["ClassSession"]] = relationship(
        "ClassSession", back_populates="client"
    )
    invoices: Mapped[list["Invoice"]] = relationship("Invoice", back_populates="client")


__all__ = ["Client"]
