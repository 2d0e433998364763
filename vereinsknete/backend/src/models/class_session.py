"""Class session model."""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vereinsknete.backend.src.core.dates import duration_hours
from vereinsknete.backend.src.db.base import Base, TimestampMixin


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ClassSession(TimestampMixin, Base):
    """A single scheduled occurrence of a class taught for a client."""

    __tablename__ = "class_sessions"
    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_class_sessions_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[SessionStatus] = mapped_column(
        Enum(
            SessionStatus,
            native_enum=False,
            length=16,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=SessionStatus.SCHEDULED,
        index=True,
    )
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    invoice_id: Mapped[int | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True, index=True
    )

    client: Mapped["Client"] = relationship("Client", back_populates="sessions")
    invoice: Mapped["Invoice | None"] = relationship(
        "Invoice", back_populates="sessions"
    )

    @property
    def duration_hours(self) -> Decimal:
        """Return the scheduled length of the session in hours."""

        return duration_hours(self.start_at, self.end_at)

    @property
    def is_invoiced(self) -> bool:
        return self.invoice_id is not None


__all__ = ["ClassSession", "SessionStatus"]
