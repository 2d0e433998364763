"""User profile model."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vereinsknete.backend.src.db.base import Base, TimestampMixin


class UserProfile(TimestampMixin, Base):
    """The single invoicing party whose details head every invoice."""

    __tablename__ = "user_profile"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(512), nullable=False)
    tax_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    bank_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_hourly_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), nullable=True
    )


__all__ = ["UserProfile"]
