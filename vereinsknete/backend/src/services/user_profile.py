"""Service functions for the single invoicing profile."""

from __future__ import annotations

from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from vereinsknete.backend.src.core.errors import ValidationFailed
from vereinsknete.backend.src.models import UserProfile
from vereinsknete.backend.src.services.earnings import round_currency

LOGGER = structlog.get_logger(__name__)


def get_profile(session: Session) -> UserProfile | None:
    """Return the stored profile, if one was created."""

    return session.scalars(select(UserProfile).order_by(UserProfile.id).limit(1)).first()


def upsert_profile(
    session: Session,
    *,
    name: str,
    address: str,
    tax_id: str | None = None,
    bank_details: str | None = None,
    default_hourly_rate: Decimal | None = None,
) -> UserProfile:
    """Create the profile or overwrite the existing one."""

    cleaned_name = (name or "").strip()
    cleaned_address = (address or "").strip()
    if not cleaned_name or not cleaned_address:
        raise ValidationFailed("Profile name and address are required")
    if default_hourly_rate is not None:
        default_hourly_rate = round_currency(Decimal(default_hourly_rate))
        if default_hourly_rate <= 0:
            raise ValidationFailed(
                "Default hourly rate must be positive",
                default_hourly_rate=str(default_hourly_rate),
            )

    profile = get_profile(session)
    created = profile is None
    if profile is None:
        profile = UserProfile(name=cleaned_name, address=cleaned_address)
    profile.name = cleaned_name
    profile.address = cleaned_address
    profile.tax_id = tax_id or None
    profile.bank_details = bank_details or None
    profile.default_hourly_rate = default_hourly_rate

    session.add(profile)
    session.commit()
    session.refresh(profile)
    LOGGER.info("user_profile_saved", profile_id=profile.id, created=created)
    return profile


__all__ = ["get_profile", "upsert_profile"]
