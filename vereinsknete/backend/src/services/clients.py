"""Service layer functions for client management."""

from __future__ import annotations

from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from vereinsknete.backend.src.core.errors import NotFound, ValidationFailed
from vereinsknete.backend.src.models import Client
from vereinsknete.backend.src.services.earnings import round_currency

LOGGER = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = ("name", "address", "contact_person", "hourly_rate", "is_active")


def _normalize_rate(value: Decimal | str | float) -> Decimal:
    rate = round_currency(Decimal(str(value)))
    if rate <= 0:
        raise ValidationFailed("Hourly rate must be positive", hourly_rate=str(value))
    return rate


def _normalize_name(value: str) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationFailed("Client name must not be empty")
    return name


def get_client_or_404(session: Session, client_id: int) -> Client:
    client = session.get(Client, client_id)
    if client is None:
        raise NotFound("Client not found", client_id=client_id)
    return client


def list_clients(session: Session, *, active_only: bool = False) -> list[Client]:
    """Return clients ordered by name."""

    statement = select(Client).order_by(Client.name, Client.id)
    if active_only:
        statement = statement.where(Client.is_active.is_(True))
    return list(session.scalars(statement))


def create_client(
    session: Session,
    *,
    name: str,
    hourly_rate: Decimal | str | float,
    address: str = "",
    contact_person: str | None = None,
) -> Client:
    """Persist a new active client."""

    client = Client(
        name=_normalize_name(name),
        address=(address or "").strip(),
        contact_person=(contact_person or None),
        hourly_rate=_normalize_rate(hourly_rate),
        is_active=True,
    )
    session.add(client)
    session.commit()
    session.refresh(client)
    LOGGER.info("client_created", client_id=client.id, hourly_rate=str(client.hourly_rate))
    return client


def update_client(session: Session, client_id: int, **changes: object) -> Client:
    """Apply ``changes`` to a client.

    Rate changes never touch existing invoices; their line items keep the
    rate that applied when they were issued.
    """

    client = get_client_or_404(session, client_id)
    for field, value in changes.items():
        if field not in _UPDATABLE_FIELDS:
            raise ValidationFailed("Unknown client field", field=field)
        if value is None and field in {"name", "hourly_rate", "is_active", "address"}:
            continue
        if field == "name":
            value = _normalize_name(str(value))
        elif field == "hourly_rate":
            value = _normalize_rate(value)  # type: ignore[arg-type]
        setattr(client, field, value)

    session.add(client)
    session.commit()
    session.refresh(client)
    LOGGER.info("client_updated", client_id=client.id, fields=sorted(changes))
    return client


def deactivate_client(session: Session, client_id: int) -> Client:
    """Hide a client from active lists without touching its invoices."""

    return update_client(session, client_id, is_active=False)


__all__ = [
    "create_client",
    "deactivate_client",
    "get_client_or_404",
    "list_clients",
    "update_client",
]
