"""Service layer functions for class sessions."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from vereinsknete.backend.src.core.dates import duration_hours, period_bounds, week_end, week_start
from vereinsknete.backend.src.core.errors import (
    IllegalTransition,
    NotFound,
    SessionAlreadyInvoiced,
    ValidationFailed,
)
from vereinsknete.backend.src.models import ClassSession, Client, SessionStatus
from vereinsknete.backend.src.services.templates import (
    ClassTemplate,
    SessionDraft,
    expand_templates,
)

LOGGER = structlog.get_logger(__name__)


def get_session_or_404(session: Session, session_id: int) -> ClassSession:
    class_session = session.get(ClassSession, session_id)
    if class_session is None:
        raise NotFound("Session not found", session_id=session_id)
    return class_session


def _ensure_client(session: Session, client_id: int) -> Client:
    client = session.get(Client, client_id)
    if client is None:
        raise NotFound("Client not found", client_id=client_id)
    return client


def _ensure_mutable(class_session: ClassSession) -> None:
    if class_session.invoice_id is not None:
        raise SessionAlreadyInvoiced(
            "Invoiced sessions cannot be modified",
            session_id=class_session.id,
            invoice_id=class_session.invoice_id,
        )


def create_session(
    session: Session,
    *,
    client_id: int,
    name: str,
    start_at: datetime,
    end_at: datetime,
    notes: str = "",
) -> ClassSession:
    """Persist a new SCHEDULED session after validating its client and range."""

    cleaned_name = (name or "").strip()
    if not cleaned_name:
        raise ValidationFailed("Session name must not be empty")
    duration_hours(start_at, end_at)
    _ensure_client(session, client_id)

    class_session = ClassSession(
        client_id=client_id,
        name=cleaned_name,
        start_at=start_at,
        end_at=end_at,
        notes=notes or "",
        status=SessionStatus.SCHEDULED,
    )
    session.add(class_session)
    session.commit()
    session.refresh(class_session)
    LOGGER.info(
        "session_created",
        session_id=class_session.id,
        client_id=client_id,
        start_at=start_at.isoformat(),
    )
    return class_session


def create_sessions_from_drafts(
    session: Session, drafts: Iterable[SessionDraft]
) -> list[ClassSession]:
    """Insert SCHEDULED sessions for ``drafts``, skipping ones that already exist.

    A draft is a duplicate when its client already has a session starting at
    the same moment.
    """

    pending = list(drafts)
    if not pending:
        return []

    for draft in pending:
        duration_hours(draft.start_at, draft.end_at)
    for client_id in {draft.client_id for draft in pending}:
        _ensure_client(session, client_id)

    rows = session.execute(
        select(ClassSession.client_id, ClassSession.start_at).where(
            ClassSession.client_id.in_({draft.client_id for draft in pending}),
            ClassSession.start_at >= min(draft.start_at for draft in pending),
            ClassSession.start_at <= max(draft.start_at for draft in pending),
        )
    )
    existing = {(row.client_id, row.start_at) for row in rows}

    created: list[ClassSession] = []
    for draft in pending:
        key = (draft.client_id, draft.start_at)
        if key in existing:
            continue
        existing.add(key)
        created.append(
            ClassSession(
                client_id=draft.client_id,
                name=draft.name,
                start_at=draft.start_at,
                end_at=draft.end_at,
                status=SessionStatus.SCHEDULED,
                notes="",
            )
        )

    session.add_all(created)
    session.commit()
    LOGGER.info(
        "sessions_created_from_templates",
        drafts=len(pending),
        created=len(created),
    )
    return created


def schedule_week(
    session: Session, templates: Iterable[ClassTemplate], day: date
) -> list[ClassSession]:
    """Create the scheduled sessions of the Monday-to-Sunday week containing ``day``."""

    drafts = expand_templates(templates, week_start(day), week_end(day))
    return create_sessions_from_drafts(session, drafts)


def list_sessions(
    session: Session,
    *,
    client_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    status: SessionStatus | None = None,
) -> list[ClassSession]:
    """Return sessions matching the optional filters, earliest first."""

    statement = select(ClassSession).order_by(ClassSession.start_at, ClassSession.id)
    if client_id is not None:
        statement = statement.where(ClassSession.client_id == client_id)
    if status is not None:
        statement = statement.where(ClassSession.status == status)
    if start is not None and end is not None:
        lower, upper = period_bounds(start, end)
        statement = statement.where(
            ClassSession.start_at >= lower, ClassSession.start_at < upper
        )
    elif start is not None:
        lower, _ = period_bounds(start, start)
        statement = statement.where(ClassSession.start_at >= lower)
    elif end is not None:
        _, upper = period_bounds(end, end)
        statement = statement.where(ClassSession.start_at < upper)
    return list(session.scalars(statement))


def _lost_edit_race(session: Session, session_id: int) -> IllegalTransition | NotFound:
    session.rollback()
    current = session.get(ClassSession, session_id, populate_existing=True)
    LOGGER.warning("session_edit_lost_race", session_id=session_id)
    if current is None:
        return NotFound("Session not found", session_id=session_id)
    if current.invoice_id is not None:
        return SessionAlreadyInvoiced(
            "Invoiced sessions cannot be modified",
            session_id=session_id,
            invoice_id=current.invoice_id,
        )
    return IllegalTransition(
        "Session changed concurrently",
        session_id=session_id,
        status=current.status.value,
    )


def update_session(
    session: Session,
    session_id: int,
    *,
    name: str | None = None,
    notes: str | None = None,
    start_at: datetime | None = None,
    end_at: datetime | None = None,
) -> ClassSession:
    """Edit descriptive fields or timing of a session that is not yet invoiced.

    Timing can only change while the session is still scheduled. The write
    only applies while the row still has no invoice and the status that was
    validated, so edits never land on a session billed in the meantime.
    """

    class_session = session.get(ClassSession, session_id, populate_existing=True)
    if class_session is None:
        raise NotFound("Session not found", session_id=session_id)
    _ensure_mutable(class_session)

    changes: dict[str, object] = {}
    if start_at is not None or end_at is not None:
        if class_session.status is not SessionStatus.SCHEDULED:
            raise IllegalTransition(
                "Only scheduled sessions can be rescheduled",
                session_id=session_id,
                status=class_session.status.value,
            )
        new_start = start_at or class_session.start_at
        new_end = end_at or class_session.end_at
        duration_hours(new_start, new_end)
        changes["start_at"] = new_start
        changes["end_at"] = new_end

    if name is not None:
        cleaned = name.strip()
        if not cleaned:
            raise ValidationFailed("Session name must not be empty", session_id=session_id)
        changes["name"] = cleaned
    if notes is not None:
        changes["notes"] = notes

    if not changes:
        return class_session

    result = session.execute(
        update(ClassSession)
        .where(
            ClassSession.id == session_id,
            ClassSession.status == class_session.status,
            ClassSession.invoice_id.is_(None),
        )
        .values(**changes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise _lost_edit_race(session, session_id)

    session.commit()
    session.refresh(class_session)
    LOGGER.info("session_updated", session_id=session_id, fields=sorted(changes))
    return class_session


def delete_session(session: Session, session_id: int) -> None:
    """Remove a session unless it has been invoiced."""

    class_session = session.get(ClassSession, session_id, populate_existing=True)
    if class_session is None:
        raise NotFound("Session not found", session_id=session_id)
    _ensure_mutable(class_session)

    result = session.execute(
        delete(ClassSession)
        .where(ClassSession.id == session_id, ClassSession.invoice_id.is_(None))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise _lost_edit_race(session, session_id)

    session.commit()
    session.expunge(class_session)
    LOGGER.info("session_deleted", session_id=session_id)


__all__ = [
    "create_session",
    "create_sessions_from_drafts",
    "delete_session",
    "get_session_or_404",
    "list_sessions",
    "schedule_week",
    "update_session",
]
