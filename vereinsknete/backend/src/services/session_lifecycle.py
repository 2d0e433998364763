"""Status transitions for class sessions."""

from __future__ import annotations

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vereinsknete.backend.src.core.errors import (
    IllegalTransition,
    NotFound,
    SessionAlreadyInvoiced,
)
from vereinsknete.backend.src.models import (
    ClassSession,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    SessionStatus,
)
from vereinsknete.backend.src.services.earnings import ZERO, calculate_earnings, round_currency

LOGGER = structlog.get_logger(__name__)

ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.SCHEDULED: frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """Return ``True`` when the lifecycle table allows ``current`` -> ``target``."""

    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(class_session: ClassSession, target: SessionStatus) -> None:
    """Raise when ``class_session`` may not move to ``target``."""

    if class_session.invoice_id is not None:
        raise SessionAlreadyInvoiced(
            "Session is already invoiced and can no longer change",
            session_id=class_session.id,
            invoice_id=class_session.invoice_id,
        )
    if not can_transition(class_session.status, target):
        raise IllegalTransition(
            "Session status change is not allowed",
            session_id=class_session.id,
            current=class_session.status.value,
            target=target.value,
        )


def transition_session(
    session: Session, session_id: int, target: SessionStatus
) -> ClassSession:
    """Move a session to ``target`` using compare-and-set on its stored status.

    The update only applies while the row still holds the status that was
    validated and is not linked to an invoice; a concurrent change makes
    the update miss and the transition fails instead of overwriting.
    """

    class_session = session.get(ClassSession, session_id)
    if class_session is None:
        raise NotFound("Session not found", session_id=session_id)

    try:
        ensure_transition(class_session, target)
    except IllegalTransition as exc:
        LOGGER.warning("session_transition_rejected", error=exc.code, **exc.context)
        raise

    expected = class_session.status
    result = session.execute(
        update(ClassSession)
        .where(
            ClassSession.id == session_id,
            ClassSession.status == expected,
            ClassSession.invoice_id.is_(None),
        )
        .values(status=target)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        current = session.get(ClassSession, session_id, populate_existing=True)
        LOGGER.warning(
            "session_transition_lost_race",
            session_id=session_id,
            expected=expected.value,
            target=target.value,
        )
        if current is not None and current.invoice_id is not None:
            raise SessionAlreadyInvoiced(
                "Session was invoiced concurrently",
                session_id=session_id,
                invoice_id=current.invoice_id,
            )
        raise IllegalTransition(
            "Session status changed concurrently",
            session_id=session_id,
            expected=expected.value,
            current=current.status.value if current is not None else None,
            target=target.value,
        )

    session.commit()
    session.refresh(class_session)
    LOGGER.info(
        "session_transitioned",
        session_id=session_id,
        previous=expected.value,
        status=target.value,
    )
    return class_session


def complete_session(session: Session, session_id: int) -> ClassSession:
    return transition_session(session, session_id, SessionStatus.COMPLETED)


def cancel_session(session: Session, session_id: int) -> ClassSession:
    return transition_session(session, session_id, SessionStatus.CANCELLED)


def _lost_link_race(
    session: Session, session_id: int, invoice_id: int
) -> IllegalTransition:
    session.rollback()
    current = session.get(ClassSession, session_id, populate_existing=True)
    LOGGER.warning(
        "session_link_lost_race", session_id=session_id, invoice_id=invoice_id
    )
    if current is not None and current.invoice_id is not None:
        return SessionAlreadyInvoiced(
            "Session was invoiced concurrently",
            session_id=session_id,
            invoice_id=current.invoice_id,
            requested_invoice_id=invoice_id,
        )
    return IllegalTransition(
        "Session or invoice changed concurrently",
        session_id=session_id,
        invoice_id=invoice_id,
    )


def link_session_to_invoice(
    session: Session, session_id: int, invoice_id: int
) -> ClassSession:
    """Add a completed, unbilled session to a not yet sent invoice of the same client.

    The link, the new line item (at the client's current rate) and the
    recomputed invoice totals are committed together. Fails with
    :class:`SessionAlreadyInvoiced` when the session already carries an
    invoice, and with :class:`IllegalTransition` when the session is not
    completed, belongs to another client or the invoice was already sent.
    """

    invoice = session.get(Invoice, invoice_id, populate_existing=True)
    if invoice is None:
        raise NotFound("Invoice not found", invoice_id=invoice_id)
    class_session = session.get(ClassSession, session_id, populate_existing=True)
    if class_session is None:
        raise NotFound("Session not found", session_id=session_id)

    exc: IllegalTransition | None = None
    if class_session.invoice_id is not None:
        exc = SessionAlreadyInvoiced(
            "Session is already linked to an invoice",
            session_id=session_id,
            invoice_id=class_session.invoice_id,
            requested_invoice_id=invoice_id,
        )
    elif class_session.client_id != invoice.client_id:
        exc = IllegalTransition(
            "Session belongs to another client than the invoice",
            session_id=session_id,
            invoice_id=invoice_id,
            session_client_id=class_session.client_id,
            invoice_client_id=invoice.client_id,
        )
    elif class_session.status is not SessionStatus.COMPLETED:
        exc = IllegalTransition(
            "Only completed sessions can be invoiced",
            session_id=session_id,
            status=class_session.status.value,
        )
    elif invoice.status is not InvoiceStatus.CREATED:
        exc = IllegalTransition(
            "Sessions can only be added to invoices that were not sent yet",
            invoice_id=invoice_id,
            status=invoice.status.value,
        )
    if exc is not None:
        LOGGER.warning("session_link_rejected", error=exc.code, **exc.context)
        raise exc

    result = session.execute(
        update(ClassSession)
        .where(
            ClassSession.id == session_id,
            ClassSession.client_id == invoice.client_id,
            ClassSession.status == SessionStatus.COMPLETED,
            ClassSession.invoice_id.is_(None),
        )
        .values(invoice_id=invoice_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise _lost_link_race(session, session_id, invoice_id)

    line = calculate_earnings([class_session], invoice.client.hourly_rate).lines[0]
    session.add(
        InvoiceLineItem(
            invoice_id=invoice_id,
            session_id=session_id,
            description=line.description,
            service_start=line.service_start,
            service_end=line.service_end,
            hours=line.hours,
            rate=line.rate,
            amount=line.amount,
        )
    )
    try:
        session.flush()
    except IntegrityError:
        raise _lost_link_race(session, session_id, invoice_id) from None

    rows = session.execute(
        select(InvoiceLineItem.hours, InvoiceLineItem.amount).where(
            InvoiceLineItem.invoice_id == invoice_id
        )
    ).all()
    total_hours = sum((row.hours for row in rows), ZERO)
    total_amount = round_currency(sum((row.amount for row in rows), ZERO))
    result = session.execute(
        update(Invoice)
        .where(Invoice.id == invoice_id, Invoice.status == InvoiceStatus.CREATED)
        .values(total_hours=total_hours, total_amount=total_amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise _lost_link_race(session, session_id, invoice_id)

    session.commit()
    session.refresh(class_session)
    session.refresh(invoice)
    LOGGER.info(
        "session_linked_to_invoice",
        session_id=session_id,
        invoice_id=invoice_id,
        total_amount=str(total_amount),
    )
    return class_session


__all__ = [
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "cancel_session",
    "complete_session",
    "ensure_transition",
    "link_session_to_invoice",
    "transition_session",
]
