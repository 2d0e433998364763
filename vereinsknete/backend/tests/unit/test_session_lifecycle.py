"""Unit tests for class session status transitions."""

from __future__ import annotations

import os
import sys
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_vereinsknete.db")

import pytest
from sqlalchemy import select

from vereinsknete.backend.src.core.errors import (
    IllegalTransition,
    NotFound,
    SessionAlreadyInvoiced,
)
from vereinsknete.backend.src.db import get_engine, session_scope
from vereinsknete.backend.src.db.base import Base
from vereinsknete.backend.src.models import (
    ClassSession,
    Client,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    SessionStatus,
)
from vereinsknete.backend.src.services import invoices as invoice_service
from vereinsknete.backend.src.services import session_lifecycle
from vereinsknete.backend.src.services.invoice_builder import BillingRequest, InvoiceBuilder


@pytest.fixture(autouse=True)
def setup_database() -> None:  # type: ignore[no-untyped-def]
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client_id() -> int:
    with session_scope() as session:
        client = Client(name="TSV Nord", address="Hauptstr. 1", hourly_rate=Decimal("30.00"))
        session.add(client)
        session.flush()
        return client.id


def _add_session(client_id: int, status: SessionStatus = SessionStatus.SCHEDULED) -> int:
    with session_scope() as session:
        class_session = ClassSession(
            client_id=client_id,
            name="Yoga",
            start_at=datetime(2024, 11, 4, 18, 0),
            end_at=datetime(2024, 11, 4, 19, 0),
            status=status,
        )
        session.add(class_session)
        session.flush()
        return class_session.id


def _add_invoice(client_id: int, sequence_number: int = 1) -> int:
    with session_scope() as session:
        invoice = Invoice(
            client_id=client_id,
            year=2024,
            sequence_number=sequence_number,
            issue_date=date(2024, 11, 30),
            period_start=date(2024, 11, 1),
            period_end=date(2024, 11, 30),
            total_hours=Decimal("1"),
            total_amount=Decimal("30.00"),
            status=InvoiceStatus.CREATED,
        )
        session.add(invoice)
        session.flush()
        return invoice.id


def test_lifecycle_table_only_allows_leaving_scheduled() -> None:
    assert session_lifecycle.can_transition(SessionStatus.SCHEDULED, SessionStatus.COMPLETED)
    assert session_lifecycle.can_transition(SessionStatus.SCHEDULED, SessionStatus.CANCELLED)
    for current in (SessionStatus.COMPLETED, SessionStatus.CANCELLED):
        for target in SessionStatus:
            assert not session_lifecycle.can_transition(current, target)


def test_complete_session_persists_new_status(client_id: int) -> None:
    session_id = _add_session(client_id)

    with session_scope() as session:
        result = session_lifecycle.complete_session(session, session_id)
        assert result.status is SessionStatus.COMPLETED

    with session_scope() as session:
        assert session.get(ClassSession, session_id).status is SessionStatus.COMPLETED


def test_completed_session_cannot_be_cancelled(client_id: int) -> None:
    session_id = _add_session(client_id, SessionStatus.COMPLETED)

    with session_scope() as session:
        with pytest.raises(IllegalTransition) as excinfo:
            session_lifecycle.cancel_session(session, session_id)

    assert not isinstance(excinfo.value, SessionAlreadyInvoiced)
    assert excinfo.value.context["current"] == "completed"


def test_cancelled_session_cannot_be_completed(client_id: int) -> None:
    session_id = _add_session(client_id, SessionStatus.CANCELLED)

    with session_scope() as session:
        with pytest.raises(IllegalTransition):
            session_lifecycle.complete_session(session, session_id)


def test_unknown_session_raises_not_found() -> None:
    with session_scope() as session:
        with pytest.raises(NotFound):
            session_lifecycle.complete_session(session, 999)


def test_invoiced_session_is_frozen(client_id: int) -> None:
    session_id = _add_session(client_id, SessionStatus.COMPLETED)
    invoice_id = _add_invoice(client_id)
    with session_scope() as session:
        session_lifecycle.link_session_to_invoice(session, session_id, invoice_id)

    with session_scope() as session:
        with pytest.raises(SessionAlreadyInvoiced):
            session_lifecycle.transition_session(session, session_id, SessionStatus.CANCELLED)

    with session_scope() as session:
        stored = session.get(ClassSession, session_id)
        assert stored.status is SessionStatus.COMPLETED
        assert stored.invoice_id == invoice_id


def test_link_requires_completed_session(client_id: int) -> None:
    session_id = _add_session(client_id)
    invoice_id = _add_invoice(client_id)

    with session_scope() as session:
        with pytest.raises(IllegalTransition) as excinfo:
            session_lifecycle.link_session_to_invoice(session, session_id, invoice_id)

    assert not isinstance(excinfo.value, SessionAlreadyInvoiced)


def test_link_refuses_second_invoice(client_id: int) -> None:
    session_id = _add_session(client_id, SessionStatus.COMPLETED)
    first = _add_invoice(client_id, 1)
    second = _add_invoice(client_id, 2)
    with session_scope() as session:
        session_lifecycle.link_session_to_invoice(session, session_id, first)

    with session_scope() as session:
        with pytest.raises(SessionAlreadyInvoiced) as excinfo:
            session_lifecycle.link_session_to_invoice(session, session_id, second)

    assert excinfo.value.context["invoice_id"] == first
    with session_scope() as session:
        assert session.get(ClassSession, session_id).invoice_id == first


def test_stale_status_loses_compare_and_set(client_id: int) -> None:
    session_id = _add_session(client_id)

    with session_scope() as stale:
        # Load the row, then let another unit of work complete it.
        stale.get(ClassSession, session_id)
        stale.commit()
        with session_scope() as other:
            session_lifecycle.complete_session(other, session_id)

        with pytest.raises(IllegalTransition) as excinfo:
            session_lifecycle.cancel_session(stale, session_id)

    assert excinfo.value.context["current"] == "completed"
    with session_scope() as session:
        assert session.get(ClassSession, session_id).status is SessionStatus.COMPLETED


def _other_client_id() -> int:
    with session_scope() as session:
        client = Client(name="SV Sued", address="", hourly_rate=Decimal("50.00"))
        session.add(client)
        session.flush()
        return client.id


def _build_invoice(client_id: int) -> int:
    _add_session(client_id, SessionStatus.COMPLETED)
    with session_scope() as session:
        return InvoiceBuilder(today=lambda: date(2024, 11, 30)).build(
            session, BillingRequest(client_id, date(2024, 11, 1), date(2024, 11, 30))
        ).id


def _invoice_state(invoice_id: int) -> tuple[Decimal, Decimal, list[int]]:
    with session_scope() as session:
        invoice = session.get(Invoice, invoice_id)
        lines = session.scalars(
            select(InvoiceLineItem.session_id).where(InvoiceLineItem.invoice_id == invoice_id)
        ).all()
        return invoice.total_amount, invoice.total_hours, sorted(lines)


def test_manual_link_adds_line_item_and_recomputes_totals(client_id: int) -> None:
    invoice_id = _build_invoice(client_id)
    late_session = _add_session(client_id, SessionStatus.COMPLETED)

    with session_scope() as session:
        linked = session_lifecycle.link_session_to_invoice(session, late_session, invoice_id)
        assert linked.invoice_id == invoice_id

    total_amount, total_hours, line_sessions = _invoice_state(invoice_id)
    assert total_amount == Decimal("60.00")
    assert total_hours == Decimal("2")
    assert late_session in line_sessions
    assert len(line_sessions) == 2


def test_link_rejects_session_of_another_client(client_id: int) -> None:
    invoice_id = _build_invoice(client_id)
    foreign_session = _add_session(_other_client_id(), SessionStatus.COMPLETED)
    before = _invoice_state(invoice_id)

    with session_scope() as session:
        with pytest.raises(IllegalTransition) as excinfo:
            session_lifecycle.link_session_to_invoice(session, foreign_session, invoice_id)

    assert not isinstance(excinfo.value, SessionAlreadyInvoiced)
    assert _invoice_state(invoice_id) == before
    assert before[0] == Decimal("30.00")
    with session_scope() as session:
        assert session.get(ClassSession, foreign_session).invoice_id is None


def test_link_rejects_invoice_that_was_already_sent(client_id: int) -> None:
    invoice_id = _build_invoice(client_id)
    with session_scope() as session:
        invoice_service.update_invoice_status(session, invoice_id, InvoiceStatus.SENT)
    late_session = _add_session(client_id, SessionStatus.COMPLETED)

    with session_scope() as session:
        with pytest.raises(IllegalTransition):
            session_lifecycle.link_session_to_invoice(session, late_session, invoice_id)

    assert _invoice_state(invoice_id)[0] == Decimal("30.00")
