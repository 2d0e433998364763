"""Unit tests for turning completed sessions into invoices."""

from __future__ import annotations

import os
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from decimal import Decimal
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_vereinsknete.db")

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from vereinsknete.backend.src.core.errors import (
    ConcurrentBillingConflict,
    DomainError,
    InvalidRange,
    NoBillableSessions,
    NotFound,
    SequenceAllocationFailed,
    ValidationFailed,
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
from vereinsknete.backend.src.services.clients import update_client
from vereinsknete.backend.src.services.invoice_builder import BillingRequest, InvoiceBuilder
from vereinsknete.backend.src.services.invoice_sequencer import InvoiceSequencer

ISSUE_DAY = date(2024, 11, 30)


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


def _add_session(
    client_id: int,
    start: datetime,
    minutes: int = 60,
    status: SessionStatus = SessionStatus.COMPLETED,
) -> int:
    with session_scope() as session:
        class_session = ClassSession(
            client_id=client_id,
            name="Yoga",
            start_at=start,
            end_at=start + timedelta(minutes=minutes),
            status=status,
        )
        session.add(class_session)
        session.flush()
        return class_session.id


def _request(client_id: int, start: date = date(2024, 11, 1), end: date = date(2024, 11, 30)) -> BillingRequest:
    return BillingRequest(client_id=client_id, period_start=start, period_end=end)


def _builder(**kwargs) -> InvoiceBuilder:  # type: ignore[no-untyped-def]
    return InvoiceBuilder(today=lambda: ISSUE_DAY, **kwargs)


def _store_counts() -> tuple[int, int, int]:
    with session_scope() as session:
        invoices = session.execute(select(func.count(Invoice.id))).scalar_one()
        lines = session.execute(select(func.count(InvoiceLineItem.id))).scalar_one()
        linked = session.execute(
            select(func.count(ClassSession.id)).where(ClassSession.invoice_id.is_not(None))
        ).scalar_one()
    return invoices, lines, linked


def test_builds_invoice_for_completed_sessions(client_id: int) -> None:
    first = _add_session(client_id, datetime(2024, 11, 4, 18, 0))
    second = _add_session(client_id, datetime(2024, 11, 11, 18, 0))

    with session_scope() as session:
        invoice = _builder().build(session, _request(client_id))
        invoice_id = invoice.id

        assert invoice.year == 2024
        assert invoice.sequence_number == 1
        assert invoice.invoice_number == "2024-0001"
        assert invoice.total_amount == Decimal("60.00")
        assert invoice.total_hours == Decimal("2")
        assert invoice.status is InvoiceStatus.CREATED
        assert invoice.issue_date == ISSUE_DAY
        assert invoice.due_date == ISSUE_DAY + timedelta(days=30)
        assert [line.session_id for line in invoice.line_items] == [first, second]
        assert all(line.created_at is not None for line in invoice.line_items)

    with session_scope() as session:
        linked = session.scalars(select(ClassSession).order_by(ClassSession.id)).all()
        assert {item.invoice_id for item in linked} == {invoice_id}


def test_second_run_finds_nothing_and_changes_nothing(client_id: int) -> None:
    _add_session(client_id, datetime(2024, 11, 4, 18, 0))
    with session_scope() as session:
        _builder().build(session, _request(client_id))
    before = _store_counts()

    with session_scope() as session:
        with pytest.raises(NoBillableSessions):
            _builder().build(session, _request(client_id))

    assert _store_counts() == before == (1, 1, 1)


def test_only_completed_sessions_inside_the_period_are_billed(client_id: int) -> None:
    billed = _add_session(client_id, datetime(2024, 11, 30, 23, 0), minutes=30)
    _add_session(client_id, datetime(2024, 11, 5, 18, 0), status=SessionStatus.SCHEDULED)
    _add_session(client_id, datetime(2024, 11, 6, 18, 0), status=SessionStatus.CANCELLED)
    _add_session(client_id, datetime(2024, 10, 31, 18, 0))
    _add_session(client_id, datetime(2024, 12, 1, 0, 0))

    with session_scope() as session:
        invoice = _builder().build(session, _request(client_id))
        assert [line.session_id for line in invoice.line_items] == [billed]
        assert invoice.total_amount == Decimal("15.00")


def test_sessions_of_other_clients_are_ignored(client_id: int) -> None:
    with session_scope() as session:
        other = Client(name="SV Sued", address="", hourly_rate=Decimal("50.00"))
        session.add(other)
        session.flush()
        other_id = other.id
    _add_session(other_id, datetime(2024, 11, 4, 18, 0))

    with session_scope() as session:
        with pytest.raises(NoBillableSessions):
            _builder().build(session, _request(client_id))


def test_line_items_keep_the_rate_in_effect_when_billed(client_id: int) -> None:
    _add_session(client_id, datetime(2024, 11, 4, 18, 0))
    with session_scope() as session:
        invoice_id = _builder().build(session, _request(client_id)).id

    with session_scope() as session:
        update_client(session, client_id, hourly_rate=Decimal("99.00"))

    with session_scope() as session:
        invoice = session.get(Invoice, invoice_id)
        assert invoice.total_amount == Decimal("30.00")
        assert invoice.line_items[0].rate == Decimal("30.00")


def test_numbers_continue_across_invoices(client_id: int) -> None:
    _add_session(client_id, datetime(2024, 10, 7, 18, 0))
    _add_session(client_id, datetime(2024, 11, 4, 18, 0))

    with session_scope() as session:
        october = _builder().build(session, _request(client_id, date(2024, 10, 1), date(2024, 10, 31)))
        november = _builder().build(session, _request(client_id))
        assert (october.invoice_number, november.invoice_number) == ("2024-0001", "2024-0002")


def test_unknown_client_raises_not_found() -> None:
    with session_scope() as session:
        with pytest.raises(NotFound):
            _builder().build(session, _request(12345))


def test_inverted_period_is_rejected(client_id: int) -> None:
    with session_scope() as session:
        with pytest.raises(InvalidRange):
            _builder().build(session, _request(client_id, date(2024, 11, 30), date(2024, 11, 1)))


def test_overlong_period_is_rejected(client_id: int) -> None:
    with session_scope() as session:
        with pytest.raises(ValidationFailed):
            _builder().build(session, _request(client_id, date(2023, 1, 1), date(2024, 12, 31)))


class FailingSequencer(InvoiceSequencer):
    def allocate(self, session: Session, invoice: Invoice) -> int:
        raise SequenceAllocationFailed("no numbers left", year=invoice.year)


class FailingAfterNumbering(InvoiceBuilder):
    def _add_line_items(self, session, invoice, summary, request) -> None:  # type: ignore[no-untyped-def]
        raise RuntimeError("disk on fire")


def test_sequence_failure_leaves_store_untouched(client_id: int) -> None:
    _add_session(client_id, datetime(2024, 11, 4, 18, 0))

    with session_scope() as session:
        with pytest.raises(SequenceAllocationFailed):
            _builder(sequencer=FailingSequencer()).build(session, _request(client_id))

    assert _store_counts() == (0, 0, 0)


def test_failure_after_numbering_rolls_back_invoice_and_links(client_id: int) -> None:
    _add_session(client_id, datetime(2024, 11, 4, 18, 0))

    with session_scope() as session:
        with pytest.raises(RuntimeError):
            FailingAfterNumbering(today=lambda: ISSUE_DAY).build(session, _request(client_id))

    assert _store_counts() == (0, 0, 0)
    with session_scope() as session:
        assert _builder().build(session, _request(client_id)).sequence_number == 1


class StaleSnapshotBuilder(InvoiceBuilder):
    """Adds already billed sessions to the selection for the first attempts."""

    def __init__(self, stale_ids: list[int], stale_attempts: int, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__(today=lambda: ISSUE_DAY, **kwargs)
        self.stale_ids = stale_ids
        self.stale_attempts = stale_attempts
        self.attempts = 0

    def select_billable(self, session: Session, request: BillingRequest) -> list[ClassSession]:
        fresh = super().select_billable(session, request)
        self.attempts += 1
        if self.attempts > self.stale_attempts:
            return fresh
        return fresh + [session.get(ClassSession, session_id) for session_id in self.stale_ids]


def test_conflicting_link_is_retried_with_fresh_selection(client_id: int) -> None:
    already_billed = _add_session(client_id, datetime(2024, 11, 4, 18, 0))
    with session_scope() as session:
        _builder().build(session, _request(client_id))
    pending = _add_session(client_id, datetime(2024, 11, 11, 18, 0))
    builder = StaleSnapshotBuilder([already_billed], stale_attempts=1, max_attempts=3)

    with session_scope() as session:
        invoice = builder.build(session, _request(client_id))
        assert [line.session_id for line in invoice.line_items] == [pending]
        assert invoice.sequence_number == 2

    assert builder.attempts == 2
    assert _store_counts() == (2, 2, 2)


def test_persistent_conflict_raises_and_leaves_store_untouched(client_id: int) -> None:
    already_billed = _add_session(client_id, datetime(2024, 11, 4, 18, 0))
    with session_scope() as session:
        _builder().build(session, _request(client_id))
    _add_session(client_id, datetime(2024, 11, 11, 18, 0))
    before = _store_counts()
    builder = StaleSnapshotBuilder([already_billed], stale_attempts=10, max_attempts=3)

    with session_scope() as session:
        with pytest.raises(ConcurrentBillingConflict):
            builder.build(session, _request(client_id))

    assert builder.attempts == 3
    assert _store_counts() == before


def test_concurrent_builds_bill_each_session_once(client_id: int) -> None:
    for day in (4, 11, 18, 25):
        _add_session(client_id, datetime(2024, 11, day, 18, 0))

    def _attempt(_: int) -> str:
        try:
            with session_scope() as session:
                return _builder().build(session, _request(client_id)).invoice_number
        except DomainError as exc:
            return exc.code

    with ThreadPoolExecutor(max_workers=4) as pool:
        outcomes = sorted(pool.map(_attempt, range(4)))

    assert outcomes == ["2024-0001"] + ["NO_BILLABLE_SESSIONS"] * 3
    assert _store_counts() == (1, 4, 4)
