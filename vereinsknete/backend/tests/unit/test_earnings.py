"""Unit tests for earnings aggregation."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

from vereinsknete.backend.src.core.dates import duration_hours
from vereinsknete.backend.src.models import SessionStatus
from vereinsknete.backend.src.services.earnings import calculate_earnings, round_currency


@dataclass
class FakeSession:
    id: int
    client_id: int
    start_at: datetime
    end_at: datetime
    status: SessionStatus = SessionStatus.COMPLETED
    name: str = "Yoga"

    @property
    def duration_hours(self) -> Decimal:
        return duration_hours(self.start_at, self.end_at)


def _session(session_id: int, day: int, minutes: int, **kwargs) -> FakeSession:  # type: ignore[no-untyped-def]
    start = datetime(2024, 11, day, 18, 0)
    return FakeSession(
        id=session_id,
        client_id=kwargs.pop("client_id", 1),
        start_at=start,
        end_at=start + timedelta(minutes=minutes),
        **kwargs,
    )


def test_sums_completed_sessions_at_client_rate() -> None:
    sessions = [_session(1, 4, 75), _session(2, 5, 60), _session(3, 6, 45)]

    summary = calculate_earnings(sessions, Decimal("40.00"))

    assert summary.total_hours == Decimal("3.0")
    assert summary.total_amount == Decimal("120.00")
    assert [line.amount for line in summary.lines] == [
        Decimal("50.00"),
        Decimal("40.00"),
        Decimal("30.00"),
    ]
    assert summary.session_ids == [1, 2, 3]


def test_skips_sessions_that_are_not_completed() -> None:
    sessions = [
        _session(1, 4, 60),
        _session(2, 5, 60, status=SessionStatus.CANCELLED),
        _session(3, 6, 60, status=SessionStatus.SCHEDULED),
    ]

    summary = calculate_earnings(sessions, Decimal("40.00"))

    assert summary.session_ids == [1]
    assert summary.total_amount == Decimal("40.00")


def test_empty_input_yields_zero_totals() -> None:
    summary = calculate_earnings([], Decimal("40.00"))

    assert summary.lines == ()
    assert summary.total_hours == 0
    assert summary.total_amount == Decimal("0.00")


def test_lines_are_ordered_by_start_regardless_of_input_order() -> None:
    sessions = [_session(3, 6, 45), _session(1, 4, 75), _session(2, 5, 60)]

    summary = calculate_earnings(sessions, Decimal("40.00"))

    assert summary.session_ids == [1, 2, 3]


def test_rates_can_be_resolved_per_client() -> None:
    sessions = [_session(1, 4, 60, client_id=1), _session(2, 5, 60, client_id=2)]

    summary = calculate_earnings(sessions, {1: Decimal("30.00"), 2: Decimal("45.50")})

    assert summary.total_amount == Decimal("75.50")
    assert [line.rate for line in summary.lines] == [Decimal("30.00"), Decimal("45.50")]


def test_each_line_is_rounded_before_summing() -> None:
    # 20 minutes at 10.00 is 3.333... per line
    sessions = [_session(1, 4, 20), _session(2, 5, 20), _session(3, 6, 20)]

    summary = calculate_earnings(sessions, Decimal("10.00"))

    assert [line.amount for line in summary.lines] == [Decimal("3.33")] * 3
    assert summary.total_amount == Decimal("9.99")


def test_round_currency_uses_half_even() -> None:
    assert round_currency(Decimal("0.125")) == Decimal("0.12")
    assert round_currency(Decimal("0.135")) == Decimal("0.14")
    assert round_currency(Decimal("2.5")) == Decimal("2.50")
