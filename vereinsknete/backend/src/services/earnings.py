"""Earnings aggregation over completed sessions."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Protocol

CENT = Decimal("0.01")
ZERO = Decimal("0")


class BillableSession(Protocol):
    id: int | None
    client_id: int
    name: str
    start_at: datetime
    end_at: datetime

    @property
    def status(self): ...

    @property
    def duration_hours(self) -> Decimal: ...


RateSource = Decimal | Mapping[int, Decimal] | Callable[[BillableSession], Decimal]


@dataclass(frozen=True, slots=True)
class EarningsLine:
    """Hours, rate and rounded amount for one completed session."""

    session_id: int | None
    description: str
    service_start: datetime
    service_end: datetime
    hours: Decimal
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True, slots=True)
class EarningsSummary:
    total_hours: Decimal
    total_amount: Decimal
    lines: tuple[EarningsLine, ...]

    @property
    def session_ids(self) -> list[int]:
        return [line.session_id for line in self.lines if line.session_id is not None]


def round_currency(value: Decimal) -> Decimal:
    """Round to currency minor units using banker's rounding."""

    return value.quantize(CENT, rounding=ROUND_HALF_EVEN)


def _resolve_rate(rates: RateSource, item: BillableSession) -> Decimal:
    if isinstance(rates, Decimal):
        return rates
    if isinstance(rates, Mapping):
        return Decimal(rates[item.client_id])
    return Decimal(rates(item))


def _is_completed(item: BillableSession) -> bool:
    status = getattr(item.status, "value", item.status)
    return str(status).lower() == "completed"


def calculate_earnings(
    sessions: Iterable[BillableSession], rates: RateSource
) -> EarningsSummary:
    """Sum billable hours and amounts over the completed ``sessions``.

    ``rates`` is either a single rate, a mapping of client id to rate or a
    callable returning the rate for a session. Sessions that are not
    completed are skipped. Each amount is rounded half-to-even to cents
    before it is added to the total.
    """

    lines: list[EarningsLine] = []
    for item in sessions:
        if not _is_completed(item):
            continue
        hours = item.duration_hours
        rate = _resolve_rate(rates, item)
        lines.append(
            EarningsLine(
                session_id=item.id,
                description=item.name,
                service_start=item.start_at,
                service_end=item.end_at,
                hours=hours,
                rate=rate,
                amount=round_currency(hours * rate),
            )
        )

    lines.sort(key=lambda line: (line.service_start, line.session_id or 0))
    total_hours = sum((line.hours for line in lines), ZERO)
    total_amount = sum((line.amount for line in lines), ZERO)
    return EarningsSummary(
        total_hours=total_hours,
        total_amount=round_currency(total_amount),
        lines=tuple(lines),
    )


__all__ = [
    "EarningsLine",
    "EarningsSummary",
    "calculate_earnings",
    "round_currency",
]
