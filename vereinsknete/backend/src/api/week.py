"""Calendar week endpoint used by the weekly session view."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Query

from vereinsknete.backend.src.core.dates import week_days, week_end, week_start
from vereinsknete.backend.src.schemas.week import WeekRead

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/week", response_model=WeekRead)
def get_week(day: date | None = Query(None, description="Any day of the week; defaults to today.")) -> WeekRead:
    reference = day or date.today()
    return WeekRead(
        week_start=week_start(reference),
        week_end=week_end(reference),
        days=week_days(reference),
    )
