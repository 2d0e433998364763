"""Week schemas."""

from datetime import date

from pydantic import BaseModel


class WeekRead(BaseModel):
    week_start: date
    week_end: date
    days: list[date]
