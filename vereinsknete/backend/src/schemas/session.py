"""Class session schemas."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vereinsknete.backend.src.models import SessionStatus


class SessionCreate(BaseModel):
    """Payload for scheduling a single session."""

    client_id: int
    name: str = Field(min_length=1, max_length=255)
    start_at: datetime
    end_at: datetime
    notes: str = ""

    @model_validator(mode="after")
    def _check_range(self) -> "SessionCreate":
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class SessionUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    notes: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None


class SessionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    name: str
    start_at: datetime
    end_at: datetime
    duration_hours: Decimal
    status: SessionStatus
    notes: str
    invoice_id: int | None


class TemplateInput(BaseModel):
    """A weekly recurring class used to fill a week with scheduled sessions."""

    client_id: int
    name: str = Field(min_length=1, max_length=255)
    weekday: int = Field(ge=0, le=6)
    start_time: time
    duration_minutes: int = Field(gt=0, le=24 * 60)


class ScheduleWeekRequest(BaseModel):
    day: date
    templates: list[TemplateInput]
