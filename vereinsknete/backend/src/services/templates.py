"""Weekly class templates and their expansion into session drafts."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from vereinsknete.backend.src.core.errors import InvalidRange, ValidationFailed


@dataclass(frozen=True, slots=True)
class ClassTemplate:
    """A recurring class: same client, weekday, start time and length every week.

    ``weekday`` follows :meth:`datetime.date.weekday` (Monday is 0).
    """

    client_id: int
    name: str
    weekday: int
    start_time: time
    duration_minutes: int

    def __post_init__(self) -> None:
        if not 0 <= self.weekday <= 6:
            raise ValidationFailed("Template weekday must be between 0 and 6", weekday=self.weekday)
        if self.duration_minutes <= 0:
            raise InvalidRange(
                "Template duration must be positive",
                duration_minutes=self.duration_minutes,
            )


@dataclass(frozen=True, slots=True)
class SessionDraft:
    client_id: int
    name: str
    start_at: datetime
    end_at: datetime


def expand_template(template: ClassTemplate, start: date, end: date) -> list[SessionDraft]:
    """Return one draft per occurrence of ``template`` in ``[start, end]``."""

    if end < start:
        raise InvalidRange(
            "Expansion range end must not precede its start",
            start=start.isoformat(),
            end=end.isoformat(),
        )

    first = start + timedelta(days=(template.weekday - start.weekday()) % 7)
    drafts: list[SessionDraft] = []
    day = first
    while day <= end:
        begins = datetime.combine(day, template.start_time)
        drafts.append(
            SessionDraft(
                client_id=template.client_id,
                name=template.name,
                start_at=begins,
                end_at=begins + timedelta(minutes=template.duration_minutes),
            )
        )
        day += timedelta(days=7)
    return drafts


def expand_templates(
    templates: Iterable[ClassTemplate], start: date, end: date
) -> list[SessionDraft]:
    """Expand every template over ``[start, end]``, ordered by start time."""

    drafts = [draft for template in templates for draft in expand_template(template, start, end)]
    drafts.sort(key=lambda draft: (draft.start_at, draft.client_id, draft.name))
    return drafts


__all__ = ["ClassTemplate", "SessionDraft", "expand_template", "expand_templates"]
