"""Class session endpoints."""

from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from vereinsknete.backend.src.db import get_session_dependency
from vereinsknete.backend.src.models import ClassSession, SessionStatus
from vereinsknete.backend.src.schemas.session import (
    ScheduleWeekRequest,
    SessionCreate,
    SessionRead,
    SessionUpdate,
)
from vereinsknete.backend.src.services import session_lifecycle
from vereinsknete.backend.src.services import sessions as session_service
from vereinsknete.backend.src.services.templates import ClassTemplate

router = APIRouter(prefix="/sessions", tags=["sessions"])

SessionDep = Annotated[Session, Depends(get_session_dependency)]


@router.get("", response_model=list[SessionRead])
def list_sessions(
    session: SessionDep,
    client_id: int | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    status_filter: SessionStatus | None = Query(None, alias="status"),
) -> list[ClassSession]:
    return session_service.list_sessions(
        session,
        client_id=client_id,
        start=start_date,
        end=end_date,
        status=status_filter,
    )


@router.post("", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
def create_session(payload: SessionCreate, session: SessionDep) -> ClassSession:
    return session_service.create_session(session, **payload.model_dump())


@router.post(
    "/week", response_model=list[SessionRead], status_code=status.HTTP_201_CREATED
)
def schedule_week(payload: ScheduleWeekRequest, session: SessionDep) -> list[ClassSession]:
    """Fill the week containing ``day`` from weekly templates, skipping duplicates."""

    templates = [ClassTemplate(**item.model_dump()) for item in payload.templates]
    return session_service.schedule_week(session, templates, payload.day)


@router.get("/{session_id}", response_model=SessionRead)
def get_session(session_id: int, session: SessionDep) -> ClassSession:
    return session_service.get_session_or_404(session, session_id)


@router.patch("/{session_id}", response_model=SessionRead)
def update_session(
    session_id: int, payload: SessionUpdate, session: SessionDep
) -> ClassSession:
    return session_service.update_session(
        session, session_id, **payload.model_dump(exclude_unset=True)
    )


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(session_id: int, session: SessionDep) -> Response:
    session_service.delete_session(session, session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/complete", response_model=SessionRead)
def complete_session(session_id: int, session: SessionDep) -> ClassSession:
    return session_lifecycle.complete_session(session, session_id)


@router.post("/{session_id}/cancel", response_model=SessionRead)
def cancel_session(session_id: int, session: SessionDep) -> ClassSession:
    return session_lifecycle.cancel_session(session, session_id)
