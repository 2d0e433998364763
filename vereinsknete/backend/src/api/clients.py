"""Client endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from vereinsknete.backend.src.db import get_session_dependency
from vereinsknete.backend.src.models import Client
from vereinsknete.backend.src.schemas.client import ClientCreate, ClientRead, ClientUpdate
from vereinsknete.backend.src.services import clients as client_service

router = APIRouter(prefix="/clients", tags=["clients"])

SessionDep = Annotated[Session, Depends(get_session_dependency)]


@router.get("", response_model=list[ClientRead])
def list_clients(
    session: SessionDep,
    active_only: bool = Query(False, description="Hide deactivated clients."),
) -> list[Client]:
    return client_service.list_clients(session, active_only=active_only)


@router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(payload: ClientCreate, session: SessionDep) -> Client:
    return client_service.create_client(session, **payload.model_dump())


@router.get("/{client_id}", response_model=ClientRead)
def get_client(client_id: int, session: SessionDep) -> Client:
    return client_service.get_client_or_404(session, client_id)


@router.patch("/{client_id}", response_model=ClientRead)
def update_client(client_id: int, payload: ClientUpdate, session: SessionDep) -> Client:
    return client_service.update_client(
        session, client_id, **payload.model_dump(exclude_unset=True)
    )


@router.post("/{client_id}/deactivate", response_model=ClientRead)
def deactivate_client(client_id: int, session: SessionDep) -> Client:
    """Hide the client from active lists; invoices and numbers stay intact."""

    return client_service.deactivate_client(session, client_id)
