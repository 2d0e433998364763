"""User profile endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vereinsknete.backend.src.core.errors import NotFound
from vereinsknete.backend.src.db import get_session_dependency
from vereinsknete.backend.src.models import UserProfile
from vereinsknete.backend.src.schemas.user_profile import UserProfileRead, UserProfileWrite
from vereinsknete.backend.src.services import user_profile as profile_service

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=UserProfileRead)
def get_profile(
    session: Annotated[Session, Depends(get_session_dependency)],
) -> UserProfile:
    profile = profile_service.get_profile(session)
    if profile is None:
        raise NotFound("User profile not found")
    return profile


@router.put("", response_model=UserProfileRead)
def save_profile(
    payload: UserProfileWrite,
    session: Annotated[Session, Depends(get_session_dependency)],
) -> UserProfile:
    return profile_service.upsert_profile(session, **payload.model_dump())
