"""Client schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ClientCreate(BaseModel):
    """Payload for creating a client."""

    name: str = Field(min_length=1, max_length=255)
    address: str = ""
    contact_person: str | None = None
    hourly_rate: Decimal = Field(gt=0, decimal_places=2)


class ClientUpdate(BaseModel):
    """Partial update of a client; omitted fields stay unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    address: str | None = None
    contact_person: str | None = None
    hourly_rate: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    is_active: bool | None = None


class ClientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: str
    contact_person: str | None
    hourly_rate: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime
