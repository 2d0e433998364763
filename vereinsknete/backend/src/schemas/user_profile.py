"""User profile schemas."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class UserProfileWrite(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str = Field(min_length=1)
    tax_id: str | None = None
    bank_details: str | None = None
    default_hourly_rate: Decimal | None = Field(default=None, gt=0)


class UserProfileRead(UserProfileWrite):
    model_config = ConfigDict(from_attributes=True)

    id: int
