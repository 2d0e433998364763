"""Invoice line item schema."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class InvoiceLineItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    session_id: int
    description: str
    service_start: datetime
    service_end: datetime
    hours: Decimal
    rate: Decimal
    amount: Decimal
