from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator


class PricingCreate(BaseModel):
    sku_id: UUID
    price_type_id: UUID
    location_id: Optional[UUID] = None
    price: Decimal
    valid_from: datetime
    valid_to: Optional[datetime] = None
    status: str = "active"

    @field_validator("price")
    @classmethod
    def _price(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("price cannot be negative")
        return v.quantize(Decimal("0.01"))

    @model_validator(mode="after")
    def _window(self):
        if self.valid_to is not None and self.valid_to <= self.valid_from:
            raise ValueError("valid_to must be after valid_from")
        return self
