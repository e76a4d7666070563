from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator

ADJUSTMENT_ACTIONS = ("manual_adjustment", "damaged", "expired", "return")


class WarehouseInventoryInsert(BaseModel):
    warehouse_id: UUID
    batch_id: UUID
    quantity: int
    location_id: Optional[UUID] = None  # defaults to the warehouse's location
    warehouse_fee: Optional[Decimal] = None
    inbound_date: Optional[date] = None
    comments: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def _qty(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be greater than zero")
        return v


class WarehouseInventoryInsertRequest(BaseModel):
    items: List[WarehouseInventoryInsert]

    @model_validator(mode="after")
    def _validate(self):
        if not self.items:
            raise ValueError("items must not be empty")
        seen = set()
        for i in self.items:
            key = (i.warehouse_id, i.batch_id)
            if key in seen:
                raise ValueError("duplicate warehouse_id + batch_id in request")
            seen.add(key)
        return self


class InventoryAdjustment(BaseModel):
    warehouse_inventory_id: UUID
    new_quantity: int
    adjustment_type: str = "manual_adjustment"
    comments: Optional[str] = None

    @field_validator("new_quantity")
    @classmethod
    def _qty(cls, v: int) -> int:
        if v < 0:
            raise ValueError("new_quantity cannot be negative")
        return v

    @field_validator("adjustment_type")
    @classmethod
    def _type(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in ADJUSTMENT_ACTIONS:
            raise ValueError(f"adjustment_type must be one of: {', '.join(ADJUSTMENT_ACTIONS)}")
        return v


class InventoryAdjustRequest(BaseModel):
    items: List[InventoryAdjustment]

    @model_validator(mode="after")
    def _validate(self):
        if not self.items:
            raise ValueError("items must not be empty")
        ids = [i.warehouse_inventory_id for i in self.items]
        if len(ids) != len(set(ids)):
            raise ValueError("each warehouse_inventory_id may appear only once")
        return self
