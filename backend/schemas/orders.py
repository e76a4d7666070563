from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator

OrderCategory = Literal["sales", "transfer", "manufacturing"]


class OrderItemCreate(BaseModel):
    sku_id: Optional[UUID] = None
    packaging_material_id: Optional[UUID] = None
    quantity_ordered: int
    price: Optional[Decimal] = None

    @field_validator("quantity_ordered")
    @classmethod
    def _qty(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity_ordered must be greater than zero")
        return v

    @model_validator(mode="after")
    def _one_target(self):
        # exactly one of sku_id / packaging_material_id
        if bool(self.sku_id) == bool(self.packaging_material_id):
            raise ValueError("each item needs exactly one of sku_id or packaging_material_id")
        return self


class OrderCreate(BaseModel):
    order_category: OrderCategory = "sales"
    delivery_method: Optional[str] = None
    note: Optional[str] = None
    items: List[OrderItemCreate]

    @field_validator("items")
    @classmethod
    def _items(cls, v: List[OrderItemCreate]) -> List[OrderItemCreate]:
        if not v:
            raise ValueError("an order needs at least one item")
        return v


class OrderStatusUpdate(BaseModel):
    status: str


class AllocateRequest(BaseModel):
    strategy: Literal["fefo", "fifo"] = "fefo"
    warehouse_id: Optional[UUID] = None
    exclude_expired: bool = False


class FulfillRequest(BaseModel):
    delivery_method: Optional[str] = None
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None


class ShipmentCompleteRequest(BaseModel):
    delivered: bool = False
    notes: Optional[str] = None
