from datetime import date
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

BatchStatus = Literal["pending", "received", "released", "quarantined", "expired", "suspended"]


class ProductBatchCreate(BaseModel):
    lot_number: str
    sku_id: UUID
    manufacturer_id: Optional[UUID] = None
    manufacture_date: Optional[date] = None
    expiry_date: Optional[date] = None
    initial_quantity: int = 0
    status: BatchStatus = "pending"
    notes: Optional[str] = None
    registry_note: Optional[str] = None

    @field_validator("lot_number")
    @classmethod
    def _lot(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("lot_number is required")
        return v

    @field_validator("initial_quantity")
    @classmethod
    def _qty(cls, v: int) -> int:
        if v < 0:
            raise ValueError("initial_quantity cannot be negative")
        return v

    @model_validator(mode="after")
    def _dates(self):
        if self.manufacture_date and self.expiry_date and self.expiry_date < self.manufacture_date:
            raise ValueError("expiry_date cannot be before manufacture_date")
        return self


class PackagingMaterialBatchCreate(BaseModel):
    lot_number: str
    packaging_material_id: UUID
    supplier_id: Optional[UUID] = None
    received_date: Optional[date] = None
    expiry_date: Optional[date] = None
    quantity: int = 0
    unit: Optional[str] = None
    unit_cost: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    exchange_rate: Optional[Decimal] = Field(default=None, gt=0)
    status: BatchStatus = "pending"
    registry_note: Optional[str] = None

    @field_validator("lot_number")
    @classmethod
    def _lot(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("lot_number is required")
        return v

    @field_validator("quantity")
    @classmethod
    def _qty(cls, v: int) -> int:
        if v < 0:
            raise ValueError("quantity cannot be negative")
        return v


class BatchStatusUpdate(BaseModel):
    status: BatchStatus
    notes: Optional[str] = None
