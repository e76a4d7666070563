from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


class LocationCreate(BaseModel):
    name: str
    location_type_id: UUID
    address_line: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class WarehouseCreate(BaseModel):
    name: str
    code: str
    location_id: Optional[UUID] = None
    warehouse_type: Optional[str] = None
    storage_capacity: Optional[int] = None
    default_fee: Optional[Decimal] = None

    @field_validator("name", "code")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("storage_capacity")
    @classmethod
    def _capacity(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("storage_capacity cannot be negative")
        return v
