from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

RecordStatus = Literal["active", "inactive", "discontinued"]


def _strip_required(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("field is required")
    return v


class ProductCreate(BaseModel):
    name: str
    brand: Optional[str] = None
    category: Optional[str] = None
    series: Optional[str] = None
    description: Optional[str] = None
    status: RecordStatus = "active"

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _strip_required(v)


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    series: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return _strip_required(v)


class StatusUpdate(BaseModel):
    status: RecordStatus


class SkuCreate(BaseModel):
    product_id: UUID
    sku: str
    barcode: Optional[str] = None
    language: Optional[str] = None
    country_code: Optional[str] = None
    market_region: Optional[str] = None
    size_label: Optional[str] = None
    description: Optional[str] = None
    status: RecordStatus = "active"

    @field_validator("sku")
    @classmethod
    def _sku(cls, v: str) -> str:
        return _strip_required(v).upper()

    @field_validator("country_code")
    @classmethod
    def _country(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().upper()
        if not v:
            return None
        if len(v) not in (2, 3):
            raise ValueError("country_code must be a 2 or 3 letter code (e.g. CA)")
        return v
