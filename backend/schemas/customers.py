from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

CustomerStatus = Literal["active", "inactive"]


def _strip_required(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("field is required")
    return v


class CustomerCreate(BaseModel):
    firstname: str
    lastname: str
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    region: Optional[str] = None
    note: Optional[str] = None

    @field_validator("firstname", "lastname")
    @classmethod
    def _names(cls, v: str) -> str:
        return _strip_required(v)


class CustomerBulkCreate(BaseModel):
    customers: List[CustomerCreate] = Field(min_length=1, max_length=100)


class CustomerUpdate(BaseModel):
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    region: Optional[str] = None
    note: Optional[str] = None
    status: Optional[CustomerStatus] = None

    @field_validator("firstname", "lastname")
    @classmethod
    def _names(cls, v: Optional[str]) -> Optional[str]:
        return _strip_required(v) if v is not None else v


class AddressCreate(BaseModel):
    customer_id: Optional[UUID] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    label: Optional[str] = None
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: str
    country: str
    region: Optional[str] = None
    note: Optional[str] = None

    @field_validator("address_line1", "city", "postal_code", "country")
    @classmethod
    def _required(cls, v: str) -> str:
        return _strip_required(v)


class AddressBulkCreate(BaseModel):
    addresses: List[AddressCreate] = Field(min_length=1, max_length=100)


class AddressUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    label: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    note: Optional[str] = None

    @field_validator("address_line1", "city", "postal_code", "country")
    @classmethod
    def _required(cls, v: Optional[str]) -> Optional[str]:
        return _strip_required(v) if v is not None else v
