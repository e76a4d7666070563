from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi_users import schemas
from pydantic import BaseModel, EmailStr, field_validator


class UserRead(schemas.BaseUser[UUID]):
    role_id: Optional[UUID] = None
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    job_title: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class UserUpdate(schemas.BaseUserUpdate):
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    job_title: Optional[str] = None
    phone: Optional[str] = None


class AdminUserCreate(BaseModel):
    email: EmailStr
    password: str
    role_name: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    job_title: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v or "") < 8:
            raise ValueError("password must be at least 8 characters")
        return v

    @field_validator("role_name")
    @classmethod
    def _role(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("role_name is required")
        return v


class UserRoleUpdate(BaseModel):
    role_name: str


class UserCreate(schemas.BaseUserCreate):
    role_id: Optional[UUID] = None
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    job_title: Optional[str] = None
    phone: Optional[str] = None
