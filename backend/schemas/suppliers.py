from pydantic import BaseModel
from typing import Optional
from uuid import UUID


class PartyRead(BaseModel):
    id: UUID
    name: str
    contact: Optional[str] = None
    notes: Optional[str] = None


class PartyCreate(BaseModel):
    name: str
    contact: Optional[str] = None
    notes: Optional[str] = None


class PartyUpdate(BaseModel):
    name: Optional[str] = None
    contact: Optional[str] = None
    notes: Optional[str] = None
