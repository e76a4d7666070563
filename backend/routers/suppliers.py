from typing import Dict, List, Type
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging import log_system_info
from core.permissions import require_permissions
from db.database import get_async_session
from db.supplier import Manufacturer, Supplier
from schemas.suppliers import PartyCreate, PartyRead, PartyUpdate

router = APIRouter()
manufacturers_router = APIRouter()


async def _list(db: AsyncSession, model: Type) -> List[PartyRead]:
    res = await db.execute(select(model).order_by(func.lower(model.name).asc()))
    return [PartyRead(**m.to_schema) for m in res.scalars().all()]


async def _create(db: AsyncSession, model: Type, payload: PartyCreate, label: str) -> PartyRead:
    name = (payload.name or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name is required")

    existing = await db.execute(select(model).where(func.lower(model.name) == name.lower()))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{label} already exists")

    m = model(name=name, contact=payload.contact, notes=payload.notes)
    db.add(m)
    await db.commit()
    log_system_info(f"{label} created", context=f"{label.lower()}s/create", recordId=str(m.id))
    return PartyRead(**m.to_schema)


async def _update(db: AsyncSession, model: Type, record_id: UUID, payload: PartyUpdate, label: str) -> PartyRead:
    res = await db.execute(select(model).where(model.id == record_id))
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")

    data = payload.model_dump(exclude_unset=True)
    if data.get("name") is not None:
        name = data["name"].strip()
        clash = await db.execute(
            select(model.id).where(func.lower(model.name) == name.lower(), model.id != record_id)
        )
        if clash.scalar_one_or_none():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{label} already exists")
        m.name = name
    if "contact" in data:
        m.contact = data["contact"]
    if "notes" in data:
        m.notes = data["notes"]

    await db.commit()
    return PartyRead(**m.to_schema)


@router.get("/", response_model=List[PartyRead])
async def list_suppliers(
    ctx: Dict = Depends(require_permissions("manage_suppliers")),
    db: AsyncSession = Depends(get_async_session),
):
    return await _list(db, Supplier)


@router.post("/", response_model=PartyRead, status_code=status.HTTP_201_CREATED)
async def create_supplier(
    payload: PartyCreate,
    ctx: Dict = Depends(require_permissions("manage_suppliers")),
    db: AsyncSession = Depends(get_async_session),
):
    return await _create(db, Supplier, payload, "Supplier")


@router.patch("/{supplier_id}", response_model=PartyRead)
async def update_supplier(
    supplier_id: UUID,
    payload: PartyUpdate,
    ctx: Dict = Depends(require_permissions("manage_suppliers")),
    db: AsyncSession = Depends(get_async_session),
):
    return await _update(db, Supplier, supplier_id, payload, "Supplier")


@manufacturers_router.get("/", response_model=List[PartyRead])
async def list_manufacturers(
    ctx: Dict = Depends(require_permissions("manage_suppliers")),
    db: AsyncSession = Depends(get_async_session),
):
    return await _list(db, Manufacturer)


@manufacturers_router.post("/", response_model=PartyRead, status_code=status.HTTP_201_CREATED)
async def create_manufacturer(
    payload: PartyCreate,
    ctx: Dict = Depends(require_permissions("manage_suppliers")),
    db: AsyncSession = Depends(get_async_session),
):
    return await _create(db, Manufacturer, payload, "Manufacturer")


@manufacturers_router.patch("/{manufacturer_id}", response_model=PartyRead)
async def update_manufacturer(
    manufacturer_id: UUID,
    payload: PartyUpdate,
    ctx: Dict = Depends(require_permissions("manage_suppliers")),
    db: AsyncSession = Depends(get_async_session),
):
    return await _update(db, Manufacturer, manufacturer_id, payload, "Manufacturer")
