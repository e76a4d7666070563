from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.auth import current_active_user
from core.logging import log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_location_row, transform_paginated_result
from db.database import get_async_session, labeled
from db.location import Location, LocationType
from db.users import User
from routers.products import actor_columns
from schemas.locations import LocationCreate

router = APIRouter()
types_router = APIRouter()


def _location_select():
    creator = aliased(User)
    updater = aliased(User)
    return (
        select(
            *labeled(Location),
            LocationType.name.label("location_type_name"),
            LocationType.code.label("location_type_code"),
            *actor_columns(creator, "created_by"),
            *actor_columns(updater, "updated_by"),
        )
        .select_from(Location)
        .outerjoin(LocationType, LocationType.id == Location.location_type_id)
        .outerjoin(creator, creator.id == Location.created_by)
        .outerjoin(updater, updater.id == Location.updated_by)
    )


async def _fetch_location(db: AsyncSession, location_id: UUID) -> Dict:
    row = (await db.execute(_location_select().where(Location.id == location_id))).mappings().first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    return transform_location_row(row)


@types_router.get("/", response_model=List[Dict])
async def list_location_types(
    ctx: Dict = Depends(require_permissions("view_locations")),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(select(LocationType).order_by(func.lower(LocationType.name).asc()))
    return [
        {"id": str(t.id), "code": t.code, "name": t.name, "description": t.description}
        for t in res.scalars().all()
    ]


@router.get("/", response_model=Dict)
async def list_locations(
    keyword: Optional[str] = Query(None),
    location_type: Optional[str] = Query(None, alias="locationType"),
    city: Optional[str] = Query(None),
    include_archived: bool = Query(False, alias="includeArchived"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_locations")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _location_select()
    if not include_archived:
        stmt = stmt.where(Location.is_archived.is_(False))
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(Location.name.ilike(like), Location.city.ilike(like), Location.address_line.ilike(like)))
    if location_type:
        stmt = stmt.where(or_(LocationType.code == location_type, LocationType.name == location_type))
    if city:
        stmt = stmt.where(func.lower(Location.city) == city.strip().lower())

    stmt = stmt.order_by(sorting.clause(sortable_columns(Location, LocationType), "locations"), Location.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_location_row)
    return paginated_response(result["data"], result["pagination"], "Locations fetched successfully")


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_location(
    payload: LocationCreate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_locations")),
    db: AsyncSession = Depends(get_async_session),
):
    found = await db.execute(select(LocationType.id).where(LocationType.id == payload.location_type_id))
    if not found.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location type not found")

    location = Location(**payload.model_dump(), created_by=user.id)
    db.add(location)
    await db.commit()
    log_system_info("Location created", context="locations/create", locationId=str(location.id))
    return ok_response(await _fetch_location(db, location.id), "Location created successfully")


@router.get("/{location_id}", response_model=Dict)
async def get_location(
    location_id: UUID,
    ctx: Dict = Depends(require_permissions("view_locations")),
    db: AsyncSession = Depends(get_async_session),
):
    return ok_response(await _fetch_location(db, location_id), "Location fetched successfully")
