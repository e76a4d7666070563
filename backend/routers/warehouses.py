from datetime import date, timedelta
from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.constants import NEAR_EXPIRY_DAYS
from core.logging import log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_paginated_result, transform_warehouse_row, transform_warehouse_summary
from db.batch import BatchRegistry
from db.database import get_async_session, labeled
from db.inventory.warehouse_inventory import WarehouseInventory
from db.location import Location
from db.users import User
from db.warehouse import Warehouse
from routers.batches import BatchSources
from schemas.locations import WarehouseCreate

router = APIRouter()


def _warehouse_select():
    return (
        select(
            *labeled(Warehouse),
            Location.name.label("location_name"),
            Location.city.label("location_city"),
            Location.country.label("location_country"),
        )
        .select_from(Warehouse)
        .outerjoin(Location, Location.id == Warehouse.location_id)
    )


async def warehouse_summary(db: AsyncSession, warehouse_id: UUID, today: Optional[date] = None) -> Dict:
    """Lot counts and quantities for one warehouse."""
    today = today or date.today()
    horizon = today + timedelta(days=NEAR_EXPIRY_DAYS)
    src = BatchSources()
    expiry = src.expiry_date
    stmt = (
        select(
            func.count(WarehouseInventory.id).label("total_lots"),
            func.coalesce(func.sum(WarehouseInventory.warehouse_quantity), 0).label("total_quantity"),
            func.coalesce(func.sum(WarehouseInventory.reserved_quantity), 0).label("reserved_quantity"),
            func.coalesce(func.sum(case((expiry < today, 1), else_=0)), 0).label("expired_lots"),
            func.coalesce(
                func.sum(case((and_(expiry >= today, expiry <= horizon), 1), else_=0)), 0
            ).label("near_expiry_lots"),
        )
        .select_from(WarehouseInventory)
        .join(BatchRegistry, BatchRegistry.id == WarehouseInventory.batch_id)
    )
    stmt = src.join(stmt).where(WarehouseInventory.warehouse_id == warehouse_id)
    stats = (await db.execute(stmt)).mappings().first() or {}
    return transform_warehouse_summary(stats)


@router.get("/", response_model=Dict)
async def list_warehouses(
    keyword: Optional[str] = Query(None),
    warehouse_type: Optional[str] = Query(None, alias="warehouseType"),
    include_archived: bool = Query(False, alias="includeArchived"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_warehouses")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _warehouse_select()
    if not include_archived:
        stmt = stmt.where(Warehouse.is_archived.is_(False))
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(Warehouse.name.ilike(like), Warehouse.code.ilike(like), Location.name.ilike(like)))
    if warehouse_type:
        stmt = stmt.where(Warehouse.warehouse_type == warehouse_type)

    stmt = stmt.order_by(sorting.clause(sortable_columns(Warehouse), "warehouses"), Warehouse.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_warehouse_row)
    return paginated_response(result["data"], result["pagination"], "Warehouses fetched successfully")


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_warehouse(
    payload: WarehouseCreate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_warehouses")),
    db: AsyncSession = Depends(get_async_session),
):
    code = payload.code.upper()
    existing = await db.execute(select(Warehouse.id).where(func.upper(Warehouse.code) == code))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Warehouse code already exists")
    if payload.location_id is not None:
        found = await db.execute(select(Location.id).where(Location.id == payload.location_id))
        if not found.scalar_one_or_none():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")

    warehouse = Warehouse(**payload.model_dump(exclude={"code"}), code=code, created_by=user.id)
    db.add(warehouse)
    await db.commit()
    log_system_info("Warehouse created", context="warehouses/create", warehouseId=str(warehouse.id), code=code)

    row = (await db.execute(_warehouse_select().where(Warehouse.id == warehouse.id))).mappings().first()
    return ok_response(transform_warehouse_row(row), "Warehouse created successfully")


@router.get("/{warehouse_id}", response_model=Dict)
async def get_warehouse(
    warehouse_id: UUID,
    ctx: Dict = Depends(require_permissions("view_warehouses")),
    db: AsyncSession = Depends(get_async_session),
):
    row = (await db.execute(_warehouse_select().where(Warehouse.id == warehouse_id))).mappings().first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warehouse not found")
    data = transform_warehouse_row(row)
    data["summary"] = await warehouse_summary(db, warehouse_id)
    return ok_response(data, "Warehouse details fetched successfully")
