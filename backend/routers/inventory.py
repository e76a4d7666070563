from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.constants import (
    ACTION_MANUAL_ADJUSTMENT,
    ACTION_MANUAL_STOCK_INSERT,
    BATCH_TYPES,
    INVENTORY_IN_STOCK,
    INVENTORY_OUT_OF_STOCK,
)
from core.errors import AppError
from core.fulfillment import build_inventory_checksum
from core.logging import log_system_exception, log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import (
    transform_inventory_summary_row,
    transform_location_inventory_row,
    transform_paginated_result,
    transform_warehouse_inventory_row,
)
from db.batch import BatchRegistry
from db.database import get_async_session, labeled
from db.inventory.activity import InventoryActionType, InventoryActivityLog
from db.inventory.location_inventory import LocationInventory
from db.inventory.warehouse_inventory import WarehouseInventory
from db.location import Location
from db.users import User
from db.warehouse import Warehouse
from routers.batches import BatchSources
from schemas.inventory import InventoryAdjustRequest, WarehouseInventoryInsertRequest

warehouse_router = APIRouter()
location_router = APIRouter()
action_types_router = APIRouter()


async def action_type_id(db: AsyncSession, name: str) -> UUID:
    res = await db.execute(select(InventoryActionType.id).where(InventoryActionType.name == name))
    found = res.scalar_one_or_none()
    if not found:
        raise AppError.server(f"Inventory action type '{name}' is not configured")
    return found


async def write_activity_log(
    *,
    db: AsyncSession,
    user_id: Optional[UUID],
    action_name: str,
    previous_quantity: int,
    new_quantity: int,
    warehouse_inventory_id: Optional[UUID] = None,
    location_inventory_id: Optional[UUID] = None,
    adjustment_name: Optional[str] = None,
    order_id: Optional[UUID] = None,
    comments: Optional[str] = None,
    source_type: Optional[str] = None,
    source_ref_id: Optional[UUID] = None,
    meta: Optional[Dict[str, Any]] = None,
    status_code: Optional[str] = None,
) -> InventoryActivityLog:
    """Add one activity log row (not committed) with its checksum."""
    performed_at = datetime.utcnow()
    quantity_change = int(new_quantity) - int(previous_quantity)
    checksum = build_inventory_checksum({
        "warehouse_inventory_id": warehouse_inventory_id,
        "location_inventory_id": location_inventory_id,
        "action": action_name,
        "adjustment": adjustment_name,
        "previous_quantity": int(previous_quantity),
        "quantity_change": quantity_change,
        "new_quantity": int(new_quantity),
        "performed_by": user_id,
        "performed_at": performed_at.isoformat(),
        "order_id": order_id,
        "source_type": source_type,
        "source_ref_id": source_ref_id,
    })
    log = InventoryActivityLog(
        warehouse_inventory_id=warehouse_inventory_id,
        location_inventory_id=location_inventory_id,
        inventory_action_type_id=await action_type_id(db, action_name),
        adjustment_type_id=await action_type_id(db, adjustment_name) if adjustment_name else None,
        previous_quantity=int(previous_quantity),
        quantity_change=quantity_change,
        new_quantity=int(new_quantity),
        status=status_code,
        performed_by=user_id,
        performed_at=performed_at,
        order_id=order_id,
        comments=comments,
        source_type=source_type,
        source_ref_id=source_ref_id,
        checksum=checksum,
        meta=meta or {},
    )
    db.add(log)
    return log


def _lot_status(quantity: int) -> str:
    return INVENTORY_IN_STOCK if quantity > 0 else INVENTORY_OUT_OF_STOCK


def _warehouse_inventory_select(src: BatchSources):
    stmt = (
        select(*labeled(WarehouseInventory), Warehouse.name.label("warehouse_name"), *src.columns())
        .select_from(WarehouseInventory)
        .join(Warehouse, Warehouse.id == WarehouseInventory.warehouse_id)
        .join(BatchRegistry, BatchRegistry.id == WarehouseInventory.batch_id)
    )
    return src.join(stmt)


def _location_inventory_select(src: BatchSources):
    stmt = (
        select(*labeled(LocationInventory), Location.name.label("location_name"), *src.columns())
        .select_from(LocationInventory)
        .join(Location, Location.id == LocationInventory.location_id)
        .join(BatchRegistry, BatchRegistry.id == LocationInventory.batch_id)
    )
    return src.join(stmt)


def _check_batch_type(batch_type: Optional[str]) -> None:
    if batch_type and batch_type not in BATCH_TYPES:
        raise AppError.validation(f"batchType must be one of: {', '.join(BATCH_TYPES)}")


def _summary_select(src: BatchSources, model, quantity_col):
    item_id = func.coalesce(src.sku.id, src.material.id)
    item_code = func.coalesce(src.sku.sku, src.material.code)
    item_name = func.coalesce(src.product.name, src.material.name)
    stmt = (
        select(
            BatchRegistry.batch_type.label("item_type"),
            item_id.label("item_id"),
            item_code.label("item_code"),
            item_name.label("item_name"),
            func.count(model.id).label("total_lots"),
            func.coalesce(func.sum(quantity_col), 0).label("total_quantity"),
            func.coalesce(func.sum(model.reserved_quantity), 0).label("reserved_quantity"),
            func.min(src.expiry_date).label("earliest_expiry"),
        )
        .select_from(model)
        .join(BatchRegistry, BatchRegistry.id == model.batch_id)
    )
    stmt = src.join(stmt).group_by(BatchRegistry.batch_type, item_id, item_code, item_name)
    return stmt.order_by(item_name.asc(), item_code.asc())


@warehouse_router.get("/", response_model=Dict)
async def list_warehouse_inventory(
    warehouse_id: Optional[UUID] = Query(None, alias="warehouseId"),
    batch_type: Optional[str] = Query(None, alias="batchType"),
    keyword: Optional[str] = Query(None),
    lot_status: Optional[str] = Query(None, alias="status"),
    expiry_before: Optional[date] = Query(None, alias="expiryBefore"),
    expiry_after: Optional[date] = Query(None, alias="expiryAfter"),
    inbound_after: Optional[date] = Query(None, alias="inboundAfter"),
    inbound_before: Optional[date] = Query(None, alias="inboundBefore"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_inventory")),
    db: AsyncSession = Depends(get_async_session),
):
    _check_batch_type(batch_type)
    src = BatchSources()
    stmt = _warehouse_inventory_select(src)
    if warehouse_id:
        stmt = stmt.where(WarehouseInventory.warehouse_id == warehouse_id)
    if batch_type:
        stmt = stmt.where(BatchRegistry.batch_type == batch_type)
    if keyword:
        stmt = stmt.where(src.keyword_clause(keyword))
    if lot_status:
        stmt = stmt.where(WarehouseInventory.status == lot_status)
    if expiry_before:
        stmt = stmt.where(src.expiry_date <= expiry_before)
    if expiry_after:
        stmt = stmt.where(src.expiry_date >= expiry_after)
    if inbound_after:
        stmt = stmt.where(WarehouseInventory.inbound_date >= inbound_after)
    if inbound_before:
        stmt = stmt.where(WarehouseInventory.inbound_date <= inbound_before)

    columns = sortable_columns(WarehouseInventory, Warehouse)
    stmt = stmt.order_by(sorting.clause(columns, "warehouseInventory"), WarehouseInventory.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_warehouse_inventory_row)
    return paginated_response(result["data"], result["pagination"], "Warehouse inventory fetched successfully")


@warehouse_router.get("/summary", response_model=Dict)
async def warehouse_inventory_summary(
    warehouse_id: Optional[UUID] = Query(None, alias="warehouseId"),
    batch_type: Optional[str] = Query(None, alias="batchType"),
    paging: PageParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_inventory")),
    db: AsyncSession = Depends(get_async_session),
):
    _check_batch_type(batch_type)
    src = BatchSources()
    stmt = _summary_select(src, WarehouseInventory, WarehouseInventory.warehouse_quantity)
    if warehouse_id:
        stmt = stmt.where(WarehouseInventory.warehouse_id == warehouse_id)
    if batch_type:
        stmt = stmt.where(BatchRegistry.batch_type == batch_type)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_inventory_summary_row)
    return paginated_response(result["data"], result["pagination"], "Warehouse inventory summary fetched successfully")


async def _upsert_location_lot(
    *, db: AsyncSession, user: User, location_id: UUID, batch_id: UUID, quantity: int, inbound: date
) -> tuple:
    res = await db.execute(
        select(LocationInventory)
        .where(LocationInventory.location_id == location_id, LocationInventory.batch_id == batch_id)
        .with_for_update()
    )
    lot = res.scalar_one_or_none()
    previous = 0
    if lot is None:
        lot = LocationInventory(
            location_id=location_id,
            batch_id=batch_id,
            location_quantity=quantity,
            inbound_date=inbound,
            status=_lot_status(quantity),
            created_by=user.id,
        )
        db.add(lot)
    else:
        previous = lot.location_quantity
        lot.location_quantity = previous + quantity
        lot.status = _lot_status(lot.location_quantity)
        lot.last_update = datetime.utcnow()
    await db.flush()
    return lot, previous


@warehouse_router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def insert_warehouse_inventory(
    payload: WarehouseInventoryInsertRequest,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("adjust_inventory")),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Receive stock into warehouse lots.

    An existing (warehouse, batch) lot is topped up; otherwise a new lot is
    created. The matching location lot is updated the same way and every
    change is written to the activity log, all in one transaction.
    """
    try:
        inserted: List[UUID] = []
        for item in payload.items:
            warehouse = (
                await db.execute(select(Warehouse).where(Warehouse.id == item.warehouse_id))
            ).scalar_one_or_none()
            if not warehouse:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warehouse not found")
            batch = (
                await db.execute(select(BatchRegistry.id).where(BatchRegistry.id == item.batch_id))
            ).scalar_one_or_none()
            if not batch:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")

            inbound = item.inbound_date or date.today()
            res = await db.execute(
                select(WarehouseInventory)
                .where(
                    WarehouseInventory.warehouse_id == item.warehouse_id,
                    WarehouseInventory.batch_id == item.batch_id,
                )
                .with_for_update()
            )
            lot = res.scalar_one_or_none()
            previous = 0
            if lot is None:
                lot = WarehouseInventory(
                    warehouse_id=item.warehouse_id,
                    batch_id=item.batch_id,
                    warehouse_quantity=item.quantity,
                    warehouse_fee=item.warehouse_fee if item.warehouse_fee is not None else warehouse.default_fee,
                    inbound_date=inbound,
                    status=INVENTORY_IN_STOCK,
                    created_by=user.id,
                )
                db.add(lot)
            else:
                previous = lot.warehouse_quantity
                lot.warehouse_quantity = previous + item.quantity
                lot.status = _lot_status(lot.warehouse_quantity)
                lot.last_update = datetime.utcnow()
                lot.updated_by = user.id
            await db.flush()

            location_id = item.location_id or warehouse.location_id
            location_lot_id = None
            if location_id is not None:
                location_lot, _ = await _upsert_location_lot(
                    db=db, user=user, location_id=location_id, batch_id=item.batch_id,
                    quantity=item.quantity, inbound=inbound,
                )
                location_lot_id = location_lot.id

            await write_activity_log(
                db=db,
                user_id=user.id,
                action_name=ACTION_MANUAL_STOCK_INSERT,
                previous_quantity=previous,
                new_quantity=lot.warehouse_quantity,
                warehouse_inventory_id=lot.id,
                location_inventory_id=location_lot_id,
                comments=item.comments,
                source_type=ACTION_MANUAL_STOCK_INSERT,
                source_ref_id=lot.id,
                meta={"warehouseId": str(item.warehouse_id), "batchId": str(item.batch_id)},
                status_code=lot.status,
            )
            inserted.append(lot.id)

        await db.commit()
    except (HTTPException, AppError):
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        log_system_exception(e, "Warehouse inventory insert failed", context="inventory/insert")
        raise AppError.server("Failed to insert warehouse inventory")

    log_system_info("Warehouse inventory inserted", context="inventory/insert", lots=len(inserted))
    src = BatchSources()
    rows = (
        await db.execute(_warehouse_inventory_select(src).where(WarehouseInventory.id.in_(inserted)))
    ).mappings().all()
    data = [r for r in (transform_warehouse_inventory_row(row) for row in rows) if r is not None]
    return ok_response(data, "Warehouse inventory inserted successfully")


@warehouse_router.patch("/adjust", response_model=Dict)
async def adjust_warehouse_inventory(
    payload: InventoryAdjustRequest,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("adjust_inventory")),
    db: AsyncSession = Depends(get_async_session),
):
    """Set lots to a counted quantity; reserved stock can never be adjusted away."""
    results = []
    try:
        for item in payload.items:
            res = await db.execute(
                select(WarehouseInventory)
                .where(WarehouseInventory.id == item.warehouse_inventory_id)
                .with_for_update()
            )
            lot = res.scalar_one_or_none()
            if not lot:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warehouse inventory record not found")
            if item.new_quantity < lot.reserved_quantity:
                raise AppError.validation(
                    "New quantity cannot be below the reserved quantity",
                    details={
                        "warehouseInventoryId": str(lot.id),
                        "reservedQuantity": lot.reserved_quantity,
                        "newQuantity": item.new_quantity,
                    },
                )

            previous = lot.warehouse_quantity
            lot.warehouse_quantity = item.new_quantity
            lot.status = _lot_status(item.new_quantity)
            lot.last_update = datetime.utcnow()
            lot.updated_by = user.id

            log = await write_activity_log(
                db=db,
                user_id=user.id,
                action_name=ACTION_MANUAL_ADJUSTMENT,
                adjustment_name=item.adjustment_type,
                previous_quantity=previous,
                new_quantity=item.new_quantity,
                warehouse_inventory_id=lot.id,
                comments=item.comments,
                source_type="adjustment",
                source_ref_id=lot.id,
                meta={"adjustmentType": item.adjustment_type},
                status_code=lot.status,
            )
            results.append({
                "warehouseInventoryId": str(lot.id),
                "previousQuantity": previous,
                "newQuantity": item.new_quantity,
                "quantityChange": item.new_quantity - previous,
                "status": lot.status,
                "checksum": log.checksum,
            })
        await db.commit()
    except (HTTPException, AppError):
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        log_system_exception(e, "Warehouse inventory adjustment failed", context="inventory/adjust")
        raise AppError.server("Failed to adjust warehouse inventory")

    log_system_info("Warehouse inventory adjusted", context="inventory/adjust", lots=len(results))
    return ok_response(results, "Warehouse inventory adjusted successfully")


@location_router.get("/", response_model=Dict)
async def list_location_inventory(
    location_id: Optional[UUID] = Query(None, alias="locationId"),
    batch_type: Optional[str] = Query(None, alias="batchType"),
    keyword: Optional[str] = Query(None),
    lot_status: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_inventory")),
    db: AsyncSession = Depends(get_async_session),
):
    _check_batch_type(batch_type)
    src = BatchSources()
    stmt = _location_inventory_select(src)
    if location_id:
        stmt = stmt.where(LocationInventory.location_id == location_id)
    if batch_type:
        stmt = stmt.where(BatchRegistry.batch_type == batch_type)
    if keyword:
        stmt = stmt.where(src.keyword_clause(keyword))
    if lot_status:
        stmt = stmt.where(LocationInventory.status == lot_status)

    columns = sortable_columns(LocationInventory, Location)
    stmt = stmt.order_by(sorting.clause(columns, "locationInventory"), LocationInventory.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_location_inventory_row)
    return paginated_response(result["data"], result["pagination"], "Location inventory fetched successfully")


@location_router.get("/summary", response_model=Dict)
async def location_inventory_summary(
    location_id: Optional[UUID] = Query(None, alias="locationId"),
    batch_type: Optional[str] = Query(None, alias="batchType"),
    paging: PageParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_inventory")),
    db: AsyncSession = Depends(get_async_session),
):
    _check_batch_type(batch_type)
    src = BatchSources()
    stmt = _summary_select(src, LocationInventory, LocationInventory.location_quantity)
    if location_id:
        stmt = stmt.where(LocationInventory.location_id == location_id)
    if batch_type:
        stmt = stmt.where(BatchRegistry.batch_type == batch_type)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_inventory_summary_row)
    return paginated_response(result["data"], result["pagination"], "Location inventory summary fetched successfully")


@action_types_router.get("/", response_model=List[Dict])
async def list_inventory_action_types(
    ctx: Dict = Depends(require_permissions("view_inventory")),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(select(InventoryActionType).order_by(InventoryActionType.name.asc()))
    return [
        {
            "id": str(t.id),
            "name": t.name,
            "category": t.category,
            "description": t.description,
            "isAdjustment": bool(t.is_adjustment),
            "affectsFinancials": bool(t.affects_financials),
        }
        for t in res.scalars().all()
    ]
