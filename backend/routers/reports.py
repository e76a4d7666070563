from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.errors import AppError
from core.exports import export_headers, export_media_type, export_rows
from core.logging import log_system_info
from core.pagination import PageParams, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_activity_log_row, transform_paginated_result
from db.batch import BatchRegistry
from db.database import get_async_session, labeled
from db.inventory.activity import InventoryActionType, InventoryActivityLog
from db.inventory.location_inventory import LocationInventory
from db.inventory.warehouse_inventory import WarehouseInventory
from db.location import Location
from db.order import Order
from db.users import User
from db.warehouse import Warehouse
from routers.batches import BatchSources
from routers.products import actor_columns

router = APIRouter()

ACTIVITY_EXPORT_COLUMNS = [
    ("performedAt", "Performed At"),
    ("actionType", "Action"),
    ("adjustmentType", "Adjustment"),
    ("warehouseName", "Warehouse"),
    ("locationName", "Location"),
    ("batchType", "Batch Type"),
    ("lotNumber", "Lot Number"),
    ("itemName", "Item"),
    ("previousQuantity", "Previous Qty"),
    ("quantityChange", "Change"),
    ("newQuantity", "New Qty"),
    ("performedBy", "Performed By"),
    ("orderNumber", "Order"),
    ("sourceType", "Source"),
    ("comments", "Comments"),
]

EXPORT_ROW_LIMIT = 10000


def split_multi(values: Optional[List[str]]) -> List[str]:
    """Accept repeated query keys as well as comma-separated values."""
    out: List[str] = []
    for v in values or []:
        out.extend(p.strip() for p in str(v).split(",") if p.strip())
    return out


def _uuid_list(values: Optional[List[str]], field: str) -> List[UUID]:
    try:
        return [UUID(v) for v in split_multi(values)]
    except ValueError:
        raise AppError.validation(f"{field} must contain valid ids")


class ActivityFilters:
    def __init__(
        self,
        warehouse_ids: Optional[List[str]] = Query(None, alias="warehouseIds"),
        batch_ids: Optional[List[str]] = Query(None, alias="batchIds"),
        action_types: Optional[List[str]] = Query(None, alias="actionTypes"),
        performed_by: Optional[UUID] = Query(None, alias="performedBy"),
        date_from: Optional[datetime] = Query(None, alias="dateFrom"),
        date_to: Optional[datetime] = Query(None, alias="dateTo"),
        source_type: Optional[str] = Query(None, alias="sourceType"),
    ):
        if date_from and date_to and date_from > date_to:
            raise AppError.validation("dateFrom must be before dateTo")
        self.warehouse_ids = _uuid_list(warehouse_ids, "warehouseIds")
        self.batch_ids = _uuid_list(batch_ids, "batchIds")
        self.action_types = split_multi(action_types)
        self.performed_by = performed_by
        self.date_from = date_from
        self.date_to = date_to
        self.source_type = source_type


def _activity_select():
    src = BatchSources()
    action = aliased(InventoryActionType)
    adjustment = aliased(InventoryActionType)
    performer = aliased(User)
    batch_id = func.coalesce(WarehouseInventory.batch_id, LocationInventory.batch_id)
    stmt = (
        select(
            *labeled(InventoryActivityLog),
            action.name.label("action_type"),
            adjustment.name.label("adjustment_type"),
            Warehouse.name.label("warehouse_name"),
            Location.name.label("location_name"),
            Order.order_number.label("order_number"),
            *src.columns(),
            *actor_columns(performer, "performed_by"),
        )
        .select_from(InventoryActivityLog)
        .join(action, action.id == InventoryActivityLog.inventory_action_type_id)
        .outerjoin(adjustment, adjustment.id == InventoryActivityLog.adjustment_type_id)
        .outerjoin(WarehouseInventory, WarehouseInventory.id == InventoryActivityLog.warehouse_inventory_id)
        .outerjoin(Warehouse, Warehouse.id == WarehouseInventory.warehouse_id)
        .outerjoin(LocationInventory, LocationInventory.id == InventoryActivityLog.location_inventory_id)
        .outerjoin(Location, Location.id == LocationInventory.location_id)
        .outerjoin(BatchRegistry, BatchRegistry.id == batch_id)
        .outerjoin(Order, Order.id == InventoryActivityLog.order_id)
        .outerjoin(performer, performer.id == InventoryActivityLog.performed_by)
    )
    return src.join(stmt), action, batch_id


def _apply(stmt, action, batch_id, f: ActivityFilters):
    if f.warehouse_ids:
        stmt = stmt.where(WarehouseInventory.warehouse_id.in_(f.warehouse_ids))
    if f.batch_ids:
        stmt = stmt.where(batch_id.in_(f.batch_ids))
    if f.action_types:
        stmt = stmt.where(action.name.in_(f.action_types))
    if f.performed_by:
        stmt = stmt.where(InventoryActivityLog.performed_by == f.performed_by)
    if f.date_from:
        stmt = stmt.where(InventoryActivityLog.performed_at >= f.date_from)
    if f.date_to:
        stmt = stmt.where(InventoryActivityLog.performed_at <= f.date_to)
    if f.source_type:
        stmt = stmt.where(InventoryActivityLog.source_type == f.source_type)
    return stmt


@router.get("/inventory-activity", response_model=Dict)
async def inventory_activity_report(
    filters: ActivityFilters = Depends(),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_inventory_logs")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt, action, batch_id = _activity_select()
    stmt = _apply(stmt, action, batch_id, filters)
    columns = sortable_columns(InventoryActivityLog)
    columns["inventory_action_types.name"] = action.name
    stmt = stmt.order_by(sorting.clause(columns, "activityLogs"), InventoryActivityLog.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_activity_log_row)
    return paginated_response(result["data"], result["pagination"], "Inventory activity logs fetched successfully")


@router.get("/inventory-activity/export")
async def export_inventory_activity(
    export_format: str = Query("csv", alias="format"),
    filters: ActivityFilters = Depends(),
    ctx: Dict = Depends(require_permissions("export_inventory_logs")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt, action, batch_id = _activity_select()
    stmt = _apply(stmt, action, batch_id, filters)
    stmt = stmt.order_by(InventoryActivityLog.performed_at.desc(), InventoryActivityLog.id).limit(EXPORT_ROW_LIMIT)
    rows = (await db.execute(stmt)).mappings().all()
    content = export_rows([transform_activity_log_row(r) for r in rows], ACTIVITY_EXPORT_COLUMNS, export_format)
    log_system_info("Inventory activity exported", context="reports/export", rows=len(rows), format=export_format)
    return Response(
        content=content,
        media_type=export_media_type(export_format),
        headers=export_headers("inventory_activity", export_format),
    )
