from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.allocation import allocate_batches_for_order_items, allocation_item_status
from core.auth import current_active_user
from core.constants import (
    ALLOC_COMPLETED,
    ALLOC_PARTIAL,
    ALLOC_PENDING,
    INVENTORY_IN_STOCK,
    ORDER_ALLOCATED,
    ORDER_CONFIRMED,
    ORDER_PARTIALLY_ALLOCATED,
)
from core.errors import AppError
from core.fulfillment import validate_order_status_transition
from core.logging import log_system_exception, log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import (
    transform_allocation_review,
    transform_allocation_row,
    transform_order_row,
    transform_paginated_result,
)
from db.allocation import InventoryAllocation
from db.batch import BatchRegistry, PackagingMaterialBatch, ProductBatch
from db.database import get_async_session, labeled
from db.inventory.warehouse_inventory import WarehouseInventory
from db.order import Order, OrderItem
from db.users import User
from db.warehouse import Warehouse
from routers.batches import BatchSources
from routers.orders import OPEN_ALLOCATION_STATUSES, order_select, get_order_model, item_target_columns, join_item_targets
from routers.products import actor_columns
from schemas.orders import AllocateRequest

router = APIRouter()
orders_router = APIRouter()

ALLOCATABLE_ORDER_STATUSES = (ORDER_CONFIRMED, ORDER_PARTIALLY_ALLOCATED)


async def _load_candidate_lots(
    db: AsyncSession,
    sku_ids: set,
    material_ids: set,
    warehouse_id: Optional[UUID] = None,
) -> List[Dict[str, Any]]:
    """In-stock warehouse lots for the requested SKUs / materials, locked for update."""
    if not sku_ids and not material_ids:
        return []
    stmt = (
        select(
            WarehouseInventory.id.label("id"),
            WarehouseInventory.warehouse_id.label("warehouse_id"),
            WarehouseInventory.batch_id.label("batch_id"),
            WarehouseInventory.warehouse_quantity.label("warehouse_quantity"),
            WarehouseInventory.reserved_quantity.label("reserved_quantity"),
            WarehouseInventory.inbound_date.label("inbound_date"),
            ProductBatch.sku_id.label("sku_id"),
            PackagingMaterialBatch.packaging_material_id.label("packaging_material_id"),
            func.coalesce(ProductBatch.expiry_date, PackagingMaterialBatch.expiry_date).label("expiry_date"),
        )
        .select_from(WarehouseInventory)
        .join(BatchRegistry, BatchRegistry.id == WarehouseInventory.batch_id)
        .outerjoin(ProductBatch, ProductBatch.id == BatchRegistry.product_batch_id)
        .outerjoin(PackagingMaterialBatch, PackagingMaterialBatch.id == BatchRegistry.packaging_material_batch_id)
        .where(WarehouseInventory.status == INVENTORY_IN_STOCK)
        .where(WarehouseInventory.warehouse_quantity > WarehouseInventory.reserved_quantity)
    )
    targets = []
    if sku_ids:
        targets.append(ProductBatch.sku_id.in_(sku_ids))
    if material_ids:
        targets.append(PackagingMaterialBatch.packaging_material_id.in_(material_ids))
    stmt = stmt.where(or_(*targets))
    if warehouse_id:
        stmt = stmt.where(WarehouseInventory.warehouse_id == warehouse_id)
    stmt = stmt.order_by(WarehouseInventory.id).with_for_update(of=WarehouseInventory)
    return [dict(r) for r in (await db.execute(stmt)).mappings().all()]


async def _allocated_so_far(db: AsyncSession, order_id: UUID) -> Dict[Any, int]:
    res = await db.execute(
        select(InventoryAllocation.order_item_id, func.sum(InventoryAllocation.allocated_quantity))
        .join(OrderItem, OrderItem.id == InventoryAllocation.order_item_id)
        .where(OrderItem.order_id == order_id, InventoryAllocation.status.in_(OPEN_ALLOCATION_STATUSES))
        .group_by(InventoryAllocation.order_item_id)
    )
    return {item_id: int(total or 0) for item_id, total in res.all()}


@orders_router.post("/{order_id}/allocate", response_model=Dict)
async def allocate_order(
    order_id: UUID,
    payload: AllocateRequest,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("allocate_inventory")),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Reserve warehouse stock for every open order item.

    Lots are picked by FEFO or FIFO; each pick becomes an allocation row and
    raises the lot's reserved quantity. Items that get nothing are backordered.
    """
    order = await get_order_model(db, order_id, lock=True)
    if order.status not in ALLOCATABLE_ORDER_STATUSES:
        raise AppError.validation(
            f"Order must be confirmed before allocation (current status: {order.status})",
            details={"status": order.status},
        )

    try:
        items = list((await db.execute(select(OrderItem).where(OrderItem.order_id == order_id))).scalars().all())
        already = await _allocated_so_far(db, order_id)
        open_items = []
        for item in items:
            remaining = item.quantity_ordered - already.get(item.id, 0)
            if remaining > 0:
                open_items.append({
                    "order_item_id": item.id,
                    "sku_id": item.sku_id,
                    "packaging_material_id": item.packaging_material_id,
                    "quantity_ordered": remaining,
                })

        lots = await _load_candidate_lots(
            db,
            {i["sku_id"] for i in open_items if i["sku_id"]},
            {i["packaging_material_id"] for i in open_items if i["packaging_material_id"]},
            payload.warehouse_id,
        )
        results = allocate_batches_for_order_items(
            open_items, lots, payload.strategy, exclude_expired=payload.exclude_expired
        )
        if open_items and not any(r["allocated"]["allocatedTotal"] for r in results):
            raise AppError.validation("No available inventory to allocate for this order")

        lots_by_key = {(lot["warehouse_id"], lot["batch_id"]): lot["id"] for lot in lots}
        reserved_delta: Dict[Any, int] = defaultdict(int)
        items_by_id = {i.id: i for i in items}
        now = datetime.utcnow()
        created = 0
        for r in results:
            item = items_by_id[r["order_item_id"]]
            picked = r["allocated"]["allocatedBatches"]
            item_total = already.get(item.id, 0) + r["allocated"]["allocatedTotal"]
            item_status = allocation_item_status(item.quantity_ordered, item_total)
            for b in picked:
                db.add(InventoryAllocation(
                    order_item_id=item.id,
                    warehouse_id=b["warehouse_id"],
                    batch_id=b["batch_id"],
                    allocated_quantity=b["allocated_quantity"],
                    status=item_status if item_status in (ALLOC_COMPLETED, ALLOC_PARTIAL) else ALLOC_PENDING,
                    allocated_at=now,
                    created_by=user.id,
                ))
                reserved_delta[lots_by_key[(b["warehouse_id"], b["batch_id"])]] += b["allocated_quantity"]
                created += 1
            item.status = item_status
            item.status_date = now

        for lot_id, qty in reserved_delta.items():
            lot = (await db.execute(select(WarehouseInventory).where(WarehouseInventory.id == lot_id))).scalar_one()
            lot.reserved_quantity += qty
            lot.last_update = now
            lot.updated_by = user.id

        totals = dict(already)
        for r in results:
            totals[r["order_item_id"]] = totals.get(r["order_item_id"], 0) + r["allocated"]["allocatedTotal"]
        fully = all(totals.get(i.id, 0) >= i.quantity_ordered for i in items)
        next_status = ORDER_ALLOCATED if fully else ORDER_PARTIALLY_ALLOCATED
        if next_status != order.status:
            validate_order_status_transition(order.status, next_status)
            order.status = next_status
            order.status_date = now
        order.updated_at = now
        order.updated_by = user.id
        await db.commit()
    except (HTTPException, AppError):
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        log_system_exception(e, "Order allocation failed", context="allocations/allocate", orderId=str(order_id))
        raise AppError.server("Failed to allocate inventory")

    log_system_info(
        "Order allocated", context="allocations/allocate", orderId=str(order_id),
        strategy=payload.strategy, allocations=created, status=order.status,
    )
    return ok_response(
        {
            "orderId": str(order_id),
            "status": order.status,
            "strategy": payload.strategy,
            "items": [
                {
                    "orderItemId": str(r["order_item_id"]),
                    "requested": r["quantity_ordered"],
                    "allocated": r["allocated"]["allocatedTotal"],
                    "remaining": r["allocated"]["remaining"],
                    "status": items_by_id[r["order_item_id"]].status,
                }
                for r in results
            ],
        },
        "Inventory allocated successfully",
    )


@router.get("/", response_model=Dict)
async def list_allocations(
    allocation_status: Optional[str] = Query(None, alias="status"),
    warehouse_id: Optional[UUID] = Query(None, alias="warehouseId"),
    order_number: Optional[str] = Query(None, alias="orderNumber"),
    allocated_after: Optional[datetime] = Query(None, alias="allocatedAfter"),
    allocated_before: Optional[datetime] = Query(None, alias="allocatedBefore"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_allocations")),
    db: AsyncSession = Depends(get_async_session),
):
    src = BatchSources()
    creator = aliased(User)
    stmt = (
        select(
            *labeled(InventoryAllocation),
            OrderItem.order_id.label("order_id"),
            Order.order_number.label("order_number"),
            Warehouse.name.label("warehouse_name"),
            *src.lot_columns(),
            *actor_columns(creator, "created_by"),
        )
        .select_from(InventoryAllocation)
        .join(OrderItem, OrderItem.id == InventoryAllocation.order_item_id)
        .join(Order, Order.id == OrderItem.order_id)
        .join(Warehouse, Warehouse.id == InventoryAllocation.warehouse_id)
        .join(BatchRegistry, BatchRegistry.id == InventoryAllocation.batch_id)
        .outerjoin(creator, creator.id == InventoryAllocation.created_by)
    )
    stmt = src.join(stmt)
    if allocation_status:
        stmt = stmt.where(InventoryAllocation.status == allocation_status)
    if warehouse_id:
        stmt = stmt.where(InventoryAllocation.warehouse_id == warehouse_id)
    if order_number:
        stmt = stmt.where(Order.order_number.ilike(f"%{order_number.strip()}%"))
    if allocated_after:
        stmt = stmt.where(InventoryAllocation.allocated_at >= allocated_after)
    if allocated_before:
        stmt = stmt.where(InventoryAllocation.allocated_at <= allocated_before)

    columns = sortable_columns(InventoryAllocation, Order, Warehouse)
    stmt = stmt.order_by(sorting.clause(columns, "allocations"), InventoryAllocation.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_allocation_row)
    return paginated_response(result["data"], result["pagination"], "Inventory allocations fetched successfully")


@orders_router.get("/{order_id}/allocation-review", response_model=Dict)
async def allocation_review(
    order_id: UUID,
    ctx: Dict = Depends(require_permissions("view_allocations")),
    db: AsyncSession = Depends(get_async_session),
):
    header = (await db.execute(order_select().where(Order.id == order_id))).mappings().first()
    if not header:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    src = BatchSources()
    stmt = (
        select(
            OrderItem.id.label("order_item_id"),
            OrderItem.sku_id.label("sku_id"),
            OrderItem.packaging_material_id.label("packaging_material_id"),
            OrderItem.quantity_ordered.label("quantity_ordered"),
            OrderItem.status.label("item_status"),
            *item_target_columns(),
            InventoryAllocation.id.label("allocation_id"),
            InventoryAllocation.allocated_quantity.label("allocated_quantity"),
            InventoryAllocation.status.label("allocation_status"),
            InventoryAllocation.warehouse_id.label("warehouse_id"),
            InventoryAllocation.batch_id.label("batch_id"),
            Warehouse.name.label("warehouse_name"),
            *src.lot_columns(),
        )
        .select_from(OrderItem)
    )
    stmt = join_item_targets(stmt)
    stmt = (
        stmt.outerjoin(InventoryAllocation, InventoryAllocation.order_item_id == OrderItem.id)
        .outerjoin(Warehouse, Warehouse.id == InventoryAllocation.warehouse_id)
        .outerjoin(BatchRegistry, BatchRegistry.id == InventoryAllocation.batch_id)
    )
    stmt = src.join(stmt).where(OrderItem.order_id == order_id).order_by(OrderItem.id, InventoryAllocation.allocated_at)
    rows = (await db.execute(stmt)).mappings().all()
    return ok_response(
        {"order": transform_order_row(header), "items": transform_allocation_review(rows)},
        "Allocation review fetched successfully",
    )
