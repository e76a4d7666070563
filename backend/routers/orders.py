import secrets
from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.auth import current_active_user
from core.constants import (
    ALLOC_CANCELLED,
    ALLOC_COMPLETED,
    ALLOC_PARTIAL,
    ALLOC_PENDING,
    ITEM_PENDING,
    ORDER_CANCELLED,
    ORDER_CONFIRMED,
    ORDER_PENDING,
    SHIPMENT_CANCELLED,
)
from core.errors import AppError
from core.fulfillment import validate_order_status_transition
from core.logging import log_system_exception, log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_order_item_row, transform_order_row, transform_paginated_result
from db.allocation import InventoryAllocation
from db.batch import PackagingMaterial
from db.database import get_async_session, labeled
from db.fulfillment import OutboundShipment
from db.inventory.warehouse_inventory import WarehouseInventory
from db.order import Order, OrderItem
from db.product import Product, Sku
from db.users import User
from routers.products import actor_columns
from schemas.orders import OrderCreate, OrderStatusUpdate

router = APIRouter()

# allocations still holding reserved stock
OPEN_ALLOCATION_STATUSES = (ALLOC_PENDING, ALLOC_PARTIAL, ALLOC_COMPLETED)

# allocation outcomes are written by the allocate/fulfill workflow, never by hand
MANUAL_ORDER_STATUSES = (ORDER_CONFIRMED, ORDER_CANCELLED)


def generate_order_number(category: str, today: Optional[date] = None) -> str:
    """`<CATEGORY>-<YYYYMMDD>-<6 hex>`, e.g. SALES-20260101-A1B2C3."""
    today = today or date.today()
    return f"{category.upper()}-{today.strftime('%Y%m%d')}-{secrets.token_hex(3).upper()}"


def item_target_columns():
    return [
        Sku.sku.label("sku_code"),
        Sku.size_label.label("size_label"),
        Product.name.label("product_name"),
        Product.brand.label("brand"),
        PackagingMaterial.code.label("material_code"),
        PackagingMaterial.name.label("material_name"),
    ]


def join_item_targets(stmt):
    """Outer-join what an order item points at; `OrderItem` must be in the FROM clause."""
    return (
        stmt.outerjoin(Sku, Sku.id == OrderItem.sku_id)
        .outerjoin(Product, Product.id == Sku.product_id)
        .outerjoin(PackagingMaterial, PackagingMaterial.id == OrderItem.packaging_material_id)
    )


def order_select():
    creator = aliased(User)
    item_count = (
        select(func.count(OrderItem.id))
        .where(OrderItem.order_id == Order.id)
        .scalar_subquery()
        .label("item_count")
    )
    return (
        select(*labeled(Order), item_count, *actor_columns(creator, "created_by"))
        .select_from(Order)
        .outerjoin(creator, creator.id == Order.created_by)
    )


async def get_order_model(db: AsyncSession, order_id: UUID, lock: bool = False) -> Order:
    stmt = select(Order).where(Order.id == order_id)
    if lock:
        stmt = stmt.with_for_update()
    order = (await db.execute(stmt)).scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


async def fetch_order_details(db: AsyncSession, order_id: UUID) -> Dict:
    row = (await db.execute(order_select().where(Order.id == order_id))).mappings().first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    items_stmt = join_item_targets(
        select(*labeled(OrderItem), *item_target_columns()).select_from(OrderItem)
    ).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
    items = (await db.execute(items_stmt)).mappings().all()
    data = transform_order_row(row)
    data["items"] = [transform_order_item_row(i) for i in items]
    return data


async def _validate_targets(db: AsyncSession, payload: OrderCreate) -> None:
    sku_ids = {i.sku_id for i in payload.items if i.sku_id}
    material_ids = {i.packaging_material_id for i in payload.items if i.packaging_material_id}
    if sku_ids:
        found = set((await db.execute(select(Sku.id).where(Sku.id.in_(sku_ids)))).scalars().all())
        missing = sku_ids - found
        if missing:
            raise AppError.validation("Unknown SKU(s) in order", details={"skuIds": sorted(str(m) for m in missing)})
    if material_ids:
        res = await db.execute(select(PackagingMaterial.id).where(PackagingMaterial.id.in_(material_ids)))
        missing = material_ids - set(res.scalars().all())
        if missing:
            raise AppError.validation(
                "Unknown packaging material(s) in order",
                details={"packagingMaterialIds": sorted(str(m) for m in missing)},
            )


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("create_orders")),
    db: AsyncSession = Depends(get_async_session),
):
    await _validate_targets(db, payload)

    now = datetime.utcnow()
    order = Order(
        order_number=generate_order_number(payload.order_category, now.date()),
        order_category=payload.order_category,
        status=ORDER_PENDING,
        status_date=now,
        order_date=now,
        delivery_method=payload.delivery_method,
        note=payload.note,
        created_by=user.id,
    )
    order.items = [
        OrderItem(
            sku_id=i.sku_id,
            packaging_material_id=i.packaging_material_id,
            quantity_ordered=i.quantity_ordered,
            price=i.price,
            status=ITEM_PENDING,
            status_date=now,
        )
        for i in payload.items
    ]
    db.add(order)
    await db.commit()
    log_system_info(
        "Order created", context="orders/create", orderId=str(order.id),
        orderNumber=order.order_number, items=len(payload.items),
    )
    return ok_response(await fetch_order_details(db, order.id), "Order created successfully")


@router.get("/", response_model=Dict)
async def list_orders(
    keyword: Optional[str] = Query(None),
    order_category: Optional[str] = Query(None, alias="orderCategory"),
    order_status: Optional[str] = Query(None, alias="status"),
    order_date_after: Optional[datetime] = Query(None, alias="orderDateAfter"),
    order_date_before: Optional[datetime] = Query(None, alias="orderDateBefore"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_orders")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = order_select()
    if keyword:
        stmt = stmt.where(Order.order_number.ilike(f"%{keyword.strip()}%"))
    if order_category:
        stmt = stmt.where(Order.order_category == order_category)
    if order_status:
        stmt = stmt.where(Order.status == order_status)
    if order_date_after:
        stmt = stmt.where(Order.order_date >= order_date_after)
    if order_date_before:
        stmt = stmt.where(Order.order_date <= order_date_before)

    stmt = stmt.order_by(sorting.clause(sortable_columns(Order), "orders"), Order.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_order_row)
    return paginated_response(result["data"], result["pagination"], "Orders fetched successfully")


@router.get("/{order_id}", response_model=Dict)
async def get_order(
    order_id: UUID,
    ctx: Dict = Depends(require_permissions("view_orders")),
    db: AsyncSession = Depends(get_async_session),
):
    return ok_response(await fetch_order_details(db, order_id), "Order details fetched successfully")


async def _release_open_allocations(db: AsyncSession, order_id: UUID) -> int:
    """Cancel allocations that still hold stock and give their reservation back."""
    res = await db.execute(
        select(InventoryAllocation)
        .join(OrderItem, OrderItem.id == InventoryAllocation.order_item_id)
        .where(OrderItem.order_id == order_id, InventoryAllocation.status.in_(OPEN_ALLOCATION_STATUSES))
        .with_for_update()
    )
    allocations: List[InventoryAllocation] = list(res.scalars().all())
    now = datetime.utcnow()
    for a in allocations:
        lot = (
            await db.execute(
                select(WarehouseInventory)
                .where(WarehouseInventory.warehouse_id == a.warehouse_id, WarehouseInventory.batch_id == a.batch_id)
                .with_for_update()
            )
        ).scalar_one_or_none()
        if lot is not None:
            lot.reserved_quantity = max(0, lot.reserved_quantity - a.allocated_quantity)
            lot.last_update = now
        a.status = ALLOC_CANCELLED
        a.updated_at = now
    return len(allocations)


async def _ensure_not_shipping(db: AsyncSession, order_id: UUID) -> None:
    """An order with a live outbound shipment has stock picked or deducted and can no longer be cancelled."""
    shipment = (
        await db.execute(
            select(OutboundShipment.id, OutboundShipment.status)
            .where(OutboundShipment.order_id == order_id, OutboundShipment.status != SHIPMENT_CANCELLED)
            .limit(1)
        )
    ).first()
    if shipment is not None:
        raise AppError.validation(
            "Order already has an outbound shipment and cannot be cancelled",
            details={"shipmentId": str(shipment.id), "shipmentStatus": shipment.status},
        )


@router.patch("/{order_id}/status", response_model=Dict)
async def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("update_order_status")),
    db: AsyncSession = Depends(get_async_session),
):
    order = await get_order_model(db, order_id, lock=True)
    next_status = payload.status.strip().upper()
    if next_status not in MANUAL_ORDER_STATUSES:
        raise AppError.validation(
            f"Order status {next_status} is set by the allocation and fulfillment workflow",
            details={"allowed": list(MANUAL_ORDER_STATUSES)},
        )
    validate_order_status_transition(order.status, next_status)

    released = 0
    try:
        now = datetime.utcnow()
        if next_status == ORDER_CANCELLED:
            await _ensure_not_shipping(db, order_id)
            released = await _release_open_allocations(db, order_id)
            for item in (await db.execute(select(OrderItem).where(OrderItem.order_id == order_id))).scalars():
                item.status = ORDER_CANCELLED
                item.status_date = now
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
        log_system_exception(e, "Order status update failed", context="orders/status", orderId=str(order_id))
        raise AppError.server("Failed to update order status")

    log_system_info(
        "Order status updated", context="orders/status", orderId=str(order_id),
        status=next_status, releasedAllocations=released,
    )
    return ok_response(await fetch_order_details(db, order_id), "Order status updated")
