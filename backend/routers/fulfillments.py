from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.allocation import validate_allocation_status_transition
from core.auth import current_active_user
from core.constants import (
    ACTION_FULFILLED,
    ALLOC_COMPLETED,
    ALLOC_FULFILLED,
    ALLOC_FULFILLING,
    ALLOC_PARTIAL,
    FULFILLMENT_DELIVERED,
    FULFILLMENT_PACKED,
    FULFILLMENT_PENDING,
    FULFILLMENT_SHIPPED,
    ORDER_ALLOCATED,
    ORDER_DELIVERED,
    ORDER_PROCESSING,
    ORDER_SHIPPED,
    SHIPMENT_DELIVERED,
    SHIPMENT_DISPATCHED,
    SHIPMENT_PENDING,
    SHIPMENT_READY,
)
from core.errors import AppError
from core.fulfillment import (
    assert_allocations_valid,
    assert_single_warehouse,
    build_fulfillment_inputs,
    calculate_inventory_adjustments,
    enrich_allocations_with_inventory,
    inventory_key,
    validate_fulfillment_status_transition,
    validate_order_status_transition,
    validate_shipment_status_transition,
)
from core.logging import log_system_exception, log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_paginated_result, transform_shipment_details, transform_shipment_row
from db.allocation import InventoryAllocation
from db.batch import BatchRegistry
from db.database import get_async_session, labeled
from db.fulfillment import OrderFulfillment, OutboundShipment, ShipmentBatch
from db.inventory.warehouse_inventory import WarehouseInventory
from db.order import Order, OrderItem
from db.users import User
from db.warehouse import Warehouse
from routers.batches import BatchSources
from routers.inventory import write_activity_log
from routers.orders import get_order_model, item_target_columns, join_item_targets
from routers.products import actor_columns
from schemas.orders import FulfillRequest, ShipmentCompleteRequest

router = APIRouter()
orders_router = APIRouter()


def _shipment_select():
    creator = aliased(User)
    return (
        select(
            *labeled(OutboundShipment),
            Order.order_number.label("order_number"),
            Warehouse.name.label("warehouse_name"),
            *actor_columns(creator, "created_by"),
        )
        .select_from(OutboundShipment)
        .join(Order, Order.id == OutboundShipment.order_id)
        .join(Warehouse, Warehouse.id == OutboundShipment.warehouse_id)
        .outerjoin(creator, creator.id == OutboundShipment.created_by)
    )


async def fetch_shipment_details(db: AsyncSession, shipment_id: UUID) -> Dict:
    header = (await db.execute(_shipment_select().where(OutboundShipment.id == shipment_id))).mappings().first()
    if not header:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shipment not found")

    fulfillment_stmt = join_item_targets(
        select(
            *labeled(OrderFulfillment),
            OrderItem.sku_id.label("sku_id"),
            OrderItem.packaging_material_id.label("packaging_material_id"),
            *item_target_columns(),
        )
        .select_from(OrderFulfillment)
        .join(OrderItem, OrderItem.id == OrderFulfillment.order_item_id)
    ).where(OrderFulfillment.shipment_id == shipment_id).order_by(OrderFulfillment.created_at, OrderFulfillment.id)
    fulfillments = (await db.execute(fulfillment_stmt)).mappings().all()

    src = BatchSources()
    batch_stmt = src.join(
        select(*labeled(ShipmentBatch), *src.lot_columns())
        .select_from(ShipmentBatch)
        .join(BatchRegistry, BatchRegistry.id == ShipmentBatch.batch_id)
    ).where(ShipmentBatch.shipment_id == shipment_id).order_by(ShipmentBatch.id)
    batches = (await db.execute(batch_stmt)).mappings().all()

    return transform_shipment_details(header, fulfillments, batches)


async def _get_shipment(db: AsyncSession, shipment_id: UUID) -> OutboundShipment:
    res = await db.execute(select(OutboundShipment).where(OutboundShipment.id == shipment_id).with_for_update())
    shipment = res.scalar_one_or_none()
    if not shipment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shipment not found")
    return shipment


async def _order_allocations(db: AsyncSession, order_id: UUID, statuses: tuple) -> List[InventoryAllocation]:
    res = await db.execute(
        select(InventoryAllocation)
        .join(OrderItem, OrderItem.id == InventoryAllocation.order_item_id)
        .where(OrderItem.order_id == order_id, InventoryAllocation.status.in_(statuses))
        .order_by(InventoryAllocation.allocated_at, InventoryAllocation.id)
        .with_for_update()
    )
    return list(res.scalars().all())


def _allocation_dict(a: InventoryAllocation) -> Dict[str, Any]:
    return {
        "allocation_id": a.id,
        "order_item_id": a.order_item_id,
        "warehouse_id": a.warehouse_id,
        "batch_id": a.batch_id,
        "allocated_quantity": a.allocated_quantity,
        "status": a.status,
    }


async def _shipment_fulfillments(db: AsyncSession, shipment_id: UUID) -> List[OrderFulfillment]:
    res = await db.execute(select(OrderFulfillment).where(OrderFulfillment.shipment_id == shipment_id))
    return list(res.scalars().all())


@orders_router.post("/{order_id}/fulfill", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def fulfill_order(
    order_id: UUID,
    payload: FulfillRequest,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("fulfill_orders")),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Open an outbound shipment for a fully allocated order.

    Every allocation must come from one warehouse. Creates the shipment, one
    fulfillment per order item and one shipment batch per lot, then moves the
    allocations to fulfilling and the order to processing.
    """
    order = await get_order_model(db, order_id, lock=True)
    if order.status != ORDER_ALLOCATED:
        raise AppError.validation(
            "Only fully allocated orders can be fulfilled",
            details={"status": order.status},
        )

    try:
        allocations = await _order_allocations(db, order_id, (ALLOC_COMPLETED, ALLOC_PARTIAL))
        records = [_allocation_dict(a) for a in allocations]
        assert_allocations_valid(records)
        for a in allocations:
            validate_allocation_status_transition(a.status, ALLOC_FULFILLING)
        warehouse_id = assert_single_warehouse(records)

        now = datetime.utcnow()
        shipment = OutboundShipment(
            order_id=order_id,
            warehouse_id=warehouse_id,
            delivery_method=payload.delivery_method or order.delivery_method,
            status=SHIPMENT_PENDING,
            expected_delivery_date=payload.expected_delivery_date,
            notes=payload.notes,
            created_by=user.id,
        )
        db.add(shipment)
        await db.flush()

        for f in build_fulfillment_inputs(records, shipment.id):
            db.add(OrderFulfillment(
                order_item_id=f["order_item_id"],
                shipment_id=shipment.id,
                quantity_fulfilled=f["quantity_fulfilled"],
                status=FULFILLMENT_PENDING,
                fulfilled_by=user.id,
            ))

        per_batch: Dict[Any, int] = defaultdict(int)
        for r in records:
            per_batch[r["batch_id"]] += int(r["allocated_quantity"])
        for batch_id, qty in per_batch.items():
            db.add(ShipmentBatch(shipment_id=shipment.id, batch_id=batch_id, quantity_shipped=qty))

        for a in allocations:
            a.status = ALLOC_FULFILLING
            a.updated_at = now

        validate_order_status_transition(order.status, ORDER_PROCESSING)
        order.status = ORDER_PROCESSING
        order.status_date = now
        order.updated_at = now
        order.updated_by = user.id
        await db.commit()
    except (HTTPException, AppError):
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        log_system_exception(e, "Order fulfillment failed", context="fulfillments/fulfill", orderId=str(order_id))
        raise AppError.server("Failed to fulfill order")

    log_system_info(
        "Outbound shipment created", context="fulfillments/fulfill",
        orderId=str(order_id), shipmentId=str(shipment.id), allocations=len(allocations),
    )
    return ok_response(await fetch_shipment_details(db, shipment.id), "Outbound fulfillment created successfully")


@router.post("/{shipment_id}/confirm", response_model=Dict)
async def confirm_shipment(
    shipment_id: UUID,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("fulfill_orders")),
    db: AsyncSession = Depends(get_async_session),
):
    """Pack the shipment: deduct stock from the allocated lots and log each deduction."""
    shipment = await _get_shipment(db, shipment_id)
    validate_shipment_status_transition(shipment.status, SHIPMENT_READY)

    try:
        fulfillments = await _shipment_fulfillments(db, shipment_id)
        item_ids = {f.order_item_id for f in fulfillments}
        allocations = [
            a for a in await _order_allocations(db, shipment.order_id, (ALLOC_FULFILLING,))
            if a.order_item_id in item_ids and a.warehouse_id == shipment.warehouse_id
        ]
        records = [_allocation_dict(a) for a in allocations]
        assert_allocations_valid(records)

        res = await db.execute(
            select(WarehouseInventory)
            .where(
                WarehouseInventory.warehouse_id == shipment.warehouse_id,
                WarehouseInventory.batch_id.in_({r["batch_id"] for r in records}),
            )
            .with_for_update()
        )
        lots = {inventory_key(lot.warehouse_id, lot.batch_id): lot for lot in res.scalars().all()}
        inventory = [
            {
                "id": lot.id,
                "warehouse_id": lot.warehouse_id,
                "batch_id": lot.batch_id,
                "warehouse_quantity": lot.warehouse_quantity,
                "reserved_quantity": lot.reserved_quantity,
            }
            for lot in lots.values()
        ]
        enriched = enrich_allocations_with_inventory(records, inventory)
        missing = [str(e["batch_id"]) for e in enriched if e["warehouse_inventory_id"] is None]
        if missing:
            raise AppError.validation("Allocated lots are missing from warehouse inventory", details={"batchIds": missing})

        now = datetime.utcnow()
        updates = calculate_inventory_adjustments(enriched, now)
        for key, update in updates.items():
            lot = lots[key]
            previous = lot.warehouse_quantity
            lot.warehouse_quantity = update["warehouse_quantity"]
            lot.reserved_quantity = update["reserved_quantity"]
            lot.status = update["status"]
            lot.last_update = update["last_update"]
            lot.outbound_date = now.date()
            lot.updated_by = user.id
            await write_activity_log(
                db=db,
                user_id=user.id,
                action_name=ACTION_FULFILLED,
                previous_quantity=previous,
                new_quantity=lot.warehouse_quantity,
                warehouse_inventory_id=lot.id,
                order_id=shipment.order_id,
                source_type="fulfillment",
                source_ref_id=shipment.id,
                meta={"shipmentId": str(shipment.id), "batchId": str(lot.batch_id)},
                status_code=lot.status,
            )

        for f in fulfillments:
            validate_fulfillment_status_transition(f.status, FULFILLMENT_PACKED)
            f.status = FULFILLMENT_PACKED
        for a in allocations:
            validate_allocation_status_transition(a.status, ALLOC_FULFILLED)
            a.status = ALLOC_FULFILLED
            a.updated_at = now
        shipment.status = SHIPMENT_READY
        shipment.updated_at = now
        await db.commit()
    except (HTTPException, AppError):
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        log_system_exception(e, "Shipment confirmation failed", context="fulfillments/confirm", shipmentId=str(shipment_id))
        raise AppError.server("Failed to confirm shipment")

    log_system_info("Shipment confirmed", context="fulfillments/confirm", shipmentId=str(shipment_id), lots=len(updates))
    return ok_response(await fetch_shipment_details(db, shipment_id), "Shipment confirmed and inventory updated")


@router.post("/{shipment_id}/complete", response_model=Dict)
async def complete_shipment(
    shipment_id: UUID,
    payload: ShipmentCompleteRequest,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("fulfill_orders")),
    db: AsyncSession = Depends(get_async_session),
):
    """Dispatch (or deliver) a packed shipment and move the order along with it."""
    shipment = await _get_shipment(db, shipment_id)
    shipment_next = SHIPMENT_DELIVERED if payload.delivered else SHIPMENT_DISPATCHED
    fulfillment_next = FULFILLMENT_DELIVERED if payload.delivered else FULFILLMENT_SHIPPED
    validate_shipment_status_transition(shipment.status, shipment_next)
    if shipment.status == SHIPMENT_PENDING:
        raise AppError.validation("Shipment must be confirmed before it can be completed")

    order = await get_order_model(db, shipment.order_id, lock=True)
    try:
        now = datetime.utcnow()
        for f in await _shipment_fulfillments(db, shipment_id):
            if f.status == fulfillment_next:
                continue
            validate_fulfillment_status_transition(f.status, fulfillment_next)
            f.status = fulfillment_next
            f.fulfilled_at = now
            if payload.notes:
                f.notes = payload.notes

        shipment.status = shipment_next
        shipment.shipped_at = shipment.shipped_at or now
        shipment.updated_at = now
        if payload.notes:
            shipment.notes = payload.notes

        targets = [ORDER_SHIPPED] + ([ORDER_DELIVERED] if payload.delivered else [])
        for target in targets:
            if order.status == target:
                continue
            validate_order_status_transition(order.status, target)
            order.status = target
        order.status_date = now
        order.updated_at = now
        order.updated_by = user.id
        await db.commit()
    except (HTTPException, AppError):
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        log_system_exception(e, "Shipment completion failed", context="fulfillments/complete", shipmentId=str(shipment_id))
        raise AppError.server("Failed to complete shipment")

    log_system_info(
        "Shipment completed", context="fulfillments/complete",
        shipmentId=str(shipment_id), status=shipment_next, orderStatus=order.status,
    )
    return ok_response(await fetch_shipment_details(db, shipment_id), "Shipment completed")


@router.get("/", response_model=Dict)
async def list_shipments(
    shipment_status: Optional[str] = Query(None, alias="status"),
    warehouse_id: Optional[UUID] = Query(None, alias="warehouseId"),
    order_number: Optional[str] = Query(None, alias="orderNumber"),
    created_after: Optional[datetime] = Query(None, alias="createdAfter"),
    created_before: Optional[datetime] = Query(None, alias="createdBefore"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_shipments")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _shipment_select()
    if shipment_status:
        stmt = stmt.where(OutboundShipment.status == shipment_status)
    if warehouse_id:
        stmt = stmt.where(OutboundShipment.warehouse_id == warehouse_id)
    if order_number:
        stmt = stmt.where(Order.order_number.ilike(f"%{order_number.strip()}%"))
    if created_after:
        stmt = stmt.where(OutboundShipment.created_at >= created_after)
    if created_before:
        stmt = stmt.where(OutboundShipment.created_at <= created_before)

    columns = sortable_columns(OutboundShipment, Order, Warehouse)
    stmt = stmt.order_by(sorting.clause(columns, "shipments"), OutboundShipment.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_shipment_row)
    return paginated_response(result["data"], result["pagination"], "Outbound shipments fetched successfully")


@router.get("/{shipment_id}", response_model=Dict)
async def get_shipment(
    shipment_id: UUID,
    ctx: Dict = Depends(require_permissions("view_shipments")),
    db: AsyncSession = Depends(get_async_session),
):
    return ok_response(await fetch_shipment_details(db, shipment_id), "Shipment details fetched successfully")
