import hashlib
import json
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.constants import (
    FULFILLMENT_CANCELLED,
    FULFILLMENT_DELIVERED,
    FULFILLMENT_PACKED,
    FULFILLMENT_PENDING,
    FULFILLMENT_PICKING,
    FULFILLMENT_SHIPPED,
    INVENTORY_IN_STOCK,
    INVENTORY_OUT_OF_STOCK,
    ORDER_ALLOCATED,
    ORDER_ALLOCATING,
    ORDER_CANCELLED,
    ORDER_CONFIRMED,
    ORDER_DELIVERED,
    ORDER_PARTIALLY_ALLOCATED,
    ORDER_PENDING,
    ORDER_PROCESSING,
    ORDER_SHIPPED,
    SHIPMENT_CANCELLED,
    SHIPMENT_DELIVERED,
    SHIPMENT_DISPATCHED,
    SHIPMENT_PENDING,
    SHIPMENT_READY,
)
from core.errors import AppError

ORDER_TRANSITIONS: Dict[str, tuple] = {
    ORDER_PENDING: (ORDER_CONFIRMED, ORDER_CANCELLED),
    ORDER_CONFIRMED: (ORDER_ALLOCATING, ORDER_ALLOCATED, ORDER_PARTIALLY_ALLOCATED, ORDER_CANCELLED),
    ORDER_ALLOCATING: (ORDER_ALLOCATED, ORDER_PARTIALLY_ALLOCATED, ORDER_CANCELLED),
    ORDER_PARTIALLY_ALLOCATED: (ORDER_ALLOCATED, ORDER_CANCELLED),
    ORDER_ALLOCATED: (ORDER_PROCESSING, ORDER_CANCELLED),
    ORDER_PROCESSING: (ORDER_SHIPPED, ORDER_CANCELLED),
    ORDER_SHIPPED: (ORDER_DELIVERED,),
    ORDER_DELIVERED: (),
    ORDER_CANCELLED: (),
}

ORDER_FINAL_STATUSES = (ORDER_DELIVERED, ORDER_CANCELLED)

FULFILLMENT_STATUS_SEQUENCE = [
    FULFILLMENT_PENDING,
    FULFILLMENT_PICKING,
    FULFILLMENT_PACKED,
    FULFILLMENT_SHIPPED,
    FULFILLMENT_DELIVERED,
    FULFILLMENT_CANCELLED,  # reachable from any non-final stage
]

FULFILLMENT_FINAL_STATUSES = (FULFILLMENT_DELIVERED, FULFILLMENT_CANCELLED)

SHIPMENT_STATUS_SEQUENCE = [
    SHIPMENT_PENDING,
    SHIPMENT_READY,
    SHIPMENT_DISPATCHED,
    SHIPMENT_DELIVERED,
    SHIPMENT_CANCELLED,
]

SHIPMENT_FINAL_STATUSES = (SHIPMENT_DELIVERED, SHIPMENT_CANCELLED)


def validate_order_status_transition(current: str, nxt: str) -> None:
    if current not in ORDER_TRANSITIONS or nxt not in ORDER_TRANSITIONS:
        raise AppError.validation(f"Invalid order status code(s): {current}, {nxt}")
    if current in ORDER_FINAL_STATUSES:
        raise AppError.validation(f"Cannot transition from final order status: {current}")
    if nxt not in ORDER_TRANSITIONS[current]:
        raise AppError.validation(f"Invalid order status transition: {current} -> {nxt}")


def is_fulfillment_status_final(code: str) -> bool:
    return code in FULFILLMENT_FINAL_STATUSES


def _validate_sequence(kind: str, sequence: List[str], finals: tuple, current: str, nxt: str) -> None:
    if current not in sequence or nxt not in sequence:
        raise AppError.validation(f"Invalid {kind} status code(s): {current}, {nxt}")
    if current in finals:
        raise AppError.validation(f"Cannot transition from final {kind} status: {current}")
    if sequence.index(nxt) <= sequence.index(current):
        raise AppError.validation(f"Cannot transition {kind} status backward: {current} -> {nxt}")


def validate_fulfillment_status_transition(current: str, nxt: str) -> None:
    _validate_sequence("fulfillment", FULFILLMENT_STATUS_SEQUENCE, FULFILLMENT_FINAL_STATUSES, current, nxt)


def validate_shipment_status_transition(current: str, nxt: str) -> None:
    _validate_sequence("shipment", SHIPMENT_STATUS_SEQUENCE, SHIPMENT_FINAL_STATUSES, current, nxt)


def assert_allocations_valid(allocations: List[Mapping[str, Any]]) -> None:
    if not allocations:
        raise AppError.not_found("No allocations found for this order.")
    for a in allocations:
        if not a.get("allocation_id") or not a.get("warehouse_id") or not a.get("batch_id"):
            raise AppError.validation("Allocation data is missing required fields.")
        if int(a.get("allocated_quantity") or 0) <= 0:
            raise AppError.validation("Allocation quantity must be greater than zero.")


def assert_single_warehouse(allocations: Iterable[Mapping[str, Any]]):
    """All allocations must come from one warehouse; returns its id."""
    warehouse_ids = list(OrderedDict.fromkeys(a.get("warehouse_id") for a in allocations))
    if not warehouse_ids:
        raise AppError.not_found("No allocations found for this order.")
    if len(warehouse_ids) > 1:
        raise AppError.validation(
            "Allocations span multiple warehouses. Split fulfillment per warehouse.",
            details={"warehouseIds": [str(w) for w in warehouse_ids]},
        )
    return warehouse_ids[0]


def build_fulfillment_inputs(allocations: Iterable[Mapping[str, Any]], shipment_id: Any) -> List[Dict[str, Any]]:
    """One fulfillment per order item; quantities and allocation ids are merged."""
    grouped: "OrderedDict[Any, Dict[str, Any]]" = OrderedDict()
    for a in allocations:
        key = a["order_item_id"]
        existing = grouped.get(key)
        if existing:
            existing["quantity_fulfilled"] += int(a["allocated_quantity"])
            existing["allocation_ids"].append(a["allocation_id"])
        else:
            grouped[key] = {
                "order_item_id": key,
                "shipment_id": shipment_id,
                "quantity_fulfilled": int(a["allocated_quantity"]),
                "allocation_ids": [a["allocation_id"]],
            }
    return list(grouped.values())


def inventory_key(warehouse_id: Any, batch_id: Any) -> str:
    return f"{warehouse_id}-{batch_id}"


def enrich_allocations_with_inventory(
    allocations: Iterable[Mapping[str, Any]],
    inventory: Iterable[Mapping[str, Any]],
) -> List[Dict[str, Any]]:
    inventory_map = {inventory_key(i["warehouse_id"], i["batch_id"]): i for i in inventory}

    out = []
    for a in allocations:
        inv = inventory_map.get(inventory_key(a["warehouse_id"], a["batch_id"])) or {}
        wq = inv.get("warehouse_quantity")
        rq = inv.get("reserved_quantity")
        enriched = {**a, **{k: v for k, v in inv.items() if k != "id"}}
        enriched["available_quantity"] = wq - rq if wq is not None and rq is not None else None
        enriched["warehouse_inventory_id"] = inv.get("id")
        out.append(enriched)
    return out


def calculate_inventory_adjustments(
    enriched_allocations: Iterable[Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> Dict[str, Dict[str, Any]]:
    """
    Deduct allocated stock from each warehouse lot.

    Several allocations on the same lot are summed before the deduction.
    """
    now = now or datetime.utcnow()
    totals: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for a in enriched_allocations:
        key = inventory_key(a["warehouse_id"], a["batch_id"])
        entry = totals.setdefault(key, {
            "warehouse_quantity": int(a.get("warehouse_quantity") or 0),
            "reserved_quantity": int(a.get("reserved_quantity") or 0),
            "allocated": 0,
        })
        entry["allocated"] += int(a.get("allocated_quantity") or 0)

    updates = {}
    for key, t in totals.items():
        new_qty = max(0, t["warehouse_quantity"] - t["allocated"])
        new_reserved = max(0, t["reserved_quantity"] - t["allocated"])
        updates[key] = {
            "warehouse_quantity": new_qty,
            "reserved_quantity": new_reserved,
            "status": INVENTORY_IN_STOCK if new_qty > 0 else INVENTORY_OUT_OF_STOCK,
            "last_update": now,
        }
    return updates


def build_inventory_checksum(payload: Mapping[str, Any]) -> str:
    canonical = json.dumps(
        {k: payload[k] for k in sorted(payload) if payload[k] is not None},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
