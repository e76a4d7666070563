"""
Batch allocation for order items.

Stock is picked from warehouse lots by strategy:
- 'fefo': earliest expiry_date first
- 'fifo': earliest inbound_date first

Lots without the sort date go last. A lot's availability is
warehouse_quantity - reserved_quantity, clamped at 0.
"""

from collections import defaultdict
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.constants import (
    ALLOC_CANCELLED,
    ALLOC_COMPLETED,
    ALLOC_FULFILLED,
    ALLOC_FULFILLING,
    ALLOC_PARTIAL,
    ALLOC_PENDING,
    ALLOC_RETURNED,
)
from core.errors import AppError

ALLOCATION_STRATEGIES = ("fefo", "fifo")

ALLOCATION_TRANSITIONS: Dict[str, tuple] = {
    ALLOC_PENDING: (ALLOC_PARTIAL, ALLOC_COMPLETED, ALLOC_CANCELLED),
    ALLOC_PARTIAL: (ALLOC_COMPLETED, ALLOC_FULFILLING, ALLOC_CANCELLED),
    ALLOC_COMPLETED: (ALLOC_FULFILLING, ALLOC_CANCELLED),
    ALLOC_FULFILLING: (ALLOC_FULFILLED, ALLOC_CANCELLED),
    ALLOC_FULFILLED: (ALLOC_RETURNED,),
    ALLOC_CANCELLED: (),
    ALLOC_RETURNED: (),
}

ALLOCATION_FINAL_STATUSES = (ALLOC_CANCELLED, ALLOC_RETURNED)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


def _available(batch: Mapping[str, Any]) -> int:
    reserved = max(0, int(batch.get("reserved_quantity") or 0))
    return max(0, int(batch.get("warehouse_quantity") or 0) - reserved)


def allocate_batches_by_strategy(
    batches: Iterable[Mapping[str, Any]],
    required_quantity: int,
    strategy: str = "fefo",
    exclude_expired: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Greedily take stock from `batches` until `required_quantity` is met.

    Each allocated batch is a copy of the input dict plus `allocated_quantity`.
    Returns {allocatedBatches, allocatedTotal, remaining, fulfilled}.
    """
    required = int(required_quantity or 0)
    if batches is None or required <= 0:
        return {
            "allocatedBatches": [],
            "allocatedTotal": 0,
            "remaining": max(0, required),
            "fulfilled": False,
        }

    if strategy not in ALLOCATION_STRATEGIES:
        raise AppError.validation(f"Unknown allocation strategy: {strategy}")

    sort_field = "inbound_date" if strategy == "fifo" else "expiry_date"

    candidates = []
    for b in batches:
        available = _available(b)
        if available > 0:
            candidates.append((b, available))

    if exclude_expired and sort_field == "expiry_date":
        ref = _as_datetime(now) or datetime.now()
        candidates = [
            (b, avail) for b, avail in candidates
            if _as_datetime(b.get("expiry_date")) is not None and _as_datetime(b.get("expiry_date")) >= ref
        ]

    # stable sort; missing dates last
    candidates.sort(key=lambda c: (
        _as_datetime(c[0].get(sort_field)) is None,
        _as_datetime(c[0].get(sort_field)) or datetime.max,
    ))

    allocated: List[Dict[str, Any]] = []
    accumulated = 0
    for batch, available in candidates:
        if accumulated >= required:
            break
        take = min(available, required - accumulated)
        if take <= 0:
            continue
        allocated.append({**batch, "allocated_quantity": take})
        accumulated += take

    remaining = max(0, required - accumulated)
    return {
        "allocatedBatches": allocated,
        "allocatedTotal": accumulated,
        "remaining": remaining,
        "fulfilled": remaining == 0,
    }


def allocate_batches_for_order_items(
    order_items: Iterable[Mapping[str, Any]],
    batches: Iterable[Mapping[str, Any]],
    strategy: str = "fefo",
    exclude_expired: bool = False,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Match each order item to lots of the same SKU / packaging material.

    Items are served in order; stock taken by an earlier item is counted as
    reserved for the later ones, so two lines of the same SKU never share
    the same units.
    """
    by_sku: Dict[Any, List[Dict[str, Any]]] = defaultdict(list)
    by_material: Dict[Any, List[Dict[str, Any]]] = defaultdict(list)
    for b in batches:
        working = dict(b)
        if working.get("sku_id") is not None:
            by_sku[working["sku_id"]].append(working)
        elif working.get("packaging_material_id") is not None:
            by_material[working["packaging_material_id"]].append(working)

    out = []
    for item in order_items:
        sku_id = item.get("sku_id")
        material_id = item.get("packaging_material_id")
        if sku_id is not None:
            candidates = by_sku.get(sku_id, [])
        elif material_id is not None:
            candidates = by_material.get(material_id, [])
        else:
            candidates = []

        result = allocate_batches_by_strategy(
            candidates, item.get("quantity_ordered") or 0, strategy, exclude_expired, now
        )
        taken = {(b.get("warehouse_id"), b.get("batch_id")): b["allocated_quantity"] for b in result["allocatedBatches"]}
        for c in candidates:
            qty = taken.get((c.get("warehouse_id"), c.get("batch_id")))
            if qty:
                c["reserved_quantity"] = int(c.get("reserved_quantity") or 0) + qty

        out.append({
            "order_item_id": item.get("order_item_id") or item.get("id"),
            "sku_id": sku_id,
            "packaging_material_id": material_id,
            "quantity_ordered": int(item.get("quantity_ordered") or 0),
            "allocated": result,
        })
    return out


def allocation_item_status(quantity_ordered: int, allocated_total: int) -> str:
    if allocated_total <= 0:
        return "BACKORDERED"
    if allocated_total >= quantity_ordered:
        return ALLOC_COMPLETED
    return ALLOC_PARTIAL


def validate_allocation_status_transition(current: str, nxt: str) -> None:
    if current not in ALLOCATION_TRANSITIONS or nxt not in ALLOCATION_TRANSITIONS:
        raise AppError.validation(f"Invalid allocation status code(s): {current}, {nxt}")
    if current in ALLOCATION_FINAL_STATUSES:
        raise AppError.validation(f"Cannot transition from final allocation status: {current}")
    if nxt not in ALLOCATION_TRANSITIONS[current]:
        raise AppError.validation(f"Invalid allocation status transition: {current} -> {nxt}")
