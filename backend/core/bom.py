"""
BOM costing and production readiness.

Line costs are converted to the base currency with the line's exchange rate.
Readiness counts the finished units the usable packaging stock can cover:
each part allows floor(available / qty per unit) units and the BOM is capped
by its lowest part.
"""

import math
from collections import OrderedDict
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.constants import INVENTORY_IN_STOCK

BASE_CURRENCY = "CAD"

# batch statuses whose stock never counts toward production
UNUSABLE_BATCH_STATUSES = ("pending", "quarantined", "expired", "suspended")


def _round(value: float) -> float:
    return round(float(value or 0), 4)


def to_base_currency(amount: Any, currency: Optional[str], exchange_rate: Any, base_currency: str = BASE_CURRENCY) -> float:
    amount = float(amount or 0)
    if not currency or currency.upper() == base_currency.upper():
        return amount
    return amount * float(exchange_rate if exchange_rate is not None else 1)


def calculate_bom_costs(items: Iterable[Mapping[str, Any]], base_currency: str = BASE_CURRENCY) -> Dict[str, Any]:
    """
    Estimated vs actual material cost of one finished unit.

    Each item carries `part_qty_per_product`, `estimated_unit_cost`,
    `currency`, `exchange_rate` and optionally `actual_unit_cost`,
    `actual_currency`, `actual_exchange_rate` (the latest received batch
    cost). Items without an actual cost are costed at their estimate.
    """
    items = list(items)
    total_estimated = 0.0
    total_actual = 0.0
    for item in items:
        qty = float(item.get("part_qty_per_product") or 0)
        currency = item.get("currency") or base_currency
        estimated = to_base_currency(
            float(item.get("estimated_unit_cost") or 0) * qty, currency, item.get("exchange_rate"), base_currency
        )
        total_estimated += estimated

        if item.get("actual_unit_cost") is None:
            total_actual += estimated
            continue
        total_actual += to_base_currency(
            float(item["actual_unit_cost"]) * qty,
            item.get("actual_currency") or currency,
            item.get("actual_exchange_rate"),
            base_currency,
        )

    variance = total_actual - total_estimated
    return {
        "type": "ESTIMATED",
        "currency": base_currency,
        "itemCount": len(items),
        "totalEstimatedCost": _round(total_estimated),
        "totalActualCost": _round(total_actual),
        "variance": _round(variance),
        "variancePercentage": _round(variance / total_estimated * 100) if total_estimated else 0,
    }


def is_stock_usable(row: Mapping[str, Any], today: Optional[date] = None) -> bool:
    today = today or date.today()
    if row.get("inventory_status") != INVENTORY_IN_STOCK:
        return False
    if row.get("batch_status") in UNUSABLE_BATCH_STATUSES:
        return False
    expiry = row.get("expiry_date")
    return expiry is None or expiry >= today


def _available(row: Mapping[str, Any]) -> int:
    return max(0, int(row.get("warehouse_quantity") or 0) - int(row.get("reserved_quantity") or 0))


def calculate_production_readiness(parts: Iterable[Mapping[str, Any]], today: Optional[date] = None) -> Dict[str, Any]:
    """
    `parts`: [{part_id, part_name, required_qty_per_unit, stock: [lot rows]}]
    where a lot row has material_name, warehouse_quantity, reserved_quantity,
    inventory_status, batch_status and expiry_date.

    Parts with no positive quantity per unit do not limit production.
    """
    today = today or date.today()
    usable_total = 0
    inactive_total = 0
    summaries: List[Dict[str, Any]] = []

    for part in parts:
        materials: "OrderedDict[str, int]" = OrderedDict()
        available = 0
        for row in part.get("stock") or ():
            qty = _available(row)
            if not is_stock_usable(row, today):
                inactive_total += qty
                continue
            usable_total += qty
            available += qty
            name = row.get("material_name") or "Unknown material"
            materials[name] = materials.get(name, 0) + qty

        required = float(part.get("required_qty_per_unit") or 0)
        summaries.append({
            "partId": str(part["part_id"]) if part.get("part_id") is not None else None,
            "partName": part.get("part_name"),
            "requiredQtyPerUnit": required,
            "totalAvailableQuantity": available,
            "maxProducibleUnits": math.floor(available / required) if required > 0 else None,
            "isBottleneck": False,
            "materials": [{"materialName": k, "availableQuantity": v} for k, v in materials.items()],
        })

    limits = [s["maxProducibleUnits"] for s in summaries if s["maxProducibleUnits"] is not None]
    max_units = min(limits) if limits else 0
    bottlenecks = []
    for s in summaries:
        if limits and s["maxProducibleUnits"] == max_units:
            s["isBottleneck"] = True
            bottlenecks.append({"partId": s["partId"], "partName": s["partName"]})

    return {
        "metadata": {
            "maxProducibleUnits": max_units,
            "isReadyForProduction": max_units > 0,
            "stockHealth": {"usable": usable_total, "inactive": inactive_total},
            "bottleneckParts": bottlenecks,
        },
        "parts": summaries,
    }
