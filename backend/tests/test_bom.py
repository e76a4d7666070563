from datetime import date

import pytest

from core.addresses import build_address_hash, format_display_address
from core.bom import calculate_bom_costs, calculate_production_readiness, is_stock_usable, to_base_currency

TODAY = date(2026, 3, 1)


def lot(material, quantity, reserved=0, inventory_status="in_stock", batch_status="received", expiry=None):
    return {
        "material_name": material,
        "warehouse_quantity": quantity,
        "reserved_quantity": reserved,
        "inventory_status": inventory_status,
        "batch_status": batch_status,
        "expiry_date": expiry,
    }


def test_to_base_currency():
    assert to_base_currency(2, "CAD", 1.4) == 2
    assert to_base_currency(2, None, 1.4) == 2
    assert to_base_currency(2, "usd", 1.5) == 3
    assert to_base_currency(2, "USD", None) == 2


def test_bom_costs_fall_back_to_estimate():
    summary = calculate_bom_costs([
        {"part_qty_per_product": 1, "estimated_unit_cost": "0.45", "currency": "CAD", "exchange_rate": 1,
         "actual_unit_cost": "0.50", "actual_currency": "CAD"},
        {"part_qty_per_product": 2, "estimated_unit_cost": "0.05", "currency": "USD", "exchange_rate": "1.35"},
    ])
    assert summary["type"] == "ESTIMATED"
    assert summary["currency"] == "CAD"
    assert summary["itemCount"] == 2
    assert summary["totalEstimatedCost"] == pytest.approx(0.585)
    assert summary["totalActualCost"] == pytest.approx(0.635)
    assert summary["variance"] == pytest.approx(0.05)
    assert summary["variancePercentage"] == pytest.approx(8.547, abs=1e-4)


def test_bom_costs_empty():
    summary = calculate_bom_costs([])
    assert summary["totalEstimatedCost"] == 0
    assert summary["variancePercentage"] == 0
    assert summary["itemCount"] == 0


def test_stock_usability():
    assert is_stock_usable(lot("Box", 5), TODAY)
    assert not is_stock_usable(lot("Box", 5, inventory_status="unavailable"), TODAY)
    assert not is_stock_usable(lot("Box", 5, batch_status="quarantined"), TODAY)
    assert not is_stock_usable(lot("Box", 5, expiry=date(2026, 2, 28)), TODAY)
    assert is_stock_usable(lot("Box", 5, expiry=TODAY), TODAY)


def test_readiness_is_capped_by_bottleneck_part():
    result = calculate_production_readiness([
        {"part_id": "p-box", "part_name": "Box", "required_qty_per_unit": 1,
         "stock": [lot("Small Box", 100, reserved=10), lot("Small Box", 50, batch_status="suspended")]},
        {"part_id": "p-lbl", "part_name": "Label", "required_qty_per_unit": 2,
         "stock": [lot("Label A", 60), lot("Label B", 15)]},
    ], TODAY)

    meta = result["metadata"]
    assert meta["maxProducibleUnits"] == 37
    assert meta["isReadyForProduction"] is True
    assert meta["stockHealth"] == {"usable": 165, "inactive": 50}
    assert meta["bottleneckParts"] == [{"partId": "p-lbl", "partName": "Label"}]

    box, label = result["parts"]
    assert (box["totalAvailableQuantity"], box["maxProducibleUnits"], box["isBottleneck"]) == (90, 90, False)
    assert label["materials"] == [
        {"materialName": "Label A", "availableQuantity": 60},
        {"materialName": "Label B", "availableQuantity": 15},
    ]
    assert label["isBottleneck"] is True


def test_readiness_without_stock_is_not_ready():
    result = calculate_production_readiness([
        {"part_id": "p1", "part_name": "Cap", "required_qty_per_unit": 1, "stock": []},
        {"part_id": "p2", "part_name": "Insert", "required_qty_per_unit": 0, "stock": [lot("Insert", 5)]},
    ], TODAY)
    assert result["metadata"]["maxProducibleUnits"] == 0
    assert result["metadata"]["isReadyForProduction"] is False
    assert result["metadata"]["bottleneckParts"] == [{"partId": "p1", "partName": "Cap"}]
    assert result["parts"][1]["maxProducibleUnits"] is None

    empty = calculate_production_readiness([], TODAY)
    assert empty["metadata"]["maxProducibleUnits"] == 0
    assert empty["metadata"]["bottleneckParts"] == []


def test_address_hash_ignores_case_and_spacing():
    a = {"customer_id": "c1", "address_line1": "88 Queen St W", "city": "Toronto", "postal_code": "M5H 2M9",
         "country": "Canada", "full_name": "Maya"}
    b = {**a, "address_line1": "  88  queen st w ", "city": "TORONTO", "full_name": "Someone else"}
    assert build_address_hash(a) == build_address_hash(b)
    assert build_address_hash(a) != build_address_hash({**a, "customer_id": "c2"})
    assert len(build_address_hash(a)) == 64


def test_display_address():
    assert format_display_address({
        "address_line1": "88 Queen St W", "address_line2": " ", "city": "Toronto", "state": "ON",
        "postal_code": "M5H 2M9", "country": "Canada",
    }) == "88 Queen St W, Toronto, ON, M5H 2M9, Canada"
    assert format_display_address({}) is None
