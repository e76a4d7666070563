from datetime import datetime

import pytest

from core.constants import (
    FULFILLMENT_CANCELLED,
    FULFILLMENT_DELIVERED,
    FULFILLMENT_PACKED,
    FULFILLMENT_PENDING,
    INVENTORY_IN_STOCK,
    INVENTORY_OUT_OF_STOCK,
    ORDER_ALLOCATED,
    ORDER_CANCELLED,
    ORDER_CONFIRMED,
    ORDER_DELIVERED,
    ORDER_PENDING,
    ORDER_PROCESSING,
    SHIPMENT_DISPATCHED,
    SHIPMENT_PENDING,
    SHIPMENT_READY,
)
from core.errors import AppError, ErrorType
from core.fulfillment import (
    assert_allocations_valid,
    assert_single_warehouse,
    build_fulfillment_inputs,
    build_inventory_checksum,
    calculate_inventory_adjustments,
    enrich_allocations_with_inventory,
    is_fulfillment_status_final,
    validate_fulfillment_status_transition,
    validate_order_status_transition,
    validate_shipment_status_transition,
)


def alloc(allocation_id, order_item_id, qty, warehouse_id="wh1", batch_id="b1"):
    return {
        "allocation_id": allocation_id,
        "order_item_id": order_item_id,
        "allocated_quantity": qty,
        "warehouse_id": warehouse_id,
        "batch_id": batch_id,
    }


def test_order_transitions():
    validate_order_status_transition(ORDER_PENDING, ORDER_CONFIRMED)
    validate_order_status_transition(ORDER_ALLOCATED, ORDER_PROCESSING)
    with pytest.raises(AppError):
        validate_order_status_transition(ORDER_PROCESSING, ORDER_PENDING)
    with pytest.raises(AppError):
        validate_order_status_transition(ORDER_DELIVERED, ORDER_CANCELLED)
    with pytest.raises(AppError):
        validate_order_status_transition("ORDER_LOST", ORDER_CONFIRMED)


def test_fulfillment_sequence_is_forward_only():
    validate_fulfillment_status_transition(FULFILLMENT_PENDING, FULFILLMENT_PACKED)
    validate_fulfillment_status_transition(FULFILLMENT_PACKED, FULFILLMENT_CANCELLED)
    with pytest.raises(AppError):
        validate_fulfillment_status_transition(FULFILLMENT_PACKED, FULFILLMENT_PENDING)
    with pytest.raises(AppError):
        validate_fulfillment_status_transition(FULFILLMENT_DELIVERED, FULFILLMENT_CANCELLED)
    assert is_fulfillment_status_final(FULFILLMENT_DELIVERED)
    assert not is_fulfillment_status_final(FULFILLMENT_PACKED)


def test_shipment_sequence():
    validate_shipment_status_transition(SHIPMENT_PENDING, SHIPMENT_READY)
    validate_shipment_status_transition(SHIPMENT_READY, SHIPMENT_DISPATCHED)
    with pytest.raises(AppError):
        validate_shipment_status_transition(SHIPMENT_READY, SHIPMENT_READY)


def test_assert_allocations_valid():
    with pytest.raises(AppError) as exc:
        assert_allocations_valid([])
    assert exc.value.type == ErrorType.NOT_FOUND
    with pytest.raises(AppError):
        assert_allocations_valid([alloc("a1", "i1", 0)])
    with pytest.raises(AppError):
        assert_allocations_valid([{**alloc("a1", "i1", 1), "batch_id": None}])
    assert_allocations_valid([alloc("a1", "i1", 2)])


def test_single_warehouse():
    assert assert_single_warehouse([alloc("a1", "i1", 1), alloc("a2", "i2", 1)]) == "wh1"
    with pytest.raises(AppError) as exc:
        assert_single_warehouse([alloc("a1", "i1", 1), alloc("a2", "i2", 1, warehouse_id="wh2")])
    assert exc.value.details == {"warehouseIds": ["wh1", "wh2"]}


def test_build_fulfillment_inputs_groups_by_item():
    inputs = build_fulfillment_inputs(
        [alloc("a1", "i1", 3), alloc("a2", "i1", 2, batch_id="b2"), alloc("a3", "i2", 1)],
        shipment_id="s1",
    )
    assert inputs == [
        {"order_item_id": "i1", "shipment_id": "s1", "quantity_fulfilled": 5, "allocation_ids": ["a1", "a2"]},
        {"order_item_id": "i2", "shipment_id": "s1", "quantity_fulfilled": 1, "allocation_ids": ["a3"]},
    ]


def test_enrich_allocations_with_inventory():
    inventory = [{"id": "inv1", "warehouse_id": "wh1", "batch_id": "b1", "warehouse_quantity": 10, "reserved_quantity": 4}]
    enriched = enrich_allocations_with_inventory([alloc("a1", "i1", 4), alloc("a2", "i2", 1, batch_id="zz")], inventory)
    assert enriched[0]["warehouse_inventory_id"] == "inv1"
    assert enriched[0]["available_quantity"] == 6
    assert enriched[0]["allocation_id"] == "a1"
    assert enriched[1]["warehouse_inventory_id"] is None
    assert enriched[1]["available_quantity"] is None


def test_calculate_inventory_adjustments_sums_same_lot():
    now = datetime(2024, 5, 1, 12, 0)
    enriched = [
        {**alloc("a1", "i1", 3), "warehouse_quantity": 10, "reserved_quantity": 5},
        {**alloc("a2", "i2", 2), "warehouse_quantity": 10, "reserved_quantity": 5},
        {**alloc("a3", "i3", 4, batch_id="b2"), "warehouse_quantity": 4, "reserved_quantity": 4},
    ]
    updates = calculate_inventory_adjustments(enriched, now=now)
    assert updates["wh1-b1"] == {
        "warehouse_quantity": 5,
        "reserved_quantity": 0,
        "status": INVENTORY_IN_STOCK,
        "last_update": now,
    }
    assert updates["wh1-b2"]["warehouse_quantity"] == 0
    assert updates["wh1-b2"]["status"] == INVENTORY_OUT_OF_STOCK


def test_checksum_is_stable_and_ignores_none():
    a = build_inventory_checksum({"b": 2, "a": 1, "c": None})
    b = build_inventory_checksum({"a": 1, "b": 2})
    assert a == b
    assert len(a) == 64
    assert build_inventory_checksum({"a": 1, "b": 3}) != a
