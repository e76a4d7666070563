from datetime import date, datetime

import pytest

from core.allocation import (
    allocate_batches_by_strategy,
    allocate_batches_for_order_items,
    allocation_item_status,
    validate_allocation_status_transition,
)
from core.constants import ALLOC_COMPLETED, ALLOC_FULFILLING, ALLOC_PARTIAL, ALLOC_PENDING
from core.errors import AppError


def lot(batch_id, qty, reserved=0, expiry=None, inbound=None, warehouse_id="wh1", sku_id="sku1"):
    return {
        "warehouse_id": warehouse_id,
        "batch_id": batch_id,
        "sku_id": sku_id,
        "warehouse_quantity": qty,
        "reserved_quantity": reserved,
        "expiry_date": expiry,
        "inbound_date": inbound,
    }


def test_fefo_takes_earliest_expiry_first():
    lots = [
        lot("late", 10, expiry=date(2026, 1, 1)),
        lot("early", 5, expiry=date(2025, 1, 1)),
        lot("undated", 50),
    ]
    result = allocate_batches_by_strategy(lots, 12, "fefo")
    assert [(b["batch_id"], b["allocated_quantity"]) for b in result["allocatedBatches"]] == [
        ("early", 5),
        ("late", 7),
    ]
    assert result["allocatedTotal"] == 12
    assert result["remaining"] == 0
    assert result["fulfilled"] is True


def test_fifo_uses_inbound_date():
    lots = [
        lot("newer", 10, inbound=date(2024, 6, 1), expiry=date(2024, 7, 1)),
        lot("older", 10, inbound=date(2024, 1, 1), expiry=date(2030, 1, 1)),
    ]
    result = allocate_batches_by_strategy(lots, 4, "fifo")
    assert result["allocatedBatches"][0]["batch_id"] == "older"


def test_missing_dates_go_last():
    lots = [lot("undated", 10), lot("dated", 10, expiry="2025-05-01")]
    result = allocate_batches_by_strategy(lots, 15)
    assert [b["batch_id"] for b in result["allocatedBatches"]] == ["dated", "undated"]


def test_partial_allocation_reports_remaining():
    result = allocate_batches_by_strategy([lot("a", 3), lot("b", 2)], 10)
    assert result["allocatedTotal"] == 5
    assert result["remaining"] == 5
    assert result["fulfilled"] is False


def test_availability_is_clamped():
    lots = [lot("over-reserved", 5, reserved=9), lot("ok", 4, reserved=1)]
    result = allocate_batches_by_strategy(lots, 10)
    assert [(b["batch_id"], b["allocated_quantity"]) for b in result["allocatedBatches"]] == [("ok", 3)]


def test_exclude_expired():
    lots = [lot("expired", 10, expiry=date(2020, 1, 1)), lot("fresh", 10, expiry=date(2030, 1, 1))]
    result = allocate_batches_by_strategy(lots, 5, exclude_expired=True, now=datetime(2024, 1, 1))
    assert [b["batch_id"] for b in result["allocatedBatches"]] == ["fresh"]


def test_zero_or_missing_input():
    assert allocate_batches_by_strategy(None, 5)["allocatedTotal"] == 0
    empty = allocate_batches_by_strategy([lot("a", 5)], 0)
    assert empty["allocatedBatches"] == []
    assert empty["fulfilled"] is False


def test_unknown_strategy_rejected():
    with pytest.raises(AppError):
        allocate_batches_by_strategy([lot("a", 5)], 1, "lifo")


def test_input_batches_not_mutated():
    lots = [lot("a", 5)]
    allocate_batches_by_strategy(lots, 3)
    assert "allocated_quantity" not in lots[0]


def test_order_items_of_same_sku_do_not_share_units():
    lots = [lot("a", 6, expiry=date(2025, 1, 1))]
    items = [
        {"order_item_id": "i1", "sku_id": "sku1", "quantity_ordered": 4},
        {"order_item_id": "i2", "sku_id": "sku1", "quantity_ordered": 4},
    ]
    out = allocate_batches_for_order_items(items, lots)
    assert out[0]["allocated"]["allocatedTotal"] == 4
    assert out[1]["allocated"]["allocatedTotal"] == 2
    assert lots[0]["reserved_quantity"] == 0


def test_order_items_matched_by_target():
    lots = [
        lot("p", 10, sku_id="sku1"),
        {**lot("m", 10, sku_id=None), "packaging_material_id": "box"},
    ]
    items = [
        {"order_item_id": "i1", "packaging_material_id": "box", "quantity_ordered": 3},
        {"order_item_id": "i2", "sku_id": "other", "quantity_ordered": 3},
    ]
    out = allocate_batches_for_order_items(items, lots)
    assert out[0]["allocated"]["allocatedBatches"][0]["batch_id"] == "m"
    assert out[1]["allocated"]["allocatedTotal"] == 0


def test_allocation_item_status():
    assert allocation_item_status(10, 0) == "BACKORDERED"
    assert allocation_item_status(10, 4) == ALLOC_PARTIAL
    assert allocation_item_status(10, 10) == ALLOC_COMPLETED


def test_allocation_transitions():
    validate_allocation_status_transition(ALLOC_COMPLETED, ALLOC_FULFILLING)
    with pytest.raises(AppError):
        validate_allocation_status_transition(ALLOC_FULFILLING, ALLOC_PENDING)
    with pytest.raises(AppError):
        validate_allocation_status_transition("ALLOC_CANCELLED", ALLOC_COMPLETED)
    with pytest.raises(AppError):
        validate_allocation_status_transition("NOPE", ALLOC_COMPLETED)
