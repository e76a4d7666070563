from datetime import date, datetime

from core.constants import BATCH_TYPE_PACKAGING, BATCH_TYPE_PRODUCT
from core.transformers import (
    sku_display_name,
    transform_activity_log_row,
    transform_allocation_review,
    transform_batch_registry_row,
    transform_paginated_result,
    transform_warehouse_inventory_row,
)

PRODUCT_ROW = {
    "id": "reg-1",
    "batch_type": BATCH_TYPE_PRODUCT,
    "product_batch_id": "pb-1",
    "product_lot_number": "LOT-A",
    "product_expiry_date": date(2025, 6, 30),
    "product_batch_status": "released",
    "sku_id": "sku-1",
    "sku_code": "AUR-HS-30",
    "product_name": "Hydra Serum",
    "brand": "Aurora",
    "size_label": "30 ml",
    # packaging columns come back NULL from the outer join
    "packaging_batch_id": None,
    "packaging_lot_number": None,
    "registered_at": datetime(2024, 1, 1, 9, 30),
    "registered_by_firstname": "Ada",
    "registered_by_lastname": None,
}

PACKAGING_ROW = {
    "id": "reg-2",
    "batch_type": BATCH_TYPE_PACKAGING,
    "packaging_batch_id": "mb-1",
    "packaging_lot_number": "BOX-0001",
    "packaging_expiry_date": None,
    "packaging_batch_status": "received",
    "material_code": "BOX-S",
    "material_name": "Small Box",
    "material_snapshot_name": "Small Shipping Box",
    "product_batch_id": None,
}


def test_product_registry_row_carries_only_product_fields():
    record = transform_batch_registry_row(PRODUCT_ROW)
    assert record["type"] == BATCH_TYPE_PRODUCT
    assert record["lotNumber"] == "LOT-A"
    assert record["expiryDate"] == "2025-06-30"
    assert record["status"] == "released"
    assert record["registeredBy"] == "Ada"
    assert "packagingBatchId" not in record
    assert "materialName" not in record


def test_packaging_registry_row_carries_only_packaging_fields():
    record = transform_batch_registry_row(PACKAGING_ROW)
    assert record["type"] == BATCH_TYPE_PACKAGING
    assert record["materialName"] == "Small Shipping Box"
    assert record["expiryDate"] is None
    assert "productBatchId" not in record
    assert "skuId" not in record


def test_unknown_batch_type_dropped_from_pages():
    result = transform_paginated_result(
        [PRODUCT_ROW, {"id": "x", "batch_type": "mystery"}],
        {"page": 1, "limit": 10, "totalRecords": 2, "totalPages": 1},
        transform_batch_registry_row,
    )
    assert [r["id"] for r in result["data"]] == ["reg-1"]
    assert result["pagination"]["totalRecords"] == 2


def test_warehouse_inventory_row():
    row = {
        **PRODUCT_ROW,
        "id": "wi-1",
        "warehouse_id": "wh-1",
        "warehouse_name": "Toronto Main",
        "batch_id": "reg-1",
        "warehouse_quantity": 10,
        "reserved_quantity": 12,
        "warehouse_fee": None,
        "status": "in_stock",
    }
    record = transform_warehouse_inventory_row(row)
    assert record["itemName"] == sku_display_name("Aurora", "Hydra Serum", "30 ml")
    assert record["availableQuantity"] == 0
    assert record["batchType"] == BATCH_TYPE_PRODUCT


def test_activity_log_row():
    record = transform_activity_log_row({
        **PRODUCT_ROW,
        "id": "log-1",
        "action_type": "fulfilled",
        "previous_quantity": 10,
        "quantity_change": -4,
        "new_quantity": 6,
        "performed_at": datetime(2024, 2, 1, 8, 0),
        "performed_by_firstname": "Grace",
        "performed_by_lastname": "Hopper",
        "meta": None,
    })
    assert record["lotNumber"] == "LOT-A"
    assert record["quantityChange"] == -4
    assert record["performedBy"] == "Grace Hopper"
    assert record["metadata"] == {}


def test_allocation_review_groups_per_item():
    base = {"sku_id": "sku-1", "sku_code": "AUR-HS-30", "quantity_ordered": 8, "item_status": "ALLOC_PARTIAL"}
    rows = [
        {**base, **PRODUCT_ROW, "order_item_id": "i1", "allocation_id": "a1", "allocated_quantity": 3,
         "allocation_status": "ALLOC_PARTIAL", "warehouse_id": "wh-1", "batch_id": "reg-1"},
        {**base, **PRODUCT_ROW, "order_item_id": "i1", "allocation_id": "a2", "allocated_quantity": 2,
         "allocation_status": "ALLOC_PARTIAL", "warehouse_id": "wh-1", "batch_id": "reg-3"},
        {**base, "order_item_id": "i2", "allocation_id": None, "quantity_ordered": 1, "item_status": "BACKORDERED"},
    ]
    items = transform_allocation_review(rows)
    assert [i["orderItemId"] for i in items] == ["i1", "i2"]
    assert items[0]["allocatedTotal"] == 5
    assert [a["allocationId"] for a in items[0]["allocations"]] == ["a1", "a2"]
    assert items[1]["allocations"] == []
    assert items[1]["itemStatus"] == "BACKORDERED"
