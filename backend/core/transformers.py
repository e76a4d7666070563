"""
Row -> flattened camelCase record mappers used by the list/detail endpoints.

Every function takes a mapping of snake_case columns (a `RowMapping` from a
labeled select, or a plain dict in tests) and returns a JSON-ready dict.
Mappers return None for rows they cannot represent; list endpoints drop those.
"""

from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from core.addresses import format_display_address
from core.constants import BATCH_TYPE_PACKAGING, BATCH_TYPE_PRODUCT
from core.formatters import clean_object, full_name, iso, to_number


def _id(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _actor_name(row: Mapping[str, Any], prefix: str) -> Optional[str]:
    return full_name(row.get(f"{prefix}_firstname"), row.get(f"{prefix}_lastname"))


def _available(quantity: Any, reserved: Any) -> int:
    return max(0, int(quantity or 0) - int(reserved or 0))


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

def _product_branch(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "productBatchId": _id(row.get("product_batch_id")),
        "skuId": _id(row.get("sku_id")),
        "sku": row.get("sku_code"),
        "productId": _id(row.get("product_id")),
        "productName": row.get("product_name"),
        "brand": row.get("brand"),
        "manufacturerName": row.get("manufacturer_name"),
        "manufactureDate": iso(row.get("manufacture_date")),
    }


def _packaging_branch(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "packagingBatchId": _id(row.get("packaging_batch_id")),
        "packagingMaterialId": _id(row.get("packaging_material_id")),
        "materialCode": row.get("material_code"),
        "materialName": row.get("material_snapshot_name") or row.get("material_name"),
        "supplierName": row.get("supplier_name"),
        "receivedDate": iso(row.get("received_date")),
    }


def _batch_common(row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Lot number / expiry / status picked from whichever branch the row belongs to."""
    batch_type = row.get("batch_type")
    if batch_type == BATCH_TYPE_PRODUCT:
        return {
            "type": BATCH_TYPE_PRODUCT,
            "lotNumber": row.get("product_lot_number"),
            "expiryDate": iso(row.get("product_expiry_date")),
            "batchStatus": row.get("product_batch_status"),
            **_product_branch(row),
        }
    if batch_type == BATCH_TYPE_PACKAGING:
        return {
            "type": BATCH_TYPE_PACKAGING,
            "lotNumber": row.get("packaging_lot_number"),
            "expiryDate": iso(row.get("packaging_expiry_date")),
            "batchStatus": row.get("packaging_batch_status"),
            **_packaging_branch(row),
        }
    return None


def transform_batch_registry_row(row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Discriminated union on `type`: product rows carry only product fields,
    packaging rows only packaging fields. Unknown types are dropped.
    """
    branch = _batch_common(row)
    if branch is None:
        return None
    status = branch.pop("batchStatus")
    return {
        "id": _id(row.get("id")),
        **branch,
        "status": status,
        "registeredAt": iso(row.get("registered_at")),
        "registeredBy": _actor_name(row, "registered_by"),
        "note": row.get("note"),
    }


def transform_product_batch_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "registryId": _id(row.get("registry_id")),
        "lotNumber": row.get("lot_number"),
        "skuId": _id(row.get("sku_id")),
        "sku": row.get("sku_code"),
        "productName": row.get("product_name"),
        "brand": row.get("brand"),
        "manufacturerId": _id(row.get("manufacturer_id")),
        "manufacturerName": row.get("manufacturer_name"),
        "manufactureDate": iso(row.get("manufacture_date")),
        "expiryDate": iso(row.get("expiry_date")),
        "initialQuantity": int(row.get("initial_quantity") or 0),
        "status": row.get("status"),
        "notes": row.get("notes"),
        "createdAt": iso(row.get("created_at")),
    }


def transform_packaging_batch_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "registryId": _id(row.get("registry_id")),
        "lotNumber": row.get("lot_number"),
        "packagingMaterialId": _id(row.get("packaging_material_id")),
        "materialCode": row.get("material_code"),
        "materialName": row.get("material_snapshot_name") or row.get("material_name"),
        "supplierName": row.get("supplier_name"),
        "receivedDate": iso(row.get("received_date")),
        "expiryDate": iso(row.get("expiry_date")),
        "quantity": int(row.get("quantity") or 0),
        "unit": row.get("unit"),
        "unitCost": to_number(row.get("unit_cost")),
        "currency": row.get("currency"),
        "status": row.get("status"),
        "createdAt": iso(row.get("created_at")),
    }


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def transform_product_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "name": row.get("name"),
        "brand": row.get("brand"),
        "category": row.get("category"),
        "series": row.get("series"),
        "description": row.get("description"),
        "status": row.get("status"),
        "createdAt": iso(row.get("created_at")),
        "createdBy": _actor_name(row, "created_by"),
        "updatedAt": iso(row.get("updated_at")),
        "updatedBy": _actor_name(row, "updated_by"),
    }


def sku_display_name(brand: Optional[str], product_name: Optional[str], size_label: Optional[str]) -> str:
    parts = [p for p in (brand, product_name) if p]
    label = " - ".join(parts) or "Unnamed SKU"
    return f"{label} ({size_label})" if size_label else label


def transform_sku_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    image_id = row.get("primary_image_id")
    return {
        "id": _id(row.get("id")),
        "sku": row.get("sku"),
        "barcode": row.get("barcode"),
        "language": row.get("language"),
        "countryCode": row.get("country_code"),
        "marketRegion": row.get("market_region"),
        "sizeLabel": row.get("size_label"),
        "description": row.get("description"),
        "status": row.get("status"),
        "productId": _id(row.get("product_id")),
        "productName": row.get("product_name"),
        "brand": row.get("brand"),
        "category": row.get("category"),
        "displayName": sku_display_name(row.get("brand"), row.get("product_name"), row.get("size_label")),
        "primaryImageUrl": f"/skus/images/{image_id}" if image_id else None,
        "createdAt": iso(row.get("created_at")),
    }


# ---------------------------------------------------------------------------
# Locations / warehouses
# ---------------------------------------------------------------------------

def transform_location_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "name": row.get("name"),
        "locationType": row.get("location_type_name"),
        "locationTypeCode": row.get("location_type_code"),
        "addressLine": row.get("address_line"),
        "city": row.get("city"),
        "province": row.get("province"),
        "postalCode": row.get("postal_code"),
        "country": row.get("country"),
        "isArchived": bool(row.get("is_archived")),
        "status": row.get("status"),
        "createdAt": iso(row.get("created_at")),
        "createdBy": _actor_name(row, "created_by"),
        "updatedAt": iso(row.get("updated_at")),
        "updatedBy": _actor_name(row, "updated_by"),
    }


def transform_warehouse_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    location = None
    if row.get("location_id") is not None:
        location = clean_object({
            "id": _id(row.get("location_id")),
            "name": row.get("location_name"),
            "city": row.get("location_city"),
            "country": row.get("location_country"),
        })
    return {
        "id": _id(row.get("id")),
        "name": row.get("name"),
        "code": row.get("code"),
        "warehouseType": row.get("warehouse_type"),
        "storageCapacity": row.get("storage_capacity"),
        "defaultFee": to_number(row.get("default_fee")),
        "isArchived": bool(row.get("is_archived")),
        "status": row.get("status"),
        "location": location,
        "createdAt": iso(row.get("created_at")),
    }


def transform_warehouse_summary(stats: Mapping[str, Any]) -> Dict[str, int]:
    total = int(stats.get("total_quantity") or 0)
    reserved = int(stats.get("reserved_quantity") or 0)
    return {
        "totalLots": int(stats.get("total_lots") or 0),
        "totalQuantity": total,
        "reservedQuantity": reserved,
        "availableQuantity": max(0, total - reserved),
        "expiredLots": int(stats.get("expired_lots") or 0),
        "nearExpiryLots": int(stats.get("near_expiry_lots") or 0),
    }


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

def _inventory_item(row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    branch = _batch_common(row)
    if branch is None:
        return None
    branch.pop("batchStatus")
    if branch["type"] == BATCH_TYPE_PRODUCT:
        branch["itemName"] = sku_display_name(row.get("brand"), row.get("product_name"), row.get("size_label"))
    else:
        branch["itemName"] = branch.get("materialName")
    return branch


def transform_warehouse_inventory_row(row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    item = _inventory_item(row)
    if item is None:
        return None
    batch_type = item.pop("type")
    return {
        "id": _id(row.get("id")),
        "warehouseId": _id(row.get("warehouse_id")),
        "warehouseName": row.get("warehouse_name"),
        "batchId": _id(row.get("batch_id")),
        "batchType": batch_type,
        **item,
        "warehouseQuantity": int(row.get("warehouse_quantity") or 0),
        "reservedQuantity": int(row.get("reserved_quantity") or 0),
        "availableQuantity": _available(row.get("warehouse_quantity"), row.get("reserved_quantity")),
        "warehouseFee": to_number(row.get("warehouse_fee")),
        "inboundDate": iso(row.get("inbound_date")),
        "outboundDate": iso(row.get("outbound_date")),
        "status": row.get("status"),
        "lastUpdate": iso(row.get("last_update")),
    }


def transform_location_inventory_row(row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    item = _inventory_item(row)
    if item is None:
        return None
    batch_type = item.pop("type")
    return {
        "id": _id(row.get("id")),
        "locationId": _id(row.get("location_id")),
        "locationName": row.get("location_name"),
        "batchId": _id(row.get("batch_id")),
        "batchType": batch_type,
        **item,
        "locationQuantity": int(row.get("location_quantity") or 0),
        "reservedQuantity": int(row.get("reserved_quantity") or 0),
        "availableQuantity": _available(row.get("location_quantity"), row.get("reserved_quantity")),
        "inboundDate": iso(row.get("inbound_date")),
        "outboundDate": iso(row.get("outbound_date")),
        "status": row.get("status"),
        "lastUpdate": iso(row.get("last_update")),
    }


def transform_inventory_summary_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    total = int(row.get("total_quantity") or 0)
    reserved = int(row.get("reserved_quantity") or 0)
    return {
        "itemType": row.get("item_type"),
        "itemId": _id(row.get("item_id")),
        "code": row.get("item_code"),
        "name": row.get("item_name"),
        "totalLots": int(row.get("total_lots") or 0),
        "totalQuantity": total,
        "reservedQuantity": reserved,
        "availableQuantity": max(0, total - reserved),
        "earliestExpiry": iso(row.get("earliest_expiry")),
    }


def transform_activity_log_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    batch_type = row.get("batch_type")
    if batch_type == BATCH_TYPE_PRODUCT:
        lot_number = row.get("product_lot_number")
        item_name = sku_display_name(row.get("brand"), row.get("product_name"), row.get("size_label"))
    elif batch_type == BATCH_TYPE_PACKAGING:
        lot_number = row.get("packaging_lot_number")
        item_name = row.get("material_snapshot_name") or row.get("material_name")
    else:
        lot_number = None
        item_name = None

    return {
        "id": _id(row.get("id")),
        "actionType": row.get("action_type"),
        "adjustmentType": row.get("adjustment_type"),
        "warehouseName": row.get("warehouse_name"),
        "locationName": row.get("location_name"),
        "batchType": batch_type,
        "lotNumber": lot_number,
        "itemName": item_name,
        "previousQuantity": int(row.get("previous_quantity") or 0),
        "quantityChange": int(row.get("quantity_change") or 0),
        "newQuantity": int(row.get("new_quantity") or 0),
        "status": row.get("status"),
        "performedBy": _actor_name(row, "performed_by"),
        "performedAt": iso(row.get("performed_at")),
        "orderNumber": row.get("order_number"),
        "comments": row.get("comments"),
        "sourceType": row.get("source_type"),
        "sourceRefId": _id(row.get("source_ref_id")),
        "metadata": row.get("meta") or {},
        "checksum": row.get("checksum"),
    }


# ---------------------------------------------------------------------------
# Users / pricing
# ---------------------------------------------------------------------------

def transform_user_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "email": row.get("email"),
        "fullName": full_name(row.get("firstname"), row.get("lastname")),
        "firstname": row.get("firstname"),
        "lastname": row.get("lastname"),
        "roleName": row.get("role_name"),
        "jobTitle": row.get("job_title"),
        "phone": row.get("phone"),
        "status": "active" if row.get("is_active") else "inactive",
        "lastLogin": iso(row.get("last_login")),
        "createdAt": iso(row.get("created_at")),
    }


def transform_pricing_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "skuId": _id(row.get("sku_id")),
        "sku": row.get("sku_code"),
        "productName": row.get("product_name"),
        "brand": row.get("brand"),
        "countryCode": row.get("country_code"),
        "sizeLabel": row.get("size_label"),
        "pricingTypeId": _id(row.get("price_type_id")),
        "pricingType": row.get("pricing_type_name"),
        "pricingTypeCode": row.get("pricing_type_code"),
        "locationId": _id(row.get("location_id")),
        "locationName": row.get("location_name"),
        "price": to_number(row.get("price")),
        "validFrom": iso(row.get("valid_from")),
        "validTo": iso(row.get("valid_to")),
        "status": row.get("status"),
        "createdAt": iso(row.get("created_at")),
        "createdBy": _actor_name(row, "created_by"),
    }


# ---------------------------------------------------------------------------
# Orders / allocations / shipments
# ---------------------------------------------------------------------------

def _order_item_target(row: Mapping[str, Any]) -> Dict[str, Any]:
    if row.get("sku_id") is not None:
        return {
            "itemType": "sku",
            "skuId": _id(row.get("sku_id")),
            "sku": row.get("sku_code"),
            "itemName": sku_display_name(row.get("brand"), row.get("product_name"), row.get("size_label")),
        }
    return {
        "itemType": "packaging_material",
        "packagingMaterialId": _id(row.get("packaging_material_id")),
        "materialCode": row.get("material_code"),
        "itemName": row.get("material_name"),
    }


def transform_order_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "orderNumber": row.get("order_number"),
        "orderCategory": row.get("order_category"),
        "status": row.get("status"),
        "statusDate": iso(row.get("status_date")),
        "orderDate": iso(row.get("order_date")),
        "deliveryMethod": row.get("delivery_method"),
        "note": row.get("note"),
        "itemCount": int(row.get("item_count") or 0),
        "createdAt": iso(row.get("created_at")),
        "createdBy": _actor_name(row, "created_by"),
    }


def transform_order_item_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        **_order_item_target(row),
        "quantityOrdered": int(row.get("quantity_ordered") or 0),
        "price": to_number(row.get("price")),
        "status": row.get("status"),
    }


def transform_allocation_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    branch = _batch_common(row) or {}
    return {
        "id": _id(row.get("id")),
        "orderId": _id(row.get("order_id")),
        "orderNumber": row.get("order_number"),
        "orderItemId": _id(row.get("order_item_id")),
        "warehouseId": _id(row.get("warehouse_id")),
        "warehouseName": row.get("warehouse_name"),
        "batchId": _id(row.get("batch_id")),
        "batchType": row.get("batch_type"),
        "lotNumber": branch.get("lotNumber"),
        "expiryDate": branch.get("expiryDate"),
        "allocatedQuantity": int(row.get("allocated_quantity") or 0),
        "status": row.get("status"),
        "allocatedAt": iso(row.get("allocated_at")),
        "createdBy": _actor_name(row, "created_by"),
    }


def transform_allocation_review(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Group (order item x allocation) rows into one record per order item.

    Items without allocations have `allocation_id` None and come out with an
    empty `allocations` list.
    """
    items: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for row in rows:
        key = _id(row.get("order_item_id"))
        item = items.get(key)
        if item is None:
            item = {
                "orderItemId": key,
                **_order_item_target(row),
                "quantityOrdered": int(row.get("quantity_ordered") or 0),
                "itemStatus": row.get("item_status"),
                "allocatedTotal": 0,
                "allocations": [],
            }
            items[key] = item

        if row.get("allocation_id") is None:
            continue
        branch = _batch_common(row) or {}
        qty = int(row.get("allocated_quantity") or 0)
        item["allocatedTotal"] += qty
        item["allocations"].append({
            "allocationId": _id(row.get("allocation_id")),
            "warehouseId": _id(row.get("warehouse_id")),
            "warehouseName": row.get("warehouse_name"),
            "batchId": _id(row.get("batch_id")),
            "batchType": row.get("batch_type"),
            "lotNumber": branch.get("lotNumber"),
            "expiryDate": branch.get("expiryDate"),
            "allocatedQuantity": qty,
            "status": row.get("allocation_status"),
        })
    return list(items.values())


def transform_shipment_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "orderId": _id(row.get("order_id")),
        "orderNumber": row.get("order_number"),
        "warehouseId": _id(row.get("warehouse_id")),
        "warehouseName": row.get("warehouse_name"),
        "deliveryMethod": row.get("delivery_method"),
        "status": row.get("status"),
        "shippedAt": iso(row.get("shipped_at")),
        "expectedDeliveryDate": iso(row.get("expected_delivery_date")),
        "notes": row.get("notes"),
        "createdAt": iso(row.get("created_at")),
        "createdBy": _actor_name(row, "created_by"),
    }


def transform_shipment_details(
    header: Mapping[str, Any],
    fulfillments: Iterable[Mapping[str, Any]],
    batches: Iterable[Mapping[str, Any]],
) -> Dict[str, Any]:
    return {
        "shipment": transform_shipment_row(header),
        "fulfillments": [
            {
                "id": _id(f.get("id")),
                "orderItemId": _id(f.get("order_item_id")),
                **_order_item_target(f),
                "quantityFulfilled": int(f.get("quantity_fulfilled") or 0),
                "status": f.get("status"),
                "fulfilledAt": iso(f.get("fulfilled_at")),
                "notes": f.get("notes"),
            }
            for f in fulfillments
        ],
        "batches": [
            {
                "id": _id(b.get("id")),
                "batchId": _id(b.get("batch_id")),
                "batchType": b.get("batch_type"),
                "lotNumber": (_batch_common(b) or {}).get("lotNumber"),
                "quantityShipped": int(b.get("quantity_shipped") or 0),
                "note": b.get("note"),
            }
            for b in batches
        ],
    }


# ---------------------------------------------------------------------------
# BOMs
# ---------------------------------------------------------------------------

def transform_bom_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "product": {
            "id": _id(row.get("product_id")),
            "name": row.get("product_name"),
            "brand": row.get("brand"),
            "series": row.get("series"),
            "category": row.get("category"),
        },
        "sku": {
            "id": _id(row.get("sku_id")),
            "code": row.get("sku_code"),
            "barcode": row.get("barcode"),
            "language": row.get("language"),
            "countryCode": row.get("country_code"),
            "marketRegion": row.get("market_region"),
            "sizeLabel": row.get("size_label"),
        },
        "bom": {
            "id": _id(row.get("id")),
            "code": row.get("code"),
            "name": row.get("name"),
            "revision": row.get("revision"),
            "isActive": bool(row.get("is_active")),
            "isDefault": bool(row.get("is_default")),
            "description": row.get("description"),
            "status": row.get("status"),
            "createdAt": iso(row.get("created_at")),
            "createdBy": _actor_name(row, "created_by"),
            "updatedAt": iso(row.get("updated_at")),
            "updatedBy": _actor_name(row, "updated_by"),
        },
    }


def transform_bom_item_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "partQtyPerProduct": to_number(row.get("part_qty_per_product")),
        "unit": row.get("unit"),
        "specifications": row.get("specifications"),
        "estimatedUnitCost": to_number(row.get("estimated_unit_cost")),
        "currency": row.get("currency"),
        "exchangeRate": to_number(row.get("exchange_rate")),
        "note": row.get("note"),
        "part": {
            "id": _id(row.get("part_id")),
            "code": row.get("part_code"),
            "name": row.get("part_name"),
            "type": row.get("part_type"),
            "unitOfMeasure": row.get("unit_of_measure"),
            "description": row.get("part_description"),
        },
    }


def transform_bom_details(
    header: Mapping[str, Any],
    items: Iterable[Mapping[str, Any]],
    summary: Mapping[str, Any],
) -> Dict[str, Any]:
    return {
        "header": transform_bom_row(header),
        "details": [transform_bom_item_row(i) for i in items],
        "summary": dict(summary),
    }


# ---------------------------------------------------------------------------
# Customers / addresses
# ---------------------------------------------------------------------------

def transform_customer_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "fullName": full_name(row.get("firstname"), row.get("lastname")),
        "firstname": row.get("firstname"),
        "lastname": row.get("lastname"),
        "email": row.get("email"),
        "phoneNumber": row.get("phone_number"),
        "region": row.get("region"),
        "note": row.get("note"),
        "status": row.get("status"),
        "addressCount": int(row.get("address_count") or 0),
        "createdAt": iso(row.get("created_at")),
        "createdBy": _actor_name(row, "created_by"),
        "updatedAt": iso(row.get("updated_at")),
        "updatedBy": _actor_name(row, "updated_by"),
    }


def transform_address_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _id(row.get("id")),
        "customerId": _id(row.get("customer_id")),
        "recipientName": row.get("full_name"),
        "phone": row.get("phone"),
        "email": row.get("email"),
        "label": row.get("label"),
        "address": {
            "line1": row.get("address_line1"),
            "line2": row.get("address_line2"),
            "city": row.get("city"),
            "state": row.get("state"),
            "postalCode": row.get("postal_code"),
            "country": row.get("country"),
            "region": row.get("region"),
        },
        "displayAddress": format_display_address(row),
        "note": row.get("note"),
        "customer": {
            "fullName": full_name(row.get("customer_firstname"), row.get("customer_lastname")),
            "email": row.get("customer_email"),
            "phoneNumber": row.get("customer_phone_number"),
        } if row.get("customer_id") is not None else None,
        "createdAt": iso(row.get("created_at")),
        "createdBy": _actor_name(row, "created_by"),
        "updatedAt": iso(row.get("updated_at")),
        "updatedBy": _actor_name(row, "updated_by"),
    }


def transform_paginated_result(
    rows: Sequence[Any],
    pagination: Dict[str, int],
    transform: Callable[[Any], Optional[Dict[str, Any]]],
) -> Dict[str, Any]:
    """Apply `transform` per row, dropping rows it rejects; pagination is passed through."""
    data = [out for out in (transform(r) for r in rows) if out is not None]
    return {"data": data, "pagination": pagination}
