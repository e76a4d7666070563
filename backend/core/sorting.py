from typing import Dict, Optional, Tuple

from fastapi import Query
from sqlalchemy import asc, desc, inspect

# Client sort key -> "<table>.<column>" (resolved against the select by the router)
SORTABLE_FIELDS: Dict[str, Dict[str, str]] = {
    "products": {
        "name": "products.name",
        "brand": "products.brand",
        "category": "products.category",
        "series": "products.series",
        "status": "products.status",
        "createdAt": "products.created_at",
        "updatedAt": "products.updated_at",
        "defaultNaturalSort": "products.created_at",
    },
    "skus": {
        "sku": "skus.sku",
        "barcode": "skus.barcode",
        "brand": "products.brand",
        "productName": "products.name",
        "marketRegion": "skus.market_region",
        "sizeLabel": "skus.size_label",
        "status": "skus.status",
        "createdAt": "skus.created_at",
        "defaultNaturalSort": "skus.created_at",
    },
    "batchRegistry": {
        "lotNumber": "lot_number",
        "expiryDate": "expiry_date",
        "batchType": "batch_registry.batch_type",
        "registeredAt": "batch_registry.registered_at",
        "status": "status",
        "defaultNaturalSort": "batch_registry.registered_at",
    },
    "productBatches": {
        "lotNumber": "product_batches.lot_number",
        "manufactureDate": "product_batches.manufacture_date",
        "expiryDate": "product_batches.expiry_date",
        "initialQuantity": "product_batches.initial_quantity",
        "status": "product_batches.status",
        "sku": "skus.sku",
        "defaultNaturalSort": "product_batches.created_at",
    },
    "packagingBatches": {
        "lotNumber": "packaging_material_batches.lot_number",
        "materialName": "packaging_material_batches.material_snapshot_name",
        "receivedDate": "packaging_material_batches.received_date",
        "expiryDate": "packaging_material_batches.expiry_date",
        "quantity": "packaging_material_batches.quantity",
        "status": "packaging_material_batches.status",
        "defaultNaturalSort": "packaging_material_batches.created_at",
    },
    "locations": {
        "name": "locations.name",
        "city": "locations.city",
        "province": "locations.province",
        "country": "locations.country",
        "locationType": "location_types.name",
        "status": "locations.status",
        "createdAt": "locations.created_at",
        "defaultNaturalSort": "locations.created_at",
    },
    "warehouses": {
        "name": "warehouses.name",
        "code": "warehouses.code",
        "warehouseType": "warehouses.warehouse_type",
        "storageCapacity": "warehouses.storage_capacity",
        "status": "warehouses.status",
        "createdAt": "warehouses.created_at",
        "defaultNaturalSort": "warehouses.created_at",
    },
    "warehouseInventory": {
        "warehouseName": "warehouses.name",
        "warehouseQuantity": "warehouse_inventory.warehouse_quantity",
        "reservedQuantity": "warehouse_inventory.reserved_quantity",
        "inboundDate": "warehouse_inventory.inbound_date",
        "outboundDate": "warehouse_inventory.outbound_date",
        "status": "warehouse_inventory.status",
        "lastUpdate": "warehouse_inventory.last_update",
        "defaultNaturalSort": "warehouse_inventory.last_update",
    },
    "locationInventory": {
        "locationName": "locations.name",
        "locationQuantity": "location_inventory.location_quantity",
        "reservedQuantity": "location_inventory.reserved_quantity",
        "inboundDate": "location_inventory.inbound_date",
        "status": "location_inventory.status",
        "lastUpdate": "location_inventory.last_update",
        "defaultNaturalSort": "location_inventory.last_update",
    },
    "pricing": {
        "price": "pricing.price",
        "validFrom": "pricing.valid_from",
        "validTo": "pricing.valid_to",
        "sku": "skus.sku",
        "brand": "products.brand",
        "pricingType": "pricing_types.name",
        "status": "pricing.status",
        "defaultNaturalSort": "pricing.created_at",
    },
    "users": {
        "email": "users.email",
        "firstname": "users.firstname",
        "lastname": "users.lastname",
        "roleName": "roles.name",
        "lastLogin": "users.last_login",
        "createdAt": "users.created_at",
        "defaultNaturalSort": "users.created_at",
    },
    "allocations": {
        "allocatedAt": "inventory_allocations.allocated_at",
        "allocatedQuantity": "inventory_allocations.allocated_quantity",
        "status": "inventory_allocations.status",
        "orderNumber": "orders.order_number",
        "warehouseName": "warehouses.name",
        "defaultNaturalSort": "inventory_allocations.allocated_at",
    },
    "shipments": {
        "createdAt": "outbound_shipments.created_at",
        "shippedAt": "outbound_shipments.shipped_at",
        "expectedDeliveryDate": "outbound_shipments.expected_delivery_date",
        "status": "outbound_shipments.status",
        "orderNumber": "orders.order_number",
        "warehouseName": "warehouses.name",
        "defaultNaturalSort": "outbound_shipments.created_at",
    },
    "orders": {
        "orderNumber": "orders.order_number",
        "orderDate": "orders.order_date",
        "orderCategory": "orders.order_category",
        "status": "orders.status",
        "defaultNaturalSort": "orders.order_date",
    },
    "boms": {
        "productName": "products.name",
        "brand": "products.brand",
        "skuCode": "skus.sku",
        "revision": "boms.revision",
        "isActive": "boms.is_active",
        "isDefault": "boms.is_default",
        "createdAt": "boms.created_at",
        "defaultNaturalSort": "boms.created_at",
    },
    "customers": {
        "firstname": "customers.firstname",
        "lastname": "customers.lastname",
        "email": "customers.email",
        "status": "customers.status",
        "createdAt": "customers.created_at",
        "defaultNaturalSort": "customers.created_at",
    },
    "addresses": {
        "city": "addresses.city",
        "country": "addresses.country",
        "postalCode": "addresses.postal_code",
        "label": "addresses.label",
        "createdAt": "addresses.created_at",
        "defaultNaturalSort": "addresses.created_at",
    },
    "activityLogs": {
        "performedAt": "inventory_activity_logs.performed_at",
        "actionType": "inventory_action_types.name",
        "quantityChange": "inventory_activity_logs.quantity_change",
        "sourceType": "inventory_activity_logs.source_type",
        "defaultNaturalSort": "inventory_activity_logs.performed_at",
    },
}


def normalize_sort_order(sort_order: Optional[str]) -> str:
    return "DESC" if (sort_order or "").strip().lower() == "desc" else "ASC"


def resolve_sort(
    module: str,
    sort_by: Optional[str],
    sort_order: Optional[str] = None,
    default: str = "defaultNaturalSort",
) -> Tuple[str, str]:
    """
    Whitelist a client sort key for `module`.

    Returns (column_path, "ASC" | "DESC"). Unknown keys fall back to `default`
    and then to the module's natural sort.
    """
    fields = SORTABLE_FIELDS.get(module)
    if fields is None:
        raise KeyError(f"No sortable fields registered for module '{module}'")

    column = fields.get(sort_by or "") or fields.get(default) or fields["defaultNaturalSort"]
    return column, normalize_sort_order(sort_order)


def order_clause(columns: Dict[str, object], module: str, sort_by: Optional[str], sort_order: Optional[str]):
    """
    Build an ORDER BY element from a resolved sort key.

    `columns` maps the "<table>.<column>" paths a router can serve to the
    SQLAlchemy column expressions of its select.
    """
    path, direction = resolve_sort(module, sort_by, sort_order)
    col = columns.get(path)
    if col is None:
        path, _ = resolve_sort(module, None)
        col = columns[path]
    return desc(col) if direction == "DESC" else asc(col)


def sortable_columns(*models, **extra) -> Dict[str, object]:
    """Map "<table>.<column>" to each model's column; `extra` adds bare labels."""
    cols: Dict[str, object] = {}
    for model in models:
        table = model.__table__.name
        for attr in inspect(model).column_attrs:
            cols[f"{table}.{attr.columns[0].name}"] = getattr(model, attr.key)
    cols.update(extra)
    return cols


class SortParams:
    def __init__(
        self,
        sort_by: Optional[str] = Query(None, alias="sortBy"),
        sort_order: Optional[str] = Query(None, alias="sortOrder"),
    ):
        self.sort_by = sort_by
        self.sort_order = sort_order

    def clause(self, columns: Dict[str, object], module: str):
        return order_clause(columns, module, self.sort_by, self.sort_order)
