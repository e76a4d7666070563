"""Status codes and reference keys shared by the models, routers and seeds."""

# Generic record status (products, skus, locations, warehouses, pricing, users)
GENERAL_ACTIVE = "active"
GENERAL_INACTIVE = "inactive"
GENERAL_DISCONTINUED = "discontinued"
GENERAL_STATUSES = (GENERAL_ACTIVE, GENERAL_INACTIVE, GENERAL_DISCONTINUED)

# Batch registry
BATCH_TYPE_PRODUCT = "product"
BATCH_TYPE_PACKAGING = "packaging_material"
BATCH_TYPES = (BATCH_TYPE_PRODUCT, BATCH_TYPE_PACKAGING)

BATCH_STATUSES = ("pending", "received", "released", "quarantined", "expired", "suspended")

# Warehouse / location inventory lot status
INVENTORY_IN_STOCK = "in_stock"
INVENTORY_OUT_OF_STOCK = "out_of_stock"
INVENTORY_UNAVAILABLE = "unavailable"
INVENTORY_UNASSIGNED = "unassigned"
INVENTORY_RESERVED = "reserved"
INVENTORY_STATUSES = (
    INVENTORY_IN_STOCK,
    INVENTORY_OUT_OF_STOCK,
    INVENTORY_UNAVAILABLE,
    INVENTORY_UNASSIGNED,
    INVENTORY_RESERVED,
)

# Inventory action types (inventory_action_types.name)
ACTION_INITIAL_LOAD = "initial_load"
ACTION_MANUAL_ADJUSTMENT = "manual_adjustment"
ACTION_MANUAL_STOCK_INSERT = "manual_stock_insert"
ACTION_FULFILLED = "fulfilled"
ACTION_RETURN = "return"
ACTION_DAMAGED = "damaged"
ACTION_EXPIRED = "expired"

# Orders
ORDER_CATEGORIES = ("sales", "transfer", "manufacturing")

ORDER_PENDING = "ORDER_PENDING"
ORDER_CONFIRMED = "ORDER_CONFIRMED"
ORDER_ALLOCATING = "ORDER_ALLOCATING"
ORDER_ALLOCATED = "ORDER_ALLOCATED"
ORDER_PARTIALLY_ALLOCATED = "ORDER_PARTIALLY_ALLOCATED"
ORDER_PROCESSING = "ORDER_PROCESSING"
ORDER_SHIPPED = "ORDER_SHIPPED"
ORDER_DELIVERED = "ORDER_DELIVERED"
ORDER_CANCELLED = "ORDER_CANCELLED"

ITEM_PENDING = "ORDER_PENDING"
ITEM_BACKORDERED = "BACKORDERED"

# Inventory allocations
ALLOC_PENDING = "ALLOC_PENDING"
ALLOC_PARTIAL = "ALLOC_PARTIAL"
ALLOC_COMPLETED = "ALLOC_COMPLETED"
ALLOC_FULFILLING = "ALLOC_FULFILLING"
ALLOC_FULFILLED = "ALLOC_FULFILLED"
ALLOC_CANCELLED = "ALLOC_CANCELLED"
ALLOC_RETURNED = "ALLOC_RETURNED"

# Order fulfillments
FULFILLMENT_PENDING = "FULFILLMENT_PENDING"
FULFILLMENT_PICKING = "FULFILLMENT_PICKING"
FULFILLMENT_PACKED = "FULFILLMENT_PACKED"
FULFILLMENT_SHIPPED = "FULFILLMENT_SHIPPED"
FULFILLMENT_DELIVERED = "FULFILLMENT_DELIVERED"
FULFILLMENT_CANCELLED = "FULFILLMENT_CANCELLED"

# Outbound shipments
SHIPMENT_PENDING = "SHIPMENT_PENDING"
SHIPMENT_READY = "SHIPMENT_READY"
SHIPMENT_DISPATCHED = "SHIPMENT_DISPATCHED"
SHIPMENT_DELIVERED = "SHIPMENT_DELIVERED"
SHIPMENT_CANCELLED = "SHIPMENT_CANCELLED"

# SKU images
SKU_IMAGE_TYPES = ("main", "thumbnail", "zoom")

# Lookups
LOOKUP_DEFAULT_LIMIT = 50

# Days ahead that count as "near expiry" in warehouse summaries
NEAR_EXPIRY_DAYS = 90
