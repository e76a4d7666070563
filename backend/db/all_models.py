"""Imports every model module so Base.metadata knows all tables."""

from db.users import AccessToken, Permission, Role, RolePermission, User  # noqa: F401
from db.supplier import Manufacturer, Supplier  # noqa: F401
from db.product import Product, Sku  # noqa: F401
from db.image import SkuImage  # noqa: F401
from db.batch import BatchRegistry, PackagingMaterial, PackagingMaterialBatch, ProductBatch  # noqa: F401
from db.location import Location, LocationType  # noqa: F401
from db.warehouse import Warehouse  # noqa: F401
from db.inventory.warehouse_inventory import WarehouseInventory  # noqa: F401
from db.inventory.location_inventory import LocationInventory  # noqa: F401
from db.inventory.activity import InventoryActionType, InventoryActivityLog  # noqa: F401
from db.pricing import Pricing, PricingType  # noqa: F401
from db.order import Order, OrderItem  # noqa: F401
from db.allocation import InventoryAllocation  # noqa: F401
from db.fulfillment import OrderFulfillment, OutboundShipment, ShipmentBatch  # noqa: F401
from db.bom import Bom, BomItem, Part, PartMaterial  # noqa: F401
from db.customer import Address, Customer  # noqa: F401
