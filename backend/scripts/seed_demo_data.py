import asyncio
import sys
from datetime import date, datetime, timedelta
from decimal import Decimal
from pathlib import Path

"""
Seed demo data: manufacturers, suppliers, locations, warehouses, products,
SKUs, product batches, packaging materials and their batches, opening stock
(with `initial_load` activity logs), prices, parts and BOMs, and a demo
customer with an address.

Run seed_reference_data.py first. Safe to run repeatedly.

This script can be run from either:
- backend/: `python scripts/seed_demo_data.py`
- repo root: `python backend/scripts/seed_demo_data.py`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select

from core.addresses import build_address_hash
from core.config import settings
from core.constants import ACTION_INITIAL_LOAD, BATCH_TYPE_PACKAGING, BATCH_TYPE_PRODUCT, INVENTORY_IN_STOCK
from core.logging import configure_logging, log_system_info
from db.batch import BatchRegistry, PackagingMaterial, PackagingMaterialBatch, ProductBatch
from db.bom import Bom, BomItem, Part, PartMaterial
from db.customer import Address, Customer
from db.database import async_session_maker, create_db_and_tables
from db.inventory.location_inventory import LocationInventory
from db.inventory.warehouse_inventory import WarehouseInventory
from db.location import Location, LocationType
from db.pricing import Pricing, PricingType
from db.product import Product, Sku
from db.supplier import Manufacturer, Supplier
from db.users import User
from db.warehouse import Warehouse
from routers.inventory import write_activity_log

PRODUCTS = [
    # name, brand, category, [(sku, size_label, country_code, market_region, retail, wholesale)]
    ("Hydra Serum", "Aurora", "skincare", [
        ("AUR-HS-30-CA", "30 ml", "CA", "North America", "39.00", "21.50"),
        ("AUR-HS-50-CA", "50 ml", "CA", "North America", "59.00", "32.00"),
    ]),
    ("Night Repair Cream", "Aurora", "skincare", [
        ("AUR-NRC-50-CN", "50 ml", "CN", "Asia", "72.00", "40.00"),
    ]),
    ("Omega Capsules", "Vita North", "supplement", [
        ("VN-OMG-60-CA", "60 ct", "CA", "North America", "24.99", "13.00"),
    ]),
]

PACKAGING = [
    # code, name, category, unit
    ("BOX-S", "Small Shipping Box", "box", "pcs"),
    ("LBL-A", "Front Label A", "label", "pcs"),
]

# received cost per packaging batch: code -> (unit cost, currency)
PACKAGING_COSTS = {"BOX-S": ("0.5000", "CAD")}

# part code, name, type, packaging material code
PARTS = [
    ("PRT-BOX-S", "Retail Box (Small)", "packaging", "BOX-S"),
    ("PRT-LBL-A", "Front Label", "label", "LBL-A"),
]

# bom code, sku, [(part code, qty per unit, estimated unit cost, currency, exchange rate)]
BOMS = [
    ("BOM-AUR-HS-30-CA-R1", "AUR-HS-30-CA", [
        ("PRT-BOX-S", "1", "0.4500", "CAD", "1"),
        ("PRT-LBL-A", "2", "0.0500", "USD", "1.35"),
    ]),
]

# firstname, lastname, email, phone, region, [(label, line1, city, state, postal code, country)]
CUSTOMERS = [
    ("Maya", "Chen", "maya.chen@example.com", "+1-416-555-0134", "Ontario", [
        ("Home", "88 Queen St W", "Toronto", "ON", "M5H 2M9", "Canada"),
    ]),
]

# (sku, lot, days until expiry, quantity)
PRODUCT_LOTS = [
    ("AUR-HS-30-CA", "HS30-2401", 120, 200),
    ("AUR-HS-30-CA", "HS30-2405", 420, 300),
    ("AUR-HS-50-CA", "HS50-2402", 365, 150),
    ("AUR-NRC-50-CN", "NRC-2403", 60, 80),
    ("VN-OMG-60-CA", "OMG-2404", 540, 500),
]


async def get_or_create(session, model, lookup: dict, **fields):
    stmt = select(model)
    for key, value in lookup.items():
        stmt = stmt.where(getattr(model, key) == value)
    obj = (await session.execute(stmt)).scalar_one_or_none()
    if obj:
        return obj, False
    obj = model(**lookup, **fields)
    session.add(obj)
    await session.flush()
    return obj, True


async def stock_lot(session, user, warehouse: Warehouse, registry: BatchRegistry, quantity: int, today: date):
    """Opening stock for one lot in a warehouse and its location."""
    lot, created = await get_or_create(
        session, WarehouseInventory,
        {"warehouse_id": warehouse.id, "batch_id": registry.id},
        warehouse_quantity=quantity, reserved_quantity=0, warehouse_fee=warehouse.default_fee,
        inbound_date=today, status=INVENTORY_IN_STOCK, created_by=user.id,
    )
    if not created:
        return False

    loc_lot, _ = await get_or_create(
        session, LocationInventory,
        {"location_id": warehouse.location_id, "batch_id": registry.id},
        location_quantity=quantity, reserved_quantity=0, inbound_date=today,
        status=INVENTORY_IN_STOCK, created_by=user.id,
    )
    await write_activity_log(
        db=session, user_id=user.id, action_name=ACTION_INITIAL_LOAD,
        previous_quantity=0, new_quantity=quantity,
        warehouse_inventory_id=lot.id, location_inventory_id=loc_lot.id,
        comments="Opening balance", source_type="seed", status_code=INVENTORY_IN_STOCK,
    )
    return True


async def seed_demo_data(session, today: date = None) -> dict:
    today = today or date.today()
    res = await session.execute(select(User).where(User.email == settings.system_user_email))
    user = res.scalar_one_or_none()
    if not user:
        raise RuntimeError("Reference data missing: run seed_reference_data.py first")

    wh_type = (await session.execute(select(LocationType).where(LocationType.code == "WAREHOUSE"))).scalar_one()
    retail = (await session.execute(select(PricingType).where(PricingType.name == "Retail"))).scalar_one()
    wholesale = (await session.execute(select(PricingType).where(PricingType.name == "Wholesale"))).scalar_one()

    manufacturer, _ = await get_or_create(session, Manufacturer, {"name": "Aurora Labs"}, contact="ops@aurora.example")
    supplier, _ = await get_or_create(session, Supplier, {"name": "PackRight Supply"}, contact="sales@packright.example")

    main_loc, _ = await get_or_create(
        session, Location, {"name": "Toronto Distribution Centre"},
        location_type_id=wh_type.id, city="Toronto", province="ON", country="Canada", created_by=user.id,
    )
    east_loc, _ = await get_or_create(
        session, Location, {"name": "Montreal Overflow"},
        location_type_id=wh_type.id, city="Montreal", province="QC", country="Canada", created_by=user.id,
    )
    main_wh, _ = await get_or_create(
        session, Warehouse, {"code": "WH-TOR"},
        name="Toronto Main", location_id=main_loc.id, warehouse_type="distribution",
        storage_capacity=10000, default_fee=Decimal("1.25"), created_by=user.id,
    )
    east_wh, _ = await get_or_create(
        session, Warehouse, {"code": "WH-MTL"},
        name="Montreal Overflow", location_id=east_loc.id, warehouse_type="overflow",
        storage_capacity=4000, default_fee=Decimal("0.90"), created_by=user.id,
    )

    skus = {}
    prices_created = 0
    valid_from = datetime.combine(today.replace(day=1), datetime.min.time())
    for name, brand, category, variants in PRODUCTS:
        product, _ = await get_or_create(
            session, Product, {"name": name, "brand": brand}, category=category, created_by=user.id,
        )
        for code, size, country, region, retail_price, wholesale_price in variants:
            sku, _ = await get_or_create(
                session, Sku, {"sku": code},
                product_id=product.id, size_label=size, country_code=country,
                market_region=region, language="en", created_by=user.id,
            )
            skus[code] = sku
            for pricing_type, price in ((retail, retail_price), (wholesale, wholesale_price)):
                _, created = await get_or_create(
                    session, Pricing, {"sku_id": sku.id, "price_type_id": pricing_type.id},
                    price=Decimal(price), valid_from=valid_from, created_by=user.id,
                )
                prices_created += int(created)

    lots_stocked = 0
    for code, lot_number, expiry_days, quantity in PRODUCT_LOTS:
        batch, created = await get_or_create(
            session, ProductBatch, {"sku_id": skus[code].id, "lot_number": lot_number},
            manufacturer_id=manufacturer.id, manufacture_date=today - timedelta(days=30),
            expiry_date=today + timedelta(days=expiry_days), initial_quantity=quantity,
            status="released", created_by=user.id,
        )
        registry, _ = await get_or_create(
            session, BatchRegistry, {"product_batch_id": batch.id},
            batch_type=BATCH_TYPE_PRODUCT, registered_by=user.id,
        )
        lots_stocked += int(await stock_lot(session, user, main_wh, registry, quantity, today))

    materials = {}
    for code, name, category, unit in PACKAGING:
        material, _ = await get_or_create(
            session, PackagingMaterial, {"code": code}, name=name, category=category, supplier_id=supplier.id,
        )
        materials[code] = material
        unit_cost, currency = PACKAGING_COSTS.get(code, (None, None))
        batch, _ = await get_or_create(
            session, PackagingMaterialBatch, {"packaging_material_id": material.id, "lot_number": f"{code}-0001"},
            supplier_id=supplier.id, material_snapshot_name=name, received_date=today,
            quantity=1000, unit=unit, status="received", created_by=user.id,
            unit_cost=Decimal(unit_cost) if unit_cost else None, currency=currency,
        )
        registry, _ = await get_or_create(
            session, BatchRegistry, {"packaging_material_batch_id": batch.id},
            batch_type=BATCH_TYPE_PACKAGING, registered_by=user.id,
        )
        lots_stocked += int(await stock_lot(session, user, east_wh, registry, 1000, today))

    parts = {}
    for code, name, part_type, material_code in PARTS:
        part, _ = await get_or_create(session, Part, {"code": code}, name=name, type=part_type, unit_of_measure="pcs")
        await get_or_create(
            session, PartMaterial, {"part_id": part.id, "packaging_material_id": materials[material_code].id},
        )
        parts[code] = part

    boms_created = 0
    for bom_code, sku_code, lines in BOMS:
        sku = skus[sku_code]
        bom, created = await get_or_create(
            session, Bom, {"code": bom_code},
            product_id=sku.product_id, sku_id=sku.id, name=f"{sku_code} packaging", revision=1,
            is_active=True, is_default=True, created_by=user.id,
        )
        if created:
            for part_code, qty, cost, currency, rate in lines:
                session.add(BomItem(
                    bom_id=bom.id, part_id=parts[part_code].id, part_qty_per_product=Decimal(qty), unit="pcs",
                    estimated_unit_cost=Decimal(cost), currency=currency, exchange_rate=Decimal(rate),
                ))
        boms_created += int(created)

    for firstname, lastname, email, phone, region, addresses in CUSTOMERS:
        customer, _ = await get_or_create(
            session, Customer, {"email": email},
            firstname=firstname, lastname=lastname, phone_number=phone, region=region,
            status="active", created_by=user.id,
        )
        for label, line1, city, state, postal_code, country in addresses:
            fields = {
                "customer_id": customer.id, "label": label, "full_name": f"{firstname} {lastname}",
                "address_line1": line1, "city": city, "state": state, "postal_code": postal_code, "country": country,
            }
            await get_or_create(
                session, Address, {"address_hash": build_address_hash(fields)},
                **fields, created_by=user.id,
            )

    await session.commit()
    total_lots = (await session.execute(select(func.count(WarehouseInventory.id)))).scalar_one()
    summary = {
        "skus": len(skus),
        "pricesCreated": prices_created,
        "lotsStocked": lots_stocked,
        "bomsCreated": boms_created,
        "warehouseLots": total_lots,
    }
    log_system_info("Demo data seeded", context="scripts/seed-demo", **summary)
    return summary


async def main() -> None:
    configure_logging(settings.log_level, settings.log_format)
    await create_db_and_tables()
    async with async_session_maker() as session:
        summary = await seed_demo_data(session)
    print(f"Seeded demo data: {summary}")


if __name__ == "__main__":
    asyncio.run(main())
