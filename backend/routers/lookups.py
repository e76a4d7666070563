"""
Dropdown lookups.

Every endpoint returns `{items: [{id, label, ...}], offset, limit, hasMore}`
inside the usual envelope so clients can page with offset for infinite scroll.
"""

from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, APIRouter, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.constants import BATCH_TYPE_PRODUCT, BATCH_TYPES, LOOKUP_DEFAULT_LIMIT
from core.errors import AppError
from core.formatters import iso
from core.pagination import ok_response
from core.permissions import require_permissions
from core.transformers import sku_display_name
from db.batch import BatchRegistry
from db.database import get_async_session
from db.location import Location, LocationType
from db.pricing import PricingType
from db.product import Product, Sku
from db.warehouse import Warehouse
from routers.batches import BatchSources, visible_batch_types

router = APIRouter()


class LookupParams:
    def __init__(
        self,
        keyword: Optional[str] = Query(None),
        offset: int = Query(0),
        limit: int = Query(LOOKUP_DEFAULT_LIMIT),
    ):
        if offset < 0:
            raise AppError.validation("offset cannot be negative")
        if limit < 1 or limit > settings.max_page_limit:
            raise AppError.validation(f"Invalid limit. Must be between 1 and {settings.max_page_limit}.")
        self.keyword = (keyword or "").strip() or None
        self.offset = offset
        self.limit = limit


async def _lookup(db: AsyncSession, stmt, params: LookupParams, to_item: Callable[[Any], Dict]) -> Dict:
    # one extra row tells us whether another page exists
    rows = (await db.execute(stmt.offset(params.offset).limit(params.limit + 1))).mappings().all()
    has_more = len(rows) > params.limit
    items: List[Dict] = [to_item(r) for r in rows[: params.limit]]
    return ok_response(
        {"items": items, "offset": params.offset, "limit": params.limit, "hasMore": has_more},
        "Lookup fetched successfully",
    )


@router.get("/batches", response_model=Dict)
async def lookup_batches(
    batch_type: Optional[str] = Query(None, alias="batchType"),
    params: LookupParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_lookups")),
    db: AsyncSession = Depends(get_async_session),
):
    types = visible_batch_types(ctx)
    if batch_type:
        if batch_type not in BATCH_TYPES:
            raise AppError.validation(f"batchType must be one of: {', '.join(BATCH_TYPES)}")
        types = [t for t in types if t == batch_type]

    src = BatchSources()
    stmt = src.join(
        select(BatchRegistry.id.label("id"), *src.columns()).select_from(BatchRegistry)
    ).where(BatchRegistry.batch_type.in_(types))
    if params.keyword:
        stmt = stmt.where(src.keyword_clause(params.keyword))
    stmt = stmt.order_by(src.expiry_date.asc(), src.lot_number.asc(), BatchRegistry.id)

    def to_item(r) -> Dict:
        if r["batch_type"] == BATCH_TYPE_PRODUCT:
            lot, expiry = r["product_lot_number"], r["product_expiry_date"]
            name = sku_display_name(r["brand"], r["product_name"], r["size_label"])
        else:
            lot, expiry = r["packaging_lot_number"], r["packaging_expiry_date"]
            name = r["material_snapshot_name"] or r["material_name"]
        label = f"{lot} - {name}" if name else lot
        return {
            "id": str(r["id"]),
            "label": label,
            "batchType": r["batch_type"],
            "lotNumber": lot,
            "expiryDate": iso(expiry),
        }

    return await _lookup(db, stmt, params, to_item)


@router.get("/warehouses", response_model=Dict)
async def lookup_warehouses(
    params: LookupParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_lookups")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(Warehouse.id, Warehouse.name, Warehouse.code).where(Warehouse.is_archived.is_(False))
    if params.keyword:
        like = f"%{params.keyword}%"
        stmt = stmt.where(or_(Warehouse.name.ilike(like), Warehouse.code.ilike(like)))
    stmt = stmt.order_by(func.lower(Warehouse.name), Warehouse.id)
    return await _lookup(
        db, stmt, params,
        lambda r: {"id": str(r["id"]), "label": f"{r['name']} ({r['code']})", "code": r["code"]},
    )


@router.get("/locations", response_model=Dict)
async def lookup_locations(
    location_type: Optional[str] = Query(None, alias="locationType"),
    params: LookupParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_lookups")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = (
        select(Location.id, Location.name, Location.city, LocationType.code.label("type_code"))
        .select_from(Location)
        .outerjoin(LocationType, LocationType.id == Location.location_type_id)
        .where(Location.is_archived.is_(False))
    )
    if location_type:
        stmt = stmt.where(LocationType.code == location_type)
    if params.keyword:
        like = f"%{params.keyword}%"
        stmt = stmt.where(or_(Location.name.ilike(like), Location.city.ilike(like)))
    stmt = stmt.order_by(func.lower(Location.name), Location.id)
    return await _lookup(
        db, stmt, params,
        lambda r: {
            "id": str(r["id"]),
            "label": f"{r['name']} - {r['city']}" if r["city"] else r["name"],
            "locationType": r["type_code"],
        },
    )


@router.get("/skus", response_model=Dict)
async def lookup_skus(
    params: LookupParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_lookups")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = (
        select(Sku.id, Sku.sku, Sku.size_label, Sku.country_code, Product.name, Product.brand)
        .select_from(Sku)
        .join(Product, Product.id == Sku.product_id)
        .where(Sku.status == "active")
    )
    if params.keyword:
        like = f"%{params.keyword}%"
        stmt = stmt.where(or_(Sku.sku.ilike(like), Product.name.ilike(like), Product.brand.ilike(like)))
    stmt = stmt.order_by(Sku.sku, Sku.id)
    return await _lookup(
        db, stmt, params,
        lambda r: {
            "id": str(r["id"]),
            "label": f"{r['sku']} - {sku_display_name(r['brand'], r['name'], r['size_label'])}",
            "sku": r["sku"],
            "countryCode": r["country_code"],
        },
    )


@router.get("/pricing-types", response_model=Dict)
async def lookup_pricing_types(
    params: LookupParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_lookups")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(PricingType.id, PricingType.name, PricingType.code).where(PricingType.status == "active")
    if params.keyword:
        like = f"%{params.keyword}%"
        stmt = stmt.where(or_(PricingType.name.ilike(like), PricingType.code.ilike(like)))
    stmt = stmt.order_by(func.lower(PricingType.name), PricingType.id)
    return await _lookup(
        db, stmt, params,
        lambda r: {"id": str(r["id"]), "label": r["name"], "code": r["code"]},
    )
