from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.auth import current_active_user
from core.errors import AppError
from core.exports import export_headers, export_media_type, export_rows
from core.logging import log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_paginated_result, transform_pricing_row
from db.database import get_async_session, labeled
from db.location import Location
from db.pricing import Pricing, PricingType
from db.product import Product, Sku
from db.users import User
from schemas.pricing import PricingCreate

router = APIRouter()
types_router = APIRouter()

PRICING_EXPORT_COLUMNS = [
    ("sku", "SKU"),
    ("brand", "Brand"),
    ("productName", "Product"),
    ("countryCode", "Country"),
    ("sizeLabel", "Size"),
    ("pricingType", "Pricing Type"),
    ("locationName", "Location"),
    ("price", "Price"),
    ("validFrom", "Valid From"),
    ("validTo", "Valid To"),
    ("status", "Status"),
]

EXPORT_ROW_LIMIT = 10000


def _pricing_select():
    creator = aliased(User)
    return (
        select(
            *labeled(Pricing),
            Sku.sku.label("sku_code"),
            Sku.country_code.label("country_code"),
            Sku.size_label.label("size_label"),
            Product.name.label("product_name"),
            Product.brand.label("brand"),
            PricingType.name.label("pricing_type_name"),
            PricingType.code.label("pricing_type_code"),
            Location.name.label("location_name"),
            creator.firstname.label("created_by_firstname"),
            creator.lastname.label("created_by_lastname"),
        )
        .select_from(Pricing)
        .join(Sku, Sku.id == Pricing.sku_id)
        .join(Product, Product.id == Sku.product_id)
        .join(PricingType, PricingType.id == Pricing.price_type_id)
        .outerjoin(Location, Location.id == Pricing.location_id)
        .outerjoin(creator, creator.id == Pricing.created_by)
    )


def currently_valid(at: Optional[datetime] = None):
    at = at or datetime.utcnow()
    return and_(
        Pricing.status == "active",
        Pricing.valid_from <= at,
        or_(Pricing.valid_to.is_(None), Pricing.valid_to >= at),
    )


def validate_price_window(valid_from: Optional[datetime], valid_to: Optional[datetime]) -> None:
    """validFrom and validTo filter only as a pair, in order."""
    if (valid_from is None) != (valid_to is None):
        raise AppError.validation("validFrom and validTo must be provided together")
    if valid_from is not None and valid_to < valid_from:
        raise AppError.validation("validFrom must be before validTo")


def _apply_filters(
    stmt,
    brand: Optional[str] = None,
    pricing_type: Optional[str] = None,
    country_code: Optional[str] = None,
    size_label: Optional[str] = None,
    keyword: Optional[str] = None,
    valid_from: Optional[datetime] = None,
    valid_to: Optional[datetime] = None,
    is_currently_valid: Optional[bool] = None,
):
    validate_price_window(valid_from, valid_to)
    if brand:
        stmt = stmt.where(Product.brand == brand)
    if pricing_type:
        stmt = stmt.where(or_(PricingType.name == pricing_type, PricingType.code == pricing_type))
    if country_code:
        stmt = stmt.where(Sku.country_code == country_code.upper())
    if size_label:
        stmt = stmt.where(Sku.size_label == size_label)
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(Sku.sku.ilike(like), Product.name.ilike(like), Product.brand.ilike(like)))
    if valid_from is not None:
        # overlap of [valid_from, valid_to] with the price window
        stmt = stmt.where(Pricing.valid_from <= valid_to)
        stmt = stmt.where(or_(Pricing.valid_to.is_(None), Pricing.valid_to >= valid_from))
    if is_currently_valid:
        stmt = stmt.where(currently_valid())
    return stmt


async def load_active_prices(
    db: AsyncSession,
    sku_id: Optional[UUID] = None,
    pricing_type_id: Optional[UUID] = None,
    at: Optional[datetime] = None,
) -> List:
    stmt = _pricing_select().where(currently_valid(at))
    if sku_id is not None:
        stmt = stmt.where(Pricing.sku_id == sku_id)
    if pricing_type_id is not None:
        stmt = stmt.where(Pricing.price_type_id == pricing_type_id)
    stmt = stmt.order_by(PricingType.name.asc(), Pricing.valid_from.desc())
    return list((await db.execute(stmt)).mappings().all())


def _pricing_type_record(t: PricingType) -> Dict:
    return {
        "id": str(t.id),
        "name": t.name,
        "code": t.code,
        "description": t.description,
        "status": t.status,
        "createdAt": t.created_at.isoformat() if t.created_at else None,
    }


@types_router.get("/", response_model=Dict)
async def list_pricing_types(
    keyword: Optional[str] = Query(None),
    paging: PageParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_prices")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(*labeled(PricingType))
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(PricingType.name.ilike(like), PricingType.code.ilike(like)))
    stmt = stmt.order_by(func.lower(PricingType.name).asc())
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    data = [_pricing_type_record(PricingType(**dict(r))) for r in rows]
    return paginated_response(data, pagination, "Pricing types fetched successfully")


@types_router.get("/{pricing_type_id}", response_model=Dict)
async def get_pricing_type(
    pricing_type_id: UUID,
    paging: PageParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_prices")),
    db: AsyncSession = Depends(get_async_session),
):
    t = (await db.execute(select(PricingType).where(PricingType.id == pricing_type_id))).scalar_one_or_none()
    if not t:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pricing type not found")

    stmt = (
        _pricing_select()
        .where(Pricing.price_type_id == pricing_type_id)
        .order_by(Pricing.valid_from.desc(), Pricing.id)
    )
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_pricing_row)
    body = ok_response(
        {"pricingType": _pricing_type_record(t), "pricing": result["data"]},
        "Pricing type details fetched successfully",
    )
    body["pagination"] = result["pagination"]
    return body


@router.get("/", response_model=Dict)
async def list_pricing(
    brand: Optional[str] = Query(None),
    pricing_type: Optional[str] = Query(None, alias="pricingType"),
    country_code: Optional[str] = Query(None, alias="countryCode"),
    size_label: Optional[str] = Query(None, alias="sizeLabel"),
    keyword: Optional[str] = Query(None),
    valid_from: Optional[datetime] = Query(None, alias="validFrom"),
    valid_to: Optional[datetime] = Query(None, alias="validTo"),
    is_currently_valid: Optional[bool] = Query(None, alias="currentlyValid"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_prices")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _apply_filters(
        _pricing_select(), brand, pricing_type, country_code, size_label, keyword,
        valid_from, valid_to, is_currently_valid,
    )
    stmt = stmt.order_by(sorting.clause(sortable_columns(Pricing, Sku, Product, PricingType), "pricing"), Pricing.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_pricing_row)
    return paginated_response(result["data"], result["pagination"], "Pricing records fetched successfully")


@router.get("/export")
async def export_pricing(
    export_format: str = Query("csv", alias="format"),
    brand: Optional[str] = Query(None),
    pricing_type: Optional[str] = Query(None, alias="pricingType"),
    country_code: Optional[str] = Query(None, alias="countryCode"),
    size_label: Optional[str] = Query(None, alias="sizeLabel"),
    keyword: Optional[str] = Query(None),
    valid_from: Optional[datetime] = Query(None, alias="validFrom"),
    valid_to: Optional[datetime] = Query(None, alias="validTo"),
    is_currently_valid: Optional[bool] = Query(None, alias="currentlyValid"),
    ctx: Dict = Depends(require_permissions("export_prices")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _apply_filters(
        _pricing_select(), brand, pricing_type, country_code, size_label, keyword,
        valid_from, valid_to, is_currently_valid,
    )
    stmt = stmt.order_by(Product.brand.asc(), Sku.sku.asc(), Pricing.valid_from.desc()).limit(EXPORT_ROW_LIMIT)
    rows = (await db.execute(stmt)).mappings().all()
    content = export_rows([transform_pricing_row(r) for r in rows], PRICING_EXPORT_COLUMNS, export_format)
    log_system_info("Pricing exported", context="pricing/export", rows=len(rows), format=export_format)
    return Response(
        content=content,
        media_type=export_media_type(export_format),
        headers=export_headers("pricing", export_format),
    )


@router.get("/active", response_model=Dict)
async def get_active_price(
    sku_id: UUID = Query(..., alias="skuId"),
    pricing_type_id: UUID = Query(..., alias="pricingTypeId"),
    ctx: Dict = Depends(require_permissions("view_prices")),
    db: AsyncSession = Depends(get_async_session),
):
    rows = await load_active_prices(db, sku_id=sku_id, pricing_type_id=pricing_type_id)
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active price for this SKU and pricing type")
    return ok_response(transform_pricing_row(rows[0]), "Active price fetched successfully")


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_pricing(
    payload: PricingCreate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_prices")),
    db: AsyncSession = Depends(get_async_session),
):
    if not (await db.execute(select(Sku.id).where(Sku.id == payload.sku_id))).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="SKU not found")
    if not (await db.execute(select(PricingType.id).where(PricingType.id == payload.price_type_id))).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pricing type not found")

    pricing = Pricing(**payload.model_dump(), created_by=user.id)
    db.add(pricing)
    await db.commit()
    log_system_info("Price created", context="pricing/create", pricingId=str(pricing.id), skuId=str(payload.sku_id))

    row = (await db.execute(_pricing_select().where(Pricing.id == pricing.id))).mappings().first()
    return ok_response(transform_pricing_row(row), "Price created successfully")
