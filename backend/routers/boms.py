from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.bom import calculate_bom_costs, calculate_production_readiness
from core.errors import AppError
from core.logging import log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_bom_details, transform_bom_row, transform_paginated_result
from db.batch import BatchRegistry, PackagingMaterial, PackagingMaterialBatch
from db.bom import Bom, BomItem, Part, PartMaterial
from db.database import get_async_session, labeled
from db.inventory.warehouse_inventory import WarehouseInventory
from db.product import Product, Sku
from db.users import User
from routers.products import actor_columns

router = APIRouter()


def _bom_select():
    creator = aliased(User)
    updater = aliased(User)
    return (
        select(
            *labeled(Bom),
            Product.name.label("product_name"),
            Product.brand.label("brand"),
            Product.series.label("series"),
            Product.category.label("category"),
            Sku.sku.label("sku_code"),
            Sku.barcode.label("barcode"),
            Sku.language.label("language"),
            Sku.country_code.label("country_code"),
            Sku.market_region.label("market_region"),
            Sku.size_label.label("size_label"),
            *actor_columns(creator, "created_by"),
            *actor_columns(updater, "updated_by"),
        )
        .select_from(Bom)
        .join(Product, Product.id == Bom.product_id)
        .join(Sku, Sku.id == Bom.sku_id)
        .outerjoin(creator, creator.id == Bom.created_by)
        .outerjoin(updater, updater.id == Bom.updated_by)
    )


async def _fetch_bom_header(db: AsyncSession, bom_id: UUID):
    row = (await db.execute(_bom_select().where(Bom.id == bom_id))).mappings().first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="BOM not found")
    return row


async def _fetch_bom_items(db: AsyncSession, bom_id: UUID):
    stmt = (
        select(
            *labeled(BomItem),
            Part.code.label("part_code"),
            Part.name.label("part_name"),
            Part.type.label("part_type"),
            Part.unit_of_measure.label("unit_of_measure"),
            Part.description.label("part_description"),
        )
        .select_from(BomItem)
        .join(Part, Part.id == BomItem.part_id)
        .where(BomItem.bom_id == bom_id)
        .order_by(Part.name, BomItem.id)
    )
    return (await db.execute(stmt)).mappings().all()


async def _latest_batch_costs(db: AsyncSession, part_ids: List[UUID]) -> Dict[UUID, Dict]:
    """Most recent packaging batch cost per part, across the materials mapped to it."""
    if not part_ids:
        return {}
    stmt = (
        select(
            PartMaterial.part_id,
            PackagingMaterialBatch.unit_cost,
            PackagingMaterialBatch.currency,
            PackagingMaterialBatch.exchange_rate,
        )
        .join(PackagingMaterialBatch, PackagingMaterialBatch.packaging_material_id == PartMaterial.packaging_material_id)
        .where(PartMaterial.part_id.in_(part_ids), PackagingMaterialBatch.unit_cost.isnot(None))
        .order_by(PackagingMaterialBatch.created_at.desc())
    )
    costs: Dict[UUID, Dict] = {}
    for row in (await db.execute(stmt)).mappings():
        costs.setdefault(row["part_id"], {
            "actual_unit_cost": row["unit_cost"],
            "actual_currency": row["currency"],
            "actual_exchange_rate": row["exchange_rate"],
        })
    return costs


@router.get("/", response_model=Dict)
async def list_boms(
    keyword: Optional[str] = Query(None),
    product_id: Optional[UUID] = Query(None, alias="productId"),
    sku_id: Optional[UUID] = Query(None, alias="skuId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    is_default: Optional[bool] = Query(None, alias="isDefault"),
    revision_min: Optional[int] = Query(None, alias="revisionMin", ge=1),
    revision_max: Optional[int] = Query(None, alias="revisionMax", ge=1),
    created_after: Optional[datetime] = Query(None, alias="createdAfter"),
    created_before: Optional[datetime] = Query(None, alias="createdBefore"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_boms")),
    db: AsyncSession = Depends(get_async_session),
):
    if revision_min is not None and revision_max is not None and revision_min > revision_max:
        raise AppError.validation("revisionMin cannot be greater than revisionMax")

    stmt = _bom_select()
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(
            Bom.code.ilike(like), Bom.name.ilike(like), Product.name.ilike(like),
            Product.brand.ilike(like), Sku.sku.ilike(like),
        ))
    if product_id:
        stmt = stmt.where(Bom.product_id == product_id)
    if sku_id:
        stmt = stmt.where(Bom.sku_id == sku_id)
    if is_active is not None:
        stmt = stmt.where(Bom.is_active.is_(is_active))
    if is_default is not None:
        stmt = stmt.where(Bom.is_default.is_(is_default))
    if revision_min is not None:
        stmt = stmt.where(Bom.revision >= revision_min)
    if revision_max is not None:
        stmt = stmt.where(Bom.revision <= revision_max)
    if created_after:
        stmt = stmt.where(Bom.created_at >= created_after)
    if created_before:
        stmt = stmt.where(Bom.created_at <= created_before)

    columns = sortable_columns(Bom, Product, Sku)
    stmt = stmt.order_by(sorting.clause(columns, "boms"), Bom.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_bom_row)
    return paginated_response(result["data"], result["pagination"], "BOMs fetched successfully")


@router.get("/{bom_id}/details", response_model=Dict)
async def get_bom_details(
    bom_id: UUID,
    ctx: Dict = Depends(require_permissions("view_bom_details")),
    db: AsyncSession = Depends(get_async_session),
):
    header = await _fetch_bom_header(db, bom_id)
    items = await _fetch_bom_items(db, bom_id)
    costs = await _latest_batch_costs(db, list({i["part_id"] for i in items}))
    summary = calculate_bom_costs({**i, **costs.get(i["part_id"], {})} for i in items)
    return ok_response(transform_bom_details(header, items, summary), "BOM details fetched successfully")


@router.get("/{bom_id}/production-summary", response_model=Dict)
async def get_bom_production_summary(
    bom_id: UUID,
    ctx: Dict = Depends(require_permissions("view_bom_production_summary")),
    db: AsyncSession = Depends(get_async_session),
):
    await _fetch_bom_header(db, bom_id)
    items = await _fetch_bom_items(db, bom_id)

    parts: Dict[UUID, Dict] = {}
    for item in items:
        part = parts.setdefault(item["part_id"], {
            "part_id": item["part_id"],
            "part_name": item["part_name"],
            "required_qty_per_unit": 0,
            "stock": [],
        })
        part["required_qty_per_unit"] += float(item["part_qty_per_product"] or 0)

    if parts:
        stock_stmt = (
            select(
                PartMaterial.part_id,
                PackagingMaterial.name.label("material_name"),
                WarehouseInventory.warehouse_quantity,
                WarehouseInventory.reserved_quantity,
                WarehouseInventory.status.label("inventory_status"),
                PackagingMaterialBatch.status.label("batch_status"),
                PackagingMaterialBatch.expiry_date,
            )
            .select_from(PartMaterial)
            .join(PackagingMaterial, PackagingMaterial.id == PartMaterial.packaging_material_id)
            .join(PackagingMaterialBatch, PackagingMaterialBatch.packaging_material_id == PackagingMaterial.id)
            .join(BatchRegistry, BatchRegistry.packaging_material_batch_id == PackagingMaterialBatch.id)
            .join(WarehouseInventory, WarehouseInventory.batch_id == BatchRegistry.id)
            .where(PartMaterial.part_id.in_(list(parts)))
            .order_by(PackagingMaterial.name)
        )
        for row in (await db.execute(stock_stmt)).mappings():
            parts[row["part_id"]]["stock"].append(row)

    readiness = calculate_production_readiness(parts.values(), date.today())
    readiness["metadata"]["generatedAt"] = datetime.utcnow().isoformat()
    log_system_info(
        "BOM production summary computed", context="boms/production-summary", bomId=str(bom_id),
        maxProducibleUnits=readiness["metadata"]["maxProducibleUnits"],
    )
    return ok_response({"bomId": str(bom_id), **readiness}, "BOM production summary fetched successfully")
