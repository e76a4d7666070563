from datetime import date, datetime
from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.auth import current_active_user
from core.constants import BATCH_TYPE_PACKAGING, BATCH_TYPE_PRODUCT, BATCH_TYPES
from core.errors import AppError
from core.logging import log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import has_permission, require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import (
    transform_batch_registry_row,
    transform_packaging_batch_row,
    transform_paginated_result,
    transform_product_batch_row,
)
from db.batch import BatchRegistry, PackagingMaterial, PackagingMaterialBatch, ProductBatch
from db.database import get_async_session, labeled
from db.product import Product, Sku
from db.supplier import Manufacturer, Supplier
from db.users import User
from routers.products import actor_columns
from schemas.batches import BatchStatusUpdate, PackagingMaterialBatchCreate, ProductBatchCreate

registry_router = APIRouter()
product_batches_router = APIRouter()
packaging_batches_router = APIRouter()


class BatchSources:
    """
    Aliased joins from `batch_registry` to both detail branches.

    Each instance owns its aliases so a select can also join Sku/Product for
    other purposes (order items, for example) without clashing.
    """

    def __init__(self):
        self.product_batch = aliased(ProductBatch)
        self.sku = aliased(Sku)
        self.product = aliased(Product)
        self.manufacturer = aliased(Manufacturer)
        self.packaging_batch = aliased(PackagingMaterialBatch)
        self.material = aliased(PackagingMaterial)
        self.supplier = aliased(Supplier)

    @property
    def lot_number(self):
        return func.coalesce(self.product_batch.lot_number, self.packaging_batch.lot_number)

    @property
    def expiry_date(self):
        return func.coalesce(self.product_batch.expiry_date, self.packaging_batch.expiry_date)

    @property
    def status(self):
        return func.coalesce(self.product_batch.status, self.packaging_batch.status)

    def columns(self):
        pb, pmb = self.product_batch, self.packaging_batch
        return [
            BatchRegistry.batch_type.label("batch_type"),
            pb.id.label("product_batch_id"),
            pb.lot_number.label("product_lot_number"),
            pb.expiry_date.label("product_expiry_date"),
            pb.status.label("product_batch_status"),
            pb.manufacture_date.label("manufacture_date"),
            self.sku.id.label("sku_id"),
            self.sku.sku.label("sku_code"),
            self.sku.size_label.label("size_label"),
            self.product.id.label("product_id"),
            self.product.name.label("product_name"),
            self.product.brand.label("brand"),
            self.manufacturer.name.label("manufacturer_name"),
            pmb.id.label("packaging_batch_id"),
            pmb.lot_number.label("packaging_lot_number"),
            pmb.expiry_date.label("packaging_expiry_date"),
            pmb.status.label("packaging_batch_status"),
            pmb.material_snapshot_name.label("material_snapshot_name"),
            pmb.received_date.label("received_date"),
            self.material.id.label("packaging_material_id"),
            self.material.code.label("material_code"),
            self.material.name.label("material_name"),
            self.supplier.name.label("supplier_name"),
        ]

    def lot_columns(self):
        """Only the branch lot fields; safe next to order-item sku/material labels."""
        pb, pmb = self.product_batch, self.packaging_batch
        return [
            BatchRegistry.batch_type.label("batch_type"),
            pb.lot_number.label("product_lot_number"),
            pb.expiry_date.label("product_expiry_date"),
            pmb.lot_number.label("packaging_lot_number"),
            pmb.expiry_date.label("packaging_expiry_date"),
        ]

    def join(self, stmt):
        """Outer-join both branches; `BatchRegistry` must already be in the FROM clause."""
        pb, pmb = self.product_batch, self.packaging_batch
        return (
            stmt.outerjoin(pb, pb.id == BatchRegistry.product_batch_id)
            .outerjoin(self.sku, self.sku.id == pb.sku_id)
            .outerjoin(self.product, self.product.id == self.sku.product_id)
            .outerjoin(self.manufacturer, self.manufacturer.id == pb.manufacturer_id)
            .outerjoin(pmb, pmb.id == BatchRegistry.packaging_material_batch_id)
            .outerjoin(self.material, self.material.id == pmb.packaging_material_id)
            .outerjoin(self.supplier, self.supplier.id == pmb.supplier_id)
        )

    def keyword_clause(self, keyword: str):
        like = f"%{keyword.strip()}%"
        return or_(
            self.product_batch.lot_number.ilike(like),
            self.packaging_batch.lot_number.ilike(like),
            self.sku.sku.ilike(like),
            self.product.name.ilike(like),
            self.material.name.ilike(like),
            self.packaging_batch.material_snapshot_name.ilike(like),
        )


def visible_batch_types(ctx: Dict) -> list:
    """Batch types the caller may see; raises when neither is allowed."""
    role, perms = ctx["roleName"], ctx["permissions"]
    types = []
    if has_permission(role, perms, ["view_product_batches"]):
        types.append(BATCH_TYPE_PRODUCT)
    if has_permission(role, perms, ["view_packaging_batches"]):
        types.append(BATCH_TYPE_PACKAGING)
    if not types:
        raise AppError.authorization("You do not have permission to view batch records")
    return types


@registry_router.get("/", response_model=Dict)
async def list_batch_registry(
    batch_type: Optional[str] = Query(None, alias="batchType"),
    keyword: Optional[str] = Query(None),
    expiry_after: Optional[date] = Query(None, alias="expiryAfter"),
    expiry_before: Optional[date] = Query(None, alias="expiryBefore"),
    status_name: Optional[str] = Query(None, alias="statusName"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_batch_registry")),
    db: AsyncSession = Depends(get_async_session),
):
    types = visible_batch_types(ctx)
    if batch_type:
        if batch_type not in BATCH_TYPES:
            raise AppError.validation(f"batchType must be one of: {', '.join(BATCH_TYPES)}")
        if batch_type not in types:
            raise AppError.authorization("You do not have permission to view this batch type")
        types = [batch_type]

    src = BatchSources()
    registrar = aliased(User)
    stmt = select(*labeled(BatchRegistry), *src.columns(), *actor_columns(registrar, "registered_by"))
    stmt = src.join(stmt.select_from(BatchRegistry)).outerjoin(registrar, registrar.id == BatchRegistry.registered_by)
    stmt = stmt.where(BatchRegistry.batch_type.in_(types))

    if keyword:
        stmt = stmt.where(src.keyword_clause(keyword))
    if expiry_after:
        stmt = stmt.where(src.expiry_date >= expiry_after)
    if expiry_before:
        stmt = stmt.where(src.expiry_date <= expiry_before)
    if status_name:
        stmt = stmt.where(src.status == status_name)

    columns = sortable_columns(
        BatchRegistry, lot_number=src.lot_number, expiry_date=src.expiry_date, status=src.status
    )
    stmt = stmt.order_by(sorting.clause(columns, "batchRegistry"), BatchRegistry.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_batch_registry_row)
    return paginated_response(result["data"], result["pagination"], "Batch registry fetched successfully")


def _product_batch_select():
    return (
        select(
            *labeled(ProductBatch),
            BatchRegistry.id.label("registry_id"),
            Sku.sku.label("sku_code"),
            Product.name.label("product_name"),
            Product.brand.label("brand"),
            Manufacturer.name.label("manufacturer_name"),
        )
        .select_from(ProductBatch)
        .join(Sku, Sku.id == ProductBatch.sku_id)
        .join(Product, Product.id == Sku.product_id)
        .outerjoin(Manufacturer, Manufacturer.id == ProductBatch.manufacturer_id)
        .outerjoin(BatchRegistry, BatchRegistry.product_batch_id == ProductBatch.id)
    )


def _packaging_batch_select():
    return (
        select(
            *labeled(PackagingMaterialBatch),
            BatchRegistry.id.label("registry_id"),
            PackagingMaterial.code.label("material_code"),
            PackagingMaterial.name.label("material_name"),
            Supplier.name.label("supplier_name"),
        )
        .select_from(PackagingMaterialBatch)
        .join(PackagingMaterial, PackagingMaterial.id == PackagingMaterialBatch.packaging_material_id)
        .outerjoin(Supplier, Supplier.id == PackagingMaterialBatch.supplier_id)
        .outerjoin(BatchRegistry, BatchRegistry.packaging_material_batch_id == PackagingMaterialBatch.id)
    )


@product_batches_router.get("/", response_model=Dict)
async def list_product_batches(
    keyword: Optional[str] = Query(None),
    sku_id: Optional[UUID] = Query(None, alias="skuId"),
    batch_status: Optional[str] = Query(None, alias="status"),
    expiry_after: Optional[date] = Query(None, alias="expiryAfter"),
    expiry_before: Optional[date] = Query(None, alias="expiryBefore"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_product_batches")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _product_batch_select()
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(ProductBatch.lot_number.ilike(like), Sku.sku.ilike(like), Product.name.ilike(like)))
    if sku_id:
        stmt = stmt.where(ProductBatch.sku_id == sku_id)
    if batch_status:
        stmt = stmt.where(ProductBatch.status == batch_status)
    if expiry_after:
        stmt = stmt.where(ProductBatch.expiry_date >= expiry_after)
    if expiry_before:
        stmt = stmt.where(ProductBatch.expiry_date <= expiry_before)

    stmt = stmt.order_by(sorting.clause(sortable_columns(ProductBatch, Sku), "productBatches"), ProductBatch.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_product_batch_row)
    return paginated_response(result["data"], result["pagination"], "Product batches fetched successfully")


@product_batches_router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_product_batch(
    payload: ProductBatchCreate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_batches")),
    db: AsyncSession = Depends(get_async_session),
):
    """Create a product lot and register it in the batch registry in one transaction."""
    if not (await db.execute(select(Sku.id).where(Sku.id == payload.sku_id))).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="SKU not found")
    if payload.manufacturer_id is not None:
        found = await db.execute(select(Manufacturer.id).where(Manufacturer.id == payload.manufacturer_id))
        if not found.scalar_one_or_none():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Manufacturer not found")

    dup = await db.execute(
        select(ProductBatch.id).where(
            ProductBatch.sku_id == payload.sku_id, ProductBatch.lot_number == payload.lot_number
        )
    )
    if dup.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Lot number already exists for this SKU")

    data = payload.model_dump(exclude={"registry_note"})
    batch = ProductBatch(**data, created_by=user.id)
    db.add(batch)
    await db.flush()
    db.add(BatchRegistry(
        batch_type=BATCH_TYPE_PRODUCT,
        product_batch_id=batch.id,
        registered_by=user.id,
        note=payload.registry_note,
    ))
    await db.commit()
    log_system_info("Product batch created", context="batches/create-product", batchId=str(batch.id))

    row = (await db.execute(_product_batch_select().where(ProductBatch.id == batch.id))).mappings().first()
    return ok_response(transform_product_batch_row(row), "Product batch created successfully")


@product_batches_router.patch("/{batch_id}/status", response_model=Dict)
async def update_product_batch_status(
    batch_id: UUID,
    payload: BatchStatusUpdate,
    ctx: Dict = Depends(require_permissions("manage_batches")),
    db: AsyncSession = Depends(get_async_session),
):
    batch = (await db.execute(select(ProductBatch).where(ProductBatch.id == batch_id))).scalar_one_or_none()
    if not batch:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product batch not found")
    batch.status = payload.status
    if payload.notes is not None:
        batch.notes = payload.notes
    batch.updated_at = datetime.utcnow()
    await db.commit()
    log_system_info("Product batch status updated", context="batches/status", batchId=str(batch_id), status=payload.status)

    row = (await db.execute(_product_batch_select().where(ProductBatch.id == batch_id))).mappings().first()
    return ok_response(transform_product_batch_row(row), "Product batch status updated")


@packaging_batches_router.get("/", response_model=Dict)
async def list_packaging_batches(
    keyword: Optional[str] = Query(None),
    packaging_material_id: Optional[UUID] = Query(None, alias="packagingMaterialId"),
    batch_status: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_packaging_batches")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _packaging_batch_select()
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(
            PackagingMaterialBatch.lot_number.ilike(like),
            PackagingMaterialBatch.material_snapshot_name.ilike(like),
            PackagingMaterial.code.ilike(like),
        ))
    if packaging_material_id:
        stmt = stmt.where(PackagingMaterialBatch.packaging_material_id == packaging_material_id)
    if batch_status:
        stmt = stmt.where(PackagingMaterialBatch.status == batch_status)

    columns = sortable_columns(PackagingMaterialBatch)
    stmt = stmt.order_by(sorting.clause(columns, "packagingBatches"), PackagingMaterialBatch.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_packaging_batch_row)
    return paginated_response(result["data"], result["pagination"], "Packaging material batches fetched successfully")


@packaging_batches_router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_packaging_batch(
    payload: PackagingMaterialBatchCreate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_batches")),
    db: AsyncSession = Depends(get_async_session),
):
    material = (
        await db.execute(select(PackagingMaterial).where(PackagingMaterial.id == payload.packaging_material_id))
    ).scalar_one_or_none()
    if not material:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Packaging material not found")

    data = payload.model_dump(exclude={"registry_note"})
    if data.get("supplier_id") is None:
        data["supplier_id"] = material.supplier_id
    batch = PackagingMaterialBatch(**data, material_snapshot_name=material.name, created_by=user.id)
    db.add(batch)
    await db.flush()
    db.add(BatchRegistry(
        batch_type=BATCH_TYPE_PACKAGING,
        packaging_material_batch_id=batch.id,
        registered_by=user.id,
        note=payload.registry_note,
    ))
    await db.commit()
    log_system_info("Packaging batch created", context="batches/create-packaging", batchId=str(batch.id))

    row = (
        await db.execute(_packaging_batch_select().where(PackagingMaterialBatch.id == batch.id))
    ).mappings().first()
    return ok_response(transform_packaging_batch_row(row), "Packaging material batch created successfully")
