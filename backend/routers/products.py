from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.auth import current_active_user
from core.logging import log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_paginated_result, transform_product_row
from db.database import get_async_session, labeled
from db.product import Product
from db.users import User
from schemas.products import ProductCreate, ProductUpdate, StatusUpdate

router = APIRouter()


def actor_columns(alias, prefix: str):
    return [alias.firstname.label(f"{prefix}_firstname"), alias.lastname.label(f"{prefix}_lastname")]


def _product_select():
    creator = aliased(User)
    updater = aliased(User)
    return (
        select(*labeled(Product), *actor_columns(creator, "created_by"), *actor_columns(updater, "updated_by"))
        .select_from(Product)
        .outerjoin(creator, creator.id == Product.created_by)
        .outerjoin(updater, updater.id == Product.updated_by)
    )


async def _fetch_product(db: AsyncSession, product_id: UUID) -> Dict:
    row = (await db.execute(_product_select().where(Product.id == product_id))).mappings().first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return transform_product_row(row)


async def _get_product_model(db: AsyncSession, product_id: UUID) -> Product:
    res = await db.execute(select(Product).where(Product.id == product_id))
    product = res.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.get("/", response_model=Dict)
async def list_products(
    keyword: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    product_status: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_products")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _product_select()
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(Product.name.ilike(like), Product.brand.ilike(like), Product.series.ilike(like)))
    if brand:
        stmt = stmt.where(Product.brand == brand)
    if category:
        stmt = stmt.where(Product.category == category)
    if product_status:
        stmt = stmt.where(Product.status == product_status)

    stmt = stmt.order_by(sorting.clause(sortable_columns(Product), "products"), Product.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_product_row)
    return paginated_response(result["data"], result["pagination"], "Products fetched successfully")


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_products")),
    db: AsyncSession = Depends(get_async_session),
):
    product = Product(**payload.model_dump(), created_by=user.id)
    db.add(product)
    await db.commit()
    log_system_info("Product created", context="products/create", productId=str(product.id))
    return ok_response(await _fetch_product(db, product.id), "Product created successfully")


@router.get("/{product_id}", response_model=Dict)
async def get_product(
    product_id: UUID,
    ctx: Dict = Depends(require_permissions("view_products")),
    db: AsyncSession = Depends(get_async_session),
):
    return ok_response(await _fetch_product(db, product_id), "Product fetched successfully")


@router.patch("/{product_id}", response_model=Dict)
async def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_products")),
    db: AsyncSession = Depends(get_async_session),
):
    product = await _get_product_model(db, product_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    for key, value in data.items():
        setattr(product, key, value)
    product.updated_at = datetime.utcnow()
    product.updated_by = user.id
    await db.commit()
    return ok_response(await _fetch_product(db, product_id), "Product updated successfully")


@router.patch("/{product_id}/status", response_model=Dict)
async def update_product_status(
    product_id: UUID,
    payload: StatusUpdate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_products")),
    db: AsyncSession = Depends(get_async_session),
):
    product = await _get_product_model(db, product_id)
    if product.status == payload.status:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Product is already {payload.status}")
    product.status = payload.status
    product.updated_at = datetime.utcnow()
    product.updated_by = user.id
    await db.commit()
    log_system_info("Product status updated", context="products/status", productId=str(product_id), status=payload.status)
    return ok_response(await _fetch_product(db, product_id), "Product status updated")
