import base64
import binascii
import os
from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.constants import SKU_IMAGE_TYPES
from core.logging import log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import has_permission, require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_paginated_result, transform_pricing_row, transform_sku_row
from db.database import get_async_session, labeled
from db.image import SkuImage
from db.product import Product, Sku
from db.users import User
from routers.pricing import load_active_prices
from schemas.products import SkuCreate, StatusUpdate

router = APIRouter()

EXT_TO_CONTENT_TYPE = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}

MIN_IMAGE_BYTES = 100
MAX_IMAGE_BYTES = 10 * 1024 * 1024


def _primary_image_subquery():
    return (
        select(SkuImage.id)
        .where(SkuImage.sku_id == Sku.id)
        .order_by(SkuImage.is_primary.desc(), SkuImage.uploaded_at.asc())
        .limit(1)
        .scalar_subquery()
        .label("primary_image_id")
    )


def _sku_select():
    return (
        select(
            *labeled(Sku),
            Product.name.label("product_name"),
            Product.brand.label("brand"),
            Product.category.label("category"),
            _primary_image_subquery(),
        )
        .select_from(Sku)
        .join(Product, Product.id == Sku.product_id)
    )


def _validate_image(data: bytes) -> None:
    if len(data) < MIN_IMAGE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image file appears to be corrupted or too small",
        )
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image size must be less than 10MB")


def _decode_base64_image(payload: str):
    content_type = "image/jpeg"
    if "," in payload:
        prefix, payload = payload.split(",", 1)
        if prefix.startswith("data:") and ";" in prefix:
            content_type = prefix.split(";")[0].replace("data:", "").strip() or content_type
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")
    try:
        return base64.b64decode(payload, validate=True), content_type
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid base64 image payload")


@router.get("/", response_model=Dict)
async def list_skus(
    keyword: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    market_region: Optional[str] = Query(None, alias="marketRegion"),
    size_label: Optional[str] = Query(None, alias="sizeLabel"),
    sku_status: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_skus")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _sku_select()
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(Sku.sku.ilike(like), Sku.barcode.ilike(like), Product.name.ilike(like)))
    if brand:
        stmt = stmt.where(Product.brand == brand)
    if market_region:
        stmt = stmt.where(Sku.market_region == market_region)
    if size_label:
        stmt = stmt.where(Sku.size_label == size_label)
    if sku_status:
        stmt = stmt.where(Sku.status == sku_status)

    stmt = stmt.order_by(sorting.clause(sortable_columns(Sku, Product), "skus"), Sku.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_sku_row)
    return paginated_response(result["data"], result["pagination"], "SKUs fetched successfully")


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_sku(
    payload: SkuCreate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_skus")),
    db: AsyncSession = Depends(get_async_session),
):
    product = (await db.execute(select(Product).where(Product.id == payload.product_id))).scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    existing = await db.execute(select(Sku.id).where(func.upper(Sku.sku) == payload.sku))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="SKU code already exists")

    sku = Sku(**payload.model_dump(), created_by=user.id)
    db.add(sku)
    await db.commit()
    log_system_info("SKU created", context="skus/create", skuId=str(sku.id), sku=sku.sku)

    row = (await db.execute(_sku_select().where(Sku.id == sku.id))).mappings().first()
    return ok_response(transform_sku_row(row), "SKU created successfully")


@router.get("/images/{image_id}", response_class=Response)
async def serve_sku_image(
    image_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    """Serve image binary by id. No auth required so img src works."""
    res = await db.execute(select(SkuImage).where(SkuImage.id == image_id))
    row = res.scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return Response(content=bytes(row.data), media_type=row.content_type)


@router.get("/{sku_id}", response_model=Dict)
async def get_sku(
    sku_id: UUID,
    ctx: Dict = Depends(require_permissions("view_skus")),
    db: AsyncSession = Depends(get_async_session),
):
    row = (await db.execute(_sku_select().where(Sku.id == sku_id))).mappings().first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="SKU not found")

    images = (
        await db.execute(
            select(SkuImage.id, SkuImage.image_type, SkuImage.alt_text, SkuImage.is_primary, SkuImage.uploaded_at)
            .where(SkuImage.sku_id == sku_id)
            .order_by(SkuImage.is_primary.desc(), SkuImage.uploaded_at.asc())
        )
    ).all()

    data = transform_sku_row(row)
    data["images"] = [
        {
            "id": str(img.id),
            "url": f"/skus/images/{img.id}",
            "type": img.image_type,
            "altText": img.alt_text,
            "isPrimary": bool(img.is_primary),
        }
        for img in images
    ]
    # prices are only exposed to callers who may see them
    if ctx["isRoot"] or has_permission(ctx["roleName"], ctx["permissions"], ["view_prices"]):
        data["prices"] = [transform_pricing_row(p) for p in await load_active_prices(db, sku_id=sku_id)]
    return ok_response(data, "SKU details fetched successfully")


@router.patch("/{sku_id}/status", response_model=Dict)
async def update_sku_status(
    sku_id: UUID,
    payload: StatusUpdate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_skus")),
    db: AsyncSession = Depends(get_async_session),
):
    sku = (await db.execute(select(Sku).where(Sku.id == sku_id))).scalar_one_or_none()
    if not sku:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="SKU not found")
    sku.status = payload.status
    sku.updated_at = datetime.utcnow()
    sku.updated_by = user.id
    await db.commit()
    row = (await db.execute(_sku_select().where(Sku.id == sku_id))).mappings().first()
    return ok_response(transform_sku_row(row), "SKU status updated")


@router.post("/{sku_id}/images", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def upload_sku_image(
    sku_id: UUID,
    file: Optional[UploadFile] = File(None),
    base64_image: Optional[str] = Form(None),
    image_type: str = Form("main"),
    alt_text: Optional[str] = Form(None),
    is_primary: bool = Form(False),
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_skus")),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Store an image for a SKU.
    Accepts either a file upload or a base64 encoded image (optionally a data: URL).
    """
    sku = (await db.execute(select(Sku.id).where(Sku.id == sku_id))).scalar_one_or_none()
    if not sku:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="SKU not found")
    if image_type not in SKU_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"image_type must be one of: {', '.join(SKU_IMAGE_TYPES)}",
        )

    if file:
        data = await file.read()
        content_type = (file.content_type or "").strip().lower()
        ext = os.path.splitext(file.filename or "")[1].lower().lstrip(".")
        if content_type and content_type != "application/octet-stream" and not content_type.startswith("image/"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")
        if not content_type or content_type == "application/octet-stream":
            if ext and ext not in EXT_TO_CONTENT_TYPE:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")
            content_type = EXT_TO_CONTENT_TYPE.get(ext, "image/jpeg")
    elif base64_image:
        data, content_type = _decode_base64_image(base64_image)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either 'file' or 'base64_image' must be provided",
        )

    _validate_image(data)

    has_images = (await db.execute(select(func.count(SkuImage.id)).where(SkuImage.sku_id == sku_id))).scalar_one()
    primary = is_primary or not has_images
    if primary:
        await db.execute(update(SkuImage).where(SkuImage.sku_id == sku_id).values(is_primary=False))

    img = SkuImage(
        sku_id=sku_id,
        image_type=image_type,
        data=data,
        content_type=content_type,
        alt_text=alt_text,
        is_primary=primary,
        uploaded_by=user.id,
    )
    db.add(img)
    await db.commit()
    log_system_info("SKU image uploaded", context="skus/upload-image", skuId=str(sku_id), imageId=str(img.id))
    return ok_response(
        {"id": str(img.id), "url": img.url, "type": image_type, "isPrimary": primary},
        "Image uploaded successfully",
    )
