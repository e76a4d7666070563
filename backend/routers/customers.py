from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.addresses import build_address_hash
from core.auth import current_active_user
from core.constants import GENERAL_ACTIVE
from core.errors import AppError
from core.logging import log_system_exception, log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_address_row, transform_customer_row, transform_paginated_result
from db.customer import Address, Customer
from db.database import get_async_session, labeled
from db.users import User
from routers.products import actor_columns
from schemas.customers import AddressBulkCreate, AddressUpdate, CustomerBulkCreate, CustomerUpdate

router = APIRouter()
addresses_router = APIRouter()


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def _customer_select():
    creator = aliased(User)
    updater = aliased(User)
    address_count = (
        select(func.count(Address.id))
        .where(Address.customer_id == Customer.id)
        .scalar_subquery()
        .label("address_count")
    )
    return (
        select(
            *labeled(Customer), address_count,
            *actor_columns(creator, "created_by"), *actor_columns(updater, "updated_by"),
        )
        .select_from(Customer)
        .outerjoin(creator, creator.id == Customer.created_by)
        .outerjoin(updater, updater.id == Customer.updated_by)
    )


async def _fetch_customers(db: AsyncSession, customer_ids: List[UUID]) -> List[Dict]:
    """Records in the order of `customer_ids`; unknown ids are skipped."""
    rows = (await db.execute(_customer_select().where(Customer.id.in_(customer_ids)))).mappings().all()
    by_id = {r["id"]: transform_customer_row(r) for r in rows}
    return [by_id[i] for i in customer_ids if i in by_id]


async def _get_customer_model(db: AsyncSession, customer_id: UUID) -> Customer:
    customer = (await db.execute(select(Customer).where(Customer.id == customer_id))).scalar_one_or_none()
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


async def _ensure_emails_free(db: AsyncSession, emails: List[str], exclude_id: Optional[UUID] = None) -> None:
    lowered = [e.lower() for e in emails if e]
    dupes = sorted({e for e in lowered if lowered.count(e) > 1})
    if dupes:
        raise AppError.validation("Duplicate customer emails in request", details={"emails": dupes})
    if not lowered:
        return
    stmt = select(Customer.email).where(func.lower(Customer.email).in_(lowered))
    if exclude_id is not None:
        stmt = stmt.where(Customer.id != exclude_id)
    taken = sorted(e.lower() for e in (await db.execute(stmt)).scalars().all())
    if taken:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Customer email already registered: {', '.join(taken)}",
        )


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_customers(
    payload: CustomerBulkCreate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_customers")),
    db: AsyncSession = Depends(get_async_session),
):
    await _ensure_emails_free(db, [c.email for c in payload.customers])
    try:
        customers = [
            Customer(**c.model_dump(), status=GENERAL_ACTIVE, created_by=user.id, updated_by=user.id)
            for c in payload.customers
        ]
        db.add_all(customers)
        await db.commit()
    except (HTTPException, AppError):
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        log_system_exception(e, "Customer insert failed", context="customers/create", count=len(payload.customers))
        raise AppError.server("Failed to create customers")

    log_system_info("Customers created", context="customers/create", count=len(customers))
    return ok_response(await _fetch_customers(db, [c.id for c in customers]), "Customers created successfully")


@router.get("/", response_model=Dict)
async def list_customers(
    keyword: Optional[str] = Query(None),
    region: Optional[str] = Query(None),
    customer_status: Optional[str] = Query(None, alias="status"),
    created_after: Optional[datetime] = Query(None, alias="createdAfter"),
    created_before: Optional[datetime] = Query(None, alias="createdBefore"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_customers")),
    db: AsyncSession = Depends(get_async_session),
):
    """Active customers unless `status` asks for another one (`all` lists every status)."""
    stmt = _customer_select()
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(
            Customer.firstname.ilike(like), Customer.lastname.ilike(like),
            Customer.email.ilike(like), Customer.phone_number.ilike(like),
        ))
    if region:
        stmt = stmt.where(Customer.region == region)
    if customer_status != "all":
        stmt = stmt.where(Customer.status == (customer_status or GENERAL_ACTIVE))
    if created_after:
        stmt = stmt.where(Customer.created_at >= created_after)
    if created_before:
        stmt = stmt.where(Customer.created_at <= created_before)

    stmt = stmt.order_by(sorting.clause(sortable_columns(Customer), "customers"), Customer.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_customer_row)
    return paginated_response(result["data"], result["pagination"], "Customers fetched successfully")


@router.get("/{customer_id}", response_model=Dict)
async def get_customer(
    customer_id: UUID,
    ctx: Dict = Depends(require_permissions("view_customers")),
    db: AsyncSession = Depends(get_async_session),
):
    records = await _fetch_customers(db, [customer_id])
    if not records:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return ok_response(records[0], "Customer fetched successfully")


@router.patch("/{customer_id}", response_model=Dict)
async def update_customer(
    customer_id: UUID,
    payload: CustomerUpdate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_customers")),
    db: AsyncSession = Depends(get_async_session),
):
    customer = await _get_customer_model(db, customer_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("email"):
        await _ensure_emails_free(db, [data["email"]], exclude_id=customer_id)
    for key, value in data.items():
        setattr(customer, key, value)
    customer.updated_at = datetime.utcnow()
    customer.updated_by = user.id
    await db.commit()
    log_system_info("Customer updated", context="customers/update", customerId=str(customer_id), fields=sorted(data))
    return ok_response((await _fetch_customers(db, [customer_id]))[0], "Customer updated successfully")


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

def _address_select():
    creator = aliased(User)
    updater = aliased(User)
    return (
        select(
            *labeled(Address),
            Customer.firstname.label("customer_firstname"),
            Customer.lastname.label("customer_lastname"),
            Customer.email.label("customer_email"),
            Customer.phone_number.label("customer_phone_number"),
            *actor_columns(creator, "created_by"),
            *actor_columns(updater, "updated_by"),
        )
        .select_from(Address)
        .outerjoin(Customer, Customer.id == Address.customer_id)
        .outerjoin(creator, creator.id == Address.created_by)
        .outerjoin(updater, updater.id == Address.updated_by)
    )


async def _fetch_addresses(db: AsyncSession, address_ids: List[UUID]) -> List[Dict]:
    rows = (await db.execute(_address_select().where(Address.id.in_(address_ids)))).mappings().all()
    by_id = {r["id"]: transform_address_row(r) for r in rows}
    return [by_id[i] for i in address_ids if i in by_id]


def _address_stmt_filters(stmt, keyword, customer_id, country, city):
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(
            Address.full_name.ilike(like), Address.address_line1.ilike(like),
            Address.city.ilike(like), Address.postal_code.ilike(like), Address.label.ilike(like),
        ))
    if customer_id:
        stmt = stmt.where(Address.customer_id == customer_id)
    if country:
        stmt = stmt.where(Address.country == country)
    if city:
        stmt = stmt.where(Address.city == city)
    return stmt


@router.get("/{customer_id}/addresses", response_model=Dict)
async def list_customer_addresses(
    customer_id: UUID,
    ctx: Dict = Depends(require_permissions("view_customers")),
    db: AsyncSession = Depends(get_async_session),
):
    await _get_customer_model(db, customer_id)
    rows = (
        await db.execute(_address_select().where(Address.customer_id == customer_id).order_by(Address.created_at))
    ).mappings().all()
    return ok_response([transform_address_row(r) for r in rows], "Customer addresses fetched successfully")


@addresses_router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_addresses(
    payload: AddressBulkCreate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_customers")),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Insert addresses in one transaction. An address identical to one already
    stored (same customer and location fields) is returned instead of duplicated.
    """
    customer_ids = {a.customer_id for a in payload.addresses if a.customer_id}
    if customer_ids:
        found = set((await db.execute(select(Customer.id).where(Customer.id.in_(customer_ids)))).scalars().all())
        missing = customer_ids - found
        if missing:
            raise AppError.validation(
                "Unknown customer(s) for address", details={"customerIds": sorted(str(m) for m in missing)}
            )

    hashes = [build_address_hash(a.model_dump()) for a in payload.addresses]
    try:
        existing = {
            a.address_hash: a.id
            for a in (await db.execute(select(Address).where(Address.address_hash.in_(hashes)))).scalars()
        }
        ordered_ids: List[UUID] = []
        created = 0
        for address, address_hash in zip(payload.addresses, hashes):
            if address_hash not in existing:
                record = Address(
                    **address.model_dump(), address_hash=address_hash, created_by=user.id, updated_by=user.id
                )
                db.add(record)
                await db.flush()
                existing[address_hash] = record.id
                created += 1
            if existing[address_hash] not in ordered_ids:
                ordered_ids.append(existing[address_hash])
        await db.commit()
    except (HTTPException, AppError):
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        log_system_exception(e, "Address insert failed", context="addresses/create", count=len(payload.addresses))
        raise AppError.server("Failed to create addresses")

    log_system_info(
        "Addresses saved", context="addresses/create", created=created, reused=len(ordered_ids) - created,
    )
    return ok_response(await _fetch_addresses(db, ordered_ids), "Addresses created successfully")


@addresses_router.get("/", response_model=Dict)
async def list_addresses(
    keyword: Optional[str] = Query(None),
    customer_id: Optional[UUID] = Query(None, alias="customerId"),
    country: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("view_customers")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _address_stmt_filters(_address_select(), keyword, customer_id, country, city)
    stmt = stmt.order_by(sorting.clause(sortable_columns(Address), "addresses"), Address.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_address_row)
    return paginated_response(result["data"], result["pagination"], "Addresses fetched successfully")


@addresses_router.get("/{address_id}", response_model=Dict)
async def get_address(
    address_id: UUID,
    ctx: Dict = Depends(require_permissions("view_customers")),
    db: AsyncSession = Depends(get_async_session),
):
    records = await _fetch_addresses(db, [address_id])
    if not records:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Address not found")
    return ok_response(records[0], "Address fetched successfully")


@addresses_router.patch("/{address_id}", response_model=Dict)
async def update_address(
    address_id: UUID,
    payload: AddressUpdate,
    user: User = Depends(current_active_user),
    ctx: Dict = Depends(require_permissions("manage_customers")),
    db: AsyncSession = Depends(get_async_session),
):
    address = (await db.execute(select(Address).where(Address.id == address_id))).scalar_one_or_none()
    if not address:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Address not found")

    data = payload.model_dump(exclude_unset=True)
    for key, value in data.items():
        setattr(address, key, value)
    new_hash = build_address_hash({c: getattr(address, c) for c in Address.__table__.columns.keys()})
    clash = await db.execute(select(Address.id).where(Address.address_hash == new_hash, Address.id != address_id))
    if clash.scalar_one_or_none():
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An identical address already exists")
    address.address_hash = new_hash
    address.updated_at = datetime.utcnow()
    address.updated_by = user.id
    await db.commit()
    log_system_info("Address updated", context="addresses/update", addressId=str(address_id), fields=sorted(data))
    return ok_response((await _fetch_addresses(db, [address_id]))[0], "Address updated successfully")
