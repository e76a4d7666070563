from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi_users.exceptions import InvalidPasswordException, UserAlreadyExists
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import get_user_manager
from core.logging import log_system_info
from core.pagination import PageParams, ok_response, paginate, paginated_response
from core.permissions import require_permissions
from core.sorting import SortParams, sortable_columns
from core.transformers import transform_paginated_result, transform_user_row
from db.database import get_async_session, labeled
from db.users import Role, User
from schemas.users import AdminUserCreate, UserCreate, UserRoleUpdate

router = APIRouter()

_USER_FIELDS = [
    "id", "email", "firstname", "lastname", "job_title", "phone",
    "is_active", "is_superuser", "last_login", "created_at",
]


def _user_select():
    return (
        select(*labeled(User, only=_USER_FIELDS), Role.name.label("role_name"))
        .select_from(User)
        .outerjoin(Role, Role.id == User.role_id)
    )


async def _get_role(db: AsyncSession, role_name: str) -> Role:
    res = await db.execute(select(Role).where(func.lower(Role.name) == role_name.strip().lower()))
    role = res.scalar_one_or_none()
    if not role or not role.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown role: {role_name}")
    return role


async def _fetch_user_record(db: AsyncSession, user_id: UUID) -> Dict:
    row = (await db.execute(_user_select().where(User.id == user_id))).mappings().first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return transform_user_row(row)


@router.get("/", response_model=Dict)
async def list_users(
    keyword: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    user_status: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(),
    sorting: SortParams = Depends(),
    ctx: Dict = Depends(require_permissions("manage_users", "view_users")),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _user_select()
    if keyword:
        like = f"%{keyword.strip()}%"
        stmt = stmt.where(or_(User.email.ilike(like), User.firstname.ilike(like), User.lastname.ilike(like)))
    if role:
        stmt = stmt.where(Role.name == role)
    if user_status in ("active", "inactive"):
        stmt = stmt.where(User.is_active.is_(user_status == "active"))

    stmt = stmt.order_by(sorting.clause(sortable_columns(User, Role), "users"), User.id)
    rows, pagination = await paginate(db, stmt, paging.page, paging.limit)
    result = transform_paginated_result(rows, pagination, transform_user_row)
    return paginated_response(result["data"], result["pagination"], "Users fetched successfully")


@router.get("/{user_id}", response_model=Dict)
async def get_user(
    user_id: UUID,
    ctx: Dict = Depends(require_permissions("manage_users", "view_users")),
    db: AsyncSession = Depends(get_async_session),
):
    return ok_response(await _fetch_user_record(db, user_id), "User fetched successfully")


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: AdminUserCreate,
    ctx: Dict = Depends(require_permissions("manage_users")),
    db: AsyncSession = Depends(get_async_session),
    user_manager=Depends(get_user_manager),
):
    role = await _get_role(db, payload.role_name)
    try:
        created = await user_manager.create(
            UserCreate(
                email=payload.email,
                password=payload.password,
                role_id=role.id,
                firstname=payload.firstname,
                lastname=payload.lastname,
                job_title=payload.job_title,
                phone=payload.phone,
            ),
            safe=True,
        )
    except UserAlreadyExists:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")
    except InvalidPasswordException as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e.reason))

    log_system_info("User created", context="users/create", userId=str(created.id), roleName=role.name)
    return ok_response(await _fetch_user_record(db, created.id), "User created successfully")


@router.patch("/{user_id}/role", response_model=Dict)
async def update_user_role(
    user_id: UUID,
    payload: UserRoleUpdate,
    ctx: Dict = Depends(require_permissions("manage_users")),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    role = await _get_role(db, payload.role_name)
    user.role_id = role.id
    await db.commit()
    log_system_info("User role updated", context="users/update-role", userId=str(user_id), roleName=role.name)
    return ok_response(await _fetch_user_record(db, user_id), "User role updated")
