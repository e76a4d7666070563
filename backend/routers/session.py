from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Response
from fastapi_users.exceptions import UserNotExists
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import (
    auth_backend,
    bearer_transport,
    current_active_user,
    get_access_token_db,
    get_user_manager,
)
from core.config import settings
from core.csrf import issue_csrf_token
from core.errors import AppError
from core.logging import log_system_info
from core.pagination import ok_response
from core.permissions import get_effective_permissions, resolve_permission_context
from core.transformers import transform_user_row
from db.database import get_async_session
from db.users import AccessToken, User

router = APIRouter()


@router.get("/csrf/token", response_model=Dict)
async def get_csrf_token(response: Response):
    token = issue_csrf_token()
    response.set_cookie(
        settings.csrf_cookie_name,
        token,
        httponly=False,
        samesite="strict",
        secure=settings.is_production,
    )
    return ok_response({"csrfToken": token}, "CSRF token issued")


@router.post("/session/refresh", response_model=Dict)
async def refresh_session(
    token: Optional[str] = Depends(bearer_transport.scheme),
    access_token_db=Depends(get_access_token_db),
    user_manager=Depends(get_user_manager),
    strategy=Depends(auth_backend.get_strategy),
):
    """
    Rotate the access token: issue a new session row, revoke the presented one.

    The presented token may be past ACCESS_TOKEN_TTL_SECONDS; it is accepted
    until REFRESH_TOKEN_TTL_SECONDS after it was issued.
    """
    max_age = datetime.now(timezone.utc) - timedelta(seconds=settings.refresh_token_ttl_seconds)
    record = await access_token_db.get_by_token(token, max_age) if token else None
    if record is None:
        raise AppError.authentication("Session expired, please log in again")
    try:
        user = await user_manager.get(record.user_id)
    except UserNotExists:
        raise AppError.authentication("Session expired, please log in again")
    if not user.is_active:
        raise AppError.authentication("Account is inactive")

    new_token = await strategy.write_token(user)
    await access_token_db.delete(record)
    log_system_info("Session refreshed", context="session/refresh", userId=str(user.id))
    return ok_response(
        {"accessToken": new_token, "tokenType": "bearer", "expiresIn": settings.access_token_ttl_seconds},
        "Session refreshed",
    )


@router.get("/session/me", response_model=Dict)
async def get_me(
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    ctx = await resolve_permission_context(db, user)
    record = transform_user_row({
        "id": user.id,
        "email": user.email,
        "firstname": user.firstname,
        "lastname": user.lastname,
        "role_name": ctx["roleName"],
        "job_title": user.job_title,
        "phone": user.phone,
        "is_active": user.is_active,
        "last_login": user.last_login,
        "created_at": user.created_at,
    })
    record["permissions"] = get_effective_permissions(ctx["roleName"], ctx["permissions"])
    record["isRoot"] = ctx["isRoot"]
    return ok_response(record, "Current user fetched")


@router.post("/session/logout-all", response_model=Dict)
async def logout_all(
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(delete(AccessToken).where(AccessToken.user_id == user.id))
    await db.commit()
    log_system_info("All sessions revoked", context="session/logout-all", userId=str(user.id))
    return ok_response({"revokedSessions": res.rowcount or 0}, "All sessions revoked")
