from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AppError
from core.logging import log_system_exception
from core.pagination import ok_response
from db.database import get_async_session

router = APIRouter()


@router.get("/health", response_model=Dict)
async def health(db: AsyncSession = Depends(get_async_session)):
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        log_system_exception(e, "Database health probe failed", context="health/probe")
        raise AppError.service("Database unavailable", details={"database": "down"})
    return ok_response({"status": "ok", "database": "up"}, "Service is healthy")
