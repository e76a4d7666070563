import math
from typing import Any, Dict, List, Sequence, Tuple

from fastapi import Query
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import AppError
from core.logging import get_trace_id


class PageParams:
    """Query-string paging shared by every list endpoint."""

    def __init__(
        self,
        page: int = Query(1, description="1-based page number"),
        limit: int = Query(settings.default_page_limit, description="Rows per page"),
    ):
        if page < 1:
            raise AppError.validation("Invalid page number. Must be a positive integer.")
        if limit < 1 or limit > settings.max_page_limit:
            raise AppError.validation(
                f"Invalid limit. Must be between 1 and {settings.max_page_limit}."
            )
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def build_pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    total = max(0, int(total or 0))
    return {
        "page": page,
        "limit": limit,
        "totalRecords": total,
        "totalPages": math.ceil(total / limit) if limit and total else 0,
    }


async def paginate(
    db: AsyncSession,
    stmt: Select,
    page: int,
    limit: int,
) -> Tuple[List[Any], Dict[str, int]]:
    """Run `stmt` for one page; returns (row mappings, pagination)."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()
    if not total:
        return [], build_pagination(page, limit, 0)

    res = await db.execute(stmt.offset((page - 1) * limit).limit(limit))
    return list(res.mappings().all()), build_pagination(page, limit, total)


def _envelope(data: Any, message: str) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "message": message, "data": data}
    trace_id = get_trace_id()
    if trace_id:
        body["traceId"] = trace_id
    return body


def ok_response(data: Any, message: str = "OK") -> Dict[str, Any]:
    return _envelope(data, message)


def paginated_response(
    data: Sequence[Any],
    pagination: Dict[str, int],
    message: str = "Records fetched successfully",
) -> Dict[str, Any]:
    body = _envelope(list(data), message)
    body["pagination"] = pagination
    return body

