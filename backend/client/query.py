"""
Debounced list query state.

Every change to page, limit, sorting or filters restarts a short timer; when
the timer fires, one fetch is dispatched with the latest query. Responses are
not cancelled, so the last dispatched request wins.
"""

import threading
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from core.config import settings
from core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.2


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple, set)):
        return ",".join(str(_serialize(v)) for v in value)
    return value


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def build_query_params(
    page: int,
    limit: int,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    filters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Flatten list state into query-string params; empty filter values are dropped."""
    params: Dict[str, Any] = {"page": page, "limit": limit}
    if sort_by:
        params["sortBy"] = sort_by
    if sort_order:
        params["sortOrder"] = sort_order.upper()
    for key, value in (filters or {}).items():
        if _is_empty(value):
            continue
        params[key] = _serialize(value)
    return params


class ListQueryController:
    def __init__(
        self,
        fetch: Callable[[Dict[str, Any]], Any],
        *,
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self._fetch = fetch
        self.page = page
        self.limit = limit or settings.default_page_limit
        self.sort_by = sort_by
        self.sort_order = sort_order
        self.filters: Dict[str, Any] = dict(filters or {})
        self.debounce_seconds = debounce_seconds
        self.dispatch_count = 0
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._lock = threading.Lock()

    # -- state changes -------------------------------------------------

    def apply_filters_and_sorting(
        self,
        filters: Optional[Dict[str, Any]] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> None:
        """Replace filters (an empty dict clears them) and optionally sorting; back to page 1."""
        with self._lock:
            if filters is not None:
                self.filters = dict(filters)
            if sort_by is not None:
                self.sort_by = sort_by
            if sort_order is not None:
                self.sort_order = sort_order
            self.page = 1
        self._schedule()

    def set_page(self, page: int) -> None:
        with self._lock:
            self.page = max(1, int(page))
        self._schedule()

    def set_limit(self, limit: int) -> None:
        with self._lock:
            self.limit = int(limit)
            self.page = 1
        self._schedule()

    def set_sort(self, sort_by: Optional[str], sort_order: Optional[str] = "ASC") -> None:
        with self._lock:
            self.sort_by = sort_by
            self.sort_order = sort_order
            self.page = 1
        self._schedule()

    def reset_filters(self) -> None:
        with self._lock:
            self.filters = {}
            self.page = 1
        self._schedule()

    def query_params(self) -> Dict[str, Any]:
        with self._lock:
            return build_query_params(self.page, self.limit, self.sort_by, self.sort_order, self.filters)

    # -- debounce ------------------------------------------------------

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def _schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = threading.Timer(self.debounce_seconds, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # superseded by a later change or already flushed
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
            self.dispatch_count += 1
        params = self.query_params()
        logger.debug("Dispatching list fetch", extra={"params": params})
        self._fetch(params)

    def flush(self) -> bool:
        """Dispatch a pending fetch right away; returns False when nothing was pending."""
        with self._lock:
            timer, self._timer = self._timer, None
            if timer is None:
                return False
            timer.cancel()
            self._generation += 1
            self.dispatch_count += 1
        self._fetch(self.query_params())
        return True

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1
