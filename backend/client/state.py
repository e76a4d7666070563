from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from core.errors import extract_ui_error_payload
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ListState:
    """Holds one paginated list as the UI sees it."""

    data: List[Dict[str, Any]] = field(default_factory=list)
    pagination: Optional[Dict[str, int]] = None
    loading: bool = False
    error: Optional[Dict[str, Any]] = None

    def start(self) -> None:
        self.loading = True
        self.error = None

    def succeed(self, data: List[Dict[str, Any]], pagination: Optional[Dict[str, int]]) -> None:
        self.data = list(data or [])
        self.pagination = pagination
        self.loading = False
        self.error = None

    def fail(self, ui_error: Dict[str, Any]) -> None:
        # the previous page stays visible next to the error
        self.loading = False
        self.error = ui_error

    def reset(self) -> None:
        self.data = []
        self.pagination = None
        self.loading = False
        self.error = None


def run_list_fetch(
    state: ListState,
    fetcher: Callable[[Dict[str, Any]], Dict[str, Any]],
    query: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    """
    Run one list request against `state`: pending, then fulfilled or rejected.

    Failures are not retried; the UI-safe error payload is stored on the state
    and None is returned.
    """
    state.start()
    try:
        body = fetcher(query)
    except Exception as e:
        payload = extract_ui_error_payload(e)
        logger.warning("List fetch failed", extra={"errorType": payload.get("type")})
        state.fail(payload)
        return None

    body = body or {}
    state.succeed(body.get("data") or [], body.get("pagination"))
    return body
