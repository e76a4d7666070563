import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None
    return None


def format_date_time(value: Any, fallback: str = "N/A") -> str:
    """Render as `YYYY-MM-DD HH:MM:SS`; anything unparseable yields `fallback`."""
    parsed = _parse_datetime(value)
    if parsed is None:
        return fallback
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def format_date(value: Any, fallback: str = "N/A") -> str:
    parsed = _parse_datetime(value)
    if parsed is None:
        return fallback
    return parsed.strftime("%Y-%m-%d")


def format_nullable(value: Any, fallback: str = "N/A", empty_fallback: Optional[str] = None) -> Any:
    if value is None:
        return fallback
    if isinstance(value, str) and not value.strip():
        return empty_fallback if empty_fallback is not None else fallback
    return value


def format_label(text: Optional[str]) -> str:
    """snake_case / camelCase / kebab-case -> Title Case."""
    if not text or not str(text).strip():
        return "Unknown"
    spaced = _CAMEL_BOUNDARY.sub(" ", str(text))
    words = re.split(r"[\s_\-]+", spaced.strip())
    return " ".join(w[:1].upper() + w[1:].lower() for w in words if w)


def to_number(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def clean_object(d: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    # drops None at the top level and one level down
    if not d:
        return {}
    out: Dict[str, Any] = {}
    for k, v in d.items():
        if v is None:
            continue
        if isinstance(v, dict):
            v = {ik: iv for ik, iv in v.items() if iv is not None}
        out[k] = v
    return out


def full_name(firstname: Optional[str], lastname: Optional[str]) -> Optional[str]:
    name = " ".join(p for p in ((firstname or "").strip(), (lastname or "").strip()) if p)
    return name or None


def make_actor(actor_id: Any, firstname: Optional[str] = None, lastname: Optional[str] = None) -> Optional[Dict[str, Any]]:
    if actor_id is None:
        return None
    return {"id": str(actor_id), "name": full_name(firstname, lastname) or "Unknown"}


def make_status(status_id: Any = None, name: Optional[str] = None, date_value: Any = None) -> Optional[Dict[str, Any]]:
    if status_id is None and name is None:
        return None
    return clean_object({
        "id": str(status_id) if status_id is not None else None,
        "name": name,
        "date": iso(date_value),
    })
