import hashlib
from typing import Any, Mapping, Optional

# fields that identify a physical address; contact details do not
ADDRESS_HASH_FIELDS = (
    "customer_id", "address_line1", "address_line2", "city", "state", "postal_code", "country", "region",
)


def _norm(value: Any) -> str:
    return " ".join(str(value).split()).lower() if value is not None else ""


def build_address_hash(address: Mapping[str, Any]) -> str:
    """sha256 over the normalized location fields; equal addresses of one customer collide."""
    joined = "|".join(_norm(address.get(f)) for f in ADDRESS_HASH_FIELDS)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


def format_display_address(address: Mapping[str, Any]) -> Optional[str]:
    """e.g. "123 Main St, Unit 4, Toronto, ON, M5V 1A1, Canada"."""
    parts = [
        address.get("address_line1"),
        address.get("address_line2"),
        address.get("city"),
        address.get("state"),
        address.get("postal_code"),
        address.get("country"),
    ]
    text = ", ".join(str(p).strip() for p in parts if p and str(p).strip())
    return text or None
