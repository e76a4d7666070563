import csv
import io
from datetime import date, datetime
from typing import Any, Dict, Iterable, Mapping, Sequence, Tuple

from core.errors import AppError
from core.formatters import format_date_time

EXPORT_FORMATS = {
    "csv": ("text/csv", ","),
    "txt": ("text/plain", "\t"),
}

# (row key, header label)
ExportColumn = Tuple[str, str]


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return format_date_time(value, fallback="")
    if isinstance(value, (list, tuple)):
        return ", ".join(_cell(v) for v in value)
    return str(value)


def export_rows(rows: Iterable[Mapping[str, Any]], columns: Sequence[ExportColumn], fmt: str = "csv") -> bytes:
    fmt = (fmt or "").strip().lower()
    if fmt not in EXPORT_FORMATS:
        raise AppError.validation(f"Unsupported export format: {fmt}. Use one of: {', '.join(EXPORT_FORMATS)}")

    _, delimiter = EXPORT_FORMATS[fmt]
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=delimiter, lineterminator="\n")
    writer.writerow([label for _, label in columns])
    for row in rows:
        writer.writerow([_cell(row.get(key)) for key, _ in columns])
    return buf.getvalue().encode("utf-8")


def export_media_type(fmt: str) -> str:
    return EXPORT_FORMATS[(fmt or "").strip().lower()][0]


def export_filename(prefix: str, fmt: str) -> str:
    return f"{prefix}_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.{fmt.lower()}"


def export_headers(prefix: str, fmt: str) -> Dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{export_filename(prefix, fmt)}"'}
