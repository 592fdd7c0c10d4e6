"""
Fechas del motor de sync: siempre UTC y aware.
"""
from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normaliza a UTC aware.

    SQLite devuelve datetimes naive aunque la columna sea timezone=True;
    un valor naive se toma como UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_utc(value: Any) -> Optional[datetime]:
    """
    ISO 8601 -> datetime UTC, o None si el valor falta o no parsea.

    WooCommerce expone `date_modified_gmt` sin offset; se interpreta como UTC.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None
    return ensure_utc(parsed)
