"""
Tipos y utilidades puras del cliente WooCommerce.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from catalog_mirror.shared.utils.datetime_utils import parse_iso_utc


@dataclass(frozen=True)
class RemoteCredentials:
    """Credenciales de la tienda remota de una organizacion."""

    url: str
    consumer_key: str
    consumer_secret: str

    @property
    def is_complete(self) -> bool:
        return bool(self.url and self.consumer_key and self.consumer_secret)

    def normalized(self) -> "RemoteCredentials":
        return RemoteCredentials(
            url=normalize_store_url(self.url),
            consumer_key=self.consumer_key.strip(),
            consumer_secret=self.consumer_secret.strip(),
        )


def normalize_store_url(url: str) -> str:
    """
    Normaliza la URL de la tienda.

    - Agrega https:// si no trae esquema
    - Quita la barra final
    """
    normalized = (url or "").strip()
    if not normalized.startswith(("http://", "https://")):
        normalized = "https://" + normalized
    return normalized.rstrip("/")


def extract_last_modified(resource: Mapping[str, Any]) -> Optional[datetime]:
    """
    Fecha de modificacion de un recurso remoto, en UTC.

    Prefiere `date_modified_gmt` (UTC sin offset); si falta, usa
    `date_modified` (hora local de la tienda, interpretada como UTC).
    """
    for field_name in ("date_modified_gmt", "date_modified"):
        parsed = parse_iso_utc(resource.get(field_name))
        if parsed is not None:
            return parsed
    return None


def extract_remote_id(resource: Mapping[str, Any]) -> Optional[int]:
    """Id numerico del recurso, o None si no viene o no es entero."""
    raw = resource.get("id")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None
