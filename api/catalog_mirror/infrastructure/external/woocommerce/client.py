"""
Cliente mínimo de WooCommerce REST API v3 (sin SDKs externos).

Requisitos cubiertos:
- requests con HTTP Basic (consumer key / secret)
- paginación por page/per_page (respeta X-WP-TotalPages)
- rate-limit/backoff acotado (429, 5xx, timeouts)
- errores tipados para el motor de sincronización
"""

from __future__ import annotations

import time
from typing import Any, Iterable, Optional

import requests
from loguru import logger

from catalog_mirror.shared.exceptions.sync import RemoteRejected, RemoteUnavailable

from .types import RemoteCredentials

API_PREFIX = "/wp-json/wc/v3"


def _error_message(resp: requests.Response) -> str:
    """Extrae el mensaje de error de WooCommerce ({"code", "message", ...})."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.text[:500]


class WooCommerceClient:
    """
    Cliente HTTP de WooCommerce.

    Importante:
    - No conoce sync_status ni sync_queue: solo request/response.
    - Los reintentos internos son pocos y cortos; el reintento "de negocio"
      (backoff en minutos) lo maneja la cola de sincronización.
    """

    def __init__(
        self,
        credentials: RemoteCredentials,
        *,
        session: Optional[requests.Session] = None,
        timeout_s: int = 30,
        max_retries: int = 2,
        min_backoff_s: float = 0.8,
        max_backoff_s: float = 20.0,
        page_size: int = 100,
        page_delay_s: float = 0.1,
        user_agent: str = "CatalogMirror-Sync/1.0",
    ) -> None:
        self._creds = credentials.normalized()
        self._base_url = f"{self._creds.url}{API_PREFIX}"
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self.page_size = page_size
        self._page_delay_s = page_delay_s
        self._session = session or requests.Session()
        self._session.auth = (self._creds.consumer_key, self._creds.consumer_secret)
        self._session.headers.update({
            "Content-Type": "application/json",
            "User-Agent": user_agent,
        })

    @property
    def base_url(self) -> str:
        return self._base_url

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return self._request_json("GET", path, params=params)

    def post(self, path: str, data: dict[str, Any]) -> Any:
        return self._request_json("POST", path, json=data)

    def put(self, path: str, data: dict[str, Any]) -> Any:
        return self._request_json("PUT", path, json=data)

    def delete(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return self._request_json("DELETE", path, params=params)

    def iter_pages(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
    ) -> Iterable[list[dict[str, Any]]]:
        """
        Itera las páginas de un endpoint de listado.

        Termina cuando:
        - la página viene vacía o trae menos de per_page registros
        - se alcanza X-WP-TotalPages (si el servidor lo informa)
        """
        page = 1
        while True:
            query = dict(params or {})
            query.update({"page": page, "per_page": self.page_size})

            resp = self._request("GET", path, params=query)
            items = self._decode(resp) or []
            if not isinstance(items, list):
                raise RemoteRejected(
                    f"Respuesta inesperada en {path} (página {page}): se esperaba una lista"
                )

            if items:
                yield items

            total_pages = resp.headers.get("X-WP-TotalPages")
            if not items or len(items) < self.page_size:
                break
            if total_pages and total_pages.isdigit() and page >= int(total_pages):
                break

            page += 1
            # Pequeño delay para no sobrecargar la API
            time.sleep(self._page_delay_s)

    def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        return self._decode(self._request(method, path, **kwargs))

    @staticmethod
    def _decode(resp: requests.Response) -> Any:
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteRejected(
                f"Respuesta no JSON de WooCommerce ({resp.status_code})",
                http_status=resp.status_code,
            ) from e

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """
        Request HTTP con backoff para 429/5xx/timeouts.

        Estrategia:
        - 429: respeta Retry-After si existe, si no exponencial con jitter simple.
        - 5xx / timeout / conexión: exponencial con jitter.
        - 401/403: RemoteUnavailable inmediato (credenciales o permisos).
        - otros 4xx: RemoteRejected inmediato (validación, no encontrado).
        """
        url = f"{self._base_url}{path}"

        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    timeout=self._timeout_s,
                    **kwargs,
                )
            except (requests.Timeout, requests.ConnectionError) as e:
                if attempt >= self._max_retries:
                    raise RemoteUnavailable(
                        f"WooCommerce no responde en {method} {path} tras {attempt} reintentos: {e}"
                    ) from e
                logger.warning(f"[woocommerce] {method} {path} falló ({e}), reintentando...")
                time.sleep(self._backoff(attempt))
                continue
            except requests.RequestException as e:
                raise RemoteUnavailable(f"Error de red en {method} {path}: {e}") from e

            if 200 <= resp.status_code < 300:
                return resp

            # Errores recuperables
            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    raise RemoteUnavailable(
                        f"WooCommerce error {resp.status_code} tras {attempt} reintentos: "
                        f"{_error_message(resp)}",
                        http_status=resp.status_code,
                    )

                retry_after = resp.headers.get("Retry-After")
                if retry_after:
                    try:
                        sleep_s = float(retry_after)
                    except ValueError:
                        sleep_s = self._min_backoff_s
                else:
                    sleep_s = self._backoff(attempt)

                logger.warning(
                    f"[woocommerce] {method} {path} -> {resp.status_code}, "
                    f"reintentando en {sleep_s:.1f}s ({attempt + 1}/{self._max_retries})"
                )
                time.sleep(sleep_s)
                continue

            if resp.status_code in (401, 403):
                raise RemoteUnavailable(
                    f"Error de autenticación WooCommerce ({resp.status_code}): "
                    f"{_error_message(resp)}. Verifique las credenciales de la integración.",
                    http_status=resp.status_code,
                )

            # Errores no recuperables
            raise RemoteRejected(
                f"WooCommerce rechazó {method} {path} ({resp.status_code}): {_error_message(resp)}",
                http_status=resp.status_code,
            )

        # El loop siempre retorna o lanza; esto protege ante max_retries < 0
        raise RemoteUnavailable(f"Sin intentos disponibles para {method} {path}")

    def _backoff(self, attempt: int) -> float:
        # Exponencial simple + jitter proporcional
        base = min(self._max_backoff_s, self._min_backoff_s * (2**attempt))
        return base + (0.15 * base)

    def close(self) -> None:
        self._session.close()
