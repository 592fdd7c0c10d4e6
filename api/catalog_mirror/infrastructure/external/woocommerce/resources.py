"""
Recursos tipados de WooCommerce (uno por tipo de entidad).

Cada recurso encapsula:
- el path REST (`/products`, `/customers`, `/orders`)
- los filtros necesarios para listar "todo" (status=any, role=all)
- particularidades del tipo (variaciones embebidas en productos variables)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Type

from loguru import logger

from catalog_mirror.core.config import settings
from catalog_mirror.domain.entities.sync import RemoteIndexEntry
from catalog_mirror.domain.repositories.remote_catalog import IRemoteResource
from catalog_mirror.shared.constants.sync_constants import EntityType
from catalog_mirror.shared.exceptions.sync import ConfigurationError, RemoteRejected

from .client import WooCommerceClient
from .types import RemoteCredentials, extract_last_modified, extract_remote_id

INDEX_FIELDS = "id,date_modified_gmt,date_modified"


class WooCommerceResource(IRemoteResource):
    """Implementacion base: listado paginado, lote por `include=` y CRUD."""

    entity_type: EntityType
    path: str = ""
    # Filtros extra para que el listado no omita registros (borradores, roles, etc.)
    list_filters: Dict[str, Any] = {}

    def __init__(self, client: WooCommerceClient) -> None:
        self._client = client

    def fetch_index(self) -> List[RemoteIndexEntry]:
        params = {**self.list_filters, "_fields": INDEX_FIELDS}
        index: List[RemoteIndexEntry] = []
        for page in self._client.iter_pages(self.path, params=params):
            for resource in page:
                remote_id = extract_remote_id(resource)
                if remote_id is None:
                    continue
                index.append(
                    RemoteIndexEntry(
                        remote_id=remote_id,
                        last_modified=extract_last_modified(resource),
                    )
                )
        logger.debug(f"[woocommerce] Indice de {self.path}: {len(index)} registros")
        return index

    def fetch_batch(self, ids: Sequence[int]) -> List[Dict[str, Any]]:
        if not ids:
            return []
        params = {
            **self.list_filters,
            "include": ",".join(str(i) for i in ids),
            "per_page": len(ids),
        }
        items = self._client.get(self.path, params=params) or []
        return [self._enrich(item) for item in items]

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._client.post(self.path, data)

    def update(self, remote_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._client.put(f"{self.path}/{remote_id}", data)

    def delete(self, remote_id: int) -> Optional[Dict[str, Any]]:
        try:
            return self._client.delete(f"{self.path}/{remote_id}", params={"force": "true"})
        except RemoteRejected as e:
            if e.http_status == 404:
                logger.info(f"[woocommerce] {self.path}/{remote_id} ya no existe; se considera eliminado")
                return None
            raise

    def _enrich(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        return resource


class ProductResource(WooCommerceResource):
    entity_type = EntityType.PRODUCTS
    path = "/products"
    list_filters = {"status": "any"}

    def _enrich(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        """Embebe las variaciones de productos variables bajo `variations`."""
        if resource.get("type") != "variable":
            return resource
        variations: List[Dict[str, Any]] = []
        for page in self._client.iter_pages(f"{self.path}/{resource['id']}/variations"):
            variations.extend(page)
        return {**resource, "variations": variations}


class CustomerResource(WooCommerceResource):
    entity_type = EntityType.CUSTOMERS
    path = "/customers"
    list_filters = {"role": "all"}


class OrderResource(WooCommerceResource):
    entity_type = EntityType.ORDERS
    path = "/orders"
    list_filters = {"status": "any"}


RESOURCE_CLASSES: Dict[EntityType, Type[WooCommerceResource]] = {
    EntityType.PRODUCTS: ProductResource,
    EntityType.CUSTOMERS: CustomerResource,
    EntityType.ORDERS: OrderResource,
}


def build_client(credentials: RemoteCredentials) -> WooCommerceClient:
    """Construye el cliente HTTP con los parametros de settings."""
    if not credentials.is_complete:
        raise ConfigurationError("Credenciales de WooCommerce incompletas")
    return WooCommerceClient(credentials, **settings.remote_client_options())


def build_remote_resource(
    entity_type: EntityType,
    credentials: RemoteCredentials,
    client: Optional[WooCommerceClient] = None,
) -> WooCommerceResource:
    """
    Resuelve el recurso remoto para un tipo de entidad.

    Raises:
        ConfigurationError: Si el tipo no esta soportado o faltan credenciales
    """
    resource_cls = RESOURCE_CLASSES.get(EntityType(entity_type))
    if resource_cls is None:
        raise ConfigurationError(f"Tipo de entidad no soportado: {entity_type}")
    return resource_cls(client or build_client(credentials))
