"""
Servicios de aplicacion.

Contiene la logica reutilizable que no pertenece
a un caso de uso especifico.
"""
from catalog_mirror.application.services.remote_resource_resolver import (
    RemoteResourceResolver,
    ResourceFactory,
)
from catalog_mirror.application.services.sync_run_registry import SyncRunRegistry
from catalog_mirror.application.services.webhook_signature import (
    compute_signature,
    is_valid_signature,
    parse_topic,
)

__all__ = [
    # Resolucion de recursos remotos
    "RemoteResourceResolver",
    "ResourceFactory",
    # Corridas
    "SyncRunRegistry",
    # Webhooks
    "compute_signature",
    "is_valid_signature",
    "parse_topic",
]
