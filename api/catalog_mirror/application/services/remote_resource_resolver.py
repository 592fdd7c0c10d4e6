"""
Resolucion del recurso remoto de una organizacion.

Lee las credenciales (o usa las provistas) y construye el recurso del tipo
de entidad una sola vez por llamada.
"""
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.domain.repositories.remote_catalog import IRemoteResource
from catalog_mirror.infrastructure.external.woocommerce.resources import build_remote_resource
from catalog_mirror.infrastructure.external.woocommerce.types import RemoteCredentials
from catalog_mirror.infrastructure.repositories.organization_repository import (
    OrganizationRepository,
)
from catalog_mirror.shared.constants.sync_constants import EntityType
from catalog_mirror.shared.exceptions.sync import ConfigurationError

ResourceFactory = Callable[[EntityType, RemoteCredentials], IRemoteResource]


def _default_factory(entity_type: EntityType, credentials: RemoteCredentials) -> IRemoteResource:
    return build_remote_resource(entity_type, credentials)


class RemoteResourceResolver:
    """Construye el IRemoteResource de un (organizacion, tipo de entidad)."""

    def __init__(self, db: AsyncSession, factory: Optional[ResourceFactory] = None):
        self.organizations = OrganizationRepository(db)
        self._factory = factory or _default_factory

    async def resolve(
        self,
        organization_id: str,
        entity_type: EntityType,
        remote_config: Optional[RemoteCredentials] = None,
    ) -> IRemoteResource:
        """
        Raises:
            ConfigurationError: Credenciales ausentes o incompletas
        """
        if remote_config is not None:
            if not remote_config.is_complete:
                raise ConfigurationError(
                    "Configuracion remota incompleta",
                    organization_id=organization_id,
                )
            credentials = remote_config.normalized()
        else:
            credentials = await self.organizations.get_remote_credentials(organization_id)
        return self._factory(EntityType(entity_type), credentials)
