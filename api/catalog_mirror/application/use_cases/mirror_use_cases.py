"""
Casos de uso de lectura del espejo local.

Las mutaciones locales pasan por SyncQueueUseCases (record_local_*),
que ademas encolan el cambio para la plataforma remota.
"""
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.application.dto.sync_dto import MirrorEntityDTO
from catalog_mirror.infrastructure.repositories.mirror_repository import MirrorRepository
from catalog_mirror.shared.constants.sync_constants import EntityType
from catalog_mirror.shared.exceptions.domain import EntityNotFoundException


class MirrorUseCases:
    """Consultas sobre las filas espejo de una organizacion."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_entities(
        self,
        organization_id: str,
        entity_type: EntityType,
        limit: int = 100,
        offset: int = 0,
    ) -> List[MirrorEntityDTO]:
        repository = MirrorRepository(self.db, entity_type)
        rows = await repository.list(organization_id, limit=limit, offset=offset)
        return [MirrorEntityDTO.model_validate(row) for row in rows]

    async def get_entity(
        self,
        organization_id: str,
        entity_type: EntityType,
        remote_id: int,
    ) -> MirrorEntityDTO:
        """
        Raises:
            EntityNotFoundException: Si la fila no existe en la organizacion
        """
        row = await MirrorRepository(self.db, entity_type).get(organization_id, remote_id)
        if row is None:
            raise EntityNotFoundException(EntityType(entity_type).value, remote_id)
        return MirrorEntityDTO.model_validate(row)

    async def count_entities(self, organization_id: str, entity_type: EntityType) -> int:
        return await MirrorRepository(self.db, entity_type).count(organization_id)
