"""
Casos de uso de discovery: que entidades remotas faltan o cambiaron
respecto del espejo local, y que cambios locales esperan push.
"""
import asyncio
from typing import List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.application.services.remote_resource_resolver import (
    RemoteResourceResolver,
    ResourceFactory,
)
from catalog_mirror.domain.entities.sync import (
    DiscoveryResult,
    PendingLocalChange,
    compute_discovery,
)
from catalog_mirror.infrastructure.external.woocommerce.types import RemoteCredentials
from catalog_mirror.infrastructure.repositories.mirror_repository import MirrorRepository
from catalog_mirror.infrastructure.repositories.sync_queue_repository import SyncQueueRepository
from catalog_mirror.infrastructure.repositories.sync_status_repository import SyncStatusRepository
from catalog_mirror.shared.constants.sync_constants import (
    EntityType,
    QueueOperation,
    SyncStatusState,
)
from catalog_mirror.shared.exceptions.sync import (
    ConfigurationError,
    LocalStoreError,
    RemoteRejected,
    RemoteUnavailable,
)
from catalog_mirror.shared.utils.datetime_utils import utc_now


class DiscoveryUseCases:
    """
    Discovery por (organizacion, tipo de entidad).

    No modifica el espejo: solo calcula diferencias y las persiste en
    sync_status.metadata.
    """

    def __init__(self, db: AsyncSession, resource_factory: Optional[ResourceFactory] = None):
        self.db = db
        self.resolver = RemoteResourceResolver(db, resource_factory)
        self.status_repository = SyncStatusRepository(db)
        self.queue_repository = SyncQueueRepository(db)

    async def discover(
        self,
        organization_id: str,
        entity_type: EntityType,
        remote_config: Optional[RemoteCredentials] = None,
    ) -> DiscoveryResult:
        """
        Compara el indice remoto completo con el indice local.

        Args:
            organization_id: Organizacion
            entity_type: Tipo de entidad
            remote_config: Credenciales explicitas (si no, se leen de la organizacion)

        Returns:
            DiscoveryResult: missing/changed, pendientes locales y conflictos

        Raises:
            ConfigurationError: Integracion no configurada
            RemoteUnavailable / RemoteRejected: Fallo al leer el indice remoto
            LocalStoreError: Fallo del almacen local
        """
        entity_type = EntityType(entity_type)
        mirror = MirrorRepository(self.db, entity_type)

        try:
            resource = await self.resolver.resolve(organization_id, entity_type, remote_config)
        except ConfigurationError as e:
            await self._record_error(organization_id, entity_type, e.message)
            raise

        logger.info(f"[discovery] {organization_id}/{entity_type.value}: leyendo indice remoto")
        await self._guarded_status(
            organization_id,
            entity_type,
            status=SyncStatusState.DISCOVERING.value,
            last_error=None,
        )

        try:
            remote_index = await asyncio.to_thread(resource.fetch_index)
        except (RemoteUnavailable, RemoteRejected) as e:
            logger.error(f"[discovery] {organization_id}/{entity_type.value}: {e.message}")
            await self._record_error(organization_id, entity_type, e.message)
            raise

        try:
            local_index = await mirror.get_index(organization_id)
            pending_rows = await self.queue_repository.pending_for(
                organization_id, entity_type.value
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise LocalStoreError(f"No se pudo leer el espejo local: {e}") from e

        result = compute_discovery(
            organization_id=organization_id,
            entity_type=entity_type,
            remote_index=remote_index,
            local_index=local_index,
            pending=self._to_pending(pending_rows),
        )

        now = utc_now()
        await self._guarded_status(
            organization_id,
            entity_type,
            status=SyncStatusState.DISCOVERED.value,
            metadata=result.to_metadata(),
            total_items=len(result.ids_to_pull),
            processed_items=0,
            last_error=None,
            last_discover_at=now,
            last_sync_time=now,
        )

        logger.info(
            f"[discovery] {organization_id}/{entity_type.value}: remoto={result.total_remote} "
            f"local={result.total_local} faltantes={len(result.missing_ids)} "
            f"cambiados={len(result.changed_ids)} conflictos={len(result.conflicts)}"
        )
        return result

    @staticmethod
    def _to_pending(rows) -> List[PendingLocalChange]:
        pending: List[PendingLocalChange] = []
        for row in rows:
            try:
                operation = QueueOperation(row.operation)
            except ValueError:
                logger.warning(f"[discovery] Item {row.id} con operacion desconocida: {row.operation}")
                continue
            pending.append(
                PendingLocalChange(
                    queue_item_id=row.id,
                    entity_id=row.entity_id,
                    operation=operation,
                    data=row.data or {},
                )
            )
        return pending

    async def _guarded_status(self, organization_id: str, entity_type: EntityType, **fields) -> None:
        try:
            await self.status_repository.upsert(organization_id, entity_type, **fields)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise LocalStoreError(f"No se pudo actualizar sync_status: {e}") from e

    async def _record_error(self, organization_id: str, entity_type: EntityType, error: str) -> None:
        await self.db.rollback()
        await self._guarded_status(
            organization_id,
            entity_type,
            status=SyncStatusState.ERROR.value,
            last_error=error,
            last_sync_time=utc_now(),
        )
