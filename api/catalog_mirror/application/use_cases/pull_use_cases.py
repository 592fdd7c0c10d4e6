"""
Casos de uso de pull: trae entidades remotas por lotes y las upsertea
en el espejo local.

Contabilidad: processed + errors == len(ids). Un lote que falla marca
todos sus ids como fallidos (sin reintento item por item).
"""
import asyncio
from typing import Callable, List, Optional, Sequence

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.application.services.remote_resource_resolver import (
    RemoteResourceResolver,
    ResourceFactory,
)
from catalog_mirror.core.config import settings
from catalog_mirror.domain.entities.sync import PullResult
from catalog_mirror.infrastructure.external.woocommerce.types import (
    RemoteCredentials,
    extract_remote_id,
)
from catalog_mirror.infrastructure.repositories.mirror_repository import MirrorRepository
from catalog_mirror.infrastructure.repositories.sync_status_repository import SyncStatusRepository
from catalog_mirror.shared.constants.sync_constants import EntityType, SyncStatusState
from catalog_mirror.shared.exceptions.sync import LocalStoreError, RemoteRejected, RemoteUnavailable
from catalog_mirror.shared.utils.datetime_utils import utc_now

# (procesados hasta ahora, total)
ChunkProgressCallback = Callable[[int, int], None]


def chunked(ids: Sequence[int], size: int) -> List[List[int]]:
    """Particiona ids en lotes de `size` conservando el orden."""
    if size < 1:
        raise ValueError("batch_size debe ser >= 1")
    return [list(ids[i:i + size]) for i in range(0, len(ids), size)]


class PullUseCases:
    """Pull por lotes de un (organizacion, tipo de entidad)."""

    def __init__(
        self,
        db: AsyncSession,
        resource_factory: Optional[ResourceFactory] = None,
        chunk_delay_s: Optional[float] = None,
    ):
        self.db = db
        self.resolver = RemoteResourceResolver(db, resource_factory)
        self.status_repository = SyncStatusRepository(db)
        self.chunk_delay_s = (
            settings.SYNC_PULL_CHUNK_DELAY_S if chunk_delay_s is None else chunk_delay_s
        )

    async def pull(
        self,
        organization_id: str,
        entity_type: EntityType,
        ids: Sequence[int],
        batch_size: Optional[int] = None,
        remote_config: Optional[RemoteCredentials] = None,
        progress_callback: Optional[ChunkProgressCallback] = None,
    ) -> PullResult:
        """
        Trae `ids` desde la plataforma remota en lotes de `batch_size`.

        Args:
            organization_id: Organizacion
            entity_type: Tipo de entidad
            ids: Ids remotos a traer
            batch_size: Tamaño del lote (default SYNC_PULL_BATCH_SIZE)
            remote_config: Credenciales explicitas (opcional)
            progress_callback: Se invoca tras cada lote con (procesados, total)

        Returns:
            PullResult: processed, errors y failed_ids

        Raises:
            ConfigurationError: Integracion no configurada
            LocalStoreError: Fallo del almacen local (aborta el pull)
        """
        entity_type = EntityType(entity_type)
        ids = list(ids)
        batch_size = batch_size or settings.SYNC_PULL_BATCH_SIZE
        chunks = chunked(ids, batch_size)
        result = PullResult(requested=len(ids))

        resource = await self.resolver.resolve(organization_id, entity_type, remote_config)
        mirror = MirrorRepository(self.db, entity_type)

        await self._status(
            organization_id,
            entity_type,
            status=SyncStatusState.PULLING.value,
            total_items=len(ids),
            processed_items=0,
            last_error=None,
        )
        logger.info(
            f"[pull] {organization_id}/{entity_type.value}: {len(ids)} ids en {len(chunks)} lotes"
        )

        failed = dict()  # conserva orden y deduplica
        done = 0
        for index, chunk in enumerate(chunks):
            try:
                bodies = await asyncio.to_thread(resource.fetch_batch, chunk)
            except (RemoteUnavailable, RemoteRejected) as e:
                logger.warning(
                    f"[pull] Lote {index + 1}/{len(chunks)} fallo ({len(chunk)} ids): {e.message}"
                )
                bodies = []

            requested = set(chunk)
            returned = {extract_remote_id(body) for body in bodies}
            bodies = [body for body in bodies if extract_remote_id(body) in requested]

            try:
                await mirror.upsert_many(organization_id, bodies, synced_at=utc_now())
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                raise LocalStoreError(f"No se pudo guardar el lote {index + 1}: {e}") from e

            for remote_id in chunk:
                if remote_id in returned:
                    result.processed += 1
                else:
                    result.errors += 1
                    failed[remote_id] = True

            done += len(chunk)
            await self._status(organization_id, entity_type, processed_items=result.processed)
            if progress_callback:
                progress_callback(done, len(ids))

            if index < len(chunks) - 1 and self.chunk_delay_s > 0:
                # Pequeño delay para no sobrecargar la API
                await asyncio.sleep(self.chunk_delay_s)

        result.failed_ids = list(failed.keys())

        await self._status(
            organization_id,
            entity_type,
            status=(
                SyncStatusState.COMPLETED.value if result.errors == 0
                else SyncStatusState.PARTIAL.value
            ),
            processed_items=result.processed,
            last_error=(f"{result.errors} ids no se pudieron traer" if result.errors else None),
            last_sync_time=utc_now(),
            metadata={
                "requested": result.requested,
                "processed": result.processed,
                "errors": result.errors,
                "failed_ids": result.failed_ids,
            },
        )
        logger.info(
            f"[pull] {organization_id}/{entity_type.value}: procesados={result.processed} "
            f"errores={result.errors}"
        )
        return result

    async def _status(self, organization_id: str, entity_type: EntityType, **fields) -> None:
        try:
            await self.status_repository.upsert(organization_id, entity_type, **fields)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise LocalStoreError(f"No se pudo actualizar sync_status: {e}") from e
