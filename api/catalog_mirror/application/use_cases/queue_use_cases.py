"""
Casos de uso de la cola de sincronizacion (push de cambios locales).

Ciclo de vida de un item:
    pending -> processing -> completed
    pending -> processing -> pending (backoff 2^attempts minutos)
    ... hasta el limite de intentos -> failed (terminal, solo requeue manual)
"""
import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.application.dto.sync_dto import (
    MirrorEntityDTO,
    QueueStatusDTO,
    SyncQueueItemDTO,
)
from catalog_mirror.application.services.remote_resource_resolver import (
    RemoteResourceResolver,
    ResourceFactory,
)
from catalog_mirror.core.config import settings
from catalog_mirror.domain.entities.sync import QueueProcessResult, backoff_delay
from catalog_mirror.domain.repositories.remote_catalog import IRemoteResource
from catalog_mirror.infrastructure.database.models import SyncQueueModel
from catalog_mirror.infrastructure.repositories.mirror_repository import MirrorRepository
from catalog_mirror.infrastructure.repositories.sync_queue_repository import SyncQueueRepository
from catalog_mirror.shared.constants.sync_constants import (
    DEFAULT_PRIORITY,
    EntityType,
    QueueOperation,
    QueueStatus,
)
from catalog_mirror.shared.exceptions.domain import (
    EntityNotFoundException,
    InvalidQueueTransitionException,
    ValidationException,
)
from catalog_mirror.shared.exceptions.sync import LocalStoreError, RemoteRejected
from catalog_mirror.shared.utils.datetime_utils import utc_now


@dataclass(frozen=True)
class _QueuedItem:
    """Copia plana de un item de la cola tomada al seleccionar el lote."""

    id: int
    entity_type: str
    entity_id: int
    operation: str
    data: Dict[str, Any]
    attempts: int
    max_attempts: int

    @property
    def known_type(self) -> Optional[EntityType]:
        try:
            return EntityType(self.entity_type)
        except ValueError:
            return None

    @classmethod
    def from_model(cls, model: SyncQueueModel) -> "_QueuedItem":
        return cls(
            id=model.id,
            entity_type=model.entity_type,
            entity_id=model.entity_id,
            operation=model.operation,
            data=dict(model.data or {}),
            attempts=model.attempts,
            max_attempts=model.max_attempts,
        )


class SyncQueueUseCases:
    """
    Casos de uso de la cola de sincronizacion.

    Cada item se procesa y confirma por separado: un fallo de un item
    nunca aborta el lote.
    """

    def __init__(self, db: AsyncSession, resource_factory: Optional[ResourceFactory] = None):
        self.db = db
        self.repository = SyncQueueRepository(db)
        self.resolver = RemoteResourceResolver(db, resource_factory)

    # ------------------------------------------------------------------
    # Encolado
    # ------------------------------------------------------------------

    async def add_to_queue(
        self,
        organization_id: str,
        entity_type: str,
        entity_id: int,
        operation: str,
        data: Optional[Dict[str, Any]] = None,
        priority: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ) -> SyncQueueItemDTO:
        """
        Encola un cambio local. `data` es un snapshot: no se vuelve a leer del espejo.

        Prioridad por defecto: delete = SYNC_DELETE_PRIORITY, resto = 0.
        """
        try:
            entity_type = EntityType(entity_type)
        except ValueError as e:
            raise ValidationException(f"Tipo de entidad invalido: {entity_type}", "entity_type") from e
        try:
            operation = QueueOperation(operation)
        except ValueError as e:
            raise ValidationException(f"Operacion invalida: {operation}", "operation") from e

        if priority is None:
            priority = (
                settings.SYNC_DELETE_PRIORITY if operation == QueueOperation.DELETE
                else DEFAULT_PRIORITY
            )

        item = await self.repository.add(
            organization_id=organization_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            operation=operation.value,
            data=data,
            priority=priority,
            max_attempts=max_attempts or settings.SYNC_MAX_ATTEMPTS,
        )
        await self.db.commit()
        logger.info(
            f"[queue] Encolado {operation.value} {entity_type.value}#{entity_id} "
            f"(org={organization_id}, prioridad={priority})"
        )
        return SyncQueueItemDTO.model_validate(item)

    async def record_local_create(
        self,
        organization_id: str,
        entity_type: str,
        data: Dict[str, Any],
    ) -> MirrorEntityDTO:
        """Crea la fila local con id provisional y encola su creacion remota."""
        mirror = MirrorRepository(self.db, entity_type)
        row = await mirror.create_local(organization_id, data)
        await self.add_to_queue(organization_id, entity_type, row.remote_id, QueueOperation.CREATE.value, data)
        return MirrorEntityDTO.model_validate(row)

    async def record_local_update(
        self,
        organization_id: str,
        entity_type: str,
        remote_id: int,
        changes: Dict[str, Any],
    ) -> MirrorEntityDTO:
        """Aplica el cambio en el espejo y encola el update remoto."""
        mirror = MirrorRepository(self.db, entity_type)
        row = await mirror.update_local(organization_id, remote_id, changes)
        if row is None:
            raise EntityNotFoundException(EntityType(entity_type).value, remote_id)
        await self.add_to_queue(organization_id, entity_type, remote_id, QueueOperation.UPDATE.value, changes)
        return MirrorEntityDTO.model_validate(row)

    async def record_local_delete(
        self,
        organization_id: str,
        entity_type: str,
        remote_id: int,
    ) -> Optional[SyncQueueItemDTO]:
        """
        Encola el borrado remoto. La fila local se elimina recien cuando
        la plataforma remota confirma.

        Con id provisional la entidad nunca llego al remoto: se descartan
        sus items pendientes (create/update) y se borra la fila local sin
        encolar nada. En ese caso retorna None.
        """
        mirror = MirrorRepository(self.db, entity_type)
        if await mirror.get(organization_id, remote_id) is None:
            raise EntityNotFoundException(EntityType(entity_type).value, remote_id)

        if remote_id <= 0:
            entity = EntityType(entity_type).value
            discarded = await self.repository.discard_for_entity(organization_id, entity, remote_id)
            await mirror.delete(organization_id, remote_id)
            await self.db.commit()
            logger.info(
                f"[queue] {entity}#{remote_id} borrado antes de llegar al remoto "
                f"({discarded} items descartados, org={organization_id})"
            )
            return None

        return await self.add_to_queue(organization_id, entity_type, remote_id, QueueOperation.DELETE.value)

    # ------------------------------------------------------------------
    # Procesamiento
    # ------------------------------------------------------------------

    async def process_queue(
        self,
        organization_id: str,
        batch_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        entity_type: Optional[str] = None,
    ) -> QueueProcessResult:
        """
        Procesa hasta `batch_size` items pendientes y vencidos.

        Args:
            organization_id: Organizacion
            batch_size: Items por lote (default SYNC_QUEUE_BATCH_SIZE)
            max_retries: Tope de intentos (limita el max_attempts de cada item)
            entity_type: Filtra por tipo de entidad

        Returns:
            QueueProcessResult: processed / errors / skipped

        Raises:
            ConfigurationError: Integracion no configurada
        """
        batch_size = batch_size or settings.SYNC_QUEUE_BATCH_SIZE
        result = QueueProcessResult()

        try:
            released = await self.repository.release_stale(
                organization_id,
                utc_now() - timedelta(minutes=settings.SYNC_STALE_AFTER_MINUTES),
            )
            if released:
                await self.db.commit()
                logger.warning(
                    f"[queue] {organization_id}: {released} items en processing abandonados vuelven a pending"
                )
            items = await self.repository.fetch_due(
                organization_id,
                limit=batch_size,
                now=utc_now(),
                entity_type=EntityType(entity_type).value if entity_type else None,
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise LocalStoreError(f"No se pudo leer la cola: {e}") from e

        if not items:
            return result

        # Un rollback expira las instancias ORM: se trabaja sobre copias planas
        work = [_QueuedItem.from_model(item) for item in items]

        # Los recursos se resuelven antes de tomar items: sin credenciales no se toca la cola
        resources: Dict[EntityType, IRemoteResource] = {}
        for item in work:
            if item.known_type is not None and item.known_type not in resources:
                resources[item.known_type] = await self.resolver.resolve(
                    organization_id, item.known_type
                )

        logger.info(f"[queue] {organization_id}: procesando {len(work)} items")

        for item in work:
            if item.known_type is None:
                logger.warning(f"[queue] Item {item.id}: tipo de entidad desconocido '{item.entity_type}'")
                result.skipped += 1
                continue

            claimed = await self.repository.claim(organization_id, item.id)
            await self.db.commit()
            if not claimed:
                logger.debug(f"[queue] Item {item.id} ya tomado por otro proceso")
                result.skipped += 1
                continue

            # Releer tras el claim: un create previo del lote puede haber reapuntado entity_id
            item = _QueuedItem.from_model(await self.repository.get(organization_id, item.id))
            attempts = item.attempts
            try:
                await self._dispatch(organization_id, resources[item.known_type], item)
                await self.repository.mark_completed(organization_id, item.id)
                await self.db.commit()
                result.processed += 1
                logger.info(
                    f"[queue] Item {item.id} ({item.operation} {item.entity_type}#{item.entity_id}) completado"
                )
            except Exception as e:
                await self.db.rollback()
                await self._handle_failure(organization_id, item, attempts, max_retries, e)
                result.errors += 1

        logger.info(
            f"[queue] {organization_id}: procesados={result.processed} errores={result.errors} "
            f"omitidos={result.skipped}"
        )
        return result

    async def _dispatch(
        self,
        organization_id: str,
        resource: IRemoteResource,
        item: _QueuedItem,
    ) -> None:
        """Envia el item a la plataforma remota y refleja la respuesta en el espejo."""
        mirror = MirrorRepository(self.db, item.entity_type)
        operation = QueueOperation(item.operation)
        data = item.data or {}

        if operation == QueueOperation.CREATE:
            body = await asyncio.to_thread(resource.create, data)
            row = await mirror.apply_remote_body(organization_id, item.entity_id, body)
            new_id = row.remote_id if row is not None else None
            if new_id is not None and new_id != item.entity_id:
                await self.repository.retarget(
                    organization_id, item.entity_type, item.entity_id, new_id
                )

        elif operation == QueueOperation.UPDATE:
            if item.entity_id <= 0:
                raise ValueError(
                    f"{item.entity_type}#{item.entity_id} aun no existe en remoto (id provisional)"
                )
            body = await asyncio.to_thread(resource.update, item.entity_id, data)
            await mirror.apply_remote_body(organization_id, item.entity_id, body)

        elif operation == QueueOperation.DELETE:
            if item.entity_id > 0:
                await asyncio.to_thread(resource.delete, item.entity_id)
            await mirror.delete(organization_id, item.entity_id)

    async def _handle_failure(
        self,
        organization_id: str,
        item: _QueuedItem,
        attempts: int,
        max_retries: Optional[int],
        error: Exception,
    ) -> None:
        message = getattr(error, "message", None) or str(error) or error.__class__.__name__
        limit = item.max_attempts if max_retries is None else min(item.max_attempts, max_retries)
        fail_fast = settings.SYNC_FAIL_FAST_ON_REJECTED and isinstance(error, RemoteRejected)

        if attempts >= limit or fail_fast:
            await self.repository.mark_failed(organization_id, item.id, message)
            logger.error(
                f"[queue] Item {item.id} fallido definitivamente tras {attempts} intentos: {message}"
            )
        else:
            scheduled_at = utc_now() + backoff_delay(attempts)
            await self.repository.reschedule(organization_id, item.id, message, scheduled_at)
            logger.warning(
                f"[queue] Item {item.id} fallo (intento {attempts}/{limit}), "
                f"reintento en {scheduled_at.isoformat()}: {message}"
            )
        await self.db.commit()

    # ------------------------------------------------------------------
    # Consulta e intervencion del operador
    # ------------------------------------------------------------------

    async def get_queue_status(self, organization_id: str) -> QueueStatusDTO:
        summary = await self.repository.summary(organization_id)
        return QueueStatusDTO(organization_id=organization_id, **summary)

    async def list_queue_items(
        self,
        organization_id: str,
        status: Optional[str] = None,
        entity_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[SyncQueueItemDTO]:
        items = await self.repository.list(organization_id, status, entity_type, limit, offset)
        return [SyncQueueItemDTO.model_validate(item) for item in items]

    async def requeue_item(self, organization_id: str, item_id: int) -> SyncQueueItemDTO:
        """
        Vuelve un item fallido a pending con los intentos en cero.

        Raises:
            EntityNotFoundException: Si el item no existe en la organizacion
            InvalidQueueTransitionException: Si el item no esta en failed
        """
        item = await self.repository.get(organization_id, item_id)
        if item is None:
            raise EntityNotFoundException("SyncQueueItem", item_id)
        if item.status != QueueStatus.FAILED.value:
            raise InvalidQueueTransitionException(item_id, item.status, "requeue")

        await self.repository.requeue(organization_id, item_id)
        await self.db.commit()
        logger.info(f"[queue] Item {item_id} reencolado manualmente")
        return SyncQueueItemDTO.model_validate(await self.repository.get(organization_id, item_id))

    async def delete_queue_item(self, organization_id: str, item_id: int) -> None:
        """
        Raises:
            EntityNotFoundException: Si el item no existe en la organizacion
            InvalidQueueTransitionException: Si el item se esta procesando
        """
        item = await self.repository.get(organization_id, item_id)
        if item is None:
            raise EntityNotFoundException("SyncQueueItem", item_id)
        if item.status == QueueStatus.PROCESSING.value:
            raise InvalidQueueTransitionException(item_id, item.status, "delete")

        await self.repository.delete(organization_id, item_id)
        await self.db.commit()
        logger.info(f"[queue] Item {item_id} eliminado manualmente")
