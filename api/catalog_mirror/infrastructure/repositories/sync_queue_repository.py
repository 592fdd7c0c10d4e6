"""
Repositorio de sync_queue.

El campo `status` funciona como lock cooperativo: un item solo se procesa
si el UPDATE condicional pending -> processing afecta exactamente una fila.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.infrastructure.database.models import SyncQueueModel
from catalog_mirror.shared.constants.sync_constants import QueueStatus
from catalog_mirror.shared.utils.datetime_utils import utc_now


class SyncQueueRepository:
    """Gestiona la tabla sync_queue. Toda consulta se filtra por organization_id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(
        self,
        organization_id: str,
        entity_type: str,
        entity_id: int,
        operation: str,
        data: Optional[Dict[str, Any]],
        priority: int,
        max_attempts: int,
    ) -> SyncQueueModel:
        now = utc_now()
        item = SyncQueueModel(
            organization_id=organization_id,
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            data=data,
            status=QueueStatus.PENDING.value,
            attempts=0,
            max_attempts=max_attempts,
            priority=priority,
            scheduled_at=now,
            last_error=None,
            processed_at=None,
            created_at=now,
            updated_at=now,
        )
        self.db.add(item)
        await self.db.flush()
        return item

    async def get(self, organization_id: str, item_id: int) -> Optional[SyncQueueModel]:
        result = await self.db.execute(
            select(SyncQueueModel)
            .where(
                SyncQueueModel.organization_id == organization_id,
                SyncQueueModel.id == item_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def fetch_due(
        self,
        organization_id: str,
        limit: int,
        now: Optional[datetime] = None,
        entity_type: Optional[str] = None,
    ) -> List[SyncQueueModel]:
        """
        Items pendientes y vencidos, en orden de proceso:
        priority desc, created_at asc, id asc.
        """
        query = select(SyncQueueModel).where(
            SyncQueueModel.organization_id == organization_id,
            SyncQueueModel.status == QueueStatus.PENDING.value,
            SyncQueueModel.scheduled_at <= (now or utc_now()),
        )
        if entity_type:
            query = query.where(SyncQueueModel.entity_type == entity_type)
        query = (
            query.order_by(
                SyncQueueModel.priority.desc(),
                SyncQueueModel.created_at.asc(),
                SyncQueueModel.id.asc(),
            )
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def claim(self, organization_id: str, item_id: int) -> bool:
        """
        pending -> processing con attempts += 1.

        Returns:
            bool: False si otro proceso ya tomo el item
        """
        result = await self.db.execute(
            update(SyncQueueModel)
            .where(
                SyncQueueModel.organization_id == organization_id,
                SyncQueueModel.id == item_id,
                SyncQueueModel.status == QueueStatus.PENDING.value,
            )
            .values(
                status=QueueStatus.PROCESSING.value,
                attempts=SyncQueueModel.attempts + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return (result.rowcount or 0) == 1

    async def release_stale(self, organization_id: str, older_than: datetime) -> int:
        """
        processing -> pending para items cuyo claim quedo abandonado
        (updated_at anterior a `older_than`). El intento consumido se conserva.
        """
        result = await self.db.execute(
            update(SyncQueueModel)
            .where(
                SyncQueueModel.organization_id == organization_id,
                SyncQueueModel.status == QueueStatus.PROCESSING.value,
                SyncQueueModel.updated_at < older_than,
            )
            .values(
                status=QueueStatus.PENDING.value,
                last_error="Procesamiento interrumpido",
                scheduled_at=utc_now(),
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return result.rowcount or 0

    async def discard_for_entity(
        self,
        organization_id: str,
        entity_type: str,
        entity_id: int,
    ) -> int:
        """Elimina los items no completados (pending o failed) de una entidad."""
        result = await self.db.execute(
            delete(SyncQueueModel)
            .where(
                SyncQueueModel.organization_id == organization_id,
                SyncQueueModel.entity_type == entity_type,
                SyncQueueModel.entity_id == entity_id,
                SyncQueueModel.status.in_([QueueStatus.PENDING.value, QueueStatus.FAILED.value]),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return result.rowcount or 0

    async def _set(self, organization_id: str, item_id: int, **values: Any) -> None:
        values.setdefault("updated_at", utc_now())
        await self.db.execute(
            update(SyncQueueModel)
            .where(
                SyncQueueModel.organization_id == organization_id,
                SyncQueueModel.id == item_id,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()

    async def mark_completed(self, organization_id: str, item_id: int) -> None:
        now = utc_now()
        await self._set(
            organization_id,
            item_id,
            status=QueueStatus.COMPLETED.value,
            last_error=None,
            processed_at=now,
            updated_at=now,
        )

    async def reschedule(
        self,
        organization_id: str,
        item_id: int,
        error: str,
        scheduled_at: datetime,
    ) -> None:
        await self._set(
            organization_id,
            item_id,
            status=QueueStatus.PENDING.value,
            last_error=error,
            scheduled_at=scheduled_at,
        )

    async def mark_failed(self, organization_id: str, item_id: int, error: str) -> None:
        now = utc_now()
        await self._set(
            organization_id,
            item_id,
            status=QueueStatus.FAILED.value,
            last_error=error,
            processed_at=now,
            updated_at=now,
        )

    async def retarget(
        self,
        organization_id: str,
        entity_type: str,
        old_entity_id: int,
        new_entity_id: int,
    ) -> int:
        """Reapunta items pendientes de un id provisional al id remoto definitivo."""
        result = await self.db.execute(
            update(SyncQueueModel)
            .where(
                SyncQueueModel.organization_id == organization_id,
                SyncQueueModel.entity_type == entity_type,
                SyncQueueModel.entity_id == old_entity_id,
                SyncQueueModel.status == QueueStatus.PENDING.value,
            )
            .values(entity_id=new_entity_id, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return result.rowcount or 0

    async def pending_for(
        self,
        organization_id: str,
        entity_type: str,
    ) -> List[SyncQueueModel]:
        """Items pendientes (vencidos o no) de un alcance, en orden de creacion."""
        result = await self.db.execute(
            select(SyncQueueModel)
            .where(
                SyncQueueModel.organization_id == organization_id,
                SyncQueueModel.entity_type == entity_type,
                SyncQueueModel.status == QueueStatus.PENDING.value,
            )
            .order_by(SyncQueueModel.created_at.asc(), SyncQueueModel.id.asc())
        )
        return list(result.scalars().all())

    async def summary(self, organization_id: str) -> Dict[str, Dict[str, int]]:
        """Conteos por estado (todos) y por tipo de entidad (solo items no completados)."""
        by_status: Dict[str, int] = {s.value: 0 for s in QueueStatus}
        result = await self.db.execute(
            select(SyncQueueModel.status, func.count())
            .where(SyncQueueModel.organization_id == organization_id)
            .group_by(SyncQueueModel.status)
        )
        for status, count in result.all():
            by_status[status] = int(count)

        by_entity: Dict[str, int] = {}
        result = await self.db.execute(
            select(SyncQueueModel.entity_type, func.count())
            .where(
                SyncQueueModel.organization_id == organization_id,
                SyncQueueModel.status != QueueStatus.COMPLETED.value,
            )
            .group_by(SyncQueueModel.entity_type)
        )
        for entity_type, count in result.all():
            by_entity[entity_type] = int(count)

        return {"by_status": by_status, "by_entity_type": by_entity}

    async def list(
        self,
        organization_id: str,
        status: Optional[str] = None,
        entity_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[SyncQueueModel]:
        query = select(SyncQueueModel).where(SyncQueueModel.organization_id == organization_id)
        if status:
            query = query.where(SyncQueueModel.status == status)
        if entity_type:
            query = query.where(SyncQueueModel.entity_type == entity_type)
        query = (
            query.order_by(SyncQueueModel.created_at.desc(), SyncQueueModel.id.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def requeue(self, organization_id: str, item_id: int) -> None:
        now = utc_now()
        await self._set(
            organization_id,
            item_id,
            status=QueueStatus.PENDING.value,
            attempts=0,
            last_error=None,
            processed_at=None,
            scheduled_at=now,
            updated_at=now,
        )

    async def delete(self, organization_id: str, item_id: int) -> bool:
        result = await self.db.execute(
            delete(SyncQueueModel)
            .where(
                SyncQueueModel.organization_id == organization_id,
                SyncQueueModel.id == item_id,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return (result.rowcount or 0) > 0
