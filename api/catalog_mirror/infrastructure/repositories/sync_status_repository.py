"""
Repositorio de sync_status: una fila por (organization_id, entity_type).
"""
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.infrastructure.database.dialect import dialect_insert
from catalog_mirror.infrastructure.database.models import SyncStatusModel
from catalog_mirror.shared.constants.sync_constants import EntityType, SyncStatusState
from catalog_mirror.shared.utils.datetime_utils import utc_now


class SyncStatusRepository:
    """Gestiona la tabla sync_status."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, organization_id: str, entity_type: EntityType) -> Optional[SyncStatusModel]:
        result = await self.db.execute(
            select(SyncStatusModel)
            .where(
                SyncStatusModel.organization_id == organization_id,
                SyncStatusModel.entity_type == EntityType(entity_type).value,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _ensure_row(self, organization_id: str, entity_type: EntityType) -> None:
        stmt = dialect_insert(self.db, SyncStatusModel.__table__).values(
            organization_id=organization_id,
            entity_type=EntityType(entity_type).value,
            is_syncing=False,
            status=SyncStatusState.IDLE.value,
            total_items=0,
            processed_items=0,
            updated_at=utc_now(),
        )
        await self.db.execute(
            stmt.on_conflict_do_nothing(index_elements=["organization_id", "entity_type"])
        )

    async def upsert(
        self,
        organization_id: str,
        entity_type: EntityType,
        **fields: Any,
    ) -> SyncStatusModel:
        """
        Crea la fila si no existe y actualiza los campos indicados.

        `metadata` se acepta como alias de la columna sync_meta.
        """
        if "metadata" in fields:
            fields["sync_meta"] = fields.pop("metadata")
        fields.setdefault("updated_at", utc_now())

        await self._ensure_row(organization_id, entity_type)
        await self.db.execute(
            update(SyncStatusModel)
            .where(
                SyncStatusModel.organization_id == organization_id,
                SyncStatusModel.entity_type == EntityType(entity_type).value,
            )
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return await self.get(organization_id, entity_type)

    async def try_claim(
        self,
        organization_id: str,
        entity_type: EntityType,
        stale_after: timedelta,
    ) -> bool:
        """
        Toma el claim `is_syncing` con un UPDATE condicional.

        Un claim mas viejo que `stale_after` se considera abandonado
        (proceso caido) y puede tomarse.

        Returns:
            bool: True si el claim se obtuvo
        """
        now = utc_now()
        await self._ensure_row(organization_id, entity_type)
        result = await self.db.execute(
            update(SyncStatusModel)
            .where(
                SyncStatusModel.organization_id == organization_id,
                SyncStatusModel.entity_type == EntityType(entity_type).value,
                or_(
                    SyncStatusModel.is_syncing.is_(False),
                    SyncStatusModel.started_at.is_(None),
                    and_(
                        SyncStatusModel.is_syncing.is_(True),
                        SyncStatusModel.started_at < now - stale_after,
                    ),
                ),
            )
            .values(is_syncing=True, started_at=now, last_error=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return (result.rowcount or 0) == 1

    async def release(self, organization_id: str, entity_type: EntityType) -> None:
        await self.db.execute(
            update(SyncStatusModel)
            .where(
                SyncStatusModel.organization_id == organization_id,
                SyncStatusModel.entity_type == EntityType(entity_type).value,
            )
            .values(is_syncing=False, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
