"""
Repositorio del espejo local (wc_products, wc_customers, wc_orders).

Una instancia trabaja sobre un solo tipo de entidad. Todas las consultas
se filtran por organization_id.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Type

from loguru import logger
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.infrastructure.database.dialect import dialect_insert
from catalog_mirror.infrastructure.database.models import (
    CustomerModel,
    MirrorMixin,
    OrderModel,
    ProductModel,
)
from catalog_mirror.infrastructure.external.woocommerce.types import (
    extract_last_modified,
    extract_remote_id,
)
from catalog_mirror.shared.constants.sync_constants import EntityType, PROVISIONAL_ID_START
from catalog_mirror.shared.exceptions.sync import ConfigurationError
from catalog_mirror.shared.utils.datetime_utils import ensure_utc, utc_now


MIRROR_MODELS: Dict[EntityType, Type[MirrorMixin]] = {
    EntityType.PRODUCTS: ProductModel,
    EntityType.CUSTOMERS: CustomerModel,
    EntityType.ORDERS: OrderModel,
}


def get_mirror_model(entity_type: EntityType) -> Type[MirrorMixin]:
    try:
        return MIRROR_MODELS[EntityType(entity_type)]
    except (KeyError, ValueError) as e:
        raise ConfigurationError(f"Tipo de entidad no soportado: {entity_type}") from e


class MirrorRepository:
    """Repositorio para las filas espejo de un tipo de entidad."""

    def __init__(self, db: AsyncSession, entity_type: EntityType):
        self.db = db
        self.entity_type = EntityType(entity_type)
        self.model = get_mirror_model(self.entity_type)

    async def get_index(self, organization_id: str) -> Dict[int, Optional[datetime]]:
        """
        Indice local {remote_id: last_modified}.

        Excluye las filas con id provisional (aun no creadas en remoto).
        """
        result = await self.db.execute(
            select(self.model.remote_id, self.model.last_modified).where(
                self.model.organization_id == organization_id,
                self.model.remote_id > 0,
            )
        )
        return {row.remote_id: ensure_utc(row.last_modified) for row in result}

    async def upsert_many(
        self,
        organization_id: str,
        payloads: Iterable[Dict[str, Any]],
        synced_at: Optional[datetime] = None,
    ) -> int:
        """
        UPSERT por (organization_id, remote_id).

        Regla de conflicto: solo actualiza si el last_modified entrante no es
        mas viejo que el guardado (o alguno de los dos es NULL). Evita pisar
        con data vieja en reintentos o corridas solapadas.

        Returns:
            int: Cantidad de payloads validos enviados al UPSERT
        """
        synced_at = synced_at or utc_now()
        rows: Dict[int, Dict[str, Any]] = {}
        for payload in payloads:
            remote_id = extract_remote_id(payload)
            if remote_id is None:
                logger.warning(f"[pull] Payload de {self.entity_type.value} sin id, se ignora")
                continue
            rows[remote_id] = {
                "organization_id": organization_id,
                "remote_id": remote_id,
                "payload": payload,
                "last_modified": extract_last_modified(payload),
                "synced_at": synced_at,
                **self.model.columns_from_payload(payload),
            }

        if not rows:
            return 0

        table = self.model.__table__
        stmt = dialect_insert(self.db, table).values(list(rows.values()))
        update_cols = {
            col: stmt.excluded[col]
            for col in next(iter(rows.values())).keys()
            if col not in ("organization_id", "remote_id")
        }
        update_cols["updated_at"] = synced_at
        stmt = stmt.on_conflict_do_update(
            index_elements=["organization_id", "remote_id"],
            set_=update_cols,
            where=or_(
                table.c.last_modified.is_(None),
                stmt.excluded.last_modified.is_(None),
                stmt.excluded.last_modified >= table.c.last_modified,
            ),
        )
        await self.db.execute(stmt)
        await self.db.flush()
        return len(rows)

    async def get(self, organization_id: str, remote_id: int) -> Optional[MirrorMixin]:
        result = await self.db.execute(
            select(self.model)
            .where(
                self.model.organization_id == organization_id,
                self.model.remote_id == remote_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list(
        self,
        organization_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> List[MirrorMixin]:
        result = await self.db.execute(
            select(self.model)
            .where(self.model.organization_id == organization_id)
            .order_by(self.model.remote_id.asc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count(self, organization_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(self.model).where(
                self.model.organization_id == organization_id
            )
        )
        return int(result.scalar_one())

    async def next_provisional_id(self, organization_id: str) -> int:
        """Siguiente id provisional (negativo) para una entidad creada localmente."""
        result = await self.db.execute(
            select(func.min(self.model.remote_id)).where(
                self.model.organization_id == organization_id
            )
        )
        current_min = result.scalar_one_or_none()
        if current_min is None or current_min > 0:
            return PROVISIONAL_ID_START
        return current_min - 1

    async def create_local(self, organization_id: str, payload: Dict[str, Any]) -> MirrorMixin:
        """
        Crea una fila local aun no existente en remoto (id provisional).
        """
        remote_id = await self.next_provisional_id(organization_id)
        row = self.model(
            organization_id=organization_id,
            remote_id=remote_id,
            payload={**payload, "id": remote_id},
            last_modified=None,
            synced_at=None,
            **self.model.columns_from_payload(payload),
        )
        self.db.add(row)
        await self.db.flush()
        return row

    async def update_local(
        self,
        organization_id: str,
        remote_id: int,
        changes: Dict[str, Any],
    ) -> Optional[MirrorMixin]:
        """Aplica un cambio de negocio local sobre el payload (merge superficial)."""
        row = await self.get(organization_id, remote_id)
        if row is None:
            return None
        payload = {**(row.payload or {}), **changes}
        row.payload = payload
        for column, value in self.model.columns_from_payload(payload).items():
            setattr(row, column, value)
        await self.db.flush()
        return row

    async def apply_remote_body(
        self,
        organization_id: str,
        entity_id: int,
        body: Optional[Dict[str, Any]],
        synced_at: Optional[datetime] = None,
    ) -> Optional[MirrorMixin]:
        """
        Refleja en el espejo la respuesta remota de un push exitoso.

        Si la fila tenia id provisional y la respuesta trae el id real, se
        reemplaza. Si ya existe otra fila con ese id (p.ej. traida por un
        pull intermedio), la fila provisional se elimina en favor de esa.
        """
        synced_at = synced_at or utc_now()
        row = await self.get(organization_id, entity_id)
        if row is None:
            return None

        new_remote_id = extract_remote_id(body or {})
        if new_remote_id is not None and new_remote_id != row.remote_id:
            existing = await self.get(organization_id, new_remote_id)
            if existing is not None:
                await self.db.delete(row)
                await self.db.flush()
                row = existing
            else:
                row.remote_id = new_remote_id
                logger.info(
                    f"[queue] {self.entity_type.value} id provisional {entity_id} -> {new_remote_id}"
                )

        if body:
            row.payload = body
            row.last_modified = extract_last_modified(body) or row.last_modified
            for column, value in self.model.columns_from_payload(body).items():
                setattr(row, column, value)
        row.synced_at = synced_at
        await self.db.flush()
        return row

    async def delete(self, organization_id: str, remote_id: int) -> bool:
        result = await self.db.execute(
            delete(self.model)
            .where(
                self.model.organization_id == organization_id,
                self.model.remote_id == remote_id,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return (result.rowcount or 0) > 0
