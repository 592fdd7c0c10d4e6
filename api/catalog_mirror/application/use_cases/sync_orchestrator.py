"""
Orquestador de sincronizacion: Discovery -> Pull -> Push.

Patron asincrono (igual que los jobs de larga duracion):
- `start_*` toma el claim, registra la corrida y la ejecuta en background.
- El cliente hace polling de `get_run` hasta que la corrida termine.

Estados: idle -> discovering -> pulling -> pushing -> completed | failed
Progreso: 10 / 30 / (30..80 por lote) / 80 / 100
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Awaitable, Callable, Optional, Sequence, Set

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_mirror.application.dto.sync_dto import SyncStatusDTO
from catalog_mirror.application.services.remote_resource_resolver import ResourceFactory
from catalog_mirror.application.services.sync_run_registry import SyncRunRegistry
from catalog_mirror.application.use_cases.discovery_use_cases import DiscoveryUseCases
from catalog_mirror.application.use_cases.pull_use_cases import PullUseCases
from catalog_mirror.application.use_cases.queue_use_cases import SyncQueueUseCases
from catalog_mirror.core.config import settings
from catalog_mirror.domain.entities.sync import (
    DiscoveryResult,
    PullResult,
    QueueProcessResult,
    SyncRun,
)
from catalog_mirror.infrastructure.database.session import AsyncSessionLocal
from catalog_mirror.infrastructure.repositories.sync_status_repository import SyncStatusRepository
from catalog_mirror.shared.constants.sync_constants import (
    EntityType,
    PROGRESS_DISCOVERING,
    PROGRESS_PULLING,
    PROGRESS_PUSHING,
    RunKind,
    RunState,
    SyncStatusState,
)
from catalog_mirror.shared.exceptions.domain import EntityNotFoundException
from catalog_mirror.shared.exceptions.sync import LocalStoreError, SyncAlreadyRunning


def pull_progress(done: int, total: int) -> int:
    """Progreso del pull mapeado al tramo 30..80."""
    if total <= 0:
        return PROGRESS_PUSHING
    span = PROGRESS_PUSHING - PROGRESS_PULLING
    return PROGRESS_PULLING + int(span * min(done, total) / total)


class SyncOrchestrator:
    """
    Orquesta las etapas del motor para un (organizacion, tipo de entidad).

    Una sola corrida activa por alcance: la garantiza el registro en memoria
    y, entre procesos, el claim condicional sobre sync_status.is_syncing.
    """

    _background_tasks: Set[asyncio.Task] = set()

    def __init__(
        self,
        db: AsyncSession,
        resource_factory: Optional[ResourceFactory] = None,
        session_factory: async_sessionmaker = AsyncSessionLocal,
    ):
        self.db = db
        self._resource_factory = resource_factory
        self._session_factory = session_factory
        self.discovery = DiscoveryUseCases(db, resource_factory)
        self.pull = PullUseCases(db, resource_factory)
        self.queue = SyncQueueUseCases(db, resource_factory)
        self.status_repository = SyncStatusRepository(db)

    # ------------------------------------------------------------------
    # API publica
    # ------------------------------------------------------------------

    async def full_sync(self, organization_id: str, entity_type: EntityType) -> SyncRun:
        """
        Discovery -> Pull (missing + changed) -> Push de la cola del alcance.

        Returns:
            SyncRun: Copia de la corrida terminada

        Raises:
            SyncAlreadyRunning: Ya hay una corrida activa para el alcance
            SyncException: Cualquier fallo de etapa (la corrida queda en failed)
        """
        run = await self._acquire(organization_id, entity_type, RunKind.FULL)
        await self._execute(run, self._run_full)
        return SyncRunRegistry.get(organization_id, entity_type)

    async def sync_specific(
        self,
        organization_id: str,
        entity_type: EntityType,
        ids: Sequence[int],
        batch_size: Optional[int] = None,
    ) -> SyncRun:
        """Pull de ids puntuales, sin discovery ni push."""
        run = await self._acquire(organization_id, entity_type, RunKind.SPECIFIC)
        await self._execute(run, lambda r: self._run_specific(r, list(ids), batch_size))
        return SyncRunRegistry.get(organization_id, entity_type)

    async def discover(self, organization_id: str, entity_type: EntityType) -> DiscoveryResult:
        """Discovery aislado, bajo el mismo control de concurrencia."""
        run = await self._acquire(organization_id, entity_type, RunKind.DISCOVER)
        holder = {}

        async def _run(r: SyncRun) -> None:
            SyncRunRegistry.advance(r, RunState.DISCOVERING, PROGRESS_DISCOVERING, "Descubriendo cambios")
            holder["result"] = await self.discovery.discover(organization_id, r.entity_type)
            SyncRunRegistry.complete(r, "Discovery completado", discovery=self._discovery_summary(holder["result"]))

        await self._execute(run, _run)
        return holder["result"]

    async def pull_ids(
        self,
        organization_id: str,
        entity_type: EntityType,
        ids: Sequence[int],
        batch_size: Optional[int] = None,
    ) -> PullResult:
        """
        Pull aislado de ids puntuales, bajo el mismo control de concurrencia.

        Raises:
            SyncAlreadyRunning: Ya hay una corrida activa para el alcance
        """
        run = await self._acquire(organization_id, entity_type, RunKind.PULL)
        holder = {}

        async def _run(r: SyncRun) -> None:
            await self._run_specific(r, list(ids), batch_size, holder)

        await self._execute(run, _run)
        return holder["result"]

    async def start_full_sync(self, organization_id: str, entity_type: EntityType) -> SyncRun:
        """Toma el claim y ejecuta la sincronizacion completa en background."""
        run = await self._acquire(organization_id, entity_type, RunKind.FULL)
        self._spawn(run, lambda orchestrator, r: orchestrator._execute(r, orchestrator._run_full))
        return SyncRunRegistry.get(organization_id, entity_type)

    async def start_sync_specific(
        self,
        organization_id: str,
        entity_type: EntityType,
        ids: Sequence[int],
        batch_size: Optional[int] = None,
    ) -> SyncRun:
        run = await self._acquire(organization_id, entity_type, RunKind.SPECIFIC)
        ids = list(ids)
        self._spawn(
            run,
            lambda orchestrator, r: orchestrator._execute(
                r, lambda rr: orchestrator._run_specific(rr, ids, batch_size)
            ),
        )
        return SyncRunRegistry.get(organization_id, entity_type)

    @staticmethod
    def get_run(organization_id: str, entity_type: EntityType) -> Optional[SyncRun]:
        return SyncRunRegistry.get(organization_id, entity_type)

    async def get_status(self, organization_id: str, entity_type: EntityType) -> SyncStatusDTO:
        """
        Raises:
            EntityNotFoundException: Si el alcance nunca se sincronizo
        """
        entity_type = EntityType(entity_type)
        row = await self.status_repository.get(organization_id, entity_type)
        if row is None:
            raise EntityNotFoundException("SyncStatus", f"{organization_id}/{entity_type.value}")
        return SyncStatusDTO.model_validate(row)

    # ------------------------------------------------------------------
    # Etapas
    # ------------------------------------------------------------------

    async def _run_full(self, run: SyncRun) -> None:
        organization_id, entity_type = run.organization_id, run.entity_type

        SyncRunRegistry.advance(run, RunState.DISCOVERING, PROGRESS_DISCOVERING, "Descubriendo cambios")
        discovery = await self.discovery.discover(organization_id, entity_type)

        ids = discovery.ids_to_pull
        SyncRunRegistry.advance(
            run,
            RunState.PULLING,
            PROGRESS_PULLING,
            f"Descargando {len(ids)} registros",
            total_items=len(ids),
            items_processed=0,
        )
        pull_result = await self.pull.pull(
            organization_id,
            entity_type,
            ids,
            progress_callback=self._pull_reporter(run),
        )

        SyncRunRegistry.advance(run, RunState.PUSHING, PROGRESS_PUSHING, "Enviando cambios locales")
        push_result = await self._drain_queue(organization_id, entity_type)

        SyncRunRegistry.complete(
            run,
            "Sincronizacion completada",
            discovery=self._discovery_summary(discovery),
            pull={
                "processed": pull_result.processed,
                "errors": pull_result.errors,
                "failed_ids": pull_result.failed_ids,
            },
            push={
                "processed": push_result.processed,
                "errors": push_result.errors,
                "skipped": push_result.skipped,
            },
        )

    async def _run_specific(
        self,
        run: SyncRun,
        ids: list,
        batch_size: Optional[int],
        holder: Optional[dict] = None,
    ) -> None:
        SyncRunRegistry.advance(
            run,
            RunState.PULLING,
            PROGRESS_PULLING,
            f"Descargando {len(ids)} registros",
            total_items=len(ids),
            items_processed=0,
        )
        pull_result = await self.pull.pull(
            run.organization_id,
            run.entity_type,
            ids,
            batch_size=batch_size,
            progress_callback=self._pull_reporter(run),
        )
        if holder is not None:
            holder["result"] = pull_result
        SyncRunRegistry.complete(
            run,
            "Sincronizacion completada",
            pull={
                "processed": pull_result.processed,
                "errors": pull_result.errors,
                "failed_ids": pull_result.failed_ids,
            },
        )

    async def _drain_queue(self, organization_id: str, entity_type: EntityType) -> QueueProcessResult:
        """
        Procesa lotes de la cola del alcance hasta que no quede nada vencido
        o una ronda no avance (solo items omitidos).
        """
        total = QueueProcessResult()
        batch_size = settings.SYNC_QUEUE_BATCH_SIZE
        for _ in range(settings.SYNC_MAX_PUSH_ROUNDS):
            batch = await self.queue.process_queue(
                organization_id,
                batch_size=batch_size,
                entity_type=entity_type.value,
            )
            total.merge(batch)
            if batch.selected < batch_size or batch.processed + batch.errors == 0:
                break
        else:
            logger.warning(
                f"[sync] {organization_id}/{entity_type.value}: se alcanzo el maximo de "
                f"{settings.SYNC_MAX_PUSH_ROUNDS} rondas de push"
            )
        return total

    @staticmethod
    def _pull_reporter(run: SyncRun) -> Callable[[int, int], None]:
        def report(done: int, total: int) -> None:
            SyncRunRegistry.report(
                run,
                pull_progress(done, total),
                f"Descargados {done}/{total}",
                items_processed=done,
            )
        return report

    @staticmethod
    def _discovery_summary(discovery: DiscoveryResult) -> dict:
        return {
            "total_remote": discovery.total_remote,
            "total_local": discovery.total_local,
            "missing": len(discovery.missing_ids),
            "changed": len(discovery.changed_ids),
            "to_create_remote": len(discovery.to_create_remote),
            "to_update_remote": len(discovery.to_update_remote),
            "to_delete_remote": len(discovery.to_delete_remote),
            "conflicts": discovery.conflicts,
        }

    # ------------------------------------------------------------------
    # Concurrencia y ciclo de vida
    # ------------------------------------------------------------------

    async def _acquire(
        self,
        organization_id: str,
        entity_type: EntityType,
        kind: RunKind,
    ) -> SyncRun:
        """
        Registra la corrida y toma el claim de sync_status.

        Raises:
            SyncAlreadyRunning: Si el registro o el claim estan tomados
        """
        entity_type = EntityType(entity_type)
        run = SyncRunRegistry.begin(organization_id, entity_type, kind)
        try:
            claimed = await self.status_repository.try_claim(
                organization_id,
                entity_type,
                timedelta(minutes=settings.SYNC_STALE_AFTER_MINUTES),
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            SyncRunRegistry.discard(run)
            raise LocalStoreError(f"No se pudo tomar el claim de sincronizacion: {e}") from e

        if not claimed:
            SyncRunRegistry.discard(run)
            logger.warning(f"[sync] {organization_id}/{entity_type.value}: claim tomado por otro proceso")
            raise SyncAlreadyRunning(organization_id, entity_type.value)

        logger.info(f"[sync] {organization_id}/{entity_type.value}: corrida {run.run_id} ({kind.value})")
        return run

    async def _execute(self, run: SyncRun, body: Callable[[SyncRun], Awaitable[None]]) -> None:
        """Ejecuta las etapas; ante un fallo marca la corrida failed y relanza."""
        try:
            await body(run)
        except Exception as e:
            reason = getattr(e, "message", None) or str(e) or e.__class__.__name__
            SyncRunRegistry.fail(run, reason)
            logger.error(f"[sync] Corrida {run.run_id} fallo: {reason}")
            await self._record_failure(run, reason)
            raise
        finally:
            await self._release(run)

    async def _record_failure(self, run: SyncRun, reason: str) -> None:
        try:
            await self.db.rollback()
            current = await self.status_repository.get(run.organization_id, run.entity_type)
            # Discovery ya deja su propio estado de error; no se pisa
            if current is None or current.status != SyncStatusState.ERROR.value:
                await self.status_repository.upsert(
                    run.organization_id,
                    run.entity_type,
                    status=SyncStatusState.ERROR.value,
                    last_error=reason,
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"[sync] No se pudo registrar el fallo de la corrida {run.run_id}: {e}")

    async def _release(self, run: SyncRun) -> None:
        try:
            await self.status_repository.release(run.organization_id, run.entity_type)
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"[sync] No se pudo liberar el claim de {run.organization_id}/{run.entity_type.value}: {e}")

    def _spawn(
        self,
        run: SyncRun,
        body: Callable[["SyncOrchestrator", SyncRun], Awaitable[None]],
    ) -> None:
        """Ejecuta la corrida en background con su propia sesion de base de datos."""

        async def _runner() -> None:
            async with self._session_factory() as db:
                orchestrator = SyncOrchestrator(
                    db,
                    resource_factory=self._resource_factory,
                    session_factory=self._session_factory,
                )
                try:
                    await body(orchestrator, run)
                except Exception as e:
                    # El fallo ya quedo registrado en la corrida y en sync_status
                    logger.debug(f"[sync] Corrida en background {run.run_id} termino con error: {e}")

        task = asyncio.create_task(_runner())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
