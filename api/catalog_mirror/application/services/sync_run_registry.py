"""
Registro en memoria de corridas de sincronizacion.

Clave: (organization_id, entity_type) -> SyncRun.

- Una sola corrida activa por clave (la segunda se rechaza con SyncAlreadyRunning).
- Los lectores (polling HTTP, CLI) reciben copias: nunca la instancia viva.
- Callbacks opcionales por clave para empujar progreso (p.ej. websockets).

Las operaciones no hacen I/O, por eso alcanza con un `threading.Lock`.
"""

from __future__ import annotations

import copy
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

from catalog_mirror.domain.entities.sync import SyncRun
from catalog_mirror.shared.constants.sync_constants import EntityType, RunKind, RunState
from catalog_mirror.shared.exceptions.sync import SyncAlreadyRunning

RunKey = Tuple[str, str]
RunCallback = Callable[[SyncRun], None]


def _key(organization_id: str, entity_type: EntityType) -> RunKey:
    return (organization_id, EntityType(entity_type).value)


class SyncRunRegistry:
    """Registro de corridas por alcance (organizacion, tipo de entidad)."""

    _runs: Dict[RunKey, SyncRun] = {}
    _callbacks: Dict[RunKey, List[RunCallback]] = {}
    _lock = threading.Lock()

    @classmethod
    def begin(
        cls,
        organization_id: str,
        entity_type: EntityType,
        kind: RunKind = RunKind.FULL,
    ) -> SyncRun:
        """
        Registra una corrida nueva en estado idle.

        Raises:
            SyncAlreadyRunning: Si ya hay una corrida activa para el alcance
        """
        key = _key(organization_id, entity_type)
        with cls._lock:
            current = cls._runs.get(key)
            if current is not None and current.is_active:
                raise SyncAlreadyRunning(organization_id, key[1])
            run = SyncRun(
                organization_id=organization_id,
                entity_type=EntityType(entity_type),
                kind=kind,
            )
            cls._runs[key] = run
        logger.debug(f"[sync] Corrida {run.run_id} registrada para {key}")
        return run

    @classmethod
    def discard(cls, run: SyncRun) -> None:
        """Quita una corrida que nunca llego a ejecutarse (claim rechazado)."""
        key = _key(run.organization_id, run.entity_type)
        with cls._lock:
            if cls._runs.get(key) is run:
                del cls._runs[key]

    @classmethod
    def get(cls, organization_id: str, entity_type: EntityType) -> Optional[SyncRun]:
        """Copia de la ultima corrida del alcance (activa o terminada)."""
        with cls._lock:
            run = cls._runs.get(_key(organization_id, entity_type))
            return copy.deepcopy(run) if run is not None else None

    @classmethod
    def active_runs(cls) -> List[str]:
        """Run ids de las corridas que aun no terminaron."""
        with cls._lock:
            return [run.run_id for run in cls._runs.values() if run.is_active]

    @classmethod
    def advance(
        cls,
        run: SyncRun,
        state: RunState,
        progress: int,
        step: str,
        **changes: Any,
    ) -> None:
        with cls._lock:
            run.advance(state, progress, step, **changes)
        cls._notify(run)

    @classmethod
    def report(cls, run: SyncRun, progress: int, step: str, **changes: Any) -> None:
        with cls._lock:
            run.report(progress, step, **changes)
        cls._notify(run)

    @classmethod
    def complete(cls, run: SyncRun, step: str, **summary: Any) -> None:
        with cls._lock:
            run.complete(step, **summary)
        cls._notify(run)

    @classmethod
    def fail(cls, run: SyncRun, reason: str) -> None:
        with cls._lock:
            run.fail(reason)
        cls._notify(run)

    @classmethod
    def register_callback(
        cls,
        organization_id: str,
        entity_type: EntityType,
        callback: RunCallback,
    ) -> None:
        """
        Registra un callback para recibir actualizaciones de la corrida.

        Args:
            organization_id: Organizacion
            entity_type: Tipo de entidad
            callback: Funcion que recibe una copia del SyncRun
        """
        key = _key(organization_id, entity_type)
        with cls._lock:
            cls._callbacks.setdefault(key, []).append(callback)

    @classmethod
    def unregister_callback(
        cls,
        organization_id: str,
        entity_type: EntityType,
        callback: RunCallback,
    ) -> None:
        key = _key(organization_id, entity_type)
        with cls._lock:
            try:
                cls._callbacks.get(key, []).remove(callback)
            except ValueError:
                pass

    @classmethod
    def _notify(cls, run: SyncRun) -> None:
        key = _key(run.organization_id, run.entity_type)
        with cls._lock:
            callbacks = list(cls._callbacks.get(key, []))
            snapshot = copy.deepcopy(run)
        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logger.warning(f"[sync] Error en callback de progreso: {e}")

    @classmethod
    def clear(cls) -> None:
        """Vacia el registro (tests)."""
        with cls._lock:
            cls._runs.clear()
            cls._callbacks.clear()
