"""
Entidades de dominio del motor de sincronizacion.

Contiene value objects sin I/O (indices, resultados, corrida) y la
logica pura de comparacion remoto vs local, para poder testearla
sin base de datos ni red.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from catalog_mirror.shared.constants.sync_constants import (
    ConflictType,
    EntityType,
    QueueOperation,
    RunKind,
    RunState,
    TERMINAL_RUN_STATES,
)
from catalog_mirror.shared.utils.datetime_utils import ensure_utc, utc_now


@dataclass(frozen=True)
class RemoteIndexEntry:
    """Par (id remoto, fecha de modificacion) del indice remoto."""

    remote_id: int
    last_modified: Optional[datetime]


@dataclass(frozen=True)
class PendingLocalChange:
    """Item pendiente de la cola, visto por el discovery."""

    queue_item_id: int
    entity_id: int
    operation: QueueOperation
    data: Dict[str, Any]


@dataclass
class DiscoveryResult:
    """Resultado de comparar el indice remoto con el espejo local."""

    organization_id: str
    entity_type: EntityType
    total_remote: int = 0
    total_local: int = 0
    missing_ids: List[int] = field(default_factory=list)
    changed_ids: List[int] = field(default_factory=list)
    to_create_remote: List[Dict[str, Any]] = field(default_factory=list)
    to_update_remote: List[Dict[str, Any]] = field(default_factory=list)
    to_delete_remote: List[int] = field(default_factory=list)
    conflicts: List[Dict[str, Any]] = field(default_factory=list)
    last_modified: Optional[datetime] = None

    @property
    def ids_to_pull(self) -> List[int]:
        """missing ∪ changed, sin duplicados y en orden de descubrimiento."""
        return list(dict.fromkeys([*self.missing_ids, *self.changed_ids]))

    def to_metadata(self) -> Dict[str, Any]:
        """Serializa el resultado para la columna sync_status.metadata."""
        return {
            "remote_count": self.total_remote,
            "local_count": self.total_local,
            "missing_ids": list(self.missing_ids),
            "changed_ids": list(self.changed_ids),
            "missing_count": len(self.missing_ids),
            "changed_count": len(self.changed_ids),
            "to_create_remote": len(self.to_create_remote),
            "to_update_remote": len(self.to_update_remote),
            "to_delete_remote": len(self.to_delete_remote),
            "conflicts": len(self.conflicts),
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }


@dataclass
class PullResult:
    """Contabilidad de un pull: processed + errors == len(ids)."""

    requested: int = 0
    processed: int = 0
    errors: int = 0
    failed_ids: List[int] = field(default_factory=list)


@dataclass
class QueueProcessResult:
    """Resultado agregado de procesar un lote de la cola."""

    processed: int = 0
    errors: int = 0
    skipped: int = 0

    @property
    def selected(self) -> int:
        return self.processed + self.errors + self.skipped

    def merge(self, other: "QueueProcessResult") -> None:
        self.processed += other.processed
        self.errors += other.errors
        self.skipped += other.skipped


def backoff_delay(attempts: int) -> timedelta:
    """Espera antes del siguiente intento: 2^attempts minutos."""
    return timedelta(minutes=2 ** attempts)


def is_remote_newer(remote: Optional[datetime], local: Optional[datetime]) -> bool:
    """
    True si la fecha remota es estrictamente mas nueva que la local.

    Una fila local sin fecha se considera desactualizada si el remoto
    reporta alguna fecha.
    """
    if remote is None:
        return False
    if local is None:
        return True
    return ensure_utc(remote) > ensure_utc(local)


def collapse_pending_changes(
    pending: Iterable[PendingLocalChange],
) -> Dict[int, PendingLocalChange]:
    """
    Reduce los items pendientes a uno por entidad.

    Los items llegan en orden de creacion: gana el ultimo, salvo que
    ya exista un delete pendiente (un delete nunca se reemplaza).
    """
    collapsed: Dict[int, PendingLocalChange] = {}
    for change in pending:
        current = collapsed.get(change.entity_id)
        if current is not None and current.operation == QueueOperation.DELETE:
            continue
        collapsed[change.entity_id] = change
    return collapsed


def compute_discovery(
    *,
    organization_id: str,
    entity_type: EntityType,
    remote_index: Iterable[RemoteIndexEntry],
    local_index: Mapping[int, Optional[datetime]],
    pending: Iterable[PendingLocalChange] = (),
) -> DiscoveryResult:
    """
    Compara el indice remoto con el local y con la cola pendiente.

    - missing_ids: ids remotos ausentes localmente
    - changed_ids: ids en ambos lados con fecha remota estrictamente mas nueva
    - to_*_remote: cambios locales pendientes (la cola es la unica fuente
      de "suciedad" local)
    - conflicts: se reportan, no se resuelven
    """
    result = DiscoveryResult(
        organization_id=organization_id,
        entity_type=entity_type,
        total_local=len(local_index),
    )

    remote_map: Dict[int, Optional[datetime]] = {}
    for entry in remote_index:
        remote_map[entry.remote_id] = entry.last_modified
        if entry.remote_id not in local_index:
            result.missing_ids.append(entry.remote_id)
        elif is_remote_newer(entry.last_modified, local_index[entry.remote_id]):
            result.changed_ids.append(entry.remote_id)

        if entry.last_modified is not None:
            modified = ensure_utc(entry.last_modified)
            if result.last_modified is None or modified > result.last_modified:
                result.last_modified = modified

    result.total_remote = len(remote_map)
    changed = set(result.changed_ids)

    for entity_id, change in collapse_pending_changes(pending).items():
        item = {
            "entity_id": entity_id,
            "queue_item_id": change.queue_item_id,
            "data": change.data,
        }
        exists_remotely = entity_id in remote_map

        if change.operation == QueueOperation.CREATE:
            if exists_remotely:
                result.conflicts.append({
                    **item,
                    "type": ConflictType.CREATE_CONFLICT.value,
                })
            else:
                result.to_create_remote.append(item)

        elif change.operation == QueueOperation.UPDATE:
            if not exists_remotely:
                result.conflicts.append({
                    **item,
                    "type": ConflictType.UPDATE_MISSING.value,
                })
                continue
            result.to_update_remote.append(item)
            if entity_id in changed:
                # Cambiado en ambos lados: el pull gana primero, el push puede pisarlo despues
                result.conflicts.append({
                    **item,
                    "type": ConflictType.CHANGED_BOTH_SIDES.value,
                    "remote_last_modified": (
                        remote_map[entity_id].isoformat() if remote_map[entity_id] else None
                    ),
                })

        elif change.operation == QueueOperation.DELETE:
            if exists_remotely:
                result.to_delete_remote.append(entity_id)

    return result


@dataclass
class SyncRun:
    """
    Corrida del orquestador para un (organizacion, tipo de entidad).

    Maquina de estados:
        idle -> discovering -> pulling -> pushing -> completed
        cualquier estado activo -> failed(reason)

    El progreso es monotono: nunca retrocede.
    """

    organization_id: str
    entity_type: EntityType
    kind: RunKind = RunKind.FULL
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: RunState = RunState.IDLE
    progress: int = 0
    current_step: str = ""
    items_processed: int = 0
    total_items: int = 0
    error: Optional[str] = None
    summary: Dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.state not in TERMINAL_RUN_STATES

    def advance(
        self,
        state: RunState,
        progress: int,
        step: str,
        **changes: Any,
    ) -> None:
        """Mueve la corrida a un estado activo y actualiza el progreso."""
        if not self.is_active:
            raise ValueError(f"La corrida {self.run_id} ya termino ({self.state.value})")
        if state in TERMINAL_RUN_STATES:
            raise ValueError("Usar complete() o fail() para estados terminales")
        self.state = state
        self.report(progress, step, **changes)

    def report(self, progress: int, step: str, **changes: Any) -> None:
        """Actualiza progreso/paso sin cambiar de estado."""
        self.progress = max(self.progress, min(int(progress), 100))
        self.current_step = step
        for key, value in changes.items():
            setattr(self, key, value)
        self.updated_at = utc_now()

    def complete(self, step: str, **summary: Any) -> None:
        if not self.is_active:
            raise ValueError(f"La corrida {self.run_id} ya termino ({self.state.value})")
        self.state = RunState.COMPLETED
        self.summary.update(summary)
        self.report(100, step)
        self.finished_at = self.updated_at

    def fail(self, reason: str) -> None:
        if not self.is_active:
            return
        self.state = RunState.FAILED
        self.error = reason
        self.current_step = "Error en la sincronizacion"
        self.updated_at = utc_now()
        self.finished_at = self.updated_at
