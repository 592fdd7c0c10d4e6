"""
Tests unitarios de compute_discovery y helpers puros del dominio.
"""
from datetime import datetime, timedelta, timezone

from catalog_mirror.domain.entities.sync import (
    PendingLocalChange,
    RemoteIndexEntry,
    backoff_delay,
    collapse_pending_changes,
    compute_discovery,
    is_remote_newer,
)
from catalog_mirror.shared.constants.sync_constants import (
    ConflictType,
    EntityType,
    QueueOperation,
)


T0 = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


def _entry(remote_id: int, modified=T0) -> RemoteIndexEntry:
    return RemoteIndexEntry(remote_id=remote_id, last_modified=modified)


def _pending(item_id: int, entity_id: int, operation: QueueOperation, **data) -> PendingLocalChange:
    return PendingLocalChange(
        queue_item_id=item_id,
        entity_id=entity_id,
        operation=operation,
        data=data,
    )


def _discover(remote, local, pending=()):
    return compute_discovery(
        organization_id="org-a",
        entity_type=EntityType.PRODUCTS,
        remote_index=remote,
        local_index=local,
        pending=pending,
    )


class TestComputeDiscovery:
    """Comparacion del indice remoto con el local."""

    def test_empty_local_reports_everything_missing(self):
        result = _discover([_entry(1), _entry(2), _entry(3)], {})

        assert result.missing_ids == [1, 2, 3]
        assert result.changed_ids == []
        assert result.total_remote == 3
        assert result.total_local == 0

    def test_changed_requires_strictly_newer_remote(self):
        local = {1: T0, 2: T0, 3: T0 + timedelta(minutes=5)}
        remote = [_entry(1), _entry(2, T0 + timedelta(seconds=1)), _entry(3)]

        result = _discover(remote, local)

        assert result.missing_ids == []
        assert result.changed_ids == [2]

    def test_local_row_without_timestamp_counts_as_changed(self):
        result = _discover([_entry(7)], {7: None})

        assert result.changed_ids == [7]

    def test_missing_and_changed_are_disjoint(self):
        local = {1: T0 - timedelta(days=1)}
        result = _discover([_entry(1), _entry(2)], local)

        assert set(result.missing_ids).isdisjoint(result.changed_ids)
        assert result.ids_to_pull == [2, 1]

    def test_last_modified_is_max_remote_timestamp(self):
        newest = T0 + timedelta(hours=3)
        result = _discover([_entry(1), _entry(2, newest), _entry(3, None)], {})

        assert result.last_modified == newest

    def test_local_only_rows_are_not_reported_missing(self):
        result = _discover([_entry(1)], {1: T0, 99: T0})

        assert result.missing_ids == []
        assert result.total_local == 2


class TestPendingLocalChanges:
    """La cola pendiente es la unica fuente de cambios locales."""

    def test_create_update_delete_classification(self):
        pending = [
            _pending(1, -1, QueueOperation.CREATE, name="Nuevo"),
            _pending(2, 5, QueueOperation.UPDATE, price="10"),
            _pending(3, 6, QueueOperation.DELETE),
        ]
        result = _discover([_entry(5), _entry(6)], {5: T0, 6: T0}, pending)

        assert [c["entity_id"] for c in result.to_create_remote] == [-1]
        assert [c["entity_id"] for c in result.to_update_remote] == [5]
        assert result.to_delete_remote == [6]
        assert result.conflicts == []

    def test_create_for_existing_remote_id_is_conflict(self):
        result = _discover([_entry(5)], {5: T0}, [_pending(1, 5, QueueOperation.CREATE)])

        assert result.to_create_remote == []
        assert result.conflicts[0]["type"] == ConflictType.CREATE_CONFLICT.value

    def test_update_for_missing_remote_is_conflict(self):
        result = _discover([], {}, [_pending(1, 8, QueueOperation.UPDATE)])

        assert result.to_update_remote == []
        assert result.conflicts[0]["type"] == ConflictType.UPDATE_MISSING.value

    def test_update_changed_on_both_sides_is_flagged(self):
        local = {5: T0}
        remote = [_entry(5, T0 + timedelta(hours=1))]
        result = _discover(remote, local, [_pending(1, 5, QueueOperation.UPDATE, name="x")])

        assert result.changed_ids == [5]
        assert [c["entity_id"] for c in result.to_update_remote] == [5]
        assert result.conflicts[0]["type"] == ConflictType.CHANGED_BOTH_SIDES.value

    def test_delete_of_absent_remote_is_ignored(self):
        result = _discover([], {}, [_pending(1, 9, QueueOperation.DELETE)])

        assert result.to_delete_remote == []
        assert result.conflicts == []

    def test_pending_delete_always_wins(self):
        collapsed = collapse_pending_changes([
            _pending(1, 5, QueueOperation.DELETE),
            _pending(2, 5, QueueOperation.UPDATE, name="tarde"),
        ])

        assert collapsed[5].operation == QueueOperation.DELETE

    def test_latest_pending_change_wins(self):
        collapsed = collapse_pending_changes([
            _pending(1, 5, QueueOperation.UPDATE, name="a"),
            _pending(2, 5, QueueOperation.UPDATE, name="b"),
        ])

        assert collapsed[5].queue_item_id == 2


class TestHelpers:

    def test_backoff_is_strictly_increasing(self):
        delays = [backoff_delay(n) for n in range(1, 6)]

        assert delays[0] == timedelta(minutes=2)
        assert all(a < b for a, b in zip(delays, delays[1:]))

    def test_is_remote_newer_handles_naive_local(self):
        naive_local = T0.replace(tzinfo=None)

        assert is_remote_newer(T0 + timedelta(seconds=1), naive_local)
        assert not is_remote_newer(T0, naive_local)
        assert not is_remote_newer(None, naive_local)
