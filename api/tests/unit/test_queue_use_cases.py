"""
Tests de SyncQueueUseCases: orden, reintentos con backoff, ids provisionales
e intervencion del operador.
"""
from datetime import timedelta

import pytest

from catalog_mirror.application.use_cases.queue_use_cases import SyncQueueUseCases
from catalog_mirror.core.config import settings
from catalog_mirror.infrastructure.database.models import SyncQueueModel
from catalog_mirror.infrastructure.repositories.mirror_repository import MirrorRepository
from catalog_mirror.shared.constants.sync_constants import EntityType, QueueStatus
from catalog_mirror.shared.exceptions.domain import (
    EntityNotFoundException,
    InvalidQueueTransitionException,
    ValidationException,
)
from catalog_mirror.shared.exceptions.sync import (
    ConfigurationError,
    RemoteRejected,
    RemoteUnavailable,
)
from catalog_mirror.shared.utils.datetime_utils import ensure_utc

from tests.fakes import ORG_ID, OTHER_ORG_ID


async def _seed_remote_and_mirror(db_session, remote, entity_type, remote_id, **fields):
    """Entidad presente en remoto y en el espejo."""
    body = remote[entity_type].add(remote_id, **fields)
    await MirrorRepository(db_session, entity_type).upsert_many(ORG_ID, [dict(body)])
    await db_session.commit()
    return body


def _queue(db_session, remote) -> SyncQueueUseCases:
    return SyncQueueUseCases(db_session, remote)


class TestAddToQueue:

    @pytest.mark.asyncio
    async def test_delete_gets_higher_default_priority(self, db_session, clock, remote):
        queue = _queue(db_session, remote)

        update = await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "x"})
        delete = await queue.add_to_queue(ORG_ID, "products", 2, "delete")

        assert update.priority == 0
        assert delete.priority == settings.SYNC_DELETE_PRIORITY
        assert update.status == QueueStatus.PENDING.value
        assert update.attempts == 0
        assert update.max_attempts == settings.SYNC_MAX_ATTEMPTS

    @pytest.mark.asyncio
    async def test_invalid_operation_is_rejected(self, db_session, remote):
        with pytest.raises(ValidationException):
            await _queue(db_session, remote).add_to_queue(ORG_ID, "products", 1, "upsert")

    @pytest.mark.asyncio
    async def test_invalid_entity_type_is_rejected(self, db_session, remote):
        with pytest.raises(ValidationException):
            await _queue(db_session, remote).add_to_queue(ORG_ID, "coupons", 1, "update")


class TestProcessQueue:

    @pytest.mark.asyncio
    async def test_priority_item_is_dispatched_first(self, db_session, organization, clock, remote):
        for remote_id in (1, 2, 3):
            await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, remote_id)
        queue = _queue(db_session, remote)
        await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "a"}, priority=0)
        await queue.add_to_queue(ORG_ID, "products", 2, "update", {"name": "b"}, priority=0)
        await queue.add_to_queue(ORG_ID, "products", 3, "delete", priority=10)

        result = await queue.process_queue(ORG_ID)

        assert result.processed == 3
        assert remote[EntityType.PRODUCTS].log == [("delete", 3), ("update", 1), ("update", 2)]

    @pytest.mark.asyncio
    async def test_retry_with_backoff_until_success(self, db_session, organization, clock, remote):
        """Falla dos veces y completa en el tercer intento."""
        await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, 42, name="Antes")
        remote[EntityType.PRODUCTS].push_failures = [
            RemoteUnavailable("timeout"),
            RemoteUnavailable("HTTP 503", http_status=503),
        ]
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(
            ORG_ID, "products", 42, "update", {"name": "Despues"}, max_attempts=3
        )

        schedules = []
        for _ in range(3):
            await queue.process_queue(ORG_ID)
            row = await queue.repository.get(ORG_ID, item.id)
            if row.status == QueueStatus.PENDING.value:
                schedules.append(ensure_utc(row.scheduled_at))
                # Antes del vencimiento el item no se selecciona
                early = await queue.process_queue(ORG_ID)
                assert early.selected == 0
                clock.now = ensure_utc(row.scheduled_at) + timedelta(seconds=1)

        row = await queue.repository.get(ORG_ID, item.id)
        assert row.status == QueueStatus.COMPLETED.value
        assert row.attempts == 3
        assert row.last_error is None
        assert row.processed_at is not None
        assert len(schedules) == 2
        assert schedules[0] < schedules[1]
        mirror_row = await MirrorRepository(db_session, EntityType.PRODUCTS).get(ORG_ID, 42)
        assert mirror_row.name == "Despues"
        assert mirror_row.synced_at is not None

    @pytest.mark.asyncio
    async def test_first_retry_waits_two_minutes(self, db_session, organization, clock, remote):
        await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, 1)
        remote[EntityType.PRODUCTS].push_failures = [RemoteUnavailable("timeout")]
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "x"})

        result = await queue.process_queue(ORG_ID)

        row = await queue.repository.get(ORG_ID, item.id)
        assert result.errors == 1
        assert ensure_utc(row.scheduled_at) == clock.now + timedelta(minutes=2)
        assert row.last_error == "timeout"

    @pytest.mark.asyncio
    async def test_exhausted_item_fails_permanently(self, db_session, organization, clock, remote):
        await _seed_remote_and_mirror(db_session, remote, EntityType.ORDERS, 7)
        resource = remote[EntityType.ORDERS]
        resource.push_failures = [RemoteUnavailable("caido")] * 3
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "orders", 7, "update", {"status": "completed"})

        for _ in range(3):
            await queue.process_queue(ORG_ID)
            clock.advance(timedelta(hours=1))

        row = await queue.repository.get(ORG_ID, item.id)
        assert row.status == QueueStatus.FAILED.value
        assert row.attempts == 3

        clock.advance(timedelta(days=1))
        again = await queue.process_queue(ORG_ID)
        assert again.selected == 0
        assert len(resource.log) == 3

    @pytest.mark.asyncio
    async def test_max_retries_caps_item_limit(self, db_session, organization, clock, remote):
        await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, 1)
        remote[EntityType.PRODUCTS].push_failures = [RemoteUnavailable("timeout")]
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(
            ORG_ID, "products", 1, "update", {"name": "x"}, max_attempts=5
        )

        await queue.process_queue(ORG_ID, max_retries=1)

        row = await queue.repository.get(ORG_ID, item.id)
        assert row.status == QueueStatus.FAILED.value

    @pytest.mark.asyncio
    async def test_rejected_is_retried_by_default(self, db_session, organization, clock, remote):
        await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, 1)
        remote[EntityType.PRODUCTS].push_failures = [RemoteRejected("SKU invalido", http_status=400)]
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "products", 1, "update", {"sku": ""})

        await queue.process_queue(ORG_ID)

        row = await queue.repository.get(ORG_ID, item.id)
        assert row.status == QueueStatus.PENDING.value
        assert row.last_error == "SKU invalido"

    @pytest.mark.asyncio
    async def test_fail_fast_on_rejected(self, db_session, organization, clock, remote, monkeypatch):
        monkeypatch.setattr(settings, "SYNC_FAIL_FAST_ON_REJECTED", True)
        await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, 1)
        remote[EntityType.PRODUCTS].push_failures = [RemoteRejected("SKU invalido", http_status=400)]
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "products", 1, "update", {"sku": ""})

        await queue.process_queue(ORG_ID)

        row = await queue.repository.get(ORG_ID, item.id)
        assert row.status == QueueStatus.FAILED.value
        assert row.attempts == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_batch(self, db_session, organization, clock, remote):
        await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, 1)
        await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, 2)
        remote[EntityType.PRODUCTS].push_failures = [RemoteUnavailable("timeout")]
        queue = _queue(db_session, remote)
        await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "a"})
        await queue.add_to_queue(ORG_ID, "products", 2, "update", {"name": "b"})

        result = await queue.process_queue(ORG_ID)

        assert (result.processed, result.errors, result.skipped) == (1, 1, 0)

    @pytest.mark.asyncio
    async def test_unknown_entity_type_is_skipped(self, db_session, organization, clock, remote):
        db_session.add(SyncQueueModel(
            organization_id=ORG_ID,
            entity_type="coupons",
            entity_id=1,
            operation="update",
            data={},
            status=QueueStatus.PENDING.value,
            attempts=0,
            max_attempts=3,
            priority=0,
            scheduled_at=clock.now,
            created_at=clock.now,
        ))
        await db_session.commit()
        queue = _queue(db_session, remote)

        result = await queue.process_queue(ORG_ID)

        assert result.skipped == 1
        rows = await queue.repository.list(ORG_ID)
        assert rows[0].status == QueueStatus.PENDING.value
        assert rows[0].attempts == 0

    @pytest.mark.asyncio
    async def test_missing_integration_leaves_queue_untouched(self, db_session, clock, remote):
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue("sin-org", "products", 1, "update", {"name": "x"})

        with pytest.raises(ConfigurationError):
            await queue.process_queue("sin-org")

        row = await queue.repository.get("sin-org", item.id)
        assert row.status == QueueStatus.PENDING.value
        assert row.attempts == 0

    @pytest.mark.asyncio
    async def test_only_processes_own_organization(
        self, db_session, organization, other_organization, clock, remote
    ):
        queue = _queue(db_session, remote)
        foreign = await queue.add_to_queue(OTHER_ORG_ID, "products", 1, "delete")

        result = await queue.process_queue(ORG_ID)

        assert result.selected == 0
        row = await queue.repository.get(OTHER_ORG_ID, foreign.id)
        assert row.status == QueueStatus.PENDING.value
        assert await queue.repository.get(ORG_ID, foreign.id) is None

    @pytest.mark.asyncio
    async def test_entity_type_filter(self, db_session, organization, clock, remote):
        await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, 1)
        await _seed_remote_and_mirror(db_session, remote, EntityType.ORDERS, 1)
        queue = _queue(db_session, remote)
        await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "a"})
        await queue.add_to_queue(ORG_ID, "orders", 1, "update", {"status": "completed"})

        result = await queue.process_queue(ORG_ID, entity_type="orders")

        assert result.processed == 1
        assert remote[EntityType.PRODUCTS].log == []


class TestLocalMutations:

    @pytest.mark.asyncio
    async def test_create_backfills_provisional_id(self, db_session, organization, clock, remote):
        queue = _queue(db_session, remote)
        created = await queue.record_local_create(ORG_ID, "products", {"name": "Nuevo"})
        await queue.record_local_update(ORG_ID, "products", created.remote_id, {"price": "5.00"})
        assert created.remote_id < 0

        result = await queue.process_queue(ORG_ID)

        resource = remote[EntityType.PRODUCTS]
        new_id = resource.created[0]["id"]
        assert result.processed == 2
        assert resource.log == [("create", None), ("update", new_id)]
        mirror = MirrorRepository(db_session, EntityType.PRODUCTS)
        assert await mirror.get(ORG_ID, created.remote_id) is None
        row = await mirror.get(ORG_ID, new_id)
        assert row.payload["price"] == "5.00"
        assert row.synced_at is not None

    @pytest.mark.asyncio
    async def test_provisional_ids_decrease(self, db_session, organization, clock, remote):
        queue = _queue(db_session, remote)

        first = await queue.record_local_create(ORG_ID, "customers", {"email": "a@example.com"})
        second = await queue.record_local_create(ORG_ID, "customers", {"email": "b@example.com"})

        assert (first.remote_id, second.remote_id) == (-1, -2)

    @pytest.mark.asyncio
    async def test_delete_removes_row_after_remote_confirms(self, db_session, organization, clock, remote):
        await _seed_remote_and_mirror(db_session, remote, EntityType.CUSTOMERS, 9)
        queue = _queue(db_session, remote)
        await queue.record_local_delete(ORG_ID, "customers", 9)
        mirror = MirrorRepository(db_session, EntityType.CUSTOMERS)
        assert await mirror.get(ORG_ID, 9) is not None

        await queue.process_queue(ORG_ID)

        assert await mirror.get(ORG_ID, 9) is None
        assert remote[EntityType.CUSTOMERS].deleted == [9]

    @pytest.mark.asyncio
    async def test_delete_of_already_deleted_remote_succeeds(self, db_session, organization, clock, remote):
        await _seed_remote_and_mirror(db_session, remote, EntityType.CUSTOMERS, 9)
        remote[EntityType.CUSTOMERS].records.pop(9)
        queue = _queue(db_session, remote)
        item = await queue.record_local_delete(ORG_ID, "customers", 9)

        result = await queue.process_queue(ORG_ID)

        assert result.processed == 1
        row = await queue.repository.get(ORG_ID, item.id)
        assert row.status == QueueStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_delete_of_provisional_row_never_reaches_remote(
        self, db_session, organization, clock, remote
    ):
        queue = _queue(db_session, remote)
        created = await queue.record_local_create(ORG_ID, "products", {"name": "Borrador"})
        await queue.record_local_update(ORG_ID, "products", created.remote_id, {"price": "1.00"})

        queued = await queue.record_local_delete(ORG_ID, "products", created.remote_id)
        result = await queue.process_queue(ORG_ID)

        resource = remote[EntityType.PRODUCTS]
        assert queued is None
        assert result.processed == result.errors == 0
        assert resource.created == []
        assert resource.log == []
        assert resource.records == {}
        assert await queue.list_queue_items(ORG_ID) == []
        mirror = MirrorRepository(db_session, EntityType.PRODUCTS)
        assert await mirror.get(ORG_ID, created.remote_id) is None

    @pytest.mark.asyncio
    async def test_delete_of_provisional_row_discards_failed_create(
        self, db_session, organization, clock, remote
    ):
        remote[EntityType.PRODUCTS].push_failures = [RemoteRejected("SKU duplicado", http_status=400)]
        queue = _queue(db_session, remote)
        created = await queue.record_local_create(ORG_ID, "products", {"name": "Borrador"})
        await queue.process_queue(ORG_ID, max_retries=1)

        await queue.record_local_delete(ORG_ID, "products", created.remote_id)

        summary = await queue.get_queue_status(ORG_ID)
        assert summary.by_status[QueueStatus.FAILED.value] == 0
        assert summary.by_status[QueueStatus.PENDING.value] == 0

    @pytest.mark.asyncio
    async def test_provisional_delete_keeps_other_entities_queued(
        self, db_session, organization, clock, remote
    ):
        queue = _queue(db_session, remote)
        doomed = await queue.record_local_create(ORG_ID, "products", {"name": "Borrador"})
        kept = await queue.record_local_create(ORG_ID, "products", {"name": "Otro"})

        await queue.record_local_delete(ORG_ID, "products", doomed.remote_id)

        items = await queue.list_queue_items(ORG_ID)
        assert [(i.entity_id, i.operation) for i in items] == [(kept.remote_id, "create")]

    @pytest.mark.asyncio
    async def test_update_on_provisional_id_fails_the_item(self, db_session, organization, clock, remote):
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "products", -5, "update", {"name": "x"})

        result = await queue.process_queue(ORG_ID)

        row = await queue.repository.get(ORG_ID, item.id)
        assert result.errors == 1
        assert row.status == QueueStatus.PENDING.value
        assert "provisional" in row.last_error

    @pytest.mark.asyncio
    async def test_update_of_unknown_row_raises(self, db_session, organization, remote):
        with pytest.raises(EntityNotFoundException):
            await _queue(db_session, remote).record_local_update(ORG_ID, "products", 404, {"name": "x"})


class TestOperatorIntervention:

    async def _failed_item(self, db_session, remote):
        await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, 1)
        remote[EntityType.PRODUCTS].push_failures = [RemoteUnavailable("caido")]
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "x"}, max_attempts=1)
        await queue.process_queue(ORG_ID)
        return queue, item

    @pytest.mark.asyncio
    async def test_requeue_failed_item(self, db_session, organization, clock, remote):
        queue, item = await self._failed_item(db_session, remote)

        requeued = await queue.requeue_item(ORG_ID, item.id)

        assert requeued.status == QueueStatus.PENDING.value
        assert requeued.attempts == 0
        assert requeued.last_error is None
        result = await queue.process_queue(ORG_ID)
        assert result.processed == 1

    @pytest.mark.asyncio
    async def test_requeue_requires_failed_status(self, db_session, organization, clock, remote):
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "x"})

        with pytest.raises(InvalidQueueTransitionException):
            await queue.requeue_item(ORG_ID, item.id)

    @pytest.mark.asyncio
    async def test_requeue_from_other_organization_is_not_found(
        self, db_session, organization, clock, remote
    ):
        queue, item = await self._failed_item(db_session, remote)

        with pytest.raises(EntityNotFoundException):
            await queue.requeue_item(OTHER_ORG_ID, item.id)

    @pytest.mark.asyncio
    async def test_delete_queue_item(self, db_session, organization, clock, remote):
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "x"})

        await queue.delete_queue_item(ORG_ID, item.id)

        assert await queue.repository.get(ORG_ID, item.id) is None

    @pytest.mark.asyncio
    async def test_processing_item_cannot_be_deleted(self, db_session, organization, clock, remote):
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "x"})
        await queue.repository.claim(ORG_ID, item.id)
        await db_session.commit()

        with pytest.raises(InvalidQueueTransitionException):
            await queue.delete_queue_item(ORG_ID, item.id)

    @pytest.mark.asyncio
    async def test_abandoned_processing_item_is_reclaimed(self, db_session, organization, clock, remote):
        await _seed_remote_and_mirror(db_session, remote, EntityType.PRODUCTS, 1)
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "x"})
        # Claim sin completar: el proceso murio a mitad del item
        await queue.repository.claim(ORG_ID, item.id)
        await db_session.commit()

        clock.advance(timedelta(minutes=settings.SYNC_STALE_AFTER_MINUTES + 1))
        result = await queue.process_queue(ORG_ID)

        row = await queue.repository.get(ORG_ID, item.id)
        assert result.processed == 1
        assert row.status == QueueStatus.COMPLETED.value
        assert row.attempts == 2
        assert remote[EntityType.PRODUCTS].updated == [(1, {"name": "x"})]

    @pytest.mark.asyncio
    async def test_recent_processing_item_is_left_alone(self, db_session, organization, clock, remote):
        queue = _queue(db_session, remote)
        item = await queue.add_to_queue(ORG_ID, "products", 1, "update", {"name": "x"})
        await queue.repository.claim(ORG_ID, item.id)
        await db_session.commit()

        clock.advance(timedelta(minutes=5))
        result = await queue.process_queue(ORG_ID)

        row = await queue.repository.get(ORG_ID, item.id)
        assert result.processed == result.errors == result.skipped == 0
        assert row.status == QueueStatus.PROCESSING.value

    @pytest.mark.asyncio
    async def test_queue_status_counts(self, db_session, organization, clock, remote):
        queue, _ = await self._failed_item(db_session, remote)
        await queue.add_to_queue(ORG_ID, "orders", 3, "delete")

        summary = await queue.get_queue_status(ORG_ID)

        assert summary.by_status[QueueStatus.FAILED.value] == 1
        assert summary.by_status[QueueStatus.PENDING.value] == 1
        assert summary.by_status[QueueStatus.COMPLETED.value] == 0
        assert summary.by_entity_type == {"products": 1, "orders": 1}
