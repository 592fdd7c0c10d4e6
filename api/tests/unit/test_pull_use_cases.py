"""
Tests de PullUseCases: contabilidad, idempotencia y fallos por lote.
"""
from datetime import timedelta

import pytest

from catalog_mirror.application.use_cases.pull_use_cases import PullUseCases, chunked
from catalog_mirror.infrastructure.repositories.mirror_repository import MirrorRepository
from catalog_mirror.infrastructure.repositories.sync_status_repository import SyncStatusRepository
from catalog_mirror.shared.constants.sync_constants import EntityType, SyncStatusState
from catalog_mirror.shared.exceptions.sync import ConfigurationError

from tests.fakes import ORG_ID, OTHER_ORG_ID, T0, wc_date


def _pull(db_session, remote) -> PullUseCases:
    return PullUseCases(db_session, remote, chunk_delay_s=0)


class TestChunked:

    def test_splits_preserving_order(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty_input(self):
        assert chunked([], 25) == []


class TestPullUseCases:

    @pytest.mark.asyncio
    async def test_pull_stores_every_returned_entity(self, db_session, organization, remote):
        for remote_id in (1, 2, 3):
            remote[EntityType.PRODUCTS].add(remote_id, name=f"P{remote_id}", price="9.90")

        result = await _pull(db_session, remote).pull(ORG_ID, EntityType.PRODUCTS, [1, 2, 3])

        assert (result.processed, result.errors, result.failed_ids) == (3, 0, [])
        mirror = MirrorRepository(db_session, EntityType.PRODUCTS)
        assert await mirror.count(ORG_ID) == 3
        row = await mirror.get(ORG_ID, 2)
        assert row.name == "P2"
        assert row.payload["price"] == "9.90"
        assert row.synced_at is not None

    @pytest.mark.asyncio
    async def test_pull_is_idempotent(self, db_session, organization, remote):
        for remote_id in (1, 2):
            remote[EntityType.PRODUCTS].add(remote_id)
        use_cases = _pull(db_session, remote)

        await use_cases.pull(ORG_ID, EntityType.PRODUCTS, [1, 2])
        second = await use_cases.pull(ORG_ID, EntityType.PRODUCTS, [1, 2])

        assert second.processed == 2
        assert await MirrorRepository(db_session, EntityType.PRODUCTS).count(ORG_ID) == 2

    @pytest.mark.asyncio
    async def test_accounting_with_missing_remote_ids(self, db_session, organization, remote):
        remote[EntityType.CUSTOMERS].add(1, email="a@example.com")
        remote[EntityType.CUSTOMERS].add(2, email="b@example.com")
        remote[EntityType.CUSTOMERS].hidden_ids.add(2)

        result = await _pull(db_session, remote).pull(ORG_ID, EntityType.CUSTOMERS, [1, 2, 3])

        assert result.processed + result.errors == 3
        assert result.failed_ids == [2, 3]
        status = await SyncStatusRepository(db_session).get(ORG_ID, EntityType.CUSTOMERS)
        assert status.status == SyncStatusState.PARTIAL.value
        assert status.sync_meta["failed_ids"] == [2, 3]

    @pytest.mark.asyncio
    async def test_failed_chunk_marks_all_its_ids(self, db_session, organization, remote):
        resource = remote[EntityType.ORDERS]
        for remote_id in range(1, 6):
            resource.add(remote_id, number=str(remote_id), total="10.00")
        resource.fail_batch_ids = {3}

        result = await _pull(db_session, remote).pull(
            ORG_ID, EntityType.ORDERS, [1, 2, 3, 4, 5], batch_size=2
        )

        assert resource.batch_calls == [[1, 2], [3, 4], [5]]
        assert result.processed == 3
        assert result.failed_ids == [3, 4]
        mirror = MirrorRepository(db_session, EntityType.ORDERS)
        assert await mirror.get(ORG_ID, 4) is None
        assert await mirror.get(ORG_ID, 5) is not None

    @pytest.mark.asyncio
    async def test_duplicate_ids_are_counted_per_request(self, db_session, organization, remote):
        remote[EntityType.PRODUCTS].add(1)

        result = await _pull(db_session, remote).pull(ORG_ID, EntityType.PRODUCTS, [1, 1, 9])

        assert result.processed == 2
        assert result.errors == 1
        assert result.failed_ids == [9]

    @pytest.mark.asyncio
    async def test_progress_callback_after_each_chunk(self, db_session, organization, remote):
        for remote_id in range(1, 6):
            remote[EntityType.PRODUCTS].add(remote_id)
        progress = []

        await _pull(db_session, remote).pull(
            ORG_ID,
            EntityType.PRODUCTS,
            [1, 2, 3, 4, 5],
            batch_size=2,
            progress_callback=lambda done, total: progress.append((done, total)),
        )

        assert progress == [(2, 5), (4, 5), (5, 5)]

    @pytest.mark.asyncio
    async def test_older_payload_does_not_overwrite_newer_row(self, db_session, organization, remote):
        mirror = MirrorRepository(db_session, EntityType.PRODUCTS)
        await mirror.upsert_many(
            ORG_ID,
            [{"id": 1, "name": "Nuevo", "date_modified_gmt": wc_date(T0 + timedelta(days=1))}],
        )
        await db_session.commit()
        remote[EntityType.PRODUCTS].add(1, T0, name="Viejo")

        await _pull(db_session, remote).pull(ORG_ID, EntityType.PRODUCTS, [1])

        row = await mirror.get(ORG_ID, 1)
        assert row.name == "Nuevo"

    @pytest.mark.asyncio
    async def test_rows_are_scoped_by_organization(
        self, db_session, organization, other_organization, remote
    ):
        remote[EntityType.PRODUCTS].add(1, name="A")

        await _pull(db_session, remote).pull(ORG_ID, EntityType.PRODUCTS, [1])

        assert await MirrorRepository(db_session, EntityType.PRODUCTS).count(OTHER_ORG_ID) == 0

    @pytest.mark.asyncio
    async def test_unconfigured_organization_raises(self, db_session, remote):
        with pytest.raises(ConfigurationError):
            await _pull(db_session, remote).pull("sin-org", EntityType.PRODUCTS, [1])
