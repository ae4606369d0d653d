"""Tests for the snapshot update helpers shared by every loader."""

import asyncio

import pytest

from schema_catalog.catalog.types import CatalogSnapshot, ClusterEntry, DatabaseEntry, Table
from schema_catalog.loaders.base import (
    LoadCancelledError,
    add_or_update_cluster,
    add_or_update_database,
    add_or_update_default_database,
    run_cancellable,
)

from tests.conftest import HELP


@pytest.fixture
def loader(memory_loader, samples_db, other_db):
    memory_loader.add_database("help", samples_db)
    memory_loader.add_database("help", other_db)
    return memory_loader


class TestAddOrUpdateDatabase:
    @pytest.mark.asyncio
    async def test_adds_to_new_cluster(self, loader, samples_db):
        snapshot = await add_or_update_database(loader, CatalogSnapshot.empty(), "Samples")
        assert snapshot.get_database("Samples", HELP) is samples_db
        assert snapshot.cluster is None

    @pytest.mark.asyncio
    async def test_as_default(self, loader):
        snapshot = await add_or_update_default_database(loader, CatalogSnapshot.empty(), "SamplesPretty", "help")
        assert snapshot.default_cluster_name == HELP
        assert snapshot.default_database_name == "Samples"
        assert snapshot.database.name == "Samples"

    @pytest.mark.asyncio
    async def test_missing_returns_same_snapshot(self, loader):
        snapshot = CatalogSnapshot.empty()
        assert await add_or_update_database(loader, snapshot, "Nope") is snapshot

    @pytest.mark.asyncio
    async def test_reload_of_equal_database_is_noop(self, loader, samples_db):
        snapshot = await add_or_update_database(loader, CatalogSnapshot.empty(), "Samples")
        assert await add_or_update_database(loader, snapshot, "Samples") is snapshot


class TestAddOrUpdateCluster:
    @pytest.mark.asyncio
    async def test_new_cluster_is_open_with_placeholders(self, loader):
        snapshot = await add_or_update_cluster(loader, CatalogSnapshot.empty(), "help")
        cluster = snapshot.get_cluster(HELP)
        assert cluster.is_open
        assert [db.name for db in cluster.databases] == ["Samples", "Logs"]
        assert all(db.is_placeholder for db in cluster.databases)

    @pytest.mark.asyncio
    async def test_merge_keeps_loaded_databases(self, loader, samples_db):
        existing = ClusterEntry(name=HELP, databases=(samples_db,), is_open=True)
        snapshot = CatalogSnapshot(clusters=(existing,))

        updated = await add_or_update_cluster(loader, snapshot)
        assert updated.get_database("Samples", HELP) is samples_db
        assert updated.get_database("Logs", HELP).is_placeholder

    @pytest.mark.asyncio
    async def test_nothing_new_returns_same_snapshot(self, loader):
        snapshot = await add_or_update_cluster(loader, CatalogSnapshot.empty())
        assert await add_or_update_cluster(loader, snapshot) is snapshot

    @pytest.mark.asyncio
    async def test_unknown_cluster(self, loader):
        snapshot = CatalogSnapshot.empty()
        assert await add_or_update_cluster(loader, snapshot, "nowhere") is snapshot


class TestRunCancellable:
    @pytest.mark.asyncio
    async def test_without_event(self):
        async def work():
            return 42

        assert await run_cancellable(work(), None) == 42

    @pytest.mark.asyncio
    async def test_completes_before_cancel(self):
        async def work():
            return DatabaseEntry(name="db", members=(Table("T"),))

        result = await run_cancellable(work(), asyncio.Event())
        assert result.name == "db"

    @pytest.mark.asyncio
    async def test_abandons_in_flight_work(self):
        started = asyncio.Event()
        cancelled = []

        async def work():
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        cancel = asyncio.Event()

        async def trigger():
            await started.wait()
            cancel.set()

        asyncio.get_running_loop().create_task(trigger())
        with pytest.raises(LoadCancelledError):
            await run_cancellable(work(), cancel)
        assert cancelled == [True]

    @pytest.mark.asyncio
    async def test_work_errors_propagate(self):
        async def work():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await run_cancellable(work(), asyncio.Event())
