"""Tests for the fixpoint reference resolver."""

import pytest

from schema_catalog.catalog.types import (
    CatalogSnapshot,
    ClusterEntry,
    Column,
    DatabaseEntry,
    Function,
    Table,
)
from schema_catalog.loaders.base import CatalogNotFoundError
from schema_catalog.resolver.resolver import ReferenceResolver

from tests.conftest import HELP
from tests.mocks.pattern_analyzer import FakeQuery


def chained_loader(memory_loader):
    """Clusters a -> b -> c, each with one database whose function calls the next."""
    memory_loader.add_database("a", DatabaseEntry(
        name="dbA",
        members=(Function("fA", body="{ cluster('b').database('dbB').fB() }"),),
    ))
    memory_loader.add_database("b", DatabaseEntry(
        name="dbB",
        members=(Function("fB", body="{ cluster('c').database('dbC').Events }"),),
    ))
    memory_loader.add_database("c", DatabaseEntry(
        name="dbC",
        members=(Table("Events", (Column("Id", "long"),)),),
    ))
    return memory_loader


@pytest.fixture
def resolver(memory_loader, analyzer):
    return ReferenceResolver(memory_loader, analyzer)


class TestPlaceholderPromotion:
    @pytest.mark.asyncio
    async def test_referenced_placeholder_is_loaded(self, memory_loader, analyzer, samples_db):
        memory_loader.add_database("help", samples_db)
        snapshot = CatalogSnapshot(
            clusters=(ClusterEntry(name=HELP, databases=(DatabaseEntry.placeholder("Samples"),), is_open=True),),
            default_cluster_name=HELP,
        )

        result = await ReferenceResolver(memory_loader, analyzer).resolve(
            FakeQuery("database('Samples').StormEvents | take 10"), snapshot,
        )

        db = result.snapshot.get_database("Samples")
        assert not db.is_open
        assert db.members is not None
        assert db.get_table("StormEvents") is not None
        assert result.query.snapshot is result.snapshot

    @pytest.mark.asyncio
    async def test_loaded_database_is_not_reloaded(self, memory_loader, analyzer, snapshot):
        result = await ReferenceResolver(memory_loader, analyzer).resolve(
            FakeQuery("database('Samples').StormEvents"), snapshot,
        )
        assert result.snapshot is snapshot
        assert memory_loader.load_calls == []


class TestMultiHop:
    @pytest.mark.asyncio
    async def test_chain_across_three_clusters(self, memory_loader, analyzer):
        loader = chained_loader(memory_loader)
        resolver = ReferenceResolver(loader, analyzer)

        result = await resolver.resolve(FakeQuery("cluster('a').database('dbA').fA()"), CatalogSnapshot.empty())

        assert len(result.snapshot.clusters) == 3
        assert [c.name for c in result.snapshot.clusters] == [
            "a.kusto.windows.net", "b.kusto.windows.net", "c.kusto.windows.net",
        ]
        assert result.snapshot.get_database("dbC", "c.kusto.windows.net").get_table("Events") is not None
        assert all(not db.is_placeholder for c in result.snapshot.clusters for db in c.databases)
        # one pass per hop plus the pass that finds nothing new
        assert result.passes == 4

    @pytest.mark.asyncio
    async def test_cycle_terminates(self, memory_loader, analyzer):
        memory_loader.add_database("a", DatabaseEntry(
            name="dbA", members=(Function("fA", body="{ cluster('b').database('dbB').fB() }"),),
        ))
        memory_loader.add_database("b", DatabaseEntry(
            name="dbB", members=(Function("fB", body="{ cluster('a').database('dbA').fA() }"),),
        ))

        result = await ReferenceResolver(memory_loader, analyzer).resolve(
            FakeQuery("cluster('a').database('dbA').fA()"), CatalogSnapshot.empty(),
        )
        assert len(result.snapshot.clusters) == 2
        assert sorted(memory_loader.load_calls) == [
            ("a.kusto.windows.net", "dbA"), ("b.kusto.windows.net", "dbB"),
        ]


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, memory_loader, analyzer):
        loader = chained_loader(memory_loader)
        query = FakeQuery("cluster('a').database('dbA').fA()")
        first = await ReferenceResolver(loader, analyzer).resolve(query, CatalogSnapshot.empty())

        second = await ReferenceResolver(loader, analyzer).resolve(query, first.snapshot)
        assert second.snapshot is first.snapshot
        assert second.passes == 1

    @pytest.mark.asyncio
    async def test_same_resolver_does_not_repeat_calls(self, memory_loader, analyzer):
        loader = chained_loader(memory_loader)
        resolver = ReferenceResolver(loader, analyzer)
        query = FakeQuery("cluster('a').database('dbA').fA()")

        first = await resolver.resolve(query, CatalogSnapshot.empty())
        calls = (len(loader.list_calls), len(loader.load_calls))
        second = await resolver.resolve(query, first.snapshot)

        assert second.snapshot is first.snapshot
        assert (len(loader.list_calls), len(loader.load_calls)) == calls


class TestFailedReferences:
    @pytest.mark.asyncio
    async def test_unknown_references_leave_snapshot_alone(self, memory_loader, analyzer, snapshot):
        query = FakeQuery(
            "union cluster('nowhere').database('x').T, cluster('nowhere').database('y').T, "
            "database('Missing').T, database('Missing').T"
        )
        result = await ReferenceResolver(memory_loader, analyzer).resolve(query, snapshot)

        assert result.snapshot is snapshot
        assert memory_loader.list_calls == ["nowhere.kusto.windows.net"]
        assert memory_loader.load_calls == [(HELP, "Missing")]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_other_references(self, memory_loader, analyzer, other_db):
        memory_loader.add_database("b", other_db)
        query = FakeQuery("union cluster('nowhere').database('x').T, cluster('b').database('Logs').Traces")

        result = await ReferenceResolver(memory_loader, analyzer).resolve(query, CatalogSnapshot.empty())
        assert result.snapshot.get_cluster("nowhere.kusto.windows.net") is None
        assert result.snapshot.get_database("Logs", "b.kusto.windows.net") is other_db

    @pytest.mark.asyncio
    async def test_strict_mode_raises(self, memory_loader, analyzer):
        with pytest.raises(CatalogNotFoundError):
            await ReferenceResolver(memory_loader, analyzer).resolve(
                FakeQuery("cluster('nowhere').database('x').T"), CatalogSnapshot.empty(), throw_on_error=True,
            )

    @pytest.mark.asyncio
    async def test_unqualified_reference_without_default_cluster(self, memory_loader, analyzer):
        result = await ReferenceResolver(memory_loader, analyzer).resolve(
            FakeQuery("database('Samples').T"), CatalogSnapshot.empty(),
        )
        assert result.snapshot.clusters == ()
        assert memory_loader.load_calls == []


class TestScript:
    @pytest.mark.asyncio
    async def test_blocks_resolved_left_to_right(self, memory_loader, analyzer, other_db):
        loader = chained_loader(memory_loader)
        loader.add_database("d", other_db)
        blocks = [
            FakeQuery("cluster('a').database('dbA').fA()"),
            FakeQuery("cluster('d').database('Logs').Traces"),
        ]

        result = await ReferenceResolver(loader, analyzer).resolve_script(blocks, CatalogSnapshot.empty())

        assert [c.name.split(".")[0] for c in result.snapshot.clusters] == ["a", "d", "b", "c"]
        assert all(b.snapshot is result.snapshot for b in result.blocks)
        assert [b.text for b in result.blocks] == [b.text for b in blocks]

    @pytest.mark.asyncio
    async def test_empty_script(self, resolver, snapshot):
        result = await resolver.resolve_script([], snapshot)
        assert result.snapshot is snapshot
        assert result.blocks == ()
        assert result.passes == 1
