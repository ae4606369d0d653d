"""Shared test fixtures for schema catalog tests."""

import pytest

from schema_catalog.catalog.types import (
    CatalogSnapshot,
    ClusterEntry,
    Column,
    DatabaseEntry,
    EntityGroup,
    ExternalTable,
    Function,
    GraphModel,
    MaterializedView,
    Table,
)
from schema_catalog.loaders.file import FileSchemaLoader
from schema_catalog.loaders.remote import RemoteSchemaLoader

from tests.mocks.fake_cluster import FakeServer
from tests.mocks.memory_loader import InMemoryLoader
from tests.mocks.pattern_analyzer import PatternAnalyzer


HELP = "help.kusto.windows.net"


# =============================================================================
# Schema Fixtures
# =============================================================================

@pytest.fixture
def samples_db() -> DatabaseEntry:
    """A fully loaded database with one member of every kind."""
    return DatabaseEntry(
        name="Samples",
        alternate_name="SamplesPretty",
        members=(
            Table(
                name="StormEvents",
                columns=(
                    Column("StartTime", "datetime"),
                    Column("State", "string"),
                    Column("Damage Property", "long"),
                ),
                description="Storm events in the US",
            ),
            Table(name="PopulationData", columns=(Column("State", "string"), Column("Population", "long"))),
            ExternalTable(name="ArchivedEvents", columns=(Column("Id", "long"),), description="Cold storage"),
            MaterializedView(
                name="DailyDamage",
                columns=(Column("Day", "datetime"), Column("Damage", "long")),
                query="StormEvents | summarize Damage=sum(DamageProperty) by bin(StartTime, 1d)",
            ),
            Function(name="StormsIn", parameters="(state: string)", body="{ StormEvents | where State == state }"),
            EntityGroup(name="AllStorms", definition="[database('Samples').StormEvents]"),
            GraphModel(
                name="Roads",
                edges=("Roads | project Source, Target",),
                nodes=("Junctions",),
                snapshots=("Monday", "Tuesday"),
            ),
        ),
    )


@pytest.fixture
def other_db() -> DatabaseEntry:
    return DatabaseEntry(
        name="Logs",
        members=(Table(name="Traces", columns=(Column("Timestamp", "datetime"), Column("Message", "string"))),),
    )


@pytest.fixture
def snapshot(samples_db, other_db) -> CatalogSnapshot:
    """A snapshot with two clusters, defaulting to help/Samples."""
    return CatalogSnapshot(
        clusters=(
            ClusterEntry(name=HELP, databases=(samples_db, other_db)),
            ClusterEntry(name="other.kusto.windows.net", databases=(DatabaseEntry.placeholder("Metrics"),), is_open=True),
        ),
        default_cluster_name=HELP,
        default_database_name="Samples",
    )


# =============================================================================
# Loader Fixtures
# =============================================================================

@pytest.fixture
def server(samples_db, other_db) -> FakeServer:
    """Fake cluster 'help' holding Samples and Logs."""
    server = FakeServer()
    server.add_database(HELP, samples_db)
    server.add_database(HELP, other_db)
    return server


@pytest.fixture
def remote_loader(server) -> RemoteSchemaLoader:
    return RemoteSchemaLoader(f"https://{HELP}/Samples", channel_factory=server.channel_factory)


@pytest.fixture
def file_loader(tmp_path) -> FileSchemaLoader:
    return FileSchemaLoader(tmp_path / "cache", HELP)


@pytest.fixture
def memory_loader() -> InMemoryLoader:
    return InMemoryLoader("help")


@pytest.fixture
def analyzer() -> PatternAnalyzer:
    return PatternAnalyzer()
