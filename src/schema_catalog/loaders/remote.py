"""Remote schema loader - reads schema from a live cluster with admin commands."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..catalog.names import DEFAULT_DOMAIN, get_full_host_name
from ..catalog.schema_text import get_bracketed_name
from ..catalog.types import (
    DatabaseEntry, DatabaseName, EntityGroup, ExternalTable, Function, GraphModel,
    MaterializedView, Table,
)
from .base import (
    CatalogNotFoundError,
    LoadCancelledError,
    SchemaLoader,
    TransientLoadError,
    check_database_name,
    raise_if_cancelled,
    run_cancellable,
)
from .transport import AdminChannelPool, ChannelFactory, ClusterConnection


logger = logging.getLogger(__name__)


# =============================================================================
# Result rows
# =============================================================================

class _ResultRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


R = TypeVar("R", bound=_ResultRow)


class DatabaseNamesRow(_ResultRow):
    database_name: str = Field(alias="DatabaseName")
    pretty_name: str | None = Field(None, alias="PrettyName")


class TableSchemaRow(_ResultRow):
    table_name: str = Field(alias="TableName")
    column_schema: str | None = Field(None, alias="Schema")
    doc_string: str | None = Field(None, alias="DocString")


class ExternalTableRow(_ResultRow):
    table_name: str = Field(alias="TableName")
    doc_string: str | None = Field(None, alias="DocString")


class MaterializedViewRow(_ResultRow):
    name: str = Field(alias="Name")
    query: str | None = Field(None, alias="Query")
    doc_string: str | None = Field(None, alias="DocString")


class FunctionRow(_ResultRow):
    name: str = Field(alias="Name")
    parameters: str | None = Field(None, alias="Parameters")
    body: str | None = Field(None, alias="Body")
    doc_string: str | None = Field(None, alias="DocString")


class EntityGroupRow(_ResultRow):
    name: str = Field(alias="Name")
    entities: str | None = Field(None, alias="Entities")


class GraphModelRow(_ResultRow):
    name: str = Field(alias="Name")
    model: Any = Field(None, alias="Model")


class GraphSnapshotsRow(_ResultRow):
    graph_model_name: str = Field(alias="ModelName")
    snapshots: Any = Field(None, alias="Snapshots")


# Graph model definitions: {"Schema": ..., "Definition": {"Steps": [{"Kind": "AddNodes", "Query": ...}]}}

class GraphModelStep(BaseModel):
    model_config = ConfigDict(extra="ignore")
    kind: str = Field("", alias="Kind")
    query: str | None = Field(None, alias="Query")


class GraphModelDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")
    steps: list[GraphModelStep] = Field(default_factory=list, alias="Steps")


class GraphModelDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")
    definition: GraphModelDefinition | None = Field(None, alias="Definition")


SHOW_DATABASES = ".show databases | project DatabaseName, PrettyName"
SHOW_DATABASE_IDENTITY = ".show database identity | project DatabaseName, PrettyName"
SHOW_EXTERNAL_TABLES = ".show external tables | project TableName, DocString"
SHOW_MATERIALIZED_VIEWS = ".show materialized-views | project Name, Query, DocString"
SHOW_FUNCTIONS = ".show functions | project Name, Parameters, Body, DocString"
SHOW_ENTITY_GROUPS = ".show entity_groups | project Name, Entities"
SHOW_GRAPH_MODELS = ".show graph_models details | project Name, Model"
SHOW_GRAPH_SNAPSHOTS = ".show graph_snapshots * | summarize Snapshots=make_list(Name) by ModelName"


def _decode_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value) if value.strip() else None
    return value


async def _gather_all(*aws) -> list:
    """Await every coroutine, then raise the first failure if any failed."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


def create_graph_model(name: str, model: Any, snapshots: Any) -> GraphModel:
    """Build a GraphModel from its definition and snapshot list (JSON text or decoded)."""
    try:
        snapshot_names = tuple(str(s) for s in (_decode_json(snapshots) or ()))
    except ValueError:
        logger.warning(f"Ignoring undecodable snapshot list for graph model '{name}'")
        snapshot_names = ()

    try:
        document = GraphModelDocument.model_validate(_decode_json(model) or {})
    except ValueError:
        logger.warning(f"Ignoring undecodable definition for graph model '{name}'")
        return GraphModel(name=name, snapshots=snapshot_names)

    steps = document.definition.steps if document.definition else []
    return GraphModel(
        name=name,
        edges=tuple(s.query or "" for s in steps if s.kind == "AddEdges"),
        nodes=tuple(s.query or "" for s in steps if s.kind == "AddNodes"),
        snapshots=snapshot_names,
    )


class RemoteSchemaLoader(SchemaLoader):
    """
    Loads schema from live clusters by issuing admin commands.

    - One admin channel per cluster data source, opened on first use and reused.
    - Database names that failed to resolve are remembered per cluster, so a
      bad name costs at most one round trip for the lifetime of the loader.
    - The sub-fetches of one database load run concurrently; a failing
      category comes back empty unless ``throw_on_error`` is set.
    """

    def __init__(
        self,
        connection: ClusterConnection | str,
        default_domain: str | None = None,
        channel_factory: ChannelFactory | None = None,
    ):
        if connection is None:
            raise ValueError("connection is required")
        if isinstance(connection, str):
            connection = ClusterConnection.from_string(connection)

        self._connection = connection
        self._default_domain = default_domain or DEFAULT_DOMAIN
        self._default_cluster = get_full_host_name(connection.host, self._default_domain)
        self._pool = AdminChannelPool(channel_factory)
        self._bad_database_names: dict[str, set[str]] = {}

    @property
    def default_cluster(self) -> str:
        return self._default_cluster

    @property
    def default_domain(self) -> str:
        return self._default_domain

    @property
    def default_database(self) -> str | None:
        """The database named in the connection, if any."""
        return self._connection.initial_catalog

    @property
    def channels(self) -> AdminChannelPool:
        return self._pool

    async def aclose(self) -> None:
        await self._pool.aclose()

    # -------------------------------------------------------------------------
    # Negative-name memo
    # -------------------------------------------------------------------------

    def _is_bad_database_name(self, cluster: str, database_name: str) -> bool:
        return database_name in self._bad_database_names.get(cluster.lower(), ())

    def _add_bad_database_name(self, cluster: str, database_name: str) -> None:
        self._bad_database_names.setdefault(cluster.lower(), set()).add(database_name)

    # -------------------------------------------------------------------------
    # Loader operations
    # -------------------------------------------------------------------------

    async def list_database_names(
        self,
        cluster_name: str | None = None,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> list[DatabaseName] | None:
        cluster = self.full_cluster_name(cluster_name)

        try:
            rows = await self._execute(cluster, "", SHOW_DATABASES, DatabaseNamesRow, cancel_event)
        except Exception as e:
            logger.warning(f"Failed to list databases of {cluster}: {e}")
            if throw_on_error:
                raise
            return None

        return [DatabaseName(r.database_name, r.pretty_name or "") for r in rows]

    async def load_database(
        self,
        database_name: str,
        cluster_name: str | None = None,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> DatabaseEntry | None:
        check_database_name(database_name)
        cluster = self.full_cluster_name(cluster_name)

        if self._is_bad_database_name(cluster, database_name):
            logger.debug(f"Skipping known bad database name {cluster}/{database_name}")
            if throw_on_error:
                raise CatalogNotFoundError(f"Database '{database_name}' not found on {cluster}")
            return None

        try:
            db_name = await self._get_both_database_names(cluster, database_name, cancel_event)
        except LoadCancelledError:
            if throw_on_error:
                raise
            return None
        except Exception as e:
            self._add_bad_database_name(cluster, database_name)
            logger.warning(f"Failed to resolve database {cluster}/{database_name}: {e}")
            if throw_on_error:
                raise
            return None

        try:
            members = await self._load_members(cluster, db_name.name, throw_on_error, cancel_event)
            raise_if_cancelled(cancel_event)
        except LoadCancelledError:
            if throw_on_error:
                raise
            return None

        logger.info(f"Loaded {cluster}/{db_name.name} ({len(members)} members)")
        return DatabaseEntry(name=db_name.name, alternate_name=db_name.pretty_name, members=tuple(members))

    # -------------------------------------------------------------------------
    # Sub-fetches
    # -------------------------------------------------------------------------

    async def _get_both_database_names(
        self, cluster: str, database_name_or_pretty_name: str, cancel_event: asyncio.Event | None,
    ) -> DatabaseName:
        """Resolve the canonical and pretty name from either of them."""
        rows = await self._execute(
            cluster, database_name_or_pretty_name, SHOW_DATABASE_IDENTITY, DatabaseNamesRow, cancel_event,
        )
        if not rows:
            raise CatalogNotFoundError(f"Database '{database_name_or_pretty_name}' not found on {cluster}")
        return DatabaseName(rows[0].database_name, rows[0].pretty_name or "")

    async def _load_members(
        self, cluster: str, database: str, throw_on_error: bool, cancel_event: asyncio.Event | None,
    ) -> list:
        categories = {
            "tables": self._load_tables(cluster, database, cancel_event),
            "external tables": self._load_external_tables(cluster, database, cancel_event),
            "materialized views": self._load_materialized_views(cluster, database, cancel_event),
            "functions": self._load_functions(cluster, database, cancel_event),
            "entity groups": self._load_entity_groups(cluster, database, cancel_event),
            "graph models": self._load_graph_models(cluster, database, cancel_event),
        }

        results = await asyncio.gather(*categories.values(), return_exceptions=True)

        members: list = []
        for category, result in zip(categories, results):
            if isinstance(result, BaseException):
                if throw_on_error or not isinstance(result, Exception):
                    raise result
                logger.warning(f"Failed to load {category} of {cluster}/{database}: {result}")
                continue
            members.extend(result)
        return members

    async def _load_tables(self, cluster: str, database: str, cancel_event) -> list[Table]:
        rows = await self._execute(
            cluster, database,
            f".show database {get_bracketed_name(database)} cslschema | project TableName, Schema, DocString",
            TableSchemaRow, cancel_event,
        )
        return [Table.from_schema(r.table_name, f"({r.column_schema or ''})", r.doc_string) for r in rows]

    async def _load_external_tables(self, cluster: str, database: str, cancel_event) -> list[ExternalTable]:
        tables = await self._execute(cluster, database, SHOW_EXTERNAL_TABLES, ExternalTableRow, cancel_event)

        schemas = await _gather_all(*(
            self._execute(
                cluster, database,
                f".show external table {get_bracketed_name(t.table_name)} cslschema | project TableName, Schema",
                TableSchemaRow, cancel_event,
            )
            for t in tables
        ))

        return [
            ExternalTable.from_schema(t.table_name, f"({rows[0].column_schema or ''})", t.doc_string)
            for t, rows in zip(tables, schemas) if rows
        ]

    async def _load_materialized_views(self, cluster: str, database: str, cancel_event) -> list[MaterializedView]:
        views = await self._execute(cluster, database, SHOW_MATERIALIZED_VIEWS, MaterializedViewRow, cancel_event)

        schemas = await _gather_all(*(
            self._execute(
                cluster, database,
                f".show materialized-view {get_bracketed_name(v.name)} cslschema | project TableName, Schema",
                TableSchemaRow, cancel_event,
            )
            for v in views
        ))

        return [
            MaterializedView.from_schema(
                v.name, f"({rows[0].column_schema or ''})", v.doc_string, query=v.query or "",
            )
            for v, rows in zip(views, schemas) if rows
        ]

    async def _load_functions(self, cluster: str, database: str, cancel_event) -> list[Function]:
        rows = await self._execute(cluster, database, SHOW_FUNCTIONS, FunctionRow, cancel_event)
        return [
            Function(name=r.name, parameters=r.parameters or "", body=r.body or "", description=r.doc_string or "")
            for r in rows
        ]

    async def _load_entity_groups(self, cluster: str, database: str, cancel_event) -> list[EntityGroup]:
        rows = await self._execute(cluster, database, SHOW_ENTITY_GROUPS, EntityGroupRow, cancel_event)
        return [EntityGroup(name=r.name, definition=r.entities or "") for r in rows]

    async def _load_graph_models(self, cluster: str, database: str, cancel_event) -> list[GraphModel]:
        models, snapshots = await _gather_all(
            self._execute(cluster, database, SHOW_GRAPH_MODELS, GraphModelRow, cancel_event),
            self._execute(cluster, database, SHOW_GRAPH_SNAPSHOTS, GraphSnapshotsRow, cancel_event),
        )
        snapshot_map = {s.graph_model_name: s.snapshots for s in snapshots}
        return [create_graph_model(m.name, m.model, snapshot_map.get(m.name)) for m in models]

    # -------------------------------------------------------------------------
    # Command execution
    # -------------------------------------------------------------------------

    async def _execute(
        self,
        cluster: str,
        database: str,
        command: str,
        row_type: type[R],
        cancel_event: asyncio.Event | None,
    ) -> list[R]:
        """Run a command on the cluster's shared channel and project the rows."""
        channel = self._pool.get(self._connection.for_host(cluster))
        rows: Awaitable[list[dict[str, Any]]] = channel.execute(database, command)
        result = await run_cancellable(rows, cancel_event)

        try:
            return [row_type.model_validate(row) for row in result]
        except ValidationError as e:
            raise TransientLoadError(f"Unexpected result shape for '{command}' on {cluster}: {e}") from e
