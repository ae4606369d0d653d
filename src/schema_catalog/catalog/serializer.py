"""Catalog serializer - converts DatabaseEntry to and from cache documents.

Document layout (one file per database):

```json
{
  "Name": "Samples",
  "PrettyName": "Samples (Demo)",
  "Tables": [{"Name": "StormEvents", "Schema": "(StartTime: datetime, State: string)"}],
  "ExternalTables": [{"Name": "Logs", "Schema": "(Line: string)", "Description": "..."}],
  "MaterializedViews": [{"Name": "DailyCounts", "Schema": "(Day: datetime, Count: long)", "Query": "..."}],
  "Functions": [{"Name": "TopStates", "Parameters": "(n: long)", "Body": "{ ... }"}],
  "EntityGroups": [{"Name": "AllLogs", "Definition": "[cluster('a').database('b')]"}],
  "GraphModels": [{"Name": "Network", "Edges": ["..."], "Nodes": ["..."], "Snapshots": ["s1"]}]
}
```

Empty/default values are omitted on write; every field is optional on read.
Malformed input raises ValueError (json and pydantic errors are ValueErrors).
"""

from __future__ import annotations

import json
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field

from .types import (
    DatabaseEntry, DatabaseName, EntityGroup, ExternalTable, Function, GraphModel,
    MaterializedView, Table,
)


class _CacheDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DatabaseNameInfo(_CacheDocument):
    name: str | None = Field(None, alias="Name")
    pretty_name: str | None = Field(None, alias="PrettyName")


class TableInfo(_CacheDocument):
    name: str | None = Field(None, alias="Name")
    column_schema: str | None = Field(None, alias="Schema")
    description: str | None = Field(None, alias="Description")


class ExternalTableInfo(TableInfo):
    pass


class MaterializedViewInfo(TableInfo):
    query: str | None = Field(None, alias="Query")


class FunctionInfo(_CacheDocument):
    name: str | None = Field(None, alias="Name")
    parameters: str | None = Field(None, alias="Parameters")
    body: str | None = Field(None, alias="Body")
    description: str | None = Field(None, alias="Description")


class EntityGroupInfo(_CacheDocument):
    name: str | None = Field(None, alias="Name")
    definition: str | None = Field(None, alias="Definition")


class GraphModelInfo(_CacheDocument):
    name: str | None = Field(None, alias="Name")
    edges: list[str] | None = Field(None, alias="Edges")
    nodes: list[str] | None = Field(None, alias="Nodes")
    snapshots: list[str] | None = Field(None, alias="Snapshots")


class DatabaseInfo(_CacheDocument):
    name: str | None = Field(None, alias="Name")
    pretty_name: str | None = Field(None, alias="PrettyName")
    tables: list[TableInfo] | None = Field(None, alias="Tables")
    external_tables: list[ExternalTableInfo] | None = Field(None, alias="ExternalTables")
    materialized_views: list[MaterializedViewInfo] | None = Field(None, alias="MaterializedViews")
    functions: list[FunctionInfo] | None = Field(None, alias="Functions")
    entity_groups: list[EntityGroupInfo] | None = Field(None, alias="EntityGroups")
    graph_models: list[GraphModelInfo] | None = Field(None, alias="GraphModels")


def _or_none(value: str | None) -> str | None:
    return value if value else None


def _schema_or_none(value: str | None) -> str | None:
    return value if value and value != "()" else None


def _list_or_none(items: list) -> list | None:
    return items if items else None


def _dump(document: BaseModel | list[BaseModel]) -> str:
    if isinstance(document, list):
        data: Any = [d.model_dump(by_alias=True, exclude_none=True) for d in document]
    else:
        data = document.model_dump(by_alias=True, exclude_none=True)
    return json.dumps(data, indent=2)


class CatalogSerializer:
    """
    Converts DatabaseEntry objects to cache documents and back.

    Placeholders cannot be serialized: only fully loaded databases are cached.
    """

    def database_info(self, database: DatabaseEntry) -> DatabaseInfo:
        if database.members is None:
            raise ValueError(f"Cannot serialize placeholder database '{database.name}'")

        return DatabaseInfo(
            name=database.name,
            pretty_name=_or_none(database.alternate_name),
            tables=_list_or_none([
                TableInfo(name=t.name, column_schema=_schema_or_none(t.schema), description=_or_none(t.description))
                for t in database.tables
            ]),
            external_tables=_list_or_none([
                ExternalTableInfo(name=t.name, column_schema=_schema_or_none(t.schema), description=_or_none(t.description))
                for t in database.external_tables
            ]),
            materialized_views=_list_or_none([
                MaterializedViewInfo(
                    name=v.name,
                    column_schema=_schema_or_none(v.schema),
                    description=_or_none(v.description),
                    query=_or_none(v.query),
                )
                for v in database.materialized_views
            ]),
            functions=_list_or_none([
                FunctionInfo(
                    name=f.name,
                    parameters=_schema_or_none(f.parameters),
                    body=_or_none(f.body),
                    description=_or_none(f.description),
                )
                for f in database.functions
            ]),
            entity_groups=_list_or_none([
                EntityGroupInfo(name=eg.name, definition=_or_none(eg.definition))
                for eg in database.entity_groups
            ]),
            graph_models=_list_or_none([
                GraphModelInfo(
                    name=gm.name,
                    edges=_list_or_none(list(gm.edges)),
                    nodes=_list_or_none(list(gm.nodes)),
                    snapshots=_list_or_none(list(gm.snapshots)),
                )
                for gm in database.graph_models
            ]),
        )

    def database_entry(self, info: DatabaseInfo) -> DatabaseEntry:
        members: list = []

        members.extend(
            Table.from_schema(t.name, t.column_schema, t.description)
            for t in info.tables or () if t.name
        )
        members.extend(
            ExternalTable.from_schema(t.name, t.column_schema, t.description)
            for t in info.external_tables or () if t.name
        )
        members.extend(
            MaterializedView.from_schema(v.name, v.column_schema, v.description, query=v.query or "")
            for v in info.materialized_views or () if v.name
        )
        members.extend(
            Function(
                name=f.name,
                parameters=f.parameters or "",
                body=f.body or "",
                description=f.description or "",
            )
            for f in info.functions or () if f.name
        )
        members.extend(
            EntityGroup(name=eg.name, definition=eg.definition or "")
            for eg in info.entity_groups or () if eg.name
        )
        members.extend(
            GraphModel(
                name=gm.name,
                edges=tuple(gm.edges or ()),
                nodes=tuple(gm.nodes or ()),
                snapshots=tuple(gm.snapshots or ()),
            )
            for gm in info.graph_models or () if gm.name
        )

        return DatabaseEntry(
            name=info.name or "",
            alternate_name=info.pretty_name or "",
            members=tuple(members),
        )


_serializer = CatalogSerializer()


def serialize_database(database: DatabaseEntry) -> str:
    """Serialize a loaded database to its JSON cache document."""
    return _dump(_serializer.database_info(database))


def deserialize_database(text: str) -> DatabaseEntry:
    """Build a DatabaseEntry from a JSON cache document."""
    if text is None:
        raise ValueError("No document text")
    info = DatabaseInfo.model_validate(json.loads(text))
    return _serializer.database_entry(info)


def serialize_database_names(names: Iterable[DatabaseName]) -> str:
    return _dump([
        DatabaseNameInfo(name=n.name, pretty_name=_or_none(n.pretty_name))
        for n in names
    ])


def deserialize_database_names(text: str) -> list[DatabaseName]:
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("Database names document must be a JSON array")
    infos = [DatabaseNameInfo.model_validate(item) for item in data]
    return [DatabaseName(info.name, info.pretty_name or "") for info in infos if info.name]
