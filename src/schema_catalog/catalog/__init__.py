"""Catalog system - immutable snapshot of clusters, databases and schema members."""

from .names import DEFAULT_DOMAIN, get_full_host_name, get_host_name
from .types import (
    CatalogSnapshot,
    ClusterEntry,
    Column,
    DatabaseEntry,
    DatabaseName,
    EntityGroup,
    ExternalTable,
    Function,
    GraphModel,
    MaterializedView,
    MemberKind,
    SchemaMember,
    Table,
)
from .serializer import (
    CatalogSerializer,
    deserialize_database,
    deserialize_database_names,
    serialize_database,
    serialize_database_names,
)

__all__ = [
    "DEFAULT_DOMAIN",
    "get_full_host_name",
    "get_host_name",
    "CatalogSnapshot",
    "ClusterEntry",
    "Column",
    "DatabaseEntry",
    "DatabaseName",
    "EntityGroup",
    "ExternalTable",
    "Function",
    "GraphModel",
    "MaterializedView",
    "MemberKind",
    "SchemaMember",
    "Table",
    "CatalogSerializer",
    "deserialize_database",
    "deserialize_database_names",
    "serialize_database",
    "serialize_database_names",
]
