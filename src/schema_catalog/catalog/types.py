"""Catalog types - clusters, databases, schema members and the catalog snapshot.

Everything here is immutable. Operations that "change" an entity return a new
instance that shares every untouched child by reference, and return the same
instance when nothing would change, so callers can detect a fixpoint with ``is``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import ClassVar, Iterable, Union

from .names import same_cluster


class MemberKind(str, Enum):
    """Kinds of schema members a database can hold."""
    TABLE = "table"
    EXTERNAL_TABLE = "external_table"
    MATERIALIZED_VIEW = "materialized_view"
    FUNCTION = "function"
    ENTITY_GROUP = "entity_group"
    GRAPH_MODEL = "graph_model"


@dataclass(frozen=True, slots=True)
class Column:
    """A named, typed column."""
    name: str
    type: str


@dataclass(frozen=True, slots=True)
class Table:
    """A table with its columns."""
    name: str
    columns: tuple[Column, ...] = ()
    description: str = ""

    kind: ClassVar[MemberKind] = MemberKind.TABLE

    def __post_init__(self):
        if not isinstance(self.columns, tuple):
            object.__setattr__(self, "columns", tuple(self.columns))

    @property
    def schema(self) -> str:
        """Column list in text form, e.g. ``(x: long, y: string)``."""
        from .schema_text import format_columns
        return format_columns(self.columns)

    @classmethod
    def from_schema(cls, name: str, schema: str | None, description: str | None = None, **kwargs):
        """Build from the text form of the column list."""
        from .schema_text import parse_columns
        return cls(name=name, columns=parse_columns(schema), description=description or "", **kwargs)

    def get_column(self, name: str) -> Column | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None


@dataclass(frozen=True, slots=True)
class ExternalTable(Table):
    """A table whose data lives outside the cluster."""
    kind: ClassVar[MemberKind] = MemberKind.EXTERNAL_TABLE


@dataclass(frozen=True, slots=True)
class MaterializedView(Table):
    """A table maintained from a query over another table."""
    query: str = ""

    kind: ClassVar[MemberKind] = MemberKind.MATERIALIZED_VIEW


@dataclass(frozen=True, slots=True)
class Function:
    """A stored function. Parameters and body are kept as text."""
    name: str
    parameters: str = "()"
    body: str = ""
    description: str = ""

    kind: ClassVar[MemberKind] = MemberKind.FUNCTION

    def __post_init__(self):
        from .schema_text import normalize_parameter_list
        object.__setattr__(self, "parameters", normalize_parameter_list(self.parameters))


@dataclass(frozen=True, slots=True)
class EntityGroup:
    """A named group of entity references (``definition`` is the entity list text)."""
    name: str
    definition: str = ""

    kind: ClassVar[MemberKind] = MemberKind.ENTITY_GROUP


@dataclass(frozen=True, slots=True)
class GraphModel:
    """A graph model: edge/node queries plus the names of its snapshots."""
    name: str
    edges: tuple[str, ...] = ()
    nodes: tuple[str, ...] = ()
    snapshots: tuple[str, ...] = ()

    kind: ClassVar[MemberKind] = MemberKind.GRAPH_MODEL

    def __post_init__(self):
        for attr in ("edges", "nodes", "snapshots"):
            value = getattr(self, attr)
            if not isinstance(value, tuple):
                object.__setattr__(self, attr, tuple(value or ()))


SchemaMember = Union[Table, ExternalTable, MaterializedView, Function, EntityGroup, GraphModel]


@dataclass(frozen=True, slots=True)
class DatabaseName:
    """Canonical name and pretty (display) name of a database, as listed by a cluster."""
    name: str
    pretty_name: str = ""

    def __post_init__(self):
        if self.pretty_name is None:
            object.__setattr__(self, "pretty_name", "")


@dataclass(frozen=True, slots=True)
class DatabaseEntry:
    """
    A database and its schema members.

    A database with ``members is None`` and ``is_open`` is a placeholder: it is
    known to exist but its schema has not been loaded yet.
    """
    name: str
    alternate_name: str = ""
    members: tuple[SchemaMember, ...] | None = ()
    is_open: bool = False

    def __post_init__(self):
        if not self.name:
            raise ValueError("Database name is required")
        if self.alternate_name is None:
            object.__setattr__(self, "alternate_name", "")

        if self.members is None:
            if not self.is_open:
                raise ValueError(f"Database '{self.name}' is not open and must have members")
            return

        if not isinstance(self.members, tuple):
            object.__setattr__(self, "members", tuple(self.members))

        seen: set[str] = set()
        for member in self.members:
            if member.name in seen:
                raise ValueError(f"Duplicate member '{member.name}' in database '{self.name}'")
            seen.add(member.name)

    @classmethod
    def placeholder(cls, name: str, alternate_name: str = "") -> DatabaseEntry:
        """A database known by name only."""
        return cls(name=name, alternate_name=alternate_name, members=None, is_open=True)

    @property
    def is_placeholder(self) -> bool:
        return self.members is None and self.is_open

    @property
    def database_name(self) -> DatabaseName:
        return DatabaseName(self.name, self.alternate_name)

    def matches(self, name: str) -> bool:
        """True if name is this database's canonical or alternate name."""
        return name == self.name or (bool(self.alternate_name) and name == self.alternate_name)

    def _of_kind(self, kind: MemberKind) -> tuple:
        return tuple(m for m in (self.members or ()) if m.kind is kind)

    @property
    def tables(self) -> tuple[Table, ...]:
        return self._of_kind(MemberKind.TABLE)

    @property
    def external_tables(self) -> tuple[ExternalTable, ...]:
        return self._of_kind(MemberKind.EXTERNAL_TABLE)

    @property
    def materialized_views(self) -> tuple[MaterializedView, ...]:
        return self._of_kind(MemberKind.MATERIALIZED_VIEW)

    @property
    def functions(self) -> tuple[Function, ...]:
        return self._of_kind(MemberKind.FUNCTION)

    @property
    def entity_groups(self) -> tuple[EntityGroup, ...]:
        return self._of_kind(MemberKind.ENTITY_GROUP)

    @property
    def graph_models(self) -> tuple[GraphModel, ...]:
        return self._of_kind(MemberKind.GRAPH_MODEL)

    def get_member(self, name: str) -> SchemaMember | None:
        for member in self.members or ():
            if member.name == name:
                return member
        return None

    def get_table(self, name: str) -> Table | None:
        member = self.get_member(name)
        return member if isinstance(member, Table) else None

    def get_function(self, name: str) -> Function | None:
        member = self.get_member(name)
        return member if isinstance(member, Function) else None

    def add_or_update_members(self, new_members: Iterable[SchemaMember]) -> DatabaseEntry:
        """Add members, replacing any existing member with the same name."""
        members = list(self.members or ())
        changed = False

        for member in new_members:
            for i, existing in enumerate(members):
                if existing.name == member.name:
                    if existing != member:
                        members[i] = member
                        changed = True
                    break
            else:
                members.append(member)
                changed = True

        if not changed and self.members is not None:
            return self

        return replace(self, members=tuple(members), is_open=False)


@dataclass(frozen=True, slots=True)
class ClusterEntry:
    """A cluster (fully-qualified host name) and its databases."""
    name: str
    databases: tuple[DatabaseEntry, ...] = ()
    is_open: bool = False

    def __post_init__(self):
        if not self.name:
            raise ValueError("Cluster name is required")
        if not isinstance(self.databases, tuple):
            object.__setattr__(self, "databases", tuple(self.databases))

        seen: set[str] = set()
        for db in self.databases:
            if db.name in seen:
                raise ValueError(f"Duplicate database '{db.name}' in cluster '{self.name}'")
            seen.add(db.name)

    def get_database(self, name: str | None) -> DatabaseEntry | None:
        """
        Find a database by canonical or alternate name.

        Canonical names win over alternate names, and exact matches win over
        case-insensitive ones.
        """
        if not name:
            return None

        for db in self.databases:
            if db.name == name:
                return db
        for db in self.databases:
            if db.alternate_name and db.alternate_name == name:
                return db

        folded = name.casefold()
        for db in self.databases:
            if db.name.casefold() == folded:
                return db
        for db in self.databases:
            if db.alternate_name and db.alternate_name.casefold() == folded:
                return db
        return None

    def _index_of(self, name: str) -> int:
        for i, db in enumerate(self.databases):
            if db.name == name:
                return i
        return -1

    def add_or_update_database(self, database: DatabaseEntry) -> ClusterEntry:
        """Add a database or replace the one with the same canonical name."""
        index = self._index_of(database.name)
        if index < 0:
            return replace(self, databases=self.databases + (database,))

        existing = self.databases[index]
        if existing is database or existing == database:
            return self

        databases = self.databases[:index] + (database,) + self.databases[index + 1:]
        return replace(self, databases=databases)

    def add_or_update_databases(self, databases: Iterable[DatabaseEntry]) -> ClusterEntry:
        cluster = self
        for db in databases:
            cluster = cluster.add_or_update_database(db)
        return cluster

    def with_database_names(self, names: Iterable[DatabaseName]) -> ClusterEntry:
        """
        Merge a database listing into this cluster.

        Databases not yet present are added as placeholders. Databases already
        present (loaded or not) are kept as they are.
        """
        added = []
        known = {db.name for db in self.databases}
        for db_name in names:
            if not db_name.name or db_name.name in known:
                continue
            known.add(db_name.name)
            added.append(DatabaseEntry.placeholder(db_name.name, db_name.pretty_name))

        if not added:
            return self
        return replace(self, databases=self.databases + tuple(added))


@dataclass(frozen=True, slots=True)
class CatalogSnapshot:
    """
    All known clusters and databases at one point in time, plus the default
    cluster and database used for unqualified references.
    """
    clusters: tuple[ClusterEntry, ...] = ()
    default_cluster_name: str | None = None
    default_database_name: str | None = None

    def __post_init__(self):
        if not isinstance(self.clusters, tuple):
            object.__setattr__(self, "clusters", tuple(self.clusters))

        seen: set[str] = set()
        for cluster in self.clusters:
            key = cluster.name.casefold()
            if key in seen:
                raise ValueError(f"Duplicate cluster '{cluster.name}'")
            seen.add(key)

    @classmethod
    def empty(cls) -> CatalogSnapshot:
        return cls()

    def get_cluster(self, name: str | None) -> ClusterEntry | None:
        if not name:
            return None
        for cluster in self.clusters:
            if same_cluster(cluster.name, name):
                return cluster
        return None

    @property
    def cluster(self) -> ClusterEntry | None:
        """The default cluster, if it is present."""
        return self.get_cluster(self.default_cluster_name)

    @property
    def database(self) -> DatabaseEntry | None:
        """The default database, if it is present."""
        cluster = self.cluster
        return cluster.get_database(self.default_database_name) if cluster else None

    def get_database(self, database_name: str, cluster_name: str | None = None) -> DatabaseEntry | None:
        cluster = self.get_cluster(cluster_name) if cluster_name else self.cluster
        return cluster.get_database(database_name) if cluster else None

    def add_or_replace_cluster(self, cluster: ClusterEntry) -> CatalogSnapshot:
        """Add a cluster or replace the one with the same (case-insensitive) name."""
        for i, existing in enumerate(self.clusters):
            if same_cluster(existing.name, cluster.name):
                if existing is cluster:
                    return self
                clusters = self.clusters[:i] + (cluster,) + self.clusters[i + 1:]
                return replace(self, clusters=clusters)
        return replace(self, clusters=self.clusters + (cluster,))

    def add_or_update_database(self, cluster_name: str, database: DatabaseEntry) -> CatalogSnapshot:
        """Add or replace one database within a cluster, creating the cluster if needed."""
        cluster = self.get_cluster(cluster_name)
        if cluster is None:
            cluster = ClusterEntry(name=cluster_name, databases=(database,))
        else:
            cluster = cluster.add_or_update_database(database)
        return self.add_or_replace_cluster(cluster)

    def with_default(self, cluster_name: str | None, database_name: str | None = None) -> CatalogSnapshot:
        """Change the default cluster and database."""
        if (same_cluster(cluster_name, self.default_cluster_name)
                and database_name == self.default_database_name):
            return self
        return replace(self, default_cluster_name=cluster_name, default_database_name=database_name)
