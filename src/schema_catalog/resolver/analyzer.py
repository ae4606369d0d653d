"""Query analyzer interface consumed by the reference resolver.

The resolver never parses query text. A host plugs in an analyzer that binds
a parsed query against a catalog snapshot and reports the clusters and
databases the query (and any function body it binds to) names explicitly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

from ..catalog.types import CatalogSnapshot


Q = TypeVar("Q")


@dataclass(frozen=True, slots=True)
class ClusterReference:
    """A cluster named literally in query text, e.g. ``cluster('help')``."""
    cluster: str


@dataclass(frozen=True, slots=True)
class DatabaseReference:
    """A database named literally in query text; ``cluster`` is empty when unqualified."""
    database: str
    cluster: str = ""


class QueryAnalyzer(ABC, Generic[Q]):
    """Binds parsed queries of type ``Q`` to catalog snapshots."""

    @abstractmethod
    def has_semantics(self, query: Q) -> bool:
        """True if the query has been bound to a snapshot."""
        ...

    @abstractmethod
    def analyze(self, query: Q, snapshot: CatalogSnapshot) -> Q:
        """Bind (or re-bind) the query against a snapshot."""
        ...

    @abstractmethod
    def get_cluster_references(self, query: Q) -> list[ClusterReference]:
        ...

    @abstractmethod
    def get_database_references(self, query: Q) -> list[DatabaseReference]:
        ...
