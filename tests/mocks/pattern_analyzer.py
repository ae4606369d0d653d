"""A query analyzer that finds references with regular expressions.

Recognizes ``cluster('x')`` and ``[cluster('x').]database('y')`` in query
text. A call ``database('y').f()`` binds to function ``f`` when its database
is loaded in the snapshot, and the function body is scanned as well.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from schema_catalog.catalog.names import DEFAULT_DOMAIN, get_full_host_name
from schema_catalog.catalog.types import CatalogSnapshot
from schema_catalog.resolver.analyzer import ClusterReference, DatabaseReference, QueryAnalyzer


_CLUSTER = re.compile(r"cluster\('([^']*)'\)")
_DATABASE = re.compile(r"(?:cluster\('(?P<cluster>[^']*)'\)\.)?database\('(?P<database>[^']*)'\)")
_CALL = re.compile(
    r"(?:cluster\('(?P<cluster>[^']*)'\)\.)?database\('(?P<database>[^']*)'\)\.(?P<function>\w+)\(\)"
)


@dataclass(frozen=True)
class FakeQuery:
    text: str
    snapshot: CatalogSnapshot | None = None


class PatternAnalyzer(QueryAnalyzer[FakeQuery]):

    def __init__(self):
        self.analyze_count = 0

    def has_semantics(self, query: FakeQuery) -> bool:
        return query.snapshot is not None

    def analyze(self, query: FakeQuery, snapshot: CatalogSnapshot) -> FakeQuery:
        self.analyze_count += 1
        return FakeQuery(query.text, snapshot)

    def _texts(self, query: FakeQuery) -> list[str]:
        """The query text followed by every function body it reaches."""
        texts = [query.text]
        if query.snapshot is None:
            return texts

        seen: set[tuple[str, str, str]] = set()
        i = 0
        while i < len(texts):
            for match in _CALL.finditer(texts[i]):
                cluster_name = match.group("cluster")
                if cluster_name:
                    cluster = query.snapshot.get_cluster(get_full_host_name(cluster_name, DEFAULT_DOMAIN))
                else:
                    cluster = query.snapshot.cluster
                if cluster is None:
                    continue

                key = (cluster.name, match.group("database"), match.group("function"))
                if key in seen:
                    continue
                seen.add(key)

                db = cluster.get_database(match.group("database"))
                function = db.get_function(match.group("function")) if db else None
                if function is not None:
                    texts.append(function.body)
            i += 1
        return texts

    def get_cluster_references(self, query: FakeQuery) -> list[ClusterReference]:
        return [ClusterReference(m.group(1)) for text in self._texts(query) for m in _CLUSTER.finditer(text)]

    def get_database_references(self, query: FakeQuery) -> list[DatabaseReference]:
        return [
            DatabaseReference(m.group("database"), m.group("cluster") or "")
            for text in self._texts(query)
            for m in _DATABASE.finditer(text)
        ]
