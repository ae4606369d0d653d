"""Reference resolver - grows a snapshot until every referenced database is loaded."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Generic, Sequence

from ..catalog.names import get_full_host_name
from ..catalog.types import CatalogSnapshot
from ..loaders.base import SchemaLoader, add_or_update_cluster, add_or_update_database
from .analyzer import Q, QueryAnalyzer


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution(Generic[Q]):
    """A query bound to the snapshot it was resolved into."""
    query: Q
    snapshot: CatalogSnapshot
    passes: int


@dataclass(frozen=True)
class ScriptResolution(Generic[Q]):
    """Statement blocks bound to the snapshot they were resolved into."""
    blocks: tuple[Q, ...]
    snapshot: CatalogSnapshot
    passes: int


class ReferenceResolver(Generic[Q]):
    """
    Loads the clusters and databases a query references explicitly.

    Each pass looks at the references of the bound query:

    - A referenced cluster that is missing or open has its databases listed
      and merged in as placeholders.
    - A referenced database that is missing or a placeholder is loaded.

    When a pass changes the snapshot the query is re-bound, since newly loaded
    function bodies can name further databases, and another pass runs. Passes
    stop when one leaves the snapshot untouched. The snapshot only grows and
    every (cluster, database) pair is attempted once per resolver, so the loop
    ends after at most one pass per reachable entity.

    Failed lookups are not retried by the same resolver instance.
    """

    def __init__(self, loader: SchemaLoader, analyzer: QueryAnalyzer[Q]):
        if loader is None:
            raise ValueError("loader is required")
        if analyzer is None:
            raise ValueError("analyzer is required")
        self.loader = loader
        self.analyzer = analyzer
        # cluster (casefolded) -> database names already attempted
        self._attempted: dict[str, set[str]] = {}

    def _attempted_databases(self, cluster_name: str) -> set[str] | None:
        return self._attempted.get(cluster_name.casefold())

    async def resolve(
        self,
        query: Q,
        snapshot: CatalogSnapshot,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> Resolution[Q]:
        """Resolve the references of one query, re-binding it after each change."""
        if not self.analyzer.has_semantics(query):
            query = self.analyzer.analyze(query, snapshot)

        passes = 0
        while True:
            passes += 1
            updated = await self.resolve_once(
                query, snapshot, throw_on_error=throw_on_error, cancel_event=cancel_event,
            )
            if updated is snapshot:
                break
            snapshot = updated
            query = self.analyzer.analyze(query, snapshot)

        logger.debug(f"Resolved query references in {passes} pass(es)")
        return Resolution(query=query, snapshot=snapshot, passes=passes)

    async def resolve_script(
        self,
        blocks: Sequence[Q],
        snapshot: CatalogSnapshot,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> ScriptResolution[Q]:
        """
        Resolve the references of a multi-statement script.

        Within a pass blocks are resolved left to right, each seeing the
        snapshot produced by the blocks before it. After a pass that changed
        the snapshot every block is re-bound to the new snapshot.
        """
        blocks = tuple(
            b if self.analyzer.has_semantics(b) else self.analyzer.analyze(b, snapshot)
            for b in blocks
        )

        passes = 0
        while True:
            passes += 1
            current = snapshot
            for block in blocks:
                current = await self.resolve_once(
                    block, current, throw_on_error=throw_on_error, cancel_event=cancel_event,
                )
            if current is snapshot:
                break
            snapshot = current
            blocks = tuple(self.analyzer.analyze(b, snapshot) for b in blocks)

        logger.debug(f"Resolved script references in {passes} pass(es)")
        return ScriptResolution(blocks=blocks, snapshot=snapshot, passes=passes)

    async def resolve_once(
        self,
        query: Q,
        snapshot: CatalogSnapshot,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> CatalogSnapshot:
        """
        Run a single pass over a bound query's references.

        Returns the same snapshot if nothing was added.
        """
        domain = self.loader.default_domain

        for ref in self.analyzer.get_cluster_references(query):
            if not ref.cluster:
                continue
            cluster_name = get_full_host_name(ref.cluster, domain)
            if self._attempted_databases(cluster_name) is not None:
                continue
            self._attempted[cluster_name.casefold()] = set()

            cluster = snapshot.get_cluster(cluster_name)
            if cluster is None or cluster.is_open:
                snapshot = await add_or_update_cluster(
                    self.loader, snapshot, cluster_name,
                    throw_on_error=throw_on_error, cancel_event=cancel_event,
                )

        for ref in self.analyzer.get_database_references(query):
            if not ref.database:
                continue

            if ref.cluster:
                cluster = snapshot.get_cluster(get_full_host_name(ref.cluster, domain))
            else:
                cluster = snapshot.cluster
            if cluster is None:
                continue

            attempted = self._attempted.setdefault(cluster.name.casefold(), set())
            if ref.database in attempted:
                continue
            attempted.add(ref.database)

            db = cluster.get_database(ref.database)
            if db is None or db.is_placeholder:
                snapshot = await add_or_update_database(
                    self.loader, snapshot, ref.database, cluster.name,
                    throw_on_error=throw_on_error, cancel_event=cancel_event,
                )

        return snapshot
