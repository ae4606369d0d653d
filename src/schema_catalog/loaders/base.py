"""Base schema loader interface."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, TypeVar

from ..catalog.names import get_full_host_name
from ..catalog.types import CatalogSnapshot, ClusterEntry, DatabaseEntry, DatabaseName


logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogLoadError(Exception):
    """Base exception for schema loading errors."""
    pass


class CatalogNotFoundError(CatalogLoadError):
    """Raised when a cluster or database does not exist or cannot be resolved."""
    pass


class TransientLoadError(CatalogLoadError):
    """Raised when a round trip to a cluster or the cache directory fails."""
    pass


class MalformedCacheDocumentError(CatalogLoadError):
    """Raised when a cache file exists but cannot be decoded."""
    pass


class LoadCancelledError(CatalogLoadError):
    """Raised when the caller's cancel event is set during a load."""
    pass


class SchemaLoader(ABC):
    """
    Abstract base class for schema loaders.

    A loader lists the databases of a cluster and loads the full schema of one
    database. Implementations (remote, file cache, cached) do not share state;
    the cached loader composes the other two.

    Every operation takes ``throw_on_error``. When False (the default) any
    failure is logged and reported as "not found" (``None``); when True the
    failure is raised to the caller.
    """

    @property
    @abstractmethod
    def default_cluster(self) -> str:
        """Fully-qualified host name of the cluster used when none is given."""
        ...

    @property
    @abstractmethod
    def default_domain(self) -> str:
        """Domain appended to short cluster names (starts with a dot)."""
        ...

    @abstractmethod
    async def list_database_names(
        self,
        cluster_name: str | None = None,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> list[DatabaseName] | None:
        """
        List the databases of a cluster.

        Returns None if the cluster is not found.
        """
        ...

    @abstractmethod
    async def load_database(
        self,
        database_name: str,
        cluster_name: str | None = None,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> DatabaseEntry | None:
        """
        Load the full schema of a database, given its name or pretty name.

        Returns None if the database is not found. Never returns a placeholder.
        """
        ...

    def full_cluster_name(self, cluster_name: str | None) -> str:
        """Normalize a cluster name, falling back to the default cluster."""
        if not cluster_name:
            return self.default_cluster
        return get_full_host_name(cluster_name, self.default_domain)

    async def aclose(self) -> None:
        """Release any open resources."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def check_database_name(database_name: str | None) -> None:
    if database_name is None:
        raise ValueError("database_name is required")
    if not database_name.strip():
        raise ValueError(f"Invalid database name: {database_name!r}")


def raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise LoadCancelledError("Load cancelled")


async def run_cancellable(awaitable: Awaitable[T], cancel_event: asyncio.Event | None) -> T:
    """
    Await a round trip, abandoning it if the cancel event is set first.

    Task cancellation is never swallowed: it propagates as CancelledError.
    """
    if cancel_event is None:
        return await awaitable

    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise LoadCancelledError("Load cancelled")

    work = asyncio.ensure_future(awaitable)

    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if not work.done():
            work.cancel()
        waiter.cancel()

    if work.cancelled() or not work.done():
        # let the abandoned round trip unwind before reporting
        await asyncio.wait({work})
        raise LoadCancelledError("Load cancelled")

    return work.result()


async def add_or_update_database(
    loader: SchemaLoader,
    snapshot: CatalogSnapshot,
    database_name: str,
    cluster_name: str | None = None,
    *,
    as_default: bool = False,
    throw_on_error: bool = False,
    cancel_event: asyncio.Event | None = None,
) -> CatalogSnapshot:
    """
    Load a database and return a snapshot with it added or updated.

    Returns the same snapshot if the database could not be loaded.
    """
    cluster_name = loader.full_cluster_name(cluster_name)

    db = await loader.load_database(
        database_name, cluster_name, throw_on_error=throw_on_error, cancel_event=cancel_event,
    )
    if db is None:
        return snapshot

    snapshot = snapshot.add_or_update_database(cluster_name, db)

    if as_default:
        snapshot = snapshot.with_default(snapshot.get_cluster(cluster_name).name, db.name)

    return snapshot


async def add_or_update_default_database(
    loader: SchemaLoader,
    snapshot: CatalogSnapshot,
    database_name: str,
    cluster_name: str | None = None,
    *,
    throw_on_error: bool = False,
    cancel_event: asyncio.Event | None = None,
) -> CatalogSnapshot:
    """Load a database and make it the snapshot's default database."""
    return await add_or_update_database(
        loader, snapshot, database_name, cluster_name,
        as_default=True, throw_on_error=throw_on_error, cancel_event=cancel_event,
    )


async def add_or_update_cluster(
    loader: SchemaLoader,
    snapshot: CatalogSnapshot,
    cluster_name: str | None = None,
    *,
    throw_on_error: bool = False,
    cancel_event: asyncio.Event | None = None,
) -> CatalogSnapshot:
    """
    List a cluster's databases and merge them into the snapshot as placeholders.

    A new cluster is added as open. An existing cluster keeps every database
    it already has; if the listing adds nothing the same snapshot is returned.
    """
    cluster_name = loader.full_cluster_name(cluster_name)

    names = await loader.list_database_names(
        cluster_name, throw_on_error=throw_on_error, cancel_event=cancel_event,
    )
    if names is None:
        logger.debug(f"No database listing for {cluster_name}")
        return snapshot

    existing = snapshot.get_cluster(cluster_name)
    if existing is None:
        cluster = ClusterEntry(name=cluster_name, is_open=True).with_database_names(names)
    else:
        cluster = existing.with_database_names(names)

    return snapshot.add_or_replace_cluster(cluster)
