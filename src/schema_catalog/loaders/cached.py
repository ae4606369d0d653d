"""Cached schema loader - cache-aside over a file cache and a remote loader."""

from __future__ import annotations

import asyncio
import logging

from ..catalog.types import DatabaseEntry, DatabaseName
from .base import SchemaLoader, check_database_name
from .file import FileSchemaLoader


logger = logging.getLogger(__name__)


class CachedSchemaLoader(SchemaLoader):
    """
    Reads from the file cache first and falls back to the remote loader.

    Whatever the remote loader returns is written back to the cache before it
    is handed to the caller. A cache hit never reaches the remote loader, so a
    stale cache stays stale until it is deleted.
    """

    def __init__(self, remote: SchemaLoader, cache: FileSchemaLoader):
        if remote is None:
            raise ValueError("remote loader is required")
        if cache is None:
            raise ValueError("cache loader is required")
        self.remote = remote
        self.cache = cache

    @property
    def default_cluster(self) -> str:
        return self.remote.default_cluster

    @property
    def default_domain(self) -> str:
        return self.remote.default_domain

    async def list_database_names(
        self,
        cluster_name: str | None = None,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> list[DatabaseName] | None:
        cluster = self.full_cluster_name(cluster_name)

        names = await self.cache.list_database_names(cluster, cancel_event=cancel_event)
        if names is not None:
            return names

        names = await self.remote.list_database_names(
            cluster, throw_on_error=throw_on_error, cancel_event=cancel_event,
        )
        if names is not None:
            await self.cache.save_database_names(
                names, cluster, throw_on_error=throw_on_error, cancel_event=cancel_event,
            )

        return names

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

        db = await self.cache.load_database(database_name, cluster, cancel_event=cancel_event)
        if db is not None:
            return db

        db = await self.remote.load_database(
            database_name, cluster, throw_on_error=throw_on_error, cancel_event=cancel_event,
        )
        if db is not None:
            await self.cache.save_database(
                db, cluster, throw_on_error=throw_on_error, cancel_event=cancel_event,
            )

        return db

    async def aclose(self) -> None:
        await self.remote.aclose()
        await self.cache.aclose()
