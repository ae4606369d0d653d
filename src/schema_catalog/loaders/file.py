"""File cache loader - schema documents stored in a local directory tree."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Iterable

from ..catalog.names import DEFAULT_DOMAIN, get_full_host_name
from ..catalog.serializer import (
    deserialize_database,
    deserialize_database_names,
    serialize_database,
    serialize_database_names,
)
from ..catalog.types import ClusterEntry, DatabaseEntry, DatabaseName
from .base import (
    CatalogNotFoundError,
    LoadCancelledError,
    MalformedCacheDocumentError,
    SchemaLoader,
    TransientLoadError,
    check_database_name,
    raise_if_cancelled,
)


logger = logging.getLogger(__name__)

DATABASE_NAMES_FILE = "databaseNames.json"


def sanitize_path_name(name: str) -> str:
    """Lower-case a name and replace path separators so it is usable as a file name."""
    return name.lower().replace("\\", "_").replace("/", "_")


class FileSchemaLoader(SchemaLoader):
    """
    Reads and writes schema documents under a cache directory.

    Layout::

        <root>/<cluster host>/databaseNames.json
        <root>/<cluster host>/<database>.json

    Reads never touch the network. A file that exists but cannot be decoded
    is logged and reported as a miss.
    """

    def __init__(self, directory: str | Path, default_cluster: str, default_domain: str | None = None):
        if not directory:
            raise ValueError("directory is required")
        if not default_cluster:
            raise ValueError("default_cluster is required")

        self._root = Path(os.path.expandvars(os.path.expanduser(str(directory))))
        self._default_domain = default_domain or DEFAULT_DOMAIN
        self._default_cluster = get_full_host_name(default_cluster, self._default_domain)

    @property
    def directory(self) -> Path:
        return self._root

    @property
    def default_cluster(self) -> str:
        return self._default_cluster

    @property
    def default_domain(self) -> str:
        return self._default_domain

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def get_cluster_cache_path(self, cluster_name: str | None = None) -> Path:
        return self._root / sanitize_path_name(self.full_cluster_name(cluster_name))

    def get_database_cache_path(self, database_name: str, cluster_name: str | None = None) -> Path:
        return self.get_cluster_cache_path(cluster_name) / f"{sanitize_path_name(database_name)}.json"

    def get_database_names_file_path(self, cluster_name: str | None = None) -> Path:
        return self.get_cluster_cache_path(cluster_name) / DATABASE_NAMES_FILE

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_database_names(
        self,
        cluster_name: str | None = None,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> list[DatabaseName] | None:
        path = self.get_database_names_file_path(cluster_name)

        try:
            raise_if_cancelled(cancel_event)
            text = self._read(path)
            if text is None:
                raise CatalogNotFoundError(f"No cached database names for {self.full_cluster_name(cluster_name)}")
            try:
                names = deserialize_database_names(text)
            except ValueError as e:
                raise MalformedCacheDocumentError(f"{path}: {e}") from e
        except MalformedCacheDocumentError as e:
            logger.warning(f"Ignoring malformed cache document {e}")
            return None
        except CatalogNotFoundError as e:
            logger.debug(f"Cache miss: {e}")
            if throw_on_error:
                raise
            return None
        except Exception as e:
            logger.warning(f"Failed to read {path}: {e}")
            if throw_on_error:
                raise
            return None

        logger.debug(f"Cache hit: {path}")
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
        path = self.get_database_cache_path(database_name, cluster_name)

        try:
            raise_if_cancelled(cancel_event)
            text = self._read(path)
            if text is None:
                # the request may have used the pretty name; map it through the index
                text = self._read_by_pretty_name(database_name, cluster_name)
            if text is None:
                raise CatalogNotFoundError(
                    f"No cached schema for {self.full_cluster_name(cluster_name)}/{database_name}"
                )
            try:
                db = deserialize_database(text)
            except ValueError as e:
                raise MalformedCacheDocumentError(f"{path}: {e}") from e
        except MalformedCacheDocumentError as e:
            logger.warning(f"Ignoring malformed cache document {e}")
            return None
        except CatalogNotFoundError as e:
            logger.debug(f"Cache miss: {e}")
            if throw_on_error:
                raise
            return None
        except Exception as e:
            logger.warning(f"Failed to read {path}: {e}")
            if throw_on_error:
                raise
            return None

        logger.debug(f"Cache hit: {path}")
        return db

    def _read_by_pretty_name(self, database_name: str, cluster_name: str | None) -> str | None:
        try:
            text = self._read(self.get_database_names_file_path(cluster_name))
            if text is None:
                return None
            names = deserialize_database_names(text)
        except (ValueError, MalformedCacheDocumentError):
            return None

        for name in names:
            if name.pretty_name and name.pretty_name.casefold() == database_name.casefold():
                return self._read(self.get_database_cache_path(name.name, cluster_name))
        return None

    @staticmethod
    def _read(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise MalformedCacheDocumentError(f"{path}: {e}") from e
        except OSError as e:
            raise TransientLoadError(f"Failed to read {path}: {e}") from e

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def _write(path: Path, text: str) -> None:
        """Write a file so readers see either the old or the new content."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f"{path.name}.tmp")
        try:
            tmp_path.write_text(text, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    async def save_database(
        self,
        database: DatabaseEntry,
        cluster_name: str | None = None,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> bool:
        """
        Write a database's schema document and add its name to the cluster index.

        Placeholders cannot be saved.
        """
        if database is None:
            raise ValueError("database is required")
        if database.is_placeholder:
            raise ValueError(f"Cannot cache placeholder database '{database.name}'")

        path = self.get_database_cache_path(database.name, cluster_name)
        try:
            raise_if_cancelled(cancel_event)
            self._write(path, serialize_database(database))
            logger.info(f"Cached {self.full_cluster_name(cluster_name)}/{database.name} at {path}")
            self._add_database_names(cluster_name, [database.database_name])
        except LoadCancelledError:
            if throw_on_error:
                raise
            return False
        except TransientLoadError as e:
            logger.warning(f"Failed to update cache for {database.name}: {e}")
            if throw_on_error:
                raise
            return False
        except OSError as e:
            logger.warning(f"Failed to write {path}: {e}")
            if throw_on_error:
                raise TransientLoadError(f"Failed to write {path}: {e}") from e
            return False

        return True

    async def save_database_names(
        self,
        names: Iterable[DatabaseName],
        cluster_name: str | None = None,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> bool:
        """Merge names into the cluster's database names index."""
        try:
            raise_if_cancelled(cancel_event)
            self._add_database_names(cluster_name, names)
        except LoadCancelledError:
            if throw_on_error:
                raise
            return False
        except (OSError, TransientLoadError) as e:
            logger.warning(f"Failed to write database names of {self.full_cluster_name(cluster_name)}: {e}")
            if throw_on_error:
                raise TransientLoadError(str(e)) from e
            return False

        return True

    async def save_database_name(
        self,
        name: DatabaseName,
        cluster_name: str | None = None,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> bool:
        return await self.save_database_names(
            [name], cluster_name, throw_on_error=throw_on_error, cancel_event=cancel_event,
        )

    def _add_database_names(self, cluster_name: str | None, names: Iterable[DatabaseName]) -> bool:
        """Insert names into the sorted index; the file is rewritten only if the set changed."""
        path = self.get_database_names_file_path(cluster_name)

        existing: list[DatabaseName] = []
        changed = False
        try:
            text = self._read(path)
            if text is None:
                changed = True
            else:
                existing = deserialize_database_names(text)
        except (ValueError, MalformedCacheDocumentError) as e:
            logger.warning(f"Rewriting malformed database names index {path}: {e}")
            changed = True

        by_name = {n.name: n for n in existing}
        for name in names:
            if not name.name:
                continue
            current = by_name.get(name.name)
            if current is None or (name.pretty_name and current.pretty_name != name.pretty_name):
                by_name[name.name] = name
                changed = True

        if not changed:
            return False

        merged = sorted(by_name.values(), key=lambda n: n.name)

        self._write(path, serialize_database_names(merged))
        logger.debug(f"Updated database names index {path} ({len(merged)} names)")
        return True

    async def save_cluster(
        self,
        cluster: ClusterEntry,
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> bool:
        """Save every loaded database of a cluster, and the names of all of them."""
        ok = await self.save_database_names(
            [db.database_name for db in cluster.databases], cluster.name,
            throw_on_error=throw_on_error, cancel_event=cancel_event,
        )
        for db in cluster.databases:
            if db.is_placeholder:
                continue
            ok = await self.save_database(
                db, cluster.name, throw_on_error=throw_on_error, cancel_event=cancel_event,
            ) and ok
        return ok

    async def save_clusters(
        self,
        clusters: Iterable[ClusterEntry],
        *,
        throw_on_error: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> bool:
        ok = True
        for cluster in clusters:
            ok = await self.save_cluster(
                cluster, throw_on_error=throw_on_error, cancel_event=cancel_event,
            ) and ok
        return ok

    # -------------------------------------------------------------------------
    # Deletes
    # -------------------------------------------------------------------------

    def delete_cache(self) -> bool:
        """Remove the whole cache directory. Returns False if it could not be removed."""
        return self._delete_tree(self._root)

    def delete_cluster_cache(self, cluster_name: str | None = None) -> bool:
        """Remove one cluster's cache directory. Returns False if it could not be removed."""
        return self._delete_tree(self.get_cluster_cache_path(cluster_name))

    @staticmethod
    def _delete_tree(path: Path) -> bool:
        if not path.exists():
            return True
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Failed to delete cache directory {path}: {e}")
            return False
        logger.info(f"Deleted cache directory {path}")
        return True
