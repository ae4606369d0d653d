"""Schema loaders - remote, file cache and cache-aside."""

from .base import (
    CatalogLoadError,
    CatalogNotFoundError,
    LoadCancelledError,
    MalformedCacheDocumentError,
    SchemaLoader,
    TransientLoadError,
    add_or_update_cluster,
    add_or_update_database,
    add_or_update_default_database,
)
from .cached import CachedSchemaLoader
from .file import FileSchemaLoader
from .remote import RemoteSchemaLoader
from .transport import AdminChannel, AdminChannelPool, ClusterConnection, HttpAdminChannel

__all__ = [
    "CatalogLoadError",
    "CatalogNotFoundError",
    "LoadCancelledError",
    "MalformedCacheDocumentError",
    "SchemaLoader",
    "TransientLoadError",
    "add_or_update_cluster",
    "add_or_update_database",
    "add_or_update_default_database",
    "CachedSchemaLoader",
    "FileSchemaLoader",
    "RemoteSchemaLoader",
    "AdminChannel",
    "AdminChannelPool",
    "ClusterConnection",
    "HttpAdminChannel",
]
