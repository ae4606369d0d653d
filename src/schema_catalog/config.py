"""Configuration for schema catalog loaders."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .catalog.names import DEFAULT_DOMAIN, get_host_name
from .loaders.base import SchemaLoader
from .loaders.cached import CachedSchemaLoader
from .loaders.file import FileSchemaLoader
from .loaders.remote import RemoteSchemaLoader
from .loaders.transport import ClusterConnection


logger = logging.getLogger(__name__)


@dataclass
class RemoteConfig:
    """Remote cluster connection."""
    # URI or "Data Source=...;Initial Catalog=..." connection string
    connection: str | None = None
    default_domain: str = DEFAULT_DOMAIN
    timeout_seconds: float = 30.0
    token: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def cluster_connection(self) -> ClusterConnection:
        return ClusterConnection.from_string(
            self.connection,
            token=self.token,
            headers=dict(self.headers),
            timeout_seconds=self.timeout_seconds,
        )


@dataclass
class CacheConfig:
    """Local schema cache."""
    enabled: bool = True
    directory: str = "~/.schema_catalog/cache"
    # Cluster used for unqualified lookups when there is no remote connection
    default_cluster: str | None = None


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class Config:
    """Main configuration container."""
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Create config from dictionary."""
        return cls(
            remote=RemoteConfig(**data.get("remote", {})),
            cache=CacheConfig(**data.get("cache", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)


def build_loader(config: Config) -> SchemaLoader:
    """
    Build the loader described by a config.

    - connection and enabled cache: cache-aside loader
    - connection only: remote loader
    - cache only: file loader (needs ``cache.default_cluster``)
    """
    remote_cfg = config.remote
    cache_cfg = config.cache
    domain = remote_cfg.default_domain or DEFAULT_DOMAIN

    remote = None
    if remote_cfg.connection:
        remote = RemoteSchemaLoader(remote_cfg.cluster_connection(), default_domain=domain)

    if not cache_cfg.enabled or not cache_cfg.directory:
        if remote is None:
            raise ValueError("Config needs a remote connection or an enabled cache")
        return remote

    default_cluster = remote.default_cluster if remote else cache_cfg.default_cluster
    if not default_cluster:
        raise ValueError("Cache-only config needs cache.default_cluster")

    cache = FileSchemaLoader(cache_cfg.directory, get_host_name(default_cluster), default_domain=domain)
    if remote is None:
        logger.info(f"Using schema cache only at {cache.directory}")
        return cache

    logger.info(f"Using schema cache at {cache.directory} in front of {remote.default_cluster}")
    return CachedSchemaLoader(remote, cache)
