"""Admin command transport - sends control commands to a cluster over HTTP."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Callable
from urllib.parse import urlsplit

import httpx

from ..catalog.names import get_host_name
from .base import CatalogNotFoundError, TransientLoadError


logger = logging.getLogger(__name__)

MGMT_PATH = "/v1/rest/mgmt"


@dataclass(frozen=True)
class ClusterConnection:
    """
    Connection settings for one cluster.

    Connections to other clusters are derived from the default one: they keep
    its scheme, credentials and timeout, and only change the data source.
    """
    data_source: str
    token: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = 30.0
    initial_catalog: str | None = None

    @classmethod
    def from_string(cls, text: str, **kwargs) -> ClusterConnection:
        """
        Parse a connection string.

        Accepts a bare URI (``https://help.kusto.windows.net/Samples``) or
        ``key=value`` pairs (``Data Source=https://...;Initial Catalog=Samples``).
        """
        text = (text or "").strip()
        if not text:
            raise ValueError("Connection string is empty")

        if "=" not in text.split(";", 1)[0]:
            parts = urlsplit(text if "://" in text else f"https://{text}")
            catalog = parts.path.strip("/") or None
            return cls(data_source=f"{parts.scheme}://{parts.netloc}", initial_catalog=catalog, **kwargs)

        values: dict[str, str] = {}
        for pair in text.split(";"):
            if "=" not in pair:
                continue
            key, value = pair.split("=", 1)
            values[key.strip().lower().replace(" ", "")] = value.strip()

        data_source = values.get("datasource") or values.get("server") or values.get("addr")
        if not data_source:
            raise ValueError(f"Connection string has no data source: {text}")
        if "://" not in data_source:
            data_source = f"https://{data_source}"

        catalog = values.get("initialcatalog") or values.get("database")
        return cls(data_source=data_source.rstrip("/"), initial_catalog=catalog, **kwargs)

    @property
    def host(self) -> str:
        return get_host_name(self.data_source)

    @property
    def scheme(self) -> str:
        return urlsplit(self.data_source).scheme or "https"

    @property
    def key(self) -> str:
        """Identity of the data source, used to share channels."""
        return self.data_source.rstrip("/").lower()

    def for_host(self, host: str) -> ClusterConnection:
        """A connection to another cluster borrowing this one's settings."""
        if host.lower() == self.host.lower():
            return self
        return replace(self, data_source=f"{self.scheme}://{host}", initial_catalog=None)


class AdminChannel(ABC):
    """A channel that executes control commands against one cluster."""

    @abstractmethod
    async def execute(self, database: str, command: str) -> list[dict[str, Any]]:
        """
        Execute a control command in a database context.

        Returns the rows of the primary result as dictionaries.

        Raises:
            CatalogNotFoundError: the database or entity does not exist
            TransientLoadError: the round trip failed
        """
        ...

    async def aclose(self) -> None:
        return None


def parse_v1_response(data: Any) -> list[dict[str, Any]]:
    """Convert a v1 REST response (``Tables[0].Columns/Rows``) into row dictionaries."""
    if not isinstance(data, dict):
        raise TransientLoadError(f"Unexpected response payload: {type(data).__name__}")

    tables = data.get("Tables") or []
    if not tables:
        return []

    primary = tables[0]
    columns = [c.get("ColumnName") for c in primary.get("Columns") or []]
    return [dict(zip(columns, row)) for row in primary.get("Rows") or []]


class HttpAdminChannel(AdminChannel):
    """
    Admin channel over the cluster's REST management endpoint.

    Posts ``{"db": ..., "csl": ...}`` to ``<data source>/v1/rest/mgmt``.
    """

    def __init__(self, connection: ClusterConnection, transport: httpx.AsyncBaseTransport | None = None):
        self.connection = connection
        headers = {"Accept": "application/json", **connection.headers}
        if connection.token:
            headers["Authorization"] = f"Bearer {connection.token}"
        self._client = httpx.AsyncClient(
            base_url=connection.data_source,
            headers=headers,
            timeout=connection.timeout_seconds,
            transport=transport,
        )

    async def execute(self, database: str, command: str) -> list[dict[str, Any]]:
        payload = {"db": database or "", "csl": command}
        logger.debug(f"{self.connection.host}/{database}: {command}")

        try:
            response = await self._client.post(MGMT_PATH, json=payload)
        except httpx.ConnectError as e:
            raise TransientLoadError(f"Failed to connect to {self.connection.data_source}: {e}") from e
        except httpx.TimeoutException as e:
            raise TransientLoadError(f"Command timed out on {self.connection.host}: {command}") from e
        except httpx.HTTPError as e:
            raise TransientLoadError(f"Command failed on {self.connection.host}: {e}") from e

        if response.status_code == 404 or (
            response.status_code == 400 and "not found" in response.text.lower()
        ):
            raise CatalogNotFoundError(
                f"Not found on {self.connection.host}/{database}: {response.text[:200]}"
            )
        if response.status_code >= 400:
            raise TransientLoadError(
                f"Command error {response.status_code} on {self.connection.host}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransientLoadError(f"Invalid JSON from {self.connection.host}") from e

        return parse_v1_response(data)

    async def aclose(self) -> None:
        await self._client.aclose()


ChannelFactory = Callable[[ClusterConnection], AdminChannel]


class AdminChannelPool:
    """
    Admin channels keyed by data source, created on first use and reused
    for the lifetime of the pool.
    """

    def __init__(self, factory: ChannelFactory | None = None):
        self._factory = factory or HttpAdminChannel
        self._channels: dict[str, AdminChannel] = {}
        self._lock = threading.Lock()

    def get(self, connection: ClusterConnection) -> AdminChannel:
        """Get or create the channel for a connection."""
        key = connection.key
        with self._lock:
            channel = self._channels.get(key)
            if channel is None:
                channel = self._factory(connection)
                self._channels[key] = channel
                logger.debug(f"Opened admin channel to {connection.data_source}")
            return channel

    def __len__(self) -> int:
        return len(self._channels)

    async def aclose(self) -> None:
        """Close and forget every channel."""
        with self._lock:
            channels = list(self._channels.values())
            self._channels.clear()

        for channel in channels:
            await channel.aclose()
