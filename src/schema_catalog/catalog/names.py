"""Cluster host name normalization."""

from __future__ import annotations

from urllib.parse import urlsplit


DEFAULT_DOMAIN = ".kusto.windows.net"


def get_host_name(cluster_name_or_uri: str) -> str:
    """
    Extract the host part of a cluster name or URI.

    Examples:
        https://help.kusto.windows.net:443/Samples -> help.kusto.windows.net
        help.kusto.windows.net                    -> help.kusto.windows.net
        help                                      -> help
    """
    text = (cluster_name_or_uri or "").strip()
    if not text:
        return ""

    if "://" in text:
        return urlsplit(text).hostname or ""

    # bare host, possibly with a port or trailing path
    host = text.split("/", 1)[0]
    return host.split(":", 1)[0]


def get_full_host_name(cluster_name_or_uri: str, default_domain: str | None = None) -> str:
    """
    Normalize a cluster name to its fully-qualified host name.

    The default domain is appended only when the host has no domain of its own.
    """
    host = get_host_name(cluster_name_or_uri)
    if not host:
        return ""

    domain = default_domain or DEFAULT_DOMAIN
    if not domain.startswith("."):
        domain = "." + domain

    if "." in host:
        return host
    return host + domain


def same_cluster(a: str | None, b: str | None) -> bool:
    """Cluster names compare case-insensitively."""
    if a is None or b is None:
        return a is b
    return a.casefold() == b.casefold()
