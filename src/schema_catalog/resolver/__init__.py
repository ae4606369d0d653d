"""Reference resolution - discovers the clusters and databases a query depends on."""

from .analyzer import ClusterReference, DatabaseReference, QueryAnalyzer
from .resolver import ReferenceResolver, Resolution, ScriptResolution

__all__ = [
    "ClusterReference",
    "DatabaseReference",
    "QueryAnalyzer",
    "ReferenceResolver",
    "Resolution",
    "ScriptResolution",
]
