"""
Schema catalog - loads cluster and database schema on demand.

An immutable catalog snapshot is grown by schema loaders (remote, file cache,
cache-aside) and by the reference resolver, which follows the cluster and
database references of a query until nothing new is found.
"""

__version__ = "0.1.0"
