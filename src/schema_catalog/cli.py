#!/usr/bin/env python3
"""
CLI tool for loading and caching cluster schema.

Usage:
    schema-catalog --connection https://help.kusto.windows.net databases
    schema-catalog --connection https://help.kusto.windows.net load Samples
    schema-catalog --config catalog.yaml load Samples --json
    schema-catalog --cache-dir ~/.schema_catalog/cache clear-cache --cluster help
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from colorama import Fore, Style, init as colorama_init

from .catalog.serializer import serialize_database
from .catalog.types import DatabaseEntry
from .config import Config, build_loader
from .loaders.base import CatalogLoadError, SchemaLoader
from .loaders.cached import CachedSchemaLoader
from .loaders.file import FileSchemaLoader


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


def print_error(message: str) -> None:
    print(colorize(f"Error: {message}", Fore.RED), file=sys.stderr)


def print_database(db: DatabaseEntry) -> None:
    """Pretty print a loaded database."""
    title = db.name if not db.alternate_name else f"{db.name} ({db.alternate_name})"
    print(colorize(f"\n{title}", Style.BRIGHT))

    sections = [
        ("Tables", db.tables, Fore.GREEN),
        ("External tables", db.external_tables, Fore.CYAN),
        ("Materialized views", db.materialized_views, Fore.BLUE),
        ("Functions", db.functions, Fore.YELLOW),
        ("Entity groups", db.entity_groups, Fore.MAGENTA),
        ("Graph models", db.graph_models, Fore.MAGENTA),
    ]
    for label, members, color in sections:
        if not members:
            continue
        print(f"\n{colorize(label + ':', Style.BRIGHT)}")
        for member in members:
            if hasattr(member, "columns"):
                detail = member.schema
            elif hasattr(member, "parameters"):
                detail = member.parameters
            else:
                detail = ""
            print(f"  {colorize(member.name, color)}{Style.DIM}{detail}{Style.RESET_ALL}")


def _cache_of(loader: SchemaLoader) -> FileSchemaLoader | None:
    if isinstance(loader, FileSchemaLoader):
        return loader
    if isinstance(loader, CachedSchemaLoader):
        return loader.cache
    return None


async def cmd_databases(loader: SchemaLoader, args) -> int:
    """List the databases of a cluster."""
    names = await loader.list_database_names(args.cluster, throw_on_error=args.strict)
    if names is None:
        print_error(f"No databases found for {loader.full_cluster_name(args.cluster)}")
        return 1

    print(colorize(f"\nDatabases on {loader.full_cluster_name(args.cluster)}:", Style.BRIGHT))
    for name in names:
        pretty = f" {Style.DIM}({name.pretty_name}){Style.RESET_ALL}" if name.pretty_name else ""
        print(f"  {colorize(name.name, Fore.GREEN)}{pretty}")
    return 0


async def cmd_load(loader: SchemaLoader, args) -> int:
    """Load the schema of one database."""
    db = await loader.load_database(args.database, args.cluster, throw_on_error=args.strict)
    if db is None:
        print_error(f"Database '{args.database}' not found on {loader.full_cluster_name(args.cluster)}")
        return 1

    if args.json:
        print(serialize_database(db))
    else:
        print_database(db)
    return 0


async def cmd_clear_cache(loader: SchemaLoader, args) -> int:
    """Delete cached schema for one cluster, or the whole cache."""
    cache = _cache_of(loader)
    if cache is None:
        print_error("No cache directory configured")
        return 1

    if args.cluster:
        ok = cache.delete_cluster_cache(args.cluster)
    else:
        ok = cache.delete_cache()

    if not ok:
        print_error("Failed to delete cache")
        return 1

    print(colorize("Cache cleared", Fore.GREEN))
    return 0


COMMANDS = {
    "databases": cmd_databases,
    "load": cmd_load,
    "clear-cache": cmd_clear_cache,
}


def load_config(args) -> Config:
    """Build config from the config file and command-line overrides."""
    config = Config.from_yaml(args.config) if args.config else Config()

    if args.connection:
        config.remote.connection = args.connection
    if args.cache_dir:
        config.cache.directory = args.cache_dir
        config.cache.enabled = True
    if args.no_cache:
        config.cache.enabled = False
    if args.verbose:
        config.logging.level = "DEBUG"

    return config


async def run(args) -> int:
    config = load_config(args)
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        loader = build_loader(config)
    except ValueError as e:
        print_error(str(e))
        return 1

    async with loader:
        try:
            return await COMMANDS[args.command](loader, args)
        except CatalogLoadError as e:
            print_error(str(e))
            return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schema-catalog",
        description="Load and cache cluster schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--connection", help="Cluster URI or connection string")
    parser.add_argument("--cache-dir", help="Schema cache directory")
    parser.add_argument("--no-cache", action="store_true", help="Bypass the schema cache")
    parser.add_argument("--strict", action="store_true", help="Report load failures instead of 'not found'")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # databases command
    db_parser = subparsers.add_parser("databases", help="List the databases of a cluster")
    db_parser.add_argument("--cluster", help="Cluster name (defaults to the connection's cluster)")

    # load command
    load_parser = subparsers.add_parser("load", help="Load the schema of a database")
    load_parser.add_argument("database", help="Database name or pretty name")
    load_parser.add_argument("--cluster", help="Cluster name")
    load_parser.add_argument("--json", action="store_true", help="Print the cache document")

    # clear-cache command
    clear_parser = subparsers.add_parser("clear-cache", help="Delete cached schema")
    clear_parser.add_argument("--cluster", help="Only delete this cluster's cache")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    colorama_init()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main() or 0)
