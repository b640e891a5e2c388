"""
Command line entry point: print manifest list stats for a table

Usage: python -m icebrowse <namespace> <table>
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from .catalog import CatalogClient
from .config import Settings
from .exceptions import CatalogError
from .object_store import ObjectStoreClient
from .stats_cache import FileStatsCache, InMemoryStatsCache, StatsCache, TableStatsService


async def _run(settings: Settings, namespace: str, table: str) -> int:
    cache: StatsCache = (
        FileStatsCache(settings.stats_cache_dir)
        if settings.stats_cache_dir
        else InMemoryStatsCache()
    )
    service = TableStatsService(
        client=ObjectStoreClient(timeout=settings.http_timeout),
        cache=cache,
        strict_sync=settings.strict_sync,
    )
    catalog = CatalogClient(settings)

    stats = await catalog.table_stats(namespace, table, service)
    await service.drain()

    if stats is None:
        print("no stats available")
    else:
        print(json.dumps(stats.to_dict()))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point when module is executed directly"""
    parser = argparse.ArgumentParser(
        prog="icebrowse", description="Print row and data file totals for an Iceberg table"
    )
    parser.add_argument("namespace")
    parser.add_argument("table")
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return 2

    try:
        return asyncio.run(_run(settings, args.namespace, args.table))
    except CatalogError as e:
        print(f"catalog error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
