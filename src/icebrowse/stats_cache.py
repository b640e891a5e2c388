"""
Caching layer for manifest list stats.

A manifest list location never changes once written (a new snapshot always
gets a new location), so stats computed for a location can be cached
forever. The cache sits behind the ``StatsCache`` port; ``TableStatsService``
wraps the expensive fetch-and-decode path with it.
"""

import asyncio
import hashlib
import json
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Dict, Optional, Set

from .data_structures import S3Credentials, TableStats
from .exceptions import CacheError
from .logging_config import get_logger
from .manifest_stats import compute_manifest_stats
from .object_store import ObjectStoreClient

logger = get_logger(__name__)

CACHE_KEY_PREFIX = "manifest-stats/"


def cache_key(manifest_list: str) -> str:
    """Stable, collision-free cache key for a manifest list location"""
    digest = hashlib.sha256(manifest_list.encode("utf-8")).hexdigest()
    return f"{CACHE_KEY_PREFIX}{digest}"


class StatsCache(ABC):
    """Abstract cache port for TableStats"""

    @abstractmethod
    async def get(self, key: str) -> Optional[TableStats]:
        """Return cached stats, or None on a miss"""
        pass

    @abstractmethod
    async def put(self, key: str, value: TableStats) -> None:
        """Store stats under key"""
        pass


class InMemoryStatsCache(StatsCache):
    """Process-local dictionary cache"""

    def __init__(self) -> None:
        self._entries: Dict[str, TableStats] = {}

    async def get(self, key: str) -> Optional[TableStats]:
        return self._entries.get(key)

    async def put(self, key: str, value: TableStats) -> None:
        self._entries[key] = value

    def __len__(self) -> int:
        return len(self._entries)


class FileStatsCache(StatsCache):
    """JSON-file cache under a base directory.

    Each key maps to one file. Writes go to a temp file in the same
    directory, are fsynced and then renamed over the target, so readers never
    see partial entries.
    """

    def __init__(self, base_path: str):
        self.base_path = base_path

    def _resolve_path(self, key: str) -> str:
        """Resolve a cache key to a file path inside base_path"""
        joined_path = os.path.join(self.base_path, key.lstrip("/") + ".json")

        # Canonicalize paths to resolve '..'
        full_path = os.path.abspath(joined_path)
        base_path = os.path.abspath(self.base_path)

        if os.path.commonpath([full_path, base_path]) != base_path:
            raise ValueError(
                f"Security Error: Path traversal attempt detected. Resolved path "
                f"'{full_path}' is outside base directory '{base_path}'"
            )
        return full_path

    def _read(self, key: str) -> Optional[TableStats]:
        full_path = self._resolve_path(key)
        try:
            with open(full_path, "rb") as f:
                content = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheError(f"Failed to read cache entry {key}: {e}") from e

        try:
            return TableStats.from_dict(json.loads(content.decode("utf-8")))
        except (ValueError, KeyError, TypeError) as e:
            raise CacheError(f"Corrupt cache entry {key}: {e}") from e

    def _write(self, key: str, value: TableStats) -> None:
        full_path = self._resolve_path(key)
        dir_path = os.path.dirname(full_path)
        content = json.dumps(value.to_dict()).encode("utf-8")

        try:
            os.makedirs(dir_path, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=dir_path, prefix=".tmp.", suffix=f".{os.path.basename(full_path)}"
            )
        except OSError as e:
            raise CacheError(f"Failed to write cache entry {key}: {e}") from e

        try:
            os.write(fd, content)
            os.fsync(fd)
            os.close(fd)
            fd = -1
            # Atomic rename makes the entry visible in one step
            os.replace(temp_path, full_path)
        except OSError as e:
            if fd >= 0:
                os.close(fd)
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise CacheError(f"Failed to write cache entry {key}: {e}") from e

        logger.debug(f"Wrote cache entry {key}")

    async def get(self, key: str) -> Optional[TableStats]:
        return await asyncio.to_thread(self._read, key)

    async def put(self, key: str, value: TableStats) -> None:
        await asyncio.to_thread(self._write, key, value)


class TableStatsService:
    """Computes manifest list stats with optional caching and single flight.

    At most one computation runs per manifest list location at a time:
    concurrent callers share the in-flight task. When every caller waiting on
    a computation has been cancelled, the computation is cancelled too.
    Cache writes are detached tasks; a failing cache never fails or delays a
    result.

    Args:
        client: Object store client used for signed fetches
        cache: Optional cache port implementation
        strict_sync: Treat sync marker mismatches as corruption
    """

    def __init__(
        self,
        client: Optional[ObjectStoreClient] = None,
        cache: Optional[StatsCache] = None,
        strict_sync: bool = False,
    ):
        self.client = client if client is not None else ObjectStoreClient()
        self.cache = cache
        self.strict_sync = strict_sync
        self._inflight: Dict[str, "asyncio.Task[Optional[TableStats]]"] = {}
        self._waiters: Dict[str, int] = {}
        self._background: Set["asyncio.Task[None]"] = set()

    async def _cache_get(self, key: str) -> Optional[TableStats]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Stats cache read failed for {key}, treating as miss: {e}")
            return None

    async def _cache_put(self, key: str, stats: TableStats) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.put(key, stats)
        except Exception as e:
            logger.error(f"Stats cache write failed for {key}: {e}")

    def _spawn_cache_put(self, key: str, stats: TableStats) -> "asyncio.Task[None]":
        """Schedule a cache write without awaiting it"""
        task = asyncio.get_running_loop().create_task(self._cache_put(key, stats))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _forget(self, key: str, task: "asyncio.Task[Optional[TableStats]]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def _on_computed(self, key: str, task: "asyncio.Task[Optional[TableStats]]") -> None:
        if task.cancelled() or task.exception() is not None:
            self._forget(key, task)
            return

        stats = task.result()
        if stats is None or self.cache is None:
            self._forget(key, task)
            return

        # The finished task stays visible to new callers until the cache
        # write lands, so no second fetch starts in between.
        write = self._spawn_cache_put(key, stats)
        write.add_done_callback(lambda _, k=key, t=task: self._forget(k, t))

    async def table_stats(
        self, manifest_list: str, credentials: Optional[S3Credentials]
    ) -> Optional[TableStats]:
        """Return stats for a manifest list, or None when unavailable.

        Args:
            manifest_list: ``s3://`` location of the snapshot's manifest list
            credentials: Object storage credentials from the catalog, or None

        Returns:
            TableStats, or None when credentials are missing or the manifest
            list cannot be fetched or decoded
        """
        if credentials is None:
            return None

        key = cache_key(manifest_list)
        cached = await self._cache_get(key)
        if cached is not None:
            logger.info(f"Stats cache hit for {manifest_list}")
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                compute_manifest_stats(
                    manifest_list, credentials, self.client, strict_sync=self.strict_sync
                )
            )
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._on_computed(k, done))
        else:
            logger.debug(f"Joining in-flight stats computation for {manifest_list}")

        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            return await asyncio.shield(task)
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                if not task.done():
                    # Last interested caller went away
                    task.cancel()

    async def drain(self) -> None:
        """Wait for all scheduled cache writes to finish"""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
