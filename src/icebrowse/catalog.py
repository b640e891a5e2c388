"""
Thin read-only client for an Iceberg REST catalog.

Provides the namespace/table listing endpoints a catalog browser needs and
the glue from a loaded table to its manifest list stats.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Mapping, Optional, TypeVar
from urllib.parse import quote

import requests

from .config import Settings
from .data_structures import S3Credentials, Snapshot, TableStats
from .exceptions import CatalogError
from .logging_config import get_logger
from .stats_cache import TableStatsService

logger = get_logger(__name__)

T = TypeVar("T")


class OnceValue(Generic[T]):
    """Lazily computed value shared by all callers.

    The first ``get`` starts the factory; concurrent callers await the same
    task. A successful value is kept for the lifetime of the holder. A
    failure is not kept, so the next ``get`` tries again.
    """

    def __init__(self, factory: Callable[[], Awaitable[T]]):
        self._factory = factory
        self._task: Optional["asyncio.Future[T]"] = None

    async def get(self) -> T:
        if self._task is None:
            self._task = asyncio.ensure_future(self._factory())
        task = self._task
        try:
            return await asyncio.shield(task)
        except Exception:
            if self._task is task:
                self._task = None
            raise


@dataclass
class LoadTableResult:
    """Response of the catalog's load-table endpoint"""

    metadata_location: Optional[str]
    metadata: Dict[str, Any]
    config: Dict[str, str] = field(default_factory=dict)
    storage_credentials: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LoadTableResult":
        return cls(
            metadata_location=data.get("metadata-location"),
            metadata=dict(data.get("metadata") or {}),
            config=dict(data.get("config") or {}),
            storage_credentials=list(data.get("storage-credentials") or []),
        )

    def snapshots(self) -> List[Snapshot]:
        return [Snapshot.from_dict(s) for s in self.metadata.get("snapshots") or []]

    def current_snapshot(self) -> Optional[Snapshot]:
        """The snapshot named by current-snapshot-id, if any"""
        current_id = self.metadata.get("current-snapshot-id")
        if current_id is None or current_id == -1:
            return None
        for snapshot in self.snapshots():
            if snapshot.snapshot_id == current_id:
                return snapshot
        return None

    def storage_properties(self, location: str) -> Dict[str, str]:
        """Table config merged with the best matching vended credentials.

        Among ``storage-credentials`` entries whose prefix matches the
        location, the longest prefix wins and overrides table config keys.
        """
        properties = dict(self.config)
        best: Optional[Dict[str, Any]] = None
        for entry in self.storage_credentials:
            prefix = entry.get("prefix", "")
            if location.startswith(prefix) and (
                best is None or len(prefix) > len(best.get("prefix", ""))
            ):
                best = entry
        if best is not None:
            properties.update(best.get("config") or {})
        return properties

    def credentials_for(self, location: str) -> Optional[S3Credentials]:
        return S3Credentials.from_properties(self.storage_properties(location))


class CatalogClient:
    """Read-only Iceberg REST catalog client.

    Args:
        settings: Catalog URI, warehouse, token and timeout
        session: requests-compatible session (anything with ``get``)
    """

    def __init__(self, settings: Settings, session: Optional[Any] = None):
        self.settings = settings
        self.session = session if session is not None else requests.Session()
        # Resolved once per client and never invalidated
        self._prefix: OnceValue[str] = OnceValue(self._resolve_prefix)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.token:
            headers["Authorization"] = f"Bearer {self.settings.token}"
        return headers

    def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        headers = self._headers()
        if extra_headers:
            headers.update(extra_headers)
        try:
            response = self.session.get(
                url, headers=headers, params=params, timeout=self.settings.http_timeout
            )
        except requests.RequestException as e:
            raise CatalogError(f"Catalog request failed for {url}: {e}", path=url) from e

        if not 200 <= response.status_code < 300:
            raise CatalogError(
                f"Iceberg API error: {response.status_code} for {url}",
                status=response.status_code,
                path=url,
            )
        return response.json()

    async def _resolve_prefix(self) -> str:
        url = f"{self.settings.catalog_uri}/v1/config"
        params = {"warehouse": self.settings.warehouse} if self.settings.warehouse else None
        config = await asyncio.to_thread(self._get_json, url, params)
        prefix = (config.get("overrides") or {}).get("prefix") or self.settings.warehouse
        logger.info(f"Catalog prefix resolved to '{prefix}'")
        return prefix

    async def _get(self, path: str, extra_headers: Optional[Dict[str, str]] = None) -> Any:
        prefix = await self._prefix.get()
        base = f"{self.settings.catalog_uri}/v1"
        if prefix:
            base = f"{base}/{quote(prefix, safe='')}"
        return await asyncio.to_thread(self._get_json, f"{base}{path}", None, extra_headers)

    async def list_namespaces(self) -> List[List[str]]:
        data = await self._get("/namespaces")
        return data.get("namespaces", [])

    async def get_namespace(self, namespace: str) -> Dict[str, Any]:
        return await self._get(f"/namespaces/{quote(namespace, safe='')}")

    async def list_tables(self, namespace: str) -> List[Dict[str, Any]]:
        data = await self._get(f"/namespaces/{quote(namespace, safe='')}/tables")
        return data.get("identifiers", [])

    async def load_table(self, namespace: str, table: str) -> LoadTableResult:
        """Load table metadata, asking the catalog for vended credentials"""
        data = await self._get(
            f"/namespaces/{quote(namespace, safe='')}/tables/{quote(table, safe='')}",
            extra_headers={"X-Iceberg-Access-Delegation": "vended-credentials"},
        )
        return LoadTableResult.from_dict(data)

    async def table_stats(
        self, namespace: str, table: str, stats_service: TableStatsService
    ) -> Optional[TableStats]:
        """Stats of a table's current snapshot.

        Returns:
            TableStats, or None when the table has no snapshot, the catalog
            vends no object storage credentials, or the manifest list is
            unavailable
        """
        result = await self.load_table(namespace, table)
        snapshot = result.current_snapshot()
        if snapshot is None:
            logger.info(f"Table {namespace}.{table} has no current snapshot")
            return None

        credentials = result.credentials_for(snapshot.manifest_list)
        if credentials is None:
            logger.info(f"No object storage credentials vended for {namespace}.{table}")
            return None

        return await stats_service.table_stats(snapshot.manifest_list, credentials)
