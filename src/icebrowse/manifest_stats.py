"""
Row and data file totals from an Iceberg manifest list.

Only data manifests (``content == 0``) count. Delete manifests track
row-level deletes separately and contribute nothing to the totals.
"""

from typing import Any, Iterable, Mapping, Optional

from .container_decoder import ContainerDecoder
from .data_structures import ManifestContent, S3Credentials, TableStats
from .exceptions import FormatError, StorageFetchError
from .logging_config import get_logger
from .object_store import ObjectStoreClient

logger = get_logger(__name__)

# Format-version 1 manifest lists use the *_data_files_count names
_FILE_COUNT_ALIASES = {
    "added_files_count": "added_data_files_count",
    "existing_files_count": "existing_data_files_count",
    "deleted_files_count": "deleted_data_files_count",
}

MANIFEST_STATS_FIELDS = frozenset(
    {
        "content",
        "added_rows_count",
        "existing_rows_count",
        "deleted_rows_count",
        *_FILE_COUNT_ALIASES,
        *_FILE_COUNT_ALIASES.values(),
    }
)


def _count(record: Mapping[str, Any], name: str) -> int:
    value = record.get(name)
    if value is None and name in _FILE_COUNT_ALIASES:
        value = record.get(_FILE_COUNT_ALIASES[name])
    return int(value) if value is not None else 0


class ManifestStatsAggregator:
    """Folds manifest list records into total row and data file counts.

    Totals are not clamped; inconsistent upstream counters can make them
    negative.
    """

    def __init__(self) -> None:
        self.total_records = 0
        self.total_data_files = 0
        self.manifests_seen = 0
        self.delete_manifests_skipped = 0

    def add(self, record: Mapping[str, Any]) -> None:
        self.manifests_seen += 1
        content = record.get("content")
        if (content or ManifestContent.DATA.value) != ManifestContent.DATA.value:
            self.delete_manifests_skipped += 1
            return

        self.total_records += (
            _count(record, "added_rows_count")
            + _count(record, "existing_rows_count")
            - _count(record, "deleted_rows_count")
        )
        self.total_data_files += (
            _count(record, "added_files_count")
            + _count(record, "existing_files_count")
            - _count(record, "deleted_files_count")
        )

    def add_all(self, records: Iterable[Mapping[str, Any]]) -> "ManifestStatsAggregator":
        for record in records:
            self.add(record)
        return self

    def result(self) -> TableStats:
        return TableStats(
            total_records=self.total_records,
            total_data_files=self.total_data_files,
        )


def stats_from_manifest_list(data: bytes, strict_sync: bool = False) -> TableStats:
    """Decode a manifest list file and aggregate its counters.

    Raises:
        FormatError: If the file is not a valid container file
    """
    decoder = ContainerDecoder(data, fields=MANIFEST_STATS_FIELDS, strict_sync=strict_sync)
    aggregator = ManifestStatsAggregator().add_all(decoder.iter_records())
    logger.debug(
        f"Aggregated {aggregator.manifests_seen} manifests "
        f"({aggregator.delete_manifests_skipped} delete manifests skipped)"
    )
    return aggregator.result()


async def compute_manifest_stats(
    manifest_list: str,
    credentials: Optional[S3Credentials],
    client: ObjectStoreClient,
    strict_sync: bool = False,
) -> Optional[TableStats]:
    """Fetch a manifest list and compute its totals.

    Manifest stats are a best-effort enrichment: missing credentials,
    unsupported locations, fetch failures and corrupt files all yield None.

    Args:
        manifest_list: ``s3://`` location of the manifest list
        credentials: Object storage credentials, or None if the catalog
            handed out none
        client: Object store client used for the signed GET
        strict_sync: Treat sync marker mismatches as corruption

    Returns:
        TableStats, or None when stats are unavailable
    """
    if credentials is None:
        logger.debug(f"No object storage credentials for {manifest_list}")
        return None

    try:
        data = await client.get_object(manifest_list, credentials)
    except ValueError as e:
        logger.warning(f"Cannot fetch manifest list {manifest_list}: {e}")
        return None
    except StorageFetchError as e:
        logger.warning(
            f"Manifest list fetch failed for {manifest_list}: {e} "
            f"(status={e.status}, body={e.body[:200]!r})"
        )
        return None

    try:
        stats = stats_from_manifest_list(data, strict_sync=strict_sync)
    except FormatError as e:
        logger.warning(f"Manifest list {manifest_list} could not be decoded: {e}")
        return None

    logger.info(
        f"Manifest list {manifest_list}: {stats.total_records} records, "
        f"{stats.total_data_files} data files"
    )
    return stats
