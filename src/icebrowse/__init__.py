"""
icebrowse - read-only core of an Iceberg catalog browser

Decodes Iceberg manifest lists (Avro object container files) without a schema
compiler library and fetches them from S3-compatible object storage with
SigV4-signed requests, using credentials vended by an Iceberg REST catalog.
"""

__version__ = "0.1.0"


from .avro_schemas import normalize_schema
from .binary_cursor import BinaryCursor
from .catalog import CatalogClient, LoadTableResult
from .config import Settings
from .container_decoder import ContainerDecoder, decode_container
from .data_structures import S3Credentials, Snapshot, TableStats
from .exceptions import (
    CacheError,
    CatalogError,
    FormatError,
    IceBrowseError,
    StorageFetchError,
)
from .manifest_stats import ManifestStatsAggregator, compute_manifest_stats
from .object_store import ObjectStoreClient, parse_s3_uri
from .request_signer import RequestSigner, derive_signing_key
from .stats_cache import (
    FileStatsCache,
    InMemoryStatsCache,
    StatsCache,
    TableStatsService,
    cache_key,
)

__all__ = [
    "BinaryCursor",
    "normalize_schema",
    "ContainerDecoder",
    "decode_container",
    "RequestSigner",
    "derive_signing_key",
    "ObjectStoreClient",
    "parse_s3_uri",
    "ManifestStatsAggregator",
    "compute_manifest_stats",
    "StatsCache",
    "InMemoryStatsCache",
    "FileStatsCache",
    "TableStatsService",
    "cache_key",
    "CatalogClient",
    "LoadTableResult",
    "Settings",
    "S3Credentials",
    "Snapshot",
    "TableStats",
    "IceBrowseError",
    "FormatError",
    "StorageFetchError",
    "CacheError",
    "CatalogError",
    "__version__",
]
