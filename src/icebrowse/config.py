"""
Process configuration for icebrowse.

Configuration is read from environment variables:

    ICEBROWSE_CATALOG_URI=https://catalog.example.com (required for catalog access)
    ICEBROWSE_CATALOG_WAREHOUSE=warehouse-name (optional, default: "")
    ICEBROWSE_CATALOG_TOKEN=bearer-token (optional)
    ICEBROWSE_HTTP_TIMEOUT=30 (seconds, optional)
    ICEBROWSE_STATS_CACHE_DIR=/var/cache/icebrowse (optional, enables the file cache)
    ICEBROWSE_STRICT_SYNC=false (optional, "true"/"1"/"yes" to reject sync mismatches)
    ICEBROWSE_LOG_LEVEL=INFO (read by logging_config)
"""

import os
from dataclasses import dataclass, field
from typing import Optional

_TRUE_VALUES = ("true", "1", "yes")


@dataclass(frozen=True)
class Settings:
    """Catalog and stats pipeline settings"""

    catalog_uri: str
    warehouse: str = ""
    token: Optional[str] = field(default=None, repr=False)
    http_timeout: float = 30.0
    stats_cache_dir: Optional[str] = None
    strict_sync: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from ICEBROWSE_* environment variables.

        Returns:
            Settings instance

        Raises:
            ValueError: If a required variable is missing or a value is invalid
        """
        catalog_uri = os.getenv("ICEBROWSE_CATALOG_URI")
        if not catalog_uri:
            raise ValueError("ICEBROWSE_CATALOG_URI environment variable is required")

        timeout_value = os.getenv("ICEBROWSE_HTTP_TIMEOUT", "30")
        try:
            http_timeout = float(timeout_value)
        except ValueError as e:
            raise ValueError(
                f"ICEBROWSE_HTTP_TIMEOUT must be a number of seconds, got '{timeout_value}'"
            ) from e

        return cls(
            catalog_uri=catalog_uri.rstrip("/"),
            warehouse=os.getenv("ICEBROWSE_CATALOG_WAREHOUSE", ""),
            token=os.getenv("ICEBROWSE_CATALOG_TOKEN") or None,
            http_timeout=http_timeout,
            stats_cache_dir=os.getenv("ICEBROWSE_STATS_CACHE_DIR") or None,
            strict_sync=os.getenv("ICEBROWSE_STRICT_SYNC", "false").lower() in _TRUE_VALUES,
        )
