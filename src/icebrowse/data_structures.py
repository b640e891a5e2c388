"""
Core data structures shared by the catalog client and the stats pipeline
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ManifestContent(Enum):
    """Type of content tracked by a manifest"""

    DATA = 0
    DELETES = 1


@dataclass(frozen=True)
class TableStats:
    """Aggregate row and data file counts for one snapshot"""

    total_records: int
    total_data_files: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_records": self.total_records,
            "total_data_files": self.total_data_files,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TableStats":
        return cls(
            total_records=int(data["total_records"]),
            total_data_files=int(data["total_data_files"]),
        )


@dataclass(frozen=True)
class S3Credentials:
    """Object storage credentials handed out by the catalog for one table"""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    endpoint: str
    region: str = "auto"

    @classmethod
    def from_properties(cls, properties: Mapping[str, str]) -> Optional["S3Credentials"]:
        """Build credentials from catalog config properties.

        Args:
            properties: String-keyed catalog properties (``s3.access-key-id``,
                ``s3.secret-access-key``, ``s3.endpoint`` and optionally
                ``s3.region`` or ``region``)

        Returns:
            Credentials, or None when any of key id, secret or endpoint is
            missing
        """
        access_key_id = properties.get("s3.access-key-id")
        secret_access_key = properties.get("s3.secret-access-key")
        endpoint = properties.get("s3.endpoint")
        if not (access_key_id and secret_access_key and endpoint):
            return None

        region = properties.get("s3.region") or properties.get("region") or "auto"
        return cls(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            endpoint=endpoint,
            region=region,
        )


@dataclass
class Snapshot:
    """Snapshot descriptor as returned by the catalog"""

    snapshot_id: int
    manifest_list: str
    timestamp_ms: Optional[int] = None
    parent_snapshot_id: Optional[int] = None
    sequence_number: Optional[int] = None
    schema_id: Optional[int] = None
    operation: Optional[str] = None
    summary: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        summary = dict(data.get("summary") or {})
        return cls(
            snapshot_id=data["snapshot-id"],
            manifest_list=data["manifest-list"],
            timestamp_ms=data.get("timestamp-ms"),
            parent_snapshot_id=data.get("parent-snapshot-id"),
            sequence_number=data.get("sequence-number"),
            schema_id=data.get("schema-id"),
            operation=data.get("operation") or summary.get("operation"),
            summary=summary,
        )
