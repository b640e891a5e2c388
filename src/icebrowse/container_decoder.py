"""
Avro object container file decoder.

Decodes the file framing (magic, metadata map, sync marker, data blocks) and
materializes only the record fields a caller asks for. Unrequested fields are
skipped by advancing the cursor exactly as far as a full decode would.

Supported codecs are ``null`` and ``deflate`` (raw deflate, no zlib
header or trailer).
"""

import json
import zlib
from dataclasses import dataclass
from typing import AbstractSet, Any, Callable, Dict, Iterator, List, Optional, Union

from .avro_schemas import RecordType, SchemaType, UnionType, normalize_schema
from .binary_cursor import BinaryCursor
from .exceptions import FormatError
from .logging_config import get_logger

logger = get_logger(__name__)

MAGIC = b"Obj\x01"
SYNC_SIZE = 16
SUPPORTED_CODECS = ("null", "deflate")

DecodedRecord = Dict[str, Any]


@dataclass
class ContainerMetadata:
    """Header of a container file"""

    meta: Dict[str, bytes]
    sync: bytes
    codec: str
    schema: RecordType


# Primitive readers and skippers, keyed by primitive name. Each skipper
# consumes exactly the bytes its reader would.
_PRIMITIVE_READERS: Dict[str, Callable[[BinaryCursor], Any]] = {
    "null": lambda cursor: None,
    "boolean": BinaryCursor.read_boolean,
    "int": BinaryCursor.read_int,
    "long": BinaryCursor.read_long,
    "float": BinaryCursor.read_float,
    "double": BinaryCursor.read_double,
    "string": BinaryCursor.read_string,
    "bytes": BinaryCursor.read_bytes_value,
}

_PRIMITIVE_SKIPPERS: Dict[str, Callable[[BinaryCursor], Any]] = {
    "null": lambda cursor: None,
    "boolean": lambda cursor: cursor.skip(1),
    "int": BinaryCursor.read_long,
    "long": BinaryCursor.read_long,
    "float": lambda cursor: cursor.skip(4),
    "double": lambda cursor: cursor.skip(8),
    "string": BinaryCursor.skip_bytes_value,
    "bytes": BinaryCursor.skip_bytes_value,
}


def _block_counts(cursor: BinaryCursor) -> Iterator[int]:
    """Yield the item count of each block of an array or map body.

    A negative count means ``abs(count)`` items preceded by the block's byte
    length; the length is read and ignored since items are always visited
    one by one. Iteration stops at the terminating zero count.
    """
    count = cursor.read_long()
    while count != 0:
        if count < 0:
            count = -count
            cursor.read_long()  # block byte size
        yield count
        count = cursor.read_long()


def _union_member(cursor: BinaryCursor, schema: UnionType) -> SchemaType:
    position = cursor.position
    index = cursor.read_long()
    if not 0 <= index < len(schema.members):
        raise FormatError(
            f"Union index {index} out of range for {len(schema.members)} members "
            f"at position {position}"
        )
    return schema.members[index]


def read_value(cursor: BinaryCursor, schema: SchemaType) -> Any:
    """Decode one value of ``schema`` from the cursor"""
    kind = schema.kind
    if kind == "primitive":
        return _PRIMITIVE_READERS[schema.name](cursor)  # type: ignore[union-attr]
    if kind == "union":
        return read_value(cursor, _union_member(cursor, schema))  # type: ignore[arg-type]
    if kind == "record":
        return {name: read_value(cursor, field_type) for name, field_type in schema.fields}  # type: ignore[union-attr]
    if kind == "array":
        items: List[Any] = []
        for count in _block_counts(cursor):
            for _ in range(count):
                items.append(read_value(cursor, schema.items))  # type: ignore[union-attr]
        return items
    if kind == "map":
        entries: Dict[str, Any] = {}
        for count in _block_counts(cursor):
            for _ in range(count):
                key = cursor.read_string()
                entries[key] = read_value(cursor, schema.values)  # type: ignore[union-attr]
        return entries
    if kind == "fixed":
        return cursor.read_fixed(schema.size)  # type: ignore[union-attr]
    raise FormatError(f"Unsupported schema kind: {kind}")


def skip_value(cursor: BinaryCursor, schema: SchemaType) -> None:
    """Advance past one value of ``schema`` without materializing it"""
    kind = schema.kind
    if kind == "primitive":
        _PRIMITIVE_SKIPPERS[schema.name](cursor)  # type: ignore[union-attr]
    elif kind == "union":
        skip_value(cursor, _union_member(cursor, schema))  # type: ignore[arg-type]
    elif kind == "record":
        for _, field_type in schema.fields:  # type: ignore[union-attr]
            skip_value(cursor, field_type)
    elif kind == "array":
        for count in _block_counts(cursor):
            for _ in range(count):
                skip_value(cursor, schema.items)  # type: ignore[union-attr]
    elif kind == "map":
        for count in _block_counts(cursor):
            for _ in range(count):
                cursor.skip_bytes_value()
                skip_value(cursor, schema.values)  # type: ignore[union-attr]
    elif kind == "fixed":
        cursor.skip(schema.size)  # type: ignore[union-attr]
    else:
        raise FormatError(f"Unsupported schema kind: {kind}")


def _read_metadata_map(cursor: BinaryCursor) -> Dict[str, bytes]:
    meta: Dict[str, bytes] = {}
    for count in _block_counts(cursor):
        for _ in range(count):
            key = cursor.read_string()
            meta[key] = cursor.read_bytes_value()
    return meta


class ContainerDecoder:
    """Decodes an Avro object container file held in memory.

    Args:
        data: Complete file contents
        fields: Names of top-level fields to materialize; None means all
        strict_sync: Raise FormatError when a block's trailing sync marker
            differs from the header's. Off by default: the marker is only
            consumed positionally.
    """

    def __init__(
        self,
        data: Union[bytes, bytearray, memoryview],
        fields: Optional[AbstractSet[str]] = None,
        strict_sync: bool = False,
    ):
        self.fields = fields
        self.strict_sync = strict_sync
        self._cursor = BinaryCursor(data)
        self.metadata = self._read_header()

    def _read_header(self) -> ContainerMetadata:
        cursor = self._cursor
        if cursor.remaining < len(MAGIC) or bytes(cursor.read_bytes(len(MAGIC))) != MAGIC:
            raise FormatError("Not an Avro container file: bad magic")

        meta = _read_metadata_map(cursor)
        sync = bytes(cursor.read_bytes(SYNC_SIZE))

        codec = meta.get("avro.codec", b"null").decode("utf-8", errors="replace")
        if codec not in SUPPORTED_CODECS:
            raise FormatError(f"Unsupported codec: {codec}")

        if "avro.schema" not in meta:
            raise FormatError("Container metadata has no avro.schema entry")
        try:
            schema_json = json.loads(meta["avro.schema"].decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FormatError(f"Invalid avro.schema metadata: {e}") from e

        schema = normalize_schema(schema_json)
        if not isinstance(schema, RecordType):
            raise FormatError(f"Top-level schema must be a record, got {schema.kind}")

        logger.debug(f"Container header: codec={codec}, fields={schema.field_names()}")
        return ContainerMetadata(meta=meta, sync=sync, codec=codec, schema=schema)

    def _block_payload(self, payload: memoryview) -> Union[bytes, memoryview]:
        if self.metadata.codec != "deflate":
            return payload
        try:
            return zlib.decompress(payload, -zlib.MAX_WBITS)
        except zlib.error as e:
            raise FormatError(f"Failed to inflate block: {e}") from e

    def _read_record(self, cursor: BinaryCursor) -> DecodedRecord:
        record: DecodedRecord = {}
        wanted = self.fields
        for name, field_type in self.metadata.schema.fields:
            if wanted is None or name in wanted:
                record[name] = read_value(cursor, field_type)
            else:
                skip_value(cursor, field_type)
        return record

    def iter_records(self) -> Iterator[DecodedRecord]:
        """Yield records block by block, in file order"""
        cursor = self._cursor
        block_index = 0
        while cursor.remaining > 0:
            object_count = cursor.read_long()
            block_size = cursor.read_long()
            if object_count < 0:
                raise FormatError(f"Negative object count {object_count} in block {block_index}")
            payload = self._block_payload(cursor.read_bytes(block_size))

            block_cursor = BinaryCursor(payload)
            for index in range(object_count):
                record = self._read_record(block_cursor)
                if index == 0 and object_count > 1 and block_cursor.position == 0:
                    # Zero-width records leave the object count unbounded by the payload
                    raise FormatError(
                        f"Block {block_index} declares {object_count} records "
                        f"that decode from zero bytes"
                    )
                yield record
            if block_cursor.remaining:
                logger.debug(f"Block {block_index}: {block_cursor.remaining} trailing bytes ignored")

            sync = bytes(cursor.read_bytes(SYNC_SIZE))
            if sync != self.metadata.sync:
                if self.strict_sync:
                    raise FormatError(f"Sync marker mismatch after block {block_index}")
                logger.debug(f"Sync marker mismatch after block {block_index} ignored")

            logger.debug(f"Decoded block {block_index}: {object_count} records, {block_size} bytes")
            block_index += 1


def decode_container(
    data: Union[bytes, bytearray, memoryview],
    fields: Optional[AbstractSet[str]] = None,
    strict_sync: bool = False,
) -> List[DecodedRecord]:
    """Decode every record of a container file.

    Args:
        data: Complete file contents
        fields: Top-level field names to keep; None keeps all fields
        strict_sync: Treat sync marker mismatches as corruption

    Returns:
        Decoded records in file order

    Raises:
        FormatError: If the file is malformed or truncated
    """
    return list(ContainerDecoder(data, fields, strict_sync).iter_records())
