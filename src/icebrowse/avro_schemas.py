"""
Avro schema model and the Iceberg manifest list schemas.

A container file embeds its writer schema as JSON. ``normalize_schema`` turns
that JSON into a small tagged representation (``SchemaType``) once, so the
decoder only dispatches on ``kind`` and never inspects raw JSON while reading
records.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from .exceptions import FormatError

PRIMITIVE_TYPES = frozenset(
    {"null", "boolean", "int", "long", "float", "double", "string", "bytes"}
)


@dataclass(frozen=True)
class Primitive:
    """A primitive type; logical type annotations are not kept"""

    name: str
    kind: ClassVar[str] = "primitive"


@dataclass(frozen=True)
class ArrayType:
    items: "SchemaType"
    kind: ClassVar[str] = "array"


@dataclass(frozen=True)
class MapType:
    values: "SchemaType"
    kind: ClassVar[str] = "map"


@dataclass(frozen=True)
class FixedType:
    size: int
    kind: ClassVar[str] = "fixed"


@dataclass(frozen=True)
class UnionType:
    """Union members in the order the writer schema declares them"""

    members: Tuple["SchemaType", ...]
    kind: ClassVar[str] = "union"


@dataclass(eq=False)
class RecordType:
    """A record with its fields in declaration order.

    Not frozen: a record is registered under its name before its fields are
    normalized so that self references resolve to the same object.
    """

    name: str = ""
    fields: List[Tuple[str, "SchemaType"]] = field(default_factory=list)
    kind: ClassVar[str] = "record"

    def field_names(self) -> List[str]:
        return [name for name, _ in self.fields]


SchemaType = Union[Primitive, ArrayType, MapType, FixedType, UnionType, RecordType]

NULL = Primitive("null")


def _full_name(name: str, namespace: Optional[str]) -> str:
    if "." in name or not namespace:
        return name
    return f"{namespace}.{name}"


def _fixed_size(schema: Dict[str, Any]) -> int:
    size = schema.get("size")
    # bool is an int subclass but never a valid size
    if not isinstance(size, int) or isinstance(size, bool) or size < 0:
        raise FormatError(f"Fixed type {schema.get('name')!r} has invalid size: {size!r}")
    return size

class _Normalizer:
    """Single normalization pass with a registry of named types."""

    def __init__(self) -> None:
        self.named: Dict[str, SchemaType] = {}

    def _register(self, schema: Dict[str, Any], namespace: Optional[str], value: SchemaType) -> None:
        name = schema.get("name")
        if not isinstance(name, str):
            return
        full_name = _full_name(name, schema.get("namespace", namespace))
        self.named[full_name] = value
        self.named.setdefault(full_name.rsplit(".", 1)[-1], value)

    def normalize(self, schema: Any, namespace: Optional[str] = None) -> SchemaType:
        if isinstance(schema, str):
            if schema in PRIMITIVE_TYPES:
                return Primitive(schema)
            named = self.named.get(_full_name(schema, namespace)) or self.named.get(schema)
            return named if named is not None else NULL

        if isinstance(schema, list):
            return UnionType(tuple(self.normalize(member, namespace) for member in schema))

        if not isinstance(schema, dict):
            return NULL

        type_name = schema.get("type")
        if isinstance(type_name, (dict, list)):
            return self.normalize(type_name, namespace)
        if type_name in PRIMITIVE_TYPES:
            # {"type": "long", "logicalType": "timestamp-micros"} -> long
            return Primitive(type_name)

        if type_name == "array":
            return ArrayType(self.normalize(schema.get("items"), namespace))
        if type_name == "map":
            return MapType(self.normalize(schema.get("values"), namespace))
        if type_name == "fixed":
            fixed = FixedType(_fixed_size(schema))
            self._register(schema, namespace, fixed)
            return fixed
        if type_name == "enum":
            # Symbols are not resolved; the wire value is the symbol index
            enum = Primitive("int")
            self._register(schema, namespace, enum)
            return enum
        if type_name in ("record", "error"):
            return self._normalize_record(schema, namespace)

        if isinstance(type_name, str) and type_name not in PRIMITIVE_TYPES:
            named = self.named.get(_full_name(type_name, namespace)) or self.named.get(type_name)
            if named is not None:
                return named

        return NULL

    def _normalize_record(self, schema: Dict[str, Any], namespace: Optional[str]) -> RecordType:
        record = RecordType(name=str(schema.get("name", "")))
        self._register(schema, namespace, record)

        name = schema.get("name")
        inner_namespace = namespace
        if isinstance(name, str):
            full_name = _full_name(name, schema.get("namespace", namespace))
            inner_namespace = full_name.rsplit(".", 1)[0] if "." in full_name else namespace

        fields = schema.get("fields") or []
        if not isinstance(fields, list):
            raise FormatError(f"Record {record.name!r} has non-list fields: {fields!r}")

        for field_def in fields:
            if not isinstance(field_def, dict) or not isinstance(field_def.get("name"), str):
                raise FormatError(f"Record {record.name!r} has a field without a name: {field_def!r}")
            record.fields.append(
                (field_def["name"], self.normalize(field_def.get("type"), inner_namespace))
            )
        return record


def normalize_schema(schema: Any) -> SchemaType:
    """Normalize a JSON-like Avro schema into a SchemaType.

    Args:
        schema: Parsed schema JSON (string, object or array)

    Returns:
        The normalized type. Unknown or unsupported types become
        ``Primitive("null")`` instead of failing, since most fields of a
        manifest list are skipped anyway.

    Raises:
        FormatError: If a record or fixed type is structurally malformed
            (non-list ``fields``, a field without a name, a bad ``size``)
    """
    return _Normalizer().normalize(schema)


# Iceberg format-version 2 manifest list (manifest_file) schema
MANIFEST_FILE_SCHEMA = {
    "type": "record",
    "name": "manifest_file",
    "fields": [
        {"name": "manifest_path", "type": "string", "field-id": 500},
        {"name": "manifest_length", "type": "long", "field-id": 501},
        {"name": "partition_spec_id", "type": "int", "field-id": 502},
        # 0 = data manifest, 1 = delete manifest
        {"name": "content", "type": "int", "field-id": 517},
        {"name": "sequence_number", "type": "long", "field-id": 515},
        {"name": "min_sequence_number", "type": "long", "field-id": 516},
        {"name": "added_snapshot_id", "type": "long", "field-id": 503},
        {"name": "added_files_count", "type": "int", "field-id": 504},
        {"name": "existing_files_count", "type": "int", "field-id": 505},
        {"name": "deleted_files_count", "type": "int", "field-id": 506},
        {"name": "added_rows_count", "type": "long", "field-id": 512},
        {"name": "existing_rows_count", "type": "long", "field-id": 513},
        {"name": "deleted_rows_count", "type": "long", "field-id": 514},
        {
            "name": "partitions",
            "type": [
                "null",
                {
                    "type": "array",
                    "element-id": 508,
                    "items": {
                        "type": "record",
                        "name": "r508",
                        "fields": [
                            {"name": "contains_null", "type": "boolean", "field-id": 509},
                            {"name": "contains_nan", "type": ["null", "boolean"], "default": None, "field-id": 518},
                            {"name": "lower_bound", "type": ["null", "bytes"], "default": None, "field-id": 510},
                            {"name": "upper_bound", "type": ["null", "bytes"], "default": None, "field-id": 511},
                        ],
                    },
                },
            ],
            "default": None,
            "field-id": 507,
        },
        {"name": "key_metadata", "type": ["null", "bytes"], "default": None, "field-id": 519},
    ],
}

# Format-version 1 manifest lists: no content column, optional counters and
# the older *_data_files_count names
MANIFEST_FILE_V1_SCHEMA = {
    "type": "record",
    "name": "manifest_file",
    "fields": [
        {"name": "manifest_path", "type": "string", "field-id": 500},
        {"name": "manifest_length", "type": "long", "field-id": 501},
        {"name": "partition_spec_id", "type": "int", "field-id": 502},
        {"name": "added_snapshot_id", "type": ["null", "long"], "default": None, "field-id": 503},
        {"name": "added_data_files_count", "type": ["null", "int"], "default": None, "field-id": 504},
        {"name": "existing_data_files_count", "type": ["null", "int"], "default": None, "field-id": 505},
        {"name": "deleted_data_files_count", "type": ["null", "int"], "default": None, "field-id": 506},
        {"name": "added_rows_count", "type": ["null", "long"], "default": None, "field-id": 512},
        {"name": "existing_rows_count", "type": ["null", "long"], "default": None, "field-id": 513},
        {"name": "deleted_rows_count", "type": ["null", "long"], "default": None, "field-id": 514},
    ],
}
