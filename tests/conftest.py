import io
import json
import os
import threading

import fastavro
import pytest


@pytest.fixture(autouse=True)
def clear_icebrowse_env(monkeypatch):
    """
    Ensure tests never pick up ICEBROWSE_* settings from the outer
    environment. Tests that need configuration set it explicitly.
    """
    for name in list(os.environ):
        if name.startswith("ICEBROWSE_"):
            monkeypatch.delenv(name)


class FakeResponse:
    """Minimal stand-in for requests.Response"""

    def __init__(self, status_code=200, content=b"", json_body=None):
        self.status_code = status_code
        if json_body is not None:
            content = json.dumps(json_body).encode("utf-8")
        self.content = content
        self.text = content.decode("utf-8", errors="replace")

    def json(self):
        return json.loads(self.content.decode("utf-8"))


class FakeSession:
    """Records GET calls and answers from a url -> FakeResponse mapping.

    Values may be callables taking the request kwargs, for responses that
    need to inspect headers or block.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self._lock = threading.Lock()

    def get(self, url, headers=None, params=None, timeout=None):
        with self._lock:
            self.calls.append({"url": url, "headers": dict(headers or {}), "params": params})
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404, b"<Error><Code>NoSuchKey</Code></Error>")
        if callable(route):
            return route(url=url, headers=headers, params=params)
        return route


@pytest.fixture
def fake_session():
    return FakeSession()


def write_container(schema, records, codec="null", sync_interval=None):
    """Write records to an Avro container file with fastavro"""
    buffer = io.BytesIO()
    kwargs = {"codec": codec}
    if sync_interval is not None:
        kwargs["sync_interval"] = sync_interval
    fastavro.writer(buffer, fastavro.parse_schema(schema), records, **kwargs)
    return buffer.getvalue()


SYNC = bytes(range(16))


def _avro_bytes(value):
    from icebrowse.varint import encode_long

    return encode_long(len(value)) + value


def build_container(schema, blocks, codec=None, sync=SYNC, block_sync=None):
    """Assemble a container file by hand.

    Args:
        schema: Writer schema (dict, serialized into avro.schema)
        blocks: List of (object_count, payload_bytes); payloads are written
            as given, so compressed payloads must already be compressed
        codec: Value for avro.codec, or None to omit the entry
        sync: Header sync marker
        block_sync: Marker written after each block (defaults to sync)
    """
    from icebrowse.varint import encode_long

    meta = {"avro.schema": json.dumps(schema).encode("utf-8")}
    if codec is not None:
        meta["avro.codec"] = codec.encode("utf-8")

    out = bytearray(b"Obj\x01")
    out += encode_long(len(meta))
    for key, value in meta.items():
        out += _avro_bytes(key.encode("utf-8"))
        out += _avro_bytes(value)
    out += encode_long(0)
    out += sync

    for count, payload in blocks:
        out += encode_long(count)
        out += encode_long(len(payload))
        out += payload
        out += block_sync if block_sync is not None else sync
    return bytes(out)


def manifest_record(
    path="s3://warehouse/db/t/metadata/m0.avro",
    content=0,
    added_files=1,
    existing_files=0,
    deleted_files=0,
    added_rows=10,
    existing_rows=0,
    deleted_rows=0,
    partitions=None,
):
    """A manifest_file record matching MANIFEST_FILE_SCHEMA"""
    return {
        "manifest_path": path,
        "manifest_length": 4096,
        "partition_spec_id": 0,
        "content": content,
        "sequence_number": 3,
        "min_sequence_number": 1,
        "added_snapshot_id": 6287345119430123456,
        "added_files_count": added_files,
        "existing_files_count": existing_files,
        "deleted_files_count": deleted_files,
        "added_rows_count": added_rows,
        "existing_rows_count": existing_rows,
        "deleted_rows_count": deleted_rows,
        "partitions": partitions,
        "key_metadata": None,
    }
