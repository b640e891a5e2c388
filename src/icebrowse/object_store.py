"""
Read-only access to S3-compatible object storage.

Objects are fetched with hand-signed SigV4 GET requests using per-table
credentials from the catalog. Locations are ``s3://bucket/key`` URIs.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

import requests

from .data_structures import S3Credentials
from .exceptions import StorageFetchError
from .logging_config import get_logger
from .request_signer import RequestSigner

logger = get_logger(__name__)

S3_SCHEME = "s3://"

# Keep at most this much of an error body for diagnostics
MAX_ERROR_BODY = 1024


def parse_s3_uri(location: str) -> Tuple[str, str]:
    """Split ``s3://bucket/key...`` into bucket and key.

    The split happens at the first ``/`` after the scheme.

    Raises:
        ValueError: If the location is not an s3:// URI with a bucket and key
    """
    if not location.startswith(S3_SCHEME):
        raise ValueError(f"Not an s3:// location: {location}")

    bucket, sep, key = location[len(S3_SCHEME) :].partition("/")
    if not bucket or not sep or not key:
        raise ValueError(f"s3:// location needs a bucket and key: {location}")
    return bucket, key


class ObjectStoreClient:
    """Fetches whole objects over HTTP with SigV4-signed GET requests.

    Args:
        session: requests-compatible session (anything with ``get``)
        timeout: Per-request timeout in seconds
        clock: Signing clock, passed to each RequestSigner
    """

    def __init__(
        self,
        session: Optional[Any] = None,
        timeout: float = 30.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.clock = clock

    def _get(self, url: str, headers: Any) -> bytes:
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageFetchError(f"GET {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            body = response.text[:MAX_ERROR_BODY] if response.text else ""
            raise StorageFetchError(
                f"GET {url} returned HTTP {response.status_code}",
                status=response.status_code,
                body=body,
            )
        return response.content

    async def get_object(self, location: str, credentials: S3Credentials) -> bytes:
        """Fetch an object's bytes.

        Args:
            location: ``s3://bucket/key`` URI
            credentials: Credentials for the bucket

        Returns:
            Object contents

        Raises:
            ValueError: If the location is not an s3:// URI
            StorageFetchError: On a non-2xx response or a transport failure
        """
        bucket, key = parse_s3_uri(location)
        signed = RequestSigner(credentials, clock=self.clock).sign(bucket, key)

        logger.info(f"Fetching s3://{bucket}/{key} from {credentials.endpoint}")
        data = await asyncio.to_thread(self._get, signed.url, signed.headers)
        logger.debug(f"Read {len(data)} bytes from s3://{bucket}/{key}")
        return data
