"""
AWS Signature Version 4 signing for object storage GET requests.

Only what a read-only client needs: a GET with an empty body, signed with
the ``UNSIGNED-PAYLOAD`` sentinel so the payload is never hashed. Signed
headers are ``host``, ``x-amz-content-sha256`` and ``x-amz-date``.
"""

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple, Union
from urllib.parse import quote, urljoin, urlsplit

from .data_structures import S3Credentials
from .logging_config import get_logger

logger = get_logger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
SERVICE = "s3"
TERMINATOR = "aws4_request"

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class SigningContext:
    """Everything that goes into one signature.

    ``date_stamp`` and ``amz_date`` come from the same captured instant and
    are reused by the canonical request, the scope and the header.
    """

    method: str
    path: str
    query: str
    host: str
    date_stamp: str
    amz_date: str
    region: str
    service: str
    credentials: S3Credentials

    @property
    def scope(self) -> str:
        return f"{self.date_stamp}/{self.region}/{self.service}/{TERMINATOR}"

    def headers_to_sign(self) -> Dict[str, str]:
        return {
            "host": self.host,
            "x-amz-content-sha256": UNSIGNED_PAYLOAD,
            "x-amz-date": self.amz_date,
        }


@dataclass(frozen=True)
class SignedRequest:
    """A ready-to-send GET: target URL plus all headers, authorization included"""

    url: str
    headers: Dict[str, str]
    context: SigningContext


def _hmac(key: Union[str, bytes], data: str) -> bytes:
    key_bytes = key.encode("utf-8") if isinstance(key, str) else key
    return hmac.new(key_bytes, data.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(
    secret_access_key: str, date_stamp: str, region: str, service: str = SERVICE
) -> bytes:
    """Derive the scoped signing key through four chained HMAC-SHA256 steps.

    Args:
        secret_access_key: Secret key of the credential pair
        date_stamp: ``YYYYMMDD`` date of the request
        region: Signing region
        service: Service name

    Returns:
        32-byte signing key
    """
    k_date = _hmac(f"AWS4{secret_access_key}", date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, TERMINATOR)


def _authority(url: str) -> str:
    parts = urlsplit(url)
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    if parts.port is not None and parts.port != _DEFAULT_PORTS.get(parts.scheme):
        return f"{host}:{parts.port}"
    return host


def object_url(endpoint: str, bucket: str, key: str) -> str:
    """Join ``/bucket/key`` against the endpoint origin (path-style addressing).

    The key is percent-encoded per segment, keeping unreserved characters
    and ``/``, so the path sent on the wire is the path that gets signed.
    """
    path = quote(f"/{bucket}/{key}", safe="/-_.~")
    return urljoin(endpoint, path)


class RequestSigner:
    """Signs GET requests for one set of object storage credentials.

    Args:
        credentials: Access key pair, endpoint and region
        clock: Returns the current time; injectable for deterministic
            signatures. Must return an aware datetime or a naive UTC one.
    """

    def __init__(
        self,
        credentials: S3Credentials,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.credentials = credentials
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def build_context(
        self, bucket: str, key: str, now: Optional[datetime] = None
    ) -> Tuple[str, SigningContext]:
        """Capture one timestamp and build the signing context for a GET"""
        url = object_url(self.credentials.endpoint, bucket, key)
        parts = urlsplit(url)

        instant = now if now is not None else self.clock()
        if instant.tzinfo is not None:
            instant = instant.astimezone(timezone.utc)

        context = SigningContext(
            method="GET",
            path=parts.path or "/",
            query=parts.query,
            host=_authority(url),
            date_stamp=instant.strftime("%Y%m%d"),
            amz_date=instant.strftime("%Y%m%dT%H%M%SZ"),
            region=self.credentials.region,
            service=SERVICE,
            credentials=self.credentials,
        )
        return url, context

    @staticmethod
    def signed_headers(context: SigningContext) -> str:
        return ";".join(sorted(context.headers_to_sign()))

    def canonical_request(self, context: SigningContext) -> str:
        headers = context.headers_to_sign()
        canonical_headers = "".join(f"{name}:{headers[name]}\n" for name in sorted(headers))
        return "\n".join(
            [
                context.method,
                context.path,
                context.query,
                canonical_headers,
                self.signed_headers(context),
                UNSIGNED_PAYLOAD,
            ]
        )

    def string_to_sign(self, context: SigningContext, canonical_request: str) -> str:
        digest = hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()
        return "\n".join([ALGORITHM, context.amz_date, context.scope, digest])

    def signature(self, context: SigningContext) -> str:
        """Lowercase hex signature for the context"""
        string_to_sign = self.string_to_sign(context, self.canonical_request(context))
        signing_key = derive_signing_key(
            context.credentials.secret_access_key,
            context.date_stamp,
            context.region,
            context.service,
        )
        return hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    def authorization_header(self, context: SigningContext) -> str:
        return (
            f"{ALGORITHM} Credential={context.credentials.access_key_id}/{context.scope}, "
            f"SignedHeaders={self.signed_headers(context)}, "
            f"Signature={self.signature(context)}"
        )

    def sign(self, bucket: str, key: str, now: Optional[datetime] = None) -> SignedRequest:
        """Produce a signed GET for ``bucket``/``key``.

        Args:
            bucket: Bucket name
            key: Object key
            now: Signing instant; defaults to the signer's clock

        Returns:
            SignedRequest with ``host``, ``x-amz-date``,
            ``x-amz-content-sha256`` and ``authorization`` headers
        """
        url, context = self.build_context(bucket, key, now)
        headers = context.headers_to_sign()
        headers["authorization"] = self.authorization_header(context)
        logger.debug(f"Signed GET {url} (scope {context.scope})")
        return SignedRequest(url=url, headers=headers, context=context)
