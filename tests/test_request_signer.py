"""
Tests for SigV4 request signing
"""

import hashlib
import hmac
from datetime import datetime, timedelta, timezone

from botocore.auth import S3SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

from icebrowse.data_structures import S3Credentials
from icebrowse.request_signer import RequestSigner, derive_signing_key, object_url

FIXED_NOW = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)

CREDENTIALS = S3Credentials(
    access_key_id="AKID",
    secret_access_key="SECRET",
    endpoint="https://s3.example.com",
    region="auto",
)


def _hmac_sha256(key, message):
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def test_signing_key_matches_aws_documented_example():
    """Test key derivation against the AWS documented example"""
    # Example from the AWS SigV4 documentation (service "iam")
    key = derive_signing_key(
        "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY", "20120215", "us-east-1", "iam"
    )
    assert key.hex() == "f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d"


def test_canonical_request_layout():
    """Test the canonical request layout"""
    signer = RequestSigner(CREDENTIALS)
    url, context = signer.build_context("b", "k.avro", now=FIXED_NOW)

    assert url == "https://s3.example.com/b/k.avro"
    assert context.date_stamp == "20240101"
    assert context.amz_date == "20240101T000000Z"
    assert context.scope == "20240101/auto/s3/aws4_request"
    assert signer.canonical_request(context) == (
        "GET\n"
        "/b/k.avro\n"
        "\n"
        "host:s3.example.com\n"
        "x-amz-content-sha256:UNSIGNED-PAYLOAD\n"
        "x-amz-date:20240101T000000Z\n"
        "\n"
        "host;x-amz-content-sha256;x-amz-date\n"
        "UNSIGNED-PAYLOAD"
    )


def test_authorization_header_golden_value():
    """Test the authorization header against a hand-derived signature"""
    signed = RequestSigner(CREDENTIALS).sign("b", "k.avro", now=FIXED_NOW)

    # Derive the expected signature step by step
    canonical_request = "\n".join(
        [
            "GET",
            "/b/k.avro",
            "",
            "host:s3.example.com\nx-amz-content-sha256:UNSIGNED-PAYLOAD\nx-amz-date:20240101T000000Z\n",
            "host;x-amz-content-sha256;x-amz-date",
            "UNSIGNED-PAYLOAD",
        ]
    )
    string_to_sign = "\n".join(
        [
            "AWS4-HMAC-SHA256",
            "20240101T000000Z",
            "20240101/auto/s3/aws4_request",
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )
    k_date = _hmac_sha256(b"AWS4SECRET", "20240101")
    k_region = _hmac_sha256(k_date, "auto")
    k_service = _hmac_sha256(k_region, "s3")
    k_signing = _hmac_sha256(k_service, "aws4_request")
    signature = hmac.new(k_signing, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    assert signed.headers["authorization"] == (
        "AWS4-HMAC-SHA256 Credential=AKID/20240101/auto/s3/aws4_request, "
        f"SignedHeaders=host;x-amz-content-sha256;x-amz-date, Signature={signature}"
    )
    assert signed.headers["host"] == "s3.example.com"
    assert signed.headers["x-amz-date"] == "20240101T000000Z"
    assert signed.headers["x-amz-content-sha256"] == "UNSIGNED-PAYLOAD"


def test_signature_is_lowercase_hex():
    """Test that signatures are 64 lowercase hex characters"""
    signed = RequestSigner(CREDENTIALS).sign("b", "k.avro", now=FIXED_NOW)
    signature = signed.headers["authorization"].rsplit("Signature=", 1)[1]

    assert len(signature) == 64
    assert signature == signature.lower()
    int(signature, 16)


def test_signing_is_deterministic():
    """Test that signing with a fixed time is deterministic"""
    signer = RequestSigner(CREDENTIALS)
    first = signer.sign("b", "k.avro", now=FIXED_NOW)
    second = RequestSigner(CREDENTIALS).sign("b", "k.avro", now=FIXED_NOW)

    assert first.headers == second.headers
    assert first.url == second.url


def test_one_timestamp_per_request():
    """Test that one request reads the clock exactly once"""
    instants = iter(
        [
            datetime(2024, 1, 1, 23, 59, 59, tzinfo=timezone.utc),
            datetime(2024, 1, 2, 0, 0, 1, tzinfo=timezone.utc),
        ]
    )
    calls = []

    def clock():
        calls.append(1)
        return next(instants)

    signed = RequestSigner(CREDENTIALS, clock=clock).sign("b", "k.avro")

    assert len(calls) == 1
    assert signed.headers["x-amz-date"] == "20240101T235959Z"
    assert "Credential=AKID/20240101/auto/s3/aws4_request" in signed.headers["authorization"]


def test_non_utc_instant_is_converted():
    """Test that aware datetimes are converted to UTC"""
    plus_two = timezone(timedelta(hours=2))
    _, context = RequestSigner(CREDENTIALS).build_context(
        "b", "k.avro", now=datetime(2024, 1, 1, 1, 0, 0, tzinfo=plus_two)
    )
    assert context.amz_date == "20231231T230000Z"
    assert context.date_stamp == "20231231"


def test_host_keeps_non_default_port_only():
    """Test that only non-default ports are kept in the host header"""
    local = S3Credentials("AKID", "SECRET", "http://localhost:9000", "us-east-1")
    _, context = RequestSigner(local).build_context("b", "k", now=FIXED_NOW)
    assert context.host == "localhost:9000"

    explicit = S3Credentials("AKID", "SECRET", "https://s3.example.com:443", "auto")
    _, context = RequestSigner(explicit).build_context("b", "k", now=FIXED_NOW)
    assert context.host == "s3.example.com"


def test_object_key_is_percent_encoded():
    """Test percent-encoding of object keys in URL and signed path"""
    url = object_url("https://s3.example.com", "warehouse", "db/t/metadata/snap 1+x.avro")
    assert url == "https://s3.example.com/warehouse/db/t/metadata/snap%201%2Bx.avro"

    _, context = RequestSigner(CREDENTIALS).build_context(
        "warehouse", "db/t/metadata/snap 1+x.avro", now=FIXED_NOW
    )
    assert context.path == "/warehouse/db/t/metadata/snap%201%2Bx.avro"


def _botocore_signature(signed, credentials):
    amz_date = signed.context.amz_date
    request = AWSRequest(
        method="GET",
        url=signed.url,
        headers={"X-Amz-Date": amz_date, "X-Amz-Content-SHA256": "UNSIGNED-PAYLOAD"},
    )
    request.context["timestamp"] = amz_date
    auth = S3SigV4Auth(
        Credentials(credentials.access_key_id, credentials.secret_access_key),
        "s3",
        credentials.region,
    )
    canonical_request = auth.canonical_request(request)
    string_to_sign = auth.string_to_sign(request, canonical_request)
    return canonical_request, auth.signature(string_to_sign, request)


def test_matches_botocore_sigv4():
    """Test that signatures match botocore's SigV4 implementation"""
    cases = [
        (CREDENTIALS, "b", "k.avro"),
        (CREDENTIALS, "warehouse", "db/events/metadata/snap-6287345119430123456-1-a1b2.avro"),
        (
            S3Credentials("AKIAEXAMPLE", "wJalrXUtnFEMI/K7MDENG", "http://localhost:9000", "us-east-1"),
            "lake",
            "ns/tbl/metadata/snap-1.avro",
        ),
    ]
    for credentials, bucket, key in cases:
        signer = RequestSigner(credentials)
        signed = signer.sign(bucket, key, now=FIXED_NOW)

        canonical_request, signature = _botocore_signature(signed, credentials)

        assert signer.canonical_request(signed.context) == canonical_request
        assert signed.headers["authorization"].endswith(f"Signature={signature}")
