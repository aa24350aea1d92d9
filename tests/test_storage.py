from __future__ import annotations

import io

import pytest

from study_ingest_core.storage.s3 import S3Client, S3Config, parse_s3_uri


class FakeBoto:
    def __init__(self) -> None:
        self.requests: list[tuple[str, str]] = []

    def get_object(self, *, Bucket: str, Key: str) -> dict:  # noqa: N803
        self.requests.append((Bucket, Key))
        return {"Body": io.BytesIO(b"payload")}


def test_parse_s3_uri() -> None:
    assert parse_s3_uri("s3://uploads/user-1/doc.pdf") == ("uploads", "user-1/doc.pdf")


@pytest.mark.parametrize("uri", ["https://x/y", "s3://bucket-only", "s3:///key"])
def test_parse_s3_uri_rejects_invalid(uri: str) -> None:
    with pytest.raises(ValueError):
        parse_s3_uri(uri)


def test_get_bytes_defaults_to_configured_bucket() -> None:
    boto = FakeBoto()
    client = S3Client(S3Config(bucket="uploads"), client=boto)

    assert client.get_bytes("user-1/doc.pdf") == b"payload"
    assert client.get_bytes("doc.pdf", bucket="archive") == b"payload"
    assert client.get_bytes_uri("s3://other/key.txt") == b"payload"
    assert boto.requests == [("uploads", "user-1/doc.pdf"), ("archive", "doc.pdf"), ("other", "key.txt")]
