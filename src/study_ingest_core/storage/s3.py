from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import boto3
from botocore.config import Config


class BlobStore(Protocol):
    def get_bytes(self, key: str, *, bucket: str | None = None) -> bytes: ...


def parse_s3_uri(uri: str) -> tuple[str, str]:
    if not uri.startswith("s3://"):
        raise ValueError(f"Not an s3:// URI: {uri}")
    rest = uri.removeprefix("s3://")
    if "/" not in rest:
        raise ValueError(f"Invalid s3:// URI (missing key): {uri}")
    bucket, key = rest.split("/", 1)
    if not bucket or not key:
        raise ValueError(f"Invalid s3:// URI: {uri}")
    return bucket, key


@dataclass(frozen=True)
class S3Config:
    bucket: str
    endpoint: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str = "us-east-1"


class S3Client:
    """Read-only access to uploaded source documents."""

    def __init__(self, cfg: S3Config, *, client=None):  # noqa: ANN001
        self._cfg = cfg
        self._client = client or boto3.client(
            "s3",
            endpoint_url=cfg.endpoint,
            aws_access_key_id=cfg.access_key,
            aws_secret_access_key=cfg.secret_key,
            region_name=cfg.region,
            config=Config(s3={"addressing_style": "path"}),
        )

    @property
    def bucket(self) -> str:
        return self._cfg.bucket

    def get_bytes(self, key: str, *, bucket: str | None = None) -> bytes:
        obj = self._client.get_object(Bucket=bucket or self._cfg.bucket, Key=key)
        return obj["Body"].read()

    def get_bytes_uri(self, uri: str) -> bytes:
        bucket, key = parse_s3_uri(uri)
        return self.get_bytes(key, bucket=bucket)
