from __future__ import annotations

from study_ingest_core.storage.s3 import BlobStore, S3Client, S3Config, parse_s3_uri

__all__ = ["BlobStore", "S3Client", "S3Config", "parse_s3_uri"]
