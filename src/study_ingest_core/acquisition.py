from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass

from study_ingest_core.errors import AcquisitionError
from study_ingest_core.extraction import extract_document_text
from study_ingest_core.models import IngestionJob
from study_ingest_core.storage.s3 import BlobStore
from study_ingest_core.util import sha256_bytes, sha256_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcquiredText:
    raw_text: str
    page_count: int
    checksum: str


def _check_precomputed(job: IngestionJob, checksum: str) -> None:
    if job.checksum and job.checksum != checksum:
        logger.warning(
            "checksum mismatch for document %s: payload=%s computed=%s",
            job.document_id,
            job.checksum,
            checksum,
        )


def acquire_text(job: IngestionJob, blob_store: BlobStore | None = None) -> AcquiredText:
    """
    Resolve the text of a job: inline text as-is, otherwise download and extract the stored
    object. The checksum covers the exact source (inline string or downloaded bytes).
    """
    if job.inline_text:
        checksum = sha256_text(job.inline_text)
        _check_precomputed(job, checksum)
        return AcquiredText(
            raw_text=job.inline_text.strip(),
            page_count=job.page_count or 0,
            checksum=checksum,
        )

    if not job.object_path:
        raise AcquisitionError("Document payload missing object path and inline text")
    if blob_store is None:
        raise AcquisitionError("No blob store configured to download the document")

    try:
        data = blob_store.get_bytes(job.object_path, bucket=job.bucket)
    except Exception as e:
        raise AcquisitionError(f"Unable to download document from storage: {e}") from e

    checksum = sha256_bytes(data)
    _check_precomputed(job, checksum)

    content_type, _ = mimetypes.guess_type(job.original_filename)
    try:
        result = extract_document_text(
            data=data,
            content_type=content_type,
            filename=job.original_filename,
        )
    except Exception as e:
        raise AcquisitionError(f"Unable to extract text from document: {e}") from e

    if not result.text:
        raise AcquisitionError("Unable to extract any text from the document")

    logger.info(
        "extracted document %s via %s: pages=%d chars=%d",
        job.document_id,
        result.extractor,
        result.page_count,
        len(result.text),
    )
    return AcquiredText(
        raw_text=result.text,
        page_count=result.page_count or job.page_count or 0,
        checksum=checksum,
    )
