from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import psycopg
from pydantic import ValidationError

from study_ingest_core.config import Settings, load_settings
from study_ingest_core.db import connect
from study_ingest_core.errors import Language, log_structured_error, structure_error
from study_ingest_core.generation import LlmSectionGenerator
from study_ingest_core.llm.client import LlmServiceClient
from study_ingest_core.logging_config import configure_logging
from study_ingest_core.models import IngestionJob
from study_ingest_core.notifications.email import SmtpConfig, SmtpNotifier
from study_ingest_core.pipeline import IngestionPipeline
from study_ingest_core.repositories import (
    ArtifactRepository,
    AsyncJob,
    DocumentRepository,
    JobRepository,
    SectionRepository,
    VersionRepository,
)
from study_ingest_core.repositories.documents import STATUS_FAILED
from study_ingest_core.repositories.jobs import DOCUMENT_GENERATION
from study_ingest_core.segmentation import SegmentationConfig
from study_ingest_core.storage.s3 import BlobStore, S3Client, S3Config

logger = logging.getLogger(__name__)


class JobStore(Protocol):
    def claim_next_pending(self, job_type: str = DOCUMENT_GENERATION) -> AsyncJob | None: ...
    def update_progress(self, job_id: str, progress: float) -> None: ...
    def mark_succeeded(self, job_id: str, result: dict[str, Any]) -> None: ...
    def mark_failed(self, job_id: str, error: str) -> None: ...


class DocumentStatusStore(Protocol):
    def exists(self, document_id: str) -> bool: ...
    def set_status(self, *, document_id: str, status: str) -> None: ...


class Runner(Protocol):
    def run(self, job: IngestionJob, on_progress: Callable[[float], None] | None = None): ...  # noqa: ANN201


@dataclass
class IngestionWorker:
    """
    Claims pending `document-generation` jobs one at a time and runs them through the
    ingestion pipeline, recording progress and the terminal outcome on the job row.
    """

    jobs: JobStore
    documents: DocumentStatusStore
    pipeline: Runner
    job_type: str = DOCUMENT_GENERATION
    language: Language = "fr"
    poll_interval_s: float = 2.0
    max_poll_interval_s: float = 30.0
    backoff_multiplier: float = 1.5
    sleep: Callable[[float], None] = field(default=time.sleep)
    rollback: Callable[[], None] | None = None

    def _progress_callback(self, job_id: str) -> Callable[[float], None]:
        def report(progress: float) -> None:
            # The terminal update writes progress=1 itself.
            if progress >= 1:
                return
            try:
                self.jobs.update_progress(job_id, progress)
            except Exception as e:  # noqa: BLE001
                logger.warning("failed to record progress %.2f for job %s: %s", progress, job_id, e)

        return report

    def process(self, job: AsyncJob) -> bool:
        """Run one claimed job. Returns True when it succeeded."""
        try:
            payload = IngestionJob.model_validate(job.payload or {})
        except ValidationError as e:
            logger.error("job %s has an invalid payload: %s", job.job_id, e)
            self.jobs.mark_failed(job.job_id, "Job payload missing or invalid")
            return False

        context = {"job_id": job.job_id, "document_id": payload.document_id, "user_id": payload.user_id}
        try:
            if not self.documents.exists(payload.document_id):
                raise LookupError(f"Document {payload.document_id} not found (it may have been deleted)")
            result = self.pipeline.run(payload, self._progress_callback(job.job_id))
        except Exception as e:  # noqa: BLE001
            if self.rollback is not None:
                # A failed statement leaves the shared connection unusable until rolled back.
                self.rollback()
            structured = structure_error(e, context, language=self.language)
            log_structured_error(structured, step="ingestion")
            self.jobs.mark_failed(job.job_id, structured.user_message)
            if not isinstance(e, LookupError):
                try:
                    self.documents.set_status(document_id=payload.document_id, status=STATUS_FAILED)
                except Exception as status_error:  # noqa: BLE001
                    logger.error(
                        "failed to mark document %s as failed: %s",
                        payload.document_id,
                        status_error,
                    )
            return False

        self.jobs.mark_succeeded(job.job_id, result.as_payload())
        return True

    def run_once(self) -> bool:
        """Claim and process at most one job. Returns True when a job was claimed."""
        job = self.jobs.claim_next_pending(self.job_type)
        if job is None:
            return False
        logger.info("processing job %s", job.job_id)
        self.process(job)
        return True

    def run_forever(self, stop: threading.Event | None = None) -> None:
        stop = stop or threading.Event()
        interval = self.poll_interval_s
        while not stop.is_set():
            try:
                claimed = self.run_once()
            except psycopg.Error as e:
                logger.error("job polling failed: %s", e)
                claimed = False

            if claimed:
                interval = self.poll_interval_s
                continue
            self.sleep(interval)
            interval = min(interval * self.backoff_multiplier, self.max_poll_interval_s)


def build_pipeline(
    conn: psycopg.Connection,
    settings: Settings,
    *,
    blob_store: BlobStore | None = None,
) -> IngestionPipeline:
    if blob_store is None:
        blob_store = S3Client(
            S3Config(
                bucket=settings.s3_bucket,
                endpoint=settings.s3_endpoint,
                access_key=settings.s3_access_key,
                secret_key=settings.s3_secret_key.get_secret_value() if settings.s3_secret_key else None,
                region=settings.s3_region,
            )
        )
    notifier = SmtpNotifier(
        SmtpConfig(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password.get_secret_value() if settings.smtp_password else None,
            sender=settings.email_from,
        )
    )
    generator = None
    if settings.generation_enabled:
        generator = LlmSectionGenerator(
            client=LlmServiceClient(
                base_url=settings.llm_base_url,
                api_key=settings.llm_api_key.get_secret_value() if settings.llm_api_key else None,
                model=settings.llm_model,
                timeout_s=settings.llm_timeout_s,
                retry=settings.llm_retry_config(),
            )
        )
    return IngestionPipeline(
        versions=VersionRepository(conn),
        sections=SectionRepository(conn),
        documents=DocumentRepository(conn),
        blob_store=blob_store,
        notifier=notifier,
        segmentation=SegmentationConfig(
            min_chars=settings.section_min_chars,
            max_chars=settings.section_max_chars,
        ),
        heading_max_chars=settings.section_heading_max_chars,
        app_url=settings.app_url,
        generation_enabled=settings.generation_enabled,
        generator=generator,
        artifacts=ArtifactRepository(conn),
    )


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    dsn = settings.postgres_config().build_dsn()
    with connect(dsn) as conn:
        worker = IngestionWorker(
            jobs=JobRepository(conn),
            documents=DocumentRepository(conn),
            pipeline=build_pipeline(conn, settings),
            language=settings.error_message_language,
            poll_interval_s=settings.job_poll_interval_s,
            max_poll_interval_s=settings.job_max_poll_interval_s,
            rollback=conn.rollback,
        )
        logger.info("ingestion worker started")
        try:
            worker.run_forever()
        except KeyboardInterrupt:
            logger.info("ingestion worker stopped")


if __name__ == "__main__":
    main()
