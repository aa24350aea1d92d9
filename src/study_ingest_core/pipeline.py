from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from study_ingest_core.acquisition import acquire_text
from study_ingest_core.errors import PersistenceError, SegmentationError, log_structured_error, structure_error
from study_ingest_core.generation import SectionGenerator
from study_ingest_core.models import DocumentSection, IngestionJob, IngestionResult, NewSection
from study_ingest_core.notifications.email import DeckReadyMessage, Notifier, build_deck_url
from study_ingest_core.segmentation import DEFAULT_SEGMENTATION, SegmentationConfig, segment
from study_ingest_core.storage.s3 import BlobStore
from study_ingest_core.util import sha256_text

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

PROGRESS_ACQUIRED = 0.1
PROGRESS_SEGMENTED = 0.2
PROGRESS_SECTIONS_SAVED = 0.4
PROGRESS_GENERATED = 0.7
PROGRESS_READY = 0.95
PROGRESS_DONE = 1.0


class VersionStore(Protocol):
    def insert_version(
        self,
        *,
        document_id: str,
        storage_path: str | None,
        page_count: int,
        raw_text: str,
        checksum: str | None,
    ) -> str: ...

    def mark_processed(self, version_id: str) -> None: ...


class SectionStore(Protocol):
    def insert_sections(self, sections: Sequence[NewSection]) -> list[DocumentSection]: ...


class DocumentStore(Protocol):
    def mark_ready(self, *, document_id: str, version_id: str) -> None: ...


class ArtifactStore(Protocol):
    def insert_revision_note(
        self,
        *,
        version_id: str,
        section_id: str,
        payload: dict[str, Any],
        tokens_used: int = 0,
    ) -> str: ...

    def insert_quiz_set(
        self,
        *,
        version_id: str,
        section_id: str,
        questions: Sequence[dict[str, Any]],
        recommended_duration_minutes: int = 6,
        tokens_used: int = 0,
    ) -> str: ...


def _report(on_progress: ProgressCallback | None, value: float) -> None:
    if on_progress is not None:
        on_progress(value)


@dataclass
class IngestionPipeline:
    """
    Turns one `IngestionJob` into a new document version with its sections.

    Write order is the consistency mechanism: version, then sections, then the status flip.
    Any failure before the flip leaves the document in its previous status. Generation and
    notification failures are logged and never change the outcome.
    """

    versions: VersionStore
    sections: SectionStore
    documents: DocumentStore
    blob_store: BlobStore | None = None
    notifier: Notifier | None = None
    segmentation: SegmentationConfig = DEFAULT_SEGMENTATION
    heading_max_chars: int = 250
    app_url: str | None = None
    generation_enabled: bool = False
    generator: SectionGenerator | None = None
    artifacts: ArtifactStore | None = None

    def run(self, job: IngestionJob, on_progress: ProgressCallback | None = None) -> IngestionResult:
        context = {"document_id": job.document_id, "user_id": job.user_id}

        acquired = acquire_text(job, self.blob_store)
        _report(on_progress, PROGRESS_ACQUIRED)

        drafts = segment(acquired.raw_text, job.title, self.segmentation)
        drafts = [d for d in drafts if d.content.strip()]
        if not drafts:
            raise SegmentationError(f"No section detected in document {job.document_id}")
        _report(on_progress, PROGRESS_SEGMENTED)

        version_id = self.versions.insert_version(
            document_id=job.document_id,
            storage_path=job.storage_locator,
            page_count=acquired.page_count,
            raw_text=acquired.raw_text,
            checksum=acquired.checksum,
        )
        rows = [
            NewSection(
                document_version_id=version_id,
                order_index=index,
                heading=draft.heading[: self.heading_max_chars],
                content=draft.content,
                content_hash=sha256_text(draft.content),
            )
            for index, draft in enumerate(drafts)
        ]
        inserted = self.sections.insert_sections(rows)
        if len(inserted) != len(rows):
            raise PersistenceError(
                f"Section insert mismatch for version {version_id}: {len(inserted)} != {len(rows)}"
            )
        _report(on_progress, PROGRESS_SECTIONS_SAVED)

        quizzes_count = 0
        if self.generation_enabled and self.generator is not None:
            quizzes_count = self._generate(job, version_id, inserted, context)
        _report(on_progress, PROGRESS_GENERATED)

        self.versions.mark_processed(version_id)
        self.documents.mark_ready(document_id=job.document_id, version_id=version_id)
        _report(on_progress, PROGRESS_READY)

        result = IngestionResult(
            document_id=job.document_id,
            version_id=version_id,
            sections_count=len(inserted),
            quizzes_count=quizzes_count,
        )
        self._notify(job, result, context)
        _report(on_progress, PROGRESS_DONE)

        logger.info(
            "document %s ingested: version=%s sections=%d pages=%d",
            job.document_id,
            version_id,
            result.sections_count,
            acquired.page_count,
        )
        return result

    def _generate(
        self,
        job: IngestionJob,
        version_id: str,
        sections: list[DocumentSection],
        context: dict[str, Any],
    ) -> int:
        quizzes = 0
        for section in sections:
            section_context = {**context, "version_id": version_id, "section_id": section.section_id}
            try:
                artifacts = self.generator.generate(
                    section,
                    document_title=job.title,
                    total_sections=len(sections),
                )
                if self.artifacts is None:
                    continue
                if artifacts.revision_note is not None:
                    self.artifacts.insert_revision_note(
                        version_id=version_id,
                        section_id=section.section_id,
                        payload=artifacts.revision_note.model_dump(by_alias=True),
                    )
                if artifacts.quiz is not None:
                    self.artifacts.insert_quiz_set(
                        version_id=version_id,
                        section_id=section.section_id,
                        questions=[q.model_dump() for q in artifacts.quiz.questions],
                        recommended_duration_minutes=artifacts.quiz.recommended_session_length,
                    )
                    quizzes += 1
            except Exception as e:  # noqa: BLE001
                log_structured_error(structure_error(e, section_context), step="generation")
        return quizzes

    def _notify(self, job: IngestionJob, result: IngestionResult, context: dict[str, Any]) -> None:
        if not job.user_email or self.notifier is None:
            return
        try:
            self.notifier.send_deck_ready(
                DeckReadyMessage(
                    to=job.user_email,
                    document_title=job.title,
                    document_id=job.document_id,
                    total_sections=result.sections_count,
                    total_quizzes=result.quizzes_count,
                    dashboard_url=build_deck_url(self.app_url, job.document_id),
                )
            )
        except Exception as e:  # noqa: BLE001
            log_structured_error(structure_error(e, context), step="notification")
