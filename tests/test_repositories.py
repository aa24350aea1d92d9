from __future__ import annotations

import psycopg
import pytest

from study_ingest_core.models import NewSection
from study_ingest_core.repositories.artifacts import ArtifactRepository
from study_ingest_core.repositories.documents import STATUS_FAILED, STATUS_PROCESSING, STATUS_READY, DocumentRepository
from study_ingest_core.repositories.jobs import JobRepository
from study_ingest_core.repositories.sections import SectionRepository
from study_ingest_core.repositories.versions import VersionRepository


def _version(conn, document_id: str) -> str:  # noqa: ANN001
    return VersionRepository(conn).insert_version(
        document_id=document_id,
        storage_path="uploads/user-1/bio.pdf",
        page_count=3,
        raw_text="CHAPTER 1\nCells",
        checksum="abc",
    )


def test_document_version_and_sections_lifecycle(conn) -> None:  # noqa: ANN001
    docs = DocumentRepository(conn)
    versions = VersionRepository(conn)
    sections = SectionRepository(conn)

    doc_id = docs.create_document(user_id="user-1", title="Biologie", original_filename="bio.pdf")
    assert docs.exists(doc_id)
    assert docs.get_document(doc_id).status == STATUS_PROCESSING

    version_id = _version(conn, doc_id)
    rows = [
        NewSection(
            document_version_id=version_id,
            order_index=i,
            heading=f"Part {i}",
            content=f"content {i}",
            content_hash=f"h{i}",
        )
        for i in range(3)
    ]
    inserted = sections.insert_sections(rows)
    assert [s.order_index for s in inserted] == [0, 1, 2]
    assert [s.heading for s in sections.list_sections(version_id)] == ["Part 0", "Part 1", "Part 2"]

    versions.mark_processed(version_id)
    docs.mark_ready(document_id=doc_id, version_id=version_id)

    doc = docs.get_document(doc_id)
    assert doc.status == STATUS_READY
    assert doc.current_version_id == version_id
    loaded = versions.get_version(version_id)
    assert loaded.processed_at is not None
    assert loaded.page_count == 3

    second = _version(conn, doc_id)
    assert versions.list_versions(doc_id) == [version_id, second]

    docs.set_status(document_id=doc_id, status=STATUS_FAILED)
    assert docs.get_document(doc_id).status == STATUS_FAILED
    assert docs.get_document(doc_id).current_version_id == version_id


def test_section_batch_is_all_or_nothing(conn) -> None:  # noqa: ANN001
    doc_id = DocumentRepository(conn).create_document(user_id="user-1", title="Doc")
    version_id = _version(conn, doc_id)
    sections = SectionRepository(conn)
    duplicate = [
        NewSection(document_version_id=version_id, order_index=0, heading="A", content="a", content_hash="a"),
        NewSection(document_version_id=version_id, order_index=0, heading="B", content="b", content_hash="b"),
    ]

    with pytest.raises(psycopg.errors.UniqueViolation):
        sections.insert_sections(duplicate)
    conn.rollback()

    assert sections.list_sections(version_id) == []
    with pytest.raises(ValueError):
        sections.insert_sections([])


def test_artifacts_persist_quiz_questions(conn) -> None:  # noqa: ANN001
    doc_id = DocumentRepository(conn).create_document(user_id="user-1", title="Doc")
    version_id = _version(conn, doc_id)
    (section,) = SectionRepository(conn).insert_sections(
        [NewSection(document_version_id=version_id, order_index=0, heading="A", content="a", content_hash="a")]
    )
    artifacts = ArtifactRepository(conn)

    artifacts.insert_revision_note(version_id=version_id, section_id=section.section_id, payload={"summary": "s"})
    artifacts.insert_quiz_set(
        version_id=version_id,
        section_id=section.section_id,
        questions=[
            {"type": "true_false", "prompt": "Vrai ?", "answer": "true"},
            {"type": "multiple_choice", "prompt": "Lequel ?", "options": ["a", "b"], "answer": "a"},
        ],
    )

    assert artifacts.count_quiz_sets(version_id) == 1
    count = conn.execute("select count(*) from quiz_questions").fetchone()[0]
    assert count >= 2


def test_job_claim_progress_and_outcomes(conn) -> None:  # noqa: ANN001
    jobs = JobRepository(conn)
    conn.execute("delete from async_jobs")
    conn.commit()

    first = jobs.create_job(user_id="user-1", payload={"documentId": "d1"})
    second = jobs.create_job(user_id="user-1", payload={"documentId": "d2"})
    jobs.create_job(user_id="user-1", job_type="other", payload={})

    claimed = jobs.claim_next_pending()
    assert claimed.job_id == first.job_id
    assert claimed.status == "running"
    assert claimed.payload == {"documentId": "d1"}

    jobs.update_progress(claimed.job_id, 1.7)
    assert jobs.get_job(claimed.job_id).progress == 1.0
    jobs.mark_succeeded(claimed.job_id, {"sectionsCount": 2})
    done = jobs.get_job(claimed.job_id)
    assert done.status == "succeeded"
    assert done.result == {"sectionsCount": 2}
    assert done.finished_at is not None

    claimed = jobs.claim_next_pending()
    assert claimed.job_id == second.job_id
    jobs.mark_failed(claimed.job_id, "Une erreur inattendue s'est produite.")
    assert jobs.get_job(claimed.job_id).status == "failed"

    assert jobs.claim_next_pending() is None
