from __future__ import annotations

import psycopg

from study_ingest_core.models import Document

STATUS_PROCESSING = "processing"
STATUS_READY = "ready"
STATUS_FAILED = "failed"


class DocumentRepository:
    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def create_document(
        self,
        *,
        user_id: str,
        title: str,
        original_filename: str | None = None,
        status: str = STATUS_PROCESSING,
    ) -> str:
        row = self._conn.execute(
            """
            insert into documents (user_id, title, original_filename, status)
            values (%s, %s, %s, %s)
            returning id::text
            """,
            (user_id, title, original_filename, status),
        ).fetchone()
        self._conn.commit()
        return row[0]

    def get_document(self, document_id: str) -> Document | None:
        row = self._conn.execute(
            """
            select id::text, user_id, title, status, current_version_id::text, updated_at
            from documents
            where id=%s::uuid
            """,
            (document_id,),
        ).fetchone()
        if not row:
            return None
        return Document(
            document_id=row[0],
            user_id=row[1],
            title=row[2],
            status=row[3],
            current_version_id=row[4],
            updated_at=row[5],
        )

    def exists(self, document_id: str) -> bool:
        row = self._conn.execute(
            "select 1 from documents where id=%s::uuid",
            (document_id,),
        ).fetchone()
        return row is not None

    def mark_ready(self, *, document_id: str, version_id: str) -> None:
        """Flip the document to `ready` and point it at `version_id`."""
        self._conn.execute(
            """
            update documents
            set status=%s, current_version_id=%s::uuid, updated_at=now()
            where id=%s::uuid
            """,
            (STATUS_READY, version_id, document_id),
        )
        self._conn.commit()

    def set_status(self, *, document_id: str, status: str) -> None:
        self._conn.execute(
            "update documents set status=%s, updated_at=now() where id=%s::uuid",
            (status, document_id),
        )
        self._conn.commit()
