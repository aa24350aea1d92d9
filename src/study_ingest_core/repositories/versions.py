from __future__ import annotations

import psycopg

from study_ingest_core.models import DocumentVersion


class VersionRepository:
    """Append-only document versions; only `processed_at` is ever updated."""

    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def insert_version(
        self,
        *,
        document_id: str,
        storage_path: str | None,
        page_count: int,
        raw_text: str,
        checksum: str | None,
    ) -> str:
        row = self._conn.execute(
            """
            insert into document_versions (document_id, storage_path, page_count, raw_text, checksum)
            values (%s::uuid, %s, %s, %s, %s)
            returning id::text
            """,
            (document_id, storage_path, page_count, raw_text, checksum),
        ).fetchone()
        self._conn.commit()
        return row[0]

    def mark_processed(self, version_id: str) -> None:
        self._conn.execute(
            "update document_versions set processed_at=now() where id=%s::uuid",
            (version_id,),
        )
        self._conn.commit()

    def get_version(self, version_id: str) -> DocumentVersion | None:
        row = self._conn.execute(
            """
            select id::text, document_id::text, storage_path, page_count, raw_text, checksum,
                   processed_at, created_at
            from document_versions
            where id=%s::uuid
            """,
            (version_id,),
        ).fetchone()
        if not row:
            return None
        return DocumentVersion(
            version_id=row[0],
            document_id=row[1],
            storage_path=row[2],
            page_count=row[3],
            raw_text=row[4],
            checksum=row[5],
            processed_at=row[6],
            created_at=row[7],
        )

    def list_versions(self, document_id: str) -> list[str]:
        rows = self._conn.execute(
            """
            select id::text
            from document_versions
            where document_id=%s::uuid
            order by created_at asc
            """,
            (document_id,),
        ).fetchall()
        return [r[0] for r in rows]
