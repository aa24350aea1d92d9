from __future__ import annotations

from collections.abc import Sequence

import psycopg

from study_ingest_core.models import DocumentSection, NewSection

_INSERT_SQL = """
insert into document_sections (
  document_version_id, parent_section_id, order_index, heading, content, content_hash
) values (
  %s::uuid, null, %s, %s, %s, %s
)
returning id::text, document_version_id::text, order_index, heading, content, content_hash
"""


def _row_to_section(row) -> DocumentSection:  # noqa: ANN001
    return DocumentSection(
        section_id=row[0],
        document_version_id=row[1],
        order_index=row[2],
        heading=row[3],
        content=row[4],
        content_hash=row[5],
    )


class SectionRepository:
    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def insert_sections(self, sections: Sequence[NewSection]) -> list[DocumentSection]:
        """
        Insert the whole section set of a version in one transaction; either every row lands or
        none does. Returned rows are in `order_index` order.
        """
        if not sections:
            raise ValueError("insert_sections requires at least one section")

        inserted: list[DocumentSection] = []
        with self._conn.transaction():
            with self._conn.cursor() as cur:
                cur.executemany(
                    _INSERT_SQL,
                    [
                        (s.document_version_id, s.order_index, s.heading, s.content, s.content_hash)
                        for s in sections
                    ],
                    returning=True,
                )
                while True:
                    row = cur.fetchone()
                    if row is not None:
                        inserted.append(_row_to_section(row))
                    if not cur.nextset():
                        break
        self._conn.commit()
        return sorted(inserted, key=lambda s: s.order_index)

    def list_sections(self, version_id: str) -> list[DocumentSection]:
        rows = self._conn.execute(
            """
            select id::text, document_version_id::text, order_index, heading, content, content_hash
            from document_sections
            where document_version_id=%s::uuid
            order by order_index asc
            """,
            (version_id,),
        ).fetchall()
        return [_row_to_section(r) for r in rows]
