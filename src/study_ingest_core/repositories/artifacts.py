from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import psycopg


class ArtifactRepository:
    """Revision notes and quizzes generated per document section."""

    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def insert_revision_note(
        self,
        *,
        version_id: str,
        section_id: str,
        payload: dict[str, Any],
        tokens_used: int = 0,
    ) -> str:
        with self._conn.transaction():
            row = self._conn.execute(
                """
                insert into revision_notes (document_version_id, document_section_id, payload, tokens_used)
                values (%s::uuid, %s::uuid, %s::jsonb, %s)
                returning id::text
                """,
                (version_id, section_id, json.dumps(payload), tokens_used),
            ).fetchone()
        self._conn.commit()
        return row[0]

    def insert_quiz_set(
        self,
        *,
        version_id: str,
        section_id: str,
        questions: Sequence[dict[str, Any]],
        recommended_duration_minutes: int = 6,
        tokens_used: int = 0,
    ) -> str:
        with self._conn.transaction():
            row = self._conn.execute(
                """
                insert into quiz_sets (
                  document_version_id, document_section_id, recommended_duration_minutes, tokens_used
                ) values (%s::uuid, %s::uuid, %s, %s)
                returning id::text
                """,
                (version_id, section_id, recommended_duration_minutes, tokens_used),
            ).fetchone()
            quiz_set_id = row[0]
            for index, q in enumerate(questions):
                self._conn.execute(
                    """
                    insert into quiz_questions (
                      quiz_set_id, question_type, prompt, options, answer, explanation, tags, order_index
                    ) values (
                      %s::uuid, %s, %s, %s::jsonb, %s, %s, %s::jsonb, %s
                    )
                    """,
                    (
                        quiz_set_id,
                        q["type"],
                        q["prompt"],
                        json.dumps(q.get("options")) if q.get("options") is not None else None,
                        q["answer"],
                        q.get("explanation"),
                        json.dumps(q.get("tags") or []),
                        index,
                    ),
                )
        self._conn.commit()
        return quiz_set_id

    def count_quiz_sets(self, version_id: str) -> int:
        row = self._conn.execute(
            "select count(*) from quiz_sets where document_version_id=%s::uuid",
            (version_id,),
        ).fetchone()
        return int(row[0])
