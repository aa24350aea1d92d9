from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import psycopg

DOCUMENT_GENERATION = "document-generation"

_COLUMNS = """
id::text, user_id, type, status, progress, payload, result, error,
created_at, updated_at, started_at, finished_at
"""


@dataclass(frozen=True)
class AsyncJob:
    job_id: str
    user_id: str
    type: str
    status: str
    progress: float | None = None
    payload: dict[str, Any] | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


def _row_to_job(row) -> AsyncJob:  # noqa: ANN001
    return AsyncJob(
        job_id=row[0],
        user_id=row[1],
        type=row[2],
        status=row[3],
        progress=row[4],
        payload=row[5],
        result=row[6],
        error=row[7],
        created_at=row[8],
        updated_at=row[9],
        started_at=row[10],
        finished_at=row[11],
    )


class JobRepository:
    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def create_job(
        self,
        *,
        user_id: str,
        job_type: str = DOCUMENT_GENERATION,
        payload: dict[str, Any] | None = None,
    ) -> AsyncJob:
        row = self._conn.execute(
            f"""
            insert into async_jobs (user_id, type, payload, status)
            values (%s, %s, %s::jsonb, 'pending')
            returning {_COLUMNS}
            """,
            (user_id, job_type, json.dumps(payload) if payload is not None else None),
        ).fetchone()
        self._conn.commit()
        return _row_to_job(row)

    def get_job(self, job_id: str) -> AsyncJob | None:
        row = self._conn.execute(
            f"select {_COLUMNS} from async_jobs where id=%s::uuid",
            (job_id,),
        ).fetchone()
        return _row_to_job(row) if row else None

    def claim_next_pending(self, job_type: str = DOCUMENT_GENERATION) -> AsyncJob | None:
        """
        Atomically move the oldest pending job of `job_type` to `running`. Concurrent workers
        never claim the same row.
        """
        row = self._conn.execute(
            f"""
            update async_jobs
            set status='running', started_at=now(), updated_at=now(), progress=0
            where id = (
              select id from async_jobs
              where status='pending' and type=%s
              order by created_at asc
              limit 1
              for update skip locked
            )
            returning {_COLUMNS}
            """,
            (job_type,),
        ).fetchone()
        self._conn.commit()
        return _row_to_job(row) if row else None

    def update_progress(self, job_id: str, progress: float) -> None:
        self._conn.execute(
            "update async_jobs set progress=%s, updated_at=now() where id=%s::uuid",
            (min(max(float(progress), 0.0), 1.0), job_id),
        )
        self._conn.commit()

    def mark_succeeded(self, job_id: str, result: dict[str, Any]) -> None:
        self._conn.execute(
            """
            update async_jobs
            set status='succeeded', progress=1, result=%s::jsonb, error=null,
                finished_at=now(), updated_at=now()
            where id=%s::uuid
            """,
            (json.dumps(result), job_id),
        )
        self._conn.commit()

    def mark_failed(self, job_id: str, error: str) -> None:
        self._conn.execute(
            """
            update async_jobs
            set status='failed', error=%s, finished_at=now(), updated_at=now()
            where id=%s::uuid
            """,
            (error, job_id),
        )
        self._conn.commit()
