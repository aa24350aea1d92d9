from __future__ import annotations

import os
import uuid
from collections.abc import Generator

import psycopg
import pytest
from psycopg import sql

from study_ingest_core.db import connect
from study_ingest_core.migrations.runner import apply_migrations


@pytest.fixture(scope="session")
def pg_dsn() -> str:
    dsn = os.environ.get("PG_DSN")
    if not dsn:
        pytest.skip("PG_DSN not set; skipping DB integration tests")
    return dsn


@pytest.fixture(scope="session")
def pg_schema(pg_dsn: str) -> Generator[str, None, None]:
    schema = f"study_test_{uuid.uuid4().hex[:10]}"
    apply_migrations(pg_dsn, schema=schema)
    yield schema
    with psycopg.connect(pg_dsn) as admin:
        admin.execute(sql.SQL("drop schema if exists {} cascade").format(sql.Identifier(schema)))
        admin.commit()


@pytest.fixture()
def conn(pg_dsn: str, pg_schema: str) -> Generator[psycopg.Connection, None, None]:
    with connect(pg_dsn, schema=pg_schema, application_name="study-ingest-tests") as c:
        yield c
