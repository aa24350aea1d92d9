from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import psycopg
from psycopg import sql

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: str
    path: Path

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")


def _migrations_dir() -> Path:
    return Path(__file__).resolve().parent / "sql"


def discover_migrations() -> list[Migration]:
    return [Migration(version=p.stem, path=p) for p in sorted(_migrations_dir().glob("*.sql"))]


def _prepare(conn: psycopg.Connection, schema: str) -> set[str]:
    conn.execute(sql.SQL("create schema if not exists {}").format(sql.Identifier(schema)))
    conn.execute(sql.SQL("set search_path to {}").format(sql.Identifier(schema)))
    conn.execute(
        """
        create table if not exists schema_migrations (
          version text primary key,
          applied_at timestamptz not null default now()
        )
        """
    )
    rows = conn.execute("select version from schema_migrations").fetchall()
    return {r[0] for r in rows}


def apply_migrations(
    dsn: str,
    *,
    schema: str = "public",
    migrations: Iterable[Migration] | None = None,
) -> list[str]:
    """
    Applies pending migrations into `schema`, one transaction per file. Already-recorded
    versions are skipped, so re-running is a no-op. Returns the versions applied.
    """
    if migrations is None:
        migrations = discover_migrations()

    applied: list[str] = []
    with psycopg.connect(dsn) as conn:
        conn.execute("set timezone to 'UTC'")
        done = _prepare(conn, schema)
        conn.commit()

        for mig in migrations:
            if mig.version in done:
                continue
            with conn.transaction():
                conn.execute(mig.read())
                conn.execute("insert into schema_migrations(version) values (%s)", (mig.version,))
            logger.info("applied migration %s to schema %s", mig.version, schema)
            applied.append(mig.version)

    return applied
