from study_ingest_core.migrations.runner import apply_migrations, discover_migrations


def test_discover_migrations_is_ordered() -> None:
    versions = [m.version for m in discover_migrations()]
    assert versions == sorted(versions)
    assert versions[0] == "0001_documents"


def test_migrations_are_idempotent(pg_dsn: str, pg_schema: str) -> None:
    applied = apply_migrations(pg_dsn, schema=pg_schema)
    assert applied == []
