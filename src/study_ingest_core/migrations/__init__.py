from study_ingest_core.migrations.runner import apply_migrations, discover_migrations

__all__ = ["apply_migrations", "discover_migrations"]
