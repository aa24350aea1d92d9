from study_ingest_core.repositories.artifacts import ArtifactRepository
from study_ingest_core.repositories.documents import DocumentRepository
from study_ingest_core.repositories.jobs import AsyncJob, JobRepository
from study_ingest_core.repositories.sections import SectionRepository
from study_ingest_core.repositories.versions import VersionRepository

__all__ = [
    "ArtifactRepository",
    "AsyncJob",
    "DocumentRepository",
    "JobRepository",
    "SectionRepository",
    "VersionRepository",
]
