from study_ingest_core.acquisition import AcquiredText, acquire_text
from study_ingest_core.config import Settings, load_settings
from study_ingest_core.errors import ErrorKind, StructuredError, classify, structure_error
from study_ingest_core.llm import LlmServiceClient
from study_ingest_core.models import IngestionJob, IngestionResult, SectionDraft
from study_ingest_core.pipeline import IngestionPipeline
from study_ingest_core.retry import Retrier, RetryConfig, retry_with_backoff
from study_ingest_core.segmentation import SegmentationConfig, segment

__all__ = [
    "__version__",
    "AcquiredText",
    "ErrorKind",
    "IngestionJob",
    "IngestionPipeline",
    "IngestionResult",
    "LlmServiceClient",
    "Retrier",
    "RetryConfig",
    "SectionDraft",
    "SegmentationConfig",
    "Settings",
    "StructuredError",
    "acquire_text",
    "classify",
    "load_settings",
    "retry_with_backoff",
    "segment",
    "structure_error",
]

__version__ = "0.1.0"
