from __future__ import annotations

from study_ingest_core.llm.client import LlmServiceClient

__all__ = ["LlmServiceClient"]
