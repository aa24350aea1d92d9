from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class IngestionJob(BaseModel):
    """
    Payload of a `document-generation` job.

    Accepts the camelCase keys written by the web app (`documentId`, `objectPath`, ...) as
    well as the snake_case field names. Exactly one of `object_path` / `inline_text` is set.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    document_id: str
    user_id: str
    user_email: str | None = None
    title: str
    original_filename: str
    bucket: str | None = None
    object_path: str | None = None
    inline_text: str | None = Field(default=None, alias="manualText")
    page_count: int | None = Field(default=None, ge=0)
    checksum: str | None = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "IngestionJob":
        has_path = bool(self.object_path)
        has_text = self.inline_text is not None and self.inline_text != ""
        if has_path == has_text:
            raise ValueError("exactly one of object_path or inline_text must be provided")
        return self

    @property
    def storage_locator(self) -> str | None:
        if not self.object_path:
            return None
        return f"{self.bucket}/{self.object_path}" if self.bucket else self.object_path


@dataclass
class SectionDraft:
    heading: str
    content: str


@dataclass(frozen=True)
class DocumentVersion:
    version_id: str
    document_id: str
    storage_path: str | None
    page_count: int
    raw_text: str
    checksum: str | None
    processed_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class NewSection:
    """A section row waiting for its batch insert."""

    document_version_id: str
    order_index: int
    heading: str
    content: str
    content_hash: str


@dataclass(frozen=True)
class DocumentSection:
    section_id: str
    document_version_id: str
    order_index: int
    heading: str
    content: str
    content_hash: str


@dataclass(frozen=True)
class Document:
    document_id: str
    user_id: str
    title: str
    status: str
    current_version_id: str | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class IngestionResult:
    document_id: str
    version_id: str
    sections_count: int
    quizzes_count: int = 0

    def as_payload(self) -> dict[str, object]:
        return {
            "documentId": self.document_id,
            "versionId": self.version_id,
            "sectionsCount": self.sections_count,
            "quizzesCount": self.quizzes_count,
        }
