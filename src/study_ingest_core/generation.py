"""
Per-section study material generation (revision notes + quizzes).

Disabled by default (`GENERATION_ENABLED=false`): users trigger generation manually from the
app. When enabled, the ingestion pipeline calls a `SectionGenerator` for every persisted
section and never lets a generation failure fail the ingestion job.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from study_ingest_core.errors import log_structured_error, structure_error
from study_ingest_core.llm.client import LlmServiceClient
from study_ingest_core.models import DocumentSection


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class Definition(_Payload):
    term: str
    meaning: str


class RevisionNote(_Payload):
    document_title: str = ""
    section_heading: str | None = None
    summary: str
    learning_objectives: list[str] = Field(default_factory=list)
    definitions: list[Definition] = Field(default_factory=list)
    misconceptions: list[str] = Field(default_factory=list)
    memory_hooks: list[str] = Field(default_factory=list)


class QuizQuestion(_Payload):
    type: Literal["multiple_choice", "true_false", "completion"]
    prompt: str
    options: list[str] | None = None
    answer: str
    explanation: str = ""
    tags: list[str] = Field(default_factory=list)


class Quiz(_Payload):
    recommended_session_length: int = Field(default=6, ge=1)
    questions: list[QuizQuestion] = Field(default_factory=list)


@dataclass(frozen=True)
class GeneratedArtifacts:
    revision_note: RevisionNote | None = None
    quiz: Quiz | None = None


class SectionGenerator(Protocol):
    def generate(
        self,
        section: DocumentSection,
        *,
        document_title: str,
        total_sections: int,
    ) -> GeneratedArtifacts: ...


REVISION_NOTE_PROMPT = """Tu es un assistant de révision. À partir d'un extrait de document, produis une fiche
de révision complète. Réponds uniquement en JSON strict :
{"documentTitle": string, "sectionHeading": string, "summary": string,
 "learningObjectives": string[], "definitions": [{"term": string, "meaning": string}],
 "misconceptions": string[], "memoryHooks": string[]}"""

QUIZ_PROMPT = """Tu es un assistant de révision. À partir d'un extrait de document, produis un quiz de
5 à 10 questions. Réponds uniquement en JSON strict :
{"recommendedSessionLength": number, "questions": [{"type": "multiple_choice" | "true_false" | "completion",
 "prompt": string, "options": string[] | null, "answer": string, "explanation": string, "tags": string[]}]}"""


def section_source_text(section: DocumentSection, *, document_title: str) -> str:
    return f"{document_title}\nSection: {section.heading}\n\n{section.content}"


@dataclass(frozen=True)
class LlmSectionGenerator:
    client: LlmServiceClient
    max_tokens: int = 4000

    def _context(self, section: DocumentSection) -> dict[str, Any]:
        return {
            "document_version_id": section.document_version_id,
            "section_id": section.section_id,
            "section_order": section.order_index,
        }

    def _user_prompt(self, section: DocumentSection, *, document_title: str, total_sections: int) -> str:
        return (
            f"Section {section.order_index + 1}/{total_sections}\n\n"
            f"{section_source_text(section, document_title=document_title)}"
        )

    def generate(
        self,
        section: DocumentSection,
        *,
        document_title: str,
        total_sections: int,
    ) -> GeneratedArtifacts:
        """
        Each artifact is generated independently; a failure on one is logged and leaves that
        artifact `None` without affecting the other.
        """
        prompt = self._user_prompt(section, document_title=document_title, total_sections=total_sections)
        context = self._context(section)

        note: RevisionNote | None = None
        try:
            data = self.client.complete_json(
                system_prompt=REVISION_NOTE_PROMPT,
                user_prompt=prompt,
                max_tokens=self.max_tokens,
                context=context,
            )
            note = RevisionNote.model_validate(data)
        except Exception as e:  # noqa: BLE001
            log_structured_error(structure_error(e, context), artifact="revision_note")

        quiz: Quiz | None = None
        try:
            data = self.client.complete_json(
                system_prompt=QUIZ_PROMPT,
                user_prompt=prompt,
                max_tokens=self.max_tokens,
                context=context,
            )
            quiz = Quiz.model_validate(data)
        except Exception as e:  # noqa: BLE001
            log_structured_error(structure_error(e, context), artifact="quiz")

        return GeneratedArtifacts(revision_note=note, quiz=quiz)
