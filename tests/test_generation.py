from __future__ import annotations

from typing import Any

from study_ingest_core.errors import CompletionError
from study_ingest_core.generation import LlmSectionGenerator, section_source_text
from study_ingest_core.models import DocumentSection

SECTION = DocumentSection(
    section_id="s-1",
    document_version_id="v-1",
    order_index=1,
    heading="CHAPITRE 2",
    content="Les mitochondries produisent l'ATP.",
    content_hash="h",
)


class FakeClient:
    def __init__(self, replies: list[Any]) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []

    def complete_json(self, *, system_prompt: str, user_prompt: str, **kwargs: Any) -> dict[str, Any]:
        self.prompts.append(user_prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


NOTE = {
    "documentTitle": "Biologie",
    "sectionHeading": "CHAPITRE 2",
    "summary": "Les mitochondries produisent l'énergie.",
    "learningObjectives": ["Expliquer le rôle de l'ATP"],
    "definitions": [{"term": "ATP", "meaning": "Molécule énergétique"}],
}

QUIZ = {
    "recommendedSessionLength": 8,
    "questions": [
        {
            "type": "multiple_choice",
            "prompt": "Que produit la mitochondrie ?",
            "options": ["ATP", "ADN"],
            "answer": "ATP",
        }
    ],
}


def test_section_source_text() -> None:
    text = section_source_text(SECTION, document_title="Biologie")
    assert text.startswith("Biologie\nSection: CHAPITRE 2")
    assert text.endswith(SECTION.content)


def test_generates_note_and_quiz() -> None:
    client = FakeClient([NOTE, QUIZ])
    artifacts = LlmSectionGenerator(client=client).generate(SECTION, document_title="Biologie", total_sections=3)

    assert artifacts.revision_note is not None
    assert artifacts.revision_note.definitions[0].term == "ATP"
    assert artifacts.quiz is not None
    assert artifacts.quiz.recommended_session_length == 8
    assert artifacts.quiz.questions[0].options == ["ATP", "ADN"]
    assert client.prompts[0].startswith("Section 2/3")


def test_quiz_failure_keeps_revision_note() -> None:
    client = FakeClient([NOTE, CompletionError("bad json", code="invalid_json")])
    artifacts = LlmSectionGenerator(client=client).generate(SECTION, document_title="Biologie", total_sections=3)
    assert artifacts.revision_note is not None
    assert artifacts.quiz is None


def test_invalid_note_payload_is_dropped() -> None:
    client = FakeClient([{"documentTitle": "no summary"}, QUIZ])
    artifacts = LlmSectionGenerator(client=client).generate(SECTION, document_title="Biologie", total_sections=1)
    assert artifacts.revision_note is None
    assert artifacts.quiz is not None
