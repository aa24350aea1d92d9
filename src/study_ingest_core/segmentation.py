"""
Heuristic sectioning of extracted document text.

Extracted PDF text carries no reliable structure, so sectioning runs in three passes:

1. `detect_raw_sections`: permissive heading detection, line by line.
2. `merge_small_sections`: content-poor sections are folded into the preceding one.
3. `split_large_section`: oversized sections are cut at paragraph boundaries.

The passes are pure and deterministic; `segment` chains them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from study_ingest_core.models import SectionDraft

HEADING_SEPARATOR = " • "

_KEYWORD_RE = re.compile(
    r"^(?:chapter|chapitre|section|part|partie|module|lesson|leçon|course|cours)\b",
    re.IGNORECASE,
)
_OUTLINE_RE = re.compile(r"^\d+(?:\.\d+)*\b")
_HEADING_TRAILING_RE = re.compile(r"[\s:;,.\-–—]+$")
_CAPS_EXTRA_CHARS = frozenset(" '’-–&:,.")
_CAPS_MIN_LETTERS = 3
_HEADING_MAX_CHARS = 120

_INLINE_WS_RE = re.compile(r"[ \t\f\v]+")
_TRAILING_WS_RE = re.compile(r"[ \t]+\n")
_BLANK_RUN_RE = re.compile(r"\n{3,}")
_PARAGRAPH_RE = re.compile(r"\n{2,}")


@dataclass(frozen=True)
class SegmentationConfig:
    min_chars: int = 600
    max_chars: int = 4500

    def __post_init__(self) -> None:
        if self.min_chars < 0:
            raise ValueError("min_chars must be >= 0")
        if self.max_chars <= 0:
            raise ValueError("max_chars must be > 0")
        if self.min_chars >= self.max_chars:
            raise ValueError("min_chars must be < max_chars")


DEFAULT_SEGMENTATION = SegmentationConfig()


def sanitize_content(content: str) -> str:
    text = content.replace("\u00a0", " ").replace("\r\n", "\n").replace("\r", "\n")
    text = _INLINE_WS_RE.sub(" ", text)
    text = _TRAILING_WS_RE.sub("\n", text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def _is_all_caps_heading(line: str) -> bool:
    if not (line[0].isalpha() and line[0].isupper()):
        return False
    letters = 0
    for ch in line:
        if ch.isalpha():
            if not ch.isupper():
                return False
            letters += 1
        elif not (ch.isdigit() or ch in _CAPS_EXTRA_CHARS):
            return False
    return letters >= _CAPS_MIN_LETTERS


def is_heading(line: str) -> bool:
    line = line.strip()
    # Longer lines are prose, even when they open with "Chapter" or a number.
    if not line or len(line) > _HEADING_MAX_CHARS:
        return False
    return bool(_KEYWORD_RE.match(line) or _OUTLINE_RE.match(line) or _is_all_caps_heading(line))


def clean_heading(line: str) -> str:
    return _HEADING_TRAILING_RE.sub("", _INLINE_WS_RE.sub(" ", line.strip()))


def detect_raw_sections(raw_text: str, fallback_title: str) -> list[SectionDraft]:
    """
    Split `raw_text` at heading lines. Text before the first heading goes to a section titled
    `fallback_title`; blank lines inside a section are kept as paragraph breaks.
    """
    sections: list[SectionDraft] = []
    heading: str | None = None
    lines: list[str] = []

    def flush() -> None:
        content = sanitize_content("\n".join(lines))
        if heading is not None and content:
            sections.append(SectionDraft(heading=heading, content=content))

    for raw_line in raw_text.replace("\u00a0", " ").splitlines():
        line = _INLINE_WS_RE.sub(" ", raw_line).strip()
        if not line:
            if lines:
                lines.append("")
            continue

        if is_heading(line):
            title = clean_heading(line) or line
            if heading is not None and not sanitize_content("\n".join(lines)):
                # Consecutive headings ("CHAPTER 2" then "DEEP DIVE") form one title.
                heading = f"{heading}{HEADING_SEPARATOR}{title}"
            else:
                flush()
                heading = title
            lines = []
            continue

        if heading is None:
            heading = fallback_title
        lines.append(line)

    if heading is not None and not sanitize_content("\n".join(lines)) and sections:
        # Trailing heading without a body: keep its text with the previous section.
        previous = sections[-1]
        previous.content = f"{previous.content}\n\n{heading}"
    else:
        flush()

    if not sections:
        sections.append(SectionDraft(heading=fallback_title, content=sanitize_content(raw_text)))
    return sections


def merge_small_sections(sections: list[SectionDraft], min_chars: int) -> list[SectionDraft]:
    """
    Fold every section shorter than `min_chars` into the previous accepted one.

    The first section has nothing before it, so while it is itself short it absorbs the
    section that follows it instead.
    """
    merged: list[SectionDraft] = []
    for section in sections:
        content = sanitize_content(section.content)
        if not merged:
            merged.append(SectionDraft(heading=section.heading, content=content))
            continue

        previous = merged[-1]
        if len(content) < min_chars or len(previous.content) < min_chars:
            previous.heading = f"{previous.heading}{HEADING_SEPARATOR}{section.heading}"
            previous.content = f"{previous.content}\n\n{section.heading}\n{content}".strip()
        else:
            merged.append(SectionDraft(heading=section.heading, content=content))
    return merged


def _joined_len(paragraphs: list[str]) -> int:
    if not paragraphs:
        return 0
    return sum(len(p) for p in paragraphs) + 2 * (len(paragraphs) - 1)


def _rebalance_tail(chunks: list[list[str]], min_chars: int, max_chars: int) -> None:
    # Greedy packing can leave a tiny last chunk; borrow paragraphs from its neighbour while
    # both stay within bounds.
    while len(chunks) >= 2:
        prev, last = chunks[-2], chunks[-1]
        if _joined_len(last) >= min_chars or len(prev) < 2:
            return
        candidate = prev[-1]
        if _joined_len([candidate, *last]) > max_chars or _joined_len(prev[:-1]) < min_chars:
            return
        last.insert(0, prev.pop())


def _split_long_paragraph(paragraph: str, max_chars: int) -> list[str]:
    if len(paragraph) <= max_chars or "\n" not in paragraph:
        return [paragraph]
    pieces: list[str] = []
    current: list[str] = []
    for line in paragraph.split("\n"):
        if current and len("\n".join([*current, line])) > max_chars:
            pieces.append("\n".join(current))
            current = []
        current.append(line)
    if current:
        pieces.append("\n".join(current))
    return pieces


def split_large_section(
    section: SectionDraft,
    max_chars: int,
    *,
    min_chars: int = 0,
) -> list[SectionDraft]:
    """
    Greedily pack paragraphs into chunks of at most `max_chars`.

    A paragraph longer than `max_chars` is cut at line breaks first (extracted PDF text
    often has no blank lines at all); a single line longer than `max_chars` becomes its own
    oversized chunk.
    """
    if len(section.content) <= max_chars:
        return [section]

    paragraphs = [
        piece
        for p in _PARAGRAPH_RE.split(section.content)
        if p.strip()
        for piece in _split_long_paragraph(p.strip(), max_chars)
    ]
    chunks: list[list[str]] = []
    current: list[str] = []
    for paragraph in paragraphs:
        if current and _joined_len([*current, paragraph]) > max_chars:
            chunks.append(current)
            current = []
        current.append(paragraph)
    if current:
        chunks.append(current)

    if len(chunks) <= 1:
        return [section]

    _rebalance_tail(chunks, min_chars, max_chars)
    return [
        SectionDraft(
            heading=section.heading if index == 0 else f"{section.heading} (part {index + 1})",
            content="\n\n".join(chunk),
        )
        for index, chunk in enumerate(chunks)
    ]


def normalise_sections(
    sections: list[SectionDraft],
    fallback_title: str,
    config: SegmentationConfig = DEFAULT_SEGMENTATION,
) -> list[SectionDraft]:
    working = merge_small_sections(sections, config.min_chars)
    if not working:
        everything = "\n\n".join(s.content for s in sections)
        working = [SectionDraft(heading=fallback_title, content=sanitize_content(everything))]

    expanded: list[SectionDraft] = []
    for section in working:
        cleaned = SectionDraft(
            heading=sanitize_content(section.heading),
            content=sanitize_content(section.content),
        )
        expanded.extend(split_large_section(cleaned, config.max_chars, min_chars=config.min_chars))
    return expanded


def segment(
    raw_text: str,
    fallback_title: str,
    config: SegmentationConfig = DEFAULT_SEGMENTATION,
) -> list[SectionDraft]:
    """Ordered sections for `raw_text`; list position is the reading order."""
    title = fallback_title.strip() or "Document"
    return normalise_sections(detect_raw_sections(raw_text, title), title, config)
