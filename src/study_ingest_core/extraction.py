from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field

from pypdf import PdfReader
from pypdf.errors import PyPdfError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractResult:
    extractor: str
    text: str
    page_count: int
    metrics: dict[str, object] = field(default_factory=dict)


_WS_RE = re.compile(r"[ \t\f\v]+")
_NL_RE = re.compile(r"\n{3,}")


def _normalize_text(text: str) -> str:
    text = text.replace("\x00", "").replace("\u200b", "")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _WS_RE.sub(" ", text)
    text = _NL_RE.sub("\n\n", text)
    return text.strip()


def _looks_like_pdf(data: bytes, content_type: str, filename: str) -> bool:
    return "pdf" in content_type or filename.endswith(".pdf") or data[:5] == b"%PDF-"


def _extract_pdf(data: bytes) -> ExtractResult:
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = list(reader.pages)
    except (PyPdfError, ValueError, OSError) as e:
        raise ValueError(f"Unreadable PDF: {e}") from e

    chunks: list[str] = []
    failed_pages = 0
    for number, page in enumerate(pages, start=1):
        try:
            chunks.append(page.extract_text() or "")
        except Exception as e:  # noqa: BLE001
            # A single broken content stream should not sink the whole document.
            failed_pages += 1
            logger.warning("pdf page %d text extraction failed: %s", number, e)
    # Page boundaries become paragraph breaks for the section splitter.
    text = _normalize_text("\n\n".join(chunks))
    return ExtractResult(
        extractor="pypdf",
        text=text,
        page_count=len(pages),
        metrics={"chars": len(text), "failed_pages": failed_pages},
    )


def extract_document_text(
    *,
    data: bytes,
    content_type: str | None = None,
    filename: str | None = None,
) -> ExtractResult:
    """
    Deterministic text extraction for uploaded study material.

    PDFs go through pypdf page by page; anything else is decoded as UTF-8. Raises
    `ValueError` when the bytes cannot be parsed at all.
    """
    ct = (content_type or "").lower()
    name = (filename or "").lower()

    if _looks_like_pdf(data, ct, name):
        return _extract_pdf(data)

    text = _normalize_text(data.decode("utf-8", errors="replace"))
    return ExtractResult(
        extractor="text_utf8",
        text=text,
        page_count=0,
        metrics={"chars": len(text)},
    )
