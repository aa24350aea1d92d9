from __future__ import annotations

import io

import pytest
from pypdf import PdfWriter

from study_ingest_core import extraction
from study_ingest_core.extraction import extract_document_text
from study_ingest_core.segmentation import SegmentationConfig, segment


def _blank_pdf(pages: int = 2) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def test_plain_text_is_normalized() -> None:
    res = extract_document_text(
        data="Intro\r\n\r\n\r\n\r\nBody\t\ttext\x00".encode("utf-8"),
        content_type="text/plain",
        filename="notes.txt",
    )
    assert res.extractor == "text_utf8"
    assert res.text == "Intro\n\nBody text"
    assert res.page_count == 0


def test_invalid_utf8_is_replaced() -> None:
    res = extract_document_text(data=b"caf\xe9", filename="notes.txt")
    assert res.text == "caf\ufffd"


def test_pdf_page_count_comes_from_reader() -> None:
    res = extract_document_text(data=_blank_pdf(3), content_type="application/pdf")
    assert res.extractor == "pypdf"
    assert res.page_count == 3
    assert res.text == ""
    assert res.metrics["failed_pages"] == 0


def test_pdf_is_detected_by_magic_bytes() -> None:
    res = extract_document_text(data=_blank_pdf(1), content_type=None, filename="upload.bin")
    assert res.extractor == "pypdf"


def test_unreadable_pdf_raises_value_error() -> None:
    with pytest.raises(ValueError, match="Unreadable PDF"):
        extract_document_text(data=b"not really a pdf", filename="broken.pdf")


class _FakePage:
    def __init__(self, text: str) -> None:
        self.text = text

    def extract_text(self) -> str:
        return self.text


class _FakeReader:
    pages_text: list[str] = []

    def __init__(self, stream) -> None:  # noqa: ANN001
        self.pages = [_FakePage(t) for t in self.pages_text]


def test_pdf_pages_are_separated_by_paragraph_breaks(monkeypatch: pytest.MonkeyPatch) -> None:
    line = "The mitochondrion is the site of aerobic respiration in eukaryotic cells today."
    _FakeReader.pages_text = ["\n".join([line] * 2) for _ in range(6)]
    monkeypatch.setattr(extraction, "PdfReader", _FakeReader)

    res = extract_document_text(data=b"%PDF-1.7", content_type="application/pdf")

    assert res.page_count == 6
    assert res.text.count("\n\n") == 5

    sections = segment(res.text, "Biology", SegmentationConfig(min_chars=50, max_chars=200))
    assert len(sections) > 1
    assert all(len(s.content) <= 200 for s in sections)
