"""Tests for raw text extraction from PDF and DOCX bytes."""

import io

import fitz
import pytest
from docx import Document

from backend.app.extraction.text import (
    TextExtractionError,
    extract_docx_text,
    extract_pdf_text,
    extract_raw_text,
)


def _pdf_bytes(*pages: str) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def _docx_bytes(*paragraphs: str) -> bytes:
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def test_pdf_text_from_every_page() -> None:
    """Text of all pages is joined in order."""
    text = extract_pdf_text(_pdf_bytes("Clausula primeira", "Clausula segunda"))

    assert "Clausula primeira" in text
    assert "Clausula segunda" in text
    assert text.index("primeira") < text.index("segunda")


def test_pdf_without_text_layer_is_empty() -> None:
    """A blank page yields an empty string, not an error."""
    assert extract_pdf_text(_pdf_bytes("")) == ""


def test_invalid_pdf_raises() -> None:
    """Bytes that are not a PDF fail with TextExtractionError."""
    with pytest.raises(TextExtractionError):
        extract_pdf_text(b"definitely not a pdf")


def test_docx_paragraphs() -> None:
    """Blank paragraphs are dropped."""
    data = _docx_bytes("Contrato de locação", "", "Valor: R$ 1.000")

    assert extract_docx_text(data) == "Contrato de locação\nValor: R$ 1.000"


def test_invalid_docx_raises() -> None:
    """Bytes that are not a DOCX fail with TextExtractionError."""
    with pytest.raises(TextExtractionError):
        extract_docx_text(b"not a zip")


def test_raw_text_dispatch() -> None:
    """Suffix picks the reader and legacy .doc has none."""
    assert "Oi" in (extract_raw_text(_pdf_bytes("Oi"), ".pdf") or "")
    assert extract_raw_text(_docx_bytes("Oi"), ".docx") == "Oi"
    assert extract_raw_text(b"\xd0\xcf\x11\xe0", ".doc") is None
