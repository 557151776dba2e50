"""Raw text extraction from word-processor and PDF uploads."""

import io
import logging

import fitz  # PyMuPDF
from docx import Document

logger = logging.getLogger(__name__)


class TextExtractionError(Exception):
    """The file could not be opened as the format its suffix claims."""


def extract_pdf_text(data: bytes) -> str:
    """Concatenate the text layer of every page."""
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise TextExtractionError(f"Unreadable PDF: {e}") from e

    try:
        pages = [page.get_text() for page in doc]
    finally:
        doc.close()

    return "\n".join(text.strip() for text in pages if text.strip())


def extract_docx_text(data: bytes) -> str:
    """Concatenate non-empty paragraphs."""
    try:
        doc = Document(io.BytesIO(data))
    except Exception as e:
        # python-docx surfaces zip and XML errors without a common base class
        raise TextExtractionError(f"Unreadable DOCX: {e}") from e

    return "\n".join(p.text.strip() for p in doc.paragraphs if p.text.strip())


def extract_raw_text(data: bytes, suffix: str) -> str | None:
    """Raw text for a text-document suffix, or None when the format has no reader.

    Legacy ``.doc`` binaries are not parsed.
    """
    if suffix == ".pdf":
        return extract_pdf_text(data)
    if suffix == ".docx":
        return extract_docx_text(data)
    logger.info(f"No text reader for {suffix}, analyzing by name only")
    return None
