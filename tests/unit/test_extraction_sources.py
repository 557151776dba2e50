"""Tests for source classification and analysis prompts."""

import pytest

from backend.app.errors import UnsupportedFileTypeError
from backend.app.extraction.prompts import build_analysis_prompt, format_material
from backend.app.extraction.sources import classify, file_suffix, image_media_type
from backend.app.models.common import SourceKind


@pytest.mark.parametrize(
    "name,kind",
    [
        ("contrato.pdf", SourceKind.text_document),
        ("CONTRATO.DOCX", SourceKind.text_document),
        ("antigo.doc", SourceKind.text_document),
        ("foto.jpeg", SourceKind.image),
        ("foto.jpg", SourceKind.image),
        ("scan.png", SourceKind.image),
        ("audio.mp3", SourceKind.audio),
        ("audio.wav", SourceKind.audio),
        ("audio.webm", SourceKind.audio),
        ("audio.mp4", SourceKind.audio),
    ],
)
def test_classify_by_suffix(name: str, kind: SourceKind) -> None:
    """Suffix picks the extraction path, case-insensitively."""
    assert classify(name) is kind


@pytest.mark.parametrize("name", ["notes.txt", "archive.zip", "no_suffix"])
def test_classify_rejects_unknown_suffix(name: str) -> None:
    """Unknown suffixes are unsupported."""
    with pytest.raises(UnsupportedFileTypeError) as exc_info:
        classify(name)

    assert exc_info.value.status_code == 400
    assert exc_info.value.file_name == name


def test_file_suffix() -> None:
    """Only the last suffix counts."""
    assert file_suffix("a.tar.PDF") == ".pdf"
    assert file_suffix("plain") == ""


def test_image_media_type() -> None:
    """PNG is sent as PNG, everything else as JPEG."""
    assert image_media_type("x.png") == "image/png"
    assert image_media_type("x.jpg") == "image/jpeg"


def test_document_prompt_has_five_sections() -> None:
    """Contract prompt asks for the five document sections in order."""
    prompt = build_analysis_prompt(SourceKind.text_document)

    labels = [
        "Resumo Executivo",
        "Análise de Riscos",
        "Pontos de Atenção",
        "Recomendações",
        "Conformidade",
    ]
    positions = [prompt.index(f"**{label}**") for label in labels]
    assert positions == sorted(positions)
    assert "5. **Conformidade**" in prompt
    assert "o seguinte contrato" in prompt


def test_image_prompt_uses_document_sections() -> None:
    """Image prompt shares the document sections with its own subject."""
    prompt = build_analysis_prompt(SourceKind.image)

    assert "imagem de documento jurídico" in prompt
    assert "**Análise de Riscos**" in prompt


def test_transcript_prompt_has_own_sections() -> None:
    """Audio prompt swaps in the transcript sections."""
    prompt = build_analysis_prompt(SourceKind.audio)

    assert "**Análise Jurídica**" in prompt
    assert "5. **Próximos Passos**" in prompt
    assert "**Conformidade**" not in prompt


def test_format_material_labels() -> None:
    """Transcripts and contracts are labeled differently."""
    assert format_material(SourceKind.audio, "olá") == "Transcrição: olá"
    assert format_material(SourceKind.text_document, "texto") == "Contrato: texto"
