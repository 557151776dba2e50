"""Legal-analysis instruction templates.

One template, parameterized by what is being analyzed and the five section
labels requested from the model.
"""

from dataclasses import dataclass

from backend.app.models.common import SourceKind


@dataclass(frozen=True)
class Section:
    """A labeled section the model must produce."""

    label: str
    guidance: str


@dataclass(frozen=True)
class PromptProfile:
    """How to describe the material and which sections to ask for."""

    subject: str
    sections: tuple[Section, Section, Section, Section, Section]


DOCUMENT_SECTIONS = (
    Section("Resumo Executivo", "Tipo de contrato e principais características"),
    Section("Análise de Riscos", "Identifique cláusulas problemáticas ou arriscadas"),
    Section("Pontos de Atenção", "Aspectos que merecem revisão"),
    Section("Recomendações", "Sugestões de melhorias ou correções"),
    Section("Conformidade", "Verificação com a legislação brasileira"),
)

TRANSCRIPT_SECTIONS = (
    Section("Resumo Executivo", "Tipo de conteúdo e principais pontos"),
    Section("Análise Jurídica", "Identifique questões legais mencionadas"),
    Section("Pontos de Atenção", "Aspectos que merecem revisão"),
    Section("Recomendações", "Sugestões baseadas no conteúdo"),
    Section("Próximos Passos", "Ações recomendadas"),
)

PROFILES: dict[SourceKind, PromptProfile] = {
    SourceKind.text_document: PromptProfile("o seguinte contrato", DOCUMENT_SECTIONS),
    SourceKind.image: PromptProfile("esta imagem de documento jurídico", DOCUMENT_SECTIONS),
    SourceKind.audio: PromptProfile(
        "a seguinte transcrição de áudio jurídico", TRANSCRIPT_SECTIONS
    ),
}

CLOSING = "Forneça uma análise detalhada e estruturada em português brasileiro."


def build_analysis_prompt(kind: SourceKind) -> str:
    """Render the analysis instruction for one source kind.

    Args:
        kind: Which extraction path the prompt is for

    Returns:
        Prompt text
    """
    profile = PROFILES[kind]
    lines = [
        f"Você é um especialista em direito brasileiro. Analise {profile.subject} e forneça:",
        "",
    ]
    for number, section in enumerate(profile.sections, start=1):
        lines.append(f"{number}. **{section.label}**: {section.guidance}")
    lines.append("")
    lines.append(CLOSING)
    return "\n".join(lines)


def format_material(kind: SourceKind, material: str) -> str:
    """Label the analyzed material (document text, file name or transcript)."""
    label = "Transcrição" if kind is SourceKind.audio else "Contrato"
    return f"{label}: {material}"
