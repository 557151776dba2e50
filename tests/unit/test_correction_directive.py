"""Tests for correction directive parsing."""

import pytest

from backend.app.chat.directives import END_MARKER, START_MARKER, parse_correction_directive


def test_reply_without_block_is_unchanged() -> None:
    """No block: display message is the input, byte for byte."""
    reply = "  A multa é de 10%.\n\nPosso ajudar em algo mais?  "
    parsed = parse_correction_directive(reply)

    assert parsed.display_message == reply
    assert parsed.candidate_body is None
    assert not parsed.has_correction


def test_block_is_split_out() -> None:
    """Body is extracted and the block removed from the display text."""
    parsed = parse_correction_directive(f"Hello {START_MARKER}NEW BODY{END_MARKER}")

    assert parsed.display_message == "Hello"
    assert parsed.candidate_body == "NEW BODY"
    assert parsed.has_correction


def test_body_is_trimmed() -> None:
    """Whitespace around the body is removed, inner newlines kept."""
    parsed = parse_correction_directive(
        f"Feito.\n{START_MARKER}\n  Cláusula 1\nCláusula 2  \n{END_MARKER}\n"
    )

    assert parsed.candidate_body == "Cláusula 1\nCláusula 2"
    assert parsed.display_message == "Feito."


def test_text_after_block_is_kept() -> None:
    """Text on both sides of the block stays in the display message."""
    parsed = parse_correction_directive(f"Antes {START_MARKER}X{END_MARKER} depois")

    assert parsed.display_message == "Antes  depois"
    assert parsed.candidate_body == "X"


def test_unterminated_block_is_treated_as_absent() -> None:
    """Start marker without end marker leaves the reply untouched."""
    reply = f"Aqui está: {START_MARKER} texto cortado"
    parsed = parse_correction_directive(reply)

    assert parsed.candidate_body is None
    assert parsed.display_message == reply


def test_only_first_block_is_honored() -> None:
    """First block wins and no markers leak into the display text."""
    reply = f"Ok {START_MARKER}PRIMEIRO{END_MARKER} e {START_MARKER}SEGUNDO{END_MARKER}"
    parsed = parse_correction_directive(reply)

    assert parsed.candidate_body == "PRIMEIRO"
    assert START_MARKER not in parsed.display_message
    assert END_MARKER not in parsed.display_message
    assert "SEGUNDO" not in parsed.display_message


def test_blank_block_yields_no_body() -> None:
    """A block with only whitespace is stripped but proposes nothing."""
    parsed = parse_correction_directive(f"Sem mudanças. {START_MARKER}   {END_MARKER}")

    assert parsed.candidate_body is None
    assert parsed.display_message == "Sem mudanças."


def test_none_reply_raises() -> None:
    """Null input is a programming error."""
    with pytest.raises(TypeError):
        parse_correction_directive(None)  # type: ignore[arg-type]
