"""Correction directive parsing.

The chat prompt asks the model to append the full corrected contract between
``[[[START_CONTRACT]]]`` and ``[[[END_CONTRACT]]]`` when the user explicitly
requests an edit. This module splits a raw reply into the text shown to the
user and the candidate new document body.
"""

import re
from dataclasses import dataclass

START_MARKER = "[[[START_CONTRACT]]]"
END_MARKER = "[[[END_CONTRACT]]]"

_BLOCK = re.compile(re.escape(START_MARKER) + r"(.*?)" + re.escape(END_MARKER), re.DOTALL)


@dataclass(frozen=True)
class ParsedReply:
    """Model reply split into display text and an optional new document body."""

    display_message: str
    candidate_body: str | None

    @property
    def has_correction(self) -> bool:
        return self.candidate_body is not None


def parse_correction_directive(reply: str) -> ParsedReply:
    """Split a model reply on its correction block.

    Only the first complete block is honored, but every complete block,
    ignored later ones included, is removed from the display message so no
    marker reaches the user. A start marker
    without a matching end marker is not a block: the reply is returned as is.
    A block whose body is blank yields no candidate body.

    Args:
        reply: Raw model reply

    Returns:
        ParsedReply with display message and candidate body (or None)

    Raises:
        TypeError: If reply is None
    """
    if reply is None:
        raise TypeError("parse_correction_directive() requires a string, got None")

    match = _BLOCK.search(reply)
    if match is None:
        return ParsedReply(display_message=reply, candidate_body=None)

    body = match.group(1).strip()
    display = _BLOCK.sub("", reply).strip()

    return ParsedReply(display_message=display, candidate_body=body or None)
