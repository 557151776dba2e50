"""Upload validation - pure checks run before anything is stored or sent to the LLM.

Rules run in a fixed order and the first failing rule is the reported reason:

1. size is non-zero and within the upload limit
2. declared media type is allow-listed
3. file name extension is allow-listed
4. file name carries no injection indicators
5. file name length is within limit
"""

import re
from dataclasses import dataclass
from enum import Enum

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MAX_FILE_NAME_LENGTH = 255

ALLOWED_MEDIA_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "image/jpeg",
        "image/jpg",
        "image/png",
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/x-wav",
        "audio/webm",
        "audio/mp4",
    }
)

ALLOWED_EXTENSIONS = (
    ".pdf",
    ".doc",
    ".docx",
    ".jpg",
    ".jpeg",
    ".png",
    ".mp3",
    ".wav",
    ".webm",
    ".mp4",
)

SUSPICIOUS_NAME_PATTERNS = (
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+=", re.IGNORECASE),
    re.compile(r"\.\."),
    re.compile(r"[<>]"),
)


class RejectionReason(str, Enum):
    """Why an upload was refused."""

    empty = "empty"
    too_large = "too_large"
    media_type_not_allowed = "media_type_not_allowed"
    extension_not_allowed = "extension_not_allowed"
    suspicious_name = "suspicious_name"
    name_too_long = "name_too_long"

    @property
    def message(self) -> str:
        """Human-readable reason shown to the uploader."""
        return _MESSAGES[self]


_MESSAGES = {
    RejectionReason.empty: "Arquivo está vazio",
    RejectionReason.too_large: "Arquivo muito grande. Máximo permitido: 10MB",
    RejectionReason.media_type_not_allowed: (
        "Tipo de arquivo não permitido. Use PDF, Word, imagens (JPG/PNG) ou áudio (MP3/WAV)"
    ),
    RejectionReason.extension_not_allowed: "Extensão de arquivo não permitida",
    RejectionReason.suspicious_name: "Nome do arquivo contém caracteres não permitidos",
    RejectionReason.name_too_long: "Nome do arquivo muito longo (máximo 255 caracteres)",
}


@dataclass(frozen=True)
class UploadCandidate:
    """A file offered for upload, before it touches storage."""

    name: str
    media_type: str
    size: int


def validate_upload(
    candidate: UploadCandidate | None,
    *,
    max_bytes: int = MAX_UPLOAD_BYTES,
    max_name_length: int = MAX_FILE_NAME_LENGTH,
) -> RejectionReason | None:
    """Check an upload candidate.

    Args:
        candidate: File name, declared media type and byte size
        max_bytes: Upper size bound (inclusive)
        max_name_length: Upper name length bound (inclusive)

    Returns:
        None if accepted, otherwise the first failing rule's reason

    Raises:
        TypeError: If no candidate was supplied
    """
    if candidate is None:
        raise TypeError("validate_upload() requires an UploadCandidate, got None")

    if candidate.size <= 0:
        return RejectionReason.empty
    if candidate.size > max_bytes:
        return RejectionReason.too_large

    if candidate.media_type.lower() not in ALLOWED_MEDIA_TYPES:
        return RejectionReason.media_type_not_allowed

    if not candidate.name.lower().endswith(ALLOWED_EXTENSIONS):
        return RejectionReason.extension_not_allowed

    if any(pattern.search(candidate.name) for pattern in SUSPICIOUS_NAME_PATTERNS):
        return RejectionReason.suspicious_name

    if len(candidate.name) > max_name_length:
        return RejectionReason.name_too_long

    return None
