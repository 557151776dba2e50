"""Common types and enums shared across all models."""

from enum import Enum


class Tier(str, Enum):
    """Subscription tier."""

    free = "free"
    pro = "pro"


class DocumentStatus(str, Enum):
    """Document lifecycle: pending -> processing -> success | error."""

    pending = "pending"
    processing = "processing"
    success = "success"
    error = "error"


class SourceKind(str, Enum):
    """Extraction path chosen for an uploaded file."""

    text_document = "text_document"
    image = "image"
    audio = "audio"
