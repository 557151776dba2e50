"""Source classification by file-name suffix."""

from pathlib import PurePosixPath

from backend.app.errors import UnsupportedFileTypeError
from backend.app.models.common import SourceKind

SUFFIX_KINDS: dict[str, SourceKind] = {
    ".pdf": SourceKind.text_document,
    ".doc": SourceKind.text_document,
    ".docx": SourceKind.text_document,
    ".jpg": SourceKind.image,
    ".jpeg": SourceKind.image,
    ".png": SourceKind.image,
    ".mp3": SourceKind.audio,
    ".wav": SourceKind.audio,
    ".webm": SourceKind.audio,
    ".mp4": SourceKind.audio,
}

IMAGE_MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}


def file_suffix(file_name: str) -> str:
    """Lower-cased suffix including the dot, or "" if there is none."""
    return PurePosixPath(file_name.lower()).suffix


def classify(file_name: str) -> SourceKind:
    """Pick the extraction path for a file.

    Raises:
        UnsupportedFileTypeError: If the suffix maps to no path
    """
    kind = SUFFIX_KINDS.get(file_suffix(file_name))
    if kind is None:
        raise UnsupportedFileTypeError(file_name)
    return kind


def image_media_type(file_name: str) -> str:
    """Media type sent alongside an image payload."""
    return IMAGE_MEDIA_TYPES.get(file_suffix(file_name), "image/jpeg")
