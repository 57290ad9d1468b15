from __future__ import annotations

import mimetypes
from pathlib import Path

from cleftdetect.errors import InvalidFormat

from .capture import RawImage

_UNDECLARED_TYPES = {"", "application/octet-stream"}


def resolve_content_type(content_type: str | None, filename: str | None) -> str:
    declared = (content_type or "").split(";", 1)[0].strip().lower()
    if declared in _UNDECLARED_TYPES and filename:
        guessed, _ = mimetypes.guess_type(filename)
        declared = (guessed or "").lower()
    return declared


def load_upload(
    data: bytes, content_type: str | None, filename: str | None = None
) -> RawImage:
    """Accept a user supplied file as long as it declares an image type."""
    resolved = resolve_content_type(content_type, filename)
    if not resolved.startswith("image/"):
        raise InvalidFormat(
            f"Unsupported file type {resolved or 'unknown'!r} for {filename or 'upload'}"
        )
    if not data:
        raise InvalidFormat(f"Uploaded file {filename or 'upload'} is empty")
    return RawImage(data=data, content_type=resolved)


def load_image_file(path: Path) -> RawImage:
    guessed, _ = mimetypes.guess_type(path.name)
    if not (guessed or "").startswith("image/"):
        raise InvalidFormat(f"Unsupported file type for {path}")
    return load_upload(path.read_bytes(), guessed, path.name)


__all__ = ["load_upload", "load_image_file", "resolve_content_type"]
