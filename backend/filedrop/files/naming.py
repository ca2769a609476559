"""Storage name generation.

Stored files are named ``<uuid4><ext>``. The extension comes from the
declared media type, never from the client's filename, so a storage name
cannot carry path separators or traversal segments.
"""
import re
import uuid
from typing import Dict

FALLBACK_EXTENSION = ".dat"
DEFAULT_MEDIA_TYPE = "application/octet-stream"

# Media type -> canonical extension.
MIME_EXTENSIONS: Dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
    "image/avif": ".avif",
    "application/pdf": ".pdf",
    "text/plain": ".txt",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/ogg": ".ogg",
    "audio/flac": ".flac",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
}

_STORAGE_NAME_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}\.[a-z0-9]+$"
)


def normalise_media_type(media_type: str) -> str:
    """Lower-case a media type and drop any ``;`` parameters."""
    return (media_type or "").split(";", 1)[0].strip().lower()


def extension_for(media_type: str) -> str:
    """Return the extension (with leading dot) for *media_type*.

    Unknown or empty media types map to ``.dat``.
    """
    return MIME_EXTENSIONS.get(normalise_media_type(media_type), FALLBACK_EXTENSION)


def generate_storage_name(media_type: str) -> str:
    """Build a fresh storage name for an upload declared as *media_type*."""
    return f"{uuid.uuid4()}{extension_for(media_type)}"


def is_storage_name(name: str) -> bool:
    """True if *name* has the shape produced by generate_storage_name()."""
    return bool(_STORAGE_NAME_RE.match(name or ""))


# Extension -> media type for serving; first mapping wins.
_EXTENSION_MEDIA_TYPES: Dict[str, str] = {}
for _media_type, _ext in MIME_EXTENSIONS.items():
    _EXTENSION_MEDIA_TYPES.setdefault(_ext, _media_type)


def media_type_for(name: str) -> str:
    """Content type to serve a stored file with, based on its extension."""
    _, dot, ext = name.rpartition(".")
    if not dot:
        return DEFAULT_MEDIA_TYPE
    return _EXTENSION_MEDIA_TYPES.get(f".{ext.lower()}", DEFAULT_MEDIA_TYPE)
