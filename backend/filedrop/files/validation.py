"""Upload acceptance policy."""
from dataclasses import dataclass
from typing import FrozenSet

from ..config import UploadSettings
from .errors import UploadError
from .naming import normalise_media_type


@dataclass(frozen=True)
class UploadPolicy:
    allowed_mime_types: FrozenSet[str]
    max_file_size_bytes: int
    max_files: int

    @classmethod
    def from_settings(cls, settings: UploadSettings) -> "UploadPolicy":
        return cls(
            allowed_mime_types=frozenset(settings.allowed_mime_types),
            max_file_size_bytes=settings.max_file_size_bytes,
            max_files=settings.max_files,
        )


def validate_upload(
    policy: UploadPolicy,
    media_type: str,
    size_bytes: int,
    file_count: int = 1,
) -> None:
    """Decide whether an upload may be stored.

    Rules are checked in order and the first failure is raised:

    1. media type must be whitelisted (400, "unsupported file type")
    2. size must not exceed the limit (413, "file too large")
    3. at most ``max_files`` files per request (413, "too many files")

    Raises:
        UploadError: describing the first rule that failed.
    """
    if normalise_media_type(media_type) not in policy.allowed_mime_types:
        raise UploadError.unsupported_type()
    if size_bytes > policy.max_file_size_bytes:
        raise UploadError.file_too_large()
    if file_count > policy.max_files:
        raise UploadError.too_many_files()
