"""Upload error taxonomy.

Every failure the upload pipeline can report is an *UploadError* tagged with
an *ErrorKind*. The HTTP layer turns the kind into a status code through
``STATUS_BY_KIND``; nothing branches on message text.
"""
from enum import Enum
from typing import Dict


class ErrorKind(str, Enum):
    CLIENT_INPUT = "client_input"
    QUOTA = "quota"
    STORAGE = "storage"
    SWEEP = "sweep"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.CLIENT_INPUT: 400,
    ErrorKind.QUOTA: 413,
    ErrorKind.STORAGE: 500,
    ErrorKind.SWEEP: 500,
}

UNSUPPORTED_TYPE = "unsupported file type"
MISSING_FILE = "no file received"
FILE_TOO_LARGE = "file too large"
TOO_MANY_FILES = "too many files"
INTERNAL_ERROR = "internal server error"
FILE_NOT_FOUND = "file not found"


class UploadError(Exception):
    """A classified upload or storage failure.

    Attributes:
        kind: Which branch of the taxonomy this error belongs to.
        message: Text safe to return to the client.
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def __repr__(self) -> str:
        return f"UploadError({self.kind.value!r}, {self.message!r})"

    @classmethod
    def unsupported_type(cls) -> "UploadError":
        return cls(ErrorKind.CLIENT_INPUT, UNSUPPORTED_TYPE)

    @classmethod
    def missing_file(cls) -> "UploadError":
        return cls(ErrorKind.CLIENT_INPUT, MISSING_FILE)

    @classmethod
    def file_too_large(cls) -> "UploadError":
        return cls(ErrorKind.QUOTA, FILE_TOO_LARGE)

    @classmethod
    def too_many_files(cls) -> "UploadError":
        return cls(ErrorKind.QUOTA, TOO_MANY_FILES)

    @classmethod
    def storage_failure(cls) -> "UploadError":
        # Detail stays in the server log.
        return cls(ErrorKind.STORAGE, INTERNAL_ERROR)
