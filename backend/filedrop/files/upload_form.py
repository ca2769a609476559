"""Streaming multipart parsing with the upload policy applied as bytes arrive.

Starlette's ``Request.form()`` spools the whole body before the route sees
it. *UploadFormParser* applies the same rules as validate_upload() while the
body is still streaming in:

* a file part's media type is checked as soon as its headers are parsed
* its size is checked on every chunk of its data
* the file count is checked when the next file part begins

and the request body as a whole is capped, so an oversized or disallowed
upload is refused after reading at most one limit's worth of bytes.
Whatever was spooled so far is closed and discarded.
"""
import logging
from contextlib import aclosing
from typing import AsyncIterator

from fastapi import HTTPException, Request
from python_multipart.multipart import parse_options_header
from starlette.datastructures import FormData
from starlette.formparsers import MultiPartException, MultiPartParser

from .errors import UploadError
from .naming import normalise_media_type
from .validation import UploadPolicy, validate_upload

logger = logging.getLogger(__name__)

# Room for boundaries, part headers and small text fields next to the file.
FORM_OVERHEAD_BYTES = 1024 * 1024
MAX_FORM_FIELDS = 32


def body_limit(policy: UploadPolicy) -> int:
    """Largest request body an acceptable upload can produce."""
    return policy.max_file_size_bytes * policy.max_files + FORM_OVERHEAD_BYTES


async def _capped(stream: AsyncIterator[bytes], limit: int) -> AsyncIterator[bytes]:
    received = 0
    async for chunk in stream:
        received += len(chunk)
        if received > limit:
            raise UploadError.file_too_large()
        yield chunk


class UploadFormParser(MultiPartParser):
    """MultiPartParser that enforces an *UploadPolicy* incrementally."""

    def __init__(self, headers, stream, policy: UploadPolicy) -> None:
        super().__init__(
            headers,
            stream,
            max_files=policy.max_files,
            max_fields=MAX_FORM_FIELDS,
        )
        self.policy = policy
        self.file_count = 0
        self._media_type = ""
        self._file_bytes = 0

    def on_headers_finished(self) -> None:
        _, options = parse_options_header(self._current_part.content_disposition)
        if b"filename" in options:
            self.file_count += 1
            if self.file_count > self.policy.max_files:
                # Earlier files already passed type and size, so the
                # count rule is the one that fails here.
                validate_upload(self.policy, self._media_type, self._file_bytes, self.file_count)

        super().on_headers_finished()

        upload = self._current_part.file
        if upload is not None:
            self._media_type = upload.content_type or ""
            self._file_bytes = 0
            validate_upload(self.policy, self._media_type, 0, self.file_count)

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        super().on_part_data(data, start, end)
        if self._current_part.file is not None:
            self._file_bytes += end - start
            validate_upload(self.policy, self._media_type, self._file_bytes, self.file_count)


async def read_upload_form(request: Request, policy: UploadPolicy) -> FormData:
    """Parse the multipart body of *request* under *policy*.

    Returns:
        The parsed form; the caller must close it.

    Raises:
        UploadError: as soon as a policy rule fails, or when the body is not
            a multipart form (treated as "no file received").
        HTTPException 400: malformed multipart data.
    """
    if normalise_media_type(request.headers.get("content-type", "")) != "multipart/form-data":
        raise UploadError.missing_file()

    limit = body_limit(policy)
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        logger.debug("Refusing body of %s bytes (limit %d) before reading", declared, limit)
        raise UploadError.file_too_large()

    try:
        async with aclosing(_capped(request.stream(), limit)) as stream:
            parser = UploadFormParser(request.headers, stream, policy)
            return await parser.parse()
    except MultiPartException as exc:
        raise HTTPException(status_code=400, detail=exc.message)
