"""FastAPI router for uploading and serving files."""
import logging
from typing import List

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse
from starlette.datastructures import UploadFile

from ..config import get_config
from .errors import FILE_NOT_FOUND, UploadError
from .naming import generate_storage_name, media_type_for
from .schemas import ErrorResponse, UploadMeta, UploadResponse
from .storage import FileStorage
from .upload_form import read_upload_form
from .validation import UploadPolicy, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


def _storage() -> FileStorage:
    return FileStorage.get_instance()


def error_response(status_code: int, message: str) -> JSONResponse:
    """Render the ``{"success": false, "error": ...}`` body."""
    return JSONResponse(
        ErrorResponse(error=message).model_dump(), status_code=status_code
    )


def get_public_base_url(request: Request) -> str:
    """Configured base URL, or the scheme and host the request came in on."""
    configured = get_config().server.base_url
    if configured:
        return configured
    return f"{request.url.scheme}://{request.url.netloc}"


@router.post("/upload", status_code=201, response_model=UploadResponse)
async def upload_file(request: Request) -> JSONResponse:
    """Accept a single file from a multipart form.

    The file may be sent under any field name (``file`` by convention).
    Policy rules are enforced while the body streams in, so an oversized
    or disallowed upload is refused without reading the rest of it.

    Returns:
        201 with the public URL and metadata of the stored file.

    Raises:
        UploadError: 400 for a missing file or unsupported media type,
            413 when the file is too large or more than one file was sent,
            500 when the file could not be written.
    """
    policy = UploadPolicy.from_settings(get_config().uploads)

    form = await read_upload_form(request, policy)
    # Closing the form discards every spooled part, so rejected uploads
    # never outlive the request.
    try:
        files: List[UploadFile] = [
            value for _, value in form.multi_items() if isinstance(value, UploadFile)
        ]
        if not files:
            raise UploadError.missing_file()

        upload = files[0]
        media_type = upload.content_type or ""
        size = upload.size or 0
        original_name = upload.filename or ""

        validate_upload(policy, media_type, size, file_count=len(files))

        name = generate_storage_name(media_type)
        stored = await _storage().save(name, upload.file)
    finally:
        await form.close()

    url = f"{get_public_base_url(request)}/files/{stored.name}"
    logger.info(
        "File uploaded: %s -> %s (%d bytes, %s)",
        original_name,
        stored.name,
        stored.size_bytes,
        media_type,
    )

    body = UploadResponse(
        url=url,
        meta=UploadMeta(
            original_name=original_name,
            size=stored.size_bytes,
            mime_type=media_type,
        ),
    )
    return JSONResponse(body.model_dump(by_alias=True), status_code=201)


@router.get("/files/{name}")
async def serve_file(name: str) -> FileResponse:
    """Stream a stored file.

    Raises:
        HTTPException 404: unknown name, or the file was already swept.
    """
    located = await _storage().locate(name)
    if located is None:
        raise HTTPException(status_code=404, detail=FILE_NOT_FOUND)

    path, stat_result = located
    return FileResponse(path, media_type=media_type_for(name), stat_result=stat_result)
