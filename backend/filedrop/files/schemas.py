"""Pydantic schemas for the upload API.

The JSON wire format is camelCase (``originalName``, ``mimeType``) while the
Python attributes stay snake_case; always dump with ``by_alias=True``.
"""
from pydantic import BaseModel, ConfigDict, Field


class StoredFile(BaseModel):
    """A file committed to the upload directory."""
    name: str = Field(..., description="Generated storage name")
    size_bytes: int = Field(..., ge=0, description="Bytes written")
    path: str = Field(..., description="Absolute path on disk")


class UploadMeta(BaseModel):
    """Client-facing description of an accepted upload.

    ``original_name`` is echoed back for display only; it never takes part
    in choosing the storage name.
    """
    model_config = ConfigDict(populate_by_name=True)

    original_name: str = Field(..., alias="originalName")
    size: int = Field(..., ge=0)
    mime_type: str = Field(..., alias="mimeType")


class UploadResponse(BaseModel):
    """Body of a 201 response from POST /upload."""
    success: bool = True
    url: str = Field(..., description="Public URL of the stored file")
    meta: UploadMeta


class ErrorResponse(BaseModel):
    """Body of every error response."""
    success: bool = False
    error: str
