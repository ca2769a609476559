"""File upload, storage and retention for Filedrop.

Uploads are validated against a media-type whitelist and size limit, stored
flat under ``uploads/{uuid}.{ext}`` and served back from ``/files/{name}``.
A background sweeper deletes files older than the retention window
(7 days by default).

Supported file types (default whitelist):
- Images: jpeg, png, gif
"""
