"""Tests for the streaming body cap used by the upload form parser."""

import pytest

from filedrop.files.errors import ErrorKind, UploadError
from filedrop.files.upload_form import FORM_OVERHEAD_BYTES, _capped, body_limit
from filedrop.files.validation import UploadPolicy

MIB = 1024 * 1024


async def _chunks(sizes):
    for size in sizes:
        yield b"x" * size


class TestBodyLimit:
    def test_one_file_plus_overhead(self):
        policy = UploadPolicy(frozenset({"image/png"}), 10 * MIB, 1)
        assert body_limit(policy) == 10 * MIB + FORM_OVERHEAD_BYTES

    def test_scales_with_file_count(self):
        policy = UploadPolicy(frozenset({"image/png"}), 2 * MIB, 3)
        assert body_limit(policy) == 6 * MIB + FORM_OVERHEAD_BYTES


class TestCappedStream:
    @pytest.mark.asyncio
    async def test_passes_through_up_to_limit(self):
        received = [chunk async for chunk in _capped(_chunks([4, 4, 2]), 10)]
        assert b"".join(received) == b"x" * 10

    @pytest.mark.asyncio
    async def test_stops_at_first_chunk_over_limit(self):
        received = []
        with pytest.raises(UploadError) as exc_info:
            async for chunk in _capped(_chunks([4, 4, 4, 4]), 10):
                received.append(chunk)

        assert exc_info.value.kind == ErrorKind.QUOTA
        assert exc_info.value.message == "file too large"
        assert len(received) == 2
