"""On-disk storage for uploaded files.

Files live flat in a single directory: ``{upload_dir}/{uuid}.{ext}``.
Writes go to a hidden ``.<random>.part`` file in the same directory and are
renamed into place once flushed, so a storage name only ever points at a
complete file.
"""
import asyncio
import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional, Tuple

from ..config import get_config
from .errors import UploadError
from .naming import is_storage_name
from .schemas import StoredFile

logger = logging.getLogger(__name__)

TEMP_PREFIX = "."
TEMP_SUFFIX = ".part"


class FileStorage:
    """Writes and locates stored files."""

    _instance: Optional["FileStorage"] = None

    def __init__(self, upload_dir: str) -> None:
        self._upload_dir = Path(upload_dir).resolve()

    @classmethod
    def get_instance(cls) -> "FileStorage":
        """Get or create the singleton bound to the configured upload_dir."""
        if cls._instance is None:
            cls._instance = cls(get_config().uploads.upload_dir)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    def ensure_dir(self) -> bool:
        """Create the upload directory if needed.

        Failure is logged rather than raised; a write into a missing
        directory reports the problem to the caller.
        """
        try:
            self._upload_dir.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            logger.error("Failed to create upload directory %s: %s", self._upload_dir, e)
            return False

    async def save(self, name: str, source: BinaryIO) -> StoredFile:
        """Persist *source* under *name*.

        Args:
            name: Storage name from generate_storage_name().
            source: Readable binary file object positioned anywhere; it is
                rewound before copying.

        Returns:
            StoredFile describing the committed file.

        Raises:
            UploadError: STORAGE kind on any filesystem failure, or when
                *name* is not a generated storage name.
        """
        if not is_storage_name(name):
            logger.error("Refusing to store under non-storage name %r", name)
            raise UploadError.storage_failure()

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._write, name, source)
        except OSError as e:
            logger.error("Failed to store %s in %s: %s", name, self._upload_dir, e)
            raise UploadError.storage_failure() from e

    def _write(self, name: str, source: BinaryIO) -> StoredFile:
        self.ensure_dir()
        final_path = self._upload_dir / name

        fd, tmp_name = tempfile.mkstemp(
            dir=self._upload_dir, prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX
        )
        try:
            with os.fdopen(fd, "wb") as out:
                source.seek(0)
                shutil.copyfileobj(source, out)
                out.flush()
                os.fsync(out.fileno())
                size = out.tell()
            os.replace(tmp_name, final_path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

        logger.info("Saved file: %s (%d bytes)", final_path, size)
        return StoredFile(name=name, size_bytes=size, path=str(final_path))

    def resolve(self, name: str) -> Optional[Path]:
        """Return the path a storage name maps to, or None for any other name."""
        if not is_storage_name(name):
            return None
        return self._upload_dir / name

    async def locate(self, name: str) -> Optional[Tuple[Path, os.stat_result]]:
        """Return the path and stat of a servable stored file, or None.

        A file removed by a concurrent sweep is reported as absent.
        """
        path = self.resolve(name)
        if path is None:
            return None
        loop = asyncio.get_running_loop()
        try:
            st = await loop.run_in_executor(None, os.stat, path)
        except FileNotFoundError:
            logger.debug("File not found: %s", name)
            return None
        if not stat.S_ISREG(st.st_mode):
            return None
        return path, st
