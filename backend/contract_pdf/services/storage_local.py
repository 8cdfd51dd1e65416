"""
Local Filesystem Storage Backend.

For development and simple deployments. Objects live under
``{storage_dir}/{bucket}/{key}``.
"""
import logging
import os
import tempfile
from pathlib import Path

from ..core.config import settings
from .storage_backend import StorageBackend

logger = logging.getLogger(__name__)


class LocalStorage(StorageBackend):
    """Local filesystem storage."""

    def __init__(self, base_dir: str | None = None, bucket: str | None = None):
        root = Path(base_dir or settings.storage_dir)
        self.base_dir = (root / (bucket or settings.pdf_bucket)).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"LocalStorage initialized: {self.base_dir}")

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        """Atomically store bytes: mkstemp → replace."""
        path = Path(self.resolve_local_path(key))
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        logger.debug(f"Stored {len(data)} bytes to {path}")

    def get_bytes(self, key: str) -> bytes:
        """Read bytes from local filesystem."""
        path = self.resolve_local_path(key)
        with open(path, "rb") as f:
            return f.read()

    def exists(self, key: str) -> bool:
        """Check if file exists."""
        try:
            return os.path.isfile(self.resolve_local_path(key))
        except ValueError:
            return False

    def delete(self, key: str) -> bool:
        """Delete file. Missing file is not an error."""
        path = self.resolve_local_path(key)
        if os.path.exists(path):
            os.remove(path)
            return True
        return False

    def resolve_local_path(self, key: str) -> str:
        """
        Resolve and validate local path.

        Security: Prevents path traversal attacks by ensuring
        the resolved path is within base_dir.

        Raises:
            ValueError: If path is outside base_dir (path traversal attempt)
        """
        resolved = (self.base_dir / key).resolve()

        try:
            resolved.relative_to(self.base_dir)
        except ValueError:
            raise ValueError(f"Invalid storage key: path traversal detected ({key})")

        return str(resolved)
