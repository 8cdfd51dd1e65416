"""
PDF Artifact Store — StorageBackend wrapper for rendered PDFs.

Path format: {user_id}/{job_id}_{filename}
Delegates to LocalStorage (dev) or S3Storage (prod) via StorageBackend and
turns every backend failure into StorageError.
"""
from __future__ import annotations

import logging

from ..errors import StorageError
from .storage_backend import StorageBackend

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class PdfArtifactStore:
    """Artifact Store: put / get / delete by storage path."""

    def __init__(self, storage: StorageBackend) -> None:
        self._storage = storage

    # -- path generation --------------------------------------------------

    @staticmethod
    def generate_path(user_id: str, job_id: str, filename: str) -> str:
        """
        Deterministic artifact path: {user_id}/{job_id}_{filename}

        Raises:
            StorageError: user_id is not a single path segment
        """
        path = f"{user_id}/{job_id}_{filename}"
        if not user_id or user_id in (".", "..") or "/" in user_id or "\\" in user_id:
            raise StorageError("put", path, "user id is not a valid namespace")
        return path

    # -- CRUD -------------------------------------------------------------

    def put(self, path: str, data: bytes) -> None:
        """Store bytes at *path*; an existing object is overwritten."""
        try:
            self._storage.put_bytes(path, data, PDF_CONTENT_TYPE)
        except Exception as e:
            raise StorageError("put", path, str(e) or type(e).__name__) from e
        logger.info(f"Stored PDF artifact: path={path}, size={len(data)}")

    def get(self, path: str) -> bytes:
        try:
            return self._storage.get_bytes(path)
        except Exception as e:
            raise StorageError("get", path, str(e) or type(e).__name__) from e

    def delete(self, path: str) -> None:
        """Delete artifact. A missing artifact is not an error."""
        try:
            deleted = self._storage.delete(path)
        except Exception as e:
            raise StorageError("delete", path, str(e) or type(e).__name__) from e
        if deleted:
            logger.info(f"Deleted PDF artifact: {path}")
        else:
            logger.debug(f"PDF artifact already absent: {path}")

    def exists(self, path: str) -> bool:
        return self._storage.exists(path)

    def store_pdf(self, user_id: str, job_id: str, filename: str, pdf_bytes: bytes) -> str:
        """Upload a rendered job's PDF. Returns the storage path."""
        path = self.generate_path(user_id, job_id, filename)
        self.put(path, pdf_bytes)
        return path
