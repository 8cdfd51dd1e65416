"""
Storage Backend - Abstract interface.

Keys are bucket-relative paths ("{user_id}/{job_id}_{filename}").

Implementations:
- LocalStorage: Filesystem (dev)
- S3Storage: S3/MinIO (prod)
"""
from abc import ABC, abstractmethod


class StorageBackend(ABC):
    """Abstract storage interface."""

    @abstractmethod
    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        """
        Store bytes under *key*, overwriting any existing object.

        Args:
            key: Bucket-relative path (e.g., "user-1/3f2a..._vertrag.pdf")
            data: File bytes
            content_type: MIME type
        """
        ...

    @abstractmethod
    def get_bytes(self, key: str) -> bytes:
        """Retrieve bytes by key. Raises if missing."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if key exists."""
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete by key. Returns True if something was deleted, False if missing."""
        ...
