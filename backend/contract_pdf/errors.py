"""
PDF job error taxonomy.

    PdfJobError
    ├── ValidationError         malformed submission, job never created
    ├── AuthError               caller not authenticated / not allowed
    ├── JobNotFoundError        unknown job id (also a KeyError)
    ├── InvalidTransitionError  illegal status transition (also a ValueError)
    ├── RenderError             conversion provider rejected the document
    │   └── RenderTimeoutError  conversion provider did not answer in time
    ├── StorageError            artifact upload / download / delete failure
    └── WorkerFatalError        unexpected failure inside one job's processing
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class PdfErrorCode(str, Enum):
    """Prefix written into ``error_message`` of failed jobs."""
    RENDER_FAILED = "RENDER_FAILED"
    RENDER_TIMEOUT = "RENDER_TIMEOUT"
    STORAGE_FAILED = "STORAGE_FAILED"
    LEASE_EXPIRED = "LEASE_EXPIRED"
    WORKER_FATAL = "WORKER_FATAL"


class PdfJobError(Exception):
    """Base class for all PDF pipeline errors."""


class ValidationError(PdfJobError):
    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class AuthError(PdfJobError):
    def __init__(self, message: str = "Not authenticated", *, forbidden: bool = False) -> None:
        self.message = message
        self.forbidden = forbidden
        super().__init__(message)


class JobNotFoundError(PdfJobError, KeyError):
    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")

    def __str__(self) -> str:
        return f"Job {self.job_id} not found"


class InvalidTransitionError(PdfJobError, ValueError):
    pass


class RenderError(PdfJobError):
    """Typed render failure: HTTP status of the provider (if any) + its message."""

    error_code = PdfErrorCode.RENDER_FAILED

    def __init__(self, status_code: Optional[int], provider_message: str) -> None:
        self.status_code = status_code
        self.provider_message = provider_message
        super().__init__(provider_message)

    def __str__(self) -> str:
        if self.status_code is None:
            return f"Render provider error: {self.provider_message}"
        return f"Render provider error ({self.status_code}): {self.provider_message}"


class RenderTimeoutError(RenderError):
    error_code = PdfErrorCode.RENDER_TIMEOUT

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(None, f"render request timed out after {timeout_seconds:g}s")

    def __str__(self) -> str:
        return f"Render timeout: {self.provider_message}"


class StorageError(PdfJobError):
    def __init__(self, operation: str, path: str, message: str) -> None:
        self.operation = operation
        self.path = path
        self.message = message
        super().__init__(f"Storage {operation} failed for {path}: {message}")


class WorkerFatalError(PdfJobError):
    pass
