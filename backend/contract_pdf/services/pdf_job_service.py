"""
PDF Job Service — submission, ownership-checked reads, download and delete.

Submission is synchronous and cheap: validate, insert a pending row,
return the id. Nothing here talks to the render provider.

Delete is two independent steps with no shared transaction:
    1. artifact removal (best-effort, failures are logged)
    2. row removal (always)
"""
from __future__ import annotations

import logging
from typing import Optional

from ..auth import Caller
from ..core.config import settings
from ..errors import AuthError, JobNotFoundError, StorageError, ValidationError
from ..models import PdfJobStatus
from ..pdf_metrics import get_pdf_metrics
from .pdf_artifact_store import PdfArtifactStore
from .pdf_job_store import PdfJob, PdfJobStore

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 200


def _require_text(field: str, value: object) -> str:
    if value is None:
        raise ValidationError(field, "is required")
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    if not value.strip():
        raise ValidationError(field, "must not be empty")
    return value


def validate_submission(html_content: object, filename: object) -> tuple[str, str]:
    html = _require_text("html_content", html_content)
    name = _require_text("filename", filename).strip()

    if len(html.encode("utf-8")) > settings.pdf_max_html_bytes:
        raise ValidationError(
            "html_content", f"exceeds {settings.pdf_max_html_bytes} bytes"
        )
    if "/" in name or "\\" in name or name in (".", ".."):
        raise ValidationError("filename", "must not contain path separators")
    if len(name) > MAX_FILENAME_LENGTH:
        raise ValidationError("filename", f"must be at most {MAX_FILENAME_LENGTH} characters")
    return html, name


def submit_pdf_job(
    store: PdfJobStore,
    caller: Optional[Caller],
    html_content: object,
    filename: object,
) -> str:
    """
    Submission Service: create a pending job for *caller*.

    Returns:
        job id

    Raises:
        AuthError: caller missing
        ValidationError: html_content / filename missing or empty
    """
    if caller is None or not caller.user_id:
        raise AuthError("User not authenticated")

    html, name = validate_submission(html_content, filename)
    job = store.create_job(caller.user_id, html, name)

    try:
        get_pdf_metrics().inc_job(PdfJobStatus.PENDING.value)
    except Exception:
        pass  # fail-open: metrics never block the pipeline

    logger.info(f"[PDF-JOBS] Job {job.id} created for user {caller.user_id}, filename={name}")
    return job.id


def get_owned_job(store: PdfJobStore, caller: Caller, job_id: str) -> PdfJob:
    """
    Fetch a job the caller may see.

    Another user's job is reported as not found so existence does not leak.
    """
    job = store.get_job(job_id)
    if job is None or not caller.can_access(job.user_id):
        raise JobNotFoundError(job_id)
    return job


def list_jobs_for_caller(store: PdfJobStore, caller: Caller) -> list[PdfJob]:
    return store.list_jobs(user_id=caller.user_id)


def read_artifact(artifact_store: PdfArtifactStore, job: PdfJob) -> bytes:
    """
    Download bytes of a completed job.

    Raises:
        StorageError: no artifact recorded or the read failed (job state unchanged)
    """
    if job.status != PdfJobStatus.COMPLETED or not job.storage_path:
        raise StorageError("get", job.storage_path or "-", f"job is {job.status.value}, no artifact")
    return artifact_store.get(job.storage_path)


def delete_pdf_job(
    store: PdfJobStore,
    artifact_store: PdfArtifactStore,
    job: PdfJob,
) -> bool:
    """
    Remove artifact (best-effort) then the row (unconditionally).

    Returns:
        True if the row was deleted
    """
    if job.storage_path:
        try:
            artifact_store.delete(job.storage_path)
        except StorageError as e:
            logger.warning(
                "Artifact delete failed: job_id=%s storage_path=%s error=%s",
                job.id, job.storage_path, e,
            )

    deleted = store.delete_job(job.id)
    if deleted:
        logger.info(f"[PDF-JOBS] Job {job.id} deleted")
        try:
            get_pdf_metrics().inc_job("deleted")
        except Exception:
            pass
    return deleted
