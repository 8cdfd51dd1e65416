"""
PDF Render Worker — one invocation processes at most one job.

Per invocation (process_next_job):
    1. claim the oldest pending job (conditional update, single winner)
    2. wrap html_content in the versioned document shell
    3. render via the Render Adapter (bounded wait, no retry)
    4. upload to {user_id}/{job_id}_{filename}
    5. processing → completed (storage_path) | failed (error_message)

Nothing raised while handling a single job escapes the invocation: an
unexpected exception becomes a failed job, and a Job Store failure
becomes ProcessResult.error. The loop that calls us keeps running.

Stale-lease sweep (reclaim_stale_jobs):
    processing jobs whose claimed_at is older than the lease are moved to
    failed (LEASE_EXPIRED). They are not re-queued; resubmission is manual.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..errors import (
    InvalidTransitionError,
    JobNotFoundError,
    PdfErrorCode,
    RenderError,
    StorageError,
    WorkerFatalError,
)
from ..models import PdfJobStatus
from ..pdf_metrics import get_pdf_metrics
from .document_shell import build_document_html
from .pdf_artifact_store import PdfArtifactStore
from .pdf_job_store import PdfJob, PdfJobStore
from .pdf_renderer import PdfRenderer

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    processed_job_id: Optional[str] = None
    status: Optional[PdfJobStatus] = None
    error: Optional[str] = None  # Job Store unreachable / claim failed


# ---------------------------------------------------------------------------
# Main entrypoint, used by the worker loop and the HTTP trigger
# ---------------------------------------------------------------------------

def process_next_job(
    *,
    store: PdfJobStore,
    renderer: PdfRenderer,
    artifact_store: PdfArtifactStore,
) -> ProcessResult:
    """Claim and process the oldest pending job, if any."""
    try:
        job = store.claim_next_job()
    except Exception as e:
        logger.exception("[PDF-WORKER] Could not claim next job")
        return ProcessResult(error=f"Job store unavailable: {e}")

    if job is None:
        logger.debug("[PDF-WORKER] No pending jobs")
        return ProcessResult()

    status = process_job(job, store=store, renderer=renderer, artifact_store=artifact_store)
    return ProcessResult(processed_job_id=job.id, status=status)


def process_job(
    job: PdfJob,
    *,
    store: PdfJobStore,
    renderer: PdfRenderer,
    artifact_store: PdfArtifactStore,
) -> Optional[PdfJobStatus]:
    """
    Drive one already-claimed job to a terminal state.

    Returns:
        final status, or None if the job could not be updated at all
        (deleted meanwhile, or the Job Store failed)
    """
    logger.info(f"[PDF-WORKER] Processing job {job.id} (user={job.user_id}, filename={job.filename})")
    start_time = time.monotonic()

    try:
        html = build_document_html(job.html_content, title=job.filename)

        # ── Render ──
        render_start = time.monotonic()
        try:
            pdf_bytes = renderer.render(html)
        except RenderError as e:
            return _fail(store, job, e.error_code, str(e))
        finally:
            _observe_render(time.monotonic() - render_start)

        # ── Upload ──
        try:
            storage_path = artifact_store.store_pdf(job.user_id, job.id, job.filename, pdf_bytes)
        except StorageError as e:
            # Rendered bytes are not kept when the upload fails
            return _fail(store, job, PdfErrorCode.STORAGE_FAILED, str(e))

        # ── processing → completed ──
        try:
            store.mark_completed(job.id, storage_path)
        except (JobNotFoundError, InvalidTransitionError) as e:
            # deleted by its owner or failed by the lease sweep meanwhile
            logger.warning(f"[PDF-WORKER] Job {job.id} no longer completable ({e}), removing artifact")
            _discard_artifact(artifact_store, storage_path)
            return None

    except Exception as e:
        fatal = WorkerFatalError(f"{type(e).__name__}: {e}")
        logger.exception(f"[PDF-WORKER] Unexpected error while processing job {job.id}")
        return _fail(store, job, PdfErrorCode.WORKER_FATAL, str(fatal))

    duration = time.monotonic() - start_time
    try:
        metrics = get_pdf_metrics()
        metrics.inc_job(PdfJobStatus.COMPLETED.value)
        metrics.observe_job_duration(duration)
    except Exception:
        pass  # fail-open: metrics never block pipeline
    logger.info(f"[PDF-WORKER] Job {job.id} completed, storage_path={storage_path}, duration={duration:.2f}s")
    return PdfJobStatus.COMPLETED


def _fail(
    store: PdfJobStore,
    job: PdfJob,
    error_code: PdfErrorCode,
    message: str,
) -> Optional[PdfJobStatus]:
    """processing → failed. Never raises."""
    logger.warning(f"[PDF-WORKER] Job {job.id} failed: {error_code.value} - {message}")

    try:
        metrics = get_pdf_metrics()
        metrics.inc_job(PdfJobStatus.FAILED.value)
        metrics.inc_failure(error_code.value)
    except Exception:
        pass  # fail-open

    try:
        store.mark_failed(job.id, f"{error_code.value}: {message}")
    except (JobNotFoundError, InvalidTransitionError) as e:
        logger.warning(f"[PDF-WORKER] Could not mark job {job.id} failed: {e}")
        return None
    except Exception:
        logger.exception(f"[PDF-WORKER] Job store error while marking job {job.id} failed")
        return None
    return PdfJobStatus.FAILED


def _observe_render(duration: float) -> None:
    try:
        get_pdf_metrics().observe_render_duration(duration)
    except Exception:
        pass


def _discard_artifact(artifact_store: PdfArtifactStore, storage_path: str) -> None:
    try:
        artifact_store.delete(storage_path)
    except StorageError as e:
        logger.warning(f"[PDF-WORKER] Orphan artifact left at {storage_path}: {e}")


# ---------------------------------------------------------------------------
# Stale-lease sweep
# ---------------------------------------------------------------------------

def reclaim_stale_jobs(store: PdfJobStore, lease_seconds: int) -> list[str]:
    """
    Fail processing jobs whose worker apparently died.

    Returns:
        ids of jobs moved to failed
    """
    reclaimed: list[str] = []
    for job in store.find_stale_jobs(lease_seconds):
        message = f"{PdfErrorCode.LEASE_EXPIRED.value}: Processing lease expired after {lease_seconds} seconds"
        try:
            store.mark_failed(job.id, message)
        except (JobNotFoundError, InvalidTransitionError):
            # finished or deleted between select and update
            continue
        reclaimed.append(job.id)
        logger.warning(f"[PDF-WORKER] Reclaimed stale job {job.id} (claimed_at={job.claimed_at})")
        try:
            metrics = get_pdf_metrics()
            metrics.inc_job(PdfJobStatus.FAILED.value)
            metrics.inc_failure(PdfErrorCode.LEASE_EXPIRED.value)
        except Exception:
            pass
    return reclaimed
