"""
PDF Job API — submit, list, download, delete PDF generation jobs.

Endpoints:
    POST   /pdf/jobs                    → Submit job (201 {job_id})
    GET    /pdf/jobs                    → Own jobs, ?q= filename filter, ?sort_by=&direction=
    GET    /pdf/jobs/{job_id}           → Job status
    GET    /pdf/jobs/{job_id}/download  → PDF attachment (409 until completed)
    DELETE /pdf/jobs/{job_id}           → Delete row + best-effort artifact (204)
    POST   /pdf/worker/run              → One worker invocation (operator)
    POST   /pdf/worker/sweep            → Stale-lease sweep (operator)

Security:
    - Bearer user token required on every /pdf/jobs endpoint
    - Other users' jobs answer 404 (operators with X-Admin-Key see all)
    - Worker endpoints require X-Admin-Key when ADMIN_API_KEY_ENABLED=true
"""
from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import Response

from .auth import Caller, authenticate, is_valid_admin_key
from .context import PdfContext
from .core.config import settings
from .errors import AuthError, JobNotFoundError, StorageError, ValidationError
from .models import (
    CreatePdfJobRequest,
    CreatePdfJobResponse,
    PdfJobListResponse,
    PdfJobResponse,
    PdfJobStatus,
    SortDirection,
    SortKey,
    SweepResponse,
    WorkerRunResponse,
)
from .services.job_listing import filter_jobs, sort_jobs
from .services.pdf_job_service import (
    delete_pdf_job,
    get_owned_job,
    list_jobs_for_caller,
    read_artifact,
    submit_pdf_job,
)
from .services.pdf_job_store import PdfJob
from .services.pdf_render_worker import process_next_job, reclaim_stale_jobs

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dependency injection helpers
# ---------------------------------------------------------------------------

def configure_pdf_api(app: FastAPI, context: PdfContext) -> None:
    """Wire collaborators at app startup."""
    app.state.pdf_context = context


def get_context(request: Request) -> PdfContext:
    context = getattr(request.app.state, "pdf_context", None)
    if context is None:
        raise HTTPException(status_code=503, detail={
            "error": "PDF_SERVICE_UNAVAILABLE",
            "message": "PDF job pipeline not configured",
        })
    return context


def require_caller(
    authorization: Optional[str] = Header(default=None),
    x_admin_key: Optional[str] = Header(default=None, alias="X-Admin-Key"),
) -> Caller:
    try:
        return authenticate(authorization, x_admin_key)
    except AuthError as e:
        logger.info(f"[PDF-API] Auth failed: {e.message}")
        raise HTTPException(
            status_code=401,
            detail={"error": "unauthorized", "message": e.message},
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_operator(
    request: Request,
    x_admin_key: Optional[str] = Header(default=None, alias="X-Admin-Key"),
) -> str:
    """
    Operator key dependency for worker endpoints.

    - ADMIN_API_KEY_ENABLED=false (default) → bypass (dev mode)
    - ADMIN_API_KEY_ENABLED=true → X-Admin-Key must match ADMIN_API_KEY
    """
    client_ip = request.client.host if request.client else "unknown"

    if not settings.admin_api_key_enabled:
        logger.info(f"[PDF-API] Operator auth bypassed (disabled), ip={client_ip}")
        return "admin-bypass"

    if not settings.admin_api_key:
        logger.error("[PDF-API] ADMIN_API_KEY not configured but ADMIN_API_KEY_ENABLED=true")
        raise HTTPException(status_code=500, detail={
            "error": "admin_not_configured",
            "message": "Set ADMIN_API_KEY",
        })

    if not x_admin_key:
        logger.warning(f"[PDF-API] Operator auth failed: missing key, ip={client_ip}")
        raise HTTPException(status_code=401, detail={
            "error": "admin_unauthorized",
            "message": "X-Admin-Key header required",
        })

    if not is_valid_admin_key(x_admin_key):
        logger.warning(f"[PDF-API] Operator auth failed: invalid key, ip={client_ip}")
        raise HTTPException(status_code=403, detail={
            "error": "admin_forbidden",
            "message": "Invalid admin key",
        })

    return x_admin_key


def _to_response(job: PdfJob) -> PdfJobResponse:
    return PdfJobResponse(
        id=job.id,
        user_id=job.user_id,
        filename=job.filename,
        status=job.status,
        storage_path=job.storage_path,
        error_message=job.error_message,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def _not_found(job_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail={
        "error": "JOB_NOT_FOUND",
        "message": f"Job {job_id} not found",
    })


def _load_job(context: PdfContext, caller: Caller, job_id: str) -> PdfJob:
    try:
        return get_owned_job(context.store, caller, job_id)
    except JobNotFoundError:
        raise _not_found(job_id)


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/pdf", tags=["pdf"])


@router.post("/jobs", status_code=201, response_model=CreatePdfJobResponse)
def create_pdf_job(
    body: CreatePdfJobRequest,
    caller: Caller = Depends(require_caller),
    context: PdfContext = Depends(get_context),
):
    """
    Submit a PDF generation job.

    Returns immediately; rendering happens in the worker.
    """
    try:
        job_id = submit_pdf_job(context.store, caller, body.html_content, body.filename)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail={
            "error": "VALIDATION_ERROR",
            "field": e.field,
            "message": e.message,
        })
    return CreatePdfJobResponse(job_id=job_id)


@router.get("/jobs", response_model=PdfJobListResponse)
def list_pdf_jobs(
    q: str = Query(default="", max_length=200),
    sort_by: SortKey = Query(default=SortKey.CREATED_AT),
    direction: SortDirection = Query(default=SortDirection.DESC),
    caller: Caller = Depends(require_caller),
    context: PdfContext = Depends(get_context),
):
    """Caller's jobs; filename search + two-key sort."""
    jobs = list_jobs_for_caller(context.store, caller)
    jobs = sort_jobs(filter_jobs(jobs, q), sort_by, direction)
    return PdfJobListResponse(jobs=[_to_response(j) for j in jobs], total=len(jobs))


@router.get("/jobs/{job_id}", response_model=PdfJobResponse)
def get_pdf_job(
    job_id: str,
    caller: Caller = Depends(require_caller),
    context: PdfContext = Depends(get_context),
):
    return _to_response(_load_job(context, caller, job_id))


@router.get("/jobs/{job_id}/download")
def download_pdf(
    job_id: str,
    caller: Caller = Depends(require_caller),
    context: PdfContext = Depends(get_context),
):
    """
    Download rendered PDF.

    - 409 if job is not completed (returns current status).
    - 502 if the artifact read fails; job state is unchanged.
    """
    job = _load_job(context, caller, job_id)

    if job.status != PdfJobStatus.COMPLETED:
        raise HTTPException(status_code=409, detail={
            "error": "JOB_NOT_READY",
            "message": f"Job status is {job.status.value}, not completed",
            "status": job.status.value,
        })

    try:
        pdf_bytes = read_artifact(context.artifact_store, job)
    except StorageError as e:
        logger.error(f"[PDF-API] Artifact read failed for {job_id}: {e}")
        raise HTTPException(status_code=502, detail={
            "error": "ARTIFACT_READ_FAILED",
            "message": "Failed to read PDF artifact, try again later",
        })

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(job.filename)}",
        },
    )


@router.delete("/jobs/{job_id}", status_code=204)
def delete_pdf(
    job_id: str,
    caller: Caller = Depends(require_caller),
    context: PdfContext = Depends(get_context),
):
    job = _load_job(context, caller, job_id)
    if not delete_pdf_job(context.store, context.artifact_store, job):
        raise _not_found(job_id)
    return Response(status_code=204)


@router.post("/worker/run", response_model=WorkerRunResponse)
def run_worker_once(
    _: str = Depends(require_operator),
    context: PdfContext = Depends(get_context),
):
    """One worker invocation; for an external scheduler (cron, pg_cron, ...)."""
    result = process_next_job(
        store=context.store,
        renderer=context.renderer,
        artifact_store=context.artifact_store,
    )
    if result.error:
        raise HTTPException(status_code=500, detail={
            "error": "JOB_STORE_UNAVAILABLE",
            "message": result.error,
        })
    return WorkerRunResponse(processed_job_id=result.processed_job_id, status=result.status)


@router.post("/worker/sweep", response_model=SweepResponse)
def sweep_stale_jobs(
    _: str = Depends(require_operator),
    context: PdfContext = Depends(get_context),
):
    return SweepResponse(reclaimed=reclaim_stale_jobs(context.store, context.lease_seconds))
