"""
Status Poller — client side of the PDF job pipeline.

Completion is eventual: the client re-reads its job list every `interval`
seconds and renders each job's state. It tolerates any state at any time;
a failed fetch keeps the last known list.

Status rendering:
    pending / processing → in progress
    completed            → downloadable
    failed               → error message (first 200 chars)
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Union

import httpx

from .core.config import settings
from .models import PdfJobStatus, SortDirection, SortKey
from .services.job_listing import filter_jobs, sort_jobs

logger = logging.getLogger(__name__)

ERROR_PREVIEW_LENGTH = 200


# ---------------------------------------------------------------------------
# Client-side job view
# ---------------------------------------------------------------------------

@dataclass
class JobView:
    id: str
    filename: str
    status: PdfJobStatus
    created_at: datetime
    updated_at: datetime
    storage_path: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "JobView":
        return cls(
            id=data["id"],
            filename=data["filename"],
            status=PdfJobStatus(data["status"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            storage_path=data.get("storage_path"),
            error_message=data.get("error_message"),
        )

    @property
    def is_in_progress(self) -> bool:
        return self.status in (PdfJobStatus.PENDING, PdfJobStatus.PROCESSING)

    @property
    def is_downloadable(self) -> bool:
        return self.status == PdfJobStatus.COMPLETED and bool(self.storage_path)

    @property
    def short_error(self) -> Optional[str]:
        if self.status != PdfJobStatus.FAILED:
            return None
        return (self.error_message or "Unknown error")[:ERROR_PREVIEW_LENGTH]

    def display_status(self) -> str:
        if self.is_in_progress:
            return "in progress"
        if self.status == PdfJobStatus.COMPLETED:
            return "downloadable"
        return f"failed: {self.short_error}"


@dataclass
class DownloadResult:
    ok: bool
    content: Optional[bytes] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class PdfJobsClient:
    """Thin httpx wrapper around the /pdf endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self._headers = {"Authorization": f"Bearer {token}"}

    def list_jobs(self) -> List[JobView]:
        response = self._client.get("/pdf/jobs", headers=self._headers)
        response.raise_for_status()
        return [JobView.from_dict(item) for item in response.json()["jobs"]]

    def download(self, job_id: str) -> bytes:
        response = self._client.get(f"/pdf/jobs/{job_id}/download", headers=self._headers)
        response.raise_for_status()
        return response.content

    def delete(self, job_id: str) -> None:
        response = self._client.delete(f"/pdf/jobs/{job_id}", headers=self._headers)
        # already gone counts as deleted
        if response.status_code != 404:
            response.raise_for_status()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


# ---------------------------------------------------------------------------
# Poller
# ---------------------------------------------------------------------------

class StatusPoller:
    """
    Periodically refreshes the caller's job list.

    on_update(jobs) is called after every successful fetch,
    on_error(exc) after every failed one.
    """

    def __init__(
        self,
        client: PdfJobsClient,
        *,
        interval: Optional[float] = None,
        on_update: Optional[Callable[[List[JobView]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.client = client
        self.interval = interval if interval is not None else settings.poller_interval_seconds
        self.on_update = on_update
        self.on_error = on_error
        self.jobs: List[JobView] = []

    def poll_once(self) -> List[JobView]:
        try:
            jobs = self.client.list_jobs()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.warning(f"[PDF-POLLER] Fetch failed, keeping {len(self.jobs)} known jobs: {e}")
            if self.on_error:
                self.on_error(e)
            return self.jobs

        self.jobs = sort_jobs(jobs, SortKey.CREATED_AT, SortDirection.DESC)
        if self.on_update:
            self.on_update(self.jobs)
        return self.jobs

    def view(
        self,
        query: Optional[str] = None,
        sort_by: Union[SortKey, str] = SortKey.CREATED_AT,
        direction: Union[SortDirection, str] = SortDirection.DESC,
    ) -> List[JobView]:
        return sort_jobs(filter_jobs(self.jobs, query), sort_by, direction)

    def download(self, job: JobView) -> DownloadResult:
        """Never raises; failures come back as a user-visible message."""
        if not job.is_downloadable:
            return DownloadResult(ok=False, error="PDF is not ready yet")
        try:
            content = self.client.download(job.id)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 409:
                return DownloadResult(ok=False, error="PDF is not ready yet")
            logger.warning(f"[PDF-POLLER] Download of {job.id} failed: {e}")
            return DownloadResult(ok=False, error="Download failed, please try again")
        except httpx.HTTPError as e:
            logger.warning(f"[PDF-POLLER] Download of {job.id} failed: {e}")
            return DownloadResult(ok=False, error="Download failed, please try again")
        return DownloadResult(ok=True, content=content)

    def delete(self, job: JobView) -> bool:
        try:
            self.client.delete(job.id)
        except httpx.HTTPError as e:
            logger.warning(f"[PDF-POLLER] Delete of {job.id} failed: {e}")
            return False
        self.jobs = [j for j in self.jobs if j.id != job.id]
        return True

    def run(self, stop_event: threading.Event) -> None:
        """Poll until stop_event is set."""
        logger.info(f"[PDF-POLLER] Started, interval={self.interval}s")
        while not stop_event.is_set():
            self.poll_once()
            stop_event.wait(self.interval)
        logger.info("[PDF-POLLER] Stopped")
