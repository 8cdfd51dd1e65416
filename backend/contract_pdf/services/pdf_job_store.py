"""
PDF Job Store — Job model, state machine, and SQL-backed store.

State machine:
    pending → processing → completed | failed
    completed, failed are terminal (no retry, no transition out)

Row invariants:
    terminal  → exactly one of storage_path / error_message is set
    otherwise → neither is set
    created_at <= updated_at
    user_id, html_content, filename, created_at never change

Every status write is a single-row conditional UPDATE guarded by the
expected current status, so a concurrent writer turns into an
InvalidTransitionError instead of a lost update.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, sessionmaker

from ..database import PdfGenerationJob, utcnow
from ..errors import InvalidTransitionError, JobNotFoundError
from ..models import TERMINAL_STATUSES, PdfJobStatus
from .job_claim import claim_job, claim_next_job, select_oldest_pending

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_ERROR_MESSAGE_LENGTH: int = 2000

VALID_TRANSITIONS: dict[PdfJobStatus, frozenset[PdfJobStatus]] = {
    PdfJobStatus.PENDING: frozenset({PdfJobStatus.PROCESSING}),
    PdfJobStatus.PROCESSING: frozenset({PdfJobStatus.COMPLETED, PdfJobStatus.FAILED}),
    PdfJobStatus.COMPLETED: frozenset(),  # terminal
    PdfJobStatus.FAILED: frozenset(),  # terminal
}


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass
class PdfJob:
    id: str
    user_id: str
    html_content: str
    filename: str
    status: PdfJobStatus
    created_at: datetime
    updated_at: datetime
    storage_path: Optional[str] = None
    error_message: Optional[str] = None
    claimed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# ---------------------------------------------------------------------------
# Pure functions (no database dependency)
# ---------------------------------------------------------------------------

def is_valid_transition(current: PdfJobStatus, target: PdfJobStatus) -> bool:
    """Check whether *current → target* is a legal state transition."""
    return target in VALID_TRANSITIONS.get(current, frozenset())


def truncate_error(message: str, limit: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    if len(message) <= limit:
        return message
    return message[: limit - 3] + "..."


def check_result_fields(
    status: PdfJobStatus,
    storage_path: Optional[str],
    error_message: Optional[str],
) -> None:
    """Enforce the exactly-one-of invariant for the fields written with *status*."""
    if status == PdfJobStatus.COMPLETED:
        if not storage_path or error_message is not None:
            raise InvalidTransitionError("completed requires storage_path and no error_message")
    elif status == PdfJobStatus.FAILED:
        if not error_message or storage_path is not None:
            raise InvalidTransitionError("failed requires error_message and no storage_path")
    elif storage_path is not None or error_message is not None:
        raise InvalidTransitionError(
            f"{status.value} must not carry storage_path or error_message"
        )


def _to_job(row: PdfGenerationJob) -> PdfJob:
    return PdfJob(
        id=row.id,
        user_id=row.user_id,
        html_content=row.html_content,
        filename=row.filename,
        status=PdfJobStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
        storage_path=row.storage_path,
        error_message=row.error_message,
        claimed_at=row.claimed_at,
    )


# ---------------------------------------------------------------------------
# SQL-backed store
# ---------------------------------------------------------------------------

class PdfJobStore:
    """Job Store: the single source of truth for job existence and state."""

    def __init__(self, session_factory: sessionmaker, *, is_postgres: bool = False) -> None:
        self._session_factory = session_factory
        self._is_postgres = is_postgres

    @property
    def is_postgres(self) -> bool:
        return self._is_postgres

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # -- create / read ----------------------------------------------------

    def create_job(self, user_id: str, html_content: str, filename: str) -> PdfJob:
        now = utcnow()
        row = PdfGenerationJob(
            user_id=user_id,
            html_content=html_content,
            filename=filename,
            status=PdfJobStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        with self._session() as db:
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_job(row)

    def get_job(self, job_id: str) -> Optional[PdfJob]:
        with self._session() as db:
            row = db.get(PdfGenerationJob, job_id)
            return _to_job(row) if row else None

    def require_job(self, job_id: str) -> PdfJob:
        job = self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(self, user_id: Optional[str] = None) -> list[PdfJob]:
        """Jobs newest first; restricted to *user_id* when given."""
        query = select(PdfGenerationJob).order_by(
            PdfGenerationJob.created_at.desc(), PdfGenerationJob.id.desc()
        )
        if user_id is not None:
            query = query.where(PdfGenerationJob.user_id == user_id)
        with self._session() as db:
            return [_to_job(row) for row in db.execute(query).scalars()]

    def find_oldest_pending(self) -> Optional[PdfJob]:
        with self._session() as db:
            job_id = select_oldest_pending(db)
        return self.get_job(job_id) if job_id else None

    def find_stale_jobs(self, lease_seconds: int, now: Optional[datetime] = None) -> list[PdfJob]:
        """Processing jobs whose lease started more than *lease_seconds* ago."""
        cutoff = (now or utcnow()) - timedelta(seconds=lease_seconds)
        query = (
            select(PdfGenerationJob)
            .where(
                PdfGenerationJob.status == PdfJobStatus.PROCESSING.value,
                PdfGenerationJob.claimed_at <= cutoff,
            )
            .order_by(PdfGenerationJob.claimed_at.asc())
        )
        with self._session() as db:
            return [_to_job(row) for row in db.execute(query).scalars()]

    # -- claim ------------------------------------------------------------

    def claim_job(self, job_id: str) -> bool:
        """Conditional pending → processing. False if another worker won."""
        with self._session() as db:
            return claim_job(db, job_id)

    def claim_next_job(self) -> Optional[PdfJob]:
        """Claim the oldest pending job. None if queue empty or claim lost."""
        with self._session() as db:
            job_id = claim_next_job(db, is_postgres=self._is_postgres)
        return self.get_job(job_id) if job_id else None

    # -- transitions ------------------------------------------------------

    def update_status(
        self,
        job_id: str,
        status: PdfJobStatus,
        *,
        storage_path: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> PdfJob:
        """
        Transition job to *status*.

        Raises:
            JobNotFoundError: unknown job
            InvalidTransitionError: illegal transition, invariant violation,
                or the row changed status underneath us
        """
        job = self.require_job(job_id)

        if not is_valid_transition(job.status, status):
            raise InvalidTransitionError(
                f"Invalid transition: {job.status.value} → {status.value}"
            )
        check_result_fields(status, storage_path, error_message)

        if status == PdfJobStatus.PROCESSING:
            if not self.claim_job(job_id):
                raise InvalidTransitionError(f"Job {job_id} was claimed concurrently")
            return self.require_job(job_id)

        now = utcnow()
        updated_at = now if now >= job.created_at else job.created_at
        with self._session() as db:
            result = db.execute(
                update(PdfGenerationJob)
                .where(
                    PdfGenerationJob.id == job_id,
                    PdfGenerationJob.status == job.status.value,
                )
                .values(
                    status=status.value,
                    storage_path=storage_path,
                    error_message=error_message,
                    updated_at=updated_at,
                )
                .execution_options(synchronize_session=False)
            )
            db.commit()
            if result.rowcount != 1:
                raise InvalidTransitionError(
                    f"Job {job_id} changed status concurrently (expected {job.status.value})"
                )
        return self.require_job(job_id)

    def mark_completed(self, job_id: str, storage_path: str) -> PdfJob:
        return self.update_status(job_id, PdfJobStatus.COMPLETED, storage_path=storage_path)

    def mark_failed(self, job_id: str, error_message: str) -> PdfJob:
        return self.update_status(
            job_id,
            PdfJobStatus.FAILED,
            error_message=truncate_error(error_message or "Unknown error"),
        )

    # -- delete -----------------------------------------------------------

    def delete_job(self, job_id: str) -> bool:
        """Hard delete. Returns True if a row was removed."""
        with self._session() as db:
            result = db.execute(
                delete(PdfGenerationJob)
                .where(PdfGenerationJob.id == job_id)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount > 0
