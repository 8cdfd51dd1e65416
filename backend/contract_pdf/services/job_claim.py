"""
Job Claim Service - Atomic job claiming for concurrent workers.

A claim is a single conditional UPDATE (``WHERE id = :id AND status =
'pending'``) whose affected-row count decides the winner, so two workers that
selected the same row can never both move it to ``processing``.

PostgreSQL: select + claim in one statement with FOR UPDATE SKIP LOCKED.
SQLite: select oldest, then conditional update (losers get rowcount 0).
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import case, select, text, update
from sqlalchemy.orm import Session

from ..database import PdfGenerationJob, utcnow
from ..models import PdfJobStatus

logger = logging.getLogger(__name__)


def claim_job(db: Session, job_id: str, now: Optional[datetime] = None) -> bool:
    """
    Move one job pending → processing if nobody else did first.

    Returns:
        True if this call won the claim
    """
    now = now or utcnow()
    result = db.execute(
        update(PdfGenerationJob)
        .where(
            PdfGenerationJob.id == job_id,
            PdfGenerationJob.status == PdfJobStatus.PENDING.value,
        )
        .values(
            status=PdfJobStatus.PROCESSING.value,
            claimed_at=now,
            # never earlier than created_at
            updated_at=case(
                (PdfGenerationJob.created_at > now, PdfGenerationJob.created_at),
                else_=now,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def select_oldest_pending(db: Session) -> Optional[str]:
    """Oldest pending job id; ties broken by id for determinism."""
    row = db.execute(
        select(PdfGenerationJob.id)
        .where(PdfGenerationJob.status == PdfJobStatus.PENDING.value)
        .order_by(PdfGenerationJob.created_at.asc(), PdfGenerationJob.id.asc())
        .limit(1)
    ).first()
    return row[0] if row else None


def claim_next_job_postgres(db: Session) -> Optional[str]:
    """
    Claim next job using FOR UPDATE SKIP LOCKED.

    Multiple workers can run simultaneously; each job goes to exactly one
    worker and a locked row is skipped instead of waited on.

    Returns:
        job_id or None if no jobs available
    """
    now = utcnow()
    result = db.execute(text("""
        WITH next_job AS (
            SELECT id
            FROM pdf_generation_jobs
            WHERE status = :pending
            ORDER BY created_at ASC, id ASC
            FOR UPDATE SKIP LOCKED
            LIMIT 1
        )
        UPDATE pdf_generation_jobs
        SET status = :processing,
            claimed_at = :now,
            updated_at = GREATEST(created_at, :now)
        WHERE id IN (SELECT id FROM next_job)
          AND status = :pending
        RETURNING id;
    """), {
        "pending": PdfJobStatus.PENDING.value,
        "processing": PdfJobStatus.PROCESSING.value,
        "now": now,
    }).fetchone()

    db.commit()

    if result:
        logger.debug(f"Claimed job: {result[0]}")
        return result[0]
    return None


def claim_next_job_sqlite(db: Session) -> Optional[str]:
    """
    Claim next job for SQLite (and any backend without SKIP LOCKED).

    Select and claim are two statements; the conditional update still
    guarantees a single winner. The loser treats the invocation as a no-op.

    Returns:
        job_id or None if no jobs available (or the claim was lost)
    """
    job_id = select_oldest_pending(db)
    if job_id is None:
        return None

    if not claim_job(db, job_id):
        logger.info(f"Lost claim race for job {job_id}, skipping this invocation")
        return None

    logger.debug(f"Claimed job (SQLite): {job_id}")
    return job_id


def claim_next_job(db: Session, *, is_postgres: bool = False) -> Optional[str]:
    """
    Claim next job - auto-selects method based on database.

    Returns:
        job_id or None
    """
    if is_postgres:
        return claim_next_job_postgres(db)
    return claim_next_job_sqlite(db)
