from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class PdfJobStatus(str, Enum):
    """PDF generation job status"""
    PENDING = "pending"          # queued, not yet claimed
    PROCESSING = "processing"    # claimed by a worker
    COMPLETED = "completed"      # artifact uploaded, storage_path set
    FAILED = "failed"            # error_message set


TERMINAL_STATUSES = frozenset({PdfJobStatus.COMPLETED, PdfJobStatus.FAILED})


class SortKey(str, Enum):
    CREATED_AT = "created_at"
    FILENAME = "filename"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ═══════════════════════════════════════════════════════════════════════════════
# API schemas
# ═══════════════════════════════════════════════════════════════════════════════

class CreatePdfJobRequest(BaseModel):
    # Emptiness is checked by the submission service so that the
    # ValidationError taxonomy is the same for API and library callers.
    html_content: Optional[str] = None
    filename: Optional[str] = None


class CreatePdfJobResponse(BaseModel):
    job_id: str


class PdfJobResponse(BaseModel):
    id: str
    user_id: str
    filename: str
    status: PdfJobStatus
    storage_path: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PdfJobListResponse(BaseModel):
    jobs: List[PdfJobResponse]
    total: int


class WorkerRunResponse(BaseModel):
    processed_job_id: Optional[str] = None
    status: Optional[PdfJobStatus] = None


class SweepResponse(BaseModel):
    reclaimed: List[str]
