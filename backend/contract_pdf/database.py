"""
Database configuration and the PDF generation job table.

Supports:
- SQLite (dev) with check_same_thread=False
- PostgreSQL (prod) with connection pooling
"""
import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Index, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .core.config import settings
from .models import PdfJobStatus

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo, so everything is stored naive)."""
    return datetime.now(UTC).replace(tzinfo=None)


# ═══════════════════════════════════════════════════════════════════════════════
# Engine Configuration
# ═══════════════════════════════════════════════════════════════════════════════
def create_db_engine(database_url: str | None = None):
    """Create database engine with appropriate settings."""
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            # In-memory: one shared connection so every session sees the same tables
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        # SQLite needs check_same_thread=False for FastAPI
        return create_engine(url, connect_args={"check_same_thread": False})
    # PostgreSQL with connection pooling
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def create_session_factory(bind) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = create_db_engine()
SessionLocal = create_session_factory(engine)
Base = declarative_base()


class PdfGenerationJob(Base):
    """Async PDF render queue - one row per requested document."""
    __tablename__ = "pdf_generation_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False, index=True)

    html_content = Column(Text, nullable=False)
    filename = Column(String(255), nullable=False)

    status = Column(String(20), nullable=False, default=PdfJobStatus.PENDING.value)

    # Result / failure (exactly one set once terminal)
    storage_path = Column(String(700), nullable=True)
    error_message = Column(String(2000), nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    claimed_at = Column(DateTime, nullable=True)  # processing lease start

    __table_args__ = (
        Index("ix_pdf_generation_jobs_status_created", "status", "created_at", "id"),
    )


def init_db(bind=None):
    """
    Create tables.

    Production deployments use the Alembic revision under backend/alembic;
    this is for dev/test only.
    """
    if settings.env == "prod" and bind is None:
        logger.warning("init_db() called in prod; run 'alembic upgrade head' instead")
    Base.metadata.create_all(bind=bind or engine)
