"""
Collaborator wiring.

The pipeline components never reach for a global client; everything they
need is handed over explicitly. PdfContext bundles the three collaborators
plus the lease setting so the API and the worker can share one factory.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .core.config import Settings, settings as default_settings
from .database import SessionLocal, create_db_engine, create_session_factory, init_db
from .services.pdf_artifact_store import PdfArtifactStore
from .services.pdf_job_store import PdfJobStore
from .services.pdf_renderer import PdfRenderer, get_renderer
from .services.storage_backend import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class PdfContext:
    store: PdfJobStore
    artifact_store: PdfArtifactStore
    renderer: PdfRenderer
    lease_seconds: int = 600


def build_storage(cfg: Settings) -> StorageBackend:
    """LocalStorage or S3Storage for cfg.storage_backend, bound to cfg.pdf_bucket."""
    if cfg.is_s3_storage:
        from .services.storage_s3 import S3Storage
        logger.info(f"Using S3 storage backend, bucket={cfg.pdf_bucket}")
        return S3Storage(bucket=cfg.pdf_bucket)
    from .services.storage_local import LocalStorage
    logger.info(f"Using local storage backend, dir={cfg.storage_dir}/{cfg.pdf_bucket}")
    return LocalStorage(base_dir=cfg.storage_dir, bucket=cfg.pdf_bucket)


def build_default_context(config: Optional[Settings] = None) -> PdfContext:
    """Build collaborators from settings (env / .env)."""
    cfg = config or default_settings
    if cfg is default_settings:
        session_factory = SessionLocal
    else:
        session_factory = create_session_factory(create_db_engine(cfg.database_url))
    if cfg.is_sqlite:
        init_db(session_factory.kw["bind"])

    return PdfContext(
        store=PdfJobStore(session_factory, is_postgres=cfg.is_postgres),
        artifact_store=PdfArtifactStore(build_storage(cfg)),
        renderer=get_renderer(cfg),
        lease_seconds=cfg.pdf_job_lease_seconds,
    )
