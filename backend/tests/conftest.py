"""
Shared test configuration for backend tests.

Hypothesis settings:
- CI profile disables example database to prevent "Flaky" errors from stale examples
- Default profile keeps database for local development

Fixtures:
- engine / session_factory: in-memory SQLite with the job table created
- store: PdfJobStore on that engine
- memory_storage / artifact_store: dict-backed StorageBackend
- renderer: StubRenderer (fixed PDF bytes, or raises renderer.error)
"""

from typing import Optional

import pytest
from hypothesis import settings, HealthCheck

from contract_pdf.database import create_db_engine, create_session_factory, init_db
from contract_pdf.pdf_metrics import get_pdf_metrics
from contract_pdf.services.pdf_artifact_store import PdfArtifactStore
from contract_pdf.services.pdf_job_store import PdfJobStore
from contract_pdf.services.storage_backend import StorageBackend

# CI profile: no example database → no stale example → no Flaky errors
settings.register_profile(
    "ci",
    database=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)

# Default profile: keep database, suppress slow health check
settings.register_profile(
    "default",
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)

settings.load_profile("default")


# ── Test tier markers ─────────────────────────────────────────────────────────
# Usage: pytest -m smoke, pytest -m core, pytest -m concurrency

def pytest_configure(config):
    config.addinivalue_line("markers", "smoke: Tier-0 pure functions + config tests (<10s)")
    config.addinivalue_line("markers", "core: Tier-1 core logic + stores (<15s)")
    config.addinivalue_line("markers", "concurrency: Tier-2 thread races (<30s)")


# ── Metrics singleton isolation ───────────────────────────────────────────────

@pytest.fixture(autouse=True)
def _reset_pdf_metrics():
    """Counters are process-wide; start every test from zero."""
    get_pdf_metrics().reset()
    yield
    get_pdf_metrics().reset()


# ===================================================================
# Test doubles
# ===================================================================

FAKE_PDF = b"%PDF-1.4 fake content"


class InMemoryStorage(StorageBackend):
    """Dict-backed StorageBackend; fail_* flags make the next calls raise."""

    def __init__(self):
        self._data: dict[str, bytes] = {}
        self.fail_put = False
        self.fail_get = False
        self.fail_delete = False

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail_put:
            raise OSError("disk full")
        self._data[key] = data

    def get_bytes(self, key: str) -> bytes:
        if self.fail_get:
            raise ConnectionError("storage unreachable")
        if key not in self._data:
            raise FileNotFoundError(key)
        return self._data[key]

    def exists(self, key: str) -> bool:
        return key in self._data

    def delete(self, key: str) -> bool:
        if self.fail_delete:
            raise ConnectionError("storage unreachable")
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._data)


class StubRenderer:
    """Render Adapter double: returns pdf_bytes, or raises self.error."""

    def __init__(self, pdf_bytes: bytes = FAKE_PDF):
        self.pdf_bytes = pdf_bytes
        self.error: Optional[BaseException] = None
        self.calls: list[str] = []

    def render(self, html: str) -> bytes:
        self.calls.append(html)
        if self.error is not None:
            raise self.error
        return self.pdf_bytes


# ===================================================================
# Fixtures
# ===================================================================

@pytest.fixture
def engine():
    eng = create_db_engine("sqlite://")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return PdfJobStore(session_factory)


@pytest.fixture
def memory_storage():
    return InMemoryStorage()


@pytest.fixture
def artifact_store(memory_storage):
    return PdfArtifactStore(memory_storage)


@pytest.fixture
def renderer():
    return StubRenderer()
