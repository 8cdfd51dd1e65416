"""
PDF Job Metrics — Prometheus-compatible observability.

All metrics use the `contract_pdf_` namespace prefix.

Tracks:
- contract_pdf_jobs_total{status}: Job lifecycle events (pending/processing/completed/failed/deleted)
- contract_pdf_job_failures_total{reason}: Failures by PdfErrorCode
- contract_pdf_render_duration_seconds: Render adapter call duration
- contract_pdf_job_duration_seconds: Claim → terminal duration
"""

import logging
from typing import Dict

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

logger = logging.getLogger(__name__)


class PdfMetrics:
    """
    Prometheus metrics for the PDF job pipeline.

    Uses instance-level CollectorRegistry for test isolation.
    snapshot() and reset() are intended for test/debug only.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()
        self._init_metrics()

    def _init_metrics(self) -> None:
        """Register all prometheus metrics on the current registry."""
        self._jobs_total = Counter(
            "contract_pdf_jobs_total",
            "PDF job lifecycle events",
            labelnames=["status"],
            registry=self._registry,
        )
        self._failures_total = Counter(
            "contract_pdf_job_failures_total",
            "PDF job failures by reason",
            labelnames=["reason"],
            registry=self._registry,
        )
        self._render_duration = Histogram(
            "contract_pdf_render_duration_seconds",
            "Render adapter call duration",
            buckets=(0.5, 1, 2.5, 5, 10, 20, 30, 60, 120),
            registry=self._registry,
        )
        self._job_duration = Histogram(
            "contract_pdf_job_duration_seconds",
            "Claim to terminal state duration",
            buckets=(0.5, 1, 2.5, 5, 10, 20, 30, 60, 120, 300),
            registry=self._registry,
        )

    # ── Recording ─────────────────────────────────────────────────────────

    def inc_job(self, status: str) -> None:
        self._jobs_total.labels(status=status).inc()

    def inc_failure(self, reason: str) -> None:
        self._failures_total.labels(reason=reason).inc()

    def observe_render_duration(self, duration_seconds: float) -> None:
        self._render_duration.observe(duration_seconds)

    def observe_job_duration(self, duration_seconds: float) -> None:
        self._job_duration.observe(duration_seconds)

    # ── Snapshot (test/debug only) ────────────────────────────────────────

    def snapshot(self) -> Dict:
        """Current counter values keyed by label value."""
        return {
            "jobs_total": self._counter_values(self._jobs_total, "status"),
            "failures_total": self._counter_values(self._failures_total, "reason"),
        }

    @staticmethod
    def _counter_values(counter: Counter, label: str) -> Dict[str, int]:
        values: Dict[str, int] = {}
        for metric in counter.collect():
            for sample in metric.samples:
                if sample.name.endswith("_total"):
                    values[sample.labels[label]] = int(sample.value)
        return values

    # ── Reset (test only) ─────────────────────────────────────────────────

    def reset(self) -> None:
        """Reset all metrics by creating a fresh CollectorRegistry."""
        self._registry = CollectorRegistry()
        self._init_metrics()

    # ── Prometheus exposition ─────────────────────────────────────────────

    def generate_metrics(self) -> bytes:
        """Generate Prometheus text exposition format output."""
        return generate_latest(self._registry)

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_metrics = PdfMetrics()


def get_pdf_metrics() -> PdfMetrics:
    """Get singleton PdfMetrics instance."""
    return _metrics
