#!/usr/bin/env python3
"""
PDF Render Worker loop.

Features:
- Drains pending jobs back-to-back, waits WORKER_POLL_INTERVAL when idle
- Stale-lease sweep every WORKER_SWEEP_INTERVAL seconds
- Graceful shutdown on SIGINT / SIGTERM
- Multi-worker support (threads; Postgres claim uses SKIP LOCKED)

Usage:
    python -m contract_pdf.worker
    python -m contract_pdf.worker --workers 4
    python -m contract_pdf.worker --once        # single invocation, for cron
"""
import argparse
import logging
import signal
import sys
import threading
import time
from typing import Optional

from .context import PdfContext, build_default_context
from .core.config import settings
from .services.pdf_render_worker import process_next_job, reclaim_stale_jobs

logger = logging.getLogger(__name__)

# Graceful shutdown
shutdown_event = threading.Event()


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    logger.info("Shutdown signal received...")
    shutdown_event.set()


class SweepSchedule:
    """Shared across worker threads so only one sweep runs per interval."""

    def __init__(self, interval: float, clock=time.monotonic):
        self.interval = interval
        self._clock = clock
        self._lock = threading.Lock()
        self._last: Optional[float] = None

    def due(self) -> bool:
        with self._lock:
            now = self._clock()
            if self._last is None or now - self._last >= self.interval:
                self._last = now
                return True
            return False


def run_sweep(context: PdfContext) -> list[str]:
    try:
        reclaimed = reclaim_stale_jobs(context.store, context.lease_seconds)
    except Exception as e:
        logger.exception(f"[PDF-WORKER] Lease sweep failed: {e}")
        return []
    if reclaimed:
        logger.warning(f"[PDF-WORKER] Lease sweep failed {len(reclaimed)} stale job(s)")
    return reclaimed


def worker_loop(
    context: PdfContext,
    worker_id: int = 0,
    *,
    sweep: Optional[SweepSchedule] = None,
    stop_event: threading.Event = shutdown_event,
    poll_interval: Optional[float] = None,
) -> None:
    """Single worker loop; returns when stop_event is set."""
    interval = settings.worker_poll_interval if poll_interval is None else poll_interval
    db_type = "Postgres" if context.store.is_postgres else "SQLite"
    logger.info(f"[Worker-{worker_id}] Started. DB={db_type}, renderer={type(context.renderer).__name__}")

    while not stop_event.is_set():
        if sweep is not None and sweep.due():
            run_sweep(context)

        result = process_next_job(
            store=context.store,
            renderer=context.renderer,
            artifact_store=context.artifact_store,
        )
        if result.error:
            logger.error(f"[Worker-{worker_id}] {result.error}")
            stop_event.wait(timeout=interval)
        elif result.processed_job_id is None:
            # No jobs, wait
            stop_event.wait(timeout=interval)

    logger.info(f"[Worker-{worker_id}] Stopped")


def run_once(context: PdfContext) -> int:
    """One sweep + one invocation. Exit code 1 if the job store is unreachable."""
    run_sweep(context)
    result = process_next_job(
        store=context.store,
        renderer=context.renderer,
        artifact_store=context.artifact_store,
    )
    if result.error:
        logger.error(f"[PDF-WORKER] {result.error}")
        return 1
    logger.info(f"[PDF-WORKER] processed_job_id={result.processed_job_id} status={result.status}")
    return 0


def run_worker(context: PdfContext, num_workers: int = 1) -> None:
    """Start workers."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    sweep = SweepSchedule(settings.worker_sweep_interval)

    if num_workers == 1:
        worker_loop(context, 0, sweep=sweep)
        return

    # Multi-threaded workers
    threads = []
    for i in range(num_workers):
        t = threading.Thread(target=worker_loop, args=(context, i), kwargs={"sweep": sweep}, daemon=True)
        t.start()
        threads.append(t)
        logger.info(f"Started worker thread {i}")

    # Wait for shutdown
    try:
        while not shutdown_event.is_set():
            time.sleep(1)
    except KeyboardInterrupt:
        pass

    logger.info("Waiting for workers to finish...")
    shutdown_event.set()
    for t in threads:
        t.join(timeout=settings.pdf_render_timeout_seconds + 5)

    logger.info("All workers stopped")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="PDF render worker")
    parser.add_argument("--workers", "-w", type=int, default=1, help="Number of concurrent workers")
    parser.add_argument("--once", action="store_true", help="Process at most one job and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.workers < 1:
        parser.error("--workers must be >= 1")

    context = build_default_context()
    if args.once:
        return run_once(context)

    run_worker(context, args.workers)
    return 0


if __name__ == "__main__":
    sys.exit(main())
