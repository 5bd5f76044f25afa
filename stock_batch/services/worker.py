"""
FileJobWorker -- In-process polling loop for file-processing jobs.

Contract:
    Polls the queue on a configurable interval, claims up to
    ``batch_size`` PENDING jobs per tick and hands each to the
    FileJobProcessor independently.

Architecture: stock_batch/services.  Uses stock_batch.services.queue for
    claiming and stock_batch.services.processor for execution.

Invariants enforced:
    - All timestamps from the injected Clock.
    - The claim is committed before any claimed job is processed, so other
      workers see those jobs as PROCESSING.
    - One job's failure never blocks the rest of the batch.
    - Graceful shutdown: the stop signal is checked between jobs and
      interrupts the idle sleep.  Jobs claimed but not yet handled when
      the stop arrives go back to PENDING in their own transaction.
"""

from __future__ import annotations

import threading
from datetime import timedelta
from uuid import uuid4

from stock_kernel.db.engine import Database
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.logging_config import LogContext, get_logger

from stock_batch.services.processor import FileJobProcessor
from stock_batch.services.queue import FileJobQueue

logger = get_logger("batch.worker")


class FileJobWorker:
    """Polling worker for the file-processing queue.

    Contract:
        - ``tick()`` runs one poll: optional stale reset, claim, process.
        - ``run_forever()`` loops in the calling thread until ``stop()``.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler; several workers may run, and the
          conditional claim keeps them from sharing a job.
        - Does NOT retry FAILED jobs.
    """

    def __init__(
        self,
        database: Database,
        processor: FileJobProcessor,
        clock: Clock | None = None,
        batch_size: int = 1,
        poll_interval_seconds: float = 3.0,
        stale_after_seconds: float | None = None,
        worker_id: str | None = None,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._db = database
        self._processor = processor
        self._clock = clock or SystemClock()
        self._batch_size = batch_size
        self._poll_interval = poll_interval_seconds
        self._stale_after = (
            timedelta(seconds=stale_after_seconds)
            if stale_after_seconds is not None and stale_after_seconds > 0
            else None
        )
        self.worker_id = worker_id or f"file-worker-{uuid4().hex[:8]}"
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> int:
        """Claim and process one batch (public for testing).

        Returns the number of jobs handled.  Loop-level errors (claiming,
        stale reset) propagate to the caller.
        """
        with LogContext.bind(worker_id=self.worker_id):
            with self._db.session_scope() as session:
                queue = FileJobQueue(session, clock=self._clock)
                if self._stale_after is not None:
                    queue.reset_stale(self._stale_after)
                jobs = queue.claim_pending(self._batch_size)

            handled = 0
            for job in jobs:
                if self._stop_event.is_set():
                    self._release([j.job_id for j in jobs[handled:]])
                    break
                self._processor.handle(job.job_id)
                handled += 1
            return handled

    def run_forever(self) -> None:
        """Poll until stopped. Sleeps when idle and after loop-level errors."""
        logger.info(
            "file_worker_loop_started",
            extra={
                "worker_id": self.worker_id,
                "batch_size": self._batch_size,
                "poll_interval_seconds": self._poll_interval,
                "stale_reset_enabled": self._stale_after is not None,
            },
        )
        while not self._stop_event.is_set():
            try:
                handled = self.tick()
            except Exception:
                logger.exception("file_worker_tick_failed")
                handled = 0
            if handled == 0:
                self._stop_event.wait(timeout=self._poll_interval)
        logger.info("file_worker_loop_exited", extra={"worker_id": self.worker_id})

    def start(self) -> None:
        """Start the worker loop in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_forever,
            name=self.worker_id,
            daemon=True,
        )
        self._thread.start()
        logger.info("file_worker_started", extra={"worker_id": self.worker_id})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the loop to finish its current job.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("file_worker_stopped", extra={"worker_id": self.worker_id})

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _release(self, job_ids: list) -> None:
        with self._db.session_scope() as session:
            released = FileJobQueue(session, clock=self._clock).release_claimed(job_ids)
        logger.warning(
            "file_worker_stopped_mid_batch",
            extra={"unhandled": len(job_ids), "released": released},
        )
