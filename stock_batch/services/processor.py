"""
FileJobProcessor -- turn one claimed job into attachments and a stock charge.

Contract:
    ``handle(job_id)`` processes a claimed (PROCESSING) job and always
    leaves it COMPLETED or FAILED; it never raises.  ``process(job_id)``
    is the raising core.

Architecture: stock_batch/services.  Imports from stock_batch.domain,
    stock_batch.models, stock_batch.staging and kernel services.

Invariants enforced:
    - Measurement happens before any write.  Attachments, the aggregate
      recompute (and through it the stock ledger) and the COMPLETED
      transition commit in ONE transaction, or not at all.
    - The order's recorded material id / width take precedence over the
      values captured in the payload at upload time.
    - Staged files are deleted only after that transaction committed.  On
      failure they are kept for inspection.
    - A failure is recorded in a fresh transaction; if even that fails it
      is logged, not raised.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from uuid import UUID

from stock_kernel.db.engine import Database
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.materials import MaterialCatalog
from stock_kernel.domain.metrics import AttachmentMetrics, calculate_attachment_metrics
from stock_kernel.domain.order_context import (
    extract_material_id_from_order,
    extract_material_width_from_order,
)
from stock_kernel.exceptions import FileJobError, FileJobNotFoundError, OrderNotFoundError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.order import Attachment, Order
from stock_kernel.services.material_resolver import MaterialResolver
from stock_kernel.services.order_aggregates import OrderAggregateService, PricingPolicy
from stock_kernel.services.stock_ledger import StockLedgerService

from stock_batch.domain.types import FileJobPayload, FileJobStatus, JobRunResult, StagedFile
from stock_batch.models.file_job import FileJobModel
from stock_batch.services.queue import (
    DEFAULT_ERROR_MESSAGE_MAX_LENGTH,
    FileJobQueue,
    truncate_error,
)
from stock_batch.staging import UploadStaging

logger = get_logger("batch.processor")


@dataclass(frozen=True)
class _PreparedFile:
    staged: StagedFile
    content: bytes
    metrics: AttachmentMetrics


class FileJobProcessor:
    """Processes claimed file jobs one at a time.

    Contract:
        Owns its transactions: receives the Database and opens one scope
        for reading the job context, one for the writes, and one more for
        recording a failure.

    Non-goals:
        - Does NOT claim jobs -- that is the worker's job.
        - Does NOT retry.
    """

    def __init__(
        self,
        database: Database,
        catalog: MaterialCatalog,
        clock: Clock | None = None,
        pricing: PricingPolicy | None = None,
        error_message_max_length: int = DEFAULT_ERROR_MESSAGE_MAX_LENGTH,
    ):
        self._db = database
        self._catalog = catalog
        self._clock = clock or SystemClock()
        self._pricing = pricing or PricingPolicy()
        self._error_max = error_message_max_length

    def _queue(self, session) -> FileJobQueue:
        return FileJobQueue(
            session, clock=self._clock, error_message_max_length=self._error_max,
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def handle(self, job_id: UUID) -> JobRunResult:
        """Process a claimed job, recording FAILED on any error."""
        start = time.monotonic()
        with LogContext.bind(job_id=str(job_id)):
            try:
                result = self.process(job_id)
            except Exception as exc:
                message = truncate_error(str(exc), self._error_max)
                logger.error(
                    "file_job_failed",
                    exc_info=True,
                    extra={"error_code": getattr(exc, "code", None)},
                )
                self._record_failure(job_id, message)
                return JobRunResult(
                    job_id=job_id,
                    status=FileJobStatus.FAILED,
                    error_code=getattr(exc, "code", type(exc).__name__),
                    error_message=message,
                    duration_ms=int((time.monotonic() - start) * 1000),
                )

        return JobRunResult(
            job_id=result.job_id,
            status=result.status,
            attachment_count=result.attachment_count,
            files_total_length_cm=result.files_total_length_cm,
            files_total_price=result.files_total_price,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    def process(self, job_id: UUID) -> JobRunResult:
        """Measure the job's files and commit attachments + recompute.

        Raises:
            FileJobNotFoundError, InvalidJobPayloadError, OrderNotFoundError,
            UnsupportedFormatError, MeasurementFailureError, OSError (staged
            file unreadable), InsufficientStockError.
        """
        order_id, payload, material_id, fallback_width = self._load_context(job_id)

        with LogContext.bind(order_id=str(order_id), material_id=material_id):
            prepared = [
                self._prepare(staged, material_id, fallback_width)
                for staged in payload.files
            ]

            with self._db.session_scope() as session:
                now = self._clock.now()
                for entry in prepared:
                    session.add(
                        Attachment(
                            order_id=order_id,
                            filename=entry.staged.original_name,
                            mime_type=entry.staged.mime_type,
                            size_bytes=entry.staged.size_bytes,
                            width_cm=entry.metrics.width_cm,
                            height_cm=entry.metrics.height_cm,
                            area_cm2=entry.metrics.area_cm2,
                            length_cm=entry.metrics.length_cm,
                            data=entry.content,
                            created_at=now,
                        )
                    )
                session.flush()

                resolver = MaterialResolver(session, self._catalog)
                ledger = StockLedgerService(session, resolver)
                totals = OrderAggregateService(
                    session, resolver, ledger, self._pricing,
                ).recompute(order_id)
                if totals is None:
                    raise OrderNotFoundError(str(order_id))

                if not self._queue(session).mark_completed(job_id):
                    # Reset or finished elsewhere meanwhile; roll back the writes.
                    raise FileJobError(f"File job {job_id} is no longer PROCESSING")

            UploadStaging.discard(payload.files)

            logger.info(
                "file_job_completed",
                extra={
                    "attachment_count": len(prepared),
                    "files_total_length_cm": totals.length_cm,
                    "files_total_price": totals.price,
                },
            )
            return JobRunResult(
                job_id=job_id,
                status=FileJobStatus.COMPLETED,
                attachment_count=len(prepared),
                files_total_length_cm=totals.length_cm,
                files_total_price=totals.price,
            )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _load_context(
        self, job_id: UUID,
    ) -> tuple[UUID, FileJobPayload, str | None, float | None]:
        with self._db.session_scope() as session:
            job = session.get(FileJobModel, job_id)
            if job is None:
                raise FileJobNotFoundError(str(job_id))
            payload = FileJobPayload.from_dict(job.payload)

            order = session.get(Order, job.order_id)
            if order is None:
                raise OrderNotFoundError(str(job.order_id))

            material_id = extract_material_id_from_order(order) or payload.material_id
            fallback_width = extract_material_width_from_order(order)
            if fallback_width is None:
                fallback_width = payload.fallback_width
            return job.order_id, payload, material_id, fallback_width

    def _prepare(
        self,
        staged: StagedFile,
        material_id: str | None,
        fallback_width: float | None,
    ) -> _PreparedFile:
        content = UploadStaging.read(staged)
        metrics = calculate_attachment_metrics(
            content,
            staged.original_name,
            staged.mime_type,
            material_id,
            fallback_width,
            self._catalog,
        )
        logger.debug(
            "file_measured",
            extra={"original_name": staged.original_name, **metrics.to_dict()},
        )
        return _PreparedFile(staged=staged, content=content, metrics=metrics)

    def _record_failure(self, job_id: UUID, message: str) -> None:
        try:
            with self._db.session_scope() as session:
                self._queue(session).mark_failed(job_id, message)
        except Exception:
            logger.exception("file_job_fail_record_failed")
