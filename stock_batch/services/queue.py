"""
FileJobQueue -- persistence half of the file-processing job state machine.

Contract:
    Enqueue, claim, complete, fail and query file-processing jobs.  Every
    status transition is a conditional UPDATE whose affected-row count
    decides whether it applied.

Architecture: stock_batch/services.  Imports from stock_batch.domain,
    stock_batch.models and kernel services.

Invariants enforced:
    - Claim exclusivity: ``PENDING -> PROCESSING`` is
      ``UPDATE ... WHERE id = :id AND status = 'PENDING'``; a job counts as
      claimed only when that statement changed a row, so two workers can
      never both claim the same job.
    - FIFO: pending jobs are taken by ``created_at``, then ``seq``.
    - All timestamps from the injected Clock.
    - ``last_error`` is truncated to ``error_message_max_length``.
    - FAILED is terminal; nothing here moves a job out of it.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.exceptions import FileJobNotFoundError, OrderNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.order import Order
from stock_kernel.services.sequence_service import SequenceService

from stock_batch.domain.types import FileJob, FileJobPayload, FileJobStatus, StagedFile
from stock_batch.models.file_job import FileJobModel

logger = get_logger("batch.queue")

DEFAULT_ERROR_MESSAGE_MAX_LENGTH = 500
UNKNOWN_ERROR_MESSAGE = "Unknown error"


def truncate_error(message: str | None, max_length: int) -> str:
    if not message:
        return UNKNOWN_ERROR_MESSAGE
    return message[:max_length]


class FileJobQueue:
    """File-processing job queue over the ``file_processing_jobs`` table.

    Contract:
        - ``enqueue()`` creates a PENDING job for an order's upload batch.
        - ``claim_pending()`` moves up to N PENDING jobs to PROCESSING.
        - ``mark_completed()`` / ``mark_failed()`` finish a PROCESSING job.
        - ``get_job()`` / ``list_jobs_for_order()`` for status polling.
        - ``reset_stale()`` returns stuck PROCESSING jobs to PENDING (opt-in).

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
          A claim must be committed before the claimed jobs are processed.
        - Does NOT retry failed jobs; ``retry_count`` is bookkeeping.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
        error_message_max_length: int = DEFAULT_ERROR_MESSAGE_MAX_LENGTH,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence = sequence_service or SequenceService(session)
        self._error_max = error_message_max_length

    # -------------------------------------------------------------------------
    # Enqueue
    # -------------------------------------------------------------------------

    def enqueue(
        self,
        order_id: UUID,
        files: Iterable[StagedFile],
        material_id: str | None = None,
        fallback_width: float | None = None,
        cliente_email: str | None = None,
    ) -> FileJob:
        """Create a PENDING job for one batch of staged files.

        Raises:
            InvalidJobPayloadError: ``files`` is empty.
            OrderNotFoundError: The order does not exist.
        """
        payload = FileJobPayload(
            files=tuple(files),
            material_id=material_id,
            fallback_width=fallback_width,
            cliente_email=cliente_email,
        )
        if self._session.get(Order, order_id) is None:
            raise OrderNotFoundError(str(order_id))

        seq = self._sequence.next_value(SequenceService.FILE_JOB)
        now = self._clock.now()
        model = FileJobModel(
            order_id=order_id,
            status=FileJobStatus.PENDING.value,
            payload=payload.to_dict(),
            retry_count=0,
            seq=seq,
            created_at=now,
            updated_at=now,
        )
        self._session.add(model)
        self._session.flush()

        logger.info(
            "file_job_enqueued",
            extra={
                "job_id": str(model.id),
                "order_id": str(order_id),
                "file_count": len(payload.files),
                "seq": seq,
            },
        )
        return model.to_dto()

    # -------------------------------------------------------------------------
    # Claim
    # -------------------------------------------------------------------------

    def claim_pending(self, limit: int = 1) -> list[FileJob]:
        """Claim up to ``limit`` PENDING jobs, oldest first.

        Returns only the jobs whose conditional update applied.
        """
        if limit <= 0:
            return []

        candidate_ids = self._session.execute(
            select(FileJobModel.id)
            .where(FileJobModel.status == FileJobStatus.PENDING.value)
            .order_by(FileJobModel.created_at, FileJobModel.seq)
            .limit(limit)
        ).scalars().all()

        now = self._clock.now()
        claimed_ids: list[UUID] = []
        for job_id in candidate_ids:
            result = self._session.execute(
                update(FileJobModel)
                .where(
                    FileJobModel.id == job_id,
                    FileJobModel.status == FileJobStatus.PENDING.value,
                )
                .values(
                    status=FileJobStatus.PROCESSING.value,
                    started_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                claimed_ids.append(job_id)
            else:
                logger.debug("file_job_claim_lost", extra={"job_id": str(job_id)})

        claimed = [self._load(job_id).to_dto() for job_id in claimed_ids]
        for job in claimed:
            logger.info(
                "file_job_claimed",
                extra={"job_id": str(job.job_id), "order_id": str(job.order_id)},
            )
        return claimed

    # -------------------------------------------------------------------------
    # Finish
    # -------------------------------------------------------------------------

    def mark_completed(self, job_id: UUID) -> bool:
        """PROCESSING -> COMPLETED; clears ``last_error``.

        Returns False when the job was not PROCESSING.

        Raises:
            FileJobNotFoundError: Job does not exist.
        """
        now = self._clock.now()
        result = self._session.execute(
            update(FileJobModel)
            .where(
                FileJobModel.id == job_id,
                FileJobModel.status == FileJobStatus.PROCESSING.value,
            )
            .values(
                status=FileJobStatus.COMPLETED.value,
                completed_at=now,
                last_error=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self._transition_applied(job_id, result.rowcount, FileJobStatus.COMPLETED)

    def mark_failed(self, job_id: UUID, message: str | None) -> bool:
        """PROCESSING -> FAILED; increments ``retry_count`` in SQL.

        Returns False when the job was not PROCESSING.

        Raises:
            FileJobNotFoundError: Job does not exist.
        """
        now = self._clock.now()
        result = self._session.execute(
            update(FileJobModel)
            .where(
                FileJobModel.id == job_id,
                FileJobModel.status == FileJobStatus.PROCESSING.value,
            )
            .values(
                status=FileJobStatus.FAILED.value,
                retry_count=FileJobModel.retry_count + 1,
                last_error=truncate_error(message, self._error_max),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self._transition_applied(job_id, result.rowcount, FileJobStatus.FAILED)

    def _transition_applied(
        self, job_id: UUID, rowcount: int, target: FileJobStatus,
    ) -> bool:
        if rowcount:
            return True
        current = self._session.execute(
            select(FileJobModel.status).where(FileJobModel.id == job_id)
        ).scalar_one_or_none()
        if current is None:
            raise FileJobNotFoundError(str(job_id))
        logger.warning(
            "file_job_transition_rejected",
            extra={
                "job_id": str(job_id),
                "current_status": current,
                "target_status": target.value,
            },
        )
        return False

    # -------------------------------------------------------------------------
    # Stale recovery
    # -------------------------------------------------------------------------

    def reset_stale(self, stale_after: timedelta) -> int:
        """Return PROCESSING jobs started before ``now - stale_after`` to PENDING.

        Returns the number of jobs reset.
        """
        now = self._clock.now()
        cutoff = now - stale_after
        result = self._session.execute(
            update(FileJobModel)
            .where(
                FileJobModel.status == FileJobStatus.PROCESSING.value,
                FileJobModel.started_at < cutoff,
            )
            .values(
                status=FileJobStatus.PENDING.value,
                started_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        if count:
            logger.warning(
                "file_jobs_reset_stale",
                extra={"count": count, "cutoff": cutoff},
            )
        return count

    def release_claimed(self, job_ids: Sequence[UUID]) -> int:
        """Hand claimed-but-unstarted jobs back to the queue.

        Only rows still PROCESSING move to PENDING; a job another worker
        already finished is left alone.  Returns the number released.
        """
        if not job_ids:
            return 0
        now = self._clock.now()
        result = self._session.execute(
            update(FileJobModel)
            .where(
                FileJobModel.id.in_(list(job_ids)),
                FileJobModel.status == FileJobStatus.PROCESSING.value,
            )
            .values(
                status=FileJobStatus.PENDING.value,
                started_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        logger.info(
            "file_jobs_released",
            extra={"count": count, "requested": len(job_ids)},
        )
        return count

    # -------------------------------------------------------------------------
    # Query
    # -------------------------------------------------------------------------

    def _load(self, job_id: UUID) -> FileJobModel:
        model = self._session.execute(
            select(FileJobModel)
            .where(FileJobModel.id == job_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise FileJobNotFoundError(str(job_id))
        return model

    def get_job(self, job_id: UUID) -> FileJob:
        """Job snapshot for status polling.

        Raises:
            FileJobNotFoundError: Job does not exist.
        """
        return self._load(job_id).to_dto()

    def list_jobs_for_order(self, order_id: UUID) -> list[FileJob]:
        """All jobs of an order, oldest first."""
        models = self._session.execute(
            select(FileJobModel)
            .where(FileJobModel.order_id == order_id)
            .order_by(FileJobModel.created_at, FileJobModel.seq)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [m.to_dto() for m in models]
