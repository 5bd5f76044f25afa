"""
Upload staging -- where uploaded files wait for the worker.

The upload handler writes each file into the staging directory under a
collision-free name (``<epoch-ms>-<uuid4><original extension>``) and puts
the resulting StagedFile descriptors into the job payload.  The worker
reads them back and deletes them once the job's transaction committed.
Deletion is best-effort: a failure is logged, never raised.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable
from uuid import uuid4

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.logging_config import get_logger

from stock_batch.domain.types import StagedFile

logger = get_logger("batch.staging")

STAGING_SUBDIR = "tmp"


def build_upload_filename(original_name: str | None, clock: Clock) -> str:
    """``<epoch-ms>-<uuid4><ext>``, keeping the original extension."""
    suffix = Path(original_name).suffix if original_name else ""
    timestamp_ms = int(clock.now().timestamp() * 1000)
    return f"{timestamp_ms}-{uuid4()}{suffix}"


class UploadStaging:
    """Staging directory for uploaded files.

    Contract:
        ``stage()`` writes bytes and returns the descriptor the job payload
        carries.  ``read()`` and ``discard()`` are used by the worker.
    """

    def __init__(self, upload_dir: str | os.PathLike, clock: Clock | None = None):
        self._dir = Path(upload_dir) / STAGING_SUBDIR
        self._clock = clock or SystemClock()

    @property
    def directory(self) -> Path:
        return self._dir

    def stage(
        self,
        content: bytes,
        original_name: str,
        mime_type: str,
    ) -> StagedFile:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._dir / build_upload_filename(original_name, self._clock)
        path.write_bytes(content)
        logger.debug(
            "file_staged",
            extra={"path": str(path), "original_name": original_name, "size_bytes": len(content)},
        )
        return StagedFile(
            path=str(path),
            original_name=original_name,
            mime_type=mime_type,
            size_bytes=len(content),
        )

    @staticmethod
    def read(staged: StagedFile) -> bytes:
        return Path(staged.path).read_bytes()

    @staticmethod
    def discard(files: Iterable[StagedFile]) -> list[str]:
        """Delete staged files; returns the paths that could not be deleted."""
        failed: list[str] = []
        for staged in files:
            try:
                os.unlink(staged.path)
            except FileNotFoundError:
                continue
            except OSError as exc:
                failed.append(staged.path)
                logger.warning(
                    "staged_file_delete_failed",
                    extra={"path": staged.path, "error": str(exc)},
                )
        return failed
