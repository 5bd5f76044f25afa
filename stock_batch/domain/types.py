"""
stock_batch.domain.types -- Pure frozen dataclasses for the file pipeline.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

The job payload is produced by the upload handler and read by the worker.
Its JSON keys are camelCase; ``FileJobPayload.from_dict`` / ``to_dict``
are the only places that know the wire spelling.

Invariants enforced:
    - A payload always lists at least one staged file.
    - Status values are the upper-case strings stored in the database.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from stock_kernel.exceptions import InvalidJobPayloadError


# =============================================================================
# Status enums
# =============================================================================


class FileJobStatus(str, Enum):
    """File job lifecycle: PENDING -> PROCESSING -> COMPLETED | FAILED."""

    PENDING = "PENDING"  # Enqueued, waiting for a worker
    PROCESSING = "PROCESSING"  # Claimed by exactly one worker
    COMPLETED = "COMPLETED"  # Attachments stored, order recomputed
    FAILED = "FAILED"  # Terminal; staged files kept for inspection

    @property
    def is_terminal(self) -> bool:
        return self in (FileJobStatus.COMPLETED, FileJobStatus.FAILED)


# =============================================================================
# Payload DTOs
# =============================================================================


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _optional_width(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class StagedFile:
    """An uploaded file waiting on disk for the worker."""

    path: str
    original_name: str
    mime_type: str
    size_bytes: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StagedFile:
        if not isinstance(data, Mapping):
            raise InvalidJobPayloadError("file entry is not an object")
        path = data.get("path")
        if not isinstance(path, str) or not path:
            raise InvalidJobPayloadError("file entry has no path")
        try:
            size_bytes = int(data.get("sizeBytes") or 0)
        except (TypeError, ValueError) as exc:
            raise InvalidJobPayloadError(f"invalid sizeBytes for {path}") from exc
        return cls(
            path=path,
            original_name=str(data.get("originalName") or ""),
            mime_type=str(data.get("mimeType") or ""),
            size_bytes=size_bytes,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "originalName": self.original_name,
            "mimeType": self.mime_type,
            "sizeBytes": self.size_bytes,
        }


@dataclass(frozen=True)
class FileJobPayload:
    """Staged files of one upload batch plus the material context at upload."""

    files: tuple[StagedFile, ...]
    material_id: str | None = None
    fallback_width: float | None = None
    cliente_email: str | None = None

    def __post_init__(self) -> None:
        if not self.files:
            raise InvalidJobPayloadError("payload lists no files")

    @classmethod
    def from_dict(cls, data: Any) -> FileJobPayload:
        """Parse the stored JSON payload.

        Raises:
            InvalidJobPayloadError: Missing payload, missing or empty
                ``files`` list, or a malformed file entry.
        """
        if not isinstance(data, Mapping):
            raise InvalidJobPayloadError("payload is missing")
        raw_files = data.get("files")
        if not isinstance(raw_files, list) or not raw_files:
            raise InvalidJobPayloadError("payload lists no files")
        return cls(
            files=tuple(StagedFile.from_dict(entry) for entry in raw_files),
            material_id=_optional_str(data.get("materialId")),
            fallback_width=_optional_width(data.get("fallbackWidth")),
            cliente_email=_optional_str(data.get("clienteEmail")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": [f.to_dict() for f in self.files],
            "materialId": self.material_id,
            "fallbackWidth": self.fallback_width,
            "clienteEmail": self.cliente_email,
        }


# =============================================================================
# Job DTOs
# =============================================================================


@dataclass(frozen=True)
class FileJob:
    """Immutable snapshot of a file-processing job, as polled by the HTTP layer."""

    job_id: UUID
    order_id: UUID
    status: FileJobStatus
    payload: dict[str, Any] | None = None
    retry_count: int = 0
    last_error: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None
    seq: int | None = None


@dataclass(frozen=True)
class JobRunResult:
    """Outcome of handling one claimed job.

    Returned by ``FileJobProcessor.handle()``.
    """

    job_id: UUID
    status: FileJobStatus
    attachment_count: int = 0
    files_total_length_cm: float | None = None
    files_total_price: int | float | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == FileJobStatus.COMPLETED
