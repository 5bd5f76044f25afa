"""
stock_batch.domain -- Pure types for the file-processing pipeline.

ZERO I/O.  All types are frozen dataclasses.
"""

from stock_batch.domain.types import (
    FileJob,
    FileJobPayload,
    FileJobStatus,
    JobRunResult,
    StagedFile,
)

__all__ = [
    "FileJob",
    "FileJobPayload",
    "FileJobStatus",
    "JobRunResult",
    "StagedFile",
]
