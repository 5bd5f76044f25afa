"""
stock_batch.models -- ORM models for file-processing jobs.

Architecture: stock_batch/models. Imports from stock_kernel only.
"""

from stock_batch.models.file_job import FileJobModel

__all__ = [
    "FileJobModel",
]
