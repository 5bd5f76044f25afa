"""stock_batch.services -- job queue, processor and polling worker."""

from stock_batch.services.processor import FileJobProcessor
from stock_batch.services.queue import FileJobQueue
from stock_batch.services.worker import FileJobWorker

__all__ = [
    "FileJobProcessor",
    "FileJobQueue",
    "FileJobWorker",
]
