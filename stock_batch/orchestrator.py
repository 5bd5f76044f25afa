"""
FileWorkerOrchestrator -- DI container for the file-processing pipeline.

Contract:
    Builds the Database, MaterialCatalog and PricingPolicy from settings and
    composes the FileJobProcessor, FileJobWorker and UploadStaging from them.
    Single place where all worker dependencies are composed.

Architecture: stock_batch (top-level).  The only stock_batch module that
    imports stock_config; the CLI and tests start here.

Invariants enforced:
    - Clock injection: every component receives the same Clock.
    - The kernel never imports stock_config; settings reach it through
      ``stock_config.bridges``.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from stock_config.bridges import build_material_catalog, build_pricing_policy
from stock_config.schema import StockSettings
from stock_kernel.db.engine import Database
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.materials import MaterialCatalog
from stock_kernel.logging_config import get_logger
from stock_kernel.services.order_aggregates import PricingPolicy

import stock_batch.models  # noqa: F401  registers file_processing_jobs on Base.metadata
from stock_batch.services.processor import FileJobProcessor
from stock_batch.services.queue import FileJobQueue
from stock_batch.services.worker import FileJobWorker
from stock_batch.staging import UploadStaging

logger = get_logger("batch.orchestrator")


class FileWorkerOrchestrator:
    """DI container for the file-processing worker.

    Contract:
        - ``from_settings()`` factory creates a fully wired orchestrator.
        - ``create_processor()`` / ``create_worker()`` / ``create_staging()``
          return components sharing the orchestrator's clock and catalog.
        - ``queue(session)`` returns a FileJobQueue bound to a session.

    Non-goals:
        - Does NOT start the worker automatically -- caller decides.
        - Does NOT own session boundaries beyond what the components do.
    """

    def __init__(
        self,
        settings: StockSettings,
        database: Database,
        catalog: MaterialCatalog,
        pricing: PricingPolicy,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings
        self._db = database
        self._catalog = catalog
        self._pricing = pricing
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        settings: StockSettings,
        database: Database | None = None,
        clock: Clock | None = None,
        create_tables: bool = False,
    ) -> FileWorkerOrchestrator:
        """Create a fully wired orchestrator.

        Args:
            settings: Active settings (``stock_config.get_active_settings()``).
            database: Optional pre-built Database; built from
                ``settings.database`` when None.
            clock: Optional clock for deterministic testing.
            create_tables: Create all tables first (local runs and tests).
        """
        if database is None:
            database = Database(
                settings.database.url,
                echo=settings.database.echo,
                pool_size=settings.database.pool_size,
                max_overflow=settings.database.max_overflow,
            )
        if create_tables:
            database.create_tables()

        catalog = build_material_catalog(settings)
        orchestrator = cls(
            settings=settings,
            database=database,
            catalog=catalog,
            pricing=build_pricing_policy(settings),
            clock=clock,
        )
        logger.info(
            "file_worker_orchestrator_ready",
            extra={
                "dialect": database.dialect_name,
                "material_count": len(catalog),
                "upload_dir": settings.worker.upload_dir,
            },
        )
        return orchestrator

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def database(self) -> Database:
        return self._db

    @property
    def catalog(self) -> MaterialCatalog:
        return self._catalog

    @property
    def settings(self) -> StockSettings:
        return self._settings

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    def queue(self, session: Session) -> FileJobQueue:
        return FileJobQueue(
            session,
            clock=self._clock,
            error_message_max_length=self._settings.worker.error_message_max_length,
        )

    def create_staging(self) -> UploadStaging:
        return UploadStaging(self._settings.worker.upload_dir, clock=self._clock)

    def create_processor(self) -> FileJobProcessor:
        return FileJobProcessor(
            self._db,
            self._catalog,
            clock=self._clock,
            pricing=self._pricing,
            error_message_max_length=self._settings.worker.error_message_max_length,
        )

    def create_worker(self, worker_id: str | None = None) -> FileJobWorker:
        """Create a FileJobWorker with its own processor.

        Args:
            worker_id: Optional name used in logs and as the thread name.
        """
        worker_settings = self._settings.worker
        return FileJobWorker(
            self._db,
            self.create_processor(),
            clock=self._clock,
            batch_size=worker_settings.batch_size,
            poll_interval_seconds=worker_settings.poll_interval_seconds,
            stale_after_seconds=worker_settings.stale_after_seconds,
            worker_id=worker_id,
        )
