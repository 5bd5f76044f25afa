"""
Module: stock_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities, owned by an explicit ``Database``
    object that callers construct once and pass to the components that need
    it.  There is no module-level engine.
Architecture position: Kernel > DB.  May import from db/base.py.
    MUST NOT import from services/, domain/, or outer packages (except
    create_tables(), which imports the model modules so that Base.metadata
    sees every table).

Invariants enforced:
    - PostgreSQL is the production backend: READ COMMITTED isolation,
      QueuePool with pre-ping, and explicit row-level locking (FOR UPDATE)
      where stronger isolation is needed (ledger rows, order rows).
    - SQLite is supported for tests and local runs.  Every transaction is
      started with BEGIN IMMEDIATE so concurrent writers serialize instead of
      failing on lock upgrade, and SAVEPOINTs behave as documented.

Failure modes:
    - OperationalError if the database is unreachable or a SQLite lock is
      held longer than the busy timeout.
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.

Audit relevance:
    The session_scope() context manager gives atomic commit-or-rollback
    semantics.  Attachment creation, the aggregate recompute and the stock
    ledger mutation ride in one such scope.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from stock_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _install_sqlite_begin_immediate(engine: Engine) -> None:
    """Take over pysqlite transaction handling and start with BEGIN IMMEDIATE."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """
    Connection owner for the stock ledger and file pipeline.

    Contract:
        Wraps one SQLAlchemy Engine and its session factory.  Services
        receive Sessions; long-running components (the file worker) receive
        the Database itself and open a scope per unit of work.

    Guarantees:
        - ``session_scope()`` commits on normal exit and rolls back (then
          re-raises) on any exception.
        - Sessions are created with ``expire_on_commit=False`` so DTOs can
          be built from models after the scope closes.

    Non-goals:
        - Does NOT run migrations; ``create_tables()`` is for tests and
          local bootstrapping only.
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 5,
        pool_pre_ping: bool = True,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
        sqlite_busy_timeout: float = 30.0,
    ):
        self.url = database_url
        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={
                    "check_same_thread": False,
                    "timeout": sqlite_busy_timeout,
                },
            )
            _install_sqlite_begin_immediate(self.engine)
        else:
            self.engine = create_engine(
                database_url,
                echo=echo,
                poolclass=QueuePool,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=pool_pre_ping,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                isolation_level="READ COMMITTED",
            )

        self._session_factory = sessionmaker(
            bind=self.engine, expire_on_commit=False,
        )

        logger.info(
            "engine_initialized",
            extra={
                "dialect": self.engine.dialect.name,
                "echo": echo,
            },
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def session(self) -> Session:
        """Get a new session instance (caller closes it)."""
        return self._session_factory()

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Usage:
            with database.session_scope() as session:
                ledger = StockLedgerService(session, resolver)
                ledger.adjust_material_stock("dtf-57", 120)
                # Commits on successful exit, rolls back on exception
        """
        session = self._session_factory()
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create every table registered on Base.metadata.

        Kernel models are imported here.  Outer packages (stock_batch) import
        their model modules before calling.
        """
        from stock_kernel.db.base import Base
        from stock_kernel.models import import_all_models

        import_all_models()
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all tables. Use with caution - primarily for testing."""
        from stock_kernel.db.base import Base
        from stock_kernel.models import import_all_models

        import_all_models()
        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        """Release all pooled connections."""
        self.engine.dispose()

    def is_postgres(self) -> bool:
        return self.engine.dialect.name == "postgresql"
