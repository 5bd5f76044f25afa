"""
ORM base classes shared by the kernel and batch models.

Every table gets a uuid4 ``id`` stored as 36-character text so the same
schema runs on PostgreSQL in production and SQLite in the test suite.
Inventory prices are ``Decimal`` columns mapped to ``Numeric(38, 9)``;
timestamps are timezone-aware.  Models annotate ``Mapped[Decimal]`` /
``Mapped[datetime]`` / ``Mapped[UUID]`` and pick these types up from the
annotation map below.

Nothing here imports from models/, services/ or domain/.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Declarative base: uuid4 primary key plus the column type map."""

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Base for rows that record when they were written.

    Both columns default to the database clock.  The file-job queue and
    the attachment writer pass their injected Clock's time instead, and the
    queue's conditional UPDATE statements set ``updated_at`` by hand since
    ``onupdate`` only fires for ORM flushes.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
