"""Database infrastructure for the stock kernel."""

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.db.engine import Database

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "Database",
]
