"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The worker, the order-placement handlers and the HTTP layer all need to tell
"not enough material on the roll" apart from "that file is not a PDF" apart
from "the job payload is broken".  Parsing message strings for that is
fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:

    try:
        ledger.adjust_material_stock(material_id, 120.0)
    except InsufficientStockError as e:
        return conflict(code=e.code, requested=e.requested_cm,
                        available=e.available_cm)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- StockError
    |   +-- InsufficientStockError
    |
    +-- MaterialError
    |   +-- InvalidMaterialError
    |
    +-- MetricsError
    |   +-- UnsupportedFormatError
    |   +-- MeasurementFailureError
    |
    +-- OrderError
    |   +-- OrderNotFoundError
    |
    +-- FileJobError
        +-- FileJobNotFoundError
        +-- InvalidJobPayloadError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Consumption exceeds tracked length/units
----------------|-----------------------------|-----------------------------------------
Material        | INVALID_MATERIAL            | Neither inventory nor preset matches
----------------|-----------------------------|-----------------------------------------
Metrics         | UNSUPPORTED_FORMAT          | File is neither a PDF nor a raster image
                | MEASUREMENT_FAILURE         | Supported type, dimensions unreadable
----------------|-----------------------------|-----------------------------------------
Order           | ORDER_NOT_FOUND             | Order ID doesn't exist
----------------|-----------------------------|-----------------------------------------
File job        | FILE_JOB_NOT_FOUND          | Job ID doesn't exist
                | INVALID_JOB_PAYLOAD         | Payload missing or without files

===============================================================================
"""

from __future__ import annotations

from typing import Any


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Stock ledger exceptions


class StockError(StockKernelError):
    """Base exception for inventory/ledger errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Requested consumption exceeds the available tracked stock.

    Raised before any ledger mutation.  Length-based failures fill the
    ``*_cm`` fields; whole-unit failures (catalog items, or the conditional
    decrement losing a race) fill ``requested_units`` / ``available_units``.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        material_id: str | None = None,
        inventory_id: Any = None,
        requested_cm: int | None = None,
        available_cm: int | None = None,
        remainder_cm: int | None = None,
        requested_units: int | None = None,
        available_units: int | None = None,
        item_code: str | None = None,
        item_name: str | None = None,
    ):
        self.material_id = material_id
        self.inventory_id = inventory_id
        self.requested_cm = requested_cm
        self.available_cm = available_cm
        self.remainder_cm = remainder_cm
        self.requested_units = requested_units
        self.available_units = available_units
        self.item_code = item_code
        self.item_name = item_name

        subject = material_id or item_code or str(inventory_id)
        if requested_cm is not None:
            detail = (
                f"requested {requested_cm} cm, available {available_cm} cm "
                f"(remainder {remainder_cm} cm)"
            )
        else:
            detail = (
                f"requested {requested_units} unit(s), "
                f"available {available_units}"
            )
        super().__init__(f"Insufficient stock for {subject}: {detail}")

    @property
    def details(self) -> dict[str, Any]:
        """Non-empty diagnostic fields, for API responses."""
        return {
            key: value
            for key, value in vars(self).items()
            if not key.startswith("_") and key != "args" and value is not None
        }


# Material exceptions


class MaterialError(StockKernelError):
    """Base exception for material resolution errors."""

    code: str = "MATERIAL_ERROR"


class InvalidMaterialError(MaterialError):
    """Material identifier matches neither an inventory item nor a preset."""

    code: str = "INVALID_MATERIAL"

    def __init__(self, material_id: str | None):
        self.material_id = material_id
        super().__init__(f"Invalid material: {material_id!r}")


# Metrics exceptions


class MetricsError(StockKernelError):
    """Base exception for file measurement errors."""

    code: str = "METRICS_ERROR"


class UnsupportedFormatError(MetricsError):
    """File content is neither a page-description document nor a raster image."""

    code: str = "UNSUPPORTED_FORMAT"

    def __init__(self, original_name: str, mime_type: str | None):
        self.original_name = original_name
        self.mime_type = mime_type
        super().__init__(
            f"Unsupported file format: {original_name} ({mime_type or 'unknown'})"
        )


class MeasurementFailureError(MetricsError):
    """Dimensions could not be extracted from a supported file type."""

    code: str = "MEASUREMENT_FAILURE"

    def __init__(self, original_name: str, reason: str):
        self.original_name = original_name
        self.reason = reason
        super().__init__(f"Could not measure {original_name}: {reason}")


# Order exceptions


class OrderError(StockKernelError):
    """Base exception for order errors."""

    code: str = "ORDER_ERROR"


class OrderNotFoundError(OrderError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


# File job exceptions


class FileJobError(StockKernelError):
    """Base exception for file-processing job errors."""

    code: str = "FILE_JOB_ERROR"


class FileJobNotFoundError(FileJobError):
    """File-processing job with given ID was not found."""

    code: str = "FILE_JOB_NOT_FOUND"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"File job not found: {job_id}")


class InvalidJobPayloadError(FileJobError):
    """Job payload is missing, malformed, or lists no files."""

    code: str = "INVALID_JOB_PAYLOAD"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid job payload: {reason}")
