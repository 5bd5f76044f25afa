"""
Pytest fixtures for the stock kernel and file pipeline test suite.

Provides:
- A file-backed SQLite Database per test (BEGIN IMMEDIATE transactions, so
  concurrency tests get real writer serialization)
- A DeterministicClock
- The material catalog built from the packaged settings
- Factories for inventory items, orders, PDFs and PNGs
- Structured log capture

No external database is required.
"""

import json
import logging
from decimal import Decimal
from io import BytesIO, StringIO

import pytest
from PIL import Image
from reportlab.pdfgen import canvas

import stock_batch.models  # noqa: F401  registers file_processing_jobs
from stock_config.bridges import build_material_catalog
from stock_config.loader import load_settings
from stock_kernel.db.engine import Database
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stock_kernel.models.inventory import InventoryItem, MaterialRemainder
from stock_kernel.models.order import Order
from stock_kernel.services.material_resolver import MaterialResolver
from stock_kernel.services.stock_ledger import StockLedgerService

POINTS_PER_CM = 72 / 2.54


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.adjust_material_stock("dtf-57", 10)
            logs = captured_logs()
            assert any(r["message"] == "stock_adjusted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def database(tmp_path):
    """Fresh SQLite database file with every table created."""
    db = Database(f"sqlite:///{tmp_path / 'stock.db'}")
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    """Session on the test database; rolled back and closed after the test."""
    s = database.session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def clock():
    return DeterministicClock()


# =============================================================================
# Settings and kernel services
# =============================================================================


@pytest.fixture(scope="session")
def settings():
    """Packaged defaults, with no environment overrides."""
    return load_settings(env={})


@pytest.fixture(scope="session")
def catalog(settings):
    return build_material_catalog(settings)


@pytest.fixture
def resolver(session, catalog):
    return MaterialResolver(session, catalog)


@pytest.fixture
def ledger(session, resolver):
    return StockLedgerService(session, resolver)


# =============================================================================
# Data factories
# =============================================================================


@pytest.fixture
def make_inventory(session):
    """Create (and flush) an InventoryItem, optionally with a remainder row."""

    def _make(
        code: str = "dtf-57",
        name: str = "DTF 57 cm",
        quantity: int = 10,
        remainder_cm: int | None = None,
        price_web: Decimal | None = None,
        price_store: Decimal | None = None,
        price_wsp: Decimal | None = None,
    ) -> InventoryItem:
        item = InventoryItem(
            code=code,
            name=name,
            quantity=quantity,
            price_web=price_web,
            price_store=price_store,
            price_wsp=price_wsp,
        )
        session.add(item)
        session.flush()
        if remainder_cm is not None:
            session.add(MaterialRemainder(inventory_id=item.id, remainder_cm=remainder_cm))
            session.flush()
        return item

    return _make


@pytest.fixture
def make_order(session):
    """Create (and flush) an Order."""

    def _make(
        material_id: str | None = "dtf-57",
        material_width_cm: float | None = None,
        payload: dict | None = None,
        total: Decimal | None = None,
        currency: str | None = None,
    ) -> Order:
        order = Order(
            material_id=material_id,
            material_width_cm=material_width_cm,
            payload=payload or {},
            total=total,
            currency=currency,
        )
        session.add(order)
        session.flush()
        return order

    return _make


# =============================================================================
# File fixtures
# =============================================================================


@pytest.fixture
def pdf_bytes():
    """Build a PDF whose pages have the given (width_cm, height_cm) sizes."""

    def _build(*pages_cm: tuple[float, float]) -> bytes:
        buffer = BytesIO()
        first_w, first_h = pages_cm[0]
        pdf = canvas.Canvas(
            buffer, pagesize=(first_w * POINTS_PER_CM, first_h * POINTS_PER_CM),
        )
        for width_cm, height_cm in pages_cm:
            pdf.setPageSize((width_cm * POINTS_PER_CM, height_cm * POINTS_PER_CM))
            pdf.drawString(10, 10, "stock kernel test page")
            pdf.showPage()
        pdf.save()
        return buffer.getvalue()

    return _build


@pytest.fixture
def png_bytes():
    """Build a PNG of ``width_px`` x ``height_px``, optionally tagged with a dpi."""

    def _build(width_px: int, height_px: int, dpi: tuple[int, int] | None = None) -> bytes:
        buffer = BytesIO()
        image = Image.new("RGB", (width_px, height_px), color=(255, 255, 255))
        if dpi is not None:
            image.save(buffer, format="PNG", dpi=dpi)
        else:
            image.save(buffer, format="PNG")
        return buffer.getvalue()

    return _build
