"""
Metrics -- physical measurement of uploaded artwork files.

Responsibility:
    Given a file's bytes, its declared MIME type / original name and the
    roll width it will be printed on, compute how much material it uses:
    width, height, area and the printed length along the roll.

Architecture position:
    Kernel > Domain -- pure functional core.  Decoding is delegated to
    pypdf (documents) and Pillow (raster images); nothing is written
    anywhere and no clock or database is touched.

Invariants enforced:
    - Deterministic: identical bytes and width always yield identical
      metrics.  The aggregate recompute relies on this for idempotency.
    - ``width_cm`` is the effective width (override, else the file's own
      width) and ``height_cm`` equals ``length_cm``.
    - Zero-width fallbacks are kept as-is: a document measured against a
      zero width reports its area as its length, a raster image reports its
      raw height.

Failure modes:
    - UnsupportedFormatError: content is neither a PDF nor a raster image.
    - MeasurementFailureError: the type is supported but the bytes cannot
      be decoded, or the image reports a zero pixel dimension.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Any

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from stock_kernel.domain.materials import MaterialCatalog, positive_width
from stock_kernel.exceptions import MeasurementFailureError, UnsupportedFormatError

CM_PER_INCH = 2.54
POINTS_PER_INCH = 72
DEFAULT_IMAGE_DPI = 300

DEFAULT_ORIGINAL_NAME = "archivo"

_RASTER_SUFFIXES = (".png", ".jpg", ".jpeg")


@dataclass(frozen=True, slots=True)
class AttachmentMetrics:
    """Measured size of one file, in centimetres."""

    width_cm: float
    height_cm: float
    area_cm2: float
    length_cm: float

    def to_dict(self) -> dict[str, float]:
        return {
            "width_cm": self.width_cm,
            "height_cm": self.height_cm,
            "area_cm2": self.area_cm2,
            "length_cm": self.length_cm,
        }


def is_document(original_name: str, mime_type: str) -> bool:
    return mime_type == "application/pdf" or original_name.lower().endswith(".pdf")


def is_raster(original_name: str, mime_type: str) -> bool:
    return mime_type.startswith("image/") or original_name.lower().endswith(
        _RASTER_SUFFIXES
    )


def points_to_cm(points: float) -> float:
    return points * CM_PER_INCH / POINTS_PER_INCH


def pixels_to_cm(pixels: int, dpi: float) -> float:
    return pixels / dpi * CM_PER_INCH


# ---------------------------------------------------------------------------
# Format-specific measurement
# ---------------------------------------------------------------------------


def _measure_document(
    content: bytes,
    original_name: str,
    width_override: float | None,
) -> AttachmentMetrics:
    try:
        reader = PdfReader(BytesIO(content))
        page_sizes = [
            (float(page.mediabox.width), float(page.mediabox.height))
            for page in reader.pages
        ]
    except (PyPdfError, ValueError, KeyError, TypeError) as exc:
        raise MeasurementFailureError(
            original_name, f"unreadable PDF: {exc}"
        ) from exc

    total_area = 0.0
    max_page_width = 0.0
    for width_pt, height_pt in page_sizes:
        width_cm = points_to_cm(width_pt)
        height_cm = points_to_cm(height_pt)
        total_area += width_cm * height_cm
        if width_cm > max_page_width:
            max_page_width = width_cm

    width_cm = width_override if width_override is not None else max_page_width
    length_cm = total_area / width_cm if width_cm > 0 else total_area
    return AttachmentMetrics(
        width_cm=width_cm,
        height_cm=length_cm,
        area_cm2=total_area,
        length_cm=length_cm,
    )


def _image_dpi(info: dict[str, Any]) -> tuple[float, float]:
    """Horizontal and vertical resolution, each defaulting to 300 dpi."""
    raw = info.get("dpi")
    if isinstance(raw, (int, float)):
        raw = (raw, raw)
    if not isinstance(raw, tuple) or len(raw) < 2:
        return float(DEFAULT_IMAGE_DPI), float(DEFAULT_IMAGE_DPI)

    resolved = []
    for value in raw[:2]:
        try:
            dpi = float(value)
        except (TypeError, ValueError):
            dpi = 0.0
        resolved.append(dpi if dpi > 0 else float(DEFAULT_IMAGE_DPI))
    return resolved[0], resolved[1]


def _measure_raster(
    content: bytes,
    original_name: str,
    width_override: float | None,
) -> AttachmentMetrics:
    try:
        with Image.open(BytesIO(content)) as image:
            width_px, height_px = image.size
            dpi_x, dpi_y = _image_dpi(image.info)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise MeasurementFailureError(
            original_name, f"unreadable image: {exc}"
        ) from exc

    if not width_px or not height_px:
        raise MeasurementFailureError(original_name, "image has no pixel size")

    width_raw = pixels_to_cm(width_px, dpi_x)
    height_raw = pixels_to_cm(height_px, dpi_y)
    area = width_raw * height_raw

    width_cm = width_override if width_override is not None else width_raw
    length_cm = area / width_cm if width_cm > 0 else height_raw
    return AttachmentMetrics(
        width_cm=width_cm,
        height_cm=length_cm,
        area_cm2=area,
        length_cm=length_cm,
    )


# ---------------------------------------------------------------------------
# Public entrypoints
# ---------------------------------------------------------------------------


def measure(
    content: bytes,
    original_name: str | None,
    mime_type: str | None,
    material_width_cm: float | None = None,
) -> AttachmentMetrics:
    """
    Measure one file.

    Preconditions:
        ``material_width_cm``, when given, is the roll width in cm.
        Non-positive or non-numeric values are treated as absent.

    Raises:
        UnsupportedFormatError: Neither a PDF nor a raster image.
        MeasurementFailureError: Supported type that cannot be decoded.
    """
    name = original_name or DEFAULT_ORIGINAL_NAME
    mime = (mime_type or "").lower()
    width_override = positive_width(material_width_cm)

    if is_document(name, mime):
        return _measure_document(content, name, width_override)
    if is_raster(name, mime):
        return _measure_raster(content, name, width_override)
    raise UnsupportedFormatError(name, mime_type)


def calculate_attachment_metrics(
    content: bytes,
    original_name: str | None,
    mime_type: str | None,
    material_id: str | None,
    fallback_width_cm: float | None,
    catalog: MaterialCatalog,
) -> AttachmentMetrics:
    """Measure a file against the roll width the catalog resolves for it."""
    width = catalog.resolve_width(material_id, fallback_width_cm)
    return measure(content, original_name, mime_type, width)
