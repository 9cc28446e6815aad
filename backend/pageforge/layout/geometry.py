"""
PageForge — Unit conversion and page geometry.

All placement math is done in millimetres. Points are only produced
at the PDF writer boundary.
"""

from __future__ import annotations

from pageforge.errors import UnknownOptionError
from pageforge.models.image import PAGE_DIMENSIONS, Orientation, PageSize

MM_TO_POINTS = 2.83465  # 72 pt per inch / 25.4 mm per inch
REFERENCE_DPI = 96  # images carry no trusted DPI; always assume 96


def mm_to_points(mm: float) -> float:
    return mm * MM_TO_POINTS


def pixels_to_mm(px: float) -> float:
    return px * 25.4 / REFERENCE_DPI


def points_to_mm(pt: float) -> float:
    return pt * 25.4 / 72


def page_dimensions(page_size: PageSize | str, orientation: Orientation | str) -> tuple[float, float]:
    """Return (width, height) in mm for a page profile, swapped for landscape."""
    try:
        size = PageSize(page_size)
        orient = Orientation(orientation)
    except ValueError as exc:
        raise UnknownOptionError(
            "page size or orientation",
            f"{page_size}/{orientation}",
            [p.value for p in PageSize] + [o.value for o in Orientation],
        ) from exc

    width, height = PAGE_DIMENSIONS[size]
    if orient is Orientation.LANDSCAPE:
        width, height = height, width
    return width, height


def available_area(page_width: float, page_height: float, margin_mm: float) -> tuple[float, float]:
    """
    Content area left after subtracting the margin on every side.

    A margin of half a page dimension or more yields a non-positive
    area; callers decide what to do with that.
    """
    return page_width - 2 * margin_mm, page_height - 2 * margin_mm
