"""
PageForge — PDF writer capability.

Creates a document, adds pages and places rasters at millimetre
rectangles. Uses pymupdf (fitz); millimetres are converted to points
only here.
"""

from __future__ import annotations

from typing import Any, Protocol

from pageforge.layout.geometry import mm_to_points
from pageforge.raster import RasterBuffer


class DocumentWriter(Protocol):
    def create_document(self, page_width_mm: float, page_height_mm: float, orientation: str) -> Any: ...

    def add_page(self, handle: Any, page_width_mm: float, page_height_mm: float) -> None: ...

    def place_raster(
        self, handle: Any, raster: RasterBuffer, x: float, y: float, width: float, height: float
    ) -> None: ...

    def finalize_document(self, handle: Any) -> bytes: ...

    def discard_document(self, handle: Any) -> None: ...


def _require_fitz():
    try:
        import fitz
    except ImportError:
        raise RuntimeError("pymupdf is required for PDF output. pip install pymupdf")
    return fitz


class FitzDocumentWriter:
    """
    DocumentWriter on pymupdf. The document handle is the fitz.Document;
    rasters are always placed on its last page.

    One writer handle must not be shared between concurrent runs.
    """

    def create_document(self, page_width_mm: float, page_height_mm: float, orientation: str = "portrait"):
        fitz = _require_fitz()
        doc = fitz.open()
        doc.new_page(width=mm_to_points(page_width_mm), height=mm_to_points(page_height_mm))
        return doc

    def add_page(self, handle, page_width_mm: float, page_height_mm: float) -> None:
        handle.new_page(width=mm_to_points(page_width_mm), height=mm_to_points(page_height_mm))

    def place_raster(self, handle, raster: RasterBuffer, x: float, y: float, width: float, height: float) -> None:
        fitz = _require_fitz()
        page = handle[-1]
        rect = fitz.Rect(
            mm_to_points(x),
            mm_to_points(y),
            mm_to_points(x + width),
            mm_to_points(y + height),
        )
        page.insert_image(rect, stream=raster.data, keep_proportion=False, rotate=raster.rotate)

    def finalize_document(self, handle) -> bytes:
        try:
            return handle.tobytes(garbage=3, deflate=True)
        finally:
            handle.close()

    def discard_document(self, handle) -> None:
        if not handle.is_closed:
            handle.close()
