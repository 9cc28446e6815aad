"""
PageForge — PDF open and page render capability (pymupdf).

Page numbers are 1-based. Rendering at scale 1.0 yields one pixel per
PDF point (72 DPI).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pageforge.errors import PageRenderError, PdfOpenError
from pageforge.raster import RasterBuffer


@dataclass
class OpenedPdf:
    handle: Any
    page_count: int

    def close(self) -> None:
        if not self.handle.is_closed:
            self.handle.close()

    def __enter__(self) -> "OpenedPdf":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass(frozen=True)
class RenderedPage:
    raster: RasterBuffer
    width: int
    height: int
    page_number: int


def open_pdf(pdf_bytes: bytes) -> OpenedPdf:
    try:
        import fitz
    except ImportError:
        raise RuntimeError("pymupdf is required to read PDFs. pip install pymupdf")

    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as exc:
        raise PdfOpenError(str(exc)) from exc

    if doc.needs_pass:
        doc.close()
        raise PdfOpenError("document is password protected")

    return OpenedPdf(handle=doc, page_count=len(doc))


def render_pdf_page(
    handle: Any, page_number: int, scale: float, image_format: str = "png", quality: float | None = None
) -> RenderedPage:
    """Render one page to an encoded raster at the given scale."""
    import fitz

    if not 1 <= page_number <= len(handle):
        raise PageRenderError(page_number, f"document has {len(handle)} pages")

    try:
        page = handle.load_page(page_number - 1)
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        width, height = pix.width, pix.height
        if image_format.lower() == "png":
            raster = RasterBuffer(data=pix.tobytes("png"), width=width, height=height, format="PNG")
        else:
            from PIL import Image

            img = Image.frombytes("RGB", (width, height), pix.samples)
            raster = RasterBuffer.from_image(img, image_format, quality)
        pix = None
    except PageRenderError:
        raise
    except Exception as exc:
        raise PageRenderError(page_number, str(exc)) from exc

    return RenderedPage(raster=raster, width=width, height=height, page_number=page_number)
