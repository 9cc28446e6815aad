"""
PageForge — PDF compression by page rasterisation.

Each page is rendered at the level's scale, re-encoded as JPEG and
placed full-bleed on a page of the original physical size. Text and
vector content do not survive; the output is image-only.
"""

from __future__ import annotations

from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from pageforge.errors import PdfEmptyError, UnknownOptionError
from pageforge.layout.geometry import points_to_mm
from pageforge.pdf.reader import open_pdf, render_pdf_page
from pageforge.pdf.writer import DocumentWriter, FitzDocumentWriter
from pageforge.utils.logging import logger, step_timer


class PdfCompressionLevel(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    quality: float
    scale: float
    label: str


COMPRESSION_LEVELS: dict[str, PdfCompressionLevel] = {
    "balanced": PdfCompressionLevel(
        id="balanced", quality=0.7, scale=1.5,
        label="Balanced – good quality, moderate reduction",
    ),
    "aggressive": PdfCompressionLevel(
        id="aggressive", quality=0.4, scale=1.0,
        label="Aggressive – smaller file, lower quality",
    ),
}


class PdfCompressionResult(BaseModel):
    pdf: bytes = Field(default=b"", repr=False, exclude=True)
    original_size: int
    compressed_size: int
    page_count: int

    @property
    def saved_percent(self) -> int:
        if self.original_size <= 0:
            return 0
        return round((1 - self.compressed_size / self.original_size) * 100)


def get_compression_level(level: str) -> PdfCompressionLevel:
    config = COMPRESSION_LEVELS.get(level)
    if config is None:
        raise UnknownOptionError("PDF compression level", level, list(COMPRESSION_LEVELS))
    return config


def compress_pdf(
    pdf_bytes: bytes,
    level: str = "balanced",
    on_progress: Callable[[int, int], None] | None = None,
    writer: DocumentWriter | None = None,
) -> PdfCompressionResult:
    config = get_compression_level(level)
    writer = writer or FitzDocumentWriter()

    with step_timer(f"Compress PDF ({config.id})"):
        with open_pdf(pdf_bytes) as pdf:
            if pdf.page_count == 0:
                raise PdfEmptyError()

            handle = None
            try:
                for page_number in range(1, pdf.page_count + 1):
                    rendered = render_pdf_page(
                        pdf.handle, page_number, config.scale,
                        image_format="jpeg", quality=config.quality,
                    )
                    # Render pixels back to the source page's physical size
                    width_mm = points_to_mm(rendered.width / config.scale)
                    height_mm = points_to_mm(rendered.height / config.scale)

                    if handle is None:
                        orientation = "landscape" if width_mm > height_mm else "portrait"
                        handle = writer.create_document(width_mm, height_mm, orientation)
                    else:
                        writer.add_page(handle, width_mm, height_mm)
                    writer.place_raster(handle, rendered.raster, 0, 0, width_mm, height_mm)
                    del rendered

                    if on_progress is not None:
                        on_progress(page_number, pdf.page_count)

                output = writer.finalize_document(handle)
                handle = None
            finally:
                if handle is not None:
                    writer.discard_document(handle)

        result = PdfCompressionResult(
            pdf=output,
            original_size=len(pdf_bytes),
            compressed_size=len(output),
            page_count=pdf.page_count,
        )
        logger.info(
            "  Compressed %d pages: %d → %d bytes (%d%% saved)",
            result.page_count, result.original_size, result.compressed_size, result.saved_percent,
        )
        return result
