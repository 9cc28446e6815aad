"""
PageForge — PDF → images.

Renders every page of a PDF to a standalone image, in page order.
"""

from __future__ import annotations

from typing import Callable, Literal

from pydantic import BaseModel, Field

from pageforge.errors import PdfEmptyError
from pageforge.pdf.reader import open_pdf, render_pdf_page
from pageforge.utils.logging import logger, step_timer

ImageOutputFormat = Literal["png", "jpeg", "webp"]

MIME_TYPES: dict[str, str] = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}


class PdfToImageSettings(BaseModel):
    format: ImageOutputFormat = "png"
    quality: float = Field(default=0.92, ge=0.1, le=1.0)
    scale: float = Field(default=2.0, ge=1.0, le=3.0)


class ExtractedImage(BaseModel):
    id: str
    page_number: int
    width: int
    height: int
    format: ImageOutputFormat
    data: bytes = Field(default=b"", repr=False, exclude=True)

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self.format]

    def filename(self, base_name: str) -> str:
        return f"{base_name}-page-{self.page_number}.{self.format}"


def convert_pdf_to_images(
    pdf_bytes: bytes,
    settings: PdfToImageSettings | None = None,
    on_progress: Callable[[int, int], None] | None = None,
) -> list[ExtractedImage]:
    """
    Render each page in order. PNG output ignores quality.

    Progress is reported once per page, after it is rendered.
    """
    settings = settings or PdfToImageSettings()

    with step_timer("Convert PDF → images"):
        with open_pdf(pdf_bytes) as pdf:
            if pdf.page_count == 0:
                raise PdfEmptyError()

            images: list[ExtractedImage] = []
            for page_number in range(1, pdf.page_count + 1):
                rendered = render_pdf_page(
                    pdf.handle, page_number, settings.scale,
                    image_format=settings.format, quality=settings.quality,
                )
                images.append(ExtractedImage(
                    id=f"page-{page_number}",
                    page_number=page_number,
                    width=rendered.width,
                    height=rendered.height,
                    format=settings.format,
                    data=rendered.raster.data,
                ))
                logger.info(
                    "  Page %d/%d: %dx%d %s (%d bytes)",
                    page_number, pdf.page_count, rendered.width, rendered.height,
                    settings.format, rendered.raster.size_bytes,
                )
                if on_progress is not None:
                    on_progress(page_number, pdf.page_count)

        logger.info("  Extracted %d images at scale %.1f", len(images), settings.scale)
        return images
