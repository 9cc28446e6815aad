"""
PageForge — Typed image and conversion-settings contracts.

Every layout, estimation and pagination step works against these models.
No raw dicts leak across boundaries.
"""

from __future__ import annotations

import enum
import io
import uuid
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from pageforge.errors import ImageDecodeError


class PageSize(str, enum.Enum):
    A4 = "a4"
    LETTER = "letter"


class Orientation(str, enum.Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class FitMode(str, enum.Enum):
    FIT = "fit"
    FILL = "fill"
    ORIGINAL = "original"


class ProgressPhase(str, enum.Enum):
    IDLE = "idle"
    COMPRESSING = "compressing"
    PROCESSING = "processing"
    PLACING = "placing"
    COMPLETE = "complete"
    ERROR = "error"


# Page dimensions in mm (portrait)
PAGE_DIMENSIONS: dict[PageSize, tuple[float, float]] = {
    PageSize.A4: (210.0, 297.0),
    PageSize.LETTER: (215.9, 279.4),
}


class ImageUnit(BaseModel):
    """
    One input raster, immutable once loaded.

    Only the header is read to obtain pixel dimensions; the encoded
    payload is carried as-is until a conversion run needs it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    name: str = Field(min_length=1, max_length=500)
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    size_bytes: int = Field(ge=0)
    mime_type: str = "application/octet-stream"
    data: bytes = Field(default=b"", repr=False, exclude=True)

    @classmethod
    def from_bytes(cls, name: str, data: bytes) -> "ImageUnit":
        """Read the header; width and height are as displayed, after EXIF orientation."""
        from PIL import Image, UnidentifiedImageError

        from pageforge.raster import displayed_size, exif_orientation

        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = displayed_size(img.width, img.height, exif_orientation(img))
                mime = Image.MIME.get(img.format or "", "application/octet-stream")
        except (UnidentifiedImageError, OSError) as exc:
            raise ImageDecodeError(name, str(exc)) from exc

        return cls(
            name=name,
            width=width,
            height=height,
            size_bytes=len(data),
            mime_type=mime,
            data=data,
        )


class DirectMode(BaseModel):
    """Embed every image in its original encoding."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["direct"] = "direct"


class OptimizedMode(BaseModel):
    """Re-encode every image through a compression preset before embedding."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["optimized"] = "optimized"
    preset: Literal["high", "balanced", "small", "verySmall"] = "balanced"


ConversionMode = Annotated[Union[DirectMode, OptimizedMode], Field(discriminator="kind")]


class PdfSettings(BaseModel):
    """Page layout and conversion settings for one images → PDF run."""

    model_config = ConfigDict(frozen=True)

    page_size: PageSize = PageSize.A4
    orientation: Orientation = Orientation.PORTRAIT
    fit_mode: FitMode = FitMode.FIT
    margin_mm: float = Field(default=10.0, ge=0)
    conversion_mode: ConversionMode = Field(default_factory=OptimizedMode)


class ProgressReport(BaseModel):
    current: int = 0
    total: int = 0
    phase: ProgressPhase = ProgressPhase.IDLE
    message: str | None = None
