"""
PageForge — Raster buffer and per-image codecs.

RasterBuffer is the only raster representation that crosses module
boundaries: an encoded payload plus its pixel dimensions. Decoding,
resizing, alpha compositing and encoding all go through Pillow here so
the layout and pagination code never touches pixels.
"""

from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pageforge.errors import ImageCompressionError, ImageDecodeError

if TYPE_CHECKING:
    from PIL import Image

    from pageforge.compression.presets import CompressionPreset
    from pageforge.models.image import ImageUnit

# Formats the PDF writer embeds without re-encoding
EMBEDDABLE_FORMATS = {"JPEG", "PNG"}

_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG", "jpg": "JPEG", "webp": "WEBP"}

EXIF_ORIENTATION_TAG = 0x0112

# EXIF orientation → counter-clockwise degrees that display the stored pixels upright.
# Mirrored orientations (2, 4, 5, 7) have no pure-rotation equivalent.
ORIENTATION_ROTATION = {1: 0, 3: 180, 6: 270, 8: 90}


@dataclass(frozen=True)
class RasterBuffer:
    """
    Encoded raster plus its displayed pixel size.

    rotate is the counter-clockwise rotation the PDF writer applies when
    drawing data; width and height already account for it.
    """

    data: bytes
    width: int
    height: int
    format: str  # Pillow format name: PNG | JPEG | WEBP
    rotate: int = 0

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def decode(self) -> "Image.Image":
        from PIL import Image

        img = Image.open(io.BytesIO(self.data))
        img.load()
        return img

    @classmethod
    def from_image(cls, img: "Image.Image", fmt: str = "PNG", quality: float | None = None) -> "RasterBuffer":
        fmt = _PIL_FORMATS.get(fmt.lower(), fmt.upper())
        if fmt == "JPEG" and img.mode not in ("RGB", "L"):
            img = flatten_on_white(img)
        elif img.mode == "CMYK":
            img = img.convert("RGB")

        buffer = io.BytesIO()
        save_kwargs: dict = {}
        if fmt in ("JPEG", "WEBP") and quality is not None:
            save_kwargs["quality"] = max(1, min(100, round(quality * 100)))
        if fmt == "PNG":
            save_kwargs["optimize"] = True
        img.save(buffer, format=fmt, **save_kwargs)
        return cls(data=buffer.getvalue(), width=img.width, height=img.height, format=fmt)

    def encode(self, fmt: str, quality: float | None = None) -> "RasterBuffer":
        with self.decode() as img:
            return RasterBuffer.from_image(img, fmt, quality)

    def resize_to_max(self, max_dimension: int) -> "RasterBuffer":
        """Uniformly downscale so the longest edge is at most max_dimension. Never upscales."""
        if max(self.width, self.height) <= max_dimension:
            return self
        with self.decode() as img:
            resized = img.resize(scaled_size(img.width, img.height, max_dimension), _lanczos())
            return RasterBuffer.from_image(resized, "PNG")

    def composite_alpha(self, mask: "Image.Image") -> "RasterBuffer":
        """Apply a single-channel mask as the alpha channel; output is always PNG."""
        with self.decode() as img:
            rgba = img.convert("RGBA")
            alpha = mask.convert("L")
            if alpha.size != rgba.size:
                alpha = alpha.resize(rgba.size, _lanczos())
            rgba.putalpha(alpha)
            return RasterBuffer.from_image(rgba, "PNG")


@dataclass(frozen=True)
class CompressedRaster:
    raster: RasterBuffer
    width: int
    height: int
    size_bytes: int
    original_size: int


def _lanczos():
    from PIL import Image

    return Image.Resampling.LANCZOS


def scaled_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    longest = max(width, height)
    if longest <= max_dimension:
        return width, height
    scale = max_dimension / longest
    return max(1, round(width * scale)), max(1, round(height * scale))


def exif_orientation(img: "Image.Image") -> int:
    return img.getexif().get(EXIF_ORIENTATION_TAG, 1)


def displayed_size(width: int, height: int, orientation: int) -> tuple[int, int]:
    """Pixel size after the EXIF orientation is applied; 5-8 swap the axes."""
    if orientation in (5, 6, 7, 8):
        return height, width
    return width, height


def flatten_on_white(img: "Image.Image") -> "Image.Image":
    """Composite any transparency onto a white background and return RGB."""
    from PIL import Image

    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    return img.convert("RGB")


def compress_raster(image: "ImageUnit", preset: "CompressionPreset") -> CompressedRaster:
    """
    Downscale to the preset's longest edge (if exceeded) and re-encode as JPEG.

    Returns the actual post-resize pixel dimensions.
    """
    from PIL import Image, ImageOps, UnidentifiedImageError

    try:
        with Image.open(io.BytesIO(image.data)) as src:
            img = ImageOps.exif_transpose(src)
            img = flatten_on_white(img)
            target = scaled_size(img.width, img.height, preset.max_dimension)
            if target != img.size:
                img = img.resize(target, _lanczos())
            raster = RasterBuffer.from_image(img, "JPEG", preset.quality)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageCompressionError(image.name, str(exc)) from exc

    return CompressedRaster(
        raster=raster,
        width=raster.width,
        height=raster.height,
        size_bytes=raster.size_bytes,
        original_size=image.size_bytes,
    )


def load_raster_original(image: "ImageUnit") -> RasterBuffer:
    """
    Decode without re-encoding. EXIF rotations are carried on the buffer
    for the writer to apply. Formats the writer cannot embed (e.g. WebP)
    and mirrored orientations are converted losslessly to an upright PNG.
    """
    from PIL import Image, ImageOps, UnidentifiedImageError

    try:
        with Image.open(io.BytesIO(image.data)) as img:
            img.load()
            orientation = exif_orientation(img)
            if img.format in EMBEDDABLE_FORMATS and orientation in ORIENTATION_ROTATION:
                rotate = ORIENTATION_ROTATION[orientation]
                width, height = displayed_size(img.width, img.height, orientation)
                return RasterBuffer(
                    data=image.data, width=width, height=height, format=img.format, rotate=rotate,
                )
            return RasterBuffer.from_image(ImageOps.exif_transpose(img), "PNG")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageDecodeError(image.name, str(exc)) from exc


class PillowRasterCodec:
    """Async adapter running the Pillow codecs in a worker thread, one image at a time."""

    async def compress_raster(self, image: "ImageUnit", preset: "CompressionPreset") -> CompressedRaster:
        return await asyncio.to_thread(compress_raster, image, preset)

    async def load_raster_original(self, image: "ImageUnit") -> RasterBuffer:
        return await asyncio.to_thread(load_raster_original, image)
