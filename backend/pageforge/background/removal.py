"""
PageForge — Background removal.

Runs a pretrained segmentation model over a single image and applies the
predicted foreground mask as the alpha channel. The model handle lives in
a SegmentationService owned by the caller: acquire() caches a successful
load and never caches a failure, so the next call retries.
"""

from __future__ import annotations

import asyncio
import io
import threading
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from pageforge.errors import SegmentationError, SegmentationUnavailableError, UnknownOptionError
from pageforge.raster import RasterBuffer
from pageforge.utils.logging import logger, step_timer


class ResolutionProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    max_dimension: int
    label: str
    description: str
    warning: str | None = None


RESOLUTION_PROFILES: dict[str, ResolutionProfile] = {
    "high": ResolutionProfile(
        id="high",
        max_dimension=4096,
        label="High",
        description="Preserve original resolution (up to 4096px)",
        warning="Processing may take significantly longer for large images.",
    ),
    "medium": ResolutionProfile(
        id="medium",
        max_dimension=2048,
        label="Medium",
        description="Balanced resolution for web & documents",
    ),
    "low": ResolutionProfile(
        id="low",
        max_dimension=1024,
        label="Low",
        description="Small file size, faster processing",
    ),
}


def get_resolution_profile(profile_id: str) -> ResolutionProfile:
    profile = RESOLUTION_PROFILES.get(profile_id)
    if profile is None:
        raise UnknownOptionError("resolution profile", profile_id, list(RESOLUTION_PROFILES))
    return profile


def _transformers_loader(model_id: str, device: str) -> Callable[[Any], Any]:
    try:
        from transformers import pipeline
    except ImportError as exc:
        raise SegmentationUnavailableError(model_id, "transformers is not installed") from exc

    return pipeline("image-segmentation", model=model_id, trust_remote_code=True, device=device)


class SegmentationService:
    """Lazily-loaded segmentation model with an explicit lifecycle."""

    def __init__(
        self,
        model_id: str = "briaai/RMBG-1.4",
        device: str = "cpu",
        loader: Callable[[str, str], Callable[[Any], Any]] | None = None,
    ):
        self.model_id = model_id
        self.device = device
        self._loader = loader or _transformers_loader
        self._handle: Callable[[Any], Any] | None = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._handle is not None

    def acquire(self) -> Callable[[Any], Any]:
        with self._lock:
            if self._handle is not None:
                return self._handle
            with step_timer(f"Load segmentation model {self.model_id}"):
                try:
                    self._handle = self._loader(self.model_id, self.device)
                except SegmentationUnavailableError:
                    raise
                except Exception as exc:
                    logger.warning("  Model load failed, will retry on next call: %s", exc)
                    raise SegmentationUnavailableError(self.model_id, str(exc)) from exc
            return self._handle

    def release(self) -> None:
        with self._lock:
            self._handle = None

    def predict_mask(self, image: Any) -> Any:
        """Return a single-channel PIL mask for the foreground of image."""
        segmenter = self.acquire()
        output = segmenter(image)

        # Generic pipelines return [{"mask": ...}]; RMBG's returns the mask image
        if isinstance(output, list):
            mask = output[0].get("mask") if output else None
        else:
            mask = output
        if mask is None:
            raise SegmentationError("Segmentation returned no mask")
        # A cut-out image already carries the mask in its alpha channel
        if getattr(mask, "mode", None) == "RGBA":
            mask = mask.getchannel("A")
        return mask


def remove_background(image_bytes: bytes, resolution: str, service: SegmentationService) -> RasterBuffer:
    """Downscale to the profile cap, segment, and return a PNG with alpha."""
    from PIL import Image, UnidentifiedImageError

    profile = get_resolution_profile(resolution)

    with step_timer(f"Remove background ({profile.id})"):
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                source = RasterBuffer.from_image(img, "PNG")
        except (UnidentifiedImageError, OSError) as exc:
            raise SegmentationError(f"could not decode image ({exc})") from exc

        resized = source.resize_to_max(profile.max_dimension)
        with resized.decode() as decoded:
            mask = service.predict_mask(decoded.convert("RGB"))

        result = resized.composite_alpha(mask)
        logger.info(
            "  Background removed: %dx%d → %d bytes PNG",
            result.width, result.height, result.size_bytes,
        )
        return result


async def remove_background_async(
    image_bytes: bytes, resolution: str, service: SegmentationService
) -> RasterBuffer:
    return await asyncio.to_thread(remove_background, image_bytes, resolution, service)