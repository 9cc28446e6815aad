"""
PageForge — Images → PDF pagination driver.

Runs one conversion as a state machine:

  IDLE → COMPRESSING* | PROCESSING* → PLACING* → COMPLETE
  (ERROR reachable from any non-terminal state)

First pass prepares every image in input order: re-encoded through the
compression preset (optimized mode) or loaded in its original encoding
(direct mode). Second pass places each prepared raster on its own page.
Every image is handled strictly one after another; the document builder
is owned by a single run and never shared.
"""

from __future__ import annotations

import hashlib
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence

from pageforge.compression.estimate import estimate_output_size, format_file_size
from pageforge.compression.presets import CompressionPreset, get_preset
from pageforge.errors import (
    DocumentWriteError,
    EmptyInputError,
    ImageCompressionError,
    ImageDecodeError,
    InvalidLayoutError,
    PageForgeError,
    PageWriteError,
)
from pageforge.layout.geometry import available_area, page_dimensions
from pageforge.layout.placement import place_image
from pageforge.models.image import ImageUnit, OptimizedMode, PdfSettings, ProgressPhase, ProgressReport
from pageforge.models.job import ConversionResult, JobState, StepTiming, VerificationResult
from pageforge.pdf.verify import VerifyExpectations, verify_output
from pageforge.pdf.writer import DocumentWriter, FitzDocumentWriter
from pageforge.raster import CompressedRaster, PillowRasterCodec, RasterBuffer
from pageforge.utils.logging import logger, step_timer

ProgressCallback = Callable[[int, int, ProgressPhase, Optional[str]], None]


class RasterCodec(Protocol):
    async def compress_raster(self, image: ImageUnit, preset: CompressionPreset) -> CompressedRaster: ...

    async def load_raster_original(self, image: ImageUnit) -> RasterBuffer: ...


@dataclass
class PreparedImage:
    name: str
    raster: RasterBuffer
    width: int
    height: int


class ImagesToPdfJob:
    """
    State-machine driver for one images → PDF run.

    The image sequence is snapshotted at construction, so reordering the
    caller's list afterwards only affects future runs. A run is single
    pass: any failure aborts it and no partial document is returned.
    """

    def __init__(
        self,
        images: Sequence[ImageUnit],
        settings: PdfSettings,
        on_progress: ProgressCallback | None = None,
        codec: RasterCodec | None = None,
        writer: DocumentWriter | None = None,
        verify: bool = False,
    ):
        self.job_id = uuid.uuid4().hex[:12]
        self.images: tuple[ImageUnit, ...] = tuple(images)
        self.settings = settings
        self.on_progress = on_progress
        self.codec = codec or PillowRasterCodec()
        self.writer = writer or FitzDocumentWriter()
        self.verify = verify
        self.state = JobState.IDLE
        self.progress = ProgressReport(total=len(self.images))
        self.timings: list[StepTiming] = []

    @property
    def total(self) -> int:
        return len(self.images)

    def _record_step(self, name: str, start: float, status: str = "ok", detail: str = ""):
        ms = int((time.perf_counter() - start) * 1000)
        self.timings.append(StepTiming(step=name, duration_ms=ms, status=status, detail=detail))
        symbol = "✓" if status == "ok" else ("⊘" if status == "skipped" else "✗")
        logger.info("  %s %s — %dms %s", symbol, name, ms, detail)

    def _report(self, current: int, phase: ProgressPhase, message: str | None = None):
        self.progress = ProgressReport(current=current, total=self.total, phase=phase, message=message)
        if self.on_progress is not None:
            self.on_progress(current, self.total, phase, message)

    def _fail_before_start(self, exc: PageForgeError):
        self.state = JobState.ERROR
        self._report(0, ProgressPhase.ERROR, exc.message)
        logger.error("[%s] Run rejected: %s", self.job_id, exc.message)
        raise exc

    async def run(self) -> ConversionResult:
        """Execute the full run. Returns a ConversionResult carrying the PDF bytes."""
        if not self.images:
            self._fail_before_start(EmptyInputError())

        page_w, page_h = page_dimensions(self.settings.page_size, self.settings.orientation)
        avail_w, avail_h = available_area(page_w, page_h, self.settings.margin_mm)
        if avail_w <= 0 or avail_h <= 0:
            self._fail_before_start(InvalidLayoutError(self.settings.margin_mm, page_w, page_h))

        mode = self.settings.conversion_mode
        estimated = estimate_output_size(self.images, mode)
        logger.info(
            "[%s] Images → PDF: %d images, %s %s, fit=%s margin=%gmm mode=%s (estimated %s)",
            self.job_id, self.total, self.settings.page_size.value, self.settings.orientation.value,
            self.settings.fit_mode.value, self.settings.margin_mm, mode.kind, format_file_size(estimated),
        )

        run_start = time.perf_counter()
        verification: VerificationResult | None = None
        try:
            with step_timer("Convert images → PDF"):
                prepared = await self._step_prepare()
                pdf_bytes = await self._step_paginate(prepared, page_w, page_h)
            if self.verify:
                verification = self._step_verify(pdf_bytes, page_w, page_h)
        except PageForgeError as exc:
            self.state = JobState.ERROR
            self._report(self.progress.current, ProgressPhase.ERROR, exc.message)
            logger.error("[%s] Run aborted: %s", self.job_id, exc.message)
            raise
        except Exception:
            self.state = JobState.ERROR
            self._report(self.progress.current, ProgressPhase.ERROR, "Failed to generate PDF")
            logger.exception("[%s] Run failed", self.job_id)
            raise

        self.state = JobState.COMPLETE
        self._report(self.total, ProgressPhase.COMPLETE, "PDF generated successfully!")

        total_ms = int((time.perf_counter() - run_start) * 1000)
        logger.info(
            "[%s] Run complete — %d pages, %s (estimated %s), %dms",
            self.job_id, self.total, format_file_size(len(pdf_bytes)),
            format_file_size(estimated), total_ms,
        )

        return ConversionResult(
            job_id=self.job_id,
            pdf=pdf_bytes,
            page_count=self.total,
            size_bytes=len(pdf_bytes),
            estimated_size_bytes=estimated,
            content_hash=hashlib.sha256(pdf_bytes).hexdigest(),
            mode=mode.kind,
            timings=self.timings,
            verification=verification,
        )

    async def _step_prepare(self) -> list[PreparedImage]:
        t = time.perf_counter()
        mode = self.settings.conversion_mode
        prepared: list[PreparedImage] = []

        if isinstance(mode, OptimizedMode):
            preset = get_preset(mode.preset)
            self.state = JobState.COMPRESSING
            saved = 0
            for i, image in enumerate(self.images, start=1):
                try:
                    compressed = await self.codec.compress_raster(image, preset)
                except ImageCompressionError:
                    raise
                except Exception as exc:
                    raise ImageCompressionError(image.name, getattr(exc, "message", str(exc))) from exc
                prepared.append(PreparedImage(image.name, compressed.raster, compressed.width, compressed.height))
                saved += image.size_bytes - compressed.size_bytes
                self._report(i, ProgressPhase.COMPRESSING, f"Compressed {image.name}")
            self._record_step("compress", t, detail=f"{preset.id}, saved {format_file_size(max(saved, 0))}")
        else:
            self.state = JobState.PROCESSING
            for i, image in enumerate(self.images, start=1):
                try:
                    raster = await self.codec.load_raster_original(image)
                except ImageDecodeError:
                    raise
                except Exception as exc:
                    raise ImageDecodeError(image.name, getattr(exc, "message", str(exc))) from exc
                prepared.append(PreparedImage(image.name, raster, raster.width, raster.height))
                self._report(i, ProgressPhase.PROCESSING, f"Loaded {image.name}")
            self._record_step("load", t, detail="original encoding")

        return prepared

    async def _step_paginate(self, prepared: list[PreparedImage], page_w: float, page_h: float) -> bytes:
        t = time.perf_counter()
        self.state = JobState.PLACING
        s = self.settings
        handle: Any = None

        try:
            i = 0
            while prepared:
                item = prepared.pop(0)
                placement = place_image(item.width, item.height, page_w, page_h, s.margin_mm, s.fit_mode)
                try:
                    if i == 0:
                        handle = self.writer.create_document(page_w, page_h, s.orientation.value)
                    else:
                        self.writer.add_page(handle, page_w, page_h)
                    self.writer.place_raster(
                        handle, item.raster,
                        placement.x, placement.y, placement.width, placement.height,
                    )
                except Exception as exc:
                    raise PageWriteError(item.name, str(exc)) from exc

                logger.info(
                    "  Page %d: %s at (%.2f, %.2f) %.2f×%.2fmm (%d bytes)",
                    i + 1, item.name, placement.x, placement.y,
                    placement.width, placement.height, item.raster.size_bytes,
                )
                del item
                i += 1
                self._report(i, ProgressPhase.PLACING, f"Placed page {i} of {self.total}")

            try:
                pdf_bytes = self.writer.finalize_document(handle)
            except Exception as exc:
                raise DocumentWriteError(str(exc)) from exc
            handle = None
        except PageForgeError:
            self._record_step("paginate", t, "failed")
            raise
        finally:
            if handle is not None:
                self.writer.discard_document(handle)

        self._record_step("paginate", t, detail=f"{len(self.images)} pages → {len(pdf_bytes)} bytes")
        return pdf_bytes

    def _step_verify(self, pdf_bytes: bytes, page_w: float, page_h: float) -> VerificationResult:
        t = time.perf_counter()
        verification = verify_output(
            pdf_bytes,
            VerifyExpectations(expected_pages=self.total, page_width_mm=page_w, page_height_mm=page_h),
        )
        self._record_step(
            "verify", t,
            detail=f"{verification.checks_passed}/{verification.checks_total} checks",
        )
        return verification


async def run_images_to_pdf(
    images: Sequence[ImageUnit],
    settings: PdfSettings,
    on_progress: ProgressCallback | None = None,
    codec: RasterCodec | None = None,
    writer: DocumentWriter | None = None,
) -> bytes:
    """Convert an ordered list of images into one PDF and return its bytes."""
    job = ImagesToPdfJob(images, settings, on_progress=on_progress, codec=codec, writer=writer)
    result = await job.run()
    return result.pdf
