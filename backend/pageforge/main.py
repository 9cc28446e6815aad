"""
PageForge — Local FastAPI surface.

Binds to loopback by default; every conversion runs in this process and
nothing is uploaded anywhere.

Endpoints:
  POST /v1/estimate            — Predict output PDF size (no image decoding)
  POST /v1/images-to-pdf       — Image(s) → paginated PDF
  POST /v1/pdf-to-images       — PDF → zip of page images
  POST /v1/compress-pdf        — PDF → smaller, rasterised PDF
  POST /v1/remove-background   — Image → PNG with transparent background
  GET  /v1/options             — Page sizes, fit modes, presets, profiles
  GET  /health                 — Health check
"""

import io
import time
import uuid
import zipfile
from typing import Literal

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field, ValidationError

from pageforge.background.removal import (
    RESOLUTION_PROFILES,
    SegmentationService,
    remove_background_async,
)
from pageforge.compression.estimate import (
    estimate_output_size,
    estimate_savings_percent,
    format_file_size,
)
from pageforge.compression.presets import list_presets
from pageforge.core.config import settings
from pageforge.errors import (
    FileTooLargeError,
    InvalidSettingsError,
    PageForgeError,
    TooManyFilesError,
    TotalSizeExceededError,
)
from pageforge.models.image import (
    PAGE_DIMENSIONS,
    ConversionMode,
    DirectMode,
    FitMode,
    ImageUnit,
    OptimizedMode,
    Orientation,
    PageSize,
    PdfSettings,
    ProgressPhase,
)
from pageforge.pdf.compress import COMPRESSION_LEVELS, compress_pdf
from pageforge.pdf.image_to_pdf import ImagesToPdfJob
from pageforge.pdf.pdf_to_images import PdfToImageSettings, convert_pdf_to_images
from pageforge.utils.logging import logger
from pageforge.utils.validate import validate_image_uploads, validate_pdf_upload

VERSION = "1.0.0"

app = FastAPI(
    title="PageForge API",
    description=(
        "Convert images to PDF, PDF pages to images, compress PDFs and "
        "remove image backgrounds, entirely on this machine."
    ),
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://127.0.0.1"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[
        "X-Request-Id", "X-Page-Count", "X-Estimated-Size",
        "X-Original-Size", "X-Compressed-Size", "X-Job-Id",
    ],
)

_LIMIT_ERRORS = (FileTooLargeError, TooManyFilesError, TotalSizeExceededError)


@app.on_event("startup")
async def _startup():
    app.state.segmentation = SegmentationService(
        model_id=settings.segmentation.model_id,
        device=settings.segmentation.device,
    )
    logger.info("")
    logger.info("╔══════════════════════════════════════════════════╗")
    logger.info("║             PageForge  ·  Local API v1          ║")
    logger.info("╠══════════════════════════════════════════════════╣")
    logger.info("║  POST /v1/estimate           → Size prediction  ║")
    logger.info("║  POST /v1/images-to-pdf      → Images → PDF     ║")
    logger.info("║  POST /v1/pdf-to-images      → PDF → images     ║")
    logger.info("║  POST /v1/compress-pdf       → Smaller PDF      ║")
    logger.info("║  POST /v1/remove-background  → Transparent PNG  ║")
    logger.info("╠══════════════════════════════════════════════════╣")
    logger.info("║  Listening   : %-33s║", f"{settings.host}:{settings.port}")
    logger.info("║  Seg. model  : %-33s║", settings.segmentation.model_id)
    logger.info("╚══════════════════════════════════════════════════╝")
    logger.info("")


@app.on_event("shutdown")
async def _shutdown():
    service = getattr(app.state, "segmentation", None)
    if service is not None:
        service.release()


def _segmentation_service(request: Request) -> SegmentationService:
    service = getattr(request.app.state, "segmentation", None)
    if service is None:
        service = SegmentationService(
            model_id=settings.segmentation.model_id,
            device=settings.segmentation.device,
        )
        request.app.state.segmentation = service
    return service


def _to_http_error(request_id: str, exc: PageForgeError) -> HTTPException:
    logger.warning("[%s] PageForge error: %s", request_id, exc.code)
    status = 413 if isinstance(exc, _LIMIT_ERRORS) else 422
    return HTTPException(status_code=status, detail=exc.to_dict())


def _internal_error(request_id: str) -> HTTPException:
    return HTTPException(status_code=500, detail={
        "error_code": "INTERNAL_ERROR",
        "message": "Unexpected failure while processing the request",
        "request_id": request_id,
    })


# ──────────────────────────────────────────────────────────
# Request/Response models
# ──────────────────────────────────────────────────────────

class EstimateImage(BaseModel):
    size_bytes: int = Field(..., ge=0, description="Original file size in bytes")


class EstimateRequest(BaseModel):
    images: list[EstimateImage] = Field(default_factory=list)
    conversion_mode: ConversionMode = Field(default_factory=OptimizedMode)


# ──────────────────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    return {"status": "ok", "service": "pageforge", "version": VERSION}


@app.get("/v1/options")
async def get_options():
    """List every selectable option with its metadata."""
    return {
        "page_sizes": {
            size.value: {"width_mm": w, "height_mm": h} for size, (w, h) in PAGE_DIMENSIONS.items()
        },
        "orientations": [o.value for o in Orientation],
        "fit_modes": [f.value for f in FitMode],
        "presets": [p.model_dump() for p in list_presets()],
        "pdf_compression_levels": [c.model_dump() for c in COMPRESSION_LEVELS.values()],
        "resolution_profiles": [p.model_dump() for p in RESOLUTION_PROFILES.values()],
        "defaults": {
            "page_size": settings.defaults.page_size,
            "orientation": settings.defaults.orientation,
            "fit_mode": settings.defaults.fit_mode,
            "margin_mm": settings.defaults.margin_mm,
            "preset": settings.defaults.preset,
        },
    }


@app.post("/v1/estimate")
async def estimate(req: EstimateRequest):
    """Predict the output PDF size from input byte sizes alone."""
    size = estimate_output_size(req.images, req.conversion_mode)
    return {
        "estimated_bytes": size,
        "estimated_human": format_file_size(size),
        "original_bytes": sum(img.size_bytes for img in req.images),
        "savings_percent": estimate_savings_percent(req.images, req.conversion_mode),
    }


@app.post("/v1/images-to-pdf", response_class=Response)
async def images_to_pdf(
    files: list[UploadFile] = File(..., description="Images in page order"),
    page_size: PageSize = PageSize(settings.defaults.page_size),
    orientation: Orientation = Orientation(settings.defaults.orientation),
    fit_mode: FitMode = FitMode(settings.defaults.fit_mode),
    margin_mm: float = settings.defaults.margin_mm,
    mode: Literal["direct", "optimized"] = "optimized",
    preset: Literal["high", "balanced", "small", "verySmall"] = settings.defaults.preset,
):
    """
    Convert uploaded images into a single PDF, one image per page, in
    upload order.

    Data handling: No data is stored. Input is processed in memory and
    discarded after the PDF is returned.
    """
    request_id = uuid.uuid4().hex[:12]
    start = time.perf_counter()
    logger.info("[%s] POST /v1/images-to-pdf — %d files, mode=%s", request_id, len(files), mode)

    uploads: list[tuple[str, bytes]] = []
    for i, f in enumerate(files):
        uploads.append((f.filename or f"image-{i + 1}", await f.read()))

    def _log_progress(current: int, total: int, phase: ProgressPhase, message: str | None):
        logger.info("[%s]   %s %d/%d %s", request_id, phase.value, current, total, message or "")

    try:
        validate_image_uploads(uploads, settings.limits)
        images = [ImageUnit.from_bytes(name, data) for name, data in uploads]
        pdf_settings = PdfSettings(
            page_size=page_size,
            orientation=orientation,
            fit_mode=fit_mode,
            margin_mm=margin_mm,
            conversion_mode=DirectMode() if mode == "direct" else OptimizedMode(preset=preset),
        )
        job = ImagesToPdfJob(images, pdf_settings, on_progress=_log_progress)
        result = await job.run()
    except PageForgeError as exc:
        raise _to_http_error(request_id, exc)
    except ValidationError as exc:
        raise _to_http_error(request_id, InvalidSettingsError.from_validation_error(exc))
    except Exception:
        logger.exception("[%s] images-to-pdf failed", request_id)
        raise _internal_error(request_id)

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("[%s] Complete — %d bytes in %.0f ms", request_id, result.size_bytes, elapsed_ms)

    return Response(
        content=result.pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": 'attachment; filename="images.pdf"',
            "X-Request-Id": request_id,
            "X-Job-Id": result.job_id,
            "X-Page-Count": str(result.page_count),
            "X-Estimated-Size": str(result.estimated_size_bytes),
        },
    )


@app.post("/v1/pdf-to-images", response_class=Response)
async def pdf_to_images(
    file: UploadFile = File(..., description="PDF to rasterise"),
    format: Literal["png", "jpeg", "webp"] = "png",
    quality: float = 0.92,
    scale: float = 2.0,
):
    """Render every page to an image and return them as a zip archive."""
    request_id = uuid.uuid4().hex[:12]
    logger.info("[%s] POST /v1/pdf-to-images — %s", request_id, file.filename)

    content = await file.read()
    base_name = (file.filename or "document").rsplit(".", 1)[0]

    try:
        validate_pdf_upload(file.filename or "document.pdf", content, settings.limits)
        render_settings = PdfToImageSettings(format=format, quality=quality, scale=scale)
        images = convert_pdf_to_images(content, render_settings)
    except PageForgeError as exc:
        raise _to_http_error(request_id, exc)
    except ValidationError as exc:
        raise _to_http_error(request_id, InvalidSettingsError.from_validation_error(exc))
    except Exception:
        logger.exception("[%s] pdf-to-images failed", request_id)
        raise _internal_error(request_id)

    archive = io.BytesIO()
    with zipfile.ZipFile(archive, "w", zipfile.ZIP_STORED) as zf:
        for img in images:
            zf.writestr(img.filename(base_name), img.data)

    return Response(
        content=archive.getvalue(),
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{base_name}-pages.zip"',
            "X-Request-Id": request_id,
            "X-Page-Count": str(len(images)),
        },
    )


@app.post("/v1/compress-pdf", response_class=Response)
async def compress_pdf_endpoint(
    file: UploadFile = File(..., description="PDF to compress"),
    level: Literal["balanced", "aggressive"] = "balanced",
):
    """Re-encode every page as a JPEG image to reduce file size."""
    request_id = uuid.uuid4().hex[:12]
    logger.info("[%s] POST /v1/compress-pdf — %s level=%s", request_id, file.filename, level)

    content = await file.read()
    base_name = (file.filename or "document").rsplit(".", 1)[0]

    try:
        validate_pdf_upload(file.filename or "document.pdf", content, settings.limits)
        result = compress_pdf(content, level)
    except PageForgeError as exc:
        raise _to_http_error(request_id, exc)
    except Exception:
        logger.exception("[%s] compress-pdf failed", request_id)
        raise _internal_error(request_id)

    return Response(
        content=result.pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{base_name}-compressed.pdf"',
            "X-Request-Id": request_id,
            "X-Page-Count": str(result.page_count),
            "X-Original-Size": str(result.original_size),
            "X-Compressed-Size": str(result.compressed_size),
        },
    )


@app.post("/v1/remove-background", response_class=Response)
async def remove_background_endpoint(
    request: Request,
    file: UploadFile = File(..., description="Image to cut out"),
    resolution: Literal["high", "medium", "low"] = "medium",
):
    """Remove the background of one image; returns a PNG with alpha."""
    request_id = uuid.uuid4().hex[:12]
    logger.info("[%s] POST /v1/remove-background — %s (%s)", request_id, file.filename, resolution)

    content = await file.read()
    name = file.filename or "image"

    try:
        validate_image_uploads([(name, content)], settings.limits)
        result = await remove_background_async(content, resolution, _segmentation_service(request))
    except PageForgeError as exc:
        raise _to_http_error(request_id, exc)
    except Exception:
        logger.exception("[%s] remove-background failed", request_id)
        raise _internal_error(request_id)

    return Response(
        content=result.data,
        media_type="image/png",
        headers={
            "Content-Disposition": f'attachment; filename="{name.rsplit(".", 1)[0]}-no-bg.png"',
            "X-Request-Id": request_id,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level="debug" if settings.debug else "info")
