"""
PageForge — Structured error catalog.

Every error has a code, human message, and suggested fix.
No raw exceptions leak to the HTTP surface.
"""

from __future__ import annotations

from typing import Any


class PageForgeError(Exception):
    """Base error with structured code + suggestion."""

    def __init__(self, code: str, message: str, suggestion: str = "", detail: Any = None):
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "error_code": self.code,
            "message": self.message,
        }
        if self.suggestion:
            d["suggestion"] = self.suggestion
        if self.detail:
            d["detail"] = self.detail
        return d


# ──────────────────────────────────────────────────────────
# Conversion run failures
# ──────────────────────────────────────────────────────────

class ConversionError(PageForgeError):
    """A conversion run aborted on a specific image."""

    def __init__(self, code: str, image_name: str, phase: str, message: str, suggestion: str):
        self.image_name = image_name
        self.phase = phase
        super().__init__(
            code=code,
            message=message,
            suggestion=suggestion,
            detail={"image": image_name, "phase": phase},
        )


class EmptyInputError(PageForgeError):
    def __init__(self):
        super().__init__(
            code="EMPTY_INPUT",
            message="No images were supplied for conversion",
            suggestion="Add at least one image before converting.",
        )


class ImageDecodeError(ConversionError):
    def __init__(self, image_name: str, reason: str = ""):
        super().__init__(
            code="IMAGE_DECODE_FAILED",
            image_name=image_name,
            phase="processing",
            message=f"Failed to process image: {image_name}" + (f" ({reason})" if reason else ""),
            suggestion="Remove the image or re-save it as JPEG or PNG, then convert again.",
        )


class ImageCompressionError(ConversionError):
    def __init__(self, image_name: str, reason: str = ""):
        super().__init__(
            code="IMAGE_COMPRESSION_FAILED",
            image_name=image_name,
            phase="compressing",
            message=f"Failed to compress image: {image_name}" + (f" ({reason})" if reason else ""),
            suggestion="Remove the image, or switch to direct mode to embed it unchanged.",
        )


class PageWriteError(ConversionError):
    def __init__(self, image_name: str, reason: str = ""):
        super().__init__(
            code="PAGE_WRITE_FAILED",
            image_name=image_name,
            phase="placing",
            message=f"Failed to place image on page: {image_name}" + (f" ({reason})" if reason else ""),
            suggestion="Check the margin against the page size, then convert again.",
        )


class DocumentWriteError(PageForgeError):
    """The writer failed to serialize the finished document."""

    def __init__(self, reason: str = ""):
        super().__init__(
            code="DOCUMENT_WRITE_FAILED",
            message="Failed to write the PDF document" + (f" ({reason})" if reason else ""),
            suggestion="Retry the conversion; if it keeps failing, try fewer or smaller images.",
            detail={"phase": "placing"},
        )


# ──────────────────────────────────────────────────────────
# Input validation
# ──────────────────────────────────────────────────────────

class InvalidFileTypeError(PageForgeError):
    def __init__(self, filename: str, expected: str):
        super().__init__(
            code="INVALID_FILE_TYPE",
            message=f"File content is not a valid {expected}: {filename}",
            suggestion="Allowed image types: jpg, jpeg, png, webp. PDFs must start with %PDF-.",
        )


class FileTooLargeError(PageForgeError):
    def __init__(self, filename: str, size_mb: float, limit_mb: float):
        super().__init__(
            code="FILE_TOO_LARGE",
            message=f"File exceeds {limit_mb:g}MB limit: {filename} ({size_mb:.1f}MB)",
            suggestion="Compress or resize the file before adding it.",
        )


class TooManyFilesError(PageForgeError):
    def __init__(self, count: int, limit: int):
        super().__init__(
            code="TOO_MANY_FILES",
            message=f"{count} files supplied, at most {limit} are allowed",
            suggestion="Split the images into several documents.",
        )


class TotalSizeExceededError(PageForgeError):
    def __init__(self, size_mb: float, limit_mb: float):
        super().__init__(
            code="TOTAL_SIZE_EXCEEDED",
            message=f"Total input size {size_mb:.1f}MB exceeds {limit_mb:g}MB limit",
            suggestion="Remove some images or split them into several documents.",
        )


class InvalidLayoutError(PageForgeError):
    def __init__(self, margin_mm: float, page_width: float, page_height: float):
        super().__init__(
            code="INVALID_LAYOUT",
            message=(
                f"Margin {margin_mm:g}mm leaves no content area on a "
                f"{page_width:g}x{page_height:g}mm page"
            ),
            suggestion="Use a margin smaller than half the shorter page side.",
        )


class InvalidSettingsError(PageForgeError):
    """Settings failed model validation; detail lists each offending field."""

    def __init__(self, problems: list[dict[str, str]]):
        fields = ", ".join(p["field"] for p in problems)
        super().__init__(
            code="INVALID_SETTINGS",
            message=f"Invalid settings: {fields}" if fields else "Invalid settings",
            suggestion="Check the listed fields against GET /v1/options.",
            detail=problems,
        )

    @classmethod
    def from_validation_error(cls, exc: Any) -> "InvalidSettingsError":
        """Build from a pydantic ValidationError, keeping only field paths and messages."""
        problems = [
            {"field": ".".join(str(part) for part in err["loc"]) or "settings", "message": err["msg"]}
            for err in exc.errors(include_url=False)
        ]
        return cls(problems)


class UnknownOptionError(PageForgeError):
    def __init__(self, kind: str, value: str, allowed: list[str]):
        super().__init__(
            code="UNKNOWN_OPTION",
            message=f"Unknown {kind}: {value}",
            suggestion=f"Use one of: {', '.join(allowed)}.",
        )


# ──────────────────────────────────────────────────────────
# PDF reading / rendering
# ──────────────────────────────────────────────────────────

class PdfOpenError(PageForgeError):
    def __init__(self, reason: str = ""):
        super().__init__(
            code="PDF_OPEN_FAILED",
            message="Could not open PDF" + (f": {reason}" if reason else ""),
            suggestion="Check that the file is a valid, unencrypted PDF.",
        )


class PdfEmptyError(PageForgeError):
    def __init__(self):
        super().__init__(
            code="PDF_EMPTY",
            message="PDF has no pages",
            suggestion="Choose a PDF with at least one page.",
        )


class PageRenderError(PageForgeError):
    def __init__(self, page_number: int, reason: str = ""):
        self.page_number = page_number
        super().__init__(
            code="PAGE_RENDER_FAILED",
            message=f"Failed to render page {page_number}" + (f": {reason}" if reason else ""),
            suggestion="Try a lower scale, or check the PDF in another viewer.",
            detail={"page": page_number},
        )


# ──────────────────────────────────────────────────────────
# Background removal
# ──────────────────────────────────────────────────────────

class SegmentationUnavailableError(PageForgeError):
    def __init__(self, model_id: str, reason: str = ""):
        super().__init__(
            code="SEGMENTATION_UNAVAILABLE",
            message=f"Segmentation model could not be loaded: {model_id}" + (f" ({reason})" if reason else ""),
            suggestion="Install the 'background' extra (pip install pageforge[background]) and retry.",
        )


class SegmentationError(PageForgeError):
    def __init__(self, message: str):
        super().__init__(
            code="SEGMENTATION_FAILED",
            message=f"Background removal failed: {message}",
            suggestion="Try a lower resolution profile or a different image.",
        )
