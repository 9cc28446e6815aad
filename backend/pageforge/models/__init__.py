"""PageForge data models — typed contracts for every conversion."""

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
    ProgressReport,
)
from pageforge.models.job import (
    ConversionResult,
    JobState,
    StepTiming,
    VerificationResult,
)

__all__ = [
    "PAGE_DIMENSIONS",
    "ConversionMode",
    "DirectMode",
    "FitMode",
    "ImageUnit",
    "OptimizedMode",
    "Orientation",
    "PageSize",
    "PdfSettings",
    "ProgressPhase",
    "ProgressReport",
    "ConversionResult",
    "JobState",
    "StepTiming",
    "VerificationResult",
]
