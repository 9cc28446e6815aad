"""
PageForge — Conversion run state and output contracts.

Every images → PDF run returns a ConversionResult with full traceability:
timings, hashes, the size prediction and verification results.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, Field


class JobState(str, enum.Enum):
    IDLE = "idle"
    COMPRESSING = "compressing"
    PROCESSING = "processing"
    PLACING = "placing"
    COMPLETE = "complete"
    ERROR = "error"


class StepTiming(BaseModel):
    step: str
    duration_ms: int
    status: str = "ok"  # ok | skipped | failed
    detail: str = ""


class VerificationResult(BaseModel):
    page_count: int = 0
    expected_pages: int = 0
    page_sizes_match: bool = False
    images_per_page_ok: bool = False
    is_encrypted: bool = False
    file_size: int = 0
    content_hash: str = ""
    checks_passed: int = 0
    checks_total: int = 0
    passed: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "page_count": 3,
                "expected_pages": 3,
                "page_sizes_match": True,
                "images_per_page_ok": True,
                "is_encrypted": False,
                "checks_passed": 5,
                "checks_total": 5,
                "passed": True,
            }
        }


class ConversionResult(BaseModel):
    """Complete output contract for every images → PDF run."""

    job_id: str
    pdf: bytes = Field(default=b"", repr=False, exclude=True)
    page_count: int = 0
    size_bytes: int = 0
    estimated_size_bytes: int = 0
    content_hash: str = ""  # SHA-256 of the output PDF
    mode: str = "direct"
    timings: list[StepTiming] = Field(default_factory=list)
    verification: VerificationResult | None = None
