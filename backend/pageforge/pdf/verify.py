"""
PageForge — Output PDF verification.

Inspects a produced PDF locally with pymupdf (fitz) to confirm the
pagination contract held.

Checks:
  1. PDF opens and parses
  2. Page count equals image count
  3. Every page is sized per the page profile and orientation
  4. Every page carries exactly one image
  5. Document is not encrypted
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from pageforge.layout.geometry import mm_to_points
from pageforge.models.job import VerificationResult
from pageforge.utils.logging import logger, step_timer

PAGE_SIZE_TOLERANCE_PT = 0.5


@dataclass
class VerifyExpectations:
    expected_pages: int
    page_width_mm: float
    page_height_mm: float


def verify_output(pdf_bytes: bytes, expectations: VerifyExpectations) -> VerificationResult:
    try:
        import fitz
    except ImportError:
        logger.warning("pymupdf not installed — skipping verification")
        return VerificationResult(
            checks_passed=0, checks_total=0, passed=True,
            file_size=len(pdf_bytes),
            content_hash=hashlib.sha256(pdf_bytes).hexdigest(),
        )

    with step_timer("Verify PDF"):
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        checks: dict[str, bool] = {}

        checks["opens_and_parses"] = len(doc) > 0
        checks["page_count_matches"] = len(doc) == expectations.expected_pages

        want_w = mm_to_points(expectations.page_width_mm)
        want_h = mm_to_points(expectations.page_height_mm)
        checks["page_sizes_match"] = all(
            abs(page.rect.width - want_w) <= PAGE_SIZE_TOLERANCE_PT
            and abs(page.rect.height - want_h) <= PAGE_SIZE_TOLERANCE_PT
            for page in doc
        )

        checks["one_image_per_page"] = all(len(page.get_images()) == 1 for page in doc)
        checks["not_encrypted"] = not doc.is_encrypted

        passed_count = sum(checks.values())
        total_count = len(checks)

        result = VerificationResult(
            page_count=len(doc),
            expected_pages=expectations.expected_pages,
            page_sizes_match=checks["page_sizes_match"],
            images_per_page_ok=checks["one_image_per_page"],
            is_encrypted=doc.is_encrypted,
            file_size=len(pdf_bytes),
            content_hash=hashlib.sha256(pdf_bytes).hexdigest(),
            checks_passed=passed_count,
            checks_total=total_count,
            passed=passed_count == total_count,
        )

        doc.close()

        logger.info(
            "  Verification: %d/%d checks passed %s",
            passed_count, total_count,
            "✓" if result.passed else "✗",
        )
        return result
