"""
PageForge — Output size estimator.

Closed-form prediction over byte sizes and page count. Never decodes or
re-encodes image content, so it is cheap enough to run on every settings
change.
"""

from __future__ import annotations

import math
from typing import Protocol, Sequence

from pageforge.compression.presets import ESTIMATE_RATIOS
from pageforge.models.image import ConversionMode, OptimizedMode

DOCUMENT_OVERHEAD_BYTES = 50 * 1024
PAGE_OVERHEAD_BYTES = 2 * 1024


class HasByteSize(Protocol):
    size_bytes: int


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def estimate_output_size(images: Sequence[HasByteSize], mode: ConversionMode) -> int:
    """
    Predict the output PDF size in bytes.

    Direct mode embeds images as-is; optimized mode scales the summed
    input size by the preset's empirical ratio. Both add a fixed
    per-document and per-page overhead. An empty list is exactly 0.
    """
    if len(images) == 0:
        return 0

    total = sum(img.size_bytes for img in images)
    if isinstance(mode, OptimizedMode):
        total = total * ESTIMATE_RATIOS[mode.preset]

    overhead = DOCUMENT_OVERHEAD_BYTES + len(images) * PAGE_OVERHEAD_BYTES
    return _round_half_up(total + overhead)


def estimate_savings_percent(images: Sequence[HasByteSize], mode: ConversionMode) -> int:
    """Predicted reduction against the summed input size; only meaningful for optimized mode."""
    if not isinstance(mode, OptimizedMode):
        return 0
    original = sum(img.size_bytes for img in images)
    if original <= 0:
        return 0
    return _round_half_up((1 - estimate_output_size(images, mode) / original) * 100)


def format_file_size(num_bytes: int) -> str:
    if num_bytes == 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{value:.1f} {units[i]}"
