"""Unit tests for the output size estimator."""

import pytest
from pageforge.compression.estimate import (
    DOCUMENT_OVERHEAD_BYTES,
    PAGE_OVERHEAD_BYTES,
    estimate_output_size,
    estimate_savings_percent,
    format_file_size,
)
from pageforge.models.image import DirectMode, ImageUnit, OptimizedMode

MB = 1024 * 1024
KB = 1024


def _images(*sizes):
    return [ImageUnit(name=f"img-{i}.jpg", width=100, height=100, size_bytes=s) for i, s in enumerate(sizes)]


class TestEstimateOutputSize:
    def test_empty_list_is_zero(self):
        assert estimate_output_size([], OptimizedMode(preset="balanced")) == 0
        assert estimate_output_size([], DirectMode()) == 0

    def test_direct_mode_three_images(self):
        images = _images(1 * MB, 2 * MB, MB // 2)
        expected = int(3.5 * MB) + 50 * KB + 3 * 2 * KB
        assert estimate_output_size(images, DirectMode()) == expected

    def test_overhead_constants(self):
        assert DOCUMENT_OVERHEAD_BYTES == 50 * KB
        assert PAGE_OVERHEAD_BYTES == 2 * KB

    @pytest.mark.parametrize("preset,ratio", [
        ("high", 0.75), ("balanced", 0.5), ("small", 0.35), ("verySmall", 0.2),
    ])
    def test_optimized_ratio(self, preset, ratio):
        images = _images(1_000_000)
        expected = round(1_000_000 * ratio) + DOCUMENT_OVERHEAD_BYTES + PAGE_OVERHEAD_BYTES
        assert estimate_output_size(images, OptimizedMode(preset=preset)) == expected

    def test_presets_are_monotonic(self):
        images = _images(3 * MB, 700 * KB)
        sizes = [
            estimate_output_size(images, DirectMode()),
            estimate_output_size(images, OptimizedMode(preset="high")),
            estimate_output_size(images, OptimizedMode(preset="balanced")),
            estimate_output_size(images, OptimizedMode(preset="small")),
            estimate_output_size(images, OptimizedMode(preset="verySmall")),
        ]
        assert sizes == sorted(sizes, reverse=True)

    def test_rounds_half_up(self):
        # 3 bytes * 0.5 = 1.5 → 2
        images = _images(3)
        base = DOCUMENT_OVERHEAD_BYTES + PAGE_OVERHEAD_BYTES
        assert estimate_output_size(images, OptimizedMode(preset="balanced")) == base + 2

    def test_accepts_any_object_with_size_bytes(self):
        class Sized:
            def __init__(self, size_bytes):
                self.size_bytes = size_bytes

        assert estimate_output_size([Sized(0)], DirectMode()) == DOCUMENT_OVERHEAD_BYTES + PAGE_OVERHEAD_BYTES


class TestSavingsPercent:
    def test_direct_mode_has_no_savings(self):
        assert estimate_savings_percent(_images(MB), DirectMode()) == 0

    def test_zero_original_size(self):
        assert estimate_savings_percent(_images(0), OptimizedMode()) == 0

    def test_balanced_large_input(self):
        # overhead is negligible against 100MB
        assert estimate_savings_percent(_images(100 * MB), OptimizedMode(preset="balanced")) == 50


class TestFormatFileSize:
    @pytest.mark.parametrize("num_bytes,expected", [
        (0, "0 B"),
        (512, "512.0 B"),
        (1024, "1.0 KB"),
        (1536, "1.5 KB"),
        (MB, "1.0 MB"),
        (int(2.5 * 1024 * MB), "2.5 GB"),
    ])
    def test_formats(self, num_bytes, expected):
        assert format_file_size(num_bytes) == expected
