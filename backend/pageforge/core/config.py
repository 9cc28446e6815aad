"""
PageForge — Local configuration.
Loads .env automatically, then reads all settings from environment variables.
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from pageforge.compression.presets import PRESETS
from pageforge.models.image import FitMode, Orientation, PageSize

_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)


@dataclass(frozen=True)
class UploadLimits:
    """Per-request input limits."""
    max_file_size_mb: float
    max_files: int
    max_total_size_mb: float

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    @property
    def max_total_size_bytes(self) -> int:
        return int(self.max_total_size_mb * 1024 * 1024)


@dataclass(frozen=True)
class ConversionDefaults:
    """Settings used when a caller omits them."""
    page_size: str
    orientation: str
    fit_mode: str
    margin_mm: float
    preset: str


@dataclass(frozen=True)
class SegmentationConfig:
    """Background-removal model settings."""
    model_id: str
    device: str


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""
    host: str
    port: int
    debug: bool
    limits: UploadLimits
    defaults: ConversionDefaults
    segmentation: SegmentationConfig


def _load_config() -> AppConfig:
    return AppConfig(
        host=os.getenv("PAGEFORGE_HOST", "127.0.0.1"),
        port=int(os.getenv("PAGEFORGE_PORT", "8000")),
        debug=os.getenv("PAGEFORGE_DEBUG", "false").lower() == "true",
        limits=UploadLimits(
            max_file_size_mb=float(os.getenv("PAGEFORGE_MAX_FILE_SIZE_MB", "10")),
            max_files=int(os.getenv("PAGEFORGE_MAX_FILES", "20")),
            max_total_size_mb=float(os.getenv("PAGEFORGE_MAX_TOTAL_SIZE_MB", "100")),
        ),
        defaults=ConversionDefaults(
            page_size=os.getenv("PAGEFORGE_PAGE_SIZE", "a4"),
            orientation=os.getenv("PAGEFORGE_ORIENTATION", "portrait"),
            fit_mode=os.getenv("PAGEFORGE_FIT_MODE", "fit"),
            margin_mm=float(os.getenv("PAGEFORGE_MARGIN_MM", "10")),
            preset=os.getenv("PAGEFORGE_PRESET", "balanced"),
        ),
        segmentation=SegmentationConfig(
            model_id=os.getenv("PAGEFORGE_SEGMENTATION_MODEL", "briaai/RMBG-1.4"),
            device=os.getenv("PAGEFORGE_SEGMENTATION_DEVICE", "cpu"),
        ),
    )


def _validate_config(cfg: AppConfig) -> None:
    """Fail fast on limits or defaults that can never work."""
    problems: list[str] = []
    if cfg.limits.max_file_size_mb <= 0:
        problems.append("PAGEFORGE_MAX_FILE_SIZE_MB must be positive")
    if cfg.limits.max_files < 1:
        problems.append("PAGEFORGE_MAX_FILES must be at least 1")
    if cfg.limits.max_total_size_mb < cfg.limits.max_file_size_mb:
        problems.append("PAGEFORGE_MAX_TOTAL_SIZE_MB must not be below the per-file limit")
    if cfg.defaults.margin_mm < 0:
        problems.append("PAGEFORGE_MARGIN_MM must not be negative")
    for env_name, value, allowed in (
        ("PAGEFORGE_PAGE_SIZE", cfg.defaults.page_size, [p.value for p in PageSize]),
        ("PAGEFORGE_ORIENTATION", cfg.defaults.orientation, [o.value for o in Orientation]),
        ("PAGEFORGE_FIT_MODE", cfg.defaults.fit_mode, [m.value for m in FitMode]),
        ("PAGEFORGE_PRESET", cfg.defaults.preset, list(PRESETS)),
    ):
        if value not in allowed:
            problems.append(f"{env_name} must be one of {', '.join(allowed)} (got {value!r})")
    if problems:
        print(
            f"\n  ERROR: Invalid configuration: {'; '.join(problems)}\n"
            f"  Fix the values in backend/.env or the environment.\n",
            file=sys.stderr,
        )
        sys.exit(1)


settings = _load_config()
_validate_config(settings)
