"""
PageForge — Compression preset registry.

Ships 4 presets ordered from least to most aggressive. Each bounds the
longest image edge and sets the lossy encode quality. Looked up by name
only; nothing interpolates between presets.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from pageforge.errors import UnknownOptionError


class CompressionPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: str
    max_dimension: int = Field(gt=0)
    quality: float = Field(gt=0, le=1)
    warning: str | None = None


PRESETS: dict[str, CompressionPreset] = {
    "high": CompressionPreset(
        id="high",
        label="High quality",
        description="Light compression, suitable for printing.",
        max_dimension=2400,
        quality=0.85,
    ),
    "balanced": CompressionPreset(
        id="balanced",
        label="Balanced",
        description="Good quality for screen reading at about half the size.",
        max_dimension=1920,
        quality=0.72,
    ),
    "small": CompressionPreset(
        id="small",
        label="Small file",
        description="Noticeably smaller, fine for sharing by email.",
        max_dimension=1440,
        quality=0.55,
    ),
    "verySmall": CompressionPreset(
        id="verySmall",
        label="Very small",
        description="Smallest output for upload forms with strict limits.",
        max_dimension=1024,
        quality=0.40,
        warning="Fine text and small details may become hard to read.",
    ),
}

# Empirical output/input byte ratios used for size prediction only
ESTIMATE_RATIOS: dict[str, float] = {
    "high": 0.75,
    "balanced": 0.50,
    "small": 0.35,
    "verySmall": 0.20,
}


def get_preset(preset_id: str) -> CompressionPreset:
    preset = PRESETS.get(preset_id)
    if preset is None:
        raise UnknownOptionError("compression preset", preset_id, list(PRESETS))
    return preset


def list_presets() -> list[CompressionPreset]:
    return list(PRESETS.values())
