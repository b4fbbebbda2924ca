"""Configuration objects shared by capture, composition and viewing."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

PANORAMA_WIDTH = 4096
PANORAMA_HEIGHT = 2048
MIN_PHOTOS = 3
ADVISORY_PHOTOS = 6
DEFAULT_TOTAL_NEEDED = 12

LOG_LEVEL_ENV = "PHOTOSPHERE_LOG_LEVEL"


@dataclass(slots=True)
class CaptureConfig:
    """Capture flow settings."""

    total_needed: int = DEFAULT_TOTAL_NEEDED


@dataclass(slots=True)
class CompositorConfig:
    """Settings for the orientation-driven panorama compositor.

    ``elevation_mapping`` selects how a row bucket becomes a vertical pixel
    position. ``"legacy"`` feeds the bucket angle, wrapped into [0, 360), through
    ``angle / 180 * height`` so layouts stay compatible with existing panoramas.
    ``"signed"`` maps -90..90 linearly onto 0..height.

    ``block_height`` is a third of the height rounded down once (682 for the
    default 2048). The same integer is used to scale every photo and to centre
    it on its row.
    """

    width: int = PANORAMA_WIDTH
    height: int = PANORAMA_HEIGHT
    min_photos: int = MIN_PHOTOS
    advisory_photos: int = ADVISORY_PHOTOS
    row_step_deg: float = 30.0
    max_workers: Optional[int] = None
    elevation_mapping: str = "legacy"
    jpeg_quality: int = 92

    @property
    def block_height(self) -> int:
        return self.height // 3


@dataclass(slots=True)
class NavigatorConfig:
    """Interaction constants for the spherical viewer camera."""

    drag_sensitivity: float = 0.01  # radians per input unit
    auto_rotate_rate: float = 0.18  # radians per second
    zoom_sensitivity: float = 0.05  # degrees per wheel unit
    initial_fov_deg: float = 75.0
    min_fov_deg: float = 30.0
    max_fov_deg: float = 90.0


def log_level_from_env(default: str = "INFO") -> str:
    value = os.environ.get(LOG_LEVEL_ENV, "").strip()
    return value.upper() if value else default


LIBRARY_DIR_ENV = "PHOTOSPHERE_LIBRARY"


def library_dir_from_env() -> Path:
    """Directory where saved panoramas are kept."""
    value = os.environ.get(LIBRARY_DIR_ENV, "").strip()
    return Path(value).expanduser() if value else Path.home() / "Pictures" / "Photosphere"
