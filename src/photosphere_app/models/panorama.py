"""Composited panorama and saved panorama records."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np


@dataclass(slots=True, frozen=True)
class PanoramaBuffer:
    """Equirectangular RGB pixels produced by the compositor.

    The array is marked read-only when the buffer is created.
    """

    pixels: np.ndarray = field(repr=False)
    source_photo_count: int
    advisory: Optional[str] = None

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 3:
            raise ValueError("Panorama buffer must be an RGB image")
        self.pixels.setflags(write=False)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


def default_panorama_name(created_at: Optional[datetime] = None) -> str:
    stamp = (created_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    return f"Panorama {stamp}"


@dataclass(slots=True)
class SavedPanorama:
    """Metadata for a panorama handed to storage."""

    name: str
    created_at: datetime
    source_photo_count: int
    path: Optional[Path] = None

    def to_dict(self) -> dict[str, object]:
        """Return metadata suitable for JSON export."""
        return {
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "source_photo_count": self.source_photo_count,
            "path": str(self.path) if self.path is not None else None,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "SavedPanorama":
        path = payload.get("path")
        return cls(
            name=str(payload["name"]),
            created_at=datetime.fromisoformat(str(payload["created_at"])),
            source_photo_count=int(payload["source_photo_count"]),
            path=Path(path) if path else None,
        )
