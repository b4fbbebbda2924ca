"""Capture session state and progress guidance."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import itertools
import threading
from typing import Iterator, Optional

import numpy as np
from loguru import logger

from ..config import ADVISORY_PHOTOS, DEFAULT_TOTAL_NEEDED, MIN_PHOTOS
from .orientation import OrientationSample


class CaptureDirection(Enum):
    """Where the user should point the camera next."""

    FRONT = "front"
    RIGHT = "right"
    BACK = "back"
    LEFT = "left"
    UP = "up"

    @property
    def guidance(self) -> str:
        return _GUIDANCE.get(self, "around you")

    def __str__(self) -> str:  # pragma: no cover - user friendly label
        return self.value


_GUIDANCE = {
    CaptureDirection.FRONT: "straight ahead",
    CaptureDirection.RIGHT: "to the right",
    CaptureDirection.BACK: "behind you",
    CaptureDirection.LEFT: "to the left",
    CaptureDirection.UP: "above you",
}


def direction_for_count(completed: int) -> CaptureDirection:
    """Return the guidance direction for a given number of captured photos."""
    if completed <= 0:
        return CaptureDirection.FRONT
    if completed <= 3:
        return CaptureDirection.RIGHT
    if completed <= 6:
        return CaptureDirection.BACK
    if completed <= 9:
        return CaptureDirection.LEFT
    return CaptureDirection.UP


@dataclass(slots=True, frozen=True)
class CapturedPhoto:
    """One shutter press: encoded image bytes plus the orientation at capture time.

    ``pixels`` may carry an already decoded RGB array; the compositor then
    skips decoding ``data``.
    """

    id: int
    data: bytes
    orientation: OrientationSample
    pixels: Optional[np.ndarray] = field(default=None, compare=False, repr=False)


@dataclass(slots=True, frozen=True)
class CaptureProgress:
    completed: int
    total_needed: int
    current_direction: CaptureDirection

    def completion_fraction(self) -> float:
        """Fraction of the target captured; may exceed 1.0."""
        if self.total_needed <= 0:
            return 0.0
        return self.completed / self.total_needed

    def percent(self) -> int:
        """Rounded percentage for progress bars, clamped to 100."""
        return min(100, int(round(self.completion_fraction() * 100)))


@dataclass(slots=True)
class CaptureSession:
    """Ordered photos captured during one capture flow."""

    total_needed: int = DEFAULT_TOTAL_NEEDED
    photos: list[CapturedPhoto] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.photos)

    def __iter__(self) -> Iterator[CapturedPhoto]:
        return iter(self.photos)

    def snapshot(self) -> tuple[CapturedPhoto, ...]:
        """Immutable copy handed to the compositor."""
        return tuple(self.photos)


class CaptureProgressTracker:
    """Owns a :class:`CaptureSession` and turns its length into guidance."""

    def __init__(self, total_needed: int = DEFAULT_TOTAL_NEEDED) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._session = CaptureSession(total_needed=total_needed)
        self._progress = CaptureProgress(0, total_needed, CaptureDirection.FRONT)

    # ------------------------------------------------------------------
    @property
    def session(self) -> CaptureSession:
        return self._session

    @property
    def progress(self) -> CaptureProgress:
        return self._progress

    @property
    def completed(self) -> int:
        return self._progress.completed

    @property
    def current_direction(self) -> CaptureDirection:
        return self._progress.current_direction

    @property
    def can_compose(self) -> bool:
        return self.completed >= MIN_PHOTOS

    @property
    def can_finish(self) -> bool:
        return self.completed >= ADVISORY_PHOTOS

    def completion_fraction(self) -> float:
        return self._progress.completion_fraction()

    def guidance(self) -> str:
        return f"Point your camera {self.current_direction.guidance}"

    def snapshot(self) -> tuple[CapturedPhoto, ...]:
        with self._lock:
            return self._session.snapshot()

    # ------------------------------------------------------------------
    def capture(
        self,
        data: bytes,
        orientation: OrientationSample,
        pixels: Optional[np.ndarray] = None,
    ) -> CapturedPhoto:
        """Wrap raw shutter output in a :class:`CapturedPhoto` and add it."""
        photo = CapturedPhoto(id=next(self._ids), data=data, orientation=orientation, pixels=pixels)
        self.add_photo(photo)
        return photo

    def add_photo(self, photo: CapturedPhoto) -> CaptureProgress:
        """Append a photo and recompute the guidance direction. Never rejects input."""
        with self._lock:
            self._session.photos.append(photo)
            completed = self._progress.completed + 1
            self._progress = CaptureProgress(
                completed=completed,
                total_needed=self._session.total_needed,
                current_direction=direction_for_count(completed),
            )
            progress = self._progress
        logger.debug(
            "Captured photo {} ({}/{}), next direction {}",
            photo.id,
            progress.completed,
            progress.total_needed,
            progress.current_direction.value,
        )
        return progress

    def reset(self) -> None:
        """Drop all photos and return to the initial state."""
        with self._lock:
            total_needed = self._session.total_needed
            self._session = CaptureSession(total_needed=total_needed)
            self._progress = CaptureProgress(0, total_needed, CaptureDirection.FRONT)
        logger.info("Capture session reset")
