"""Orientation-driven placement of captured photos into an equirectangular panorama.

This is a layout heuristic over orientation metadata, not feature-based
stitching: photos are bucketed into elevation rows, sorted by heading and
blitted with plain overwrite onto a black canvas.
"""
from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
import hashlib
import threading
from typing import Callable, Iterable, Optional, Sequence

import cv2
import numpy as np
from loguru import logger

from ..config import CompositorConfig
from ..errors import CompositionCancelled, InsufficientPhotosError
from ..math.geometry import heading_to_column, normalize_degrees
from ..math.orientation import to_spherical
from ..models.capture_session import CapturedPhoto
from ..models.orientation import SphericalPosition
from ..models.panorama import PanoramaBuffer
from .loader import decode_photo

ProgressCallback = Callable[[int], None]


@dataclass(slots=True, frozen=True)
class PhotoPlacement:
    """Where one photo lands in the panorama."""

    photo_id: int
    position: SphericalPosition
    row_key: int
    heading_deg: float
    x: int
    y: int
    width: int
    height: int


def row_key_for_beta(beta_deg: float, step_deg: float = 30.0) -> int:
    """Quantise a tilt angle to the nearest multiple of ``step_deg``.

    Halves round up, so 15 goes to 30 and -15 goes to 0.
    """
    return int(np.floor(beta_deg / step_deg + 0.5) * step_deg)


def row_center_y(row_key: int, height: int, mapping: str = "legacy") -> float:
    """Vertical pixel centre for a row bucket."""
    if mapping == "signed":
        return (float(np.clip(row_key, -90, 90)) + 90.0) / 180.0 * height
    if mapping != "legacy":
        raise ValueError(f"Unsupported elevation mapping: {mapping}")
    return normalize_degrees(float(row_key)) / 180.0 * height


class PanoramaCompositor:
    """Compose captured photos into a fixed-size equirectangular buffer."""

    def __init__(self, config: Optional[CompositorConfig] = None) -> None:
        self.config = config or CompositorConfig()

    # ------------------------------------------------------------------
    def check_count(self, count: int) -> Optional[str]:
        """Validate the photo count, returning an advisory message for small sets."""
        if count < self.config.min_photos:
            raise InsufficientPhotosError(count, self.config.min_photos)
        if count < self.config.advisory_photos:
            return (
                f"Only {count} photos supplied; capture at least "
                f"{self.config.advisory_photos} for a good panorama."
            )
        return None

    def compose(
        self,
        photos: Iterable[CapturedPhoto],
        *,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PanoramaBuffer:
        """Place every photo into a new panorama buffer.

        ``photos`` is copied up front, so later changes to the caller's
        session do not affect the run. ``progress`` receives integer
        percentages as decodes and blits complete. If ``cancel_event`` is set
        the run stops with :class:`CompositionCancelled` and nothing is returned.

        Raises
        ------
        InsufficientPhotosError
            If fewer than ``config.min_photos`` photos are supplied.
        DecodeError
            If any photo cannot be decoded; the whole run is abandoned.
        """
        snapshot = tuple(photos)
        advisory = self.check_count(len(snapshot))
        if len({photo.id for photo in snapshot}) != len(snapshot):
            raise ValueError("Photo ids must be unique within a composition run")
        if advisory:
            logger.warning(advisory)

        reporter = _ProgressReporter(total_steps=2 * len(snapshot), callback=progress)
        logger.info("Composing panorama from {} photos", len(snapshot))

        images = self._decode_all(snapshot, reporter, cancel_event)
        placements = self.layout(snapshot, images)

        cfg = self.config
        canvas = np.zeros((cfg.height, cfg.width, 3), dtype=np.uint8)
        for placement in placements:
            _raise_if_cancelled(cancel_event)
            self._blit(canvas, images[placement.photo_id], placement)
            logger.debug(
                "Placed photo {} at ({}, {}) size {}x{} row {}",
                placement.photo_id,
                placement.x,
                placement.y,
                placement.width,
                placement.height,
                placement.row_key,
            )
            reporter.step()

        _raise_if_cancelled(cancel_event)
        reporter.finish()
        logger.info("Panorama composed: {}x{}", cfg.width, cfg.height)
        return PanoramaBuffer(pixels=canvas, source_photo_count=len(snapshot), advisory=advisory)

    # ------------------------------------------------------------------
    def layout(
        self,
        photos: Sequence[CapturedPhoto],
        images: dict[int, np.ndarray],
    ) -> list[PhotoPlacement]:
        """Compute blit order and rectangles for decoded photos.

        Rows are drawn from the lowest bucket upwards; within a row photos are
        ordered by heading, with the photo content as a final tie-break so the
        result does not depend on capture order.
        """
        cfg = self.config
        block_height = cfg.block_height

        rows: dict[int, list[CapturedPhoto]] = {}
        for photo in photos:
            key = row_key_for_beta(photo.orientation.beta_or_zero, cfg.row_step_deg)
            rows.setdefault(key, []).append(photo)

        placements: list[PhotoPlacement] = []
        for row_key in sorted(rows):
            center_y = row_center_y(row_key, cfg.height, cfg.elevation_mapping)
            row = sorted(rows[row_key], key=lambda item: _order_key(item, images[item.id]))
            for photo in row:
                heading = normalize_degrees(photo.orientation.alpha_or_zero)
                image = images[photo.id]
                src_height, src_width = image.shape[:2]
                width = max(1, int(round(src_width / float(src_height) * block_height)))
                placements.append(
                    PhotoPlacement(
                        photo_id=photo.id,
                        position=to_spherical(photo.orientation),
                        row_key=row_key,
                        heading_deg=heading,
                        x=int(np.floor(heading_to_column(heading, cfg.width))),
                        y=int(np.floor(center_y - block_height / 2.0)),
                        width=width,
                        height=block_height,
                    )
                )
        return placements

    # ------------------------------------------------------------------
    def _decode_all(
        self,
        photos: Sequence[CapturedPhoto],
        reporter: "_ProgressReporter",
        cancel_event: Optional[threading.Event],
    ) -> dict[int, np.ndarray]:
        """Decode all photos concurrently and wait for every one of them.

        Progress is reported as each decode finishes. The cancel event is polled
        between completions and at least every 100 ms while decodes are running.
        """
        _raise_if_cancelled(cancel_event)
        images: dict[int, np.ndarray] = {}
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {executor.submit(decode_photo, photo): photo for photo in photos}
            pending = set(futures)
            try:
                while pending:
                    done, pending = wait(pending, timeout=0.1, return_when=FIRST_COMPLETED)
                    for future in done:
                        # Re-raises DecodeError for the offending photo.
                        images[futures[future].id] = future.result()
                        reporter.step()
                    _raise_if_cancelled(cancel_event)
            except BaseException:
                for future in pending:
                    future.cancel()
                raise
        return images

    def _blit(self, canvas: np.ndarray, image: np.ndarray, placement: PhotoPlacement) -> None:
        """Scale ``image`` to the placement size and overwrite the canvas, clipping at the edges."""
        canvas_height, canvas_width = canvas.shape[:2]
        x0, y0 = placement.x, placement.y
        x1, y1 = x0 + placement.width, y0 + placement.height

        dst_x0, dst_y0 = max(0, x0), max(0, y0)
        dst_x1, dst_y1 = min(canvas_width, x1), min(canvas_height, y1)
        if dst_x0 >= dst_x1 or dst_y0 >= dst_y1:
            return

        scaled = cv2.resize(
            image,
            (placement.width, placement.height),
            interpolation=cv2.INTER_AREA,
        )
        canvas[dst_y0:dst_y1, dst_x0:dst_x1] = scaled[
            dst_y0 - y0 : dst_y1 - y0,
            dst_x0 - x0 : dst_x1 - x0,
        ]


class _ProgressReporter:
    """Turn completed work units into monotonically increasing percentages."""

    def __init__(self, total_steps: int, callback: Optional[ProgressCallback]) -> None:
        self._total = max(1, total_steps)
        self._done = 0
        self._last = -1
        self._callback = callback

    def step(self) -> None:
        self._done += 1
        # 100 is reserved for the finished buffer.
        self._emit(min(99, (self._done * 100) // self._total))

    def finish(self) -> None:
        self._emit(100)

    def _emit(self, percent: int) -> None:
        if self._callback is None or percent <= self._last:
            return
        self._last = percent
        self._callback(percent)


def _order_key(photo: CapturedPhoto, image: np.ndarray) -> tuple:
    orientation = photo.orientation
    digest = hashlib.sha1(np.ascontiguousarray(image).tobytes()).hexdigest()
    return (
        normalize_degrees(orientation.alpha_or_zero),
        orientation.beta_or_zero,
        orientation.gamma_or_zero,
        image.shape,
        digest,
    )


def _raise_if_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise CompositionCancelled("Panorama composition was cancelled")
