"""Camera navigation model for the spherical panorama viewer.

The navigator owns the viewer camera (orientation and field of view) and
arbitrates between three modes: manual dragging, device-orientation tracking
and idle auto-rotation. Dragging always wins. Releasing a drag falls back to
auto-rotation; device tracking has to be re-enabled explicitly.

Handlers may be called directly or events may be posted from other threads
and drained once per frame with :meth:`SphericalNavigator.tick`.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
import threading
from typing import Deque, Optional, Union

import numpy as np
from loguru import logger

from ..config import NavigatorConfig
from ..math.geometry import clamp_elevation
from ..math.orientation import to_spherical
from ..models.orientation import OrientationSample, SphericalPosition


class NavigatorMode(Enum):
    DRAGGING = "dragging"
    DEVICE_TRACKING = "deviceTracking"
    AUTO_ROTATING = "autoRotating"


@dataclass(slots=True, frozen=True)
class ViewState:
    """Snapshot consumed by the renderer each frame."""

    orientation: SphericalPosition
    fov_deg: float
    mode: NavigatorMode

    def direction(self) -> np.ndarray:
        return self.orientation.direction()


@dataclass(slots=True, frozen=True)
class DragStart:
    pass


@dataclass(slots=True, frozen=True)
class DragMove:
    dx: float
    dy: float


@dataclass(slots=True, frozen=True)
class DragEnd:
    pass


@dataclass(slots=True, frozen=True)
class Zoom:
    delta: float


@dataclass(slots=True, frozen=True)
class DeviceOrientation:
    sample: OrientationSample


NavigatorEvent = Union[DragStart, DragMove, DragEnd, Zoom, DeviceOrientation]


class SphericalNavigator:
    """Interactive camera state for one viewer."""

    def __init__(self, config: Optional[NavigatorConfig] = None) -> None:
        self.config = config or NavigatorConfig()
        self._lock = threading.RLock()
        self._pending: Deque[NavigatorEvent] = deque()
        self._theta = 0.0
        self._phi = 0.0
        self._fov_deg = self._clamp_fov(self.config.initial_fov_deg)
        self._mode = NavigatorMode.AUTO_ROTATING
        self._device_tracking_enabled = True

    # ------------------------------------------------------------------
    @property
    def mode(self) -> NavigatorMode:
        return self._mode

    @property
    def device_tracking_enabled(self) -> bool:
        return self._device_tracking_enabled

    def current_view(self) -> ViewState:
        with self._lock:
            return ViewState(
                orientation=SphericalPosition(self._theta, self._phi),
                fov_deg=self._fov_deg,
                mode=self._mode,
            )

    # Drag -------------------------------------------------------------
    def on_drag_start(self) -> None:
        with self._lock:
            if self._mode is not NavigatorMode.DRAGGING:
                self._set_mode(NavigatorMode.DRAGGING)
            # The first manual touch turns device tracking off until re-enabled.
            self._device_tracking_enabled = False

    def on_drag_move(self, dx: float, dy: float) -> None:
        """Rotate the camera by a pointer delta; ignored unless a drag is active."""
        with self._lock:
            if self._mode is not NavigatorMode.DRAGGING:
                return
            k = self.config.drag_sensitivity
            self._theta -= dx * k
            self._phi = clamp_elevation(self._phi - dy * k)

    def on_drag_end(self) -> None:
        with self._lock:
            if self._mode is NavigatorMode.DRAGGING:
                self._set_mode(NavigatorMode.AUTO_ROTATING)

    # Device orientation -------------------------------------------------
    def enable_device_tracking(self) -> None:
        """Allow device-orientation samples to drive the camera again."""
        with self._lock:
            self._device_tracking_enabled = True

    def on_device_orientation(self, sample: OrientationSample) -> bool:
        """Point the camera at the pose reported by the device.

        Returns False when the sample was ignored: a drag is active, tracking
        is disabled, or the sample is missing an angle.
        """
        if not sample.is_complete:
            return False
        with self._lock:
            if self._mode is NavigatorMode.DRAGGING or not self._device_tracking_enabled:
                return False
            position = to_spherical(sample)
            self._theta = position.theta
            self._phi = position.phi
            if self._mode is not NavigatorMode.DEVICE_TRACKING:
                self._set_mode(NavigatorMode.DEVICE_TRACKING)
            return True

    # Idle / zoom ---------------------------------------------------------
    def on_idle_tick(self, dt: float) -> None:
        """Advance auto-rotation by ``dt`` seconds."""
        with self._lock:
            if self._mode is NavigatorMode.AUTO_ROTATING and dt > 0.0:
                self._theta += self.config.auto_rotate_rate * dt

    def on_zoom(self, delta_units: float) -> None:
        with self._lock:
            self._fov_deg = self._clamp_fov(self._fov_deg + delta_units * self.config.zoom_sensitivity)

    def reset_view(self) -> None:
        with self._lock:
            self._theta = 0.0
            self._phi = 0.0
            self._fov_deg = self._clamp_fov(self.config.initial_fov_deg)

    # Event queue -----------------------------------------------------------
    def post(self, event: NavigatorEvent) -> None:
        """Queue an input event from any thread for the next :meth:`tick`."""
        with self._lock:
            self._pending.append(event)

    def tick(self, dt: float) -> ViewState:
        """Apply queued input, then advance auto-rotation, and return the view."""
        with self._lock:
            events = list(self._pending)
            self._pending.clear()
            for event in _coalesce(events):
                self.dispatch(event)
            self.on_idle_tick(dt)
            return self.current_view()

    def dispatch(self, event: NavigatorEvent) -> None:
        if isinstance(event, DragStart):
            self.on_drag_start()
        elif isinstance(event, DragMove):
            self.on_drag_move(event.dx, event.dy)
        elif isinstance(event, DragEnd):
            self.on_drag_end()
        elif isinstance(event, Zoom):
            self.on_zoom(event.delta)
        elif isinstance(event, DeviceOrientation):
            self.on_device_orientation(event.sample)
        else:
            raise TypeError(f"Unsupported navigator event: {event!r}")

    # ------------------------------------------------------------------
    def _set_mode(self, mode: NavigatorMode) -> None:
        logger.debug("Navigator mode {} -> {}", self._mode.value, mode.value)
        self._mode = mode

    def _clamp_fov(self, fov: float) -> float:
        return float(np.clip(fov, self.config.min_fov_deg, self.config.max_fov_deg))


def _coalesce(events: list[NavigatorEvent]) -> list[NavigatorEvent]:
    """Merge runs of drag moves and zoom deltas; keep the newest of consecutive orientation samples."""
    merged: list[NavigatorEvent] = []
    for event in events:
        previous = merged[-1] if merged else None
        if isinstance(event, DragMove) and isinstance(previous, DragMove):
            merged[-1] = DragMove(previous.dx + event.dx, previous.dy + event.dy)
        elif isinstance(event, Zoom) and isinstance(previous, Zoom):
            merged[-1] = Zoom(previous.delta + event.delta)
        elif (
            isinstance(event, DeviceOrientation)
            and isinstance(previous, DeviceOrientation)
            and event.sample.is_complete
        ):
            merged[-1] = event
        else:
            merged.append(event)
    return merged
