"""OpenGL-powered panorama viewer widget."""
from __future__ import annotations

import math
import time
from typing import Optional

import numpy as np
from loguru import logger
from OpenGL.GL import (
    GL_COLOR_BUFFER_BIT,
    GL_DEPTH_BUFFER_BIT,
    GL_DEPTH_TEST,
    GL_LINEAR,
    GL_MODELVIEW,
    GL_PROJECTION,
    GL_RGB,
    GL_TRIANGLE_STRIP,
    GL_TEXTURE_2D,
    GL_TEXTURE_MAG_FILTER,
    GL_TEXTURE_MIN_FILTER,
    GL_UNPACK_ALIGNMENT,
    GL_UNSIGNED_BYTE,
    glBegin,
    glBindTexture,
    glClear,
    glClearColor,
    glDeleteTextures,
    glDisable,
    glEnable,
    glEnd,
    glGenTextures,
    glLoadIdentity,
    glMatrixMode,
    glPixelStorei,
    glTexCoord2f,
    glTexImage2D,
    glTexParameteri,
    glVertex3f,
    glViewport,
)
from OpenGL.GLU import gluLookAt, gluPerspective
from PyQt6.QtCore import QPointF, Qt, QTimer
from PyQt6.QtGui import QColor, QKeyEvent, QMouseEvent, QPainter, QWheelEvent
from PyQt6.QtOpenGLWidgets import QOpenGLWidget

from ..math.geometry import spherical_direction
from ..models.orientation import OrientationSample
from .navigator import (
    DeviceOrientation,
    DragEnd,
    DragMove,
    DragStart,
    SphericalNavigator,
    ViewState,
    Zoom,
)


class PanoramaWidget(QOpenGLWidget):
    """Interactive panorama viewer backed by OpenGL.

    Input events are posted to a :class:`SphericalNavigator` and drained once
    per frame from a timer; the widget only paints whatever view the
    navigator reports.
    """

    FRAME_INTERVAL_MS = 16

    def __init__(self, parent=None, navigator: Optional[SphericalNavigator] = None) -> None:
        super().__init__(parent)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

        self.navigator = navigator or SphericalNavigator()
        self._view: ViewState = self.navigator.current_view()

        self._image: Optional[np.ndarray] = None
        self._texture_id: Optional[int] = None
        self._pending_upload = False
        self._sphere_lon_segments = 96
        self._sphere_lat_segments = 48

        self._last_pos = QPointF()
        self._dragging = False
        self._keyboard_step = 10.0  # drag units per key press

        self._instructions_visible = True
        self._instruction_text = "Drag to look around. Scroll to zoom. Press R to reset view."

        self._last_tick = time.monotonic()
        self._timer = QTimer(self)
        self._timer.timeout.connect(self._on_frame)
        self._timer.start(self.FRAME_INTERVAL_MS)

    # ------------------------------------------------------------------
    def set_panorama(self, image: np.ndarray, reset_orientation: bool = True) -> None:
        if image.dtype != np.uint8:
            raise ValueError("Panorama image must be uint8 RGB data")
        if image.ndim != 3 or image.shape[2] != 3:
            raise ValueError("Panorama image must be an RGB image")
        self._image = np.ascontiguousarray(image)
        self._pending_upload = True
        if reset_orientation:
            self.navigator.reset_view()
        self.update()

    def clear_panorama(self) -> None:
        self._image = None
        self._delete_texture()
        self.update()

    @property
    def has_panorama(self) -> bool:
        return self._image is not None

    def set_instruction_text(self, text: str) -> None:
        self._instruction_text = text
        self.update()

    def submit_device_orientation(self, sample: OrientationSample) -> None:
        """Forward a device-orientation reading from a sensor source."""
        self.navigator.post(DeviceOrientation(sample))

    def enable_device_tracking(self) -> None:
        self.navigator.enable_device_tracking()

    # ------------------------------------------------------------------
    def _on_frame(self) -> None:
        now = time.monotonic()
        dt = now - self._last_tick
        self._last_tick = now
        self._view = self.navigator.tick(dt)
        if self._image is not None:
            self.update()

    def initializeGL(self) -> None:  # noqa: N802
        glClearColor(0.0, 0.0, 0.0, 1.0)
        glEnable(GL_DEPTH_TEST)

    def resizeGL(self, width: int, height: int) -> None:  # noqa: N802
        glViewport(0, 0, width, height)

    def paintGL(self) -> None:  # noqa: N802
        glClear(GL_COLOR_BUFFER_BIT | GL_DEPTH_BUFFER_BIT)
        glMatrixMode(GL_PROJECTION)
        glLoadIdentity()
        aspect = max(1e-3, self.width() / max(1, self.height()))
        gluPerspective(self._view.fov_deg, aspect, 0.01, 10.0)

        glMatrixMode(GL_MODELVIEW)
        glLoadIdentity()
        dir_x, dir_y, dir_z = (float(value) for value in self._view.direction())
        gluLookAt(0.0, 0.0, 0.0, dir_x, dir_y, dir_z, 0.0, 1.0, 0.0)

        if self._image is None:
            return
        if self._pending_upload:
            self._upload_texture()

        glEnable(GL_TEXTURE_2D)
        glBindTexture(GL_TEXTURE_2D, self._texture_id or 0)
        self._draw_textured_sphere(radius=1.0)
        glBindTexture(GL_TEXTURE_2D, 0)
        glDisable(GL_TEXTURE_2D)

    def paintEvent(self, event):  # noqa: N802
        super().paintEvent(event)
        if not (self._instructions_visible and self._instruction_text):
            return
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setPen(QColor(220, 220, 220))
        painter.drawText(16, 28, self._instruction_text)
        painter.end()

    # ------------------------------------------------------------------
    def mousePressEvent(self, event: QMouseEvent) -> None:  # noqa: N802
        if event.button() == Qt.MouseButton.LeftButton:
            self._last_pos = event.position()
            self._dragging = True
            self.navigator.post(DragStart())
            self._hide_instructions()
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:  # noqa: N802
        pos = event.position()
        if self._dragging and event.buttons() & Qt.MouseButton.LeftButton:
            delta = pos - self._last_pos
            self.navigator.post(DragMove(float(delta.x()), float(delta.y())))
        self._last_pos = pos
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:  # noqa: N802
        if event.button() == Qt.MouseButton.LeftButton and self._dragging:
            self._dragging = False
            self.navigator.post(DragEnd())
        super().mouseReleaseEvent(event)

    def leaveEvent(self, event) -> None:  # noqa: N802
        if self._dragging:
            self._dragging = False
            self.navigator.post(DragEnd())
        super().leaveEvent(event)

    def wheelEvent(self, event: QWheelEvent) -> None:  # noqa: N802
        # One wheel notch (120) is 100 zoom units; scrolling down widens the view.
        units = -event.angleDelta().y() * 100.0 / 120.0
        if units:
            self._hide_instructions()
            self.navigator.post(Zoom(units))
        event.accept()

    def keyPressEvent(self, event: QKeyEvent) -> None:  # noqa: N802
        steps = {
            Qt.Key.Key_Left: (self._keyboard_step, 0.0),
            Qt.Key.Key_Right: (-self._keyboard_step, 0.0),
            Qt.Key.Key_Up: (0.0, self._keyboard_step),
            Qt.Key.Key_Down: (0.0, -self._keyboard_step),
        }
        key = event.key()
        if key in steps:
            dx, dy = steps[key]
            self.navigator.post(DragStart())
            self.navigator.post(DragMove(dx, dy))
            self.navigator.post(DragEnd())
        elif key in (Qt.Key.Key_R, Qt.Key.Key_Home):
            self.navigator.reset_view()
        else:
            super().keyPressEvent(event)
            return
        self._hide_instructions()
        event.accept()

    # ------------------------------------------------------------------
    def _upload_texture(self) -> None:
        if self._image is None:
            return
        image = self._image
        height, width, _ = image.shape
        texture_id = self._texture_id or glGenTextures(1)
        glBindTexture(GL_TEXTURE_2D, texture_id)
        glPixelStorei(GL_UNPACK_ALIGNMENT, 1)
        glTexParameteri(GL_TEXTURE_2D, GL_TEXTURE_MIN_FILTER, GL_LINEAR)
        glTexParameteri(GL_TEXTURE_2D, GL_TEXTURE_MAG_FILTER, GL_LINEAR)
        glTexImage2D(
            GL_TEXTURE_2D,
            0,
            GL_RGB,
            width,
            height,
            0,
            GL_RGB,
            GL_UNSIGNED_BYTE,
            image,
        )
        glBindTexture(GL_TEXTURE_2D, 0)
        self._texture_id = texture_id
        self._pending_upload = False
        logger.debug("Uploaded panorama texture {}x{}", width, height)

    def _delete_texture(self) -> None:
        if self._texture_id is not None:
            glDeleteTextures([self._texture_id])
            self._texture_id = None

    def closeEvent(self, event) -> None:  # noqa: N802
        self._timer.stop()
        self._delete_texture()
        super().closeEvent(event)

    def _draw_textured_sphere(self, radius: float) -> None:
        """Render a sphere with explicit equirectangular texture coordinates.

        Vertices use the same y-up direction convention as the navigator so
        heading ``theta`` samples texture column ``theta / 2pi``.
        """
        lon_steps = self._sphere_lon_segments
        lat_steps = self._sphere_lat_segments

        for lat_idx in range(lat_steps):
            v0 = lat_idx / lat_steps
            v1 = (lat_idx + 1) / lat_steps
            phi0 = (math.pi / 2.0) - (v0 * math.pi)
            phi1 = (math.pi / 2.0) - (v1 * math.pi)

            glBegin(GL_TRIANGLE_STRIP)
            for lon_idx in range(lon_steps + 1):
                u = lon_idx / lon_steps
                theta = u * (2.0 * math.pi)
                x0, y0, z0 = radius * spherical_direction(theta, phi0)
                x1, y1, z1 = radius * spherical_direction(theta, phi1)

                # Reverse winding for inside view.
                glTexCoord2f(u, v1)
                glVertex3f(x1, y1, z1)
                glTexCoord2f(u, v0)
                glVertex3f(x0, y0, z0)
            glEnd()

    def _hide_instructions(self) -> None:
        if self._instructions_visible:
            self._instructions_visible = False
            self.update()
