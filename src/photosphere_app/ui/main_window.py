"""Main application window."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from loguru import logger
from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import (
    QDoubleSpinBox,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QSplitter,
    QStatusBar,
    QVBoxLayout,
    QWidget,
)

from ..config import CaptureConfig, CompositorConfig, library_dir_from_env
from ..io.compositor import PanoramaCompositor
from ..io.loader import load_capture_manifest, load_panorama_image, read_photo_bytes
from ..io.storage import list_panoramas, save_panorama
from ..models.capture_session import CaptureProgressTracker
from ..models.orientation import OrientationSample
from ..models.panorama import PanoramaBuffer, SavedPanorama
from ..viewer.panorama_widget import PanoramaWidget
from ..workers.task_runner import CompositionTask, FunctionTask, TaskRunner

IMAGE_FILTER = "Images (*.jpg *.jpeg *.png *.bmp *.tif *.tiff)"


class MainWindow(QMainWindow):
    """Capture, compose and view panoramas in one window."""

    def __init__(
        self,
        library_dir: Optional[Path] = None,
        capture_config: Optional[CaptureConfig] = None,
        compositor_config: Optional[CompositorConfig] = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Photosphere")
        self.resize(1440, 880)

        capture_config = capture_config or CaptureConfig()
        self._tracker = CaptureProgressTracker(capture_config.total_needed)
        self._compositor = PanoramaCompositor(compositor_config)
        self._library_dir = library_dir or library_dir_from_env()
        self._task_runner = TaskRunner()
        self._active_tasks: set = set()
        self._composition: Optional[CompositionTask] = None
        self._panorama: Optional[PanoramaBuffer] = None

        self.viewer = PanoramaWidget()
        self._build_ui()
        self._refresh_capture_status()
        self._refresh_library()
        logger.info("UI initialised")

    # ------------------------------------------------------------------
    def _build_ui(self) -> None:
        splitter = QSplitter(Qt.Orientation.Horizontal, self)
        splitter.setChildrenCollapsible(False)
        splitter.addWidget(self.viewer)
        splitter.addWidget(self._build_sidebar())
        splitter.setStretchFactor(0, 4)
        splitter.setStretchFactor(1, 2)
        self.setCentralWidget(splitter)
        self.setStatusBar(QStatusBar())

    def _build_sidebar(self) -> QWidget:
        sidebar = QWidget()
        layout = QVBoxLayout(sidebar)
        layout.setContentsMargins(16, 12, 16, 12)
        layout.addWidget(self._build_capture_group())
        layout.addWidget(self._build_compose_group())
        layout.addWidget(self._build_library_group(), stretch=1)
        return sidebar

    def _build_capture_group(self) -> QGroupBox:
        group = QGroupBox("Capture")
        form = QFormLayout(group)

        self.alpha_spin = self._angle_spin(0.0, 359.99)
        self.beta_spin = self._angle_spin(-180.0, 180.0)
        self.gamma_spin = self._angle_spin(-90.0, 90.0)
        form.addRow("Heading (alpha)", self.alpha_spin)
        form.addRow("Tilt (beta)", self.beta_spin)
        form.addRow("Roll (gamma)", self.gamma_spin)
        for spin in (self.alpha_spin, self.beta_spin, self.gamma_spin):
            spin.valueChanged.connect(self._on_orientation_inputs_changed)

        buttons = QHBoxLayout()
        self.add_photo_button = QPushButton("Add Photo...")
        self.add_photo_button.clicked.connect(self._on_add_photo_clicked)
        self.load_manifest_button = QPushButton("Load Manifest...")
        self.load_manifest_button.clicked.connect(self._on_load_manifest_clicked)
        self.reset_button = QPushButton("Retake")
        self.reset_button.clicked.connect(self._on_reset_clicked)
        buttons.addWidget(self.add_photo_button)
        buttons.addWidget(self.load_manifest_button)
        buttons.addWidget(self.reset_button)
        form.addRow(buttons)

        self.guidance_label = QLabel()
        self.capture_progress = QProgressBar()
        self.capture_count_label = QLabel()
        form.addRow(self.guidance_label)
        form.addRow(self.capture_progress)
        form.addRow(self.capture_count_label)
        return group

    def _build_compose_group(self) -> QGroupBox:
        group = QGroupBox("Compose")
        layout = QVBoxLayout(group)

        buttons = QHBoxLayout()
        self.compose_button = QPushButton("Process Photos")
        self.compose_button.clicked.connect(self._on_compose_clicked)
        self.cancel_button = QPushButton("Cancel")
        self.cancel_button.clicked.connect(self._cancel_composition)
        self.cancel_button.setEnabled(False)
        buttons.addWidget(self.compose_button)
        buttons.addWidget(self.cancel_button)
        layout.addLayout(buttons)

        self.compose_progress = QProgressBar()
        self.compose_progress.setRange(0, 100)
        layout.addWidget(self.compose_progress)
        self.advisory_label = QLabel()
        self.advisory_label.setWordWrap(True)
        layout.addWidget(self.advisory_label)

        name_row = QHBoxLayout()
        self.name_edit = QLineEdit()
        self.name_edit.setPlaceholderText("My Awesome Panorama")
        self.save_button = QPushButton("Save Panorama")
        self.save_button.clicked.connect(self._on_save_clicked)
        self.save_button.setEnabled(False)
        name_row.addWidget(self.name_edit)
        name_row.addWidget(self.save_button)
        layout.addLayout(name_row)
        return group

    def _build_library_group(self) -> QGroupBox:
        group = QGroupBox("Your Panoramas")
        layout = QVBoxLayout(group)
        self.library_list = QListWidget()
        self.library_list.itemActivated.connect(self._on_library_item_activated)
        layout.addWidget(self.library_list)

        buttons = QHBoxLayout()
        open_button = QPushButton("Open Image...")
        open_button.clicked.connect(self._on_open_panorama_clicked)
        tracking_button = QPushButton("Follow Device")
        tracking_button.clicked.connect(self._on_follow_device_clicked)
        buttons.addWidget(open_button)
        buttons.addWidget(tracking_button)
        layout.addLayout(buttons)
        return group

    @staticmethod
    def _angle_spin(minimum: float, maximum: float) -> QDoubleSpinBox:
        spin = QDoubleSpinBox()
        spin.setRange(minimum, maximum)
        spin.setDecimals(1)
        spin.setSuffix(" deg")
        return spin

    # Capture ----------------------------------------------------------
    def _current_orientation(self) -> OrientationSample:
        return OrientationSample(
            alpha=self.alpha_spin.value(),
            beta=self.beta_spin.value(),
            gamma=self.gamma_spin.value(),
        )

    def _on_orientation_inputs_changed(self, _value: float) -> None:
        # The angle inputs stand in for the device sensor while following the device.
        self.viewer.submit_device_orientation(self._current_orientation())

    def _on_add_photo_clicked(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(self, "Add Photos", "", IMAGE_FILTER)
        if not paths:
            return
        orientation = self._current_orientation()
        try:
            for path in paths:
                self._tracker.capture(read_photo_bytes(Path(path)), orientation)
        except FileNotFoundError as exc:
            QMessageBox.warning(self, "Photo", str(exc))
        self._refresh_capture_status()

    def _on_load_manifest_clicked(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Load Capture Manifest", "", "CSV (*.csv)")
        if not path:
            return
        self._cancel_composition()
        self._tracker.reset()
        try:
            load_capture_manifest(Path(path), self._tracker)
        except (FileNotFoundError, ValueError) as exc:
            logger.error("Failed to load manifest {}: {}", path, exc)
            QMessageBox.critical(self, "Manifest", str(exc))
        self._refresh_capture_status()

    def _on_reset_clicked(self) -> None:
        self._cancel_composition()
        self._tracker.reset()
        self._panorama = None
        self.save_button.setEnabled(False)
        self.advisory_label.clear()
        self.compose_progress.setValue(0)
        self._refresh_capture_status()

    def _refresh_capture_status(self) -> None:
        progress = self._tracker.progress
        self.guidance_label.setText(self._tracker.guidance())
        self.capture_progress.setValue(progress.percent())
        self.capture_count_label.setText(f"{progress.completed} of {progress.total_needed} photos")
        self.compose_button.setEnabled(self._tracker.can_compose and self._composition is None)

    # Compose ----------------------------------------------------------
    def _on_compose_clicked(self) -> None:
        if self._composition is not None:
            return
        task = CompositionTask(self._tracker.snapshot(), self._compositor)
        task.signals.progress.connect(lambda value, t=task: self._on_compose_progress(t, value))
        task.signals.finished.connect(lambda buffer, t=task: self._on_compose_finished(t, buffer))
        task.signals.failed.connect(lambda message, t=task: self._on_task_failed(t, message))
        task.signals.cancelled.connect(lambda t=task: self._on_compose_cancelled(t))
        self._composition = task
        self._active_tasks.add(task)
        self.compose_progress.setValue(0)
        self.cancel_button.setEnabled(True)
        self.compose_button.setEnabled(False)
        self.statusBar().showMessage("Processing photos...")
        self._task_runner.submit(task)

    def _cancel_composition(self) -> None:
        if self._composition is not None:
            self._composition.cancel()
            self._composition = None
            self.cancel_button.setEnabled(False)
            self.statusBar().showMessage("Composition cancelled", 3000)
            self._refresh_capture_status()

    def _on_compose_progress(self, task: CompositionTask, value: int) -> None:
        if task is self._composition:
            self.compose_progress.setValue(value)

    def _on_compose_finished(self, task: CompositionTask, buffer: PanoramaBuffer) -> None:
        self._active_tasks.discard(task)
        if task is not self._composition:
            return
        self._composition = None
        self._panorama = buffer
        self.cancel_button.setEnabled(False)
        self.save_button.setEnabled(True)
        self.compose_progress.setValue(100)
        self.advisory_label.setText(buffer.advisory or "")
        self.viewer.set_panorama(buffer.pixels)
        self.statusBar().clearMessage()
        self._refresh_capture_status()

    def _on_task_failed(self, task, message: str) -> None:
        self._active_tasks.discard(task)
        if isinstance(task, CompositionTask) and task is not self._composition:
            logger.warning("Ignoring failure of a cancelled composition: {}", message)
            return
        if task is self._composition:
            self._composition = None
            self.cancel_button.setEnabled(False)
            self._refresh_capture_status()
        self.statusBar().clearMessage()
        logger.error("Background task failed: {}", message)
        QMessageBox.critical(self, "Error", f"Operation failed:\n{message}")

    def _on_compose_cancelled(self, task: CompositionTask) -> None:
        self._active_tasks.discard(task)
        logger.info("Composition task cancelled")

    # Library ----------------------------------------------------------
    def _on_follow_device_clicked(self) -> None:
        self.viewer.enable_device_tracking()
        self.viewer.submit_device_orientation(self._current_orientation())

    def _on_save_clicked(self) -> None:
        if self._panorama is None:
            return
        try:
            record = save_panorama(
                self._panorama,
                self._library_dir,
                self.name_edit.text(),
                quality=self._compositor.config.jpeg_quality,
            )
        except (OSError, ValueError) as exc:
            logger.error("Failed to save panorama: {}", exc)
            QMessageBox.critical(self, "Save", str(exc))
            return
        self.statusBar().showMessage(f"Saved {record.name}", 3000)
        self.name_edit.clear()
        self._panorama = None
        self.save_button.setEnabled(False)
        self._tracker.reset()
        self._refresh_capture_status()
        self._refresh_library()

    def _refresh_library(self) -> None:
        self.library_list.clear()
        for record in list_panoramas(self._library_dir):
            item = QListWidgetItem(f"{record.name}\n{record.created_at:%Y-%m-%d}")
            item.setData(Qt.ItemDataRole.UserRole, record)
            self.library_list.addItem(item)

    def _on_library_item_activated(self, item: QListWidgetItem) -> None:
        record: SavedPanorama = item.data(Qt.ItemDataRole.UserRole)
        if record.path is not None:
            self._open_panorama(record.path)

    def _on_open_panorama_clicked(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open Panorama", "", IMAGE_FILTER)
        if path:
            self._open_panorama(Path(path))

    def _open_panorama(self, path: Path) -> None:
        task = FunctionTask(load_panorama_image, path)
        self._active_tasks.add(task)
        task.signals.finished.connect(lambda image, t=task: self._on_panorama_loaded(t, image, path))
        task.signals.failed.connect(lambda message, t=task: self._on_task_failed(t, message))
        self.statusBar().showMessage(f"Loading {path.name}...")
        self._task_runner.submit(task)

    def _on_panorama_loaded(self, task: FunctionTask, image, path: Path) -> None:
        self._active_tasks.discard(task)
        self.statusBar().clearMessage()
        logger.info("Panorama image loaded: {}", path)
        self.viewer.set_panorama(image)
