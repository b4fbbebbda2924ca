"""Desktop entry point: capture photos, compose them and browse saved panoramas."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QGuiApplication
from PyQt6.QtWidgets import QApplication

from .config import DEFAULT_TOTAL_NEEDED, CaptureConfig, CompositorConfig, library_dir_from_env
from .logging import configure_logging
from .ui.main_window import MainWindow
from .ui.theme import apply_dark_theme


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="photosphere", description=__doc__)
    parser.add_argument("--library", type=Path, default=None, help="Folder holding saved panoramas")
    parser.add_argument(
        "--photos",
        type=int,
        default=DEFAULT_TOTAL_NEEDED,
        help="Number of photos the capture guidance aims for",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    # Qt consumes its own options from the remaining arguments.
    args, _ = parser.parse_known_args(argv)
    return args


def main(argv: Optional[list[str]] = None) -> int:
    """Launch the Photosphere desktop application."""
    argv = list(sys.argv if argv is None else argv)
    args = _parse_args(argv[1:])
    configure_logging("DEBUG" if args.verbose else None)

    QGuiApplication.setHighDpiScaleFactorRoundingPolicy(
        Qt.HighDpiScaleFactorRoundingPolicy.PassThrough
    )
    app = QApplication(argv)
    app.setApplicationName("Photosphere")
    apply_dark_theme(app)

    library_dir = args.library or library_dir_from_env()
    logger.info("Using panorama library at {}", library_dir)
    window = MainWindow(
        library_dir=library_dir,
        capture_config=CaptureConfig(total_needed=max(1, args.photos)),
        compositor_config=CompositorConfig(),
    )
    window.show()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
