"""Application-wide theme helpers."""
from __future__ import annotations

from PyQt6.QtGui import QColor, QPalette

_PROGRESS_STYLE = """
QProgressBar { border: 1px solid #3a3d44; border-radius: 5px; text-align: center; height: 14px; }
QProgressBar::chunk { background-color: #4285f4; border-radius: 5px; }
"""


def build_dark_palette() -> QPalette:
    palette = QPalette()
    roles = {
        QPalette.ColorRole.Window: (28, 30, 34),
        QPalette.ColorRole.WindowText: (225, 225, 225),
        QPalette.ColorRole.Base: (22, 23, 26),
        QPalette.ColorRole.AlternateBase: (34, 36, 40),
        QPalette.ColorRole.Text: (235, 235, 235),
        QPalette.ColorRole.Button: (40, 43, 48),
        QPalette.ColorRole.ButtonText: (235, 235, 235),
        QPalette.ColorRole.Highlight: (66, 133, 244),
        QPalette.ColorRole.HighlightedText: (255, 255, 255),
    }
    for role, rgb in roles.items():
        palette.setColor(role, QColor(*rgb))
    return palette


def apply_dark_theme(app) -> None:
    """Apply the dark palette and progress bar styling."""
    app.setPalette(build_dark_palette())
    app.setStyle("Fusion")
    app.setStyleSheet(_PROGRESS_STYLE)
