"""Geometry helpers for spherical panoramas."""
from __future__ import annotations

import math
import numpy as np

TWO_PI = 2.0 * math.pi
HALF_PI = math.pi / 2.0


def normalize_degrees(value: float) -> float:
    """Wrap an angle in degrees into [0, 360)."""
    wrapped = value % 360.0
    # Tiny negative inputs can round up to exactly 360.0.
    return 0.0 if wrapped >= 360.0 else wrapped


def normalize_radians(value: float) -> float:
    """Wrap an angle in radians into [0, 2*pi)."""
    wrapped = value % TWO_PI
    return 0.0 if wrapped >= TWO_PI else wrapped


def clamp_elevation(phi: float) -> float:
    """Clamp a vertical angle to the poles so the view never flips over."""
    return float(np.clip(phi, -HALF_PI, HALF_PI))


def spherical_direction(theta: float, phi: float) -> np.ndarray:
    """Return the unit direction vector for the given spherical angles.

    The frame is y-up with theta measured from +Z towards +X, matching the
    layout used when placing captured photos around the viewer.
    """
    cos_phi = math.cos(phi)
    return np.array(
        [
            math.sin(theta) * cos_phi,
            math.sin(phi),
            math.cos(theta) * cos_phi,
        ],
        dtype=np.float64,
    )


def heading_to_column(heading_deg: float, width: int) -> float:
    """Map a compass heading to an equirectangular x coordinate, wrapping at the right edge."""
    return (normalize_degrees(heading_deg) / 360.0 * width) % width

