"""Mapping from raw device orientation to spherical coordinates."""
from __future__ import annotations

import math

from ..models.orientation import OrientationSample, SphericalPosition
from .geometry import clamp_elevation, normalize_degrees, normalize_radians


def to_spherical(sample: OrientationSample) -> SphericalPosition:
    """Convert a device orientation sample to a spherical position.

    theta is the heading wrapped into [0, 2*pi); phi is the front/back tilt
    clamped to the poles. Missing angles count as zero. gamma (roll) is not
    part of the mapping.
    """
    theta = normalize_radians(math.radians(normalize_degrees(sample.alpha_or_zero)))
    phi = clamp_elevation(math.radians(sample.beta_or_zero))
    return SphericalPosition(theta=theta, phi=phi)
