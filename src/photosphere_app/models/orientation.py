"""Orientation domain models."""
from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Mapping, Optional

import numpy as np

from ..math.geometry import spherical_direction


@dataclass(slots=True, frozen=True)
class OrientationSample:
    """Device orientation reading in degrees.

    alpha is the compass heading, beta the front/back tilt and gamma the
    left/right tilt. Any component may be missing (``None``).
    """

    alpha: Optional[float] = None
    beta: Optional[float] = None
    gamma: Optional[float] = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> "OrientationSample":
        """Build a sample from a mapping, treating blanks and non-finite values as missing."""
        return cls(
            alpha=_optional_angle(values.get("alpha")),
            beta=_optional_angle(values.get("beta")),
            gamma=_optional_angle(values.get("gamma")),
        )

    @property
    def is_complete(self) -> bool:
        """True when all three angles were reported."""
        return self.alpha is not None and self.beta is not None and self.gamma is not None

    @property
    def alpha_or_zero(self) -> float:
        return self.alpha if self.alpha is not None else 0.0

    @property
    def beta_or_zero(self) -> float:
        return self.beta if self.beta is not None else 0.0

    @property
    def gamma_or_zero(self) -> float:
        return self.gamma if self.gamma is not None else 0.0


@dataclass(slots=True, frozen=True)
class SphericalPosition:
    """A direction on the unit sphere (radians)."""

    theta: float = 0.0
    phi: float = 0.0

    def direction(self) -> np.ndarray:
        return spherical_direction(self.theta, self.phi)


def _optional_angle(raw: object) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None
