"""
axes.py — Device frame to vehicle frame.

Landscape mount (windshield / dashboard).  Gravity lies along the device X
axis at rest, the vehicle's forward axis appears on device Z.

  longitudinal = -z            forward acceleration positive
  lateral      = +y            LANDSCAPE_RIGHT   (positive = left)
               = -y            LANDSCAPE_LEFT

``flip_lateral`` / ``flip_longitudinal`` negate a component after that,
for mounts facing the other way.  Portrait is rejected.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .exceptions import UnsupportedOrientationError
from .sensor_driver import G_MPS2, Orientation

_LATERAL_SIGN = {
    Orientation.LANDSCAPE_RIGHT: 1.0,
    Orientation.LANDSCAPE_LEFT: -1.0,
}


@dataclass(frozen=True)
class MountPolicy:
    flip_lateral: bool = False
    flip_longitudinal: bool = False


class AxisMapper:
    def __init__(self, orientation: Orientation = Orientation.LANDSCAPE_RIGHT,
                 policy: MountPolicy = MountPolicy()):
        self.orientation = orientation
        self.policy = policy

    def signs(self) -> tuple[float, float]:
        """(lateral, longitudinal) sign applied to device (y, -z)."""
        try:
            lat = _LATERAL_SIGN[self.orientation]
        except KeyError:
            raise UnsupportedOrientationError(self.orientation) from None
        lon = 1.0
        if self.policy.flip_lateral:
            lat = -lat
        if self.policy.flip_longitudinal:
            lon = -lon
        return lat, lon

    def map(self, raw: np.ndarray, offset: np.ndarray) -> np.ndarray:
        """Return ``[lateral, longitudinal]`` in G for one raw sample (m/s²)."""
        lat_sign, lon_sign = self.signs()
        user = raw - offset
        return np.array([
            lat_sign * user[1],
            lon_sign * -user[2],
        ]) / G_MPS2
