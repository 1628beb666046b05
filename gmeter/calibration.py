#!/usr/bin/env python3
"""
calibration.py — Zero-point capture for the G-meter.

A single sample taken while the vehicle is at rest defines the gravity
vector in the device frame.  It is subtracted from every later sample so
that only motion-induced acceleration remains.

No averaging and no outlier rejection: vibration at the instant of capture
ends up in the offset.  The caller must keep the device **still**.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .exceptions import IncompleteSampleError
from .sensor_driver import G_MPS2, AccelSample, Orientation

_LOGGER = logging.getLogger(__name__)


def sample_vector(sample: AccelSample) -> np.ndarray:
    """Return ``[x, y, z]`` of *sample* or raise if an axis is missing."""
    axis = sample.missing_axis()
    if axis is not None:
        raise IncompleteSampleError(axis, sample)
    return np.array([sample.x, sample.y, sample.z], dtype=float)


@dataclass(frozen=True)
class CalibrationOffset:
    """Gravity vector captured at rest."""
    gravity: np.ndarray        # [gx, gy, gz]  m/s²  device frame
    t: float
    orientation: Orientation

    @property
    def gravity_g(self) -> float:
        return float(np.linalg.norm(self.gravity)) / G_MPS2

    def summary(self) -> str:
        g = self.gravity
        return (
            f"Zero point ({self.orientation.name.lower()})\n"
            f"  Gravity : [{g[0]:+.4f}, {g[1]:+.4f}, {g[2]:+.4f}] m/s²\n"
            f"  |g|     : {self.gravity_g:.4f} g\n"
        )


class CalibrationStore:
    """Holds the current zero point.  Empty until the first capture."""

    def __init__(self) -> None:
        self._offset: Optional[CalibrationOffset] = None

    @property
    def offset(self) -> Optional[CalibrationOffset]:
        return self._offset

    @property
    def is_calibrated(self) -> bool:
        return self._offset is not None

    def capture(self, sample: AccelSample,
                orientation: Orientation) -> CalibrationOffset:
        """Store *sample* verbatim as the new zero point."""
        gravity = sample_vector(sample)
        self._offset = CalibrationOffset(gravity=gravity, t=sample.t,
                                         orientation=orientation)
        _LOGGER.info("Zero point captured: |g| = %.3f g", self._offset.gravity_g)
        return self._offset

    def invalidate(self) -> None:
        """Forget the zero point; the next sample will be captured."""
        if self._offset is not None:
            _LOGGER.info("Zero point invalidated")
        self._offset = None
