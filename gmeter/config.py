"""Tunable constants and the estimator configuration."""

from __future__ import annotations

from dataclasses import dataclass

from .exceptions import GMeterConfigError
from .sensor_driver import Orientation

# -- Slip (G-drop) detection defaults -----------------------------------------
DECLINE_THRESHOLD = 0.3    # G drop from the window peak that counts as a slip
SLIP_PEAK_MIN     = 0.4    # G the window peak must reach first
COOLDOWN_MS       = 3000   # ms between two warnings
HISTORY_SIZE      = 12     # samples (~0.2 s at 60 Hz)

# -- Smoothing -----------------------------------------------------------------
ALPHA = 0.2                # EMA weight of the newest sample


@dataclass
class GMeterConfig:
    alpha: float = ALPHA
    decline_threshold: float = DECLINE_THRESHOLD
    slip_peak_min: float = SLIP_PEAK_MIN
    cooldown_ms: float = COOLDOWN_MS
    history_size: int = HISTORY_SIZE
    flip_lateral: bool = False
    flip_longitudinal: bool = False
    orientation: Orientation = Orientation.LANDSCAPE_RIGHT

    def __post_init__(self) -> None:
        if not 0.0 < self.alpha <= 1.0:
            raise GMeterConfigError(f"alpha must be in (0, 1], got {self.alpha}")
        if self.history_size < 1:
            raise GMeterConfigError(
                f"history_size must be >= 1, got {self.history_size}")
        for name in ("decline_threshold", "slip_peak_min", "cooldown_ms"):
            if getattr(self, name) < 0:
                raise GMeterConfigError(f"{name} must be >= 0")
        if not isinstance(self.orientation, Orientation):
            raise GMeterConfigError(f"Unknown orientation: {self.orientation!r}")
