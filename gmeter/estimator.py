#!/usr/bin/env python3
"""
estimator.py -- Real-time G-meter estimator.

Per sample, once a zero point exists:

  * **Axis mapping** -- raw device-frame acceleration minus the captured
    gravity vector, re-mapped to vehicle-frame [lateral, longitudinal] G.

  * **EMA smoothing** -- ``f = alpha * x + (1 - alpha) * f_prev`` per axis.
    Magnitude is the Euclidean norm of the filtered vector.

  * **Peak tracking** -- four running maxima (left / right / forward /
    backward), only ever cleared by an explicit reset.

  * **G-drop (slip) detection** -- sliding window of the last N filtered
    magnitudes.  A warning fires when the window peak is high enough and
    the current magnitude has dropped far enough below it, at most once
    per cooldown period.

The first valid sample after start, ``calibrate()``, ``stop()`` or an
orientation change is consumed as the new zero point instead.

Single-threaded: samples must be fed strictly in arrival order.
"""

from __future__ import annotations

import collections
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .axes import AxisMapper, MountPolicy
from .calibration import CalibrationOffset, CalibrationStore, sample_vector
from .config import (COOLDOWN_MS, DECLINE_THRESHOLD, HISTORY_SIZE,
                     SLIP_PEAK_MIN, GMeterConfig)
from .sensor_driver import AccelSample, Orientation

_LOGGER = logging.getLogger(__name__)


# -- EMA smoother ----------------------------------------------------------------

def ema(raw: np.ndarray, previous: np.ndarray, alpha: float) -> np.ndarray:
    """One exponential smoothing step, applied independently per axis."""
    return alpha * raw + (1.0 - alpha) * previous


class EMASmoother:
    """
    Exponential moving average over [lateral, longitudinal].

    Smaller *alpha* is smoother but lags more.
    """
    def __init__(self, alpha: float, n_ch: int = 2):
        self.alpha = alpha
        self.n_ch = n_ch
        self.state = np.zeros(n_ch)

    def __call__(self, x: np.ndarray) -> np.ndarray:
        self.state = ema(x, self.state, self.alpha)
        return self.state.copy()

    @property
    def magnitude(self) -> float:
        return float(np.linalg.norm(self.state))

    def reset(self) -> None:
        self.state = np.zeros(self.n_ch)


# -- Peak tracking -----------------------------------------------------------------

@dataclass
class PeakRecord:
    """Largest G seen per direction since the last reset."""
    left: float = 0.0
    right: float = 0.0
    forward: float = 0.0
    backward: float = 0.0

    def copy(self) -> "PeakRecord":
        return PeakRecord(self.left, self.right, self.forward, self.backward)

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.left, self.right, self.forward, self.backward)


class PeakTracker:
    def __init__(self):
        self.peaks = PeakRecord()

    def update(self, filtered: np.ndarray) -> PeakRecord:
        # Exactly one bucket per axis; 0.0 falls to right / backward.
        lat, lon = float(filtered[0]), float(filtered[1])
        p = self.peaks
        if lat > 0:
            p.left = max(p.left, lat)
        else:
            p.right = max(p.right, abs(lat))
        if lon > 0:
            p.forward = max(p.forward, lon)
        else:
            p.backward = max(p.backward, abs(lon))
        return p

    def reset(self) -> PeakRecord:
        self.peaks = PeakRecord()
        return self.peaks


# -- G-drop (slip) detector ----------------------------------------------------------

class SlipState(enum.Enum):
    IDLE = "idle"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class SlipEvent:
    """A fired G-drop warning."""
    t: float
    peak: float       # window peak (G)
    current: float    # magnitude that triggered (G)

    @property
    def decline(self) -> float:
        return self.peak - self.current


class SlipDetector:
    """
    Windowed G-drop detector with a time-based cooldown.

    The window holds the last *history_size* magnitudes including the
    current one.  Nothing fires until the window is full.
    """
    def __init__(self, decline_threshold: float = DECLINE_THRESHOLD,
                 slip_peak_min: float = SLIP_PEAK_MIN,
                 cooldown_ms: float = COOLDOWN_MS,
                 history_size: int = HISTORY_SIZE):
        self.decline_threshold = decline_threshold
        self.slip_peak_min = slip_peak_min
        self.cooldown_ms = cooldown_ms
        self.history_size = history_size
        self._window: collections.deque[float] = collections.deque(maxlen=history_size)
        self.last_warning_t: Optional[float] = None

    @property
    def window(self) -> list[float]:
        return list(self._window)

    def state(self, t: float) -> SlipState:
        if self.last_warning_t is None:
            return SlipState.IDLE
        if (t - self.last_warning_t) * 1000.0 > self.cooldown_ms:
            return SlipState.IDLE
        return SlipState.COOLDOWN

    def update(self, magnitude: float, t: float) -> Optional[SlipEvent]:
        """Add one magnitude sample; return a :class:`SlipEvent` if it fires."""
        self._window.append(magnitude)
        if len(self._window) < self.history_size:
            return None

        peak = max(self._window)
        if peak < self.slip_peak_min:
            return None
        if peak - magnitude < self.decline_threshold:
            return None
        if self.state(t) is SlipState.COOLDOWN:
            return None

        self.last_warning_t = t
        event = SlipEvent(t=t, peak=peak, current=magnitude)
        _LOGGER.warning("G-drop: peak %.2f G -> current %.2f G", peak, magnitude)
        return event

    def clear(self) -> None:
        """Drop the window (keeps the cooldown timestamp)."""
        self._window.clear()


# -- Estimator output ----------------------------------------------------------------

@dataclass
class PipelineOutput:
    """Per-sample snapshot handed to display / alert collaborators."""
    t: float
    filtered: np.ndarray               # [lateral, longitudinal]  (G)
    raw: np.ndarray                    # unsmoothed mapped vector (G)
    magnitude: float                   # |filtered|  (G)
    peaks: PeakRecord
    slip_event: Optional[SlipEvent] = None

    @property
    def lateral(self) -> float:
        return float(self.filtered[0])

    @property
    def longitudinal(self) -> float:
        return float(self.filtered[1])

    @property
    def warning_fired(self) -> bool:
        return self.slip_event is not None


@dataclass
class CalibrationConfirmed:
    """Returned instead of a reading when a sample became the zero point."""
    offset: CalibrationOffset


EstimatorResult = Union[PipelineOutput, CalibrationConfirmed]


# -- G-meter estimator ------------------------------------------------------------------

class GMeterEstimator:
    """
    Pipeline orchestrator: calibrate-or-process on every sample.

    Owns the zero point, filter state, peaks and slip window; nothing else
    writes to them.
    """

    def __init__(self, config: Optional[GMeterConfig] = None):
        self.config = config or GMeterConfig()
        cfg = self.config

        self.calibration = CalibrationStore()
        self.mapper = AxisMapper(
            cfg.orientation,
            MountPolicy(flip_lateral=cfg.flip_lateral,
                        flip_longitudinal=cfg.flip_longitudinal),
        )
        self.smoother = EMASmoother(cfg.alpha)
        self.peak_tracker = PeakTracker()
        self.slip = SlipDetector(
            decline_threshold=cfg.decline_threshold,
            slip_peak_min=cfg.slip_peak_min,
            cooldown_ms=cfg.cooldown_ms,
            history_size=cfg.history_size,
        )

    # -- State ------------------------------------------------------------------

    @property
    def is_calibrated(self) -> bool:
        return self.calibration.is_calibrated

    @property
    def orientation(self) -> Orientation:
        return self.mapper.orientation

    @property
    def peaks(self) -> PeakRecord:
        return self.peak_tracker.peaks

    # -- Commands ----------------------------------------------------------------

    def calibrate(self) -> None:
        """Take the next valid sample as the new zero point."""
        self.calibration.invalidate()

    def reset_peaks(self) -> PeakRecord:
        return self.peak_tracker.reset().copy()

    def stop(self) -> None:
        """Stop tracking.  A restart begins with a fresh zero point."""
        self.calibration.invalidate()

    def on_orientation_change(self, orientation: Orientation) -> None:
        """Switch axis mapping; the zero point no longer applies."""
        if orientation is self.mapper.orientation:
            return
        _LOGGER.info("Orientation %s -> %s, recalibration required",
                     self.mapper.orientation.name, orientation.name)
        self.mapper.orientation = orientation
        self.calibration.invalidate()

    # -- Samples -------------------------------------------------------------------

    def on_sample(self, sample: AccelSample) -> EstimatorResult:
        """
        Process one sample.

        Raises :class:`IncompleteSampleError` or
        :class:`UnsupportedOrientationError` without touching any state.
        """
        raw = sample_vector(sample)

        offset = self.calibration.offset
        if offset is None:
            offset = self.calibration.capture(sample, self.mapper.orientation)
            self.smoother.reset()
            self.slip.clear()
            return CalibrationConfirmed(offset=offset)

        g = self.mapper.map(raw, offset.gravity)
        filtered = self.smoother(g)
        magnitude = self.smoother.magnitude
        peaks = self.peak_tracker.update(filtered)
        event = self.slip.update(magnitude, sample.t)

        return PipelineOutput(
            t=sample.t,
            filtered=filtered,
            raw=g,
            magnitude=magnitude,
            peaks=peaks.copy(),
            slip_event=event,
        )
