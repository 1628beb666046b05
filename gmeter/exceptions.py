"""Exception hierarchy for gmeter."""

from __future__ import annotations

from typing import Any


class GMeterError(Exception):
    """Base exception for all gmeter errors."""


class GMeterConfigError(GMeterError):
    """Invalid configuration value."""


class SensorNotFoundError(GMeterError):
    """No accelerometer serial port could be found."""


class SampleError(GMeterError):
    """A single sample was rejected.  Pipeline state is left untouched."""


class IncompleteSampleError(SampleError):
    """A required acceleration axis is missing (``None`` or NaN)."""

    def __init__(self, axis: str, sample: Any = None) -> None:
        self.axis = axis
        self.sample = sample
        super().__init__(f"Sample is missing the {axis!r} axis")


class UnsupportedOrientationError(SampleError):
    """The device orientation has no axis mapping (portrait)."""

    def __init__(self, orientation: Any) -> None:
        self.orientation = orientation
        super().__init__(
            f"Orientation {orientation} is not supported; "
            "mount the device in landscape"
        )


class ReplayFormatError(GMeterError):
    """A row in a replay file could not be parsed."""

    def __init__(self, row: int, reason: str) -> None:
        self.row = row
        self.reason = reason
        super().__init__(f"Replay row {row}: {reason}")
