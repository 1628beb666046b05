"""Formatting helpers shared by the console app and the dashboard."""

from __future__ import annotations

import math

import numpy as np

from .estimator import PeakRecord, PipelineOutput

MAX_DISPLACEMENT = 150.0   # meter radius (px) at full scale

CSV_HEADER = "t,lateral_g,longitudinal_g,magnitude_g,left,right,forward,backward,slip"


def ball_offset(filtered: np.ndarray,
                radius: float = MAX_DISPLACEMENT,
                full_scale_g: float = 1.0) -> tuple[float, float]:
    """
    Screen displacement (dx, dy) of the G-ball, y pointing down.

    Positive lateral (left) moves the ball left, forward moves it up.
    The result is clipped to the meter circle of *radius*.
    """
    dx = -float(filtered[0]) / full_scale_g * radius
    dy = -float(filtered[1]) / full_scale_g * radius
    r = math.hypot(dx, dy)
    if r > radius:
        dx *= radius / r
        dy *= radius / r
    return dx, dy


def format_peaks(peaks: PeakRecord) -> str:
    return (f"L {peaks.left:.2f}  R {peaks.right:.2f}  "
            f"F {peaks.forward:.2f}  B {peaks.backward:.2f}")


def format_live(out: PipelineOutput) -> str:
    marker = "SLIP" if out.warning_fired else "OK"
    return (f"[{marker:4s}]  Lat={out.lateral:+5.2f} G  "
            f"Lon={out.longitudinal:+5.2f} G  |G|={out.magnitude:4.2f}  "
            f"max {format_peaks(out.peaks)}")


def csv_row(out: PipelineOutput) -> str:
    p = out.peaks
    return (f"{out.t:.6f},{out.lateral:.4f},{out.longitudinal:.4f},"
            f"{out.magnitude:.4f},{p.left:.4f},{p.right:.4f},"
            f"{p.forward:.4f},{p.backward:.4f},"
            f"{1 if out.warning_fired else 0}")
