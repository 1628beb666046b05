#!/usr/bin/env python3
"""
dashboard.py — Real-time G-meter dashboard with matplotlib.

Two-panel live visualization:
  ┌─────────────────┬─────────────────┐
  │    G-circle     │   Peak G per    │
  │  (ball + trail) │   direction     │
  └─────────────────┴─────────────────┘

Usage
-----
  python3 -m gmeter.dashboard                      # auto-detect port
  python3 -m gmeter.dashboard /dev/ttyUSB1         # explicit port
  python3 -m gmeter.dashboard --replay drive.csv   # replay a recording
  python3 -m gmeter.dashboard --trail 2.0          # 2 s ball trail

Keys: r resets the peaks, c takes a new zero point.  A terminal bell rings
on every G-drop warning.
"""

from __future__ import annotations

import argparse
import collections
import logging
import sys
import threading
import time
from typing import Callable, Iterable

import numpy as np
import matplotlib
matplotlib.use("TkAgg")
import matplotlib.pyplot as plt
import matplotlib.gridspec as gridspec
from matplotlib.animation import FuncAnimation

from .config import GMeterConfig
from .display import ball_offset
from .estimator import CalibrationConfirmed, GMeterEstimator, PeakRecord
from .exceptions import GMeterConfigError, GMeterError, SampleError
from .sensor_driver import (BAUD, Orientation, OrientationEvent, SensorEvent,
                            find_port, replay_csv, stream)

_LOGGER = logging.getLogger(__name__)

FULL_SCALE_G = 1.0
WARNING_HOLD_S = 2.0


# ── Shared state between sensor thread and plot thread ─────────────────────

class SharedState:
    def __init__(self, trail_len: int):
        self.lock = threading.Lock()
        self.trail: collections.deque = collections.deque(maxlen=trail_len)
        self.filtered = np.zeros(2)
        self.magnitude = 0.0
        self.peaks = PeakRecord()
        self.calibrated = False
        self.warnings = 0
        self.last_warning_wall: float | None = None
        self.count = 0
        self.hz = 0.0
        self.orientation = Orientation.LANDSCAPE_RIGHT
        self.error: str | None = None
        # set from the key handler, consumed by the sensor thread
        self.reset_peaks_requested = False
        self.recalibrate_requested = False


def _bell() -> None:
    sys.stdout.write("\a")
    sys.stdout.flush()


# ── Sensor processing thread ───────────────────────────────────────────────

def _apply_requests(shared: SharedState, est: GMeterEstimator) -> None:
    """Run queued key commands on the estimator.  Caller holds the lock."""
    if shared.reset_peaks_requested:
        shared.reset_peaks_requested = False
        shared.peaks = est.reset_peaks()
    if shared.recalibrate_requested:
        shared.recalibrate_requested = False
        est.calibrate()
        shared.calibrated = False


def _sensor_thread(shared: SharedState, events: Iterable[SensorEvent],
                   est: GMeterEstimator, realtime: bool,
                   alert: Callable[[], None] = _bell) -> None:
    t_start = time.monotonic()
    t_first = None

    try:
        for event in events:
            if realtime:
                # pace replayed samples to their recorded timestamps
                if t_first is None:
                    t_first = event.t
                lag = (event.t - t_first) - (time.monotonic() - t_start)
                if lag > 0:
                    time.sleep(lag)

            with shared.lock:
                _apply_requests(shared, est)

            if isinstance(event, OrientationEvent):
                with shared.lock:
                    est.on_orientation_change(event.orientation)
                    shared.calibrated = est.is_calibrated
                    shared.orientation = est.orientation
                continue

            try:
                result = est.on_sample(event)
            except SampleError as exc:
                _LOGGER.debug("Dropped sample %d: %s", event.seq, exc)
                continue

            with shared.lock:
                if isinstance(result, CalibrationConfirmed):
                    shared.calibrated = True
                    shared.trail.clear()
                    shared.filtered = np.zeros(2)
                    shared.magnitude = 0.0
                    continue

                shared.count += 1
                shared.filtered = result.filtered
                shared.magnitude = result.magnitude
                shared.peaks = result.peaks
                shared.trail.append(ball_offset(result.filtered, 1.0, FULL_SCALE_G))
                if result.warning_fired:
                    shared.warnings += 1
                    shared.last_warning_wall = time.monotonic()

                elapsed = time.monotonic() - t_start
                if elapsed > 0:
                    shared.hz = shared.count / elapsed

            if result.warning_fired:
                alert()
    except GMeterError as exc:
        _LOGGER.error("Sensor stream stopped: %s", exc)
        with shared.lock:
            shared.error = str(exc)


# ── Dashboard ──────────────────────────────────────────────────────────────

def _on_key(shared: SharedState, key: str | None) -> None:
    """Queue a command for the sensor thread."""
    with shared.lock:
        if key == "r":
            shared.reset_peaks_requested = True
        elif key == "c":
            shared.recalibrate_requested = True


def _build_dashboard(shared: SharedState):
    plt.style.use("dark_background")
    # r / c are matplotlib's home / back by default
    for name, key in (("keymap.home", "r"), ("keymap.back", "c")):
        if key in plt.rcParams[name]:
            plt.rcParams[name].remove(key)
    fig = plt.figure(figsize=(12, 6))
    fig.canvas.manager.set_window_title("G-meter")

    gs = gridspec.GridSpec(1, 2, width_ratios=[1.2, 1], wspace=0.25,
                           left=0.06, right=0.96, top=0.86, bottom=0.10)

    # ── Panel 1: G-circle ──
    ax_g = fig.add_subplot(gs[0, 0])
    ax_g.set_aspect("equal")
    ax_g.set_xlim(-1.15, 1.15)
    ax_g.set_ylim(-1.15, 1.15)
    ax_g.set_xticks([])
    ax_g.set_yticks([])
    theta = np.linspace(0, 2 * np.pi, 181)
    for r in (0.25, 0.5, 0.75, 1.0):
        ax_g.plot(r * np.cos(theta), r * np.sin(theta), lw=0.8,
                  color="#495057" if r < 1.0 else "#ADB5BD")
        ax_g.text(0.02, r + 0.01, f"{r * FULL_SCALE_G:.2f}", fontsize=7, color="#868E96")
    ax_g.axhline(0, lw=0.5, color="#495057")
    ax_g.axvline(0, lw=0.5, color="#495057")
    ax_g.text(0, 1.08, "ACCEL", ha="center", fontsize=8, color="#868E96")
    ax_g.text(0, -1.12, "BRAKE", ha="center", fontsize=8, color="#868E96")
    ax_g.text(-1.12, 0, "L", va="center", fontsize=8, color="#868E96")
    ax_g.text(1.08, 0, "R", va="center", fontsize=8, color="#868E96")
    trail_line, = ax_g.plot([], [], lw=1.0, color="#339AF0", alpha=0.6)
    ball, = ax_g.plot([], [], "o", ms=16, color="#FCC419")

    # ── Panel 2: Peak bars ──
    ax_p = fig.add_subplot(gs[0, 1])
    ax_p.set_title("Peak G", fontsize=11, pad=8)
    ax_p.set_ylabel("G")
    ax_p.set_ylim(0, FULL_SCALE_G * 1.2)
    ax_p.grid(alpha=0.2, axis="y")
    labels = ["Left", "Right", "Fwd", "Back"]
    bars = ax_p.bar(labels, [0, 0, 0, 0],
                    color=["#FF6B6B", "#FF6B6B", "#51CF66", "#339AF0"], alpha=0.9)
    bar_text = [ax_p.text(i, 0, "", ha="center", va="bottom", fontsize=9)
                for i in range(4)]

    # ── Status bar ──
    status_text = fig.text(0.5, 0.93, "Calibrating …", ha="center", fontsize=12,
                           color="#FCC419", fontweight="bold")

    # ── Animation update ──
    def _update(frame):
        with shared.lock:
            trail = np.array(shared.trail) if shared.trail else np.zeros((0, 2))
            filtered = shared.filtered.copy()
            magnitude = shared.magnitude
            peaks = shared.peaks.copy()
            calibrated = shared.calibrated
            warnings = shared.warnings
            last_warn = shared.last_warning_wall
            hz = shared.hz
            orientation = shared.orientation
            error = shared.error

        if error is not None:
            status_text.set_text(f"ERROR: {error}")
            status_text.set_color("#FF6B6B")
            return []

        if not calibrated:
            status_text.set_text("⏳  Calibrating …  —  keep the vehicle still")
            status_text.set_color("#FCC419")
            return []

        # Screen offsets have y pointing down; the plot has y up.
        if len(trail) > 0:
            trail_line.set_data(trail[:, 0], -trail[:, 1])
        dx, dy = ball_offset(filtered, 1.0, FULL_SCALE_G)
        ball.set_data([dx], [-dy])

        for bar, txt, v in zip(bars, bar_text, peaks.as_tuple()):
            bar.set_height(v)
            txt.set_position((bar.get_x() + bar.get_width() / 2, v))
            txt.set_text(f"{v:.2f}")
        top = max(max(peaks.as_tuple()) * 1.2, FULL_SCALE_G * 1.2)
        ax_p.set_ylim(0, top)

        slipping = last_warn is not None and time.monotonic() - last_warn < WARNING_HOLD_S
        status_text.set_text(
            f"{'G-DROP!' if slipping else 'OK':7s}   │   |G| {magnitude:.2f}   │   "
            f"Warnings: {warnings}   │   {hz:.0f} Hz   │   "
            f"Mount: {orientation.name.lower()}"
        )
        status_text.set_color("#FF6B6B" if slipping else "#51CF66")
        ball.set_color("#FF6B6B" if slipping else "#FCC419")
        return []

    fig.canvas.mpl_connect("key_press_event", lambda e: _on_key(shared, e.key))
    fig.text(0.5, 0.02, "r: reset peaks   c: recalibrate", ha="center",
             fontsize=8, color="#868E96")

    ani = FuncAnimation(fig, _update, interval=50, blit=False, cache_frame_data=False)
    return fig, ani


# ── Main ────────────────────────────────────────────────────────────────────

def main() -> None:
    ap = argparse.ArgumentParser(description="G-meter dashboard — real-time visualization")
    ap.add_argument("port", nargs="?", help="Serial port (auto-detect)")
    ap.add_argument("-b", "--baud", type=int, default=BAUD)
    ap.add_argument("--replay", metavar="CSV", help="Replay a recorded drive")
    ap.add_argument("--orientation", choices=["left", "right"], default="right")
    ap.add_argument("--alpha", type=float, default=0.2)
    ap.add_argument("--flip-lateral", action="store_true")
    ap.add_argument("--flip-longitudinal", action="store_true")
    ap.add_argument("--trail", type=float, default=1.5,
                    help="Ball trail length in seconds (default 1.5)")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        cfg = GMeterConfig(
            alpha=args.alpha,
            flip_lateral=args.flip_lateral,
            flip_longitudinal=args.flip_longitudinal,
            orientation=(Orientation.LANDSCAPE_LEFT if args.orientation == "left"
                         else Orientation.LANDSCAPE_RIGHT),
        )
    except GMeterConfigError as exc:
        sys.exit(f"ERROR: {exc}")

    if args.replay:
        events: Iterable[SensorEvent] = replay_csv(args.replay)
        source = args.replay
    else:
        port = args.port or find_port()
        if not port:
            sys.exit("ERROR: No serial port found.")
        events = stream(port, args.baud)
        source = f"{port} @ {args.baud} baud"

    # Trail buffer size: ~trail * sample_rate
    shared = SharedState(max(int(args.trail * 60), 1))
    est = GMeterEstimator(cfg)
    shared.orientation = est.orientation

    # ── Start sensor thread ──
    t = threading.Thread(target=_sensor_thread,
                         args=(shared, events, est, bool(args.replay)),
                         daemon=True)
    t.start()

    print(f"\n  G-meter dashboard — {source}")
    print(f"  Keep the vehicle still for calibration …\n")

    # ── Launch plot (blocks on main thread) ──
    fig, ani = _build_dashboard(shared)
    plt.show()


if __name__ == "__main__":
    main()
