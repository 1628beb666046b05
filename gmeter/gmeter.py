#!/usr/bin/env python3
"""
gmeter.py -- Console G-meter.

Reads accelerometer packets from the board (or replays a CSV drive), runs
the G-meter estimator and streams lateral / longitudinal G, per-direction
peaks and G-drop (slip) warnings to the console.

Usage
-----
  python3 -m gmeter.gmeter                         # auto-detect port
  python3 -m gmeter.gmeter /dev/ttyUSB1            # explicit port
  python3 -m gmeter.gmeter --replay drive.csv      # replay a recording
  python3 -m gmeter.gmeter --csv > session.csv     # CSV output
  python3 -m gmeter.gmeter --orientation left --flip-longitudinal

Controls
--------
  SIGUSR1   reset peaks        (kill -USR1 <pid>)
  SIGUSR2   recalibrate        (kill -USR2 <pid>)
  Ctrl+C    stop and print the peak summary

Workflow
--------
1. Mount the device in landscape and keep the vehicle STILL at startup;
   the first sample becomes the zero point.
2. Drive.  A bell rings when the combined G drops sharply from a peak.
3. Rotating the device invalidates the zero point; the next sample
   recalibrates.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import time
from typing import Iterable

from .config import COOLDOWN_MS, GMeterConfig
from .display import CSV_HEADER, csv_row, format_live, format_peaks
from .estimator import CalibrationConfirmed, GMeterEstimator
from .exceptions import GMeterError, SampleError
from .sensor_driver import (BAUD, Orientation, OrientationEvent, SensorEvent,
                            find_port, replay_csv, stream)

_LOGGER = logging.getLogger(__name__)

_ORIENTATIONS = {
    "left": Orientation.LANDSCAPE_LEFT,
    "right": Orientation.LANDSCAPE_RIGHT,
}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="G-meter -- lateral / longitudinal G")
    ap.add_argument("port", nargs="?", help="Serial port (auto-detect)")
    ap.add_argument("-b", "--baud", type=int, default=BAUD)
    ap.add_argument("--replay", metavar="CSV", help="Replay a recorded drive")
    ap.add_argument("--orientation", choices=sorted(_ORIENTATIONS), default="right",
                    help="Landscape side the home button is on (default right)")
    ap.add_argument("--alpha", type=float, default=0.2,
                    help="EMA smoothing factor, 0 < alpha <= 1 (default 0.2)")
    ap.add_argument("--flip-lateral", action="store_true")
    ap.add_argument("--flip-longitudinal", action="store_true")
    ap.add_argument("--cooldown-ms", type=float, default=COOLDOWN_MS,
                    help="Minimum time between slip warnings (default 3000)")
    ap.add_argument("--csv", action="store_true", help="CSV output mode")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap


def config_from_args(args: argparse.Namespace) -> GMeterConfig:
    return GMeterConfig(
        alpha=args.alpha,
        cooldown_ms=args.cooldown_ms,
        flip_lateral=args.flip_lateral,
        flip_longitudinal=args.flip_longitudinal,
        orientation=_ORIENTATIONS[args.orientation],
    )


class Controls:
    """Flags set from signal handlers, consumed on the sample loop."""
    def __init__(self):
        self.stop = False
        self.reset_peaks = False
        self.recalibrate = False

    def install(self) -> None:
        signal.signal(signal.SIGINT, self._on_stop)
        if hasattr(signal, "SIGUSR1"):
            signal.signal(signal.SIGUSR1, self._on_reset)
            signal.signal(signal.SIGUSR2, self._on_recal)

    def _on_stop(self, *_):
        self.stop = True

    def _on_reset(self, *_):
        self.reset_peaks = True

    def _on_recal(self, *_):
        self.recalibrate = True


def run(events: Iterable[SensorEvent], est: GMeterEstimator,
        controls: Controls, csv: bool = False, out=sys.stdout) -> dict:
    """Drive *est* with *events* until exhausted or stopped.  Returns counters."""
    counts = {"samples": 0, "dropped": 0, "warnings": 0}

    for event in events:
        if controls.stop:
            break
        if controls.reset_peaks:
            controls.reset_peaks = False
            est.reset_peaks()
            if not csv:
                out.write("\n  >> Peaks reset.\n")
        if controls.recalibrate:
            controls.recalibrate = False
            est.calibrate()

        if isinstance(event, OrientationEvent):
            was_calibrated = est.is_calibrated
            est.on_orientation_change(event.orientation)
            if not csv and was_calibrated and not est.is_calibrated:
                out.write(f"\n  >> Orientation now {event.orientation.name.lower()}"
                          f" -- hold still, recalibrating ...\n")
            continue

        try:
            result = est.on_sample(event)
        except SampleError as exc:
            counts["dropped"] += 1
            _LOGGER.debug("Dropped sample %d: %s", event.seq, exc)
            continue

        if isinstance(result, CalibrationConfirmed):
            if not csv:
                out.write("\n  >> Zero point captured.\n")
                out.write(result.offset.summary())
            continue

        counts["samples"] += 1
        if result.warning_fired:
            counts["warnings"] += 1

        if csv:
            out.write(csv_row(result) + "\n")
        else:
            if result.warning_fired:
                ev = result.slip_event
                out.write(f"\a\n  !! G-DROP: {ev.peak:.2f} G -> {ev.current:.2f} G\n")
            out.write("\r  " + format_live(result))
            out.flush()

    return counts


def main() -> None:
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        cfg = config_from_args(args)
    except GMeterError as exc:
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

    controls = Controls()
    controls.install()
    est = GMeterEstimator(cfg)

    if args.csv:
        print(CSV_HEADER)
    else:
        print(f"\n{'='*62}")
        print(f"  G-meter -- lateral / longitudinal G")
        print(f"{'='*62}")
        print(f"  Source: {source}")
        print(f"  Mount : {cfg.orientation.name.lower()}")
        print(f"{'='*62}\n")
        print("  >> Hold the vehicle STILL -- calibrating ...", flush=True)

    t0 = time.monotonic()
    try:
        counts = run(events, est, controls, csv=args.csv)
    except GMeterError as exc:
        sys.exit(f"\nERROR: {exc}")
    finally:
        est.stop()

    elapsed = time.monotonic() - t0
    if not args.csv:
        print(f"\n\n{'='*62}")
        print(f"  Processed {counts['samples']} samples in {elapsed:.1f} s  "
              f"({counts['dropped']} dropped)")
        print(f"  Slip warnings: {counts['warnings']}")
        print(f"  Peaks: {format_peaks(est.peaks)}")
        print(f"{'='*62}\n")


if __name__ == "__main__":
    main()
