#!/usr/bin/env python3
"""
simulate_drive.py — Synthetic drive for the G-meter.

Writes a CSV drive that ``gmeter --replay`` / ``gmeter-dashboard --replay``
can play back, then (with --check) runs it through the estimator and
reports what fired.

Profile (landscape-right mount, gravity along device X):
  1. rest              zero point is captured here
  2. accelerate        +0.3 G longitudinal
  3. corner left       lateral ramps to 0.7 G
  4. slip              lateral collapses to 0.1 G within a few samples
  5. brake             -0.5 G longitudinal
  6. rest

Usage:
  python3 scripts/simulate_drive.py > drive.csv
  python3 scripts/simulate_drive.py --rate 100 --noise 0.02 -o drive.csv
  python3 scripts/simulate_drive.py --dropouts 0.01 --rotate --check
"""

import argparse
import csv
import io
import sys

import numpy as np

from gmeter.estimator import GMeterEstimator, PipelineOutput
from gmeter.exceptions import SampleError
from gmeter.sensor_driver import G_MPS2, OrientationEvent, parse_rows


def profile(rate: float):
    """Yield (t, lateral_g, longitudinal_g) at *rate* Hz."""
    segments = [
        # duration (s), lateral start/end, longitudinal start/end
        (1.0, 0.0, 0.0, 0.0, 0.0),
        (2.0, 0.0, 0.0, 0.3, 0.3),
        (1.5, 0.0, 0.7, 0.0, 0.0),
        (0.8, 0.7, 0.7, 0.0, 0.0),
        (0.05, 0.7, 0.1, 0.0, 0.0),
        (1.0, 0.1, 0.0, 0.0, 0.0),
        (1.5, 0.0, 0.0, -0.5, -0.5),
        (1.0, 0.0, 0.0, 0.0, 0.0),
    ]
    t = 0.0
    dt = 1.0 / rate
    for dur, lat0, lat1, lon0, lon1 in segments:
        n = max(int(round(dur * rate)), 1)
        for i in range(n):
            f = i / max(n - 1, 1)
            yield t, lat0 + (lat1 - lat0) * f, lon0 + (lon1 - lon0) * f
            t += dt


def generate(rate: float, noise: float, dropouts: float, rotate: bool,
             seed: int) -> str:
    rng = np.random.default_rng(seed)
    out = io.StringIO()
    out.write("t,x,y,z\n")
    rotated = False

    for t, lat, lon in profile(rate):
        if rotate and not rotated and t >= 1.5:
            # knock the mount over and back: both changes invalidate the zero point
            out.write(f"{t:.4f},orientation,-90\n")
            out.write(f"{t:.4f},orientation,90\n")
            rotated = True

        x = -G_MPS2 + rng.normal(0.0, noise) * G_MPS2
        y = lat * G_MPS2 + rng.normal(0.0, noise) * G_MPS2
        z = -lon * G_MPS2 + rng.normal(0.0, noise) * G_MPS2
        cells = [f"{x:.5f}", f"{y:.5f}", f"{z:.5f}"]
        if dropouts > 0 and rng.random() < dropouts:
            cells[int(rng.integers(0, 3))] = ""
        out.write(f"{t:.4f},{','.join(cells)}\n")

    return out.getvalue()


def check(text: str) -> int:
    est = GMeterEstimator()
    n = dropped = cals = 0
    warnings = []
    for event in parse_rows(csv.reader(io.StringIO(text))):
        if isinstance(event, OrientationEvent):
            est.on_orientation_change(event.orientation)
            continue
        try:
            res = est.on_sample(event)
        except SampleError:
            dropped += 1
            continue
        if not isinstance(res, PipelineOutput):
            cals += 1
            continue
        n += 1
        if res.warning_fired:
            warnings.append(res.slip_event)

    print(f"  samples     : {n}", file=sys.stderr)
    print(f"  dropped     : {dropped}", file=sys.stderr)
    print(f"  zero points : {cals}", file=sys.stderr)
    for ev in warnings:
        print(f"  G-drop at t={ev.t:.2f}s  {ev.peak:.2f} G -> {ev.current:.2f} G",
              file=sys.stderr)
    p = est.peaks
    print(f"  peaks       : L {p.left:.2f}  R {p.right:.2f}  "
          f"F {p.forward:.2f}  B {p.backward:.2f}", file=sys.stderr)
    return 0 if warnings else 1


def main():
    ap = argparse.ArgumentParser(description="Synthetic G-meter drive")
    ap.add_argument("-o", "--output", help="Output CSV (default stdout)")
    ap.add_argument("--rate", type=float, default=60.0, help="Sample rate (Hz)")
    ap.add_argument("--noise", type=float, default=0.01, help="Noise sigma (G)")
    ap.add_argument("--dropouts", type=float, default=0.0,
                    help="Probability of a missing axis per sample")
    ap.add_argument("--rotate", action="store_true",
                    help="Insert an orientation change mid-drive")
    ap.add_argument("--seed", type=int, default=1)
    ap.add_argument("--check", action="store_true",
                    help="Run the drive through the estimator (report on stderr)")
    args = ap.parse_args()

    text = generate(args.rate, args.noise, args.dropouts, args.rotate, args.seed)
    if args.output:
        with open(args.output, "w") as fh:
            fh.write(text)
    else:
        sys.stdout.write(text)

    if args.check:
        sys.exit(check(text))


if __name__ == "__main__":
    main()
