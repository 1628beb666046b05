#!/usr/bin/env python3
"""
sensor_driver.py — Accelerometer sample sources for the G-meter.

Two sources feed the estimator:

  * **UART** — the accelerometer board emits 18-byte frames of seven
    big-endian int16 words between a header and a trailer:
      [0xAA][0x55][AX][AY][AZ][W3][W4][W5][W6][0x0D][0x0A]
    AX..AZ are scaled to m/s².  The four trailing words are board
    telemetry and are skipped.

  * **CSV replay** — recorded or synthetic drives, one event per row:
      t,x,y,z                   acceleration sample (empty cell = missing axis)
      t,orientation,<angle>     orientation change (0, 90, -90)

Both yield :class:`AccelSample` (and, for replay, :class:`OrientationEvent`)
strictly in arrival order.
"""

from __future__ import annotations

import csv
import enum
import glob
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Iterator, Optional, Union

import serial
import serial.tools.list_ports

from .exceptions import ReplayFormatError, SensorNotFoundError

# ── Sensor constants ────────────────────────────────────────────────────────
G_MPS2     = 9.80665    # m/s² per g
BAUD       = 115_200
PKT_LEN    = 18
HEADER     = b"\xAA\x55"
TRAILER    = b"\x0D\x0A"
ACCEL_LSB  = 2048.0     # LSB/g   (±16 g)
USB_UART_NAMES = ("ftdi", "cp210", "ch340", "usb-serial", "uart")


class Orientation(enum.Enum):
    """Screen orientation reported by the host, as a rotation angle."""
    PORTRAIT = 0
    LANDSCAPE_RIGHT = 90      # home button on the right
    LANDSCAPE_LEFT = -90      # home button on the left

    @classmethod
    def from_angle(cls, angle: Union[int, float, str]) -> "Orientation":
        a = int(float(angle)) % 360
        if a == 0:
            return cls.PORTRAIT
        if a == 90:
            return cls.LANDSCAPE_RIGHT
        if a == 270:
            return cls.LANDSCAPE_LEFT
        raise ValueError(f"Unknown orientation angle: {angle!r}")

    @property
    def is_landscape(self) -> bool:
        return self is not Orientation.PORTRAIT


@dataclass(frozen=True)
class AccelSample:
    """One acceleration-including-gravity measurement (device frame)."""
    t: float                    # monotonic timestamp (s)
    x: Optional[float] = None   # m/s²
    y: Optional[float] = None   # m/s²
    z: Optional[float] = None   # m/s²
    seq: int = 0

    def missing_axis(self) -> Optional[str]:
        """Name of the first missing axis, or None if the sample is complete."""
        for name in ("x", "y", "z"):
            v = getattr(self, name)
            if v is None or math.isnan(v):
                return name
        return None


@dataclass(frozen=True)
class OrientationEvent:
    """Orientation change delivered between samples."""
    t: float
    orientation: Orientation


SensorEvent = Union[AccelSample, OrientationEvent]


# ── UART source ─────────────────────────────────────────────────────────────

def _s16(hi: int, lo: int) -> int:
    v = (hi << 8) | lo
    return v - 0x10000 if v >= 0x8000 else v


def decode_packet(pkt: bytes, t: float, seq: int = 0) -> AccelSample:
    """Decode one framed packet into an :class:`AccelSample` in m/s²."""
    if len(pkt) != PKT_LEN:
        raise ValueError(f"Packet must be {PKT_LEN} bytes, got {len(pkt)}")
    if pkt[:2] != HEADER or pkt[-2:] != TRAILER:
        raise ValueError("Bad packet framing")

    scale = G_MPS2 / ACCEL_LSB
    return AccelSample(
        t=t, seq=seq,
        x=_s16(pkt[2], pkt[3]) * scale,
        y=_s16(pkt[4], pkt[5]) * scale,
        z=_s16(pkt[6], pkt[7]) * scale,
    )


def find_port() -> Optional[str]:
    """Auto-detect the accelerometer board's USB-UART bridge."""
    for p in serial.tools.list_ports.comports():
        d = ((p.description or "") + (p.manufacturer or "")).lower()
        if any(k in d for k in USB_UART_NAMES):
            return p.device
    usbs = sorted(glob.glob("/dev/ttyUSB*"))
    return usbs[0] if usbs else None


def stream(port: Optional[str] = None,
           baud: int = BAUD) -> Generator[AccelSample, None, None]:
    """
    Open *port* and yield one :class:`AccelSample` per valid packet.

    Resyncs on the header and drops packets whose trailer does not match.
    """
    port = port or find_port()
    if port is None:
        raise SensorNotFoundError("No serial port found.  Is the board connected?")

    ser = serial.Serial(port, baud, timeout=0.5)
    ser.reset_input_buffer()

    buf = bytearray()
    seq = 0

    try:
        while True:
            chunk = ser.read(max(ser.in_waiting, 1))
            if not chunk:
                continue
            buf.extend(chunk)

            while len(buf) >= PKT_LEN:
                idx = buf.find(HEADER)
                if idx < 0:
                    buf = buf[-1:]
                    break
                del buf[:idx]
                if len(buf) < PKT_LEN:
                    break

                pkt = bytes(buf[:PKT_LEN])
                if pkt[-2:] != TRAILER:
                    # false header, rescan from the next byte
                    del buf[:2]
                    continue
                del buf[:PKT_LEN]

                seq += 1
                yield decode_packet(pkt, time.monotonic(), seq)
    finally:
        ser.close()


# ── CSV replay ──────────────────────────────────────────────────────────────

def _cell(text: str) -> Optional[float]:
    text = text.strip()
    return float(text) if text else None


def parse_rows(rows: Iterator[list[str]]) -> Generator[SensorEvent, None, None]:
    """
    Turn CSV rows into sensor events.  Blank and ``#`` lines are skipped.

    Raises :class:`ReplayFormatError` (with the 1-based row number) on a
    non-numeric cell or an unknown orientation angle.
    """
    seq = 0
    for lineno, row in enumerate(rows, 1):
        if not row or not row[0].strip() or row[0].lstrip().startswith("#"):
            continue
        if row[0].strip() == "t":
            continue  # header
        try:
            t = float(row[0])
            if len(row) >= 3 and row[1].strip() == "orientation":
                event: SensorEvent = OrientationEvent(
                    t=t, orientation=Orientation.from_angle(row[2]))
            else:
                cells = (row[1:4] + ["", "", ""])[:3]
                event = AccelSample(t=t, x=_cell(cells[0]), y=_cell(cells[1]),
                                    z=_cell(cells[2]), seq=seq + 1)
        except ValueError as exc:
            raise ReplayFormatError(lineno, str(exc)) from exc
        if isinstance(event, AccelSample):
            seq += 1
        yield event


def replay_csv(path: Union[str, Path]) -> Generator[SensorEvent, None, None]:
    """Yield the events recorded in the CSV file at *path*."""
    with open(path, newline="") as fh:
        yield from parse_rows(csv.reader(fh))
