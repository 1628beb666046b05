#!/usr/bin/env python3
"""
test_sensor_driver.py -- Tests for sample sources.

Run:  python3 -m pytest gmeter/tests/test_sensor_driver.py -v
"""

import csv
import io
import itertools
import struct

import pytest

# Allow running from repo root
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from gmeter import sensor_driver
from gmeter.exceptions import GMeterError, ReplayFormatError, SensorNotFoundError
from gmeter.sensor_driver import (
    G_MPS2, HEADER, TRAILER, AccelSample, Orientation, OrientationEvent,
    decode_packet, parse_rows, replay_csv, stream,
)


def _packet(ax=0, ay=0, az=0, trailer=TRAILER) -> bytes:
    return HEADER + struct.pack(">7h", ax, ay, az, 0, 0, 0, 0) + trailer


# ── Packet decode ───────────────────────────────────────────────────────────

class TestDecode:
    def test_scaling(self):
        s = decode_packet(_packet(2048, -2048, 1024), t=1.5, seq=7)
        assert s.x == pytest.approx(G_MPS2)
        assert s.y == pytest.approx(-G_MPS2)
        assert s.z == pytest.approx(0.5 * G_MPS2)
        assert s.t == 1.5
        assert s.seq == 7
        assert s.missing_axis() is None

    def test_bad_trailer(self):
        with pytest.raises(ValueError):
            decode_packet(_packet(trailer=b"\x00\x00"), t=0.0)

    def test_bad_length(self):
        with pytest.raises(ValueError):
            decode_packet(_packet()[:-1], t=0.0)


class _FakeSerial:
    def __init__(self, data: bytes):
        self._chunks = [data]
        self.closed = False

    @property
    def in_waiting(self) -> int:
        return len(self._chunks[0]) if self._chunks else 0

    def read(self, n: int) -> bytes:
        return self._chunks.pop(0) if self._chunks else b""

    def reset_input_buffer(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class TestStream:
    def test_resync_and_bad_trailer(self, monkeypatch):
        bad = HEADER + bytes(14) + b"\x00\x00"
        data = b"\x01\x02\x03" + _packet(2048) + bad + _packet(0, 2048)
        fake = _FakeSerial(data)
        monkeypatch.setattr(sensor_driver.serial, "Serial", lambda *a, **k: fake)

        gen = stream("/dev/null")
        samples = list(itertools.islice(gen, 2))
        gen.close()

        assert [s.seq for s in samples] == [1, 2]
        assert samples[0].x == pytest.approx(G_MPS2)
        assert samples[1].y == pytest.approx(G_MPS2)
        assert fake.closed

    def test_find_port_by_bridge_name(self, monkeypatch):
        class _Port:
            def __init__(self, device, description, manufacturer=None):
                self.device = device
                self.description = description
                self.manufacturer = manufacturer

        ports = [_Port("/dev/ttyS0", "ttyS0"),
                 _Port("/dev/ttyUSB3", "CP2102 USB to UART Bridge", "Silicon Labs")]
        monkeypatch.setattr(sensor_driver.serial.tools.list_ports, "comports",
                            lambda: ports)
        assert sensor_driver.find_port() == "/dev/ttyUSB3"

    def test_no_port(self, monkeypatch):
        monkeypatch.setattr(sensor_driver, "find_port", lambda: None)
        with pytest.raises(SensorNotFoundError):
            next(stream())


# ── Orientation ─────────────────────────────────────────────────────────────

class TestOrientation:
    @pytest.mark.parametrize("angle, expected", [
        (0, Orientation.PORTRAIT),
        (90, Orientation.LANDSCAPE_RIGHT),
        (-90, Orientation.LANDSCAPE_LEFT),
        (270, Orientation.LANDSCAPE_LEFT),
        ("90", Orientation.LANDSCAPE_RIGHT),
    ])
    def test_from_angle(self, angle, expected):
        assert Orientation.from_angle(angle) is expected

    def test_unknown_angle(self):
        with pytest.raises(ValueError):
            Orientation.from_angle(45)

    def test_is_landscape(self):
        assert not Orientation.PORTRAIT.is_landscape
        assert Orientation.LANDSCAPE_LEFT.is_landscape


# ── CSV replay ──────────────────────────────────────────────────────────────

DRIVE = """\
t,x,y,z
# recorded on the bench
0.0,-9.8,0.0,0.0
0.1,-9.8,,0.5

0.2,orientation,-90
0.3,-9.8,1.0,2.0
"""


class TestReplay:
    def test_parse_rows(self):
        events = list(parse_rows(csv.reader(io.StringIO(DRIVE))))
        assert len(events) == 4
        assert events[0] == AccelSample(t=0.0, x=-9.8, y=0.0, z=0.0, seq=1)
        assert events[1].y is None
        assert events[1].missing_axis() == "y"
        assert events[2] == OrientationEvent(t=0.2, orientation=Orientation.LANDSCAPE_LEFT)
        assert events[3].seq == 3

    def test_short_row_is_incomplete(self):
        events = list(parse_rows(iter([["1.0", "0.5"]])))
        assert events[0].missing_axis() == "y"

    @pytest.mark.parametrize("bad_row", [
        "0.1,orientation,45",
        "soon,-9.8,0.0,0.0",
        "0.1,-9.8,abc,0.0",
    ])
    def test_malformed_row_reports_row_number(self, bad_row):
        text = f"t,x,y,z\n0.0,-9.8,0.0,0.0\n{bad_row}\n"
        gen = parse_rows(csv.reader(io.StringIO(text)))
        assert isinstance(next(gen), AccelSample)
        with pytest.raises(ReplayFormatError) as err:
            next(gen)
        assert err.value.row == 3
        assert isinstance(err.value, GMeterError)
        assert "row 3" in str(err.value)

    def test_replay_file(self, tmp_path):
        path = tmp_path / "drive.csv"
        path.write_text(DRIVE)
        events = list(replay_csv(path))
        assert [type(e).__name__ for e in events] == [
            "AccelSample", "AccelSample", "OrientationEvent", "AccelSample"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
