from __future__ import annotations

from types import SimpleNamespace

import pytest
import serial

from sensorlog.telemetry import reader as reader_mod
from sensorlog.telemetry.reader import (
    SerialLineReader,
    TransportOpenError,
    TransportReadError,
    list_candidate_ports,
)


class FakeSerial:
    instances: list["FakeSerial"] = []

    def __init__(self, port, baud, **kwargs) -> None:
        self.port = port
        self.baud = baud
        self.kwargs = kwargs
        self.chunks: list[bytes | Exception] = []
        self.input_reset = False
        self.closed = False
        FakeSerial.instances.append(self)

    def reset_input_buffer(self) -> None:
        self.input_reset = True

    def readline(self) -> bytes:
        if not self.chunks:
            return b""
        item = self.chunks.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_serial(monkeypatch):
    FakeSerial.instances = []
    monkeypatch.setattr(reader_mod.serial, "Serial", FakeSerial)
    return FakeSerial


def test_opens_port_8n1_and_drains_input(fake_serial):
    r = SerialLineReader("/dev/ttyACM3", 57600, timeout_s=0.5)
    (ser,) = fake_serial.instances

    assert (ser.port, ser.baud) == ("/dev/ttyACM3", 57600)
    assert ser.kwargs == {
        "bytesize": serial.EIGHTBITS,
        "parity": serial.PARITY_NONE,
        "stopbits": serial.STOPBITS_ONE,
        "timeout": 0.5,
    }
    assert ser.input_reset

    r.close()
    assert ser.closed


def test_open_failure_is_wrapped(monkeypatch):
    def _refuse(*args, **kwargs):
        raise serial.SerialException("[Errno 2] could not open port /dev/ttyACM9")

    monkeypatch.setattr(reader_mod.serial, "Serial", _refuse)
    with pytest.raises(TransportOpenError, match="/dev/ttyACM9"):
        SerialLineReader("/dev/ttyACM9", 115200)


def test_read_line_strips_terminators(fake_serial):
    r = SerialLineReader("/dev/ttyACM0", 115200)
    fake_serial.instances[0].chunks = [b'{"id":"M1"}\r\n', b"next\n"]

    assert r.read_line() == '{"id":"M1"}'
    assert r.read_line() == "next"


def test_timeout_returns_none(fake_serial):
    r = SerialLineReader("/dev/ttyACM0", 115200)
    assert r.read_line() is None


def test_partial_line_is_held_until_complete(fake_serial):
    r = SerialLineReader("/dev/ttyACM0", 115200)
    fake_serial.instances[0].chunks = [b'{"id":', b"", b'"M1"}\n']

    assert r.read_line() is None
    assert r.read_line() is None
    assert r.read_line() == '{"id":"M1"}'


def test_invalid_utf8_is_replaced(fake_serial):
    r = SerialLineReader("/dev/ttyACM0", 115200)
    fake_serial.instances[0].chunks = [b"\xffabc\n"]

    assert r.read_line() == "�abc"


def test_read_failure_is_wrapped(fake_serial):
    r = SerialLineReader("/dev/ttyACM0", 115200)
    fake_serial.instances[0].chunks = [serial.SerialException("device reports readiness to read but returned no data")]

    with pytest.raises(TransportReadError):
        r.read_line()


def test_list_candidate_ports_filters_and_orders(monkeypatch):
    from serial.tools import list_ports

    ports = [
        SimpleNamespace(device="/dev/ttyS0", description="ttyS0"),
        SimpleNamespace(device="/dev/ttyUSB1", description="Generic modem"),
        SimpleNamespace(device="/dev/ttyACM0", description=""),
        SimpleNamespace(device="/dev/ttyUSB0", description="CP2102 USB to UART (Silicon Labs)"),
    ]
    monkeypatch.setattr(list_ports, "comports", lambda: ports)

    assert list_candidate_ports() == [
        ("/dev/ttyUSB0", "CP2102 USB to UART (Silicon Labs)"),
        ("/dev/ttyACM0", "(unknown)"),
        ("/dev/ttyUSB1", "Generic modem"),
    ]
