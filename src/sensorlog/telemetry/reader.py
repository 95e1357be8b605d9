from __future__ import annotations

from typing import Protocol

import serial


class TransportError(RuntimeError):
    pass


class TransportOpenError(TransportError):
    pass


class TransportReadError(TransportError):
    pass


class LineSource(Protocol):
    def read_line(self) -> str | None: ...

    def close(self) -> None: ...


# ---------------------------------------- #


def _is_candidate_serial_port(device: str) -> bool:
    return device.startswith("/dev/ttyACM") or device.startswith("/dev/ttyUSB")


# ---------------------------------------- #


def _looks_like_usb_serial(description: str) -> bool:
    d = (description or "").lower()
    keywords = (
        "esp32",
        "espressif",
        "arduino",
        "silicon labs",
        "cp210",
        "ch340",
        "wch",
        "ftdi",
        "usb serial",
    )
    return any(k in d for k in keywords)


# ---------------------------------------- #


def list_candidate_ports() -> list[tuple[str, str]]:
    """
    Return likely sensor serial ports as (device, description).

    Filtered to /dev/ttyACM* and /dev/ttyUSB*, with common USB-serial bridge
    descriptions sorted first.
    """
    from serial.tools import list_ports

    ports: list[tuple[str, str]] = []
    for p in list_ports.comports():
        device = getattr(p, "device", "") or ""
        desc = getattr(p, "description", "") or ""
        if _is_candidate_serial_port(device):
            ports.append((device, desc or "(unknown)"))

    ports.sort(key=lambda x: (not _looks_like_usb_serial(x[1]), x[0]))
    return ports


# ---------------------------------------- #


class SerialLineReader:
    """Line source reading newline-framed text from a serial device (8N1)."""

    def __init__(self, port: str, baud: int, timeout_s: float = 1.0) -> None:
        self.port = port
        self.baud = baud
        try:
            self._ser = serial.Serial(
                self.port,
                self.baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=timeout_s,
            )
        except (serial.SerialException, OSError) as exc:
            raise TransportOpenError(f"Cannot open {port} @ {baud}: {exc}") from exc

        # Drain any partial line at startup
        self._ser.reset_input_buffer()

        self._rx_buf = bytearray()

    # ---------------------------------------- #

    def close(self) -> None:
        self._ser.close()

    # ---------------------------------------- #

    def read_line(self) -> str | None:
        """
        Return the next line without its terminator, or None if the read
        timed out before a line arrived.
        """
        try:
            raw = self._ser.readline()
        except (serial.SerialException, OSError) as exc:
            raise TransportReadError(f"Read from {self.port} failed: {exc}") from exc

        if not raw:
            return None

        self._rx_buf.extend(raw)
        if not raw.endswith(b"\n"):
            # Timed out mid-line; keep the fragment for the next read.
            return None

        line = bytes(self._rx_buf)
        self._rx_buf.clear()
        return line.decode("utf-8", errors="replace").rstrip("\r\n")
