from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import BinaryIO, Sequence, TextIO

from sensorlog.telemetry.alerts import Alert, format_alert, format_value
from sensorlog.telemetry.types import TelemetryRecord
from sensorlog.util.time import format_timestamp, iso_now

log = logging.getLogger(__name__)


def _fmt(value: float | None, spec: str, unit: str = "") -> str:
    if value is None:
        return "n/a"
    return format_value(value, spec) + unit


# ---------------------------------------- #


def render(record: TelemetryRecord, magnitude: float, alerts: Sequence[Alert]) -> str:
    """Human-readable block for one record, one line per field group."""
    when = format_timestamp(record.timestamp) if record.timestamp is not None else "n/a"
    axes = " ".join(
        f"{name}={format_value(v, '+.3f')}"
        for name, v in (("x", record.accel_x), ("y", record.accel_y), ("z", record.accel_z))
    )
    lines = [
        f"[{record.device_id}] {when}",
        f"  temp   {_fmt(record.temperature_c, '.2f', ' C')}",
        f"  accel  {axes} g",
        f"  |a|    {_fmt(magnitude, '.3f', ' g')}",
        f"  light  {_fmt(record.light_level, 'g')}",
        f"  batt   {_fmt(record.battery_v, '.2f', ' V')}",
    ]
    lines.extend(f"  {format_alert(a)}" for a in alerts)
    return "\n".join(lines)


# ---------------------------------------- #


def format_entry(raw_line: str, alerts: Sequence[Alert], stamp: str) -> str:
    entry = f"{stamp} - {raw_line}\n"
    if alerts:
        entry += "ALERTS: " + ", ".join(a.kind.value for a in alerts) + "\n"
    return entry


# ---------------------------------------- #


class SessionRecorder:
    """
    Records:
     - A rendered block per record to the interactive output stream.
     - The raw line plus any alert kinds to an append-only text log.

    The log is opened unbuffered, so a byte the OS accepted is never written
    again on retry. The handle is held between start() and stop(); use it as
    a context manager so the handle is released on every exit path.
    """

    def __init__(self, log_path: Path, out: TextIO | None = None) -> None:
        self.log_path = log_path
        self._out = out
        self._log_fp: BinaryIO | None = None

    # ---------------------------------------- #

    @property
    def is_recording(self) -> bool:
        return self._log_fp is not None

    # ---------------------------------------- #

    def start(self, session_info: str = "") -> None:
        if self._log_fp is not None:
            raise RuntimeError("Recording already started.")

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._log_fp = open(self.log_path, "ab", buffering=0)

        marker = f"# session start {iso_now()}"
        if session_info:
            marker += f" {session_info}"
        self._write_all(memoryview((marker + "\n").encode("utf-8")))

    # ---------------------------------------- #

    def stop(self) -> None:
        if self._log_fp is None:
            return
        fp, self._log_fp = self._log_fp, None
        try:
            fp.close()
        except OSError as exc:
            log.warning("Closing log %s failed: %s", self.log_path, exc)

    # ---------------------------------------- #

    def __enter__(self) -> SessionRecorder:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # ---------------------------------------- #

    def emit(
        self,
        record: TelemetryRecord,
        magnitude: float,
        alerts: Sequence[Alert],
        raw_line: str,
    ) -> bool:
        """
        Render the record and append its log entry.

        Returns False when the entry could not be written even after one
        retry; the loss is logged and the caller keeps ingesting. A retry
        resumes after the bytes the first attempt already wrote.
        """
        if self._log_fp is None:
            raise RuntimeError("Recording has not been started.")

        print(render(record, magnitude, alerts), file=self._out or sys.stdout)

        pending = memoryview(format_entry(raw_line, alerts, iso_now()).encode("utf-8"))
        for attempt in (1, 2):
            try:
                self._write_all(pending)
                return True
            except _PartialWrite as exc:
                pending = exc.remaining
                if attempt == 1:
                    log.debug("Log append failed, retrying: %s", exc.cause)
                    continue
                log.warning("Log write lost for %r: %s", raw_line, exc.cause)
        return False

    # ---------------------------------------- #

    def _write_all(self, data: memoryview) -> None:
        assert self._log_fp is not None
        while data:
            try:
                written = self._log_fp.write(data)
            except OSError as exc:
                raise _PartialWrite(data, exc) from exc
            data = data[written:]


class _PartialWrite(OSError):
    def __init__(self, remaining: memoryview, cause: OSError) -> None:
        super().__init__(str(cause))
        self.remaining = remaining
        self.cause = cause
