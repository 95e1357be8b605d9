"""Shared fixtures for sensorlog tests."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Callable, Iterable

import pytest

from sensorlog.util.config import PipelineConfig

NOMINAL_LINE = (
    '{"id":"M1","ts":1699999999,"tempC":27.1,"ax":-0.03,"ay":0.98,'
    '"az":0.05,"light":123,"bat":3.01}'
)
ALARM_LINE = '{"id":"M1","ts":1,"tempC":35,"ax":0,"ay":0,"az":0,"light":5,"bat":2.5}'


class ScriptedLineSource:
    """
    Line source replaying a fixed script.

    Script items are lines, None (a read timeout) or exceptions to raise.
    When the script runs out, on_exhausted is called and reads time out.
    """

    def __init__(
        self,
        script: Iterable[str | None | BaseException],
        on_exhausted: Callable[[], None] | None = None,
    ) -> None:
        self._script = list(script)
        self._on_exhausted = on_exhausted
        self.reads = 0
        self.closed = False

    def read_line(self) -> str | None:
        self.reads += 1
        if not self._script:
            if self._on_exhausted is not None:
                self._on_exhausted()
            return None

        item = self._script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "logs" / "sensor_log.txt"


@pytest.fixture
def config(log_path: Path) -> PipelineConfig:
    return PipelineConfig(port="/dev/ttyTEST0", baud=9600, read_timeout_s=0.05, log_path=log_path)


@pytest.fixture
def out() -> io.StringIO:
    return io.StringIO()
