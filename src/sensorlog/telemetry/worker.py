from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, TextIO

from sensorlog.record.recorder import SessionRecorder
from sensorlog.telemetry import protocol
from sensorlog.telemetry.alerts import evaluate
from sensorlog.telemetry.metrics import magnitude
from sensorlog.telemetry.reader import (
    LineSource,
    SerialLineReader,
    TransportError,
    TransportOpenError,
    list_candidate_ports,
)
from sensorlog.util.config import PipelineConfig

log = logging.getLogger(__name__)

SourceFactory = Callable[[PipelineConfig], LineSource]
PortHints = Callable[[], list[tuple[str, str]]]

EXIT_OK = 0
EXIT_FAULTED = 1


class PipelineState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DRAINING = "draining"
    STOPPED = "stopped"
    FAULTED = "faulted"


_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.IDLE: frozenset({PipelineState.CONNECTING}),
    PipelineState.CONNECTING: frozenset({PipelineState.STREAMING, PipelineState.FAULTED}),
    PipelineState.STREAMING: frozenset({PipelineState.DRAINING, PipelineState.FAULTED}),
    PipelineState.DRAINING: frozenset({PipelineState.STOPPED}),
    PipelineState.STOPPED: frozenset(),
    PipelineState.FAULTED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    pass


@dataclass
class SessionStats:
    records: int = 0
    alerts: int = 0
    decode_failures: int = 0
    lost_writes: int = 0

    def summary(self) -> str:
        return (
            f"records={self.records} alerts={self.alerts} "
            f"decode_failures={self.decode_failures} lost_writes={self.lost_writes}"
        )


# ---------------------------------------- #


def open_serial_source(config: PipelineConfig) -> LineSource:
    return SerialLineReader(
        port=config.port, baud=config.baud, timeout_s=config.read_timeout_s
    )


# ---------------------------------------- #


class PipelineController:
    """
    Drives one telemetry session from transport open to shutdown.

    Lines are pulled one at a time and each is decoded, measured, checked for
    alerts and recorded before the next read. The read timeout bounds how long
    a stop() request can go unnoticed.
    """

    def __init__(
        self,
        config: PipelineConfig,
        source_factory: SourceFactory = open_serial_source,
        out: TextIO | None = None,
        port_hints: PortHints | None = list_candidate_ports,
    ) -> None:
        self.config = config
        self.stats = SessionStats()
        self._source_factory = source_factory
        self._out = out
        self._port_hints = port_hints
        self._state = PipelineState.IDLE
        self._stop_requested = threading.Event()

    # ---------------------------------------- #

    @property
    def state(self) -> PipelineState:
        return self._state

    # ---------------------------------------- #

    def _transition(self, new_state: PipelineState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise InvalidTransitionError(
                f"{self._state.value} -> {new_state.value} is not allowed"
            )
        log.debug("Pipeline %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    # ---------------------------------------- #

    def stop(self) -> None:
        """Request a cooperative stop; safe to call from a signal handler."""
        self._stop_requested.set()

    # ---------------------------------------- #

    def process_line(self, line: str, recorder: SessionRecorder) -> None:
        try:
            record = protocol.decode(line)
        except protocol.DecodeFailure as exc:
            self.stats.decode_failures += 1
            log.warning("%s telemetry line: %r", exc.reason.value, exc.raw)
            return

        mag = magnitude(record)
        alerts = evaluate(record, mag)

        self.stats.records += 1
        self.stats.alerts += len(alerts)
        if not recorder.emit(record, mag, alerts, line):
            self.stats.lost_writes += 1

    # ---------------------------------------- #

    def _report_open_failure(self, exc: TransportOpenError) -> None:
        log.error(
            "Transport open failed: %s. Check that the device is connected, "
            "that %s is the right port, and that no other program has it open.",
            exc,
            self.config.port,
        )
        if self._port_hints is None:
            return

        try:
            ports = self._port_hints()
        except OSError as hint_exc:
            log.debug("Port listing failed: %s", hint_exc)
            return

        if ports:
            found = ", ".join(f"{dev} ({desc})" for dev, desc in ports)
            log.info("Candidate serial ports: %s", found)
        else:
            log.info("No candidate serial ports found.")

    # ---------------------------------------- #

    def _close_source(self, source: LineSource) -> None:
        try:
            source.close()
        except OSError as exc:
            log.warning("Transport close failed: %s", exc)

    # ---------------------------------------- #

    def _open_log(self, recorder: SessionRecorder) -> bool:
        try:
            recorder.start(f"port={self.config.port} baud={self.config.baud}")
        except OSError as exc:
            self._transition(PipelineState.FAULTED)
            log.error("Cannot open log file %s: %s", self.config.log_path, exc)
            return False
        return True

    # ---------------------------------------- #

    def _stream(self, source: LineSource, recorder: SessionRecorder) -> None:
        while not self._stop_requested.is_set():
            line = source.read_line()
            if line is None:
                continue
            log.debug("RX: %s", line)
            self.process_line(line, recorder)

    # ---------------------------------------- #

    def run(self) -> int:
        """Run the session to completion and return the process exit code."""
        self._transition(PipelineState.CONNECTING)

        source: LineSource | None = None
        with SessionRecorder(self.config.log_path, out=self._out) as recorder:
            try:
                source = self._source_factory(self.config)
                if self._open_log(recorder):
                    self._transition(PipelineState.STREAMING)
                    log.info("Streaming from %s @ %d", self.config.port, self.config.baud)
                    self._stream(source, recorder)
                    self._transition(PipelineState.DRAINING)
            except TransportOpenError as exc:
                self._transition(PipelineState.FAULTED)
                self._report_open_failure(exc)
            except TransportError as exc:
                self._transition(PipelineState.FAULTED)
                log.error("Transport read failed mid-stream: %s", exc)
            finally:
                if source is not None:
                    self._close_source(source)

        if self._state is PipelineState.FAULTED:
            log.error("Session faulted: %s", self.stats.summary())
            return EXIT_FAULTED

        self._transition(PipelineState.STOPPED)
        log.info("Session stopped: %s", self.stats.summary())
        return EXIT_OK
