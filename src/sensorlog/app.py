# sensorlog/app.py

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path

from sensorlog.telemetry.simulator import TelemetrySimulator
from sensorlog.telemetry.worker import PipelineController, open_serial_source
from sensorlog.util.config import ConfigError, PipelineConfig, load_config

EXIT_CONFIG_ERROR = 2

log = logging.getLogger("sensorlog")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sensorlog",
        description="Stream sensor telemetry from a serial device, raise alerts and log it.",
    )
    parser.add_argument("--config", type=Path, help="TOML file with a [sensorlog] table")
    parser.add_argument("--port", help="Serial device path (e.g. /dev/ttyACM0)")
    parser.add_argument("--baud", type=int, help="Serial baud rate")
    parser.add_argument(
        "--read-timeout", type=float, dest="read_timeout_s", help="Read timeout in seconds"
    )
    parser.add_argument("--log", dest="log_path", help="Append-only log file")
    parser.add_argument(
        "--simulate", action="store_true", help="Use a simulated device instead of a port"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug diagnostics")
    return parser.parse_args(argv)


# ---------------------------------------- #


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ---------------------------------------- #


def build_config(args: argparse.Namespace) -> PipelineConfig:
    return load_config(args.config).with_overrides(
        port=args.port,
        baud=args.baud,
        read_timeout_s=args.read_timeout_s,
        log_path=args.log_path,
    )


# ---------------------------------------- #


def main(argv: list[str] | None = None) -> int:
    """
    Command-line entry point.

    Responsibilities:
    - Resolve configuration (TOML file, then command-line overrides)
    - Route SIGINT / SIGTERM to a cooperative pipeline stop
    - Run the pipeline and return its exit code
    """
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    try:
        config = build_config(args)
    except ConfigError as exc:
        log.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    if args.simulate:
        interval = min(0.5, config.read_timeout_s)
        config = config.with_overrides(port="simulator")
        controller = PipelineController(
            config,
            source_factory=lambda _cfg: TelemetrySimulator(interval_s=interval),
            port_hints=None,
        )
    else:
        controller = PipelineController(config, source_factory=open_serial_source)

    def _request_stop(signum: int, _frame: object) -> None:
        log.info("Received %s, draining", signal.Signals(signum).name)
        controller.stop()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    return controller.run()


if __name__ == "__main__":
    raise SystemExit(main())
