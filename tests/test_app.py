from __future__ import annotations

import signal

import pytest

from sensorlog import app
from sensorlog.telemetry import protocol
from sensorlog.telemetry.simulator import TelemetrySimulator


@pytest.fixture(autouse=True)
def restore_signal_handlers():
    saved = {s: signal.getsignal(s) for s in (signal.SIGINT, signal.SIGTERM)}
    yield
    for s, handler in saved.items():
        signal.signal(s, handler)


def test_cli_overrides_config_file(tmp_path):
    path = tmp_path / "cfg.toml"
    path.write_text('[sensorlog]\nport = "/dev/ttyUSB7"\nbaud = 9600\n', encoding="utf-8")

    args = app._parse_args(["--config", str(path), "--baud", "57600", "--log", "x.txt"])
    cfg = app.build_config(args)

    assert cfg.port == "/dev/ttyUSB7"
    assert cfg.baud == 57600
    assert str(cfg.log_path) == "x.txt"


def test_invalid_config_exits_two(tmp_path):
    assert app.main(["--baud", "0", "--log", str(tmp_path / "log.txt")]) == app.EXIT_CONFIG_ERROR


def test_simulated_session_stops_on_sigint(tmp_path, monkeypatch, capsys):
    log_path = tmp_path / "log.txt"
    original_read = TelemetrySimulator.read_line
    reads = []

    def read_then_interrupt(self):
        line = original_read(self)
        reads.append(line)
        if len(reads) == 3:
            signal.raise_signal(signal.SIGINT)
        return line

    monkeypatch.setattr(TelemetrySimulator, "read_line", read_then_interrupt)

    exit_code = app.main(["--simulate", "--read-timeout", "0.001", "--log", str(log_path)])

    assert exit_code == 0
    text = log_path.read_text(encoding="utf-8")
    assert "port=simulator" in text
    for line in reads:
        assert line in text
    assert "[SIM1]" in capsys.readouterr().out


def test_serial_open_failure_exits_non_zero(tmp_path):
    exit_code = app.main(["--port", str(tmp_path / "ttyMISSING"), "--log", str(tmp_path / "log.txt")])

    assert exit_code == 1
    assert not (tmp_path / "log.txt").exists()


def test_simulator_lines_decode():
    sim = TelemetrySimulator(interval_s=0.5)
    records = [protocol.decode(protocol.encode(sim.sample())) for _ in range(40)]

    assert {r.device_id for r in records} == {"SIM1"}
    assert records[19].accel_x > 1.5
    assert records[1].timestamp == pytest.approx(records[0].timestamp + 0.5, abs=1e-3)
