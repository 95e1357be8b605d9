from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TelemetryRecord:
    """
    Canonical telemetry sample decoded from one wire line.

    Accelerations are in g, temperature in degrees Celsius, battery in volts.
    Timestamps are Unix time (seconds) as reported by the device.
    Fields the device did not send are None, except the three axes which
    default to 0.0 so the motion magnitude is always defined.
    """

    device_id: str
    temperature_c: float
    timestamp: float | None = None
    accel_x: float = 0.0
    accel_y: float = 0.0
    accel_z: float = 0.0
    light_level: int | None = None
    battery_v: float | None = None
