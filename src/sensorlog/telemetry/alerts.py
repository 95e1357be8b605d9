from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Final

from sensorlog.telemetry.types import TelemetryRecord

HIGH_MOTION_G: Final[float] = 1.5
HIGH_TEMPERATURE_C: Final[float] = 30.0
LOW_LIGHT_LEVEL: Final[int] = 20
LOW_BATTERY_V: Final[float] = 3.0


class AlertKind(enum.Enum):
    HIGH_MOTION = "HighMotion"
    HIGH_TEMPERATURE = "HighTemperature"
    LOW_LIGHT = "LowLight"
    LOW_BATTERY = "LowBattery"


@dataclass(frozen=True)
class Alert:
    kind: AlertKind
    record: TelemetryRecord
    value: float


# ---------------------------------------- #


def evaluate(record: TelemetryRecord, magnitude: float) -> list[Alert]:
    """
    Apply the fixed threshold predicates to one record.

    Alerts come back in a fixed order (motion, temperature, light, battery).
    Comparisons are strict, so a value sitting exactly on a threshold does not
    fire. Light and battery readings the device did not send never fire.
    """
    alerts: list[Alert] = []

    if magnitude > HIGH_MOTION_G:
        alerts.append(Alert(AlertKind.HIGH_MOTION, record, magnitude))

    if record.temperature_c > HIGH_TEMPERATURE_C:
        alerts.append(Alert(AlertKind.HIGH_TEMPERATURE, record, record.temperature_c))

    if record.light_level is not None and record.light_level < LOW_LIGHT_LEVEL:
        alerts.append(Alert(AlertKind.LOW_LIGHT, record, record.light_level))

    if record.battery_v is not None and record.battery_v < LOW_BATTERY_V:
        alerts.append(Alert(AlertKind.LOW_BATTERY, record, record.battery_v))

    return alerts


# ---------------------------------------- #


def format_value(value: float, spec: str) -> str:
    # JSON integers are unbounded and may not fit a float format.
    try:
        return format(value, spec)
    except OverflowError:
        return str(value)


# ---------------------------------------- #


def format_alert(alert: Alert) -> str:
    return f"ALERT {alert.kind.value}: {format_value(alert.value, 'g')}"
