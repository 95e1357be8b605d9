from __future__ import annotations

import enum
import json
from typing import Any, Final

from sensorlog.telemetry.types import TelemetryRecord

# Wire keys emitted by the sensor firmware.
FIELD_DEVICE_ID: Final[str] = "id"
FIELD_TIMESTAMP: Final[str] = "ts"
FIELD_TEMPERATURE: Final[str] = "tempC"
FIELD_ACCEL_X: Final[str] = "ax"
FIELD_ACCEL_Y: Final[str] = "ay"
FIELD_ACCEL_Z: Final[str] = "az"
FIELD_LIGHT: Final[str] = "light"
FIELD_BATTERY: Final[str] = "bat"


class FailureReason(enum.Enum):
    MALFORMED = "Malformed"
    INCOMPLETE = "Incomplete"


class DecodeFailure(ValueError):
    """A wire line that could not be turned into a TelemetryRecord."""

    def __init__(self, reason: FailureReason, raw: str) -> None:
        super().__init__(f"{reason.value} telemetry line: {raw!r}")
        self.reason = reason
        self.raw = raw


# ---------------------------------------- #


def _is_number(value: Any) -> bool:
    # JSON true/false parse to bool, which is an int subclass.
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ---------------------------------------- #


def _optional_number(obj: dict[str, Any], key: str, default: float | None) -> Any:
    value = obj.get(key)
    if not _is_number(value):
        return default
    return value


# ---------------------------------------- #


def _optional_integer(obj: dict[str, Any], key: str) -> int | None:
    value = obj.get(key)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


# ---------------------------------------- #


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


# ---------------------------------------- #


def decode(raw_line: str) -> TelemetryRecord:
    """
    Decode one wire line (terminator already stripped) into a record.

    Raises DecodeFailure with MALFORMED when the line is empty or not a JSON
    object (NaN/Infinity literals and pathologically deep nesting included),
    and with INCOMPLETE when the device id or temperature is missing.
    Optional fields that are absent or not numeric fall back to defaults; a
    light level that is not a whole number counts as absent.
    """
    if not raw_line.strip():
        raise DecodeFailure(FailureReason.MALFORMED, raw_line)

    try:
        obj = json.loads(raw_line, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:
        raise DecodeFailure(FailureReason.MALFORMED, raw_line) from exc

    if not isinstance(obj, dict):
        raise DecodeFailure(FailureReason.MALFORMED, raw_line)

    device_id = obj.get(FIELD_DEVICE_ID)
    temperature = obj.get(FIELD_TEMPERATURE)
    if not isinstance(device_id, str) or not device_id or not _is_number(temperature):
        raise DecodeFailure(FailureReason.INCOMPLETE, raw_line)

    return TelemetryRecord(
        device_id=device_id,
        temperature_c=temperature,
        timestamp=_optional_number(obj, FIELD_TIMESTAMP, None),
        accel_x=_optional_number(obj, FIELD_ACCEL_X, 0.0),
        accel_y=_optional_number(obj, FIELD_ACCEL_Y, 0.0),
        accel_z=_optional_number(obj, FIELD_ACCEL_Z, 0.0),
        light_level=_optional_integer(obj, FIELD_LIGHT),
        battery_v=_optional_number(obj, FIELD_BATTERY, None),
    )


# ---------------------------------------- #


def encode(record: TelemetryRecord) -> str:
    """Render a record back to a compact wire line (used by the simulator)."""
    obj: dict[str, Any] = {
        FIELD_DEVICE_ID: record.device_id,
        FIELD_TIMESTAMP: record.timestamp,
        FIELD_TEMPERATURE: record.temperature_c,
        FIELD_ACCEL_X: record.accel_x,
        FIELD_ACCEL_Y: record.accel_y,
        FIELD_ACCEL_Z: record.accel_z,
        FIELD_LIGHT: record.light_level,
        FIELD_BATTERY: record.battery_v,
    }
    return json.dumps(
        {k: v for k, v in obj.items() if v is not None}, separators=(",", ":")
    )
