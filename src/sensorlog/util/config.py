from __future__ import annotations

import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

DEFAULT_PORT = "/dev/ttyACM0"
DEFAULT_BAUD = 115200
DEFAULT_READ_TIMEOUT_S = 1.0
DEFAULT_LOG_PATH = Path("sensor_log.txt")

CONFIG_TABLE = "sensorlog"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class PipelineConfig:
    """Everything the pipeline needs to open its transport and log store."""

    port: str = DEFAULT_PORT
    baud: int = DEFAULT_BAUD
    read_timeout_s: float = DEFAULT_READ_TIMEOUT_S
    log_path: Path = DEFAULT_LOG_PATH

    def __post_init__(self) -> None:
        if self.baud <= 0:
            raise ConfigError(f"baud must be positive, got {self.baud}")
        if self.read_timeout_s <= 0:
            raise ConfigError(
                f"read_timeout_s must be positive, got {self.read_timeout_s}"
            )

    def with_overrides(self, **overrides: Any) -> PipelineConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "log_path" in changes:
            changes["log_path"] = Path(changes["log_path"])
        return replace(self, **changes)


# ---------------------------------------- #


def load_config(path: Path | None = None) -> PipelineConfig:
    """
    Load the [sensorlog] table from a TOML file.

    A missing file or missing table yields the defaults; keys that are present
    but of the wrong type are rejected.
    """
    if path is None:
        return PipelineConfig()

    try:
        data: Any = tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return PipelineConfig()
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    table = data.get(CONFIG_TABLE)
    if not isinstance(table, dict):
        return PipelineConfig()

    port = table.get("port")
    baud = table.get("baud")
    read_timeout_s = table.get("read_timeout_s")
    log_path = table.get("log_path")

    if port is not None and not isinstance(port, str):
        raise ConfigError(f"[{CONFIG_TABLE}].port must be a string")
    if baud is not None and (not isinstance(baud, int) or isinstance(baud, bool)):
        raise ConfigError(f"[{CONFIG_TABLE}].baud must be an integer")
    if read_timeout_s is not None and (
        not isinstance(read_timeout_s, (int, float)) or isinstance(read_timeout_s, bool)
    ):
        raise ConfigError(f"[{CONFIG_TABLE}].read_timeout_s must be a number")
    if log_path is not None and not isinstance(log_path, str):
        raise ConfigError(f"[{CONFIG_TABLE}].log_path must be a string")

    return PipelineConfig().with_overrides(
        port=port,
        baud=baud,
        read_timeout_s=float(read_timeout_s) if read_timeout_s is not None else None,
        log_path=log_path,
    )
