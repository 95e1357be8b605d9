import math
import time

from sensorlog.telemetry import protocol
from sensorlog.telemetry.types import TelemetryRecord


class TelemetrySimulator:
    """
    Simple deterministic sensor simulator emitting wire-format lines.

    Intended for:
    - Pipeline bring-up without hardware
    - Exercising alert thresholds (motion spikes, warm-up, dusk, battery droop)
    """

    def __init__(self, device_id: str = "SIM1", interval_s: float = 0.5) -> None:
        self.device_id = device_id
        self.interval_s = interval_s
        self._n = 0
        self._t0 = time.time()

    # ---------------------------------------- #

    def close(self) -> None:
        return

    # ---------------------------------------- #

    def sample(self) -> TelemetryRecord:
        n = self._n
        self._n += 1

        # Slow warm-up that crosses the temperature threshold after a while
        temp = 24.0 + 0.1 * n + 0.5 * math.sin(n / 3.0)

        # Resting on a table (1 g on Y) with a shake every 20th sample
        shake = 1.8 if n % 20 == 19 else 0.0
        ax = round(0.02 * math.sin(n) + shake, 3)
        ay = round(0.98 + shake, 3)
        az = round(0.05 * math.cos(n), 3)

        # Dusk cycle and battery droop
        light = int(128 + 127 * math.cos(n / 10.0))
        batt = 3.3 - 0.005 * n

        return TelemetryRecord(
            device_id=self.device_id,
            timestamp=round(self._t0 + n * self.interval_s, 3),
            temperature_c=round(temp, 2),
            accel_x=ax,
            accel_y=ay,
            accel_z=az,
            light_level=light,
            battery_v=round(batt, 3),
        )

    # ---------------------------------------- #

    def read_line(self) -> str:
        if self.interval_s > 0:
            time.sleep(self.interval_s)
        return protocol.encode(self.sample())
