import math

import numpy as np

from sensorlog.telemetry.types import TelemetryRecord


def magnitude(record: TelemetryRecord) -> float:
    """Euclidean norm of the three acceleration axes, in g."""
    try:
        axes = np.array(
            [record.accel_x, record.accel_y, record.accel_z], dtype=np.float64
        )
    except OverflowError:
        # An integer axis too large for float64.
        return math.inf
    with np.errstate(over="ignore"):
        return float(np.linalg.norm(axes))
