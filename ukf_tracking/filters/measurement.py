from dataclasses import dataclass
from enum import Enum

import numpy as np


class SensorType(Enum):
    LIDAR = "L"
    RADAR = "R"

    @property
    def measurement_dim(self) -> int:
        # lidar measures [px, py], radar measures [rho, phi, rho_dot]
        return 2 if self is SensorType.LIDAR else 3


@dataclass
class MeasurementPackage:
    """A single already-parsed sensor reading. The timestamp is in microseconds."""
    sensor_type: SensorType
    raw_measurements: np.ndarray
    timestamp: int

    def __post_init__(self):
        if not isinstance(self.sensor_type, SensorType):
            raise ValueError(f"Unknown sensor type: {self.sensor_type!r}")
        self.raw_measurements = np.asarray(self.raw_measurements, dtype=float).reshape(-1)
        if self.raw_measurements.shape != (self.sensor_type.measurement_dim,):
            raise ValueError(
                f"{self.sensor_type.name} measurement must have {self.sensor_type.measurement_dim} "
                f"components, got {self.raw_measurements.shape[0]}"
            )
        if not np.all(np.isfinite(self.raw_measurements)):
            raise ValueError(f"{self.sensor_type.name} measurement is not finite: {self.raw_measurements}")
        if not float(self.timestamp).is_integer():
            raise ValueError(f"Timestamp must be a whole number of microseconds, got {self.timestamp!r}")
        self.timestamp = int(self.timestamp)
