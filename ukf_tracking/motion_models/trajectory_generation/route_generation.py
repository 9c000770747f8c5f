import numpy as np
from dataclasses import dataclass
from typing import List, Literal, Tuple

from ukf_tracking.filters.ctrv_ukf import f_ctrv, h_radar
from ukf_tracking.filters.measurement import MeasurementPackage, SensorType


@dataclass
class TrajectoryState:
    """State information for trajectory generation and continuation."""
    position: np.ndarray  # [x, y]
    speed: float = 0.0
    yaw: float = 0.0
    yaw_rate: float = 0.0

    def __post_init__(self):
        """Ensure the position is a float array of the right dimension."""
        self.position = np.asarray(self.position, dtype=float)
        if self.position.shape != (2,):
            raise ValueError("Position must be [x, y]")
        self.speed = float(self.speed)
        self.yaw = float(self.yaw)
        self.yaw_rate = float(self.yaw_rate)

    def as_vector(self) -> np.ndarray:
        return np.array([self.position[0], self.position[1], self.speed, self.yaw, self.yaw_rate])

    @classmethod
    def from_vector(cls, state: np.ndarray) -> "TrajectoryState":
        return cls(position=state[:2].copy(), speed=state[2], yaw=state[3], yaw_rate=state[4])


def generate_ctrv_trajectory(
    T: int,
    dt: float,
    initial_state: TrajectoryState,
    std_a: float = 0.0,  # std of the longitudinal acceleration noise
    std_yawdd: float = 0.0,  # std of the yaw acceleration noise
    number_of_trajectories: int = 1,
    seed: int | None = None,
) -> List[Tuple[np.ndarray, TrajectoryState]]:
    """
    Generate CTRV ground truth trajectories.

    Uses the same transition and the same noise model the filter assumes: at every step the
    longitudinal and yaw accelerations are drawn from N(0, std_a^2), N(0, std_yawdd^2)
    and held constant over dt.

    Args:
        T: Number of time steps
        dt: Time step duration in seconds
        initial_state: Initial state (required)
        std_a: Std of the longitudinal acceleration noise
        std_yawdd: Std of the yaw acceleration noise
        number_of_trajectories: Number of trajectories to generate
        seed: RNG seed

    Returns:
        List of (states, final_state) tuples, states has shape (T, 5): [px, py, v, yaw, yaw_rate]
    """
    if T < 1:
        raise ValueError(f"A trajectory needs at least one time step, got T={T}")

    rng = np.random.default_rng(seed)

    trajectories = []
    for _ in range(number_of_trajectories):
        states = np.empty((T, 5), dtype=float)
        states[0] = initial_state.as_vector()

        for t in range(1, T):
            nu_a = rng.normal(0.0, std_a) if std_a > 0 else 0.0
            nu_yawdd = rng.normal(0.0, std_yawdd) if std_yawdd > 0 else 0.0
            states[t] = f_ctrv(np.concatenate([states[t - 1], [nu_a, nu_yawdd]]), dt)

        trajectories.append((states, TrajectoryState.from_vector(states[-1])))

    return trajectories


def generate_measurements(
    states: np.ndarray,
    dt: float,
    lidar_noise_std: float | np.ndarray = 0.0,
    radar_noise_std: float | np.ndarray = 0.0,
    sensor_pattern: Literal["alternate", "lidar", "radar"] = "alternate",
    start_timestamp: int = 0,
    seed: int | None = None,
) -> List[MeasurementPackage]:
    """
    Draw one noisy sensor reading per ground truth state.

    Args:
        states: (T, 5) ground truth, as returned by generate_ctrv_trajectory
        dt: Time step duration in seconds
        lidar_noise_std: Std of [px, py] noise (scalar or array)
        radar_noise_std: Std of [rho, phi, rho_dot] noise (scalar or array)
        sensor_pattern: "alternate" starts with lidar and switches sensor every step
        start_timestamp: Timestamp of the first reading, in microseconds
        seed: RNG seed

    Returns:
        List of MeasurementPackage, timestamps in microseconds
    """
    rng = np.random.default_rng(seed)

    # Convert scalars to arrays
    if np.isscalar(lidar_noise_std):
        lidar_noise_std = np.full(2, float(lidar_noise_std))
    else:
        lidar_noise_std = np.asarray(lidar_noise_std, dtype=float)

    if np.isscalar(radar_noise_std):
        radar_noise_std = np.full(3, float(radar_noise_std))
    else:
        radar_noise_std = np.asarray(radar_noise_std, dtype=float)

    if sensor_pattern not in ("alternate", "lidar", "radar"):
        raise ValueError(f"Unknown sensor pattern: {sensor_pattern}")

    measurements = []
    for t, state in enumerate(states):
        if sensor_pattern == "alternate":
            sensor_type = SensorType.LIDAR if t % 2 == 0 else SensorType.RADAR
        else:
            sensor_type = SensorType.LIDAR if sensor_pattern == "lidar" else SensorType.RADAR

        if sensor_type is SensorType.LIDAR:
            z = state[:2] + rng.normal(0.0, lidar_noise_std, size=2)
        else:
            z = h_radar(state) + rng.normal(0.0, radar_noise_std, size=3)

        timestamp = start_timestamp + int(round(t * dt * 1e6))
        measurements.append(MeasurementPackage(sensor_type=sensor_type, raw_measurements=z, timestamp=timestamp))

    return measurements
