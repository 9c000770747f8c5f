from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

# State: [px, py, v, yaw, yaw_rate]
STATE_DIM = 5
# Augmented with the longitudinal and yaw acceleration noise: [..., nu_a, nu_yawdd]
AUGMENTED_DIM = 7
YAW_INDEX = 3


def default_x0() -> np.ndarray:
    return np.array([1., 1., 9., 0., 0.])


def default_P0() -> np.ndarray:
    # Hand tuned on a single recorded dataset, so treat these as example values.
    # The py / yaw_rate correlation stays below 1, the augmented covariance must be positive definite
    return np.array([
        [0.5, 0, 0, 0, 0],
        [0, 0.5, 0, 0, 0.25],
        [0, 0, 0.5, 0, 0],
        [0, 0, 0, 0.5, 0],
        [0, 0.25, 0, 0, 0.5],
    ], dtype=float)


@dataclass
class InitializationData:
    """
    Noise parameters and priors of the CTRV UKF. Set once, before the first measurement.

    std_a:            process noise std of the longitudinal acceleration [m/s^2]
    std_yawdd:        process noise std of the yaw acceleration [rad/s^2]
    lidar_noise_std:  [std_px, std_py] in m
    radar_noise_std:  [std_rho (m), std_phi (rad), std_rho_dot (m/s)]
    x0, P0:           prior mean and covariance, only the position part is overwritten by the first measurement
    lambda_:          sigma point spreading parameter, 3 - n_aug when not given
    use_lidar, use_radar: a disabled sensor is still used for initialization, and ignored afterwards
    """
    std_a: float = 0.5
    std_yawdd: float = 2.0
    lidar_noise_std: np.ndarray = field(default_factory=lambda: np.array([0.15, 0.15]))
    radar_noise_std: np.ndarray = field(default_factory=lambda: np.array([0.3, 0.03, 0.3]))
    x0: np.ndarray = field(default_factory=default_x0)
    P0: np.ndarray = field(default_factory=default_P0)
    lambda_: Optional[float] = None
    use_lidar: bool = True
    use_radar: bool = True

    def __post_init__(self):
        self.std_a = float(self.std_a)
        self.std_yawdd = float(self.std_yawdd)
        self.lidar_noise_std = np.asarray(self.lidar_noise_std, dtype=float)
        self.radar_noise_std = np.asarray(self.radar_noise_std, dtype=float)
        self.x0 = np.asarray(self.x0, dtype=float)
        self.P0 = np.asarray(self.P0, dtype=float)

        if self.std_a <= 0 or self.std_yawdd <= 0:
            raise ValueError("Process noise standard deviations must be positive")
        if self.lidar_noise_std.shape != (2,):
            raise ValueError(f"Expected lidar_noise_std with shape (2,), got {self.lidar_noise_std.shape}")
        if self.radar_noise_std.shape != (3,):
            raise ValueError(f"Expected radar_noise_std with shape (3,), got {self.radar_noise_std.shape}")
        if np.any(self.lidar_noise_std <= 0) or np.any(self.radar_noise_std <= 0):
            raise ValueError("Measurement noise standard deviations must be positive")
        if self.x0.shape != (STATE_DIM,):
            raise ValueError(f"x0 must have {STATE_DIM} elements, got {self.x0.shape}")
        if self.P0.shape != (STATE_DIM, STATE_DIM):
            raise ValueError(f"P0 must be ({STATE_DIM}, {STATE_DIM}), got {self.P0.shape}")
        if not np.allclose(self.P0, self.P0.T):
            raise ValueError("P0 must be symmetric")
        try:
            np.linalg.cholesky(self.P0)
        except np.linalg.LinAlgError as e:
            raise ValueError("P0 must be positive definite") from e
        if self.lambda_ is None:
            self.lambda_ = 3. - AUGMENTED_DIM
        self.lambda_ = float(self.lambda_)
        if self.lambda_ + AUGMENTED_DIM <= 0:
            raise ValueError("lambda_ + n_aug must be positive")

    @property
    def lidar_R(self) -> np.ndarray:
        return np.diag(self.lidar_noise_std ** 2)

    @property
    def radar_R(self) -> np.ndarray:
        return np.diag(self.radar_noise_std ** 2)

    @property
    def process_noise_Q(self) -> np.ndarray:
        return np.diag([self.std_a ** 2, self.std_yawdd ** 2])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "std_a": self.std_a,
            "std_yawdd": self.std_yawdd,
            "lidar_noise_std": self.lidar_noise_std.tolist(),
            "radar_noise_std": self.radar_noise_std.tolist(),
            "x0": self.x0.tolist(),
            "P0": self.P0.tolist(),
            "lambda_": self.lambda_,
            "use_lidar": self.use_lidar,
            "use_radar": self.use_radar,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InitializationData":
        unknown = set(d) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**d)
