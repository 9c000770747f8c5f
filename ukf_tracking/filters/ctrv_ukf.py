import logging
from functools import partial

import numpy as np
from filterpy.kalman import unscented_transform

from ukf_tracking.filters.angles import residual_with_angle
from ukf_tracking.filters.filter_state import FilterState
from ukf_tracking.filters.initialization import InitializationData, STATE_DIM, YAW_INDEX
from ukf_tracking.filters.kalman_common import linear_update, unscented_update
from ukf_tracking.filters.measurement import MeasurementPackage, SensorType
from ukf_tracking.filters.sigma_points import AugmentedSigmaPoints, augment

logger = logging.getLogger(__name__)

# Below this turn rate the closed-form turn integral is replaced by straight-line motion
MIN_YAW_RATE = 1e-3
# Floor for the predicted radar range, it divides the range rate
MIN_RANGE = 1e-3
BEARING_INDEX = 1

# lidar measures [px, py] directly
H_LIDAR = np.array([
    [1, 0, 0, 0, 0],
    [0, 1, 0, 0, 0],
], dtype=float)


def f_ctrv(point: np.ndarray, dt: float) -> np.ndarray:
    """
    Constant Turn Rate and Velocity (CTRV) transition of a single augmented sigma point.
    Input:  [px, py, v, yaw, yaw_rate, nu_a, nu_yawdd]
    Output: [px, py, v, yaw, yaw_rate]

    Speed and turn rate are constant over dt, the heading advances by yaw_rate * dt.
    The noise terms are the longitudinal and yaw accelerations, held constant over dt.
    """
    px, py, v, yaw, yaw_rate, nu_a, nu_yawdd = point

    # Near-zero turn rate → straight-line motion (avoid division by zero)
    if abs(yaw_rate) > MIN_YAW_RATE:
        px_p = px + v / yaw_rate * (np.sin(yaw + yaw_rate * dt) - np.sin(yaw))
        py_p = py + v / yaw_rate * (np.cos(yaw) - np.cos(yaw + yaw_rate * dt))
    else:
        px_p = px + v * dt * np.cos(yaw)
        py_p = py + v * dt * np.sin(yaw)

    v_p = v
    yaw_p = yaw + yaw_rate * dt
    yaw_rate_p = yaw_rate

    # process noise
    px_p += 0.5 * nu_a * dt ** 2 * np.cos(yaw)
    py_p += 0.5 * nu_a * dt ** 2 * np.sin(yaw)
    v_p += nu_a * dt
    yaw_p += 0.5 * nu_yawdd * dt ** 2
    yaw_rate_p += nu_yawdd * dt

    return np.array([px_p, py_p, v_p, yaw_p, yaw_rate_p])


def h_radar(state: np.ndarray) -> np.ndarray:
    """
    Radar measurement model: [px, py, v, yaw, yaw_rate] -> [rho, phi, rho_dot]
    """
    px, py, v, yaw = state[:4]
    vx = v * np.cos(yaw)
    vy = v * np.sin(yaw)

    rho = max(np.sqrt(px ** 2 + py ** 2), MIN_RANGE)
    phi = np.arctan2(py, px)
    rho_dot = (px * vx + py * vy) / rho
    return np.array([rho, phi, rho_dot])


def polar_to_cartesian(rho: float, phi: float) -> np.ndarray:
    return np.array([rho * np.cos(phi), rho * np.sin(phi)])


class CTRVUnscentedKalmanFilter:
    """
    Unscented Kalman Filter with a CTRV motion model, fusing lidar and radar measurements.

    The first measurement only initializes the position. Every later one runs a prediction over the
    elapsed time followed by the update of the measurement's sensor.
    """

    def __init__(self, initialization_data: InitializationData = None):
        if initialization_data is None:
            initialization_data = InitializationData()
        self.initialization_data = initialization_data
        self.sigma_points = AugmentedSigmaPoints(lambda_=initialization_data.lambda_)
        self.state = FilterState.from_priors(initialization_data)

    @property
    def x(self):
        return self.state.x

    @property
    def P(self):
        return self.state.P

    @property
    def weights(self):
        return self.sigma_points.weights

    @property
    def is_initialized(self):
        return self.state.is_initialized

    @property
    def nis_lidar(self):
        return self.state.nis_lidar

    @property
    def nis_radar(self):
        return self.state.nis_radar

    def process_measurement(self, measurement: MeasurementPackage) -> bool:
        """
        Consumes one measurement.
        :return: False if the measurement was ignored because its sensor is disabled, True otherwise
        """
        if not self.state.is_initialized:
            self.initialize(measurement)
            return True

        if not self._is_sensor_enabled(measurement.sensor_type):
            logger.debug("Ignoring %s measurement at %d, sensor is disabled",
                         measurement.sensor_type.name, measurement.timestamp)
            return False

        if measurement.timestamp < self.state.time_us:
            raise ValueError(f"Measurement timestamp {measurement.timestamp} is older than the filter time "
                             f"{self.state.time_us}")

        dt = (measurement.timestamp - self.state.time_us) / 1e6
        self.state.time_us = measurement.timestamp

        self.predict(dt)

        if measurement.sensor_type is SensorType.RADAR:
            self.update_radar(measurement)
        elif measurement.sensor_type is SensorType.LIDAR:
            self.update_lidar(measurement)
        else:
            raise ValueError(f"Unknown sensor type: {measurement.sensor_type!r}")
        return True

    def initialize(self, measurement: MeasurementPackage):
        """
        Sets the position from the first measurement. Speed, heading and turn rate keep their priors.
        """
        if self.state.is_initialized:
            logger.warning("Filter is already initialized, ignoring initialization from %s measurement",
                           measurement.sensor_type.name)
            return

        z = measurement.raw_measurements
        if measurement.sensor_type is SensorType.RADAR:
            self.state.x[0:2] = polar_to_cartesian(z[0], z[1])
        elif measurement.sensor_type is SensorType.LIDAR:
            self.state.x[0:2] = z
        else:
            raise ValueError(f"Unknown sensor type: {measurement.sensor_type!r}")

        self.state.is_initialized = True
        self.state.time_us = measurement.timestamp
        logger.debug("Initialized from %s measurement at %d: x=%s",
                     measurement.sensor_type.name, measurement.timestamp, self.state.x)

    def predict(self, dt: float):
        """
        Generates the augmented sigma points, propagates them through the CTRV model and
        recombines them into the predicted mean and covariance.
        :param dt: elapsed time in seconds
        """
        x_aug, P_aug = augment(self.state.x, self.state.P, self.initialization_data.process_noise_Q)
        Xsig_aug = self.sigma_points.sigma_points(x_aug, P_aug)

        Xsig_pred = np.empty((Xsig_aug.shape[0], STATE_DIM))
        for i, point in enumerate(Xsig_aug):
            Xsig_pred[i] = f_ctrv(point, dt)

        # the mean is a plain weighted sum, only the yaw differences are normalized
        x, P = unscented_transform(Xsig_pred, self.weights, self.weights,
                                   residual_fn=partial(residual_with_angle, angle_index=YAW_INDEX))

        self.state.Xsig_pred = Xsig_pred
        self.state.x = x
        self.state.P = P
        logger.debug("Predicted over dt=%.6f s: x=%s", dt, x)

    def update_lidar(self, measurement: MeasurementPackage):
        result = linear_update(self.state.x, self.state.P, measurement.raw_measurements,
                               H_LIDAR, self.initialization_data.lidar_R)
        self.state.x = result.x
        self.state.P = result.P
        self.state.nis_lidar = result.nis
        logger.debug("Lidar NIS: %.4f", result.nis)

    def update_radar(self, measurement: MeasurementPackage):
        Xsig_pred = self.state.Xsig_pred
        Zsig = np.array([h_radar(point) for point in Xsig_pred])

        result = unscented_update(self.state.x, self.state.P, Xsig_pred, Zsig, self.weights,
                                  measurement.raw_measurements, self.initialization_data.radar_R,
                                  x_angle_index=YAW_INDEX, z_angle_index=BEARING_INDEX)
        self.state.x = result.x
        self.state.P = result.P
        self.state.nis_radar = result.nis
        logger.debug("Radar NIS: %.4f", result.nis)

    def _is_sensor_enabled(self, sensor_type: SensorType) -> bool:
        if sensor_type is SensorType.LIDAR:
            return self.initialization_data.use_lidar
        return self.initialization_data.use_radar
