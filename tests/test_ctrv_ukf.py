import logging

import numpy as np
import pytest
from numpy.testing import assert_allclose

from ukf_tracking.filters import CTRVUnscentedKalmanFilter, InitializationData, MeasurementPackage, SensorType
from ukf_tracking.filters.ctrv_ukf import f_ctrv, h_radar, MIN_RANGE
from ukf_tracking.filters.initialization import default_x0, default_P0


def lidar(px, py, timestamp=0):
    return MeasurementPackage(SensorType.LIDAR, np.array([px, py]), timestamp)


def radar(rho, phi, rho_dot, timestamp=0):
    return MeasurementPackage(SensorType.RADAR, np.array([rho, phi, rho_dot]), timestamp)


def assert_symmetric_psd(P):
    assert_allclose(P, P.T, atol=1e-9)
    assert np.min(np.linalg.eigvalsh(0.5 * (P + P.T))) > -1e-9


# =============================================================================
# PROCESS AND MEASUREMENT MODELS
# =============================================================================

class TestProcessModel:

    def test_straight_line_motion(self):
        """Zero turn rate, v=2, yaw=0, dt=1 and no noise moves the position by exactly (2, 0)."""
        point = np.array([3.0, -1.0, 2.0, 0.0, 0.0, 0.0, 0.0])
        assert_allclose(f_ctrv(point, 1.0), [5.0, -1.0, 2.0, 0.0, 0.0])

    def test_near_zero_turn_rate_uses_straight_line(self):
        point = np.array([0.0, 0.0, 1.0, np.pi / 2, 1e-4, 0.0, 0.0])
        result = f_ctrv(point, 2.0)
        assert np.all(np.isfinite(result))
        assert_allclose(result[:2], [0.0, 2.0], atol=1e-12)
        assert result[3] == pytest.approx(np.pi / 2 + 2e-4)

    def test_quarter_turn(self):
        omega = np.pi / 2
        point = np.array([0.0, 0.0, 1.0, 0.0, omega, 0.0, 0.0])
        result = f_ctrv(point, 1.0)
        assert_allclose(result, [2 / np.pi, 2 / np.pi, 1.0, np.pi / 2, omega], atol=1e-12)

    def test_turn_converges_to_straight_line(self):
        straight = f_ctrv(np.array([0.0, 0.0, 5.0, 0.7, 0.0, 0.0, 0.0]), 0.1)
        turning = f_ctrv(np.array([0.0, 0.0, 5.0, 0.7, 2e-3, 0.0, 0.0]), 0.1)
        assert_allclose(turning[:2], straight[:2], atol=1e-3)

    def test_noise_terms(self):
        point = np.array([0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 1.0])
        assert_allclose(f_ctrv(point, 2.0), [2.0, 0.0, 2.0, 2.0, 2.0])


class TestRadarModel:

    def test_radial_motion(self):
        state = np.array([3.0, 4.0, 5.0, np.arctan2(4.0, 3.0), 0.0])
        assert_allclose(h_radar(state), [5.0, np.arctan2(4.0, 3.0), 5.0])

    def test_tangential_motion_has_no_range_rate(self):
        state = np.array([0.0, 10.0, 3.0, 0.0, 0.0])
        assert_allclose(h_radar(state), [10.0, np.pi / 2, 0.0], atol=1e-12)

    def test_range_is_floored_at_origin(self):
        z = h_radar(np.array([0.0, 0.0, 3.0, 0.0, 0.0]))
        assert z[0] == MIN_RANGE
        assert np.all(np.isfinite(z))


# =============================================================================
# FILTER LIFECYCLE
# =============================================================================

class TestInitialization:

    def test_starts_uninitialized_at_priors(self, ukf):
        assert not ukf.is_initialized
        assert_allclose(ukf.x, default_x0())
        assert_allclose(ukf.P, default_P0())

    def test_init_from_radar(self, ukf):
        ukf.process_measurement(radar(5.0, 0.0, 1.0, timestamp=1000))
        assert ukf.is_initialized
        assert_allclose(ukf.x[:2], [5.0, 0.0], atol=1e-12)
        assert_allclose(ukf.x[2:], default_x0()[2:])
        assert_allclose(ukf.P, default_P0())
        assert ukf.state.time_us == 1000

    def test_init_from_radar_with_bearing(self, ukf):
        ukf.process_measurement(radar(2.0, np.pi / 2, 0.0))
        assert_allclose(ukf.x[:2], [0.0, 2.0], atol=1e-12)

    def test_init_from_lidar(self, ukf):
        ukf.process_measurement(lidar(1.0, 2.0, timestamp=42))
        assert ukf.is_initialized
        assert_allclose(ukf.x, [1.0, 2.0, 9.0, 0.0, 0.0])
        assert ukf.state.time_us == 42
        assert ukf.nis_lidar == 0.0
        assert ukf.nis_radar == 0.0

    def test_init_keeps_configured_priors(self):
        data = InitializationData(x0=np.array([0.0, 0.0, 3.0, 0.5, 0.1]))
        ukf = CTRVUnscentedKalmanFilter(data)
        ukf.process_measurement(lidar(1.0, 2.0))
        assert_allclose(ukf.x, [1.0, 2.0, 3.0, 0.5, 0.1])

    def test_initialize_is_not_reentered(self, ukf, caplog):
        ukf.initialize(lidar(1.0, 2.0))
        with caplog.at_level(logging.WARNING):
            ukf.initialize(lidar(7.0, 8.0))
        assert_allclose(ukf.x[:2], [1.0, 2.0])
        assert "already initialized" in caplog.text

    def test_priors_are_not_shared_between_filters(self, initialization_data):
        first = CTRVUnscentedKalmanFilter(initialization_data)
        second = CTRVUnscentedKalmanFilter(initialization_data)
        first.process_measurement(lidar(1.0, 2.0))
        assert_allclose(second.x, default_x0())
        assert_allclose(initialization_data.x0, default_x0())


class TestPrediction:

    def test_zero_dt_keeps_mean_and_covariance(self, ukf):
        ukf.process_measurement(lidar(1.0, 2.0))
        x, P = ukf.x.copy(), ukf.P.copy()
        ukf.predict(0.0)
        assert_allclose(ukf.x, x, atol=1e-10)
        assert_allclose(ukf.P, P, atol=1e-10)

    def test_predicted_sigma_points_are_kept(self, ukf):
        ukf.process_measurement(lidar(1.0, 2.0))
        ukf.predict(0.1)
        assert ukf.state.Xsig_pred.shape == (15, 5)
        assert_allclose(ukf.weights @ ukf.state.Xsig_pred, ukf.x, atol=1e-12)

    def test_mean_moves_along_heading(self):
        data = InitializationData(x0=np.array([0.0, 0.0, 2.0, 0.0, 0.0]),
                                  P0=np.diag([1e-4, 1e-4, 1e-4, 1e-6, 1e-6]),
                                  std_a=1e-3, std_yawdd=1e-3)
        ukf = CTRVUnscentedKalmanFilter(data)
        ukf.process_measurement(lidar(0.0, 0.0))
        ukf.predict(1.0)
        assert_allclose(ukf.x[:2], [2.0, 0.0], atol=1e-3)

    def test_covariance_grows_with_dt(self, ukf):
        ukf.process_measurement(lidar(1.0, 2.0))
        trace = np.trace(ukf.P)
        ukf.predict(0.5)
        assert np.trace(ukf.P) > trace
        assert_symmetric_psd(ukf.P)

    def test_non_positive_definite_covariance_raises(self, ukf):
        ukf.process_measurement(lidar(1.0, 2.0))
        ukf.state.P = -np.eye(5)
        with pytest.raises(np.linalg.LinAlgError):
            ukf.predict(0.1)


class TestProcessMeasurement:

    def test_predict_then_update(self, ukf):
        ukf.process_measurement(lidar(1.0, 2.0, timestamp=0))
        assert ukf.process_measurement(radar(2.3, 1.1, 0.5, timestamp=50_000))
        assert ukf.state.time_us == 50_000
        assert ukf.nis_radar > 0
        assert ukf.nis_lidar == 0.0

        ukf.process_measurement(lidar(1.1, 2.1, timestamp=100_000))
        assert ukf.nis_lidar > 0
        assert_symmetric_psd(ukf.P)

    def test_lidar_update_pulls_position_to_measurement(self, ukf):
        ukf.process_measurement(lidar(0.0, 0.0, timestamp=0))
        ukf.process_measurement(lidar(0.5, 0.0, timestamp=50_000))
        # the measurement noise is small compared to the prior, so the estimate sits close to it
        assert_allclose(ukf.x[:2], [0.5, 0.0], atol=0.1)

    def test_timestamps_going_backwards_raise(self, ukf):
        ukf.process_measurement(lidar(1.0, 2.0, timestamp=100))
        with pytest.raises(ValueError):
            ukf.process_measurement(lidar(1.0, 2.0, timestamp=50))

    def test_same_timestamp_is_allowed(self, ukf):
        ukf.process_measurement(lidar(1.0, 2.0, timestamp=100))
        assert ukf.process_measurement(radar(2.2, 1.1, 0.0, timestamp=100))

    def test_disabled_sensor_is_ignored_after_init(self):
        ukf = CTRVUnscentedKalmanFilter(InitializationData(use_radar=False))
        # still used to initialize
        assert ukf.process_measurement(radar(5.0, 0.0, 0.0, timestamp=0))
        assert_allclose(ukf.x[:2], [5.0, 0.0], atol=1e-12)

        x, P = ukf.x.copy(), ukf.P.copy()
        assert not ukf.process_measurement(radar(5.1, 0.0, 0.0, timestamp=50_000))
        assert_allclose(ukf.x, x)
        assert_allclose(ukf.P, P)
        assert ukf.state.time_us == 0
        assert ukf.nis_radar == 0.0

        assert ukf.process_measurement(lidar(5.1, 0.0, timestamp=100_000))
        assert ukf.nis_lidar > 0

    def test_huge_bearing_is_wrapped(self, ukf):
        ukf.process_measurement(lidar(1.0, 1.0, timestamp=0))
        assert ukf.process_measurement(radar(1.4, 1e12, 0.0, timestamp=50_000))
        assert np.all(np.isfinite(ukf.x))
        assert_symmetric_psd(ukf.P)

    def test_writing_to_weights_does_not_leak(self, ukf):
        ukf.process_measurement(lidar(1.0, 2.0))
        ukf.weights[:] = 0.0
        assert np.sum(ukf.weights) == pytest.approx(1.0, abs=1e-12)
        ukf.predict(0.1)
        assert np.all(np.isfinite(ukf.x))

    def test_deterministic(self):
        measurements = [lidar(1.0, 2.0, 0), radar(2.3, 1.1, 0.5, 50_000), lidar(1.2, 2.1, 100_000),
                        radar(2.5, 1.08, 0.4, 150_000)]
        first, second = CTRVUnscentedKalmanFilter(), CTRVUnscentedKalmanFilter()
        for m in measurements:
            first.process_measurement(m)
            second.process_measurement(m)
        assert np.array_equal(first.x, second.x)
        assert np.array_equal(first.P, second.P)


class TestMeasurementPackage:

    def test_wrong_length_raises(self):
        with pytest.raises(ValueError):
            MeasurementPackage(SensorType.LIDAR, np.array([1.0, 2.0, 3.0]), 0)
        with pytest.raises(ValueError):
            MeasurementPackage(SensorType.RADAR, np.array([1.0, 2.0]), 0)

    def test_unknown_sensor_raises(self):
        with pytest.raises(ValueError):
            MeasurementPackage("L", np.array([1.0, 2.0]), 0)

    @pytest.mark.parametrize("values", [[1.0, np.nan, 0.0], [np.inf, 0.1, 0.0], [1.0, 0.1, -np.inf]])
    def test_non_finite_reading_raises(self, values):
        with pytest.raises(ValueError):
            MeasurementPackage(SensorType.RADAR, np.array(values), 0)

    def test_fractional_timestamp_raises(self):
        with pytest.raises(ValueError):
            MeasurementPackage(SensorType.LIDAR, np.array([1.0, 2.0]), 10.5)

    def test_whole_float_timestamp_is_accepted(self):
        assert MeasurementPackage(SensorType.LIDAR, np.array([1.0, 2.0]), 10.0).timestamp == 10

    def test_accepts_lists(self):
        m = MeasurementPackage(SensorType.RADAR, [1, 2, 3], 10)
        assert m.raw_measurements.dtype == float
        assert m.raw_measurements.shape == (3,)
