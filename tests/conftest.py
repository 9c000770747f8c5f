import numpy as np
import pytest

from ukf_tracking.filters import CTRVUnscentedKalmanFilter, InitializationData


@pytest.fixture
def initialization_data():
    """Default noise configuration and priors."""
    return InitializationData()


@pytest.fixture
def ukf(initialization_data):
    return CTRVUnscentedKalmanFilter(initialization_data)


@pytest.fixture
def sample_state():
    """Sample CTRV state [px, py, v, yaw, yaw_rate]."""
    return np.array([10.0, 5.0, 4.0, 0.3, 0.1])


@pytest.fixture
def sample_covariance():
    """Sample 5x5 state covariance."""
    return np.diag([0.2, 0.3, 0.5, 0.1, 0.05])
