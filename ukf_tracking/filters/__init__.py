"""
Kalman Filter Package

This package contains the CTRV Unscented Kalman Filter used for lidar/radar fusion.
"""

# Configuration and state
from .initialization import InitializationData, STATE_DIM, AUGMENTED_DIM
from .filter_state import FilterState
from .measurement import MeasurementPackage, SensorType

# Building blocks
from .angles import normalize_angle
from .sigma_points import AugmentedSigmaPoints, augment
from .kalman_common import UpdateResult, linear_update, unscented_update, normalized_innovation_squared

# Filter implementation
from .ctrv_ukf import CTRVUnscentedKalmanFilter, f_ctrv, h_radar

__all__ = [
    # Configuration and state
    'InitializationData',
    'FilterState',
    'MeasurementPackage',
    'SensorType',
    'STATE_DIM',
    'AUGMENTED_DIM',

    # Building blocks
    'normalize_angle',
    'AugmentedSigmaPoints',
    'augment',
    'UpdateResult',
    'linear_update',
    'unscented_update',
    'normalized_innovation_squared',

    # Filter implementation
    'CTRVUnscentedKalmanFilter',
    'f_ctrv',
    'h_radar',
]
