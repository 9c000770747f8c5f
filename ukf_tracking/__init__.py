"""
Single-object tracking with a CTRV Unscented Kalman Filter fusing lidar and radar measurements.
"""
from ukf_tracking.filters import CTRVUnscentedKalmanFilter, InitializationData, MeasurementPackage, SensorType

__version__ = "0.1.0"

__all__ = [
    'CTRVUnscentedKalmanFilter',
    'InitializationData',
    'MeasurementPackage',
    'SensorType',
]
