from dataclasses import dataclass, field
from typing import Iterable, List

import numpy as np
from scipy.stats import chi2

from ukf_tracking.filters.ctrv_ukf import CTRVUnscentedKalmanFilter
from ukf_tracking.filters.measurement import MeasurementPackage, SensorType

LIDAR_DOF = 2
RADAR_DOF = 3


@dataclass
class FilterRun:
    """Estimates and NIS values collected while running a filter over a measurement sequence."""
    estimates: List[np.ndarray] = field(default_factory=list)
    covariances: List[np.ndarray] = field(default_factory=list)
    nis_lidar: List[float] = field(default_factory=list)
    nis_radar: List[float] = field(default_factory=list)


def nis_threshold(dof: int, confidence: float = 0.95) -> float:
    """
    Chi-squared quantile the NIS should stay below with the given probability.
    0.95 gives 5.991 for 2 dof (lidar) and 7.815 for 3 dof (radar).
    """
    return float(chi2.ppf(confidence, dof))


def nis_exceedance_fraction(nis_values: Iterable[float], dof: int, confidence: float = 0.95) -> float:
    """
    Fraction of NIS values above the chi-squared threshold. Close to 1 - confidence for a consistent filter,
    much higher when the noise is underestimated and much lower when it is overestimated.
    """
    nis_values = np.asarray(list(nis_values), dtype=float)
    if nis_values.size == 0:
        raise ValueError("No NIS values to evaluate")
    return float(np.mean(nis_values > nis_threshold(dof, confidence)))


def run_filter(ukf: CTRVUnscentedKalmanFilter, measurements: Iterable[MeasurementPackage]) -> FilterRun:
    """
    Feeds the measurements to the filter one by one and records the estimate after each one,
    and the NIS after each update (the initializing measurement has none).
    """
    run = FilterRun()
    for measurement in measurements:
        was_initialized = ukf.is_initialized
        processed = ukf.process_measurement(measurement)

        run.estimates.append(ukf.x.copy())
        run.covariances.append(ukf.P.copy())
        if not (was_initialized and processed):
            continue
        if measurement.sensor_type is SensorType.LIDAR:
            run.nis_lidar.append(ukf.nis_lidar)
        else:
            run.nis_radar.append(ukf.nis_radar)
    return run
