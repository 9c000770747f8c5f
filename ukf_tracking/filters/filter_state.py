from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from ukf_tracking.filters.initialization import InitializationData, STATE_DIM, AUGMENTED_DIM


@dataclass
class FilterState:
    """
    Everything the UKF mutates while processing measurements.
    Owned by a single filter instance and passed explicitly to the predict/update functions.
    """
    x: np.ndarray
    P: np.ndarray
    # (2 * n_aug + 1, n_x), one predicted sigma point per row. Kept from the prediction for the update step
    Xsig_pred: np.ndarray = field(default_factory=lambda: np.zeros((2 * AUGMENTED_DIM + 1, STATE_DIM)))
    is_initialized: bool = False
    time_us: Optional[int] = None
    nis_lidar: float = 0.
    nis_radar: float = 0.

    @classmethod
    def from_priors(cls, initialization_data: InitializationData) -> "FilterState":
        return cls(x=initialization_data.x0.copy(), P=initialization_data.P0.copy())
