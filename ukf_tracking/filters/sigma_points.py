import logging
from typing import Tuple

import numpy as np
from filterpy.kalman import JulierSigmaPoints
from scipy.linalg import LinAlgError

from ukf_tracking.filters.initialization import STATE_DIM, AUGMENTED_DIM

logger = logging.getLogger(__name__)


class AugmentedSigmaPoints:
    """
    Sigma points of the state augmented with the two process noise dimensions.

    With kappa = lambda, filterpy's Julier points are exactly x, x + sqrt(lambda + n) * L[:, i],
    x - sqrt(lambda + n) * L[:, i] (L the lower Cholesky factor), and the weights are
    lambda / (lambda + n) for the central point and 1 / (2 * (lambda + n)) for the others.
    """

    def __init__(self, lambda_: float, n_aug: int = AUGMENTED_DIM):
        self.n_aug = n_aug
        self.lambda_ = float(lambda_)
        self._points = JulierSigmaPoints(n=n_aug, kappa=self.lambda_)

    @property
    def weights(self) -> np.ndarray:
        return self._points.Wm.copy()

    def num_sigmas(self) -> int:
        return self._points.num_sigmas()

    def sigma_points(self, x_aug: np.ndarray, P_aug: np.ndarray) -> np.ndarray:
        """
        :return: (2 * n_aug + 1, n_aug) array, one sigma point per row
        """
        try:
            return self._points.sigma_points(x_aug, P_aug)
        except LinAlgError:
            logger.error("Augmented covariance is not positive definite, check the noise configuration:\n%s",
                         P_aug)
            raise


def augment(x: np.ndarray, P: np.ndarray, process_noise_Q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Builds the augmented mean [x; 0; 0] and block-diagonal covariance diag(P, Q).
    """
    n_x = x.shape[0]
    n_noise = process_noise_Q.shape[0]
    if n_x != STATE_DIM or n_x + n_noise != AUGMENTED_DIM:
        raise ValueError(f"Expected a {STATE_DIM}-state with {AUGMENTED_DIM - STATE_DIM} noise dimensions")

    x_aug = np.zeros(n_x + n_noise)
    x_aug[:n_x] = x

    P_aug = np.zeros((n_x + n_noise, n_x + n_noise))
    P_aug[:n_x, :n_x] = P
    P_aug[n_x:, n_x:] = process_noise_Q
    return x_aug, P_aug
