"""
Measurement update steps shared by the sensors, to avoid repeated code.

Both updates return an UpdateResult with the corrected mean and covariance together with the
quantities needed for diagnostics (innovation, innovation covariance, gain and the NIS).
"""
from dataclasses import dataclass
from functools import partial

import numpy as np
from filterpy.kalman import unscented_transform

from ukf_tracking.filters.angles import residual_with_angle


@dataclass
class UpdateResult:
    x: np.ndarray
    P: np.ndarray
    y: np.ndarray  # innovation (residual)
    S: np.ndarray  # innovation covariance
    K: np.ndarray  # kalman gain
    nis: float


def normalized_innovation_squared(y: np.ndarray, S_inv: np.ndarray) -> float:
    """
    NIS = y^T S^-1 y. Chi-squared distributed with dim(y) degrees of freedom when the filter is consistent.
    """
    return float(y @ S_inv @ y)


def linear_update(x: np.ndarray, P: np.ndarray, z: np.ndarray, H: np.ndarray, R: np.ndarray) -> UpdateResult:
    """
    Standard Kalman filter update for a linear measurement model z = Hx + v, v ~ N(0, R).

    Parameters
    ----------
    x : array, shape(n_x)
        Predicted state mean
    P : array, shape(n_x, n_x)
        Predicted state covariance
    z : array, shape(n_z)
        Measurement received
    H : array, shape(n_z, n_x)
        Measurement matrix
    R : array, shape(n_z, n_z)
        Measurement noise covariance

    Raises numpy.linalg.LinAlgError if the innovation covariance is singular.
    """
    y = z - H @ x
    PHt = P @ H.T
    S = H @ PHt + R
    S_inv = np.linalg.inv(S)
    K = PHt @ S_inv

    x_new = x + K @ y
    P_new = (np.eye(x.shape[0]) - K @ H) @ P
    return UpdateResult(x=x_new, P=P_new, y=y, S=S, K=K, nis=normalized_innovation_squared(y, S_inv))


def unscented_update(x: np.ndarray,
                     P: np.ndarray,
                     Xsig_pred: np.ndarray,
                     Zsig: np.ndarray,
                     weights: np.ndarray,
                     z: np.ndarray,
                     R: np.ndarray,
                     x_angle_index: int,
                     z_angle_index: int) -> UpdateResult:
    """
    Unscented Kalman filter update for a nonlinear measurement model.

    Parameters
    ----------
    x, P : predicted state mean and covariance
    Xsig_pred : array, shape(n_sigma, n_x)
        Predicted sigma points, one per row
    Zsig : array, shape(n_sigma, n_z)
        The same sigma points mapped into measurement space
    weights : array, shape(n_sigma)
    z : array, shape(n_z)
        Measurement received
    R : array, shape(n_z, n_z)
        Measurement noise covariance
    x_angle_index, z_angle_index :
        Index of the angular component in state and measurement space. Its differences are normalized
        into (-pi, pi] in every residual.
    """
    x_residual = partial(residual_with_angle, angle_index=x_angle_index)
    z_residual = partial(residual_with_angle, angle_index=z_angle_index)

    # mean predicted measurement and its covariance, R included
    z_pred, S = unscented_transform(Zsig, weights, weights, noise_cov=R, residual_fn=z_residual)

    # cross correlation between state and measurement space
    Tc = np.zeros((x.shape[0], z_pred.shape[0]))
    for i in range(Zsig.shape[0]):
        Tc += weights[i] * np.outer(x_residual(Xsig_pred[i], x), z_residual(Zsig[i], z_pred))

    S_inv = np.linalg.inv(S)
    K = Tc @ S_inv

    y = z_residual(z, z_pred)
    x_new = x + K @ y
    P_new = P - K @ S @ K.T
    return UpdateResult(x=x_new, P=P_new, y=y, S=S, K=K, nis=normalized_innovation_squared(y, S_inv))
