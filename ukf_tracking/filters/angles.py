import math

import numpy as np


def normalize_angle(angle: float) -> float:
    """
    Wraps an angle into (-pi, pi].

    Used for every heading/bearing difference that enters a residual or a covariance sum,
    so all of them share the same wrap-around semantics.
    """
    angle = float(angle)
    if not math.isfinite(angle):
        raise ValueError(f"Cannot normalize a non-finite angle: {angle}")
    # remainder lands in [-pi, pi]
    angle = math.remainder(angle, 2. * math.pi)
    if angle <= -math.pi:
        angle += 2. * math.pi
    return angle


def residual_with_angle(a: np.ndarray, b: np.ndarray, angle_index: int) -> np.ndarray:
    """
    a - b, with the component at angle_index normalized.
    Has the signature filterpy's unscented_transform expects from residual_fn (once the index is bound).
    """
    y = np.asarray(a, dtype=float) - np.asarray(b, dtype=float)
    y[angle_index] = normalize_angle(y[angle_index])
    return y
