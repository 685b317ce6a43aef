"""
Euclidean distance transforms of binary masks.

Uses the algorithm of Felzenszwalb & Huttenlocher expressed as a maximum
convolution: foreground pixels are seeded with 0 and background pixels with
-inf, and the separable max-convolution with a negative squared distance
penalty yields the negative squared distance to the nearest foreground pixel.
"""

import numpy as np

from src.filters.max_convolution import separable_max_convolution_2d
from src.filters.penalties import negative_squared_distance


def _check_mask(mask) -> np.ndarray:
    mask = np.asarray(mask, dtype=bool)
    assert mask.ndim == 2, "mask must be two-dimensional"
    assert mask.size > 0, "mask must not be empty"
    return mask


def euclidean_distance_transform(mask: np.ndarray, workers: int = 1) -> np.ndarray:
    """Distance of every pixel to the nearest foreground pixel.

    Parameters
    ----------
    mask : np.ndarray
        (H, W) boolean mask, True marks foreground.
    workers : int
        Threads per convolution pass.

    Returns
    -------
    np.ndarray
        (H, W) float64 array of non-negative distances; 0 on the foreground.
        A mask without foreground yields ``inf`` everywhere.
    """
    mask = _check_mask(mask)
    seed = np.where(mask, 0.0, -np.inf)
    neg_sq_distance = separable_max_convolution_2d(
        seed, negative_squared_distance, workers=workers)
    # 0.0 - x keeps the foreground at +0.0
    return np.sqrt(0.0 - neg_sq_distance)


def signed_euclidean_distance_transform(mask: np.ndarray,
                                        workers: int = 1) -> np.ndarray:
    """Signed distance to the object border: negative inside, positive outside.

    Outside the object the value is the distance to the nearest foreground
    pixel; inside it is minus the distance to the nearest background pixel.
    Foreground pixels on the border therefore get -1 and background pixels
    touching the object +1.

    Parameters
    ----------
    mask : np.ndarray
        (H, W) boolean mask, True marks the object.
    workers : int
        Threads per convolution pass.

    Returns
    -------
    np.ndarray
        (H, W) float64 signed distance image.
    """
    mask = _check_mask(mask)
    outside = euclidean_distance_transform(mask, workers=workers)
    inside = euclidean_distance_transform(~mask, workers=workers)
    assert outside.shape == inside.shape, "partial transforms differ in shape"
    return np.where(outside > 0.0, outside, -inside)
