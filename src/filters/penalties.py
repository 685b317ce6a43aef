"""
Pairwise displacement penalties for maximum convolutions.

A penalty maps an offset between a source and a target position to a
log-weight.  Penalties are vectorised: they accept a numpy array of offsets
and return an array of the same shape.  They must be pure, since the
convolution engine tabulates each one once per axis length.
"""

import numpy as np
from scipy.stats import norm


def negative_squared_distance(offset):
    """Log-space penalty ``-d**2`` used by the Euclidean distance transform."""
    d = np.asarray(offset, dtype=np.float64)
    return -(d * d)


def isotropic_gaussian(sdev: float):
    """Return the 1-D Gaussian log-density penalty with standard deviation *sdev*.

    The penalty evaluates ``-0.5 log(2 pi) - log(sdev) - 0.5 (d / sdev)**2``,
    a concave function of the offset.  Applied along both axes of a separable
    convolution it sums to the 2-D isotropic Gaussian log-density.

    Parameters
    ----------
    sdev : float
        Standard deviation in pixels (> 0).

    Returns
    -------
    callable
        Vectorised penalty ``offset -> log-density``.
    """
    assert sdev > 0, "standard deviation must be positive"
    scale = float(sdev)

    def penalty(offset):
        return norm.logpdf(np.asarray(offset, dtype=np.float64), scale=scale)

    return penalty


def isotropic_gaussian_pair(sdev: float):
    """Return the 2-D isotropic Gaussian log-density as a pair penalty.

    The returned callable takes two coordinate arrays ``source_xy`` and
    ``target_xy`` whose last axis holds ``(x, y)`` and broadcasts them
    against each other.
    """
    penalty = isotropic_gaussian(sdev)

    def pair_penalty(source_xy, target_xy):
        diff = np.asarray(target_xy, dtype=np.float64) - np.asarray(source_xy, dtype=np.float64)
        return np.sum(penalty(diff), axis=-1)

    return pair_penalty


def penalty_table(penalty, n: int) -> np.ndarray:
    """Tabulate *penalty* for every offset an axis of length *n* can produce.

    Parameters
    ----------
    penalty : callable
        Vectorised pairwise penalty.
    n : int
        Axis length (>= 1).

    Returns
    -------
    np.ndarray
        Array of length ``2n - 1``; entry ``k + n - 1`` holds ``penalty(k)``
        for ``k`` in ``[-(n - 1), n - 1]``.
    """
    assert n >= 1, "axis length must be positive"
    offsets = np.arange(-(n - 1), n)
    table = np.asarray(penalty(offsets), dtype=np.float64)
    assert table.shape == offsets.shape, "penalty must return one value per offset"
    return table
