"""
Landmark detection maps.

A detection map stores, for one named landmark, the log-certainty that the
landmark sits at each pixel, as produced by an external detector.  Before
model fitting the map is max-convolved once with the landmark noise model,
so that every later likelihood query is a single pixel lookup.
"""

from dataclasses import dataclass

import numpy as np

from src.filters.max_convolution import separable_max_convolution_2d
from src.filters.penalties import isotropic_gaussian
from src.imaging.access import access


def correct_error_rates(certainty: np.ndarray, false_positive_rate: float,
                        false_negative_rate: float) -> np.ndarray:
    """Account for known detector error rates in a certainty map.

    Applies ``p * (1 - (fp + fn)) + fn`` elementwise, which maps a certainty
    of 0 to *fn* and a certainty of 1 to ``1 - fp``.

    Parameters
    ----------
    certainty : np.ndarray
        Detection certainties in [0, 1].
    false_positive_rate, false_negative_rate : float
        Detector error rates in [0, 1] with ``fp + fn <= 1``.

    Returns
    -------
    np.ndarray
        Corrected certainties.
    """
    fp, fn = float(false_positive_rate), float(false_negative_rate)
    assert 0.0 <= fp <= 1.0 and 0.0 <= fn <= 1.0, "error rates must be in [0, 1]"
    assert fp + fn <= 1.0, "false positive and false negative rates exceed 1"
    return np.asarray(certainty, dtype=np.float64) * (1.0 - (fp + fn)) + fn


@dataclass(frozen=True, eq=False)
class LandmarkDetectionMap:
    """Log-certainty map of a single named landmark.

    Attributes
    ----------
    tag : str
        Landmark identifier, e.g. ``"left.eye.corner_outer"``.
    log_values : np.ndarray
        (H, W) float64 log-certainties; ``-inf`` marks impossible positions.
    """

    tag: str
    log_values: np.ndarray

    def __post_init__(self):
        values = np.asarray(self.log_values, dtype=np.float64)
        assert values.ndim == 2 and values.size > 0, \
            "detection map must be a non-empty 2-D array"
        object.__setattr__(self, "log_values", values)

    @classmethod
    def from_detection(cls, tag: str, log_values: np.ndarray,
                       false_positive_rate: float,
                       false_negative_rate: float) -> "LandmarkDetectionMap":
        """Build a map from raw detector output, correcting its error rates.

        The correction operates on certainties, so the log-values are
        exponentiated, corrected and brought back to log space.
        """
        certainty = np.exp(np.asarray(log_values, dtype=np.float64))
        corrected = correct_error_rates(certainty, false_positive_rate,
                                        false_negative_rate)
        with np.errstate(divide="ignore"):
            return cls(tag, np.log(corrected))

    @classmethod
    def from_corrected_detection(cls, tag: str,
                                 log_values: np.ndarray) -> "LandmarkDetectionMap":
        """Wrap a map whose error rates are already accounted for."""
        return cls(tag, log_values)

    @property
    def width(self) -> int:
        return self.log_values.shape[1]

    @property
    def height(self) -> int:
        return self.log_values.shape[0]

    def precalculate_isotropic_gaussian_noise(self, stddev_noise_model: float,
                                              workers: int = 1) -> "LandmarkDetectionMap":
        """Combine the detection with an isotropic Gaussian landmark noise model.

        Every pixel of the result holds the best combination of "the detector
        saw the landmark at p" and "the true landmark is displaced from p by
        Gaussian noise", i.e.
        ``max_p (log_values[p] + log N(pixel - p; 0, sdev^2 I))``.

        Parameters
        ----------
        stddev_noise_model : float
            Noise standard deviation in pixels (> 0).
        workers : int
            Threads per convolution pass.

        Returns
        -------
        LandmarkDetectionMap
            New map with the same tag.
        """
        convolved = separable_max_convolution_2d(
            self.log_values, isotropic_gaussian(stddev_noise_model),
            workers=workers)
        return LandmarkDetectionMap(self.tag, convolved)

    def value_at(self, x: float, y: float) -> float:
        """Log-certainty at the pixel nearest to ``(x, y)``; -inf outside."""
        px = int(np.floor(x + 0.5))
        py = int(np.floor(y + 0.5))
        return float(access(self.log_values, px, py, mode="padded",
                            fill_value=-np.inf))

    def peak(self) -> tuple:
        """Return ``(x, y, log_value)`` of the most certain pixel."""
        y, x = np.unravel_index(np.argmax(self.log_values), self.log_values.shape)
        return int(x), int(y), float(self.log_values[y, x])
