"""
Landmark likelihood evaluators for model fitting.

During fitting, a model sample is rendered to 2-D landmark positions and each
position is scored by a lookup in that landmark's detection map.  The maps
are prepared once (max-convolved with the noise model) so that a fitting
iteration costs one pixel read per landmark.

A renderer is any callable ``renderer(tag, sample)`` returning the ``(x, y)``
image position of the landmark, or None when the sample does not place that
landmark.  An unavailable position yields a None log-value rather than a
numeric sentinel; ``-inf`` is reserved for positions that are impossible.
"""

from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from src.filters.max_convolution import pixel_coordinates, brute_force_max_at
from src.landmarks.detection_map import LandmarkDetectionMap

Renderer = Callable[[str, object], Optional[Tuple[float, float]]]


class LandmarkMapEvaluator:
    """Score a sample by looking up its rendered landmark in a detection map."""

    def __init__(self, detection_map: LandmarkDetectionMap, renderer: Renderer):
        self.detection_map = detection_map
        self.renderer = renderer

    @property
    def tag(self) -> str:
        return self.detection_map.tag

    def log_value(self, sample) -> Optional[float]:
        position = self.renderer(self.tag, sample)
        if position is None:
            return None
        return self.detection_map.value_at(*position)


class PointMapEvaluator:
    """Score 2-D points against a detection map under isotropic Gaussian noise.

    The map is pre-convolved with the noise model at construction; scoring a
    point is then an O(1) nearest-pixel lookup, ``-inf`` outside the map.
    """

    def __init__(self, stddev_noise_model: float, detection_map: np.ndarray,
                 workers: int = 1):
        raw = LandmarkDetectionMap.from_corrected_detection("point", detection_map)
        self.prob_map = raw.precalculate_isotropic_gaussian_noise(
            stddev_noise_model, workers=workers)

    def log_value(self, point) -> float:
        x, y = point
        return self.prob_map.value_at(x, y)


class ProductEvaluator:
    """Joint log-likelihood of independent evaluators (sum of log values)."""

    def __init__(self, evaluators: Sequence):
        self.evaluators = list(evaluators)

    def log_value(self, sample) -> Optional[float]:
        total = 0.0
        for evaluator in self.evaluators:
            value = evaluator.log_value(sample)
            if value is None:
                return None
            total += value
        return total


class _LazyMaxConvolvedMap:
    """Detection map convolved pixel by pixel on first access, then cached.

    Only per-pixel lookups are offered; the unconvolved input stays available
    as ``source``.
    """

    def __init__(self, source: LandmarkDetectionMap, pair_penalty):
        self.source = source
        self._pair_penalty = pair_penalty
        self._coords = pixel_coordinates(source.log_values.shape)
        self._cache = {}

    @property
    def tag(self) -> str:
        return self.source.tag

    def value_at(self, x: float, y: float) -> float:
        px = int(np.floor(x + 0.5))
        py = int(np.floor(y + 0.5))
        if not (0 <= px < self.source.width and 0 <= py < self.source.height):
            return -np.inf
        key = (px, py)
        if key not in self._cache:
            self._cache[key] = brute_force_max_at(
                self.source.log_values, self._pair_penalty, px, py, self._coords)
        return self._cache[key]


def map_evaluators(detection_maps: Sequence[LandmarkDetectionMap],
                   renderer: Renderer) -> ProductEvaluator:
    """Combine one map evaluator per detection map, used as they are."""
    return ProductEvaluator([LandmarkMapEvaluator(m, renderer) for m in detection_maps])


def with_isotropic_gaussian_noise(detection_maps: Sequence[LandmarkDetectionMap],
                                  renderer: Renderer, stddev_noise_model: float,
                                  workers: int = 1) -> ProductEvaluator:
    """Prepare detection maps with an isotropic Gaussian landmark noise model.

    Each map is max-convolved once with the separable Gaussian; the landmarks
    are treated as independent.
    """
    evaluators = []
    for detection_map in detection_maps:
        with_noise = detection_map.precalculate_isotropic_gaussian_noise(
            stddev_noise_model, workers=workers)
        evaluators.append(LandmarkMapEvaluator(with_noise, renderer))
    return ProductEvaluator(evaluators)


def with_landmarks_likelihood(detection_maps: Sequence[LandmarkDetectionMap],
                              renderer: Renderer, pair_penalty) -> ProductEvaluator:
    """Prepare detection maps with an arbitrary pairwise landmark noise model.

    The noise model need not be separable, so every queried pixel is resolved
    by a full search over the map.  Results are cached per pixel; this stays
    affordable only while few distinct pixels are queried.

    Parameters
    ----------
    detection_maps : sequence of LandmarkDetectionMap
        Maps to evaluate against.
    renderer : callable
        ``renderer(tag, sample) -> (x, y) or None``.
    pair_penalty : callable
        ``pair_penalty(source_xy, target_xy) -> log-weight`` on coordinate
        arrays with ``(x, y)`` on the last axis.
    """
    evaluators = [LandmarkMapEvaluator(_LazyMaxConvolvedMap(m, pair_penalty), renderer)
                  for m in detection_maps]
    return ProductEvaluator(evaluators)
