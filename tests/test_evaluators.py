"""
Tests for the landmark likelihood evaluators used during model fitting.

Run with: python -m pytest tests/test_evaluators.py -v
"""
import numpy as np
import pytest

from src.filters.penalties import isotropic_gaussian_pair
from src.landmarks.detection_map import LandmarkDetectionMap
from src.landmarks.evaluators import (
    LandmarkMapEvaluator,
    PointMapEvaluator,
    ProductEvaluator,
    map_evaluators,
    with_isotropic_gaussian_noise,
    with_landmarks_likelihood,
)
from src.utils.image_io import make_peak_detection


def dict_renderer(tag, sample):
    """Samples are plain dicts of landmark tag -> (x, y)."""
    return sample.get(tag)


@pytest.fixture
def maps():
    nose = LandmarkDetectionMap("nose", make_peak_detection(20, 15, [(10, 7)]))
    eye = LandmarkDetectionMap("eye", make_peak_detection(20, 15, [(4, 3)]))
    return [nose, eye]


class TestLandmarkMapEvaluator:

    def test_looks_up_rendered_position(self):
        values = np.arange(6, dtype=float).reshape(2, 3)
        evaluator = LandmarkMapEvaluator(LandmarkDetectionMap("a", values), dict_renderer)
        assert evaluator.tag == "a"
        assert evaluator.log_value({"a": (2, 1)}) == 5.0
        assert evaluator.log_value({"a": (3, 1)}) == -np.inf

    def test_missing_landmark_is_absent_not_sentinel(self):
        evaluator = LandmarkMapEvaluator(LandmarkDetectionMap("a", np.zeros((2, 2))),
                                         dict_renderer)
        assert evaluator.log_value({"b": (0, 0)}) is None


class TestProductEvaluator:

    def test_sums_independent_log_values(self, maps):
        product = map_evaluators(maps, dict_renderer)
        assert product.log_value({"nose": (10, 7), "eye": (4, 3)}) == 0.0
        assert product.log_value({"nose": (10, 7), "eye": (5, 3)}) == -np.inf

    def test_absent_component_makes_product_absent(self, maps):
        product = map_evaluators(maps, dict_renderer)
        assert product.log_value({"nose": (10, 7)}) is None

    def test_empty_product_is_certain(self):
        assert ProductEvaluator([]).log_value({}) == 0.0


class TestNoiseModels:

    def test_isotropic_gaussian_noise_uses_preconvolved_maps(self, maps):
        product = with_isotropic_gaussian_noise(maps, dict_renderer, 2.0)
        sample = {"nose": (12, 7), "eye": (4, 4.2)}
        expected = sum(
            m.precalculate_isotropic_gaussian_noise(2.0).value_at(*sample[m.tag])
            for m in maps)
        assert product.log_value(sample) == pytest.approx(expected)
        assert np.isfinite(product.log_value(sample))

    def test_general_likelihood_agrees_with_separable_gaussian(self, maps):
        fast = with_isotropic_gaussian_noise(maps, dict_renderer, 1.5)
        slow = with_landmarks_likelihood(maps, dict_renderer, isotropic_gaussian_pair(1.5))
        for sample in ({"nose": (0, 0), "eye": (19, 14)},
                       {"nose": (11.2, 6.6), "eye": (4, 3)},
                       {"nose": (7, 9), "eye": (6, 1)}):
            assert slow.log_value(sample) == pytest.approx(fast.log_value(sample), abs=1e-9)

    def test_general_likelihood_caches_pixels(self, maps):
        slow = with_landmarks_likelihood(maps[:1], dict_renderer, isotropic_gaussian_pair(1.0))
        lazy_map = slow.evaluators[0].detection_map
        first = slow.log_value({"nose": (3, 3)})
        assert slow.log_value({"nose": (3.2, 2.9)}) == first
        assert len(lazy_map._cache) == 1
        assert slow.log_value({"nose": (-5, 3)}) == -np.inf
        assert len(lazy_map._cache) == 1

    def test_general_likelihood_map_only_exposes_convolved_lookups(self, maps):
        slow = with_landmarks_likelihood(maps[:1], dict_renderer, isotropic_gaussian_pair(1.0))
        lazy_map = slow.evaluators[0].detection_map
        assert lazy_map.tag == "nose"
        assert lazy_map.source is maps[0]
        assert not isinstance(lazy_map, LandmarkDetectionMap)
        assert not hasattr(lazy_map, "log_values")
        assert not hasattr(lazy_map, "peak")
        assert lazy_map.value_at(11, 7) == pytest.approx(-np.log(2 * np.pi) - 0.5)
        assert maps[0].value_at(11, 7) == -np.inf


class TestPointMapEvaluator:

    def test_lookup_after_preconvolution(self):
        raw = make_peak_detection(16, 16, [(8, 8)])
        evaluator = PointMapEvaluator(1.0, raw)
        at_peak = evaluator.log_value((8, 8))
        assert at_peak == pytest.approx(-np.log(2 * np.pi))
        assert evaluator.log_value((9, 8)) == pytest.approx(at_peak - 0.5)
        assert evaluator.log_value((16, 8)) == -np.inf
