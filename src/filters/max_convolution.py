"""
General maximum convolution of 1-D signals and 2-D images.

A maximum convolution replaces the sum of a linear convolution by a maximum
and the product by a sum:

    result[i] = max_j ( data[j] + penalty(i - j) )

i.e. a convolution in the max-plus semiring.  With a negative squared
distance as penalty this is the core of the Felzenszwalb distance transform;
with a Gaussian log-density it combines a detection map with a landmark
noise model.

The fast 1-D routine uses a forward and a backward sweep with a
monotonically moving best-source pointer.  It is exact for concave
penalties such as ``-c * d**2 + const``, whose optimal source index never
decreases with the target index.  The tabulated penalty is checked for
concavity and any other penalty is handled by an exhaustive O(N^2) search.
"""

from concurrent.futures import ThreadPoolExecutor

import numpy as np

from src.filters.penalties import penalty_table


# pass order -> sequence of array axes to convolve (axis 1 runs along rows)
_PASS_ORDER = {
    "rows": (1, 0),
    "cols": (0, 1),
}


def _max_convolution_1d(data: np.ndarray, table: np.ndarray) -> np.ndarray:
    """Two-sweep maximum convolution of *data* against a tabulated penalty.

    *table* holds ``penalty(k)`` at index ``k + centre`` and must cover all
    offsets in ``[-(n - 1), n - 1]``.
    """
    values = data.tolist()
    weights = table.tolist()
    centre = (len(weights) - 1) // 2
    n = len(values)

    # staying in place is always a candidate
    result = [v + weights[centre] for v in values]

    # forward sweep: sources left of the target
    best = 0
    for i in range(n):
        pos = i
        for lag in range(best, i):
            t = values[lag] + weights[centre + i - lag]
            if result[i] < t:
                result[i] = t
                pos = lag
        best = pos

    # backward sweep: sources right of the target
    for i in range(best, -1, -1):
        pos = i
        for lag in range(best, i, -1):
            t = values[lag] + weights[centre + i - lag]
            if result[i] < t:
                result[i] = t
                pos = lag
        best = pos

    return np.array(result, dtype=np.float64)


def _exhaustive_max_convolution_1d(data: np.ndarray, table: np.ndarray) -> np.ndarray:
    """O(N^2) maximum convolution of *data* against a tabulated penalty."""
    centre = (table.size - 1) // 2
    idx = np.arange(data.size)
    offsets = idx[:, np.newaxis] - idx[np.newaxis, :]   # [i, j] = i - j
    return np.max(data[np.newaxis, :] + table[offsets + centre], axis=1)


def is_concave_table(table: np.ndarray, rtol: float = 1e-9) -> bool:
    """True if a tabulated penalty is finite and concave up to rounding.

    Concave penalties keep the optimal source index monotone in the target
    index, which the two-sweep routine relies on.
    """
    if not np.all(np.isfinite(table)):
        return False
    if table.size < 3:
        return True
    tol = rtol * max(1.0, float(np.max(np.abs(table))))
    return bool(np.all(np.diff(table, 2) <= tol))


def _line_routine(table: np.ndarray):
    """Pick the 1-D routine that is exact for *table*."""
    if is_concave_table(table):
        return _max_convolution_1d
    return _exhaustive_max_convolution_1d


def max_convolution_1d(data: np.ndarray, penalty) -> np.ndarray:
    """Compute the 1-D maximum convolution of *data* with *penalty*.

    Parameters
    ----------
    data : np.ndarray
        Non-empty 1-D array of real values (``-inf`` allowed).
    penalty : callable
        Vectorised pairwise penalty ``offset -> log-weight``.  Concave
        penalties (e.g. ``-c * d**2 + const``) take the two-sweep routine,
        anything else the exhaustive search.

    Returns
    -------
    np.ndarray
        Array of the same length with
        ``result[i] = max_j (data[j] + penalty(i - j))``.
    """
    data = np.asarray(data, dtype=np.float64)
    assert data.ndim == 1, "data must be one-dimensional"
    assert data.size > 0, "data must not be empty"
    table = penalty_table(penalty, data.size)
    return _line_routine(table)(data, table)


def _convolve_axis(image: np.ndarray, table: np.ndarray, axis: int,
                   workers: int) -> np.ndarray:
    """Run the 1-D routine on every line of *image* along *axis*."""
    out = np.empty_like(image)
    lines = image if axis == 1 else image.T
    target = out if axis == 1 else out.T
    routine = _line_routine(table)

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(lambda line: routine(line, table), lines))
    else:
        results = [routine(line, table) for line in lines]

    for k, line in enumerate(results):
        target[k] = line
    return out


def separable_max_convolution_2d(image: np.ndarray, penalty,
                                 order: str = "rows",
                                 workers: int = 1) -> np.ndarray:
    """Compute a 2-D maximum convolution with a separable penalty.

    The 2-D penalty is ``penalty(dx) + penalty(dy)``, which holds for
    squared Euclidean distances and isotropic Gaussian log-densities.  Every
    row is convolved into an intermediate buffer, then every column of that
    buffer (or the reverse for ``order="cols"``; the result is the same).

    Parameters
    ----------
    image : np.ndarray
        (H, W) array of real values, H, W >= 1.  Not modified.
    penalty : callable
        Vectorised 1-D penalty, reused for both axes.
    order : str
        ``"rows"`` or ``"cols"``: which pass runs first.
    workers : int
        Number of threads each pass is spread over.  Lines within a pass are
        independent; the second pass starts after the first is complete.

    Returns
    -------
    np.ndarray
        (H, W) float64 array with
        ``result[y, x] = max_{x', y'} (image[y', x'] + penalty(x - x') + penalty(y - y'))``.
    """
    assert order in _PASS_ORDER, f"unknown pass order: {order}"
    assert workers >= 1, "workers must be at least 1"
    image = np.asarray(image, dtype=np.float64)
    assert image.ndim == 2, "image must be two-dimensional"
    assert image.size > 0, "image must not be empty"

    result = image
    for axis in _PASS_ORDER[order]:
        table = penalty_table(penalty, image.shape[axis])
        result = _convolve_axis(result, table, axis, workers)
    return result


def brute_force_max_convolution_1d(data: np.ndarray, penalty) -> np.ndarray:
    """Exhaustive O(N^2) 1-D maximum convolution, valid for any penalty."""
    data = np.asarray(data, dtype=np.float64)
    assert data.ndim == 1 and data.size > 0, "data must be a non-empty 1-D array"
    idx = np.arange(data.size)
    offsets = idx[:, np.newaxis] - idx[np.newaxis, :]   # [i, j] = i - j
    candidates = data[np.newaxis, :] + np.asarray(penalty(offsets), dtype=np.float64)
    return np.max(candidates, axis=1)


def pixel_coordinates(shape: tuple) -> np.ndarray:
    """(H, W, 2) array holding the ``(x, y)`` coordinate of every pixel."""
    ys, xs = np.mgrid[0:shape[0], 0:shape[1]]
    return np.stack([xs, ys], axis=-1)


def brute_force_max_at(image: np.ndarray, pair_penalty, x: int, y: int,
                       coords: np.ndarray = None) -> float:
    """Maximum of ``image[y', x'] + pair_penalty((x', y'), (x, y))`` over all pixels.

    Parameters
    ----------
    image : np.ndarray
        (H, W) array of real values.
    pair_penalty : callable
        ``pair_penalty(source_xy, target_xy)`` on coordinate arrays whose last
        axis holds ``(x, y)``; need not be separable.
    x, y : int
        Target pixel.
    coords : np.ndarray, optional
        Precomputed output of the pixel coordinate grid, reused across calls.
    """
    if coords is None:
        coords = pixel_coordinates(image.shape)
    weights = np.asarray(pair_penalty(coords, np.array([x, y])), dtype=np.float64)
    return float(np.max(image + weights))


def brute_force_max_convolution_2d(image: np.ndarray, pair_penalty) -> np.ndarray:
    """Exhaustive 2-D maximum convolution with a general pair penalty.

    Costs O((H W)^2) penalty evaluations; meant for exotic noise models and
    as a reference for the separable version.
    """
    image = np.asarray(image, dtype=np.float64)
    assert image.ndim == 2 and image.size > 0, "image must be a non-empty 2-D array"
    coords = pixel_coordinates(image.shape)
    out = np.empty_like(image)
    for y in range(image.shape[0]):
        for x in range(image.shape[1]):
            out[y, x] = brute_force_max_at(image, pair_penalty, x, y, coords)
    return out
