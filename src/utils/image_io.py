"""
Image I/O helpers.

Thin wrappers around PIL and scikit-image for loading binary masks and
detection maps, plus synthetic inputs and output directory management for
the pipeline.
"""

import os
import numpy as np
from PIL import Image
from skimage.color import rgb2gray


def load_mask(path: str, threshold: float = 0.5) -> np.ndarray:
    """Load an image file as a binary foreground mask.

    Parameters
    ----------
    path : str
        Image file path (any format PIL reads).
    threshold : float
        Grayscale level in [0, 1] above which a pixel counts as foreground.

    Returns
    -------
    np.ndarray
        H x W boolean mask.
    """
    img = np.array(Image.open(path).convert("RGB"))
    return rgb2gray(img) > threshold


def load_detection_map(path: str, log_values: bool = False) -> np.ndarray:
    """Load a detection map as log-certainties.

    ``.npy`` files hold a 2-D float array, either certainties in [0, 1] or,
    with *log_values*, log-certainties.  Any other file is read as a
    grayscale image whose intensity is the certainty.

    Returns
    -------
    np.ndarray
        H x W float64 log-certainty map (``-inf`` where the certainty is 0).
    """
    if path.endswith(".npy"):
        values = np.load(path).astype(np.float64)
        if log_values:
            return values
        assert np.all((values >= 0.0) & (values <= 1.0)), \
            f"certainties in {path} must lie in [0, 1]; pass log_values=True for log maps"
    else:
        # grayscale conversion may overshoot 1 by rounding
        values = np.clip(rgb2gray(np.array(Image.open(path).convert("RGB"))), 0.0, 1.0)
    with np.errstate(divide="ignore"):
        return np.log(values)


def make_disc_mask(width: int, height: int, discs: list) -> np.ndarray:
    """Rasterise a union of discs into a boolean mask.

    Parameters
    ----------
    width, height : int
        Mask size in pixels.
    discs : list of (cx, cy, radius)
        Disc centres in pixel coordinates and radii in pixels.

    Returns
    -------
    np.ndarray
        H x W boolean mask, True inside any disc (boundary included).
    """
    ys, xs = np.mgrid[0:height, 0:width]
    mask = np.zeros((height, width), dtype=bool)
    for cx, cy, r in discs:
        mask |= (xs - cx) ** 2 + (ys - cy) ** 2 <= r ** 2
    return mask


def make_peak_detection(width: int, height: int, peaks: list) -> np.ndarray:
    """Build a log-certainty map that is 0 at the given pixels, -inf elsewhere.

    Parameters
    ----------
    peaks : list of (x, y)
        Pixels where the detector is certain.
    """
    log_map = np.full((height, width), -np.inf)
    for x, y in peaks:
        log_map[y, x] = 0.0
    return log_map


def ensure_output_dirs(scenes: list, base: str = "results") -> None:
    """Create output subdirectories for each scene name.

    Parameters
    ----------
    scenes : list of str
        Scene identifiers (one subdirectory is created per scene).
    base : str
        Root output directory.
    """
    for scene in scenes:
        os.makedirs(os.path.join(base, scene), exist_ok=True)
