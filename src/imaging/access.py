"""
Pixel access with boundary conditions.

Images are plain (height, width) numpy arrays indexed ``img[y, x]``.  The
helpers here read positions that may fall outside the declared bounds by
applying one of a fixed set of boundary policies, mirroring the border modes
of ``numpy.pad``.
"""

import numpy as np


# policy name -> numpy.pad mode (strict has no padding equivalent)
ACCESS_MODES = {
    "strict": None,
    "repeat": "edge",
    "mirror": "symmetric",
    "periodic": "wrap",
    "padded": "constant",
}


def image_from_function(width: int, height: int, fn) -> np.ndarray:
    """Build a float image by evaluating ``fn(x, y)`` at every pixel.

    Parameters
    ----------
    width, height : int
        Image size in pixels (both > 0).
    fn : callable
        Maps integer pixel coordinates ``(x, y)`` to a real value.

    Returns
    -------
    np.ndarray
        (height, width) float64 array with ``img[y, x] == fn(x, y)``.
    """
    assert width > 0 and height > 0, "image size must be positive"
    img = np.empty((height, width), dtype=np.float64)
    for y in range(height):
        for x in range(width):
            img[y, x] = fn(x, y)
    return img


def is_inside(img: np.ndarray, x: int, y: int) -> bool:
    """Return True when ``(x, y)`` lies in the image domain."""
    return 0 <= x < img.shape[1] and 0 <= y < img.shape[0]


def _wrap(i: int, m: int, mode: str) -> int:
    if mode == "repeat":
        return min(m - 1, max(0, i))
    if mode == "periodic":
        return i % m
    # mirror: reduce to the 2m tile, then reflect the upper half
    i = i % (2 * m)
    return i if i < m else 2 * m - i - 1


def access(img: np.ndarray, x: int, y: int, mode: str = "strict",
           fill_value: float = 0.0):
    """Read pixel ``(x, y)``, applying a boundary policy outside the domain.

    Parameters
    ----------
    img : np.ndarray
        2-D image, indexed ``img[y, x]``.
    x, y : int
        Integer pixel coordinates, possibly outside the image.
    mode : str
        One of ``ACCESS_MODES``: ``"strict"`` raises, ``"repeat"`` clamps to
        the border, ``"mirror"`` reflects, ``"periodic"`` wraps around and
        ``"padded"`` returns *fill_value*.
    fill_value : float
        Value returned outside the domain in ``"padded"`` mode.

    Returns
    -------
    scalar
        The pixel value.

    Raises
    ------
    IndexError
        In ``"strict"`` mode for a coordinate outside the image.
    """
    assert mode in ACCESS_MODES, f"unknown access mode: {mode}"
    if is_inside(img, x, y):
        return img[y, x]
    if mode == "strict":
        raise IndexError(f"image access outside domain: ({x}, {y}), "
                         f"size=({img.shape[1]}, {img.shape[0]})")
    if mode == "padded":
        return fill_value
    h, w = img.shape[:2]
    return img[_wrap(y, h, mode), _wrap(x, w, mode)]


def pad_image(img: np.ndarray, pad: int, mode: str = "repeat",
              fill_value: float = 0.0) -> np.ndarray:
    """Extend *img* by *pad* pixels on every side under a boundary policy.

    ``pad_image(img, p, mode)[y + p, x + p] == access(img, x, y, mode)`` for
    every ``x, y`` in ``[-p, size + p)``.
    """
    assert mode in ACCESS_MODES, f"unknown access mode: {mode}"
    assert mode != "strict", "strict access cannot be padded"
    assert pad >= 0, "pad must be non-negative"
    width = ((pad, pad), (pad, pad)) + ((0, 0),) * (img.ndim - 2)
    if mode == "padded":
        return np.pad(img, width, mode="constant", constant_values=fill_value)
    return np.pad(img, width, mode=ACCESS_MODES[mode])
