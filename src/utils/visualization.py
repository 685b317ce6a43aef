"""
Visualization utilities for distance transforms and detection maps.

All functions save figures to disk rather than displaying them interactively,
making the module suitable for headless execution.
"""

import os
import numpy as np
import matplotlib
matplotlib.use("Agg")          # non-interactive backend
import matplotlib.pyplot as plt


def _finite(values: np.ndarray) -> np.ndarray:
    """Replace infinities by the finite extremes so colour maps stay usable."""
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return np.zeros_like(values)
    return np.clip(values, finite.min(), finite.max())


# ---------------------------------------------------------------------------
# Distance transforms
# ---------------------------------------------------------------------------

def save_distance_fields(mask: np.ndarray, distance: np.ndarray,
                         signed: np.ndarray, scene: str, out_dir: str,
                         cmap: str = "viridis") -> str:
    """Save the mask next to its unsigned and signed distance transforms."""
    fig, axes = plt.subplots(1, 3, figsize=(18, 6))

    axes[0].imshow(mask, cmap="gray"); axes[0].set_title(f"{scene} – mask ({int(mask.sum())} px)"); axes[0].axis("off")

    im = axes[1].imshow(_finite(distance), cmap=cmap)
    axes[1].set_title(f"Distance (max {np.max(distance):.1f} px)"); axes[1].axis("off")
    fig.colorbar(im, ax=axes[1], fraction=0.046)

    limit = np.max(np.abs(_finite(signed))) or 1.0
    im = axes[2].imshow(_finite(signed), cmap="RdBu_r", vmin=-limit, vmax=limit)
    if min(signed.shape) >= 2 and np.min(signed) < 0.0 < np.max(signed):
        axes[2].contour(_finite(signed), levels=[0.0], colors="k", linewidths=1)
    axes[2].set_title("Signed distance (inside < 0)"); axes[2].axis("off")
    fig.colorbar(im, ax=axes[2], fraction=0.046)

    plt.tight_layout()
    path = os.path.join(out_dir, scene, "distance_transform.jpg")
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()
    return path


def save_profile(signed: np.ndarray, row: int, scene: str, out_dir: str) -> str:
    """Plot the signed distance along one image row."""
    plt.figure(figsize=(10, 4))
    plt.plot(signed[row], "b.-")
    plt.axhline(0.0, color="red", linestyle="--", linewidth=1)
    plt.xlabel("x (px)")
    plt.ylabel("signed distance (px)")
    plt.title(f"{scene} – signed distance along row {row}")
    plt.grid(True, alpha=0.3)
    path = os.path.join(out_dir, scene, "signed_profile.jpg")
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()
    return path


# ---------------------------------------------------------------------------
# Landmark detection maps
# ---------------------------------------------------------------------------

def save_detection_maps(raw: np.ndarray, convolved: np.ndarray, tag: str,
                        scene: str, out_dir: str, stddev: float,
                        cmap: str = "viridis") -> str:
    """Save a detection map before and after the noise-model max-convolution."""
    fig, axes = plt.subplots(1, 2, figsize=(14, 6))

    im = axes[0].imshow(_finite(raw), cmap=cmap)
    axes[0].set_title(f"{tag} – detection log-certainty"); axes[0].axis("off")
    fig.colorbar(im, ax=axes[0], fraction=0.046)

    im = axes[1].imshow(_finite(convolved), cmap=cmap)
    y, x = np.unravel_index(np.argmax(convolved), convolved.shape)
    axes[1].plot(x, y, "r+", markersize=12, markeredgewidth=2)
    axes[1].set_title(f"With Gaussian noise model (sdev={stddev} px)"); axes[1].axis("off")
    fig.colorbar(im, ax=axes[1], fraction=0.046)

    plt.tight_layout()
    path = os.path.join(out_dir, scene, "detection_map.jpg")
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()
    return path
