"""Frequency-domain grid estimation.

Nearest-neighbour upscaling convolves the logical image with a box of one
cell, whose spectrum vanishes at every multiple of ``N / cell`` bins. After
``1 - log1p(|F|)`` those zeros become the brightest rows and columns of the
spectrum, so the first bright lobe either side of the center gives the number
of cells along that axis.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

from .config import (
    FLAT_EPSILON,
    PEAK_MIN_DISTANCE,
    PEAK_REL_THRESHOLD,
    SMOOTH_KERNEL_SIZE,
)
from .projections import normalize_minmax, smooth_projection

logger = logging.getLogger(__name__)


def _next_pow2(value: int) -> int:
    size = 1
    while size < value:
        size <<= 1
    return size


def fft_magnitude(gray: np.ndarray) -> np.ndarray:
    """Center-shifted ``1 - log1p(|FFT|)`` spectrum, normalized to [0, 1].

    The field is zero-padded to the next power of two on each axis.
    """
    height, width = gray.shape
    padded = (_next_pow2(height), _next_pow2(width))
    spectrum = np.fft.fft2(gray, s=padded)
    inverted = 1.0 - np.log1p(np.abs(spectrum))
    shifted = np.fft.fftshift(inverted).astype(np.float32)
    return normalize_minmax(shifted)


def _falls_away(proj: np.ndarray, idx: int, peak_width: int) -> bool:
    size = proj.size
    for step in range(1, peak_width):
        if idx - step < 0 or idx + step >= size:
            continue
        if proj[idx - step + 1] < proj[idx - step] or proj[idx + step - 1] < proj[idx + step]:
            return False
    return True


def _prominence(proj: np.ndarray, idx: int) -> float:
    """Larger of the climb from the left minimum and the fall to the right one."""
    left_climb = 0.0
    k = idx
    while k > 0 and proj[k] > proj[k - 1]:
        left_climb = abs(proj[idx] - proj[k - 1])
        k -= 1
    right_fall = 0.0
    k = idx
    while k < proj.size - 1 and proj[k] > proj[k + 1]:
        right_fall = abs(proj[idx] - proj[k + 1])
        k += 1
    return float(max(left_climb, right_fall))


def detect_peak_pair(
    projection: np.ndarray,
    peak_width: int = 6,
    rel_threshold: float = PEAK_REL_THRESHOLD,
    min_distance: int = PEAK_MIN_DISTANCE,
) -> Optional[float]:
    """
    Find the strongest peak either side of a projection's center.

    Args:
        projection: 1-D smoothed projection, center index ``len // 2``
        peak_width: samples on each side over which a peak must not rise again
        rel_threshold: minimum peak height as a fraction of the global max
        min_distance: exclusion radius around the center (the DC lobe)

    Returns:
        Half the distance between the chosen left and right peaks, or None
        when either side has no candidate.
    """
    proj = np.asarray(projection, dtype=np.float64)
    size = proj.size
    if size < 3:
        return None
    center = size // 2
    peak_max = float(proj.max())
    if peak_max < FLAT_EPSILON:
        return None
    threshold = peak_max * rel_threshold

    left: Optional[Tuple[int, float]] = None
    right: Optional[Tuple[int, float]] = None
    for idx in range(1, size - 1):
        value = proj[idx]
        if value < threshold or not (value > proj[idx - 1] and value > proj[idx + 1]):
            continue
        if not _falls_away(proj, idx, peak_width):
            continue
        score = _prominence(proj, idx)
        if center * 0.25 < idx < center - min_distance:
            if left is None or score > left[1]:
                left = (idx, score)
        elif center + min_distance < idx < center * 1.75:
            if right is None or score > right[1]:
                right = (idx, score)

    if left is None or right is None:
        return None
    return abs(right[0] - left[0]) / 2.0


def estimate_grid_spectral(gray: np.ndarray, peak_width: int = 6) -> Optional[Tuple[float, float]]:
    """
    Estimate the grid from the magnitude spectrum.

    Returns:
        ``(grid_x, grid_y)`` cell counts over the image, or None.
    """
    height, width = gray.shape
    spectrum = fft_magnitude(gray)
    spec_h, spec_w = spectrum.shape

    row_sum = spectrum.sum(axis=1)
    center = spec_h // 2
    band = spec_h // 2
    col_sum = spectrum[max(0, center - band):min(spec_h, center + band)].sum(axis=0)

    row_proj = smooth_projection(normalize_minmax(row_sum), SMOOTH_KERNEL_SIZE)
    col_proj = smooth_projection(normalize_minmax(col_sum), SMOOTH_KERNEL_SIZE)

    bins_y = detect_peak_pair(row_proj, peak_width)
    bins_x = detect_peak_pair(col_proj, peak_width)
    logger.debug("Spectral peak spacing: x=%s y=%s bins (spectrum %dx%d)",
                 bins_x, bins_y, spec_w, spec_h)
    if bins_x is None or bins_y is None or bins_x <= 0 or bins_y <= 0:
        return None

    # bins count cycles over the padded length; rescale to the real extent
    return bins_x * width / spec_w, bins_y * height / spec_h
