"""Edge-spacing grid estimation, the fallback when the spectrum is unusable."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np
from scipy.signal import find_peaks

from .config import (
    GRADIENT_REL_THRESHOLD,
    MIN_GRADIENT_PEAKS,
    TWO_PIXEL_MIN_FRACTION,
    PLATEAU_TOLERANCE,
)

logger = logging.getLogger(__name__)


def _edge_peaks(energy: np.ndarray, rel_threshold: float, min_spacing: int) -> np.ndarray:
    peak_max = float(energy.max()) if energy.size else 0.0
    if peak_max <= 0.0:
        return np.array([], dtype=np.intp)
    # find_peaks reports a flat top by its middle sample; a hard edge leaves
    # a two-sample Sobel plateau.
    peaks, _ = find_peaks(energy, height=peak_max * rel_threshold, distance=max(1, min_spacing))
    return peaks


def _median_spacing(peaks: np.ndarray) -> Optional[float]:
    spacing = np.diff(peaks)
    if spacing.size == 0:
        return None
    median = float(np.median(spacing))
    return median if median > 0.0 else None


def estimate_grid_gradient(
    column_energy: np.ndarray,
    row_energy: np.ndarray,
    min_spacing: int = 4,
    rel_threshold: float = GRADIENT_REL_THRESHOLD,
) -> Optional[Tuple[float, float]]:
    """
    Estimate the grid from the spacing of Sobel edge peaks.

    Args:
        column_energy: per-column ``|d/dx|`` sums (length W)
        row_energy: per-row ``|d/dy|`` sums (length H)
        min_spacing: minimum distance between accepted edge peaks
        rel_threshold: minimum peak height as a fraction of the max

    Returns:
        ``(grid_x, grid_y)`` as ``dimension / median peak spacing``, or None
        when either axis has fewer than ``MIN_GRADIENT_PEAKS`` peaks.
    """
    peaks_x = _edge_peaks(column_energy, rel_threshold, min_spacing)
    peaks_y = _edge_peaks(row_energy, rel_threshold, min_spacing)
    logger.debug("Gradient edge peaks: %d columns, %d rows", len(peaks_x), len(peaks_y))
    if len(peaks_x) < MIN_GRADIENT_PEAKS or len(peaks_y) < MIN_GRADIENT_PEAKS:
        return None

    spacing_x = _median_spacing(peaks_x)
    spacing_y = _median_spacing(peaks_y)
    if spacing_x is None or spacing_y is None:
        return None
    logger.debug("Gradient median spacing: x=%.2f y=%.2f", spacing_x, spacing_y)
    return column_energy.size / spacing_x, row_energy.size / spacing_y


def _pairs_match(values: np.ndarray, tolerance: float) -> float:
    """Fraction of consecutive ``(2i, 2i + 1)`` samples that are equal."""
    usable = values.size - values.size % 2
    if usable < 4:
        return 0.0
    pairs = values[:usable].reshape(-1, 2)
    return float(np.mean(np.abs(pairs[:, 0] - pairs[:, 1]) <= tolerance))


def has_two_pixel_cells(energy: np.ndarray) -> bool:
    """
    Recognise the Sobel signature of cells two samples wide.

    Every interior sample then carries edge energy and the samples pair up
    into equal-valued plateaus, one pair per boundary. Exactly one pairing
    phase may match; a constant ramp matches both and is rejected.
    """
    interior = np.asarray(energy, dtype=np.float64)[1:-1]
    if interior.size < 4:
        return False
    peak = float(interior.max())
    if peak <= 0.0:
        return False
    tolerance = peak * PLATEAU_TOLERANCE
    if np.mean(interior > tolerance) < TWO_PIXEL_MIN_FRACTION:
        return False
    phases = [_pairs_match(interior[offset:], tolerance) >= TWO_PIXEL_MIN_FRACTION
              for offset in (0, 1)]
    return phases[0] != phases[1]
