"""Grid size selection, boundary refinement and coordinate post-processing."""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import (
    FLAT_EPSILON,
    MAX_ASPECT_RATIO,
    MAX_PIXEL_SIZE,
    PLATEAU_TOLERANCE,
    Options,
)
from .gradient import estimate_grid_gradient, has_two_pixel_cells
from .spectral import estimate_grid_spectral

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _aspect(size_x: float, size_y: float) -> float:
    return max(size_x / size_y, size_y / size_x)


def _is_plausible(size_x: float, size_y: float, min_size: int) -> bool:
    """Reject implied pixel sizes too small, too large or too anisotropic."""
    return (
        min(size_x, size_y) >= min_size
        and max(size_x, size_y) <= MAX_PIXEL_SIZE
        and _aspect(size_x, size_y) <= MAX_ASPECT_RATIO
    )


def select_grid_size(
    gray: np.ndarray,
    column_energy: np.ndarray,
    row_energy: np.ndarray,
    options: Options,
) -> Optional[Tuple[int, int]]:
    """
    Combine the spectral and gradient estimates into integer grid counts.

    The spectral estimate is preferred; it is replaced by the gradient one
    when missing or implausible. Estimates whose X/Y pixel sizes agree within
    ``MAX_ASPECT_RATIO`` are collapsed to one uniform pixel size. Wider
    disagreements keep per-axis counts rather than taking the smaller pixel
    size, so anisotropic pixels resolve on both axes.

    With ``min_cell_size <= 2`` a 2px grid is checked first; neither
    estimator resolves edges that close together.

    Returns:
        ``(grid_x, grid_y)`` or None when no estimator finds a grid.
    """
    height, width = gray.shape
    if float(np.ptp(gray)) < FLAT_EPSILON:
        logger.debug("Flat grayscale field, nothing to detect")
        return None

    if options.min_cell_size <= 2 and has_two_pixel_cells(column_energy) \
            and has_two_pixel_cells(row_energy):
        grid = (max(1, round_half_up(width / 2.0)), max(1, round_half_up(height / 2.0)))
        logger.debug("Two-pixel cells detected, grid %dx%d", *grid)
        return grid

    estimate = estimate_grid_spectral(gray, options.peak_width)
    source = "spectral"
    if estimate is not None:
        size_x, size_y = width / estimate[0], height / estimate[1]
        if not _is_plausible(size_x, size_y, options.min_cell_size):
            logger.debug("Rejecting spectral estimate (pixel size %.2f x %.2f)", size_x, size_y)
            estimate = None

    if estimate is None:
        estimate = estimate_grid_gradient(
            column_energy, row_energy, min_spacing=options.min_cell_size
        )
        source = "gradient"
    if estimate is None:
        return None

    size_x, size_y = width / estimate[0], height / estimate[1]
    if _aspect(size_x, size_y) > MAX_ASPECT_RATIO:
        grid = (max(1, round_half_up(estimate[0])), max(1, round_half_up(estimate[1])))
        logger.debug("Anisotropic %s grid %dx%d kept per axis", source, *grid)
        return grid

    pixel_size = (size_x + size_y) / 2.0
    grid = (max(1, round_half_up(width / pixel_size)), max(1, round_half_up(height / pixel_size)))
    logger.debug("Selected %s grid %dx%d (pixel size %.2f)", source, grid[0], grid[1], pixel_size)
    return grid


def _snap_to_edge(origin: float, reach: float, energy: np.ndarray) -> int:
    """Strongest strict local maximum of ``energy`` within ``origin +- reach``.

    Falls back to the rounded origin when the window holds no strict maximum.
    Neighbours within ``PLATEAU_TOLERANCE`` of the max count as a plateau.
    """
    best = round_half_up(origin)
    peak = float(energy.max()) if energy.size else 0.0
    if energy.size < 3 or peak < FLAT_EPSILON:
        return best
    margin = peak * PLATEAU_TOLERANCE
    best_value = -math.inf
    steps = round_half_up(reach)
    for offset in range(-steps, steps + 1):
        candidate = round_half_up(origin + offset)
        if candidate <= 0 or candidate >= energy.size - 1:
            continue
        value = energy[candidate]
        if (
            value > energy[candidate - 1] + margin
            and value > energy[candidate + 1] + margin
            and value > best_value
        ):
            best_value = value
            best = candidate
    return best


def refine_boundaries(energy: np.ndarray, count: int, intensity: float = 0.25) -> List[int]:
    """
    Locate cell boundaries along one axis.

    Walks outward from the center in steps of one nominal cell, snapping each
    nominal boundary to the nearby edge-energy maximum.

    Args:
        energy: per-column (or per-row) Sobel energy
        count: nominal number of cells along the axis
        intensity: search window as a fraction of the nominal cell size

    Returns:
        Sorted, de-duplicated boundary positions.
    """
    length = energy.size
    cell = length / count
    reach = cell * intensity
    anchor = _snap_to_edge(length / 2.0, cell, energy)
    max_steps = count + 2

    boundaries = set()
    position: float = anchor
    for _ in range(max_steps):
        if position >= length + cell / 2.0:
            break
        position = _snap_to_edge(position, reach, energy)
        boundaries.add(position)
        position += cell

    position = anchor - cell
    for _ in range(max_steps):
        if position <= -cell / 2.0:
            break
        position = _snap_to_edge(position, reach, energy)
        boundaries.add(position)
        position -= cell

    if len(boundaries) < 2:
        # a single cell spans the whole axis
        return [round_half_up(i * cell) for i in range(count + 1)]
    return sorted(boundaries)


def equalize_boundaries(
    x_boundaries: Sequence[float], y_boundaries: Sequence[float]
) -> Tuple[List[float], List[float]]:
    """Trim the longer boundary list symmetrically so both have equal length."""
    target = min(len(x_boundaries), len(y_boundaries))

    def _trim(values: Sequence[float]) -> List[float]:
        excess = len(values) - target
        if excess <= 0:
            return list(values)
        start = excess // 2
        return list(values[start:start + target])

    return _trim(x_boundaries), _trim(y_boundaries)


def align_to_even(boundaries: Sequence[float]) -> List[float]:
    """Drop the last boundary when it leaves an odd number of cells."""
    cells = len(boundaries) - 1
    if cells <= 1 or cells % 2 == 0:
        return list(boundaries)
    return list(boundaries[:-1])
