"""Cell samplers: collapse each grid cell of the source to one output pixel."""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from .config import MAJORITY_ITERATIONS, MAJORITY_MAX_SAMPLES, SampleMethod
from .grid import round_half_up


def _cell_span(boundaries: Sequence[float], idx: int, limit: int) -> Tuple[int, int]:
    """Pixel span ``[start, stop)`` of cell ``idx``; zero-width spans widen to one pixel."""
    start = min(limit, max(0, round_half_up(boundaries[idx])))
    stop = min(limit, max(0, round_half_up(boundaries[idx + 1])))
    if stop <= start:
        stop = min(start + 1, limit)
    return start, stop


def sample_center(
    image: np.ndarray, x_boundaries: Sequence[float], y_boundaries: Sequence[float]
) -> np.ndarray:
    """Take the source pixel at each cell's midpoint."""
    height, width = image.shape[:2]
    xb = np.asarray(x_boundaries, dtype=np.float64)
    yb = np.asarray(y_boundaries, dtype=np.float64)
    # astype truncates toward zero
    xs = np.clip(((xb[:-1] + xb[1:]) * 0.5).astype(np.int64), 0, width - 1)
    ys = np.clip(((yb[:-1] + yb[1:]) * 0.5).astype(np.int64), 0, height - 1)
    return image[ys[:, None], xs[None, :], :3].astype(np.uint8)


def sample_median(
    image: np.ndarray, x_boundaries: Sequence[float], y_boundaries: Sequence[float]
) -> np.ndarray:
    """Per-channel median of every cell; empty cells come out black."""
    height, width = image.shape[:2]
    cols = len(x_boundaries) - 1
    rows = len(y_boundaries) - 1
    out = np.zeros((rows, cols, 3), dtype=np.uint8)
    for j in range(rows):
        y0, y1 = _cell_span(y_boundaries, j, height)
        for i in range(cols):
            x0, x1 = _cell_span(x_boundaries, i, width)
            cell = image[y0:y1, x0:x1, :3]
            if cell.size == 0:
                continue
            median = np.median(cell.reshape(-1, 3), axis=0)
            out[j, i] = np.floor(median + 0.5).astype(np.uint8)
    return out


def _two_means(samples: np.ndarray, iterations: int) -> np.ndarray:
    """Centroid of the larger of two RGB clusters."""
    c0 = samples[0].copy()
    c1 = samples[int(np.argmax(np.sum((samples - c0) ** 2, axis=1)))].copy()
    count0 = count1 = 0
    for _ in range(iterations):
        d0 = np.sum((samples - c0) ** 2, axis=1)
        d1 = np.sum((samples - c1) ** 2, axis=1)
        closer_to_c1 = d1 < d0
        count1 = int(np.count_nonzero(closer_to_c1))
        count0 = samples.shape[0] - count1
        if count0:
            c0 = samples[~closer_to_c1].mean(axis=0)
        if count1:
            c1 = samples[closer_to_c1].mean(axis=0)
    return c1 if count1 >= count0 else c0


def sample_majority(
    image: np.ndarray,
    x_boundaries: Sequence[float],
    y_boundaries: Sequence[float],
    seed: int = 0,
    max_samples: int = MAJORITY_MAX_SAMPLES,
    iterations: int = MAJORITY_ITERATIONS,
) -> np.ndarray:
    """
    Dominant colour of every cell by 2-means voting.

    Cells larger than ``max_samples`` pixels are subsampled with a generator
    seeded from ``seed``, so results are reproducible.
    """
    height, width = image.shape[:2]
    cols = len(x_boundaries) - 1
    rows = len(y_boundaries) - 1
    out = np.zeros((rows, cols, 3), dtype=np.uint8)
    rng = np.random.default_rng(seed)

    for j in range(rows):
        y0, y1 = _cell_span(y_boundaries, j, height)
        for i in range(cols):
            x0, x1 = _cell_span(x_boundaries, i, width)
            n = (x1 - x0) * (y1 - y0)
            if n <= 0:
                continue
            if n > max_samples:
                sy = rng.integers(y0, y1, size=max_samples)
                sx = rng.integers(x0, x1, size=max_samples)
                samples = image[sy, sx, :3].astype(np.float64)
            else:
                samples = image[y0:y1, x0:x1, :3].reshape(-1, 3).astype(np.float64)
            winner = _two_means(samples, iterations)
            out[j, i] = np.clip(np.floor(winner + 0.5), 0, 255).astype(np.uint8)
    return out


def fix_square(pixels: np.ndarray) -> np.ndarray:
    """Trim the last row or column when width and height differ by exactly one."""
    rows, cols = pixels.shape[:2]
    if cols - rows == 1:
        return pixels[:, :-1]
    if rows - cols == 1:
        return pixels[:-1, :]
    return pixels


def sample_cells(
    image: np.ndarray,
    x_boundaries: Sequence[float],
    y_boundaries: Sequence[float],
    method: SampleMethod = SampleMethod.CENTER,
    seed: int = 0,
) -> np.ndarray:
    """Dispatch to the sampler for ``method``."""
    method = SampleMethod(method)
    if method is SampleMethod.MAJORITY:
        return sample_majority(image, x_boundaries, y_boundaries, seed=seed)
    if method is SampleMethod.MEDIAN:
        return sample_median(image, x_boundaries, y_boundaries)
    return sample_center(image, x_boundaries, y_boundaries)
