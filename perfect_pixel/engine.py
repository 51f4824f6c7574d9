"""
Pixel-grid recovery and resampling.

Pipeline: grayscale -> {spectral estimate, gradient fallback} -> grid size
selection -> boundary refinement -> coordinate post-processing -> cell
sampling -> optional square fix.

Both public entry points resolve the grid through ``_resolve_grid`` so the
diagnostic coordinates always match what the sampler consumed.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

import numpy as np

from .config import Options
from .grid import align_to_even, equalize_boundaries, refine_boundaries, select_grid_size
from .projections import sobel_projections, to_grayscale
from .result import GridCoordinates, GridNotFound, GridResult
from .sampling import fix_square, sample_cells

logger = logging.getLogger(__name__)

PixelInput = Union[bytes, bytearray, memoryview, np.ndarray]


def _as_image(pixels: PixelInput, width: int, height: int) -> np.ndarray:
    """View caller pixels as a read-only ``(height, width, 3)`` uint8 array."""
    if width < 0 or height < 0:
        raise ValueError(f"Image dimensions must be non-negative, got {width}x{height}")
    if isinstance(pixels, np.ndarray):
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.shape not in ((height, width, 3), (height * width * 3,)):
            raise ValueError(
                f"Pixel array shape {pixels.shape} does not match {width}x{height} RGB"
            )
        image = pixels.reshape(height, width, 3).view()
        image.flags.writeable = False
        return image

    buffer = np.frombuffer(memoryview(pixels), dtype=np.uint8)
    expected = width * height * 3
    if buffer.size != expected:
        raise ValueError(
            f"Pixel buffer holds {buffer.size} bytes, expected {expected} for {width}x{height} RGB"
        )
    image = buffer.reshape(height, width, 3)
    image.flags.writeable = False
    return image


def _resolve_grid(image: np.ndarray, options: Options) -> Union[GridCoordinates, GridNotFound]:
    height, width = image.shape[:2]
    if width == 0 or height == 0:
        logger.warning("Empty %dx%d image, no grid to detect", width, height)
        return GridNotFound(f"image has no area ({width}x{height})")

    gray = to_grayscale(image)
    column_energy, row_energy = sobel_projections(gray)

    if options.manual_grid_size is not None:
        grid_x, grid_y = options.manual_grid_size
        logger.debug("Using manual grid %dx%d", grid_x, grid_y)
    else:
        grid = select_grid_size(gray, column_energy, row_energy, options)
        if grid is None:
            logger.warning("Grid not found for %dx%d image", width, height)
            return GridNotFound("could not detect a pixel grid")
        grid_x, grid_y = grid

    x_boundaries = refine_boundaries(column_energy, grid_x, options.refine_intensity)
    y_boundaries = refine_boundaries(row_energy, grid_y, options.refine_intensity)

    if width == height:
        x_boundaries, y_boundaries = equalize_boundaries(x_boundaries, y_boundaries)
    x_boundaries = align_to_even(x_boundaries)
    y_boundaries = align_to_even(y_boundaries)

    if len(x_boundaries) < 2 or len(y_boundaries) < 2:
        logger.warning("Refined grid collapsed (%d x %d boundaries)",
                       len(x_boundaries), len(y_boundaries))
        return GridNotFound("grid collapsed during refinement")

    return GridCoordinates(
        scale_x=int(grid_x),
        scale_y=int(grid_y),
        x_boundaries=tuple(x_boundaries),
        y_boundaries=tuple(y_boundaries),
    )


def inspect_grid(
    pixels: PixelInput,
    width: int,
    height: int,
    options: Optional[Options] = None,
) -> Union[GridCoordinates, GridNotFound]:
    """
    Resolve the grid without sampling, for previews and debugging.

    Args:
        pixels: row-major RGB buffer (``width * height * 3`` bytes) or a
            ``(height, width, 3)`` uint8 array
        width: image width in pixels
        height: image height in pixels
        options: engine options; defaults when omitted

    Returns:
        The boundaries ``detect_and_resample`` would sample, or GridNotFound.
    """
    options = options or Options()
    return _resolve_grid(_as_image(pixels, width, height), options)


def detect_and_resample(
    pixels: PixelInput,
    width: int,
    height: int,
    options: Optional[Options] = None,
) -> Union[GridResult, GridNotFound]:
    """
    Recover the logical pixel grid and resample the image onto it.

    Args:
        pixels: row-major RGB buffer (``width * height * 3`` bytes) or a
            ``(height, width, 3)`` uint8 array; never modified
        width: image width in pixels
        height: image height in pixels
        options: engine options; defaults when omitted

    Returns:
        GridResult with one output pixel per detected cell, or GridNotFound
        when no grid could be established (suggest a manual grid size).

    Raises:
        ValueError: when the buffer does not match the given dimensions.
    """
    options = options or Options()
    image = _as_image(pixels, width, height)
    coords = _resolve_grid(image, options)
    if not coords:
        return coords

    out = sample_cells(
        image, coords.x_boundaries, coords.y_boundaries,
        method=options.sample_method, seed=options.seed,
    )
    if options.fix_square and abs(out.shape[1] - out.shape[0]) == 1:
        out = fix_square(out)

    result = GridResult.from_array(out)
    logger.info("Resampled %dx%d image to %dx%d (%s sampling)",
                width, height, result.width, result.height, options.sample_method.value)
    return result
