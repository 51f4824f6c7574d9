"""Public interface for the Perfect Pixel grid recovery engine."""

from __future__ import annotations

from .config import Options, OptionsError, SampleMethod
from .engine import detect_and_resample, inspect_grid
from .imaging import image_to_rgb, result_to_image, upscale_nearest
from .result import GridCoordinates, GridNotFound, GridResult

__all__ = [
    "GridCoordinates",
    "GridNotFound",
    "GridResult",
    "Options",
    "OptionsError",
    "SampleMethod",
    "detect_and_resample",
    "image_to_rgb",
    "inspect_grid",
    "result_to_image",
    "upscale_nearest",
]
