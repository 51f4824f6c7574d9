"""Pillow/numpy helpers for callers that hold decoded images."""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np
from PIL import Image

from .result import GridResult


def image_to_rgb(image: Image.Image) -> Tuple[bytes, int, int]:
    """Return ``(rgb_bytes, width, height)`` for any Pillow image; alpha is dropped."""
    if image.mode != "RGB":
        image = image.convert("RGB")
    return image.tobytes(), image.width, image.height


def upscale_nearest(result: GridResult, scale: int = 1) -> np.ndarray:
    """Nearest-neighbour enlargement of a result, for previews."""
    if scale < 1:
        raise ValueError(f"scale must be >= 1, got {scale}")
    pixels = result.to_array().copy()
    if scale == 1 or pixels.size == 0:
        return pixels
    return cv2.resize(
        pixels,
        (result.width * scale, result.height * scale),
        interpolation=cv2.INTER_NEAREST,
    )


def result_to_image(result: GridResult, scale: int = 1) -> Image.Image:
    return Image.fromarray(np.ascontiguousarray(upscale_nearest(result, scale)))
