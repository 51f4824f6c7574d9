"""Grayscale fields and 1-D projections shared by both grid estimators."""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np
from scipy.ndimage import convolve1d

from .config import NORMALIZE_EPSILON, SMOOTH_KERNEL_SIZE

# ITU-R BT.601 luma weights
_LUMA = (0.299, 0.587, 0.114)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Luma-weighted grayscale of an ``(H, W, 3)`` RGB array, as float32."""
    rgb = image.astype(np.float32, copy=False)
    return (rgb[..., 0] * _LUMA[0] + rgb[..., 1] * _LUMA[1] + rgb[..., 2] * _LUMA[2]).astype(
        np.float32, copy=False
    )


def normalize_minmax(values: np.ndarray, low: float = 0.0, high: float = 1.0) -> np.ndarray:
    """Map ``values`` linearly onto ``[low, high]``.

    Near-constant input (range below ``NORMALIZE_EPSILON``) maps to ``low``
    everywhere instead of dividing by zero.
    """
    values = np.asarray(values)
    if values.size == 0:
        return values.astype(np.float32)
    v_min = float(values.min())
    v_max = float(values.max())
    span = v_max - v_min
    if span < NORMALIZE_EPSILON:
        return np.full(values.shape, low, dtype=values.dtype)
    return (low + (values - v_min) * ((high - low) / span)).astype(values.dtype, copy=False)


def gaussian_kernel(size: int) -> np.ndarray:
    """Normalized 1-D Gaussian with ``sigma = size / 6``."""
    half = size // 2
    sigma = size / 6.0
    x = np.arange(-half, half + 1, dtype=np.float64)
    kernel = np.exp(-(x * x) / (2.0 * sigma * sigma))
    return kernel / (kernel.sum() + NORMALIZE_EPSILON)


def smooth_projection(values: np.ndarray, size: int = SMOOTH_KERNEL_SIZE) -> np.ndarray:
    """Gaussian-smooth a projection, clamping at the edges."""
    size = int(round(size))
    if size < 3:
        return values
    if size % 2 == 0:
        size += 1
    kernel = gaussian_kernel(size).astype(values.dtype, copy=False)
    return convolve1d(values, kernel, mode="nearest")


def sobel_projections(gray: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Per-column and per-row absolute Sobel energy of a grayscale field.

    Returns ``(column_energy, row_energy)``: ``|d/dx|`` summed down each
    column (length W) and ``|d/dy|`` summed along each row (length H).
    Sums are accumulated in float64.
    """
    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3, borderType=cv2.BORDER_REFLECT_101)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3, borderType=cv2.BORDER_REFLECT_101)
    column_energy = np.abs(gx).sum(axis=0, dtype=np.float64)
    row_energy = np.abs(gy).sum(axis=1, dtype=np.float64)
    return column_energy, row_energy
