"""Result types returned by the engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class GridCoordinates:
    """Resolved grid: integer cell counts plus refined cell boundaries."""

    scale_x: int                      # grid count the refiner was seeded with
    scale_y: int
    x_boundaries: Tuple[float, ...]   # strictly increasing, len >= 2
    y_boundaries: Tuple[float, ...]

    def __post_init__(self):
        for name in ("x_boundaries", "y_boundaries"):
            values = tuple(float(v) for v in getattr(self, name))
            if len(values) < 2:
                raise ValueError(f"{name} needs at least two boundaries, got {len(values)}")
            if any(b <= a for a, b in zip(values, values[1:])):
                raise ValueError(f"{name} must be strictly increasing")
            object.__setattr__(self, name, values)

    @property
    def width(self) -> int:
        """Number of output cells along X."""
        return len(self.x_boundaries) - 1

    @property
    def height(self) -> int:
        return len(self.y_boundaries) - 1

    def to_dict(self) -> dict:
        return {
            "scale_x": int(self.scale_x),
            "scale_y": int(self.scale_y),
            "x_boundaries": list(self.x_boundaries),
            "y_boundaries": list(self.y_boundaries),
        }


@dataclass(frozen=True)
class GridResult:
    """Resampled image at native resolution (one pixel per grid cell)."""

    width: int
    height: int
    pixels: bytes   # row-major RGB, width * height * 3

    def __post_init__(self):
        expected = self.width * self.height * 3
        if len(self.pixels) != expected:
            raise ValueError(
                f"pixel buffer holds {len(self.pixels)} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGB"
            )

    @classmethod
    def from_array(cls, rgb: np.ndarray) -> "GridResult":
        height, width = rgb.shape[:2]
        return cls(width=int(width), height=int(height),
                   pixels=np.ascontiguousarray(rgb, dtype=np.uint8).tobytes())

    def to_array(self) -> np.ndarray:
        """Return a read-only ``(height, width, 3)`` uint8 view of the pixels."""
        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(self.height, self.width, 3)


@dataclass(frozen=True)
class GridNotFound:
    """No usable grid could be established for the input.

    This is an expected outcome on images that are not pixel art, so it is
    returned rather than raised. It evaluates as false.
    """

    reason: str = "grid not found"

    def __bool__(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return f"{self.reason}; try entering the grid size manually"
