"""Engine configuration: sampling strategies, options and tuning constants."""

from __future__ import annotations

import numbers
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


# ---------------------------------------------------------------------------
# Detection constants
# ---------------------------------------------------------------------------
# Implied pixel sizes above this are treated as a misread spectrum.
MAX_PIXEL_SIZE = 20
# Largest X/Y pixel-size ratio still considered a single uniform grid.
MAX_ASPECT_RATIO = 1.5

# Gaussian taps used to smooth spectral projections (sigma = size / 6).
SMOOTH_KERNEL_SIZE = 17
PEAK_REL_THRESHOLD = 0.35
# Peaks closer than this to the spectrum center are the DC lobe.
PEAK_MIN_DISTANCE = 6

GRADIENT_REL_THRESHOLD = 0.2
MIN_GRADIENT_PEAKS = 4
# 2px cells leave back-to-back Sobel plateaus with no gaps between edges.
TWO_PIXEL_MIN_FRACTION = 0.9
# Energy samples closer than this fraction of the max count as equal.
PLATEAU_TOLERANCE = 1e-6

MAJORITY_MAX_SAMPLES = 128
MAJORITY_ITERATIONS = 6

FLAT_EPSILON = 1e-6
NORMALIZE_EPSILON = 1e-8


class SampleMethod(str, Enum):
    CENTER = "center"
    MEDIAN = "median"
    MAJORITY = "majority"


class OptionsError(ValueError):
    """Raised when engine options fail validation."""


# camelCase keys sent by the desktop front end
_PAYLOAD_ALIASES = {
    "sampleMethod": "sample_method",
    "gridSize": "manual_grid_size",
    "minSize": "min_cell_size",
    "peakWidth": "peak_width",
    "refineIntensity": "refine_intensity",
    "fixSquare": "fix_square",
}


def _is_int(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


@dataclass(frozen=True)
class Options:
    """Validated options for a single detection/resampling call."""

    sample_method: SampleMethod = SampleMethod.CENTER
    manual_grid_size: Optional[Tuple[int, int]] = None  # (grid_w, grid_h), skips detection
    # Smallest admissible cell, in source px. Also the minimum distance between
    # gradient edge peaks; 2 or less enables detection of 2px cells.
    min_cell_size: int = 4
    peak_width: int = 6                                 # spectral peak monotonic window
    refine_intensity: float = 0.25                      # boundary search window, fraction of a cell
    fix_square: bool = True
    seed: int = 0                                       # majority sampler seed

    def __post_init__(self):
        try:
            method = SampleMethod(self.sample_method)
        except ValueError:
            valid = ", ".join(m.value for m in SampleMethod)
            raise OptionsError(
                f"Unknown sample method {self.sample_method!r} (expected one of: {valid})"
            ) from None
        object.__setattr__(self, "sample_method", method)

        if self.manual_grid_size is not None:
            grid = tuple(self.manual_grid_size)
            if len(grid) != 2 or not all(_is_int(v) for v in grid):
                raise OptionsError(
                    f"manual_grid_size must be two integers, got {self.manual_grid_size!r}"
                )
            if grid[0] <= 0 or grid[1] <= 0:
                raise OptionsError(f"manual_grid_size must be positive, got {grid}")
            object.__setattr__(self, "manual_grid_size", (int(grid[0]), int(grid[1])))

        if not _is_int(self.min_cell_size) or self.min_cell_size < 1:
            raise OptionsError(f"min_cell_size must be an integer >= 1, got {self.min_cell_size!r}")
        if not _is_int(self.peak_width) or self.peak_width < 1:
            raise OptionsError(f"peak_width must be an integer >= 1, got {self.peak_width!r}")
        if (
            not isinstance(self.refine_intensity, numbers.Real)
            or isinstance(self.refine_intensity, bool)
            or not 0.0 <= float(self.refine_intensity) <= 1.0
        ):
            raise OptionsError(
                f"refine_intensity must be within [0, 1], got {self.refine_intensity!r}"
            )
        object.__setattr__(self, "refine_intensity", float(self.refine_intensity))
        if not isinstance(self.fix_square, bool):
            raise OptionsError(f"fix_square must be a bool, got {self.fix_square!r}")
        if not _is_int(self.seed) or self.seed < 0:
            raise OptionsError(f"seed must be a non-negative integer, got {self.seed!r}")

    def to_dict(self) -> dict:
        return {
            "sample_method": self.sample_method.value,
            "manual_grid_size": list(self.manual_grid_size) if self.manual_grid_size else None,
            "min_cell_size": int(self.min_cell_size),
            "peak_width": int(self.peak_width),
            "refine_intensity": float(self.refine_intensity),
            "fix_square": bool(self.fix_square),
            "seed": int(self.seed),
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Options":
        """Build options from a front-end payload (camelCase or snake_case keys)."""
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in d.items():
            name = _PAYLOAD_ALIASES.get(key, key)
            if name not in known:
                raise OptionsError(f"Unknown option {key!r}")
            if name in kwargs:
                raise OptionsError(f"Option {name!r} given more than once")
            kwargs[name] = value
        return cls(**kwargs)
