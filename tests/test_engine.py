"""End-to-end tests for grid recovery and resampling.

Synthetic pixel art is generated at 1x and nearest-neighbour upscaled, so the
expected output is known exactly.
"""

from __future__ import annotations

import cv2
import numpy as np
import pytest

import perfect_pixel.grid as grid_module
from perfect_pixel import (
    GridCoordinates,
    GridNotFound,
    GridResult,
    Options,
    OptionsError,
    SampleMethod,
    detect_and_resample,
    inspect_grid,
)


# ---------------------------------------------------------------------------
# Synthetic image helpers
# ---------------------------------------------------------------------------


def _make_pixel_art(grid_w: int, grid_h: int, seed: int = 42) -> np.ndarray:
    rng = np.random.RandomState(seed)
    return rng.randint(0, 256, (grid_h, grid_w, 3), dtype=np.uint8)


def _upscale(art: np.ndarray, cell_x: int, cell_y: int = None) -> np.ndarray:
    """Nearest-neighbour upscale, independent factors per axis."""
    cell_y = cell_x if cell_y is None else cell_y
    return np.repeat(np.repeat(art, cell_y, axis=0), cell_x, axis=1)


def _run(image: np.ndarray, **option_kwargs):
    height, width = image.shape[:2]
    return detect_and_resample(image.tobytes(), width, height, Options(**option_kwargs))


# ---------------------------------------------------------------------------
# Tests: recovery of clean nearest-neighbour upscales
# ---------------------------------------------------------------------------


class TestRecovery:
    def test_eight_by_eight_at_8x_center(self):
        art = _make_pixel_art(8, 8)
        image = _upscale(art, 8)
        assert image.shape == (64, 64, 3)

        result = _run(image, sample_method=SampleMethod.CENTER)

        assert isinstance(result, GridResult)
        assert (result.width, result.height) == (8, 8)
        assert len(result.pixels) == 8 * 8 * 3
        np.testing.assert_array_equal(result.to_array(), art)

    @pytest.mark.parametrize("method", list(SampleMethod))
    @pytest.mark.parametrize(
        "grid_w, grid_h, cell, min_cell_size",
        [
            (16, 16, 2, 2),
            (12, 10, 2, 2),
            (12, 8, 3, 3),
            (12, 10, 4, 4),
            (16, 16, 4, 4),
            (16, 12, 8, 4),
            (10, 6, 8, 4),
        ],
    )
    def test_round_trip_integer_upscale(self, method, grid_w, grid_h, cell, min_cell_size):
        art = _make_pixel_art(grid_w, grid_h)
        image = _upscale(art, cell)

        result = _run(image, sample_method=method, min_cell_size=min_cell_size)

        assert result, f"grid not found for {grid_w}x{grid_h} at {cell}x"
        assert (result.width, result.height) == (grid_w, grid_h)
        np.testing.assert_array_equal(result.to_array(), art)

    def test_non_power_of_two_image(self):
        art = _make_pixel_art(12, 12, seed=7)
        image = _upscale(art, 8)  # 96x96, spectrum padded to 128

        result = _run(image)

        assert (result.width, result.height) == (12, 12)
        np.testing.assert_array_equal(result.to_array(), art)

    def test_accepts_numpy_array_without_modifying_it(self):
        art = _make_pixel_art(16, 16)
        image = _upscale(art, 4)
        before = image.copy()

        result = detect_and_resample(image, 64, 64)

        np.testing.assert_array_equal(image, before)
        assert image.flags.writeable
        np.testing.assert_array_equal(result.to_array(), art)


# ---------------------------------------------------------------------------
# Tests: determinism
# ---------------------------------------------------------------------------


class TestDeterminism:
    @pytest.mark.parametrize("method", list(SampleMethod))
    def test_repeated_calls_are_byte_identical(self, method):
        image = _upscale(_make_pixel_art(16, 12), 8)
        first = _run(image, sample_method=method)
        second = _run(image, sample_method=method)
        assert first == second
        assert first.pixels == second.pixels

    def test_majority_subsampling_is_reproducible(self):
        # 16px cells (256 samples) force random subsampling; blur mixes colours
        image = cv2.GaussianBlur(_upscale(_make_pixel_art(8, 8), 16), (5, 5), 2.0)
        kwargs = dict(sample_method=SampleMethod.MAJORITY, manual_grid_size=(8, 8), seed=3)

        first = _run(image, **kwargs)
        second = _run(image, **kwargs)

        assert first.pixels == second.pixels
        assert first.width == first.height


# ---------------------------------------------------------------------------
# Tests: failure modes
# ---------------------------------------------------------------------------


class TestNotFound:
    @pytest.mark.parametrize("size", [(16, 9), (64, 64), (100, 37)])
    def test_uniform_image(self, size):
        width, height = size
        image = np.full((height, width, 3), (90, 140, 200), dtype=np.uint8)

        result = _run(image)

        assert isinstance(result, GridNotFound)
        assert not result
        assert "manually" in result.message

    def test_zero_area_image(self):
        result = detect_and_resample(b"", 0, 0)
        assert isinstance(result, GridNotFound)

    def test_inspect_reports_not_found_too(self):
        image = np.zeros((32, 32, 3), dtype=np.uint8)
        assert isinstance(inspect_grid(image.tobytes(), 32, 32), GridNotFound)

    def test_buffer_size_mismatch_raises(self):
        with pytest.raises(ValueError):
            detect_and_resample(b"\x00" * 10, 4, 4)

    def test_invalid_manual_grid_rejected_before_detection(self):
        with pytest.raises(OptionsError):
            Options(manual_grid_size=(0, 8))


# ---------------------------------------------------------------------------
# Tests: grid constraints
# ---------------------------------------------------------------------------


class TestGridConstraints:
    def test_anisotropic_pixels_use_gradient_estimate(self, monkeypatch):
        calls = []
        original = grid_module.estimate_grid_gradient

        def _spy(*args, **kwargs):
            estimate = original(*args, **kwargs)
            calls.append(estimate)
            return estimate

        monkeypatch.setattr(grid_module, "estimate_grid_gradient", _spy)

        art = _make_pixel_art(12, 12)
        image = _upscale(art, 8, 4)  # 96x48, pixel sizes 8 x 4

        coords = inspect_grid(image.tobytes(), 96, 48)

        assert calls and calls[-1] is not None
        assert isinstance(coords, GridCoordinates)
        assert coords.scale_x == 12
        assert coords.scale_y == 12
        assert coords.x_boundaries[0] == pytest.approx(0, abs=1)
        assert coords.x_boundaries[-1] == pytest.approx(96, abs=1)

        result = _run(image)
        np.testing.assert_array_equal(result.to_array(), art)

    def test_square_input_gives_square_output(self):
        # 16 columns of 4px, 8 rows of 8px: square image, unequal grid
        image = _upscale(_make_pixel_art(16, 8), 4, 8)
        assert image.shape[:2] == (64, 64)

        result = _run(image, fix_square=True)

        assert result
        assert result.width == result.height

    def test_square_input_with_odd_manual_grid(self):
        image = _upscale(_make_pixel_art(8, 8), 8)
        result = _run(image, manual_grid_size=(8, 7))
        assert result.width == result.height

    def test_output_dimensions_are_even(self):
        image = _upscale(_make_pixel_art(16, 16), 4)
        result = _run(image, manual_grid_size=(11, 9))
        assert result.width % 2 == 0
        assert result.height % 2 == 0

    def test_inspect_matches_resample(self):
        image = _upscale(_make_pixel_art(10, 6), 8)
        options = Options(sample_method=SampleMethod.MEDIAN)

        coords = inspect_grid(image.tobytes(), 80, 48, options)
        result = detect_and_resample(image.tobytes(), 80, 48, options)

        assert (coords.width, coords.height) == (result.width, result.height)
        assert coords.x_boundaries == tuple(float(v) for v in range(0, 81, 8))
        assert coords.y_boundaries == tuple(float(v) for v in range(0, 49, 8))


# ---------------------------------------------------------------------------
# Tests: manual grid override
# ---------------------------------------------------------------------------


class TestManualGrid:
    @pytest.mark.parametrize("size, grid", [((64, 64), (16, 16)), ((80, 48), (10, 6))])
    def test_manual_grid_on_blank_image(self, size, grid):
        width, height = size
        image = np.full((height, width, 3), 200, dtype=np.uint8)
        assert isinstance(_run(image), GridNotFound)

        result = _run(image, manual_grid_size=grid)

        assert (result.width, result.height) == grid
        assert np.all(result.to_array() == 200)

    def test_manual_grid_skips_estimators(self, monkeypatch):
        def _fail(*args, **kwargs):
            raise AssertionError("estimator should not run with a manual grid")

        monkeypatch.setattr(grid_module, "estimate_grid_spectral", _fail)
        monkeypatch.setattr(grid_module, "estimate_grid_gradient", _fail)

        art = _make_pixel_art(8, 8)
        result = _run(_upscale(art, 8), manual_grid_size=(8, 8))

        np.testing.assert_array_equal(result.to_array(), art)

    def test_payload_options(self):
        art = _make_pixel_art(8, 8)
        image = _upscale(art, 8)
        options = Options.from_dict(
            {"sampleMethod": "median", "gridSize": [8, 8], "fixSquare": True}
        )

        result = detect_and_resample(image.tobytes(), 64, 64, options)

        np.testing.assert_array_equal(result.to_array(), art)

    def test_single_cell_manual_grid(self):
        art = _make_pixel_art(8, 8)
        result = _run(_upscale(art, 8), manual_grid_size=(1, 1))

        assert isinstance(result, GridResult)
        assert (result.width, result.height) == (1, 1)
        np.testing.assert_array_equal(result.to_array()[0, 0], art[4, 4])

    @pytest.mark.parametrize("fix, expected", [(False, (2, 1)), (True, (1, 1))])
    def test_one_row_manual_grid(self, fix, expected):
        image = np.full((48, 80, 3), 60, dtype=np.uint8)
        result = _run(image, manual_grid_size=(2, 1), fix_square=fix)

        assert isinstance(result, GridResult)
        assert (result.width, result.height) == expected
        assert np.all(result.to_array() == 60)
