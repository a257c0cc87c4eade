from __future__ import annotations

import numpy as np
import pytest

from terrgen.fault import bump_profile, exp_profile, fault_displacement, sample_fault_line
from terrgen.heightgrid import HeightGrid
from terrgen.rng import RngStream


def _band_profile(w_min: float, w_max: float):
    def profile(d: np.ndarray) -> np.ndarray:
        return np.where((d >= w_min) & (d <= w_max), 1.0, 0.0)

    return profile


def test_vertices_outside_width_band_are_unchanged() -> None:
    rng = RngStream(17).generator()
    w_min, w_max = 0.5, 2.0

    for _ in range(25):
        grid = HeightGrid.new_flat((33, 33), (10.0, 10.0))
        line = fault_displacement(grid, rng, (w_min, w_max), _band_profile(w_min, w_max))

        xx, yy = grid.coordinates()
        d = line.signed_distance(xx, yy)
        inside = (d >= w_min) & (d <= w_max)
        assert np.all(grid.heights[~inside] == 0.0)
        assert np.all(grid.heights[inside] == 1.0)
        assert grid.range() == (float(grid.heights.min()), float(grid.heights.max()))


def test_fault_is_additive_on_existing_terrain() -> None:
    grid = HeightGrid.from_surface((17, 17), (4.0, 4.0), lambda x, y: x + y)
    before = grid.heights.copy()

    line = fault_displacement(grid, RngStream(2).generator(), (0.0, 1.0), bump_profile(2.0, 1.0))

    xx, yy = grid.coordinates()
    expected = before + bump_profile(2.0, 1.0)(line.signed_distance(xx, yy))
    np.testing.assert_allclose(grid.heights, expected)


def test_sampled_line_passes_near_grid_center() -> None:
    grid = HeightGrid.new_flat((9, 9), (6.0, 8.0))
    rng = RngStream(4).generator()
    half_diagonal = 5.0
    w_min, w_max = 0.25, 1.5

    for _ in range(500):
        line = sample_fault_line(grid, rng, (w_min, w_max))
        assert np.hypot(*line.direction) == pytest.approx(1.0)
        center_distance = line.signed_distance(3.0, 4.0)
        assert -(half_diagonal - w_min) <= center_distance <= half_diagonal + w_max
        assert line.width == (w_min, w_max)


def test_narrow_faults_still_reach_the_grid() -> None:
    rng = RngStream(9).generator()
    touched = 0
    for _ in range(200):
        grid = HeightGrid.new_flat((65, 65), (1.0, 1.0))
        fault_displacement(grid, rng, (0.0, 0.2), bump_profile(1.0, 0.2))
        touched += int(grid.range()[1] > 0.0)

    assert touched > 100


def test_invalid_width_interval_is_rejected() -> None:
    grid = HeightGrid.new_flat((3, 3), (1.0, 1.0))

    with pytest.raises(ValueError):
        fault_displacement(grid, RngStream(0).generator(), (1.0, 0.5), bump_profile(1.0, 1.0))
    assert np.all(grid.heights == 0.0)


def test_bump_profile_shape() -> None:
    profile = bump_profile(3.0, 2.0)
    d = np.array([-0.5, 0.0, 1.0, 1.999, 2.0, 5.0])

    values = profile(d)

    assert values[0] == 0.0
    assert values[1] == pytest.approx(3.0)
    assert values[2] == pytest.approx(3.0 * (1.0 - 0.25) ** 2)
    assert values[3] == pytest.approx(0.0, abs=1e-5)
    assert values[4] == 0.0
    assert values[5] == 0.0
    with pytest.raises(ValueError):
        bump_profile(1.0, 0.0)


def test_exp_profile_decays_and_respects_cutoff() -> None:
    profile = exp_profile(2.0, -1.0, cutoff=3.0)
    d = np.array([-1.0, 0.0, 1.0, 3.0, 3.5])

    values = profile(d)

    np.testing.assert_allclose(values, [0.0, 2.0, 2.0 * np.exp(-1.0), 2.0 * np.exp(-3.0), 0.0])
    with pytest.raises(ValueError):
        exp_profile(1.0, 0.5)
