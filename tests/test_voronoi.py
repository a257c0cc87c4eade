from __future__ import annotations

import numpy as np
import pytest

from terrgen.heightgrid import HeightGrid
from terrgen.rng import RngStream
from terrgen.voronoi import VoronoiField, euclidean, squared_euclidean


def _brute_force(grid: HeightGrid, seeds: np.ndarray, weights: list[float], dist) -> np.ndarray:
    nx, ny = grid.dim
    out = np.zeros((ny, nx))
    for cy in range(ny):
        for cx in range(nx):
            x, y = grid.coord_of(cx, cy)
            d = sorted(float(dist(sx - x, sy - y)) for sx, sy in seeds)
            out[cy, cx] = sum(w * di for w, di in zip(weights, d))
    return out


def test_nearest_distance_is_zero_at_a_seed() -> None:
    grid = HeightGrid.new_flat((5, 5), (4.0, 4.0))
    field = VoronoiField([(1.0, 2.0), (3.0, 3.0)])

    assert field.sorted_distances(1.0, 2.0)[0] == 0.0

    field.apply_to(grid, [1.0])

    assert grid.get(1, 2) == 0.0
    assert grid.get(3, 3) == 0.0
    assert grid.get(0, 0) == pytest.approx(np.hypot(1.0, 2.0))


def test_apply_matches_brute_force() -> None:
    grid = HeightGrid.new_flat((9, 7), (8.0, 3.0))
    field = VoronoiField.random(grid, 6, RngStream(12).generator())
    weights = [-2.0, 0.5, 1.0]

    field.apply_to(grid, weights, squared_euclidean)

    expected = _brute_force(grid, field.seeds, weights, squared_euclidean)
    np.testing.assert_allclose(grid.heights, expected)
    assert grid.range() == (float(grid.heights.min()), float(grid.heights.max()))


def test_extra_weights_are_ignored() -> None:
    grid = HeightGrid.new_flat((4, 4), (3.0, 3.0))
    seeds = [(0.0, 0.0), (3.0, 3.0)]

    VoronoiField(seeds).apply_to(grid, [1.0, 1.0, 100.0])

    expected = _brute_force(grid, np.array(seeds), [1.0, 1.0], euclidean)
    np.testing.assert_allclose(grid.heights, expected)


def test_field_is_additive() -> None:
    grid = HeightGrid.from_surface((5, 5), (1.0, 1.0), lambda x, y: np.full_like(x, 2.0))
    field = VoronoiField([(0.5, 0.5)])

    field.apply_to(grid, [1.0])
    field.apply_to(grid, [1.0])

    assert grid.get(2, 2) == 2.0
    assert grid.get(0, 0) == pytest.approx(2.0 + 2.0 * np.hypot(0.5, 0.5))


def test_custom_distance_function_is_used() -> None:
    grid = HeightGrid.new_flat((3, 3), (2.0, 2.0))
    field = VoronoiField([(0.0, 0.0)])

    field.apply_to(grid, [1.0], lambda dx, dy: np.abs(dx) + np.abs(dy))

    assert grid.get(2, 2) == pytest.approx(4.0)
    assert grid.get(1, 0) == pytest.approx(1.0)


def test_random_seeds_lie_within_grid_extent() -> None:
    grid = HeightGrid.new_flat((3, 3), (5.0, 2.0))
    field = VoronoiField.random(grid, 200, RngStream(1).generator())

    assert len(field) == 200
    assert field.seeds.shape == (200, 2)
    assert float(field.seeds[:, 0].min()) >= 0.0
    assert float(field.seeds[:, 0].max()) <= 5.0
    assert float(field.seeds[:, 1].max()) <= 2.0


def test_seeds_are_immutable() -> None:
    field = VoronoiField([(0.0, 0.0)])

    with pytest.raises(ValueError):
        field.seeds[0, 0] = 1.0


def test_empty_weights_or_seeds_leave_grid_unchanged() -> None:
    grid = HeightGrid.new_flat((3, 3), (1.0, 1.0))

    VoronoiField([(0.0, 0.0)]).apply_to(grid, [])
    VoronoiField([]).apply_to(grid, [1.0])

    assert np.all(grid.heights == 0.0)
