from __future__ import annotations

import numpy as np
import pytest

from terrgen.heightgrid import HeightGrid
from terrgen.noise import NoiseField, NotPowerOfTwoError, add_octaves
from terrgen.rng import RngStream, exp_scaled_unit_circle


def _field(scale: float = 1.0, n: int = 256, seed: int = 3) -> NoiseField:
    return NoiseField.random(scale, n, RngStream(seed).generator())


@pytest.mark.parametrize("count", [0, 3, 6, 100])
def test_lattice_size_must_be_power_of_two(count: int) -> None:
    with pytest.raises(NotPowerOfTwoError) as exc:
        NoiseField.random(1.0, count, RngStream(0).generator())

    assert isinstance(exc.value, ValueError)
    with pytest.raises(NotPowerOfTwoError):
        NoiseField(1.0, np.ones((count, 2)))


def test_gradients_must_be_two_dimensional() -> None:
    with pytest.raises(ValueError):
        NoiseField(1.0, np.ones((4, 3)))


def test_noise_vanishes_on_lattice_points() -> None:
    field = _field()

    for x, y in [(0, 0), (2, 3), (-1, -5), (17, -4), (1000, 2048)]:
        assert field.get(float(x), float(y)) == 0.0

    scaled = _field(scale=0.25)
    assert scaled.get(4.0, -8.0) == 0.0


def test_noise_is_continuous_across_cell_boundaries() -> None:
    field = _field()
    eps = 1e-9

    for boundary in [1.0, 2.0, -3.0]:
        for y in [0.1, 0.5, 0.77, -2.3]:
            left = field.get(boundary - eps, y)
            right = field.get(boundary + eps, y)
            assert abs(left - right) < 1e-6
            below = field.get(y, boundary - eps)
            above = field.get(y, boundary + eps)
            assert abs(below - above) < 1e-6


def test_noise_is_bounded_for_unit_gradients() -> None:
    field = _field()
    xs, ys = np.meshgrid(np.linspace(-8.0, 8.0, 201), np.linspace(-8.0, 8.0, 201))

    values = field.get(xs, ys)

    assert values.shape == xs.shape
    assert float(np.max(np.abs(values))) <= np.sqrt(2.0)
    assert float(np.std(values)) > 0.01


def test_vectorised_get_matches_scalar_get() -> None:
    field = _field(scale=0.3)
    xs = np.array([-4.2, -0.1, 0.0, 0.6, 3.9, 12.5])
    ys = np.array([7.1, -3.3, 0.45, 2.0, -0.9, 5.5])

    values = field.get(xs, ys)

    for x, y, value in zip(xs, ys, values):
        assert field.get(float(x), float(y)) == pytest.approx(float(value))
    assert isinstance(field.get(0.5, 0.5), float)


def test_noise_is_a_pure_function_of_gradients() -> None:
    a = _field(seed=10)
    b = NoiseField(a.scale, a.gradients)
    xs = np.linspace(-3.0, 3.0, 37)

    assert np.array_equal(a.get(xs, xs[::-1]), b.get(xs, xs[::-1]))
    assert not np.array_equal(a.get(xs, xs[::-1]), _field(seed=11).get(xs, xs[::-1]))


def test_negative_cells_are_not_mirrors_of_positive_cells() -> None:
    field = _field()

    assert field.get(-0.5, 0.5) != pytest.approx(field.get(0.5, 0.5))


def test_field_can_be_added_to_grid_as_a_surface() -> None:
    field = _field(scale=0.5)
    grid = HeightGrid.new_flat((9, 9), (8.0, 8.0))

    grid.add_surface(field, 4.0)

    xx, yy = grid.coordinates()
    np.testing.assert_allclose(grid.heights, 4.0 * field.get(xx, yy))
    assert grid.get(0, 0) == 0.0
    assert grid.get(2, 6) == 0.0


def test_add_octaves_halves_amplitude_and_doubles_frequency() -> None:
    grid = HeightGrid.new_flat((33, 33), (100.0, 100.0))

    fields = add_octaves(
        grid,
        RngStream(6).generator(),
        octaves=4,
        amplitude=10.0,
        frequency=1.0 / 32.0,
        lattice_size=64,
        sampler=exp_scaled_unit_circle,
    )

    assert [f.scale for f in fields] == pytest.approx([1 / 32, 1 / 16, 1 / 8, 1 / 4])
    assert all(f.gradients.shape == (64, 2) for f in fields)
    xx, yy = grid.coordinates()
    expected = sum(amp * f.get(xx, yy) for amp, f in zip([10.0, 5.0, 2.5, 1.25], fields))
    np.testing.assert_allclose(grid.heights, expected)
    assert grid.range() == (float(grid.heights.min()), float(grid.heights.max()))


def test_gradients_are_immutable() -> None:
    field = _field()

    with pytest.raises(ValueError):
        field.gradients[0, 0] = 1.0
