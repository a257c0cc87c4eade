"""Fractal subdivision displacement: midpoint displacement and diamond-square."""

from __future__ import annotations

import numpy as np
import structlog

from terrgen.heightgrid import HeightGrid
from terrgen.rng import Distribution, sample

logger = structlog.get_logger()


class FractalShapeError(ValueError):
    """The grid shape is unsuitable for fractal subdivision."""


class NotSquareError(FractalShapeError):
    def __init__(self, dim: tuple[int, int]) -> None:
        super().__init__(f"fractal displacement requires a square grid, got {dim[0]}x{dim[1]}")
        self.dim = dim


class NotPowerOf2Plus1Error(FractalShapeError):
    def __init__(self, side: int) -> None:
        super().__init__(f"fractal displacement requires side length 2^n + 1, got {side}")
        self.side = side


def subdivision_levels(grid: HeightGrid) -> int:
    """Return `n` for a square grid of side `2^n + 1`, raising if the shape is unsuitable."""

    nx, ny = grid.dim
    if nx != ny:
        raise NotSquareError((nx, ny))
    span = nx - 1
    if span < 1 or span & (span - 1):
        raise NotPowerOf2Plus1Error(nx)
    return span.bit_length() - 1


def seed_corners(grid: HeightGrid, distribution: Distribution, rng: np.random.Generator) -> None:
    """Set the four corner heights to independent samples of `distribution`."""

    nx, ny = grid.dim
    values = sample(distribution, rng, 4, dtype=grid.dtype)
    for value, (cx, cy) in zip(values, [(0, 0), (0, ny - 1), (nx - 1, 0), (nx - 1, ny - 1)]):
        grid.set(cx, cy, float(value))


def midpoint_displacement(
    grid: HeightGrid,
    skip_levels: int,
    rng: np.random.Generator,
    distribution: Distribution,
) -> int:
    """Roughen `grid` in place by midpoint displacement; return the number of levels run.

    The grid must be square with side `2^n + 1` and its four corners (or, when
    `skip_levels > 0`, every vertex of the coarsest retained lattice) must
    already hold values. At each level every quad sets its four edge
    midpoints to the mean of the two adjacent corners, and its center to the
    mean of those four midpoints; each gets an independent sample of
    `distribution` scaled by half the quad side. Edges shared by two quads
    keep the value written by the later quad in x-major, y-minor order.
    """

    n = subdivision_levels(grid)
    start = _checked_skip(skip_levels)

    with grid.edit() as h:
        dt = h.dtype.type
        for level in range(start, n):
            quad = 2 ** (n - level)
            mid = quad // 2
            q = 2**level
            scale = dt(mid)

            corners = h[::quad, ::quad]
            h00 = corners[:-1, :-1]
            h10 = corners[:-1, 1:]
            h01 = corners[1:, :-1]
            h11 = corners[1:, 1:]

            noise = scale * sample(distribution, rng, (5, q, q), dtype=h.dtype)
            left = (h00 + h01) * dt(0.5) + noise[0]
            right = (h10 + h11) * dt(0.5) + noise[1]
            bottom = (h00 + h10) * dt(0.5) + noise[2]
            top = (h01 + h11) * dt(0.5) + noise[3]
            center = (left + right + bottom + top) * dt(0.25) + noise[4]

            columns = h[mid::quad, ::quad]
            columns[:, :q] = left
            columns[:, q] = right[:, q - 1]
            rows = h[::quad, mid::quad]
            rows[:q, :] = bottom
            rows[q, :] = top[q - 1, :]
            h[mid::quad, mid::quad] = center

    levels = max(n - start, 0)
    logger.debug("midpoint_displacement", side=grid.dim[0], levels=levels, skip_levels=start)
    return levels


def diamond_square(
    grid: HeightGrid,
    skip_levels: int,
    rng: np.random.Generator,
    distribution: Distribution,
) -> int:
    """Roughen `grid` in place by diamond-square displacement; return the number of levels run.

    Shape and seeding requirements match `midpoint_displacement`. Each level
    first displaces every quad center ("diamond" step) from the mean of its
    four corners plus a sample scaled by half the quad side. Each edge
    midpoint ("square" step) is then the mean of its two corners and the
    centers on either side of the edge, or of its two corners and the single
    available center on the grid boundary, plus a sample scaled by half the
    quad side times sqrt(2). All centers of a level are final before any
    edge midpoint reads them.
    """

    n = subdivision_levels(grid)
    start = _checked_skip(skip_levels)

    with grid.edit() as h:
        dt = h.dtype.type
        for level in range(start, n):
            quad = 2 ** (n - level)
            mid = quad // 2
            q = 2**level
            scale = dt(mid)
            scale2 = scale * dt(np.sqrt(2.0))

            corners = h[::quad, ::quad]

            # Diamond step.
            centers = (
                corners[:-1, :-1] + corners[:-1, 1:] + corners[1:, :-1] + corners[1:, 1:]
            ) * dt(0.25) + scale * sample(distribution, rng, (q, q), dtype=h.dtype)
            h[mid::quad, mid::quad] = centers

            # Square step on vertical edges (x on the coarse lattice, y at a midpoint).
            center_sum = np.zeros((q, q + 1), dtype=h.dtype)
            center_sum[:, :q] += centers
            center_sum[:, 1:] += centers
            count = np.full((q, q + 1), 4.0, dtype=h.dtype)
            count[:, 0] = 3.0
            count[:, q] = 3.0
            columns = (corners[:-1, :] + corners[1:, :] + center_sum) / count
            columns += scale2 * sample(distribution, rng, (q, q + 1), dtype=h.dtype)

            # Square step on horizontal edges (x at a midpoint, y on the coarse lattice).
            center_sum = np.zeros((q + 1, q), dtype=h.dtype)
            center_sum[:q, :] += centers
            center_sum[1:, :] += centers
            count = np.full((q + 1, q), 4.0, dtype=h.dtype)
            count[0, :] = 3.0
            count[q, :] = 3.0
            rows = (corners[:, :-1] + corners[:, 1:] + center_sum) / count
            rows += scale2 * sample(distribution, rng, (q + 1, q), dtype=h.dtype)

            h[mid::quad, ::quad] = columns
            h[::quad, mid::quad] = rows

    levels = max(n - start, 0)
    logger.debug("diamond_square", side=grid.dim[0], levels=levels, skip_levels=start)
    return levels


def _checked_skip(skip_levels: int) -> int:
    skip = int(skip_levels)
    if skip < 0:
        raise ValueError("skip_levels must be >= 0")
    return skip
