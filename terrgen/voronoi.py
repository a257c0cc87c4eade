"""Voronoi field blending from sorted seed distances."""

from __future__ import annotations

from typing import Any, Callable, Sequence

import numpy as np
import structlog

from terrgen.heightgrid import HeightGrid

logger = structlog.get_logger()

DistanceFn = Callable[[np.ndarray, np.ndarray], Any]


def euclidean(dx: np.ndarray, dy: np.ndarray) -> np.ndarray:
    return np.hypot(dx, dy)


def squared_euclidean(dx: np.ndarray, dy: np.ndarray) -> np.ndarray:
    return dx * dx + dy * dy


class VoronoiField:
    """A generalised Voronoi diagram over a fixed set of seed points."""

    def __init__(self, seeds: Any) -> None:
        points = np.array(seeds, dtype=np.float64, copy=True).reshape(-1, 2)
        points.flags.writeable = False
        self._seeds = points

    @classmethod
    def random(cls, grid: HeightGrid, num: int, rng: np.random.Generator) -> "VoronoiField":
        """Sample `num` seeds uniformly over the physical extent of `grid`."""

        if num < 0:
            raise ValueError("num must be >= 0")
        sx, sy = grid.size
        xs = rng.uniform(0.0, sx, size=num)
        ys = rng.uniform(0.0, sy, size=num)
        return cls(np.stack((xs, ys), axis=-1))

    @property
    def seeds(self) -> np.ndarray:
        return self._seeds

    def __len__(self) -> int:
        return len(self._seeds)

    def sorted_distances(self, x: float, y: float, dist: DistanceFn = euclidean) -> np.ndarray:
        """Distances from `(x, y)` to every seed, ascending."""

        d = np.asarray(dist(self._seeds[:, 0] - x, self._seeds[:, 1] - y), dtype=np.float64)
        return np.sort(d)

    def apply_to(self, grid: HeightGrid, weights: Sequence[float], dist: DistanceFn = euclidean) -> None:
        """Add `w[0] * d0 + w[1] * d1 + ...` to every vertex of `grid`.

        `d0` is the distance to the nearest seed, `d1` to the next nearest,
        and so on. `dist` receives arrays of seed-minus-vertex offsets
        `(dx, dy)` and returns the combined distance; it may be a true metric
        or a perturbed one for more organic cell boundaries. Weights beyond
        the number of seeds are ignored. The grid should already hold zero
        or an existing terrain, since the contribution is added.
        """

        w = np.asarray(weights, dtype=grid.dtype)
        nw = min(len(w), len(self._seeds))
        if nw == 0:
            return
        w = w[:nw]

        xx, yy = grid.coordinates()
        seeds = self._seeds.astype(grid.dtype)
        with grid.edit() as heights:
            for row in range(heights.shape[0]):
                dx = seeds[None, :, 0] - xx[row, :, None]
                dy = seeds[None, :, 1] - yy[row, :, None]
                d = np.sort(np.asarray(dist(dx, dy), dtype=grid.dtype), axis=1)
                heights[row] += d[:, :nw] @ w

        logger.debug("voronoi_apply", seeds=len(self._seeds), weights=nw, dim=grid.dim)
