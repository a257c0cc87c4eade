"""Dense height grid with physical extents and a cached height range."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

import numpy as np

from terrgen.rng import Distribution, sample
from terrgen.surface import SurfaceLike, sample_surface

if TYPE_CHECKING:
    from terrgen.raycast import Ray, RayIntersection


class HeightGrid:
    """A regular grid of `nx * ny` height values spanning `[0, sx] x [0, sy]`.

    Heights are held in an `(ny, nx)` array indexed `[cy, cx]`. The cached
    `range()` always equals the true min/max of the stored values: `set`
    widens it incrementally and bulk edits recompute it with a full scan.
    """

    def __init__(self, heights: np.ndarray, size: tuple[float, float]) -> None:
        heights = np.asarray(heights)
        if heights.ndim != 2:
            raise ValueError("heights must be a 2D array")
        if heights.dtype.kind != "f":
            raise ValueError("heights must have a floating dtype")
        ny, nx = heights.shape
        if nx < 1 or ny < 1:
            raise ValueError("grid dimensions must be >= 1")
        sx, sy = float(size[0]), float(size[1])
        if not (sx > 0.0 and sy > 0.0):
            raise ValueError("grid size must be positive")

        self._heights = np.array(heights, copy=True)
        self._size = (sx, sy)
        self._spacing = (sx / max(nx - 1, 1), sy / max(ny - 1, 1))
        self._range = (0.0, 0.0)
        self._recompute_range()

    @classmethod
    def new_flat(cls, dim: tuple[int, int], size: tuple[float, float], *, dtype: Any = np.float64) -> "HeightGrid":
        """Create a grid of `dim = (nx, ny)` vertices with all heights zero."""

        nx, ny = _checked_dim(dim)
        return cls(np.zeros((ny, nx), dtype=dtype), size)

    @classmethod
    def from_surface(
        cls,
        dim: tuple[int, int],
        size: tuple[float, float],
        surface: SurfaceLike,
        *,
        dtype: Any = np.float64,
    ) -> "HeightGrid":
        """Create a grid whose vertex heights sample `surface` at their physical coordinates."""

        grid = cls.new_flat(dim, size, dtype=dtype)
        xx, yy = grid.coordinates()
        with grid.edit() as heights:
            heights[...] = sample_surface(surface, xx, yy, dtype=heights.dtype)
        return grid

    @property
    def dim(self) -> tuple[int, int]:
        ny, nx = self._heights.shape
        return nx, ny

    @property
    def size(self) -> tuple[float, float]:
        return self._size

    @property
    def spacing(self) -> tuple[float, float]:
        return self._spacing

    @property
    def dtype(self) -> np.dtype:
        return self._heights.dtype

    @property
    def heights(self) -> np.ndarray:
        """Read-only view of the `(ny, nx)` height array."""

        view = self._heights.view()
        view.flags.writeable = False
        return view

    def cells(self) -> tuple[int, int]:
        """Number of cells along each axis (one fewer than vertices, never negative)."""

        nx, ny = self.dim
        return max(nx - 1, 0), max(ny - 1, 0)

    def range(self) -> tuple[float, float]:
        return self._range

    def get(self, cx: int, cy: int) -> float:
        self._check_index(cx, cy)
        return float(self._heights[cy, cx])

    def set(self, cx: int, cy: int, value: float) -> None:
        self._check_index(cx, cy)
        old = float(self._heights[cy, cx])
        self._heights[cy, cx] = value
        new = float(self._heights[cy, cx])
        lo, hi = self._range
        if (old == lo and new > lo) or (old == hi and new < hi):
            # The overwritten value may have been the only one at a bound.
            self._recompute_range()
        else:
            self._range = (min(lo, new), max(hi, new))

    def coord_of(self, cx: int, cy: int) -> tuple[float, float]:
        """Physical coordinate of vertex `(cx, cy)`."""

        return cx * self._spacing[0], cy * self._spacing[1]

    def coordinates(self) -> tuple[np.ndarray, np.ndarray]:
        """Physical `(xx, yy)` coordinate arrays for every vertex, shaped like `heights`."""

        nx, ny = self.dim
        xs = np.arange(nx, dtype=self.dtype) * self.dtype.type(self._spacing[0])
        ys = np.arange(ny, dtype=self.dtype) * self.dtype.type(self._spacing[1])
        xx, yy = np.meshgrid(xs, ys)
        return xx, yy

    def cell_at_coord(self, x: float, y: float) -> tuple[int, int] | None:
        """Index of the cell containing `(x, y)`, or None outside `[0, size]`.

        Coordinates on the far edge map to the last cell.
        """

        sx, sy = self._size
        if not (0.0 <= x <= sx and 0.0 <= y <= sy):
            return None
        nx, ny = self.dim
        cx = min(int(np.floor(x / self._spacing[0])), max(nx - 2, 0))
        cy = min(int(np.floor(y / self._spacing[1])), max(ny - 2, 0))
        return cx, cy

    def local_aabb(self) -> tuple[np.ndarray, np.ndarray]:
        """Axis-aligned bounding box `(lo, hi)` as 3D points in the grid frame."""

        lo, hi = self._range
        return (
            np.array([0.0, 0.0, lo], dtype=np.float64),
            np.array([self._size[0], self._size[1], hi], dtype=np.float64),
        )

    def triangles_at(self, cx: int, cy: int) -> tuple[np.ndarray, np.ndarray]:
        """The two triangles covering cell `(cx, cy)`, each a `(3, 3)` array of points.

        Both triangles share the diagonal from `(cx, cy)` to `(cx + 1, cy + 1)`
        and wind counter-clockwise when viewed from above.
        """

        nx, ny = self.dim
        if not (0 <= cx < nx - 1 and 0 <= cy < ny - 1):
            raise IndexError(f"cell ({cx}, {cy}) out of bounds for {self.cells()} cells")
        x0, y0 = self.coord_of(cx, cy)
        x1, y1 = self.coord_of(cx + 1, cy + 1)
        h = self._heights
        p00 = (x0, y0, float(h[cy, cx]))
        p10 = (x1, y0, float(h[cy, cx + 1]))
        p01 = (x0, y1, float(h[cy + 1, cx]))
        p11 = (x1, y1, float(h[cy + 1, cx + 1]))
        lower = np.array([p00, p10, p11], dtype=np.float64)
        upper = np.array([p00, p11, p01], dtype=np.float64)
        return lower, upper

    def add_surface(self, surface: SurfaceLike, amplitude: float = 1.0) -> None:
        """Add `amplitude * surface(x, y)` to every vertex."""

        xx, yy = self.coordinates()
        with self.edit() as heights:
            heights += self.dtype.type(amplitude) * sample_surface(surface, xx, yy, dtype=heights.dtype)

    def add_noise(self, distribution: Distribution, rng: np.random.Generator) -> None:
        """Add one independent sample of `distribution` to every vertex."""

        with self.edit() as heights:
            heights += sample(distribution, rng, heights.shape, dtype=heights.dtype)

    def ray_intersect(self, ray: "Ray", *, max_toi: float = np.inf) -> "RayIntersection | None":
        from terrgen.raycast import ray_intersect

        return ray_intersect(self, ray, max_toi=max_toi)

    @contextmanager
    def edit(self) -> Iterator[np.ndarray]:
        """Yield the writable height array; the cached range is recomputed on exit."""

        try:
            yield self._heights
        finally:
            self._recompute_range()

    def copy(self) -> "HeightGrid":
        return HeightGrid(self._heights, self._size)

    def _recompute_range(self) -> None:
        self._range = (float(np.min(self._heights)), float(np.max(self._heights)))

    def _check_index(self, cx: int, cy: int) -> None:
        nx, ny = self.dim
        if not (0 <= cx < nx and 0 <= cy < ny):
            raise IndexError(f"vertex ({cx}, {cy}) out of bounds for grid of {nx}x{ny}")

    def __repr__(self) -> str:
        nx, ny = self.dim
        return f"HeightGrid(dim=({nx}, {ny}), size={self._size}, range={self._range})"


def _checked_dim(dim: tuple[int, int]) -> tuple[int, int]:
    nx, ny = int(dim[0]), int(dim[1])
    if nx < 1 or ny < 1:
        raise ValueError("grid dimensions must be >= 1")
    return nx, ny
