"""Ray intersection against a height grid by 2D grid traversal."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from terrgen.heightgrid import HeightGrid

_BARYCENTRIC_EPS = 1e-12


@dataclass(frozen=True)
class Ray:
    """A half-line `origin + t * direction`, `t >= 0`, in the grid's local frame."""

    origin: np.ndarray
    direction: np.ndarray

    def __post_init__(self) -> None:
        origin = np.asarray(self.origin, dtype=np.float64).reshape(3)
        direction = np.asarray(self.direction, dtype=np.float64).reshape(3)
        object.__setattr__(self, "origin", origin)
        object.__setattr__(self, "direction", direction)

    def point_at(self, t: float) -> np.ndarray:
        return self.origin + t * self.direction


@dataclass(frozen=True)
class RayIntersection:
    """First surface hit: ray parameter, unit normal facing the ray, hit point and triangle."""

    toi: float
    normal: np.ndarray
    point: np.ndarray
    cell: tuple[int, int]
    triangle: int


def clip_ray(ray: Ray, lo: Any, hi: Any) -> tuple[float, float] | None:
    """Clip `ray` against the box `[lo, hi]`; return the `(t_min, t_max)` overlap or None."""

    t_min, t_max = 0.0, np.inf
    for axis in range(3):
        o = float(ray.origin[axis])
        d = float(ray.direction[axis])
        if d == 0.0:
            if o < lo[axis] or o > hi[axis]:
                return None
            continue
        t0 = (lo[axis] - o) / d
        t1 = (hi[axis] - o) / d
        if t0 > t1:
            t0, t1 = t1, t0
        t_min = max(t_min, t0)
        t_max = min(t_max, t1)
        if t_min > t_max:
            return None
    return t_min, t_max


def ray_triangle(ray: Ray, a: np.ndarray, b: np.ndarray, c: np.ndarray) -> tuple[float, np.ndarray] | None:
    """Möller-Trumbore ray/triangle test returning `(toi, normal)` or None."""

    e1 = b - a
    e2 = c - a
    pvec = np.cross(ray.direction, e2)
    det = float(np.dot(e1, pvec))
    scale = float(np.linalg.norm(e1) * np.linalg.norm(e2) * np.linalg.norm(ray.direction))
    if scale == 0.0 or abs(det) <= 1e-12 * scale:
        return None

    inv_det = 1.0 / det
    tvec = ray.origin - a
    u = float(np.dot(tvec, pvec)) * inv_det
    if u < -_BARYCENTRIC_EPS or u > 1.0 + _BARYCENTRIC_EPS:
        return None
    qvec = np.cross(tvec, e1)
    v = float(np.dot(ray.direction, qvec)) * inv_det
    if v < -_BARYCENTRIC_EPS or u + v > 1.0 + _BARYCENTRIC_EPS:
        return None
    toi = float(np.dot(e2, qvec)) * inv_det
    if toi < 0.0:
        return None

    normal = np.cross(e1, e2)
    normal = normal / np.linalg.norm(normal)
    if np.dot(normal, ray.direction) > 0.0:
        normal = -normal
    return toi, normal


def ray_intersect(grid: HeightGrid, ray: Ray, *, max_toi: float = np.inf) -> RayIntersection | None:
    """Find the first intersection of `ray` with the triangulated surface of `grid`.

    The ray is clipped to the grid's bounding box, then the cells under its
    2D projection are visited in order of increasing ray parameter. Every
    hit on a cell's triangles lies within that cell's span of the ray, so the
    first cell with a hit holds the nearest intersection.
    """

    nx, ny = grid.dim
    if nx < 2 or ny < 2:
        return None

    lo, hi = grid.local_aabb()
    clipped = clip_ray(ray, lo, hi)
    if clipped is None:
        return None
    t_min, t_max = clipped
    t_max = min(t_max, max_toi)
    if t_min > t_max:
        return None

    sx, sy = grid.size
    entry = ray.point_at(t_min)
    cell = grid.cell_at_coord(min(max(entry[0], 0.0), sx), min(max(entry[1], 0.0), sy))
    if cell is None:
        return None
    cx, cy = cell

    step_x = int(np.sign(ray.direction[0]))
    step_y = int(np.sign(ray.direction[1]))
    spacing_x, spacing_y = grid.spacing

    while True:
        hit = _cell_intersection(grid, ray, cx, cy, max_toi)
        if hit is not None:
            return hit

        next_x = _boundary_toi(cx, step_x, spacing_x, ray.origin[0], ray.direction[0])
        next_y = _boundary_toi(cy, step_y, spacing_y, ray.origin[1], ray.direction[1])
        if min(next_x, next_y) > t_max or not np.isfinite(min(next_x, next_y)):
            return None
        if next_x < next_y:
            cx += step_x
            if not 0 <= cx < nx - 1:
                return None
        else:
            cy += step_y
            if not 0 <= cy < ny - 1:
                return None


def _boundary_toi(index: int, step: int, spacing: float, origin: float, direction: float) -> float:
    # Ray parameter at which the ray leaves cell `index` along one axis.
    if step == 0:
        return np.inf
    boundary = (index + 1) * spacing if step > 0 else index * spacing
    return (boundary - origin) / direction


def _cell_intersection(grid: HeightGrid, ray: Ray, cx: int, cy: int, max_toi: float) -> RayIntersection | None:
    best: RayIntersection | None = None
    for index, tri in enumerate(grid.triangles_at(cx, cy)):
        result = ray_triangle(ray, tri[0], tri[1], tri[2])
        if result is None:
            continue
        toi, normal = result
        if toi > max_toi:
            continue
        if best is None or toi < best.toi:
            best = RayIntersection(toi=toi, normal=normal, point=ray.point_at(toi), cell=(cx, cy), triangle=index)
    return best
