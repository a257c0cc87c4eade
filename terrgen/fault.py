"""Fault-line displacement."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import numpy as np
import structlog

from terrgen.heightgrid import HeightGrid
from terrgen.rng import unit_circle

logger = structlog.get_logger()

Profile = Callable[[np.ndarray], Any]


@dataclass(frozen=True)
class FaultLine:
    """A straight, vertical fault through `point` with unit normal `direction`."""

    direction: tuple[float, float]
    point: tuple[float, float]
    width: tuple[float, float]

    def signed_distance(self, x: Any, y: Any) -> Any:
        """Signed distance from `(x, y)` to the line, positive along `direction`."""

        return (x - self.point[0]) * self.direction[0] + (y - self.point[1]) * self.direction[1]


def sample_fault_line(grid: HeightGrid, rng: np.random.Generator, width: tuple[float, float]) -> FaultLine:
    """Sample a fault line which can affect at least part of `grid`.

    The direction is uniform on the unit circle. The line is offset from the
    grid center along that direction by an amount drawn uniformly from
    `[-(r + w_max), r - w_min]`, where `r` is the half-diagonal, so some
    vertex can fall within the `width` band whenever `w_min <= r`.
    """

    w_min, w_max = float(width[0]), float(width[1])
    if w_min > w_max:
        raise ValueError("fault width interval must satisfy w_min <= w_max")

    sx, sy = grid.size
    half_diagonal = 0.5 * float(np.hypot(sx, sy))
    vx, vy = (float(c) for c in unit_circle(rng))
    offset = float(rng.uniform(-(half_diagonal + w_max), half_diagonal - w_min))
    point = (0.5 * sx + offset * vx, 0.5 * sy + offset * vy)
    return FaultLine(direction=(vx, vy), point=point, width=(w_min, w_max))


def fault_displacement(
    grid: HeightGrid,
    rng: np.random.Generator,
    width: tuple[float, float],
    displacement: Profile,
) -> FaultLine:
    """Displace `grid` in place along a random fault line and return the line.

    For every vertex the signed distance `d` to the line is computed and the
    height is increased by `displacement(d)`. The profile is called once with
    the array of all distances and must return matching deltas (or a
    broadcastable scalar). By contract it returns zero wherever `d` lies
    outside `[w_min, w_max]`; this is not checked. Smooth profiles such as
    `bump_profile` give the most natural results.

    Unlike real faults, the fault plane is vertical, straight, and has
    uniform displacement along its entire length.
    """

    line = sample_fault_line(grid, rng, width)
    xx, yy = grid.coordinates()
    distance = line.signed_distance(xx, yy)
    delta = np.broadcast_to(np.asarray(displacement(distance), dtype=grid.dtype), distance.shape)
    affected = delta != 0

    with grid.edit() as heights:
        heights[affected] += delta[affected]

    logger.debug(
        "fault_displacement",
        direction=line.direction,
        point=line.point,
        width=line.width,
        affected=int(np.count_nonzero(affected)),
    )
    return line


def bump_profile(height: float, radius: float) -> Profile:
    """Raise one side of the fault by `height * (1 - (d / radius)^2)^2` for `0 <= d < radius`.

    The bump has zero slope at `d = radius`; use width `(0, radius)`.
    """

    if radius <= 0:
        raise ValueError("radius must be positive")

    def profile(d: np.ndarray) -> np.ndarray:
        inside = (d >= 0.0) & (d < radius)
        return np.where(inside, height * (1.0 - (d / radius) ** 2) ** 2, 0.0)

    return profile


def exp_profile(height: float, rate: float, *, cutoff: float = np.inf) -> Profile:
    """Raise one side of the fault by `height * exp(rate * d)` for `0 <= d <= cutoff`.

    `rate` must be negative so the displacement decays away from the fault.
    """

    if rate >= 0:
        raise ValueError("rate must be negative")

    def profile(d: np.ndarray) -> np.ndarray:
        inside = (d >= 0.0) & (d <= cutoff)
        return np.where(inside, height * np.exp(rate * np.where(inside, d, 0.0)), 0.0)

    return profile
