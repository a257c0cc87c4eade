"""Surfaces represented by a height function over the plane."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol, Union

import numpy as np


class UnboundedSurface(Protocol):
    """A map from 2D coordinate to height, defined everywhere."""

    def get(self, x: Any, y: Any) -> Any: ...


SurfaceLike = Union[UnboundedSurface, Callable[[Any, Any], Any]]


@dataclass(frozen=True)
class Flat:
    """An infinite, flat surface at a fixed elevation."""

    elevation: float = 0.0

    def get(self, x: Any, y: Any) -> Any:
        return np.full(np.broadcast(x, y).shape, self.elevation, dtype=np.float64)


def sample_surface(surface: SurfaceLike, x: np.ndarray, y: np.ndarray, *, dtype: Any = np.float64) -> np.ndarray:
    """Evaluate a surface object or plain `(x, y)` callable on coordinate arrays."""

    sampler = surface.get if hasattr(surface, "get") else surface
    values = np.asarray(sampler(x, y), dtype=dtype)
    shape = np.broadcast(x, y).shape
    return np.broadcast_to(values, shape).copy()
