"""Deterministic splittable RNG streams and sampling helpers."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
from typing import Any, Protocol

import numpy as np


class Distribution(Protocol):
    """Anything with a scipy.stats-style `rvs` method."""

    def rvs(self, size: Any = None, random_state: Any = None) -> Any: ...


def _normalize_seed(seed: int) -> int:
    return int(seed) & ((1 << 64) - 1)


def derive_seed(parent_seed: int, key: str, *, namespace: str = "terrgen-v1") -> int:
    """Derive a deterministic child seed from a parent seed and label."""

    payload = f"{namespace}:{_normalize_seed(parent_seed)}:{key}".encode("utf-8")
    digest = hashlib.blake2b(payload, digest_size=8, person=b"terrfork").digest()
    return int.from_bytes(digest, byteorder="big", signed=False)


@dataclass(frozen=True)
class RngStream:
    """Immutable RNG stream that can be forked by deterministic stage names."""

    seed: int
    namespace: str = "terrgen-v1"

    def fork(self, key: str) -> "RngStream":
        if not key:
            raise ValueError("fork key must be non-empty")
        return RngStream(derive_seed(self.seed, key, namespace=self.namespace), self.namespace)

    def generator(self) -> np.random.Generator:
        return np.random.Generator(np.random.PCG64(np.uint64(_normalize_seed(self.seed))))


@dataclass(frozen=True)
class Constant:
    """Degenerate distribution which always yields `value`."""

    value: float = 0.0

    def rvs(self, size: Any = None, random_state: Any = None) -> Any:
        if size is None:
            return self.value
        return np.full(size, self.value, dtype=np.float64)


def constant(value: float = 0.0) -> Constant:
    return Constant(float(value))


def sample(
    distribution: Distribution,
    rng: np.random.Generator,
    shape: int | tuple[int, ...],
    *,
    dtype: Any = np.float64,
) -> np.ndarray:
    """Draw an array of `shape` samples from `distribution` in the given dtype."""

    values = distribution.rvs(size=shape, random_state=rng)
    return np.broadcast_to(np.asarray(values, dtype=dtype), shape).copy()


def unit_circle(rng: np.random.Generator, size: int | tuple[int, ...] | None = None) -> np.ndarray:
    """Sample directions uniformly on the unit circle; the last axis holds (x, y)."""

    angle = rng.uniform(0.0, 2.0 * np.pi, size=size)
    return np.stack((np.cos(angle), np.sin(angle)), axis=-1)


def exp_scaled_unit_circle(rng: np.random.Generator, size: int | tuple[int, ...] | None = None) -> np.ndarray:
    """Unit directions scaled by Exp(1) magnitudes, giving steeper occasional slopes."""

    direction = unit_circle(rng, size)
    magnitude = rng.exponential(1.0, size=size)
    return direction * np.asarray(magnitude)[..., None]
