"""Coherent gradient noise over a hashed lattice of gradient vectors."""

from __future__ import annotations

from typing import Any, Callable

import numpy as np
import structlog

from terrgen.heightgrid import HeightGrid
from terrgen.rng import unit_circle

logger = structlog.get_logger()

GradientSampler = Callable[[np.random.Generator, int], np.ndarray]

_PCG_MULTIPLIER = np.uint64(14647171131086947261)
_Y_STRIDE = np.uint64(1 << 32)


class NotPowerOfTwoError(ValueError):
    def __init__(self, count: int) -> None:
        super().__init__(f"gradient count must be a power of two, got {count}")
        self.count = count


def _smoothstep(t: np.ndarray) -> np.ndarray:
    return t * t * (3.0 - 2.0 * t)


def _lerp(t: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a + t * (b - a)


def _hash_index(key: np.ndarray, mask: int) -> np.ndarray:
    # PCG-style output permutation; fast mixing only, not cryptographic.
    with np.errstate(over="ignore"):
        x = key * _PCG_MULTIPLIER
        rot = (x >> np.uint64(59)).astype(np.uint32)
        xsh = (((x >> np.uint64(18)) ^ x) >> np.uint64(27)).astype(np.uint32)
        rotated = (xsh >> rot) | (xsh << ((np.uint32(32) - rot) & np.uint32(31)))
    return (rotated & np.uint32(mask)).astype(np.intp)


class NoiseField:
    """Perlin-style noise sampled as a pure function of continuous `(x, y)`.

    Coordinates are multiplied by `scale` before sampling, so the lattice
    spacing in input units is `1 / scale`. Each lattice corner is hashed to
    one of the `n` gradients; `n` must be a power of two.
    """

    def __init__(self, scale: float, gradients: Any) -> None:
        grads = np.array(gradients, dtype=np.float64, copy=True)
        if grads.ndim != 2 or grads.shape[1] != 2:
            raise ValueError("gradients must have shape (n, 2)")
        count = grads.shape[0]
        if count < 1 or count & (count - 1):
            raise NotPowerOfTwoError(count)
        grads.flags.writeable = False
        self._scale = float(scale)
        self._gradients = grads
        self._mask = count - 1

    @classmethod
    def random(
        cls,
        scale: float,
        n: int,
        rng: np.random.Generator,
        sampler: GradientSampler = unit_circle,
    ) -> "NoiseField":
        """Sample `n` gradients with `sampler` (classic Perlin uses unit vectors)."""

        if n < 1 or n & (n - 1):
            raise NotPowerOfTwoError(n)
        return cls(scale, sampler(rng, n))

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def gradients(self) -> np.ndarray:
        return self._gradients

    def get(self, x: Any, y: Any) -> Any:
        """Noise value at `(x, y)`; accepts scalars or broadcastable arrays."""

        scalar = np.ndim(x) == 0 and np.ndim(y) == 0
        px, py = np.broadcast_arrays(
            np.atleast_1d(np.asarray(x, dtype=np.float64)) * self._scale,
            np.atleast_1d(np.asarray(y, dtype=np.float64)) * self._scale,
        )
        fx = np.floor(px)
        fy = np.floor(py)
        rx0 = px - fx
        ry0 = py - fy
        rx1 = rx0 - 1.0
        ry1 = ry0 - 1.0

        # Lattice index as two's-complement so negative cells hash distinctly.
        ix = fx.astype(np.int64).view(np.uint64)
        iy = fy.astype(np.int64).view(np.uint64)
        with np.errstate(over="ignore"):
            key = ix + (iy << np.uint64(32))
            g00 = self._gradients[_hash_index(key, self._mask)]
            g10 = self._gradients[_hash_index(key + np.uint64(1), self._mask)]
            g01 = self._gradients[_hash_index(key + _Y_STRIDE, self._mask)]
            g11 = self._gradients[_hash_index(key + _Y_STRIDE + np.uint64(1), self._mask)]

        sx = _smoothstep(rx0)
        sy = _smoothstep(ry0)
        a = _lerp(sx, rx0 * g00[..., 0] + ry0 * g00[..., 1], rx1 * g10[..., 0] + ry0 * g10[..., 1])
        b = _lerp(sx, rx0 * g01[..., 0] + ry1 * g01[..., 1], rx1 * g11[..., 0] + ry1 * g11[..., 1])
        value = _lerp(sy, a, b)
        if scalar:
            return float(value[0])
        return value

    def __call__(self, x: Any, y: Any) -> Any:
        return self.get(x, y)


def add_octaves(
    grid: HeightGrid,
    rng: np.random.Generator,
    *,
    octaves: int,
    amplitude: float,
    frequency: float,
    lattice_size: int = 1024,
    lacunarity: float = 2.0,
    gain: float = 0.5,
    sampler: GradientSampler = unit_circle,
) -> list[NoiseField]:
    """Sum `octaves` independent noise fields into `grid` and return them.

    Each octave multiplies the frequency by `lacunarity` and the amplitude by
    `gain` (doubling and halving by default).
    """

    if octaves < 0:
        raise ValueError("octaves must be >= 0")

    fields: list[NoiseField] = []
    for octave in range(octaves):
        field = NoiseField.random(frequency, lattice_size, rng, sampler)
        grid.add_surface(field, amplitude)
        fields.append(field)
        logger.debug("noise_octave", octave=octave, amplitude=amplitude, frequency=frequency)
        amplitude *= gain
        frequency *= lacunarity
    return fields
