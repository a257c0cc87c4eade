"""Configuration models for terrain composition."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


DEFAULT_DIM = (129, 129)
DEFAULT_SIZE = (100.0, 100.0)


@dataclass(frozen=True)
class FractalConfig:
    """Controls corner seeding and fractal subdivision.

    Corner heights are log-normal; per-level displacement is uniform in
    `[-roughness, roughness]` before scaling by half the quad side.
    """

    enabled: bool = True
    algorithm: str = "diamond_square"
    skip_levels: int = 0
    corner_log_mean: float = 0.5
    corner_log_sigma: float = 1.0
    roughness: float = 0.1


@dataclass(frozen=True)
class FaultConfig:
    """Controls repeated fault-line displacement with a bump profile.

    Fault radius is log-normal as a fraction of the shorter grid side; the
    bump height is `height_factor * radius`.
    """

    count: int = 0
    radius_log_mean: float = -2.5
    radius_log_sigma: float = 0.5
    height_factor: float = 10.0


@dataclass(frozen=True)
class VoronoiConfig:
    """Controls the additive Voronoi field."""

    seed_count: int = 0
    weights: tuple[float, ...] = (-1.0, 1.0)
    metric: str = "euclidean"


@dataclass(frozen=True)
class NoiseConfig:
    """Controls summed gradient-noise octaves.

    `base_cycles` is the number of lattice cells across the longer grid side
    for the first octave.
    """

    octaves: int = 0
    amplitude: float = 20.0
    base_cycles: float = 1.0
    lattice_size: int = 1024
    lacunarity: float = 2.0
    gain: float = 0.5
    gradient_sampler: str = "unit"


@dataclass(frozen=True)
class GeneratorConfig:
    """Primary composition configuration."""

    fractal: FractalConfig = field(default_factory=FractalConfig)
    fault: FaultConfig = field(default_factory=FaultConfig)
    voronoi: VoronoiConfig = field(default_factory=VoronoiConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
