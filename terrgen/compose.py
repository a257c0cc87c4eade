"""Terrain composition pipeline."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import stats
import structlog

from terrgen.config import DEFAULT_DIM, DEFAULT_SIZE, FaultConfig, FractalConfig, GeneratorConfig, NoiseConfig
from terrgen.displacement import diamond_square, midpoint_displacement, seed_corners, subdivision_levels
from terrgen.fault import FaultLine, bump_profile, fault_displacement
from terrgen.heightgrid import HeightGrid
from terrgen.noise import NoiseField, add_octaves
from terrgen.rng import Distribution, RngStream, constant, exp_scaled_unit_circle, unit_circle
from terrgen.voronoi import VoronoiField, euclidean, squared_euclidean

logger = structlog.get_logger()

_FRACTAL_ALGORITHMS = {
    "diamond_square": diamond_square,
    "midpoint": midpoint_displacement,
}
_DISTANCE_METRICS = {
    "euclidean": euclidean,
    "squared": squared_euclidean,
}
_GRADIENT_SAMPLERS = {
    "unit": unit_circle,
    "exp": exp_scaled_unit_circle,
}


@dataclass(frozen=True)
class TerrainResult:
    """Composed grid and the random structures drawn while building it."""

    grid: HeightGrid
    fractal_levels: int
    fault_lines: tuple[FaultLine, ...]
    voronoi: VoronoiField | None
    noise_fields: tuple[NoiseField, ...]


def generate_terrain(
    rng: RngStream,
    *,
    dim: tuple[int, int] = DEFAULT_DIM,
    size: tuple[float, float] = DEFAULT_SIZE,
    config: GeneratorConfig | None = None,
) -> TerrainResult:
    """Build a deterministic terrain by applying the configured passes to a flat grid.

    Passes run in a fixed order (fractal, faults, Voronoi, noise), each
    drawing from its own forked stream so that enabling one pass does not
    perturb the others.
    """

    cfg = config or GeneratorConfig()
    _validate(cfg)

    grid = HeightGrid.new_flat(dim, size)

    levels = 0
    if cfg.fractal.enabled:
        levels = _apply_fractal(grid, rng.fork("fractal"), cfg.fractal)

    lines = _apply_faults(grid, rng.fork("fault"), cfg.fault)

    voronoi = None
    if cfg.voronoi.seed_count > 0:
        voronoi = VoronoiField.random(grid, cfg.voronoi.seed_count, rng.fork("voronoi").generator())
        voronoi.apply_to(grid, cfg.voronoi.weights, _DISTANCE_METRICS[cfg.voronoi.metric])

    fields = _apply_noise(grid, rng.fork("noise"), cfg.noise)

    lo, hi = grid.range()
    logger.info(
        "terrain_generated",
        dim=grid.dim,
        size=grid.size,
        fractal_levels=levels,
        faults=len(lines),
        voronoi_seeds=0 if voronoi is None else len(voronoi),
        octaves=len(fields),
        height_min=lo,
        height_max=hi,
    )
    return TerrainResult(
        grid=grid,
        fractal_levels=levels,
        fault_lines=tuple(lines),
        voronoi=voronoi,
        noise_fields=tuple(fields),
    )


def _validate(cfg: GeneratorConfig) -> None:
    if cfg.fractal.algorithm not in _FRACTAL_ALGORITHMS:
        raise ValueError(f"unknown fractal algorithm: {cfg.fractal.algorithm!r}")
    if cfg.voronoi.metric not in _DISTANCE_METRICS:
        raise ValueError(f"unknown distance metric: {cfg.voronoi.metric!r}")
    if cfg.noise.gradient_sampler not in _GRADIENT_SAMPLERS:
        raise ValueError(f"unknown gradient sampler: {cfg.noise.gradient_sampler!r}")
    if cfg.fault.count < 0 or cfg.voronoi.seed_count < 0 or cfg.noise.octaves < 0:
        raise ValueError("pass counts must be >= 0")


def _apply_fractal(grid: HeightGrid, rng: RngStream, cfg: FractalConfig) -> int:
    subdivision_levels(grid)
    corners = stats.lognorm(s=cfg.corner_log_sigma, scale=np.exp(cfg.corner_log_mean))
    seed_corners(grid, corners, rng.fork("corners").generator())
    displacement: Distribution = constant(0.0)
    if cfg.roughness > 0:
        displacement = stats.uniform(loc=-cfg.roughness, scale=2.0 * cfg.roughness)
    algorithm = _FRACTAL_ALGORITHMS[cfg.algorithm]
    return algorithm(grid, cfg.skip_levels, rng.fork("levels").generator(), displacement)


def _apply_faults(grid: HeightGrid, rng: RngStream, cfg: FaultConfig) -> list[FaultLine]:
    if cfg.count == 0:
        return []
    gen = rng.generator()
    radius_scale = min(grid.size)
    radii = stats.lognorm(s=cfg.radius_log_sigma, scale=np.exp(cfg.radius_log_mean)).rvs(
        size=cfg.count, random_state=gen
    )
    lines = []
    for radius in radii * radius_scale:
        r = float(radius)
        lines.append(fault_displacement(grid, gen, (0.0, r), bump_profile(cfg.height_factor * r, r)))
    return lines


def _apply_noise(grid: HeightGrid, rng: RngStream, cfg: NoiseConfig) -> list[NoiseField]:
    if cfg.octaves == 0:
        return []
    frequency = cfg.base_cycles / max(grid.size)
    return add_octaves(
        grid,
        rng.generator(),
        octaves=cfg.octaves,
        amplitude=cfg.amplitude,
        frequency=frequency,
        lattice_size=cfg.lattice_size,
        lacunarity=cfg.lacunarity,
        gain=cfg.gain,
        sampler=_GRADIENT_SAMPLERS[cfg.gradient_sampler],
    )
