"""Procedural height-grid terrain synthesis and queries."""

from .config import DEFAULT_DIM, DEFAULT_SIZE, GeneratorConfig
from .heightgrid import HeightGrid
from .rng import RngStream

__all__ = ["DEFAULT_DIM", "DEFAULT_SIZE", "GeneratorConfig", "HeightGrid", "RngStream"]
