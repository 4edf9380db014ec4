"""Shared test fixtures for map generation tests."""

import pytest

from mapinator.config import MapSettings
from mapinator.generator import WorldMap, generate
from mapinator.lattice import RegionLattice, build_lattice


@pytest.fixture
def small_lattice() -> RegionLattice:
    """12x12 relaxed lattice."""
    return build_lattice("fixture-seed", 12, 0.5)


@pytest.fixture
def small_settings() -> MapSettings:
    """Settings that resolve to a 10x10 lattice."""
    return MapSettings(resolution=0.0)


@pytest.fixture
def small_world(small_settings: MapSettings) -> WorldMap:
    """10x10 map for the fixture seed."""
    return generate("fixture-seed", small_settings)
