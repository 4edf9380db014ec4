"""Custom exceptions for map generation."""


class MapgenError(Exception):
    """Base exception for map generation errors."""

    pass


class InvalidSettingsError(MapgenError, ValueError):
    """Raised when a setting falls outside its declared domain."""

    pass


class LatticeError(MapgenError):
    """Raised when the region lattice cannot be built or triangulated."""

    pass


class ClassificationError(MapgenError, AssertionError):
    """Raised when a value falls outside every band of a partition.

    The band partitions are total over their clamped domains, so this
    signals a broken partition invariant rather than bad user input.
    """

    pass
