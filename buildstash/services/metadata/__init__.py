"""Version-control metadata resolution."""

from .resolver import MetadataResolver, default_detectors

__all__ = ["MetadataResolver", "default_detectors"]
