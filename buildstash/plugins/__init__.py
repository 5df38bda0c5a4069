"""
Buildstash plugin architecture.

This package contains provider implementations for external sources:
- vcs: Version-control provenance detectors (SCM objects, Git, Perforce)

New detectors can be added without modifying existing code by
registering them with the service container.
"""

from . import vcs

__all__ = ["vcs"]
