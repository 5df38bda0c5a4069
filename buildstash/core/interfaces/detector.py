"""
Provenance detector interface.

Each detector reads one source of version-control information (the
runtime's SCM object, Git environment variables, Perforce environment
variables) and reports whatever it found.
"""

from abc import ABC, abstractmethod

from ..models.context import BuildContext
from ..models.vcs import VCProvenance


class IVCSDetector(ABC):
    """
    Interface for a single provenance source.

    Detectors may return partial information. Returning None means the
    source had nothing to say; raising is tolerated but treated the same.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Detector identifier.

        Examples: 'scm', 'git-env', 'perforce-env'
        """
        pass

    @abstractmethod
    def attempt(self, context: BuildContext) -> VCProvenance | None:
        """
        Read provenance from this detector's source.

        Args:
            context: Caller build context

        Returns:
            Partial provenance, or None if the source is absent
        """
        pass
