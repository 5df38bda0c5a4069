"""
Provenance detector plugins.

BUILTIN_DETECTORS lists the detectors in precedence order: native SCM
introspection first, then Git environment variables, then Perforce.
"""

from .base import BaseVCSDetector
from .environment import GitEnvironmentDetector
from .git import GitWorkingCopy
from .perforce import PerforceEnvironmentDetector
from .scm import ScmIntrospectionDetector

BUILTIN_DETECTORS: tuple[type[BaseVCSDetector], ...] = (
    ScmIntrospectionDetector,
    GitEnvironmentDetector,
    PerforceEnvironmentDetector,
)

__all__ = [
    "BUILTIN_DETECTORS",
    "BaseVCSDetector",
    "GitEnvironmentDetector",
    "GitWorkingCopy",
    "PerforceEnvironmentDetector",
    "ScmIntrospectionDetector",
]
