"""
Protocol definitions for buildstash's service interfaces.
"""

from .detector import IVCSDetector
from .logger import ILogger
from .presenter import IPresenter
from .workspace import IFileHandle, IUrlBaseResolver

__all__ = [
    "IFileHandle",
    "ILogger",
    "IPresenter",
    "IUrlBaseResolver",
    "IVCSDetector",
]
