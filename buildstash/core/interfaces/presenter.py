"""
Presenter interface definitions for output formatting.

Enables pluggable output formats (console, JSON, etc.)
following the Interface Segregation Principle.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..models.registry import BuildRecord
    from ..models.vcs import VCProvenance


class IPresenter(ABC):
    """
    Interface for output presentation.

    Implementations handle formatting and displaying output
    to the user in various formats (console, JSON, etc.).
    """

    @abstractmethod
    def print(self, message: str) -> None:
        """Print a message to output."""
        pass

    @abstractmethod
    def print_error(self, message: str) -> None:
        """Print an error message."""
        pass

    @abstractmethod
    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        pass

    @abstractmethod
    def print_success(self, message: str) -> None:
        """Print a success message."""
        pass

    @abstractmethod
    def print_key_value(self, key: str, value: Any, indent: int = 0) -> None:
        """Print a key-value pair."""
        pass

    @abstractmethod
    def print_section(self, title: str) -> None:
        """Print a section header."""
        pass

    @abstractmethod
    def print_build_record(self, record: BuildRecord) -> None:
        """Print the result of a publication."""
        pass

    @abstractmethod
    def print_provenance(self, provenance: VCProvenance) -> None:
        """Print resolved version-control provenance."""
        pass
