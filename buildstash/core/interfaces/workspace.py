"""
Workspace file access interfaces.

The publication core never opens files itself; it reads byte ranges
through a handle supplied by the caller.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class IFileHandle(Protocol):
    """A caller-owned file that can be measured and read in ranges."""

    @property
    def name(self) -> str:
        """Basename of the file."""
        ...

    def exists(self) -> bool:
        """Whether the file is present."""
        ...

    def length(self) -> int:
        """Size in bytes."""
        ...

    def read_range(self, start: int, end: int) -> bytes:
        """Read bytes ``[start, end)``."""
        ...


@runtime_checkable
class IUrlBaseResolver(Protocol):
    """Supplies the hosting runtime's root URL, if it has one."""

    def root_url(self) -> str | None:
        """Absolute root URL, e.g. ``https://ci.example.com/``."""
        ...
