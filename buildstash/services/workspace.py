"""
Local workspace file handles.

LocalFileHandle is the filesystem implementation of IFileHandle used by
the CLI. Each read opens the file independently, so concurrent part
workers never share a file position.
"""

from pathlib import Path


class LocalFileHandle:
    """A file on local disk, read in byte ranges."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def __repr__(self) -> str:
        return f"LocalFileHandle({str(self._path)!r})"

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    def exists(self) -> bool:
        return self._path.is_file()

    def length(self) -> int:
        return self._path.stat().st_size

    def read_range(self, start: int, end: int) -> bytes:
        """Read bytes ``[start, end)``."""
        if start < 0 or end < start:
            raise ValueError(f"invalid byte range [{start}, {end})")
        with open(self._path, "rb") as f:
            f.seek(start)
            return f.read(end - start)
