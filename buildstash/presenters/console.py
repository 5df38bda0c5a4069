"""
Console presenter for terminal output.

Implements human-readable output formatting for the CLI.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any

from ..core.interfaces.presenter import IPresenter

if TYPE_CHECKING:
    from ..core.models.registry import BuildRecord
    from ..core.models.vcs import VCProvenance


class ConsolePresenter(IPresenter):
    """
    Console output presenter.

    Formats output for human-readable terminal display.
    """

    def __init__(self, use_color: bool = True, file=None) -> None:
        """
        Initialize console presenter.

        Args:
            use_color: Whether to use ANSI color codes
            file: Output file (defaults to sys.stdout)
        """
        self._use_color = use_color and sys.stdout.isatty()
        self._file = file or sys.stdout
        self._err_file = sys.stderr

    def _color(self, code: str, text: str) -> str:
        if self._use_color:
            return f"\033[{code}m{text}\033[0m"
        return text

    def print(self, message: str) -> None:
        """Print a message to output."""
        print(message, file=self._file)

    def print_error(self, message: str) -> None:
        """Print an error message to stderr."""
        print(self._color("91", f"Error: {message}"), file=self._err_file)

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        print(self._color("93", f"Warning: {message}"), file=self._err_file)

    def print_success(self, message: str) -> None:
        """Print a success message."""
        print(self._color("92", message), file=self._file)

    def print_key_value(self, key: str, value: Any, indent: int = 0) -> None:
        """Print a key-value pair."""
        prefix = "  " * indent
        print(f"{prefix}{self._color('1', key + ':')} {value}", file=self._file)

    def print_section(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{self._color('1', title)}", file=self._file)
        print("-" * len(title), file=self._file)

    def print_build_record(self, record: BuildRecord) -> None:
        """Print the result of a publication."""
        if record.pending_processing:
            self.print_success("Build uploaded, processing pending")
        else:
            self.print_success("Build published")
        if record.build_id:
            self.print_key_value("Build", record.build_id, indent=1)
        if record.build_info_url:
            self.print_key_value("Info", record.build_info_url, indent=1)
        if record.download_url:
            self.print_key_value("Download", record.download_url, indent=1)
        if record.message:
            self.print_key_value("Message", record.message, indent=1)

    def print_provenance(self, provenance: VCProvenance) -> None:
        """Print resolved version-control provenance, one field per line."""
        self.print_section("Version control")
        for name in provenance.FIELDS:
            value = getattr(provenance, name)
            self.print_key_value(name, value if value is not None else "-", indent=1)

