"""
Output presenters for the buildstash CLI.
"""

from .console import ConsolePresenter

__all__ = ["ConsolePresenter"]
