"""
Click command implementations for the buildstash CLI.

Each module corresponds to one command (e.g., upload.py implements
'buildstash upload'). Commands are registered with the main group by
register_commands() in buildstash.cli.
"""

from .config import config
from .detect import detect
from .upload import upload

COMMANDS = [
    config,
    detect,
    upload,
]

__all__ = [
    "COMMANDS",
    "config",
    "detect",
    "upload",
]
