"""Options shared by commands that resolve version-control provenance."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import click

from ...core.models.vcs import VCProvenance

F = TypeVar("F", bound=Callable[..., Any])

_VC_OPTIONS = (
    ("host_type", "Version control system (git, svn, hg, bzr, perforce, cvs)"),
    ("host", "Hosting service (github, gitlab, bitbucket, ...)"),
    ("repo_name", "Repository name"),
    ("repo_url", "Repository URL"),
    ("branch", "Branch name"),
    ("commit_sha", "Commit or changelist identifier"),
    ("commit_url", "Web URL of the commit"),
)


def vc_options(f: F) -> F:
    """Add ``--vc-<field>`` overrides; values given here are never replaced."""
    for name, help_text in reversed(_VC_OPTIONS):
        flag = "--vc-" + name.replace("_", "-")
        f = click.option(flag, f"vc_{name}", default=None, help=help_text)(f)
    return f


def pop_vc_overrides(kwargs: dict[str, Any]) -> VCProvenance:
    """Remove the ``vc_*`` options from ``kwargs`` and return them as provenance."""
    values = {name: kwargs.pop(f"vc_{name}", None) for name, _ in _VC_OPTIONS}
    return VCProvenance(**values)
