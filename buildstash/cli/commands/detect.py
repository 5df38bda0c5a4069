"""
Native Click implementation of the detect command.

Usage: buildstash detect [--vc-* overrides]
"""

from __future__ import annotations

import click

from ...core.container import get_container
from ...core.interfaces.presenter import IPresenter
from ...services.metadata import MetadataResolver
from ..context import BuildstashContext
from ._options import pop_vc_overrides, vc_options


@click.command("detect")
@vc_options
@click.pass_obj
def detect(ctx: BuildstashContext, **kwargs) -> None:
    """Show the version-control provenance a publication would carry.

    Resolves provenance from the local git working copy and the CI
    environment without contacting the registry.

    \b
    Examples:

        buildstash detect

        buildstash detect --vc-branch release/2.0
    """
    partial = pop_vc_overrides(kwargs)
    provenance = MetadataResolver().resolve(ctx.build_context(), partial)

    presenter = get_container().resolve(IPresenter)  # type: ignore[type-abstract]
    presenter.print_provenance(provenance)
    if not provenance.is_complete:
        presenter.print("")
        presenter.print_warning(f"Not detected: {', '.join(provenance.missing_fields())}")
