"""
Native Click implementation of the upload command.

Usage: buildstash upload PRIMARY --major X --minor Y --patch Z --platform P --stream S [options]
"""

from __future__ import annotations

import json
from datetime import datetime

import click

from ...core.container import get_container
from ...core.exceptions import BuildstashException
from ...core.interfaces.presenter import IPresenter
from ...core.models.upload import VersionInfo
from ...registry_client import RegistryClient
from ...services.upload import PublicationInputs, PublicationPipeline
from ...services.workspace import LocalFileHandle
from ..context import BuildstashContext
from ._options import pop_vc_overrides, vc_options


@click.command("upload")
@click.argument("primary", type=click.Path(dir_okay=False))
@click.option("--expansion", type=click.Path(dir_okay=False), help="Expansion file")
@click.option("--major", required=True, help="Major version component")
@click.option("--minor", required=True, help="Minor version component")
@click.option("--patch", required=True, help="Patch version component")
@click.option("--extra", default=None, help="Pre-release component (e.g. beta.1)")
@click.option("--meta", default=None, help="Build metadata component")
@click.option("--custom-build-number", default=None, help="Custom build number")
@click.option("--platform", default=None, help="Target platform (default: upload.platform)")
@click.option("--stream", default=None, help="Release stream (default: upload.stream)")
@click.option("--label", "labels", multiple=True, help="Label to attach (repeatable)")
@click.option(
    "--architecture", "architectures", multiple=True, help="Architecture tag (repeatable)"
)
@click.option("--notes", default=None, help="Free-text notes")
@click.option(
    "--started-at",
    type=click.DateTime(),
    default=None,
    help="When the CI run started (local time), used for the build duration",
)
@vc_options
@click.option("--api-key", envvar="BUILDSTASH_API_KEY", default=None, help="Application API key")
@click.option("--dry-run", is_flag=True, help="Print the upload request without sending it")
@click.pass_obj
def upload(
    ctx: BuildstashContext,
    primary: str,
    expansion: str | None,
    major: str,
    minor: str,
    patch: str,
    extra: str | None,
    meta: str | None,
    custom_build_number: str | None,
    platform: str | None,
    stream: str | None,
    labels: tuple[str, ...],
    architectures: tuple[str, ...],
    notes: str | None,
    started_at: datetime | None,
    api_key: str | None,
    dry_run: bool,
    **kwargs,
) -> None:
    """Upload a build to Buildstash.

    Version-control provenance is detected from the working copy and the
    CI environment; any --vc-* option given here takes precedence.

    \b
    Examples:

        buildstash upload app.apk --major 1 --minor 2 --patch 3 \\
            --platform android --stream beta

        buildstash upload game.apk --expansion main.obb --major 2 \\
            --minor 0 --patch 0 --platform android --stream release \\
            --label nightly

        buildstash upload app.ipa ... --dry-run   # Show the request only
    """
    presenter = get_container().resolve(IPresenter)  # type: ignore[type-abstract]

    platform = platform or ctx.upload_default("platform")
    stream = stream or ctx.upload_default("stream")
    if not platform:
        raise click.UsageError("Missing --platform (or set upload.platform)")
    if not stream:
        raise click.UsageError("Missing --stream (or set upload.stream)")

    inputs = PublicationInputs(
        primary=LocalFileHandle(primary),
        expansion=LocalFileHandle(expansion) if expansion else None,
        version=VersionInfo(
            major=major,
            minor=minor,
            patch=patch,
            extra=extra,
            meta=meta,
            custom_build_number=custom_build_number,
        ),
        platform=platform,
        stream=stream,
        labels=[*(ctx.upload_default("labels") or []), *labels],
        architectures=[*(ctx.upload_default("architectures") or []), *architectures],
        notes=notes,
        vc=pop_vc_overrides(kwargs),
        run=ctx.run_info(started_at),
    )

    api = ctx.config.get("api", {})
    transfer = ctx.config.get("transfer", {})
    client = RegistryClient(
        api_key=api_key,
        timeout=api.get("timeout", 30.0),
        storage_timeout=transfer.get("storage_timeout", 300.0),
    )
    if not dry_run and not client.is_configured():
        raise click.ClickException(
            "No API key configured. Set BUILDSTASH_API_KEY or pass --api-key."
        )

    pipeline = PublicationPipeline.from_config(
        client, url_base=ctx.url_base(), start_dir=str(ctx.cwd)
    )

    try:
        if dry_run:
            payload = pipeline.preview(inputs, ctx.build_context())
            presenter.print("Dry run - would send:")
            presenter.print(json.dumps(payload, indent=2))
            return

        record = pipeline.publish(inputs, ctx.build_context())
    except BuildstashException as e:
        presenter.print_error(str(e))
        raise SystemExit(e.exit_code) from e
    except KeyboardInterrupt:
        pipeline.cancel()
        presenter.print_error("Upload cancelled")
        raise SystemExit(130) from None

    presenter.print_build_record(record)
