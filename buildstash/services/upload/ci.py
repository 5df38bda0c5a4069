"""
CI provenance helpers.

Turns the runtime's RunInfo (relative paths, start time) into the
CIProvenance sent to the registry (absolute URLs, HH:MM:SS duration).
"""

from __future__ import annotations

from datetime import datetime, timezone

from ...core.interfaces.workspace import IUrlBaseResolver
from ...core.models.context import RunInfo
from ...core.models.upload import CIProvenance

DEFAULT_SOURCE = "jenkins"


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as ``HH:MM:SS`` (hours may exceed 24)."""
    total = max(int(seconds), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def absolute_url(root_url: str | None, path: str | None) -> str | None:
    """
    Join a runtime-relative path onto the root URL.

    The root loses its trailing slash and the path gains a leading one.
    Without a root the relative path is returned unchanged.
    """
    if not path:
        return None
    if path.startswith(("http://", "https://")):
        return path
    if not root_url:
        return path
    base = root_url.rstrip("/")
    if not path.startswith("/"):
        path = "/" + path
    return base + path


def elapsed_seconds(run: RunInfo, now: datetime | None = None) -> float:
    """Run duration, measured from the start time while the run is live."""
    if run.duration_seconds:
        return run.duration_seconds
    if run.started_at is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    started = run.started_at
    if started.tzinfo is None:
        # Naive start times are local wall-clock time
        started = started.astimezone()
    if now.tzinfo is None:
        now = now.astimezone()
    return max((now - started).total_seconds(), 0.0)


def build_ci_provenance(
    run: RunInfo | None,
    url_base: IUrlBaseResolver | None = None,
    source: str = DEFAULT_SOURCE,
    now: datetime | None = None,
) -> CIProvenance:
    """Build CIProvenance for a run, or a source-only record without one."""
    if run is None:
        return CIProvenance(source=source)

    root = url_base.root_url() if url_base is not None else None
    duration = None
    if run.started_at is not None or run.duration_seconds:
        duration = format_duration(elapsed_seconds(run, now))

    return CIProvenance(
        source=source,
        pipeline=run.pipeline,
        run_id=run.run_id,
        run_url=absolute_url(root, run.run_path),
        pipeline_url=absolute_url(root, run.pipeline_path),
        build_duration=duration,
    )
