"""
Caller context handed to provenance detectors and the publication pipeline.

These wrap objects owned by the hosting runtime (an SCM configuration, a
build record) so they are plain dataclasses rather than validated models.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class BuildContext:
    """What the hosting runtime knows about the current build.

    Attributes:
        scm: The job's SCM configuration object, if any. Inspected by duck
            typing (class name, ``user_remote_configs``, ``branches``).
        build: The build record, if any. Inspected for ``actions`` carrying
            revision-tracking data and for a ``change_set``.
        env: Environment variables visible to the build.
    """

    scm: Any = None
    build: Any = None
    env: Mapping[str, str] = field(default_factory=dict)

    def getenv(self, name: str) -> str | None:
        """Environment value, with blank strings treated as absent."""
        value = self.env.get(name)
        if value is None or not str(value).strip():
            return None
        return str(value).strip()


@dataclass
class RunInfo:
    """CI run facts before URLs are made absolute and duration formatted.

    Attributes:
        pipeline: Pipeline (job) name
        run_id: Run (build) number or id
        run_path: Run URL, relative to the runtime root
        pipeline_path: Pipeline URL, relative to the runtime root
        started_at: When the run started
        duration_seconds: Elapsed seconds, 0 when still running
    """

    pipeline: str | None = None
    run_id: str | None = None
    run_path: str | None = None
    pipeline_path: str | None = None
    started_at: datetime | None = None
    duration_seconds: float = 0.0
