"""
Click context extension for the buildstash CLI.

Provides BuildstashContext, created once per invocation and passed to
commands via ctx.obj, plus the environment-backed collaborators the
publication pipeline needs (CI run facts, runtime root URL).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.models.context import BuildContext, RunInfo
from ..plugins.vcs.git import GitWorkingCopy

# Jenkins-style CI variables
ENV_JOB_NAME = "JOB_NAME"
ENV_BUILD_NUMBER = "BUILD_NUMBER"
ENV_BUILD_URL = "BUILD_URL"
ENV_JOB_URL = "JOB_URL"
ENV_ROOT_URL = "JENKINS_URL"


def _env_value(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


class EnvUrlBaseResolver:
    """Root URL of the CI server, read from the environment."""

    def __init__(self, env: Mapping[str, str], variable: str = ENV_ROOT_URL) -> None:
        self._env = env
        self._variable = variable

    def root_url(self) -> str | None:
        return _env_value(self._env, self._variable)


def run_info_from_env(
    env: Mapping[str, str], started_at: datetime | None = None
) -> RunInfo | None:
    """CI run facts from Jenkins-style variables, or None outside CI."""
    pipeline = _env_value(env, ENV_JOB_NAME)
    run_id = _env_value(env, ENV_BUILD_NUMBER)
    if pipeline is None and run_id is None:
        return None
    return RunInfo(
        pipeline=pipeline,
        run_id=run_id,
        run_path=_env_value(env, ENV_BUILD_URL),
        pipeline_path=_env_value(env, ENV_JOB_URL),
        started_at=started_at,
    )


@dataclass
class BuildstashContext:
    """Extended context passed through the Click command chain.

    Attributes:
        cwd: Current working directory
        env: Environment variables
        config: Loaded configuration dictionary
    """

    cwd: Path
    env: dict[str, str] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, cwd: Path | None = None) -> BuildstashContext:
        """Create a BuildstashContext for the current environment.

        Args:
            cwd: Working directory override (defaults to Path.cwd())
        """
        from ..config import load_config

        if cwd is None:
            cwd = Path.cwd()
        return cls(
            cwd=cwd,
            env=dict(os.environ),
            config=load_config(start_dir=str(cwd)),
        )

    @property
    def working_copy(self) -> GitWorkingCopy:
        return GitWorkingCopy(str(self.cwd))

    def build_context(self) -> BuildContext:
        """Provenance context: the local working copy plus the environment."""
        return self.working_copy.context(self.env)

    def run_info(self, started_at: datetime | None = None) -> RunInfo | None:
        return run_info_from_env(self.env, started_at)

    def url_base(self) -> EnvUrlBaseResolver:
        return EnvUrlBaseResolver(self.env)

    def upload_default(self, key: str) -> Any:
        """Configured default from the ``upload`` section."""
        return self.config.get("upload", {}).get(key)
