"""
Local Git working copy.

Outside a CI server there is no SCM object to introspect, so this module
reads the working copy with the ``git`` CLI and presents the result in the
same shape a CI server's Git integration exposes (an SCM named ``GitSCM``
with remote configs and branch specs, and a build record carrying
revision-tracking ``BuildData``). The SCM detector then treats both alike.
"""

import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field

from ...core.models.context import BuildContext


@dataclass
class RemoteConfig:
    url: str
    name: str = "origin"


@dataclass
class BranchSpec:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass
class Revision:
    sha1_string: str
    branch: BranchSpec | None = None


@dataclass
class BuildData:
    """Revision-tracking record for the checked-out commit."""

    last_built_revision: Revision | None = None
    remote_urls: list[str] = field(default_factory=list)
    builds_by_branch_name: dict[str, Revision] = field(default_factory=dict)


@dataclass
class GitSCM:
    """SCM configuration of the working copy."""

    user_remote_configs: list[RemoteConfig] = field(default_factory=list)
    branches: list[BranchSpec] = field(default_factory=list)


@dataclass
class LocalBuild:
    """Build record for a local (non-CI) publication."""

    actions: list = field(default_factory=list)


class GitWorkingCopy:
    """
    Read-only view of a local Git repository.

    Every query degrades to None when git is missing or the directory is
    not a repository.
    """

    def __init__(self, path: str | None = None) -> None:
        self._path = path

    def _git(self, *args: str) -> str | None:
        try:
            out = subprocess.check_output(
                ["git", *args], cwd=self._path, stderr=subprocess.DEVNULL
            )
        except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
            return None
        return out.decode().strip() or None

    def get_repo_root(self) -> str | None:
        """Get the git repository root directory."""
        return self._git("rev-parse", "--show-toplevel")

    def get_commit_hash(self) -> str | None:
        """Get the current commit hash."""
        return self._git("rev-parse", "HEAD")

    def get_branch(self) -> str | None:
        """Get the current branch name, None when HEAD is detached."""
        branch = self._git("rev-parse", "--abbrev-ref", "HEAD")
        if branch == "HEAD":
            return None
        return branch

    def get_remote_url(self, remote: str = "origin") -> str | None:
        """Get the URL for a remote."""
        return self._git("remote", "get-url", remote)

    def scm(self) -> GitSCM | None:
        """SCM configuration, or None outside a repository."""
        if self.get_repo_root() is None:
            return None
        scm = GitSCM()
        remote_url = self.get_remote_url()
        if remote_url:
            scm.user_remote_configs.append(RemoteConfig(url=remote_url))
        branch = self.get_branch()
        if branch:
            scm.branches.append(BranchSpec(name=branch))
        return scm

    def build_record(self) -> LocalBuild | None:
        """Build record with BuildData for HEAD, or None without commits."""
        sha = self.get_commit_hash()
        if sha is None:
            return None
        branch = self.get_branch()
        revision = Revision(sha1_string=sha, branch=BranchSpec(branch) if branch else None)
        data = BuildData(last_built_revision=revision)
        remote_url = self.get_remote_url()
        if remote_url:
            data.remote_urls.append(remote_url)
        if branch:
            data.builds_by_branch_name[branch] = revision
        return LocalBuild(actions=[data])

    def context(self, env: Mapping[str, str]) -> BuildContext:
        """Build context combining the working copy with ``env``."""
        return BuildContext(scm=self.scm(), build=self.build_record(), env=dict(env))
