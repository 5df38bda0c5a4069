"""Integration tests: provenance from a real git working copy."""

import os
import shutil
import subprocess
from pathlib import Path

import pytest
from click.testing import CliRunner

from buildstash.cli import cli
from buildstash.plugins.vcs import GitWorkingCopy
from buildstash.services.metadata import MetadataResolver

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed"),
]


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
        env={**os.environ, "GIT_CONFIG_NOSYSTEM": "1"},
    )
    return result.stdout.strip()


@pytest.fixture
def repo(isolated_env: Path) -> Path:
    """A repository on branch main with one commit and a GitHub origin."""
    _git(isolated_env, "init", "-q")
    _git(isolated_env, "checkout", "-q", "-b", "main")
    _git(isolated_env, "config", "user.email", "ci@example.com")
    _git(isolated_env, "config", "user.name", "CI")
    _git(isolated_env, "remote", "add", "origin", "git@github.com:acme/widget.git")
    (isolated_env / "README").write_text("widget\n")
    _git(isolated_env, "add", "README")
    _git(isolated_env, "commit", "-q", "-m", "initial")
    return isolated_env


def test_working_copy_resolves_full_provenance(repo: Path) -> None:
    """Remote, branch and HEAD of a local clone resolve to complete provenance."""
    sha = _git(repo, "rev-parse", "HEAD")

    context = GitWorkingCopy(str(repo)).context({})
    provenance = MetadataResolver().resolve(context)

    assert provenance.host_type == "git"
    assert provenance.host == "github"
    assert provenance.repo_name == "widget"
    assert provenance.branch == "main"
    assert provenance.commit_sha == sha
    assert provenance.commit_url == f"https://github.com/acme/widget/commit/{sha}"


def test_detached_head_has_no_branch(repo: Path) -> None:
    """A detached HEAD reports no branch from the working copy."""
    _git(repo, "checkout", "-q", "--detach")
    assert GitWorkingCopy(str(repo)).get_branch() is None


def test_not_a_repository(isolated_env: Path) -> None:
    """Outside a repository the working copy contributes nothing."""
    context = GitWorkingCopy(str(isolated_env)).context({})
    assert context.scm is None
    assert context.build is None


def test_detect_command_in_repository(repo: Path) -> None:
    """buildstash detect shows the working copy's provenance."""
    result = CliRunner().invoke(cli, ["detect"])

    assert result.exit_code == 0, result.output
    assert "repo_url: git@github.com:acme/widget.git" in result.output
    assert "branch: main" in result.output
