"""
Git environment-variable detector.

CI servers export GIT_URL, GIT_BRANCH, GIT_COMMIT and GIT_COMMIT_SHORT for
pipeline builds where the SCM object is not reachable.
"""

from ...core.models.context import BuildContext
from ...core.models.vcs import VCProvenance
from ...utils.vcs_url import clean_branch, detect_host, extract_repo_name
from .base import BaseVCSDetector
from .scm import tracked_revision_sha


class GitEnvironmentDetector(BaseVCSDetector):
    """Provenance from ``GIT_*`` environment variables."""

    detector_name = "git-env"

    def attempt(self, context: BuildContext) -> VCProvenance | None:
        git_url = context.getenv("GIT_URL")
        git_branch = context.getenv("GIT_BRANCH")
        git_commit = context.getenv("GIT_COMMIT")
        short_commit = context.getenv("GIT_COMMIT_SHORT")

        if not any((git_url, git_branch, git_commit, short_commit)):
            return None

        commit = git_commit
        if commit is None and short_commit:
            full = tracked_revision_sha(context.build)
            commit = full if full and full.startswith(short_commit) else short_commit

        return VCProvenance(
            host_type="git" if (git_url or git_commit) else None,
            host=detect_host(git_url),
            repo_name=extract_repo_name(git_url),
            repo_url=git_url,
            branch=clean_branch(git_branch),
            commit_sha=commit,
        )
