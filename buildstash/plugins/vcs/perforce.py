"""
Perforce environment-variable detector.

The P4 plugin exports P4_CHANGELIST, P4_DEPOT_PATH, P4_PORT and P4_STREAM.
Changelists stand in for commits and depot paths for repositories.
"""

from ...core.models.context import BuildContext
from ...core.models.vcs import VCProvenance
from ...utils.vcs_url import perforce_commit_url, perforce_repo_name
from .base import BaseVCSDetector

PERFORCE = "perforce"


class PerforceEnvironmentDetector(BaseVCSDetector):
    """Provenance from ``P4_*`` environment variables."""

    detector_name = "perforce-env"

    def attempt(self, context: BuildContext) -> VCProvenance | None:
        changelist = context.getenv("P4_CHANGELIST")
        depot_path = context.getenv("P4_DEPOT_PATH")
        port = context.getenv("P4_PORT")

        if not any((changelist, depot_path, port)):
            return None

        repo_url = None
        if depot_path:
            repo_url = f"{port}/{depot_path}" if port else depot_path

        return VCProvenance(
            host_type=PERFORCE,
            host=PERFORCE,
            repo_name=perforce_repo_name(depot_path),
            repo_url=repo_url,
            branch=context.getenv("P4_STREAM") or depot_path,
            commit_sha=changelist,
            commit_url=perforce_commit_url(port, changelist),
        )
