"""
Native SCM introspection detector.

Reads provenance from the hosting runtime's own objects: the job's SCM
configuration and the revision-tracking data attached to the build record.
The objects are foreign, so everything is probed by attribute name and a
missing attribute simply means "no information".
"""

import re
from typing import Any

from ...core.models.context import BuildContext
from ...core.models.vcs import VCProvenance
from ...utils.vcs_url import clean_branch, detect_host_type
from .base import BaseVCSDetector, as_text, class_label, first_item, probe

BUILD_DATA_MARKER = "BuildData"
GIT_SCM_MARKER = "GitSCM"

_SHA_PATTERN = re.compile(r"^[0-9a-fA-F]{7,64}$")


def build_actions(build: Any) -> list[Any]:
    """Actions attached to a build record, empty if it has none."""
    actions = probe(build, "actions", "get_actions")
    if actions is None:
        return []
    try:
        return list(actions)
    except TypeError:
        return []


def find_build_data(build: Any) -> Any:
    """The first revision-tracking action on the build, if any."""
    for action in build_actions(build):
        if BUILD_DATA_MARKER in type(action).__name__:
            return action
    return None


def _revision_sha(revision: Any) -> str | None:
    return as_text(probe(revision, "sha1_string", "sha1", "name"))


def tracked_revision_sha(build: Any) -> str | None:
    """Full sha of the last built revision recorded on the build."""
    build_data = find_build_data(build)
    return _revision_sha(probe(build_data, "last_built_revision"))


class ScmIntrospectionDetector(BaseVCSDetector):
    """
    Provenance from the runtime's SCM object and build record.

    Highest precedence after caller-supplied values.
    """

    detector_name = "scm"

    def attempt(self, context: BuildContext) -> VCProvenance | None:
        scm, build = context.scm, context.build
        if scm is None and build is None:
            return None

        build_data = find_build_data(build)

        provenance = VCProvenance(
            host_type=detect_host_type(class_label(scm)) if scm is not None else None,
            repo_url=self._repo_url(scm, build_data),
            branch=self._branch(scm, build_data),
            commit_sha=self._commit(build, build_data),
        )
        return None if provenance.is_empty else provenance

    def _repo_url(self, scm: Any, build_data: Any) -> str | None:
        if scm is not None and GIT_SCM_MARKER in class_label(scm):
            remote = first_item(probe(scm, "user_remote_configs", "get_user_remote_configs"))
            url = as_text(probe(remote, "url", "get_url"))
            if url:
                return url
        remote_urls = probe(build_data, "remote_urls", "get_remote_urls")
        return as_text(first_item(remote_urls))

    def _branch(self, scm: Any, build_data: Any) -> str | None:
        candidates = []

        revision = probe(build_data, "last_built_revision")
        branch = probe(revision, "branch") or first_item(probe(revision, "branches"))
        candidates.append(as_text(probe(branch, "name")))

        by_branch = probe(build_data, "builds_by_branch_name")
        candidates.append(as_text(first_item(by_branch)))

        spec = first_item(probe(scm, "branches", "get_branches"))
        if spec is not None:
            candidates.append(as_text(probe(spec, "name")) or as_text(spec))

        for candidate in candidates:
            cleaned = clean_branch(candidate)
            if cleaned:
                return cleaned
        return None

    def _commit(self, build: Any, build_data: Any) -> str | None:
        sha = _revision_sha(probe(build_data, "last_built_revision"))
        if sha:
            return sha

        by_branch = probe(build_data, "builds_by_branch_name")
        if isinstance(by_branch, dict) and by_branch:
            tracked = next(iter(by_branch.values()))
            sha = as_text(probe(tracked, "sha1_string")) or _revision_sha(
                probe(tracked, "revision", "marked")
            )
            if sha:
                return sha
            text = as_text(tracked) if isinstance(tracked, str) else None
            if text and _SHA_PATTERN.match(text):
                return text

        sha = self._change_log_commit(build)
        if sha:
            return sha

        for action in build_actions(build):
            if BUILD_DATA_MARKER not in type(action).__name__:
                continue
            sha = as_text(probe(probe(action, "last_built_revision"), "sha1_string"))
            if sha:
                return sha
        return None

    def _change_log_commit(self, build: Any) -> str | None:
        change_set = probe(build, "change_set", "change_sets", "get_change_set")
        entry = first_item(change_set)
        commit_id = as_text(probe(entry, "commit_id", "get_commit_id"))
        if commit_id:
            return commit_id
        # A list of change sets: look inside the first one
        return as_text(probe(first_item(entry), "commit_id", "get_commit_id"))
