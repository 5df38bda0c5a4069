"""
Version-control URL utilities.

Pure helpers used by the metadata resolver: SSH to HTTPS conversion, host
identification, repository name extraction, branch cleanup and commit URL
synthesis. None of them raise on odd input; they return None instead.
"""

import re

# Ordered most specific first; the first substring hit wins.
HOST_PATTERNS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("github.com",), "github"),
    (("gitlab.com",), "gitlab"),
    (("gitlab",), "gitlab-self"),
    (("bitbucket.org",), "bitbucket"),
    (("bitbucket",), "bitbucket"),
    (("gitea",), "gitea"),
    (("forgejo",), "forgejo"),
    (("gogs",), "gogs"),
    (("codeberg",), "codeberg"),
    (("sourceforge",), "sourceforge"),
    (("sourcehut", "sr.ht"), "sourcehut"),
    (("codecommit",), "aws-codecommit"),
    (("dev.azure.com", "azure.com", "visualstudio.com"), "azure-repos"),
    (("perforce",), "perforce"),
    (("gitee",), "gitee"),
)

HOST_TYPE_PATTERNS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("git",), "git"),
    (("svn", "subversion"), "svn"),
    (("mercurial", "hg"), "hg"),
    (("bazaar", "bzr"), "bzr"),
    (("perforce",), "perforce"),
    (("cvs",), "cvs"),
)

# Host -> path segment placed between the repository base and the sha
COMMIT_PATH_BY_HOST = {
    "github": "/commit/",
    "gitea": "/commit/",
    "forgejo": "/commit/",
    "gogs": "/commit/",
    "codeberg": "/commit/",
    "sourcehut": "/commit/",
    "azure-repos": "/commit/",
    "gitlab": "/-/commit/",
    "gitlab-self": "/-/commit/",
    "bitbucket": "/commits/",
}

BRANCH_PREFIXES = ("refs/heads/", "refs/remotes/", "origin/", "*/")

BITBUCKET_SERVER_SEGMENTS = frozenset({"scm", "projects", "repos"})

PERFORCE_GENERIC_SEGMENTS = frozenset({"depot", "streams", "main"})

_SSH_PATTERN = re.compile(r"^(?:ssh://)?[\w.+-]+@([^:/]+)[:/](.+)$")


def is_ssh_url(url: str) -> bool:
    """
    Check if URL is SSH format.

    Supports:
    - SCP-like: git@github.com:user/repo.git
    - SSH scheme: ssh://git@github.com/user/repo.git

    Args:
        url: Repository URL

    Returns:
        True if URL is SSH format, False otherwise
    """
    return bool(url) and not url.startswith(("http://", "https://")) and bool(_SSH_PATTERN.match(url))


def ssh_to_https(ssh_url: str) -> str | None:
    """
    Convert SSH URL to HTTPS equivalent.

    Converts:
    - git@github.com:user/repo.git -> https://github.com/user/repo.git
    - ssh://git@github.com/user/repo.git -> https://github.com/user/repo.git

    Args:
        ssh_url: SSH repository URL

    Returns:
        HTTPS URL if conversion successful, None if not an SSH URL
    """
    if not is_ssh_url(ssh_url):
        return None
    match = _SSH_PATTERN.match(ssh_url)
    host, path = match.group(1), match.group(2)
    # ssh://host:port/path keeps the port in the path group
    path = re.sub(r"^\d+/", "", path)
    return f"https://{host}/{path}"


def _match_patterns(
    value: str | None, patterns: tuple[tuple[tuple[str, ...], str], ...]
) -> str | None:
    if not value:
        return None
    lowered = value.lower()
    for needles, label in patterns:
        if any(needle in lowered for needle in needles):
            return label
    return None


def detect_host(url: str | None) -> str | None:
    """
    Identify the hosting service from a repository URL.

    Examples:
        https://github.com/acme/widget.git     -> github
        https://gitlab.example.com/team/widget -> gitlab-self
        https://dev.azure.com/org/p/_git/repo  -> azure-repos

    Returns:
        Host identifier, or None if unrecognized
    """
    return _match_patterns(url, HOST_PATTERNS)


def detect_host_type(scm_label: str | None) -> str | None:
    """
    Identify the VCS kind from an SCM implementation's class label.

    Examples:
        hudson.plugins.git.GitSCM -> git
        SubversionSCM             -> svn
        MercurialSCM              -> hg

    Returns:
        Host type, or None if unrecognized
    """
    return _match_patterns(scm_label, HOST_TYPE_PATTERNS)


def _strip_url(url: str) -> str:
    url = url.strip()
    url = re.split(r"[?#]", url, maxsplit=1)[0]
    url = url.rstrip("/")
    return url.removesuffix(".git")


def extract_repo_name(url: str | None) -> str | None:
    """
    Extract the repository name from a repository URL.

    Handles Azure DevOps (``/_git/<name>``), Bitbucket Server
    (``/scm/<project>/<name>`` and ``/projects/<p>/repos/<name>``) and the
    plain ``.../<owner>/<name>(.git)`` form. SSH URLs are converted first.

    Returns:
        Repository name, or None if the URL has no usable path
    """
    if not url or not url.strip():
        return None

    https = ssh_to_https(url.strip())
    if https:
        url = https

    cleaned = _strip_url(url)
    without_scheme = re.sub(r"^[a-zA-Z][\w+.-]*://", "", cleaned)
    segments = [s for s in without_scheme.split("/")[1:] if s]
    if not segments:
        return None

    host = detect_host(cleaned)

    if host == "azure-repos" and "_git" in segments:
        index = segments.index("_git")
        if index + 1 < len(segments):
            return segments[index + 1].removesuffix(".git")
        return None

    lowered = [s.lower() for s in segments]
    if host == "bitbucket" and ("scm" in lowered or "projects" in lowered):
        for segment in reversed(segments):
            if segment.lower() not in BITBUCKET_SERVER_SEGMENTS:
                return segment.removesuffix(".git")
        return None

    return segments[-1].removesuffix(".git") or None


def clean_branch(branch: str | None) -> str | None:
    """
    Reduce a branch spec to a plain branch name.

    Strips leading ``refs/heads/``, ``refs/remotes/``, ``origin/``, ``*/``
    and a bare ``*`` repeatedly until none applies, so the result is
    stable under repeated cleaning.

    Examples:
        origin/refs/heads/*/main -> main
        */develop                -> develop
        *                        -> None
    """
    if branch is None:
        return None
    cleaned = branch.strip()
    changed = True
    while changed and cleaned:
        changed = False
        for prefix in BRANCH_PREFIXES:
            if cleaned.startswith(prefix):
                cleaned = cleaned[len(prefix) :]
                changed = True
        if cleaned.startswith("*"):
            cleaned = cleaned[1:]
            changed = True
    return cleaned or None


def repo_base_url(repo_url: str) -> str:
    """Repository URL without ``.git`` and trailing slashes, SSH converted."""
    https = ssh_to_https(repo_url.strip())
    base = https or repo_url.strip()
    return base.rstrip("/").removesuffix(".git").rstrip("/")


def build_commit_url(host: str | None, repo_url: str | None, commit_sha: str | None) -> str | None:
    """
    Build a web URL for a commit.

    Returns:
        Commit URL for hosts with a known layout, otherwise None
    """
    if not host or not repo_url or not commit_sha:
        return None
    path = COMMIT_PATH_BY_HOST.get(host)
    if path is None:
        return None
    return f"{repo_base_url(repo_url)}{path}{commit_sha}"


# -----------------------------------------------------------------------------
# Perforce
# -----------------------------------------------------------------------------


def perforce_repo_name(depot_path: str | None) -> str | None:
    """
    Pick a meaningful name from a depot path.

    The last segment that is not ``depot``, ``streams`` or ``main`` wins;
    if every segment is generic, the last one is used.

    Examples:
        //depot/games/widget/main -> widget
        //streams/main            -> main
    """
    if not depot_path or not depot_path.strip():
        return None
    path = depot_path.strip()
    if path.startswith("//"):
        path = path[2:]
    segments = [s for s in path.split("/") if s and s != "..." and s != "*"]
    if not segments:
        return None
    for segment in reversed(segments):
        if segment.lower() not in PERFORCE_GENERIC_SEGMENTS:
            return segment
    return segments[-1]


def perforce_server(p4_port: str) -> str:
    """Host part of a P4PORT (``ssl:perforce.example.com:1666`` style)."""
    server = re.sub(r"^perforce://", "", p4_port.strip())
    server = re.sub(r"^(ssl|tcp|tcp4|tcp6|ssl4|ssl6):", "", server)
    return re.sub(r":.*$", "", server)


def perforce_commit_url(p4_port: str | None, changelist: str | None) -> str | None:
    """``perforce://<server>/changes/<changelist>`` when both parts are known."""
    if not p4_port or not changelist:
        return None
    server = perforce_server(p4_port)
    if not server:
        return None
    return f"perforce://{server}/changes/{changelist}"
