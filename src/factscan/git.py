"""Repository metadata for the document header."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GitMetadata:
    sha: str | None = None
    branch: str | None = None
    remote: str | None = None


def _git(root: Path, *args: str) -> str | None:
    """Run one git command; ``None`` when git is unavailable or fails."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=root,
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def git_metadata(root: Path) -> GitMetadata:
    """Head commit, branch and origin URL of the repository at ``root``.

    All fields are ``None`` outside a repository.
    """
    root = Path(root)
    sha = _git(root, "rev-parse", "HEAD")
    if sha is None:
        logger.debug("no git metadata", root=str(root))
        return GitMetadata()
    return GitMetadata(
        sha=sha,
        branch=_git(root, "rev-parse", "--abbrev-ref", "HEAD"),
        remote=_git(root, "config", "--get", "remote.origin.url"),
    )
