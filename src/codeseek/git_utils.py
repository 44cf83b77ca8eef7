"""Git command runners used by the repository reconciler."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class GitError(Exception):
    """Raised when a git operation fails."""


class GitRunner(Protocol):
    """Runs one git command and returns its combined output."""

    def run(self, args: list[str], cwd: Path | None = None) -> str: ...


class SubprocessGitRunner:
    """Runs git as a subprocess. Raises GitError on a non-zero exit."""

    def __init__(self, git: str = "git") -> None:
        self._git = git

    def run(self, args: list[str], cwd: Path | None = None) -> str:
        logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
        try:
            result = subprocess.run(
                [self._git] + args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                cwd=cwd,
                check=True,
            )
            return result.stdout.strip()
        except subprocess.CalledProcessError as e:
            output = (e.stdout or "").strip()
            raise GitError(f"git {args!r} failed: {output}") from e
        except FileNotFoundError:
            raise GitError("git is not installed or not in PATH")


def get_head_sha(runner: GitRunner, repo_path: Path) -> str:
    """Return the full SHA of HEAD."""
    return runner.run(["-C", str(repo_path), "rev-parse", "HEAD"])


def fetch_remote(runner: GitRunner, repo_path: Path) -> None:
    """Fetch from the default remote."""
    runner.run(["-C", str(repo_path), "fetch"])


def checkout_commit(runner: GitRunner, repo_path: Path, commit: str) -> None:
    """Check out ``commit`` as a detached HEAD."""
    runner.run(["-C", str(repo_path), "checkout", "--detach", commit])


def clone_repo(runner: GitRunner, url: str, dest: Path) -> None:
    """Clone a repository to the given destination (full history)."""
    runner.run(["clone", url, str(dest)])
