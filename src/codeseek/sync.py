"""Reconcile the checkouts under the code directory with the manifest.

Every declared repository ends up checked out at its pinned commit, and every
path that no declared repository claims is removed. The run is fail-fast: the
first clone or update that fails aborts it, leaving later repositories
untouched for the next run.
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from codeseek.git_utils import (
    GitError,
    GitRunner,
    checkout_commit,
    clone_repo,
    fetch_remote,
    get_head_sha,
)
from codeseek.manifest import Manifest, Repository

logger = logging.getLogger(__name__)

# server/owner/name
REPO_DIR_DEPTH = 3

# [user@]host.domain, e.g. git@github.com
_SCP_HOST = re.compile(r"^(?:[a-zA-Z0-9_.-]+@)?[a-z][a-z0-9-]+\.[a-z][a-z0-9.-]+$")


class SyncError(Exception):
    """Raised when the checkouts cannot be brought in line with the manifest."""


@dataclass
class SyncStats:
    cloned: int = 0
    updated: int = 0
    unchanged: int = 0
    removed: int = 0

    @property
    def total(self) -> int:
        return self.cloned + self.updated + self.unchanged


def build_clone_url(base_url: str, owner: str, name: str) -> str:
    """Build the clone URL of ``owner/name`` on the server at ``base_url``.

    https:// and ssh:// URLs get ``owner/name.git`` appended to their path.
    SCP-like host specs (``git@github.com``) use a colon separator instead.
    """
    repo_path = f"{owner}/{name}.git"

    if base_url.startswith(("https://", "ssh://")):
        try:
            parts = urlsplit(base_url)
            parts.port  # validates the port
        except ValueError as e:
            raise SyncError(f"failed to parse URL '{base_url}': {e}") from e
        path = posixpath.join(parts.path or "/", repo_path)
        return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))

    if _SCP_HOST.match(base_url):
        return f"{base_url}:{repo_path}"

    raise SyncError(f"unsupported or malformed URL format: '{base_url}'")


def list_with_max_depth(root: Path, max_depth: int) -> set[str]:
    """Return the deepest paths under ``root`` within ``max_depth``.

    Paths are relative to ``root`` with ``/`` separators and ``max_depth``
    counts their components. A path replaces its parent in the result as soon
    as it is seen, and directories ``max_depth`` components deep are not
    descended into, so they are kept even when they have children.
    """
    paths: set[str] = set()

    def _walk(directory: Path, prefix: str) -> None:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            rel = f"{prefix}/{entry.name}" if prefix else entry.name
            paths.discard(prefix)
            paths.add(rel)
            if entry.is_dir(follow_symlinks=False) and rel.count("/") + 1 < max_depth:
                _walk(Path(entry.path), rel)

    if not root.is_dir():
        raise FileNotFoundError(f"No such directory: '{root}'")
    _walk(root, "")
    return paths


def remove_path(path: Path) -> None:
    """Remove ``path`` whatever it is. A symlink is removed, never its target."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


def cleanup_orphans(orphans: set[str], code_dir: Path) -> int:
    """Remove every orphaned path. Returns how many were removed."""
    removed = 0
    # Reverse order puts children ahead of their parents in the log
    for rel in sorted(orphans, reverse=True):
        logger.info("Removing orphaned path: %s", rel)
        full_path = code_dir / rel
        try:
            remove_path(full_path)
            removed += 1
        except OSError as e:
            logger.error("Failed to remove %s: %s", full_path, e)
    return removed


def _claim(orphans: set[str], key: str) -> None:
    # Ancestors of a claimed checkout are not orphans either
    parts = key.split("/")
    for i in range(1, len(parts) + 1):
        orphans.discard("/".join(parts[:i]))


def _is_corrupt(local_path: Path) -> bool:
    if local_path.is_symlink() or not local_path.is_dir():
        return True
    index_file = local_path / ".git" / "index"
    try:
        return index_file.stat().st_size == 0
    except OSError:
        return True


def _clone(
    runner: GitRunner,
    repo: Repository,
    local_path: Path,
    servers: dict[str, str],
) -> None:
    base_url = servers.get(repo.server)
    if base_url is None:
        raise SyncError(f"no server config found for '{repo.server}'")
    clone_url = build_clone_url(base_url, repo.owner, repo.name)

    logger.debug("%s: Cloning %s", repo.repo_dir(), clone_url)
    local_path.parent.mkdir(parents=True, exist_ok=True)
    clone_repo(runner, clone_url, local_path)
    checkout_commit(runner, local_path, repo.commit)


def _update(runner: GitRunner, repo: Repository, local_path: Path) -> bool:
    """Move an existing checkout to the pinned commit.

    Returns False when it is already there and nothing was run.
    """
    try:
        head = get_head_sha(runner, local_path)
    except GitError as e:
        logger.warning("%s: could not determine current commit: %s", repo.repo_dir(), e)
    else:
        if head == repo.commit:
            logger.debug("%s: Already up-to-date", repo.repo_dir())
            return False

    logger.debug("%s: Updating to %s", repo.repo_dir(), repo.commit)
    fetch_remote(runner, local_path)
    checkout_commit(runner, local_path, repo.commit)
    return True


def sync_repos(
    manifest: Manifest,
    code_dir: Path,
    servers: dict[str, str],
    runner: GitRunner,
) -> SyncStats:
    """Clone new repos, update changed ones and remove the ones no longer declared.

    Args:
        manifest: Declared repositories, pinned to exact commits.
        code_dir: Root directory holding ``server/owner/name`` checkouts.
        servers: Clone base URL by server name.
        runner: Executes git commands.

    Returns:
        SyncStats with per-outcome counts.

    Raises:
        SyncError: On the first repository that cannot be cloned or updated.
    """
    start = time.perf_counter()
    stats = SyncStats()
    code_dir.mkdir(parents=True, exist_ok=True)

    try:
        orphans = list_with_max_depth(code_dir, REPO_DIR_DEPTH)
    except OSError as e:
        raise SyncError(f"could not scan for orphaned directories: {e}") from e

    for key, repo in manifest.repositories.items():
        _claim(orphans, key)
        local_path = code_dir / key

        if local_path.exists() or local_path.is_symlink():
            if _is_corrupt(local_path):
                logger.warning("Corrupt checkout found at %s. Removing it.", local_path)
                try:
                    remove_path(local_path)
                except OSError as e:
                    raise SyncError(f"failed to remove corrupt repository {key}: {e}") from e
            else:
                try:
                    if _update(runner, repo, local_path):
                        stats.updated += 1
                    else:
                        stats.unchanged += 1
                except GitError as e:
                    raise SyncError(f"Failed to update {key}: {e}") from e
                continue

        try:
            _clone(runner, repo, local_path, servers)
        except (GitError, OSError, SyncError) as e:
            raise SyncError(f"Failed to clone {key}: {e}") from e
        stats.cloned += 1

    stats.removed = cleanup_orphans(orphans, code_dir)
    logger.info(
        "Synced %d repositories: %d new, %d updated, %d unchanged, %d removed in %.2fs",
        stats.total, stats.cloned, stats.updated, stats.unchanged, stats.removed,
        time.perf_counter() - start,
    )
    return stats
