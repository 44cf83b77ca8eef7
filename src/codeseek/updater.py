"""Update steps run by scripts/update.py: sync the mirror, then rebuild indices."""

from __future__ import annotations

import logging

from codeseek.config import Config
from codeseek.git_utils import GitRunner, SubprocessGitRunner
from codeseek.indexer.pipeline import BuildStats, build_indices
from codeseek.manifest import read_manifest
from codeseek.sync import SyncStats, sync_repos

logger = logging.getLogger(__name__)


def run_sync(cfg: Config, runner: GitRunner | None = None) -> SyncStats:
    """Bring the checkouts under ``cfg.code_dir`` in line with the manifest."""
    manifest = read_manifest(cfg.manifest_path)
    logger.info(
        "Manifest %s: %d repositories (updated %s)",
        cfg.manifest_path, len(manifest.repositories), manifest.updated_at,
    )
    return sync_repos(manifest, cfg.code_dir, cfg.servers, runner or SubprocessGitRunner())


def run_index(cfg: Config) -> BuildStats:
    """Rebuild and publish the content and path indices."""
    cfg.code_dir.mkdir(parents=True, exist_ok=True)
    return build_indices(
        cfg.code_dir, cfg.shard_dir, cfg.code_index_path, cfg.file_index_path,
    )


def run_update(
    cfg: Config,
    *,
    do_sync: bool = True,
    do_index: bool = True,
    runner: GitRunner | None = None,
) -> None:
    """Run the selected steps in order. The first failure propagates."""
    if do_sync:
        run_sync(cfg, runner)
    if do_index:
        run_index(cfg)
