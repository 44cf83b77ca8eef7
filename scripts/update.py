#!/usr/bin/env python3
"""CLI: Synchronize the mirrored repositories and rebuild the search indices."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

# Ensure the package is importable when running as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from codeseek import config
from codeseek.config import ConfigError
from codeseek.git_utils import GitError
from codeseek.indexer.pipeline import IndexBuildError
from codeseek.manifest import ManifestError
from codeseek.sync import SyncError
from codeseek.updater import run_update

logger = logging.getLogger("codeseek.update")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Update the mirrored git repositories and the search indices. "
        "Without --sync or --index, both steps run.",
    )
    parser.add_argument(
        "--sync",
        action="store_true",
        help="Synchronize git repos with the manifest (only)",
    )
    parser.add_argument(
        "--index",
        action="store_true",
        help="Rebuild the search indices (only)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every repository and git command",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    do_sync, do_index = args.sync, args.index
    if not do_sync and not do_index:
        do_sync = do_index = True

    start = time.time()
    try:
        cfg = config.load_config()
        run_update(cfg, do_sync=do_sync, do_index=do_index)
    except (ConfigError, ManifestError, GitError, SyncError, IndexBuildError) as e:
        logger.error("%s", e)
        sys.exit(1)

    logger.info("Done in %.1fs", time.time() - start)


if __name__ == "__main__":
    main()
