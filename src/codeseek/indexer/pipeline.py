"""Full rebuild of the content index and the file path index.

One walk of the code directory feeds every file to the content index and
writes its relative path into fixed-size shard files, which are in turn
indexed as the path index. Both indices are built under fresh generation
directories and only published once complete, so a failed build leaves the
previously published indices untouched.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable, Protocol

from codeseek.indexer.walk import CorpusWalk
from codeseek.storage.trigram_index import TrigramIndexBuilder

logger = logging.getLogger(__name__)

SHARD_MAX_LINES = 128


class IndexBuildError(Exception):
    """Raised when an index build fails. Nothing has been published."""


class IndexBuilder(Protocol):
    def add_root(self, root: Path) -> None: ...

    def add_file(self, path: Path) -> None: ...

    def flush(self) -> None: ...

    def abort(self) -> None: ...


@dataclass
class BuildStats:
    files: int = 0
    skipped: int = 0
    shards: int = 0


class ShardWriter:
    """Writes lines into numbered files of at most ``max_lines`` lines each."""

    def __init__(self, shard_dir: Path, max_lines: int = SHARD_MAX_LINES) -> None:
        self._shard_dir = shard_dir
        self._max_lines = max_lines
        self._current: IO[str] | None = None
        self._lines = 0
        self.shards: list[Path] = []

    def write(self, line: str) -> None:
        if self._current is None or self._lines == self._max_lines:
            self._open_next()
        self._current.write(line + "\n")  # type: ignore[union-attr]
        self._lines += 1

    def _open_next(self) -> None:
        self.close()
        path = self._shard_dir / f"{len(self.shards):06d}"
        self._current = open(path, "w", encoding="utf-8")
        self._lines = 0
        self.shards.append(path)

    def close(self) -> None:
        if self._current is not None:
            self._current.close()
            self._current = None

    def __enter__(self) -> ShardWriter:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def generation_path(published: Path) -> Path:
    """Return a fresh sibling path to build the next generation of ``published`` in."""
    return published.with_name(f"{published.name}.{time.time_ns():x}")


def publish(generation: Path, published: Path) -> None:
    """Atomically make ``published`` refer to ``generation``.

    ``published`` is a symlink to a sibling generation directory; the link is
    swapped with a rename, so readers see either the old or the new index.
    The replaced generation is removed afterwards. A plain directory left at
    ``published`` is renamed aside first and removed once the link is in place.
    """
    previous: Path | None = None
    if published.is_symlink():
        previous = published.parent / os.readlink(published)
    elif published.exists():
        logger.warning("Replacing unversioned index %s", published)
        previous = published.with_name(published.name + ".old")
        _discard(previous)
        os.replace(published, previous)

    link_tmp = published.with_name(published.name + ".link")
    link_tmp.unlink(missing_ok=True)
    os.symlink(generation.name, link_tmp)
    os.replace(link_tmp, published)
    logger.debug("Published %s -> %s", published, generation.name)

    if previous is not None and previous.name != generation.name:
        _discard(previous)


def _discard(path: Path) -> None:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)


def _publish_or_discard(generation: Path, published: Path, *pending: Path) -> None:
    """Publish ``generation``; on failure remove it and the ``pending`` generations."""
    try:
        publish(generation, published)
    except OSError as e:
        for path in (generation, *pending):
            _discard(path)
        raise IndexBuildError(f"failed to publish {published}: {e}") from e


def _walk_corpus(
    code_dir: Path,
    content: IndexBuilder,
    shards: ShardWriter,
    stats: BuildStats,
) -> None:
    with CorpusWalk(code_dir) as walk:
        for path in walk:
            rel = path.relative_to(code_dir).as_posix()
            try:
                content.add_file(path)
            except Exception as e:
                raise IndexBuildError(f"failed to index {rel}: {e}") from e
            shards.write(rel)
            stats.files += 1


def build_indices(
    code_dir: Path,
    shard_dir: Path,
    content_index_path: Path,
    path_index_path: Path,
    builder_factory: Callable[[Path], IndexBuilder] = TrigramIndexBuilder,
) -> BuildStats:
    """Rebuild both indices from scratch and publish them.

    Args:
        code_dir: Root of the mirrored repositories.
        shard_dir: Directory for the path list shards; wiped and rewritten.
        content_index_path: Published location of the content index.
        path_index_path: Published location of the path index.
        builder_factory: Creates an index builder at a given directory.

    Returns:
        BuildStats for the walk.

    Raises:
        IndexBuildError: If any file cannot be indexed or either index cannot
            be written. The published indices are left as they were.
    """
    start = time.perf_counter()
    stats = BuildStats()

    try:
        if shard_dir.exists():
            shutil.rmtree(shard_dir)
        shard_dir.mkdir(parents=True)
        content_index_path.parent.mkdir(parents=True, exist_ok=True)
        path_index_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IndexBuildError(f"failed to prepare index directories: {e}") from e

    content_tmp = generation_path(content_index_path)
    path_tmp = generation_path(path_index_path)
    builders: list[IndexBuilder] = []

    try:
        content = builder_factory(content_tmp)
        builders.append(content)
        content.add_root(code_dir)
        paths = builder_factory(path_tmp)
        builders.append(paths)
        paths.add_root(shard_dir)

        with ShardWriter(shard_dir) as shards:
            _walk_corpus(code_dir, content, shards, stats)
        for shard in shards.shards:
            paths.add_file(shard)
        stats.shards = len(shards.shards)
        stats.skipped = getattr(content, "skipped", 0)

        content.flush()
        paths.flush()
    except Exception as e:
        # Writer threads must stop before their files can be removed
        for builder in builders:
            try:
                builder.abort()
            except Exception as abort_error:
                logger.warning("Could not abort index builder: %s", abort_error)
        _discard(content_tmp)
        _discard(path_tmp)
        if isinstance(e, IndexBuildError):
            raise
        raise IndexBuildError(f"index build failed: {e}") from e

    # Independent renames: a crash in between leaves the path index stale
    _publish_or_discard(content_tmp, content_index_path, path_tmp)
    _publish_or_discard(path_tmp, path_index_path)

    logger.info(
        "Indexed %d files (%d skipped) in %d shards in %.2fs",
        stats.files, stats.skipped, stats.shards, time.perf_counter() - start,
    )
    return stats
