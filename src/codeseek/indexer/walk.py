"""Depth-first walk of the mirrored corpus on a background thread."""

from __future__ import annotations

import logging
import os
import queue
import threading
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

VCS_DIR = ".git"

_DONE = object()


def is_skipped_name(name: str) -> bool:
    """Editor backup and lock files (``#x#``, ``~x``, ``x~``) are not indexed."""
    return name.startswith(("#", "~")) or name.endswith("~")


def iter_files(root: Path, cancel: threading.Event | None = None) -> Iterator[Path]:
    """Yield the regular files under ``root`` depth-first, in name order.

    ``.git`` directories are not descended into. Symlinks are not followed.
    Stops early once ``cancel`` is set.
    """
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if cancel is not None and cancel.is_set():
            return
        if is_skipped_name(entry.name):
            continue
        if entry.is_dir(follow_symlinks=False):
            if entry.name == VCS_DIR:
                continue
            yield from iter_files(Path(entry.path), cancel)
        elif entry.is_file(follow_symlinks=False):
            yield Path(entry.path)


class CorpusWalk:
    """Walks ``root`` on a producer thread, handing over one path at a time.

    Use as a context manager and iterate it. Leaving the block, even on an
    error in the consumer, cancels the producer and waits for it to exit.

        with CorpusWalk(code_dir) as walk:
            for path in walk:
                ...
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._queue: queue.Queue = queue.Queue(maxsize=1)
        self._cancel = threading.Event()
        self._thread: threading.Thread | None = None

    def __enter__(self) -> CorpusWalk:
        self._thread = threading.Thread(
            target=self._produce, name=f"walk:{self._root}", daemon=True,
        )
        self._thread.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()

    def _put(self, item: object) -> bool:
        while not self._cancel.is_set():
            try:
                self._queue.put(item, timeout=0.1)
                return True
            except queue.Full:
                continue
        return False

    def _produce(self) -> None:
        try:
            for path in iter_files(self._root, self._cancel):
                if not self._put(path):
                    return
        except Exception as e:
            # Re-raised by the consumer
            self._put(e)
            return
        self._put(_DONE)

    def __iter__(self) -> Iterator[Path]:
        if self._thread is None:
            raise RuntimeError("CorpusWalk must be entered before iterating")
        while True:
            item = self._queue.get()
            if item is _DONE:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    def cancel(self) -> None:
        """Stop the producer and wait for its thread to finish."""
        self._cancel.set()
        if self._thread is not None:
            self._thread.join()
            logger.debug("Walk of %s stopped", self._root)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
