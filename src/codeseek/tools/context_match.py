"""Grep-style matching of one file with lines of context around each hit."""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator


@dataclass(frozen=True)
class LineMatch:
    lineno: int  # 1-based
    line: str  # without the trailing newline
    match: bool  # False for context lines


class LineBuffer:
    """Holds the most recent ``capacity`` lines, dropping the oldest when full."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self._lines: deque[tuple[int, str]] = deque(maxlen=capacity)

    def push(self, lineno: int, line: str) -> None:
        if self._lines.maxlen:
            self._lines.append((lineno, line))

    def drain(self) -> Iterator[tuple[int, str]]:
        """Yield and remove the buffered lines, oldest first."""
        while self._lines:
            yield self._lines.popleft()

    def __len__(self) -> int:
        return len(self._lines)


def find_matches(
    path: Path | str,
    pattern: re.Pattern[str],
    before_lines: int = 0,
    after_lines: int = 0,
) -> Iterator[LineMatch]:
    """Yield the lines of ``path`` that match ``pattern``, with context.

    Each hit is preceded by up to ``before_lines`` and followed by up to
    ``after_lines`` context lines. A hit inside the trailing context of an
    earlier hit does not start its own window: it is yielded as a context line
    with ``match=False``.

    The file is read once, line by line, so the generator can be abandoned at
    any point; the file is closed when it is.
    """
    before = LineBuffer(before_lines)
    remaining_after = -1

    with open(path, encoding="utf-8", errors="replace", newline="\n") as f:
        for lineno, raw in enumerate(f, 1):
            line = raw.removesuffix("\n")

            if remaining_after < 0 and pattern.search(line):
                for prev_lineno, prev_line in before.drain():
                    yield LineMatch(prev_lineno, prev_line, False)
                remaining_after = after_lines

            if remaining_after >= 0:
                yield LineMatch(lineno, line, remaining_after == after_lines)
                remaining_after -= 1
            else:
                before.push(lineno, line)
