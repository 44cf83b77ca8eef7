"""Tests for the line buffer and the context-window matcher."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from codeseek.tools.context_match import LineBuffer, LineMatch, find_matches


def _write(tmp_path: Path, lines: list[str], trailing_newline: bool = True) -> Path:
    path = tmp_path / "file.txt"
    text = "\n".join(lines) + ("\n" if trailing_newline else "")
    path.write_text(text)
    return path


def _triples(matches) -> list[tuple[int, str, bool]]:
    return [(m.lineno, m.line, m.match) for m in matches]


# ── LineBuffer ──


class TestLineBuffer:
    def test_keeps_most_recent(self):
        buf = LineBuffer(2)
        for i, line in enumerate(["a", "b", "c"], 1):
            buf.push(i, line)
        assert list(buf.drain()) == [(2, "b"), (3, "c")]
        assert len(buf) == 0

    def test_zero_capacity_holds_nothing(self):
        buf = LineBuffer(0)
        buf.push(1, "a")
        assert len(buf) == 0
        assert list(buf.drain()) == []

    def test_negative_capacity(self):
        with pytest.raises(ValueError):
            LineBuffer(-1)


# ── find_matches ──


class TestFindMatches:
    def test_single_match_with_context(self, tmp_path):
        path = _write(tmp_path, ["A", "B", "C", "D"])
        result = _triples(find_matches(path, re.compile("B"), 1, 1))
        assert result == [(1, "A", False), (2, "B", True), (3, "C", False)]

    def test_no_context(self, tmp_path):
        path = _write(tmp_path, ["foo", "bar", "foo"])
        result = _triples(find_matches(path, re.compile("foo")))
        assert result == [(1, "foo", True), (3, "foo", True)]

    def test_no_match(self, tmp_path):
        path = _write(tmp_path, ["a", "b"])
        assert list(find_matches(path, re.compile("zzz"), 2, 2)) == []

    def test_before_context_keeps_true_line_numbers(self, tmp_path):
        path = _write(tmp_path, ["1", "2", "3", "4", "hit", "6"])
        result = _triples(find_matches(path, re.compile("hit"), 2, 0))
        assert result == [(3, "3", False), (4, "4", False), (5, "hit", True)]

    def test_before_context_truncated_at_file_start(self, tmp_path):
        path = _write(tmp_path, ["hit", "x"])
        result = _triples(find_matches(path, re.compile("hit"), 3, 0))
        assert result == [(1, "hit", True)]

    def test_after_context_truncated_at_file_end(self, tmp_path):
        path = _write(tmp_path, ["x", "hit", "y"])
        result = _triples(find_matches(path, re.compile("hit"), 0, 5))
        assert result == [(2, "hit", True), (3, "y", False)]

    def test_match_inside_after_window_is_absorbed(self, tmp_path):
        path = _write(tmp_path, ["m1", "x", "m2", "y", "z"])
        result = _triples(find_matches(path, re.compile("m"), 0, 3))
        assert result == [
            (1, "m1", True),
            (2, "x", False),
            (3, "m2", False),
            (4, "y", False),
        ]

    def test_match_after_window_closes_starts_new_window(self, tmp_path):
        path = _write(tmp_path, ["m1", "x", "y", "m2", "z"])
        result = _triples(find_matches(path, re.compile("m"), 1, 1))
        assert result == [
            (1, "m1", True),
            (2, "x", False),
            (3, "y", False),
            (4, "m2", True),
            (5, "z", False),
        ]

    def test_context_lines_not_repeated(self, tmp_path):
        # Lines emitted as trailing context never reappear as leading context
        path = _write(tmp_path, ["m1", "a", "b", "m2"])
        result = _triples(find_matches(path, re.compile("m"), 2, 1))
        assert result == [(1, "m1", True), (2, "a", False), (3, "b", False), (4, "m2", True)]

    def test_last_line_without_newline(self, tmp_path):
        path = _write(tmp_path, ["a", "hit"], trailing_newline=False)
        assert _triples(find_matches(path, re.compile("hit$"))) == [(2, "hit", True)]

    def test_anchors_apply_per_line(self, tmp_path):
        path = _write(tmp_path, ["def foo():", "    def bar():"])
        result = _triples(find_matches(path, re.compile("^def")))
        assert result == [(1, "def foo():", True)]

    def test_is_lazy_and_closes_file_when_abandoned(self, tmp_path):
        path = _write(tmp_path, [f"hit {i}" for i in range(1000)])
        gen = find_matches(path, re.compile("hit"))
        assert next(gen) == LineMatch(1, "hit 0", True)
        gen.close()  # must not raise

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            list(find_matches(tmp_path / "missing.txt", re.compile("x")))
