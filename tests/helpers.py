"""Shared test helpers: scripted git runner and checkout factories."""

from __future__ import annotations

from pathlib import Path

from codeseek.git_utils import GitError


class ScriptedGitRunner:
    """Git runner that expects an exact sequence of commands.

    Each step is ``(args, output)``; an exception instance as output is raised
    wrapped in GitError instead of returned.
    """

    def __init__(self, steps: list[tuple[list[str], object]] | None = None) -> None:
        self.steps = list(steps or [])
        self.calls: list[list[str]] = []

    def run(self, args: list[str], cwd: Path | None = None) -> str:
        self.calls.append(list(args))
        assert self.steps, f"No more git commands expected, got {args}"
        expected, output = self.steps.pop(0)
        assert args == expected, f"Expected git {expected}, got git {args}"
        if isinstance(output, BaseException):
            raise GitError(f"git {args!r} failed: {output}")
        return str(output)

    def assert_done(self) -> None:
        assert not self.steps, f"Git commands not run: {self.steps}"


def make_checkout(path: Path, index_bytes: bytes = b"DIRC") -> Path:
    """Create a directory that looks like a sound git checkout."""
    (path / ".git").mkdir(parents=True, exist_ok=True)
    (path / ".git" / "index").write_bytes(index_bytes)
    (path / "README.md").write_text("# readme\n")
    return path
