"""Shared fixtures: work directory layout and sample corpus."""

from pathlib import Path

import pytest

from codeseek.config import Config
from codeseek.manifest import Repository


@pytest.fixture
def cfg(tmp_path: Path) -> Config:
    """Config with every path under a per-test work directory."""
    c = Config.in_work_dir(tmp_path / "work", servers={"github": "https://github.com"})
    c.code_dir.mkdir(parents=True)
    return c


@pytest.fixture
def repo() -> Repository:
    return Repository(
        server="github", owner="owner", name="repo",
        branch="main", commit="a" * 40,
    )


@pytest.fixture
def corpus(tmp_path: Path) -> Path:
    """Small code directory with two checkouts and files the walk must skip."""
    root = tmp_path / "code"
    a = root / "github" / "acme" / "widgets"
    b = root / "github" / "acme" / "zeta"
    (a / "src").mkdir(parents=True)
    (a / ".git").mkdir()
    (b / "lib").mkdir(parents=True)

    (a / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (a / "README.md").write_text("# Widgets\n\nBuild widgets fast.\n")
    (a / "src" / "main.py").write_text(
        "import sys\n\n\ndef handle_request(req):\n    return req\n\n\n"
        "def main():\n    handle_request(sys.argv)\n"
    )
    (a / "src" / "main.py~").write_text("backup\n")
    (a / "src" / "#main.py#").write_text("autosave\n")
    (b / "lib" / "util.go").write_text(
        "package lib\n\nfunc HandleRequest() {}\n"
    )
    return root
