"""Manifest of repositories to mirror, as written by the discovery step."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator


class ManifestError(Exception):
    """Raised when the manifest cannot be read or is malformed."""


class Repository(BaseModel):
    server: str  # name of the server in the config
    owner: str
    name: str
    branch: str = ""  # branch or ref label the commit was resolved from
    commit: str

    def repo_dir(self) -> str:
        """Directory key of the checkout, relative to the code directory."""
        return f"{self.server}/{self.owner}/{self.name}"


class Manifest(BaseModel):
    servers: dict[str, str] = Field(default_factory=dict)  # web URL by server name
    repositories: dict[str, Repository] = Field(default_factory=dict)
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _check_keys(self) -> Manifest:
        for key, repo in self.repositories.items():
            if key != repo.repo_dir():
                raise ValueError(
                    f"repository key {key!r} does not match {repo.repo_dir()!r}"
                )
        return self

    @classmethod
    def from_repositories(
        cls,
        repos: list[Repository],
        servers: dict[str, str] | None = None,
    ) -> Manifest:
        return cls(
            servers=dict(servers or {}),
            repositories={r.repo_dir(): r for r in repos},
        )


def read_manifest(path: Path) -> Manifest:
    """Load and validate the manifest JSON at ``path``."""
    try:
        data = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"failed to read manifest at '{path}': {e}") from e
    try:
        return Manifest.model_validate_json(data)
    except ValidationError as e:
        raise ManifestError(f"failed to parse manifest at '{path}': {e}") from e


def write_manifest(manifest: Manifest, path: Path) -> None:
    """Write ``manifest`` to ``path`` via a temp file and atomic replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(manifest.model_dump_json(indent=4), encoding="utf-8")
    tmp_path.replace(path)
