"""Configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class ConfigError(Exception):
    """Raised when a configuration value is missing or malformed."""


def parse_servers(value: str) -> dict[str, str]:
    """Parse ``name=url,name2=url2`` into a server name -> clone URL mapping."""
    servers: dict[str, str] = {}
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, url = entry.partition("=")
        name, url = name.strip(), url.strip()
        if not sep or not name or not url:
            raise ConfigError(f"Invalid server entry {entry!r}, expected name=url")
        servers[name] = url
    return servers


# Paths
WORK_DIR: Path = Path(os.getenv("CODESEEK_WORK_DIR", "./data"))
CODE_DIR: Path = Path(os.getenv("CODESEEK_CODE_DIR", str(WORK_DIR / "code")))
MANIFEST_PATH: Path = Path(os.getenv("CODESEEK_MANIFEST", str(WORK_DIR / "manifest.json")))
CODE_INDEX_PATH: Path = Path(os.getenv("CODESEEK_INDEX", str(WORK_DIR / "csearch.index")))
FILE_INDEX_PATH: Path = Path(os.getenv("CODESEEK_FILE_INDEX", str(WORK_DIR / "csearch.fileindex")))

# Git servers
SERVER_URLS: str = os.getenv("CODESEEK_SERVERS", "")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Derived paths
SHARD_DIR: Path = WORK_DIR / "filelists"


@dataclass
class Config:
    """Explicit settings handed to the updater and search entry points."""

    code_dir: Path
    manifest_path: Path
    code_index_path: Path
    file_index_path: Path
    shard_dir: Path
    servers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def in_work_dir(cls, work_dir: Path, servers: dict[str, str] | None = None) -> Config:
        """Build a config with every path laid out under ``work_dir``."""
        return cls(
            code_dir=work_dir / "code",
            manifest_path=work_dir / "manifest.json",
            code_index_path=work_dir / "csearch.index",
            file_index_path=work_dir / "csearch.fileindex",
            shard_dir=work_dir / "filelists",
            servers=dict(servers or {}),
        )


def load_config() -> Config:
    """Return a Config built from the environment-derived module settings."""
    return Config(
        code_dir=CODE_DIR,
        manifest_path=MANIFEST_PATH,
        code_index_path=CODE_INDEX_PATH,
        file_index_path=FILE_INDEX_PATH,
        shard_dir=SHARD_DIR,
        servers=parse_servers(SERVER_URLS),
    )
