"""Local data directory used for the download cache."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

APP_DIR_NAME: Final[str] = "blocksync"
DATA_DIR_ENV: Final[str] = "BLOCKSYNC_DATA_DIR"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    @property
    def root(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def http_cache_path(self, *, create: bool = True) -> Path:
        """Location of the hishel SQLite cache; the parent directory is created on demand."""

        root = self.root
        if create:
            root.mkdir(parents=True, exist_ok=True)
        return root / HTTP_CACHE_FILENAME


def _platform_data_home() -> Path:
    if os.name == "nt":
        return Path(os.getenv("LOCALAPPDATA") or Path.home() / "AppData" / "Local")
    return Path(os.getenv("XDG_DATA_HOME") or Path.home() / ".local" / "share")


def get_storage_config() -> StorageConfig:
    fallback = str(_platform_data_home() / APP_DIR_NAME)
    return StorageConfig(data_dir=Path(optional_env_var(DATA_DIR_ENV, fallback)))
