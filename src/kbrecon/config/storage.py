"""Location of the persistent cell store."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_str

APP_DIR_NAME: Final[str] = "kbrecon"
CELL_STORE_FILENAME: Final[str] = "cells.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Where reconciliation cell states are persisted.

    An explicit ``database_uri`` wins. Otherwise cells go to a SQLite file
    inside ``data_dir``, which is created on first use.
    """

    data_dir: Path
    database_uri: str | None = None

    @property
    def cell_store_path(self) -> Path:
        return self.data_dir / CELL_STORE_FILENAME

    def cell_store_uri(self) -> str:
        if self.database_uri:
            return self.database_uri
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{self.cell_store_path}"


def _platform_data_dir() -> Path:
    if os.name == "nt":
        root = env_str("LOCALAPPDATA", str(Path.home() / "AppData" / "Local"))
    else:
        root = env_str("XDG_DATA_HOME", str(Path.home() / ".local" / "share"))
    return Path(root) / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    """Read ``KBRECON_DATA_DIR`` and ``DATABASE_URI``."""
    explicit_dir = env_str("KBRECON_DATA_DIR", "")
    data_dir = Path(explicit_dir) if explicit_dir else _platform_data_dir()
    return StorageConfig(
        data_dir=data_dir.expanduser().resolve(),
        database_uri=env_str("DATABASE_URI", "") or None,
    )
