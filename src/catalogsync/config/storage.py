"""Data storage configuration helpers."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "catalogsync"
LEDGER_DIR_NAME: Final[str] = "ledgers"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    ledger_dir_name: str = LEDGER_DIR_NAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def ledger_path(self, tenant_id: str, *, ensure: bool = True) -> Path:
        """One ledger document per remote tenant."""

        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        ledger_dir = base / self.ledger_dir_name
        if ensure:
            ledger_dir.mkdir(parents=True, exist_ok=True)
        safe_name = _UNSAFE_CHARS.sub("_", tenant_id).strip("._") or "default"
        return ledger_dir / f"{safe_name}.json"


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("CATALOGSYNC_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir)
