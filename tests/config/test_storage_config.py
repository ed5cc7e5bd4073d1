from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest  # noqa: TC002

from catalogsync.config import StorageConfig, get_storage_config


def test_data_dir_prefers_explicit_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    custom = tmp_path / "custom-data"
    monkeypatch.setenv("CATALOGSYNC_DATA_DIR", str(custom))

    config = get_storage_config()

    assert config.resolve_data_dir() == custom.resolve()


def test_data_dir_defaults_to_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("CATALOGSYNC_DATA_DIR", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

    config = get_storage_config()

    assert config.data_dir == (tmp_path / "catalogsync").resolve()


def test_ledger_path_is_per_tenant_and_created(tmp_path: Path) -> None:
    config = StorageConfig(data_dir=tmp_path / "data")

    path = config.ledger_path("acme")

    assert path == (tmp_path / "data" / "ledgers" / "acme.json").resolve()
    assert path.parent.is_dir()


def test_ledger_path_sanitises_tenant(tmp_path: Path) -> None:
    config = StorageConfig(data_dir=tmp_path)

    assert config.ledger_path("../eu west", ensure=False).name == "eu_west.json"
    assert config.ledger_path("...", ensure=False).name == "default.json"
