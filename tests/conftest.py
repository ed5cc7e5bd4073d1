from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

_CONFIG_VARS = (
    "CATALOG_BASE_URL",
    "CATALOG_TENANT_ID",
    "CATALOG_API_TOKEN",
    "CATALOGSYNC_POLL_INTERVAL",
    "CATALOGSYNC_POLL_MAX_ATTEMPTS",
)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep a developer's shell or .env settings out of the test run."""

    for name in _CONFIG_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CATALOGSYNC_DATA_DIR", str(tmp_path / "data"))
