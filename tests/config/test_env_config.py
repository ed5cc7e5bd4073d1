from __future__ import annotations

import pytest
from httpx_retries import Retry

from catalogsync.adapters.http_resilience import ResilientClient, build_retry
from catalogsync.config import (
    ConfigurationError,
    MissingConfigurationError,
    RetryPolicy,
    SyncConfig,
    get_catalog_config,
    get_sync_config,
    optional_env,
    require_env_vars,
)
from catalogsync.domain.model import EntityType


@pytest.fixture
def catalog_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CATALOG_BASE_URL", "https://catalog.test/")
    monkeypatch.setenv("CATALOG_TENANT_ID", " acme ")
    monkeypatch.setenv("CATALOG_API_TOKEN", "secret")


def test_require_env_vars_strips_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  value ")

    assert require_env_vars(["EXAMPLE_VAR"]) == {"EXAMPLE_VAR": "value"}


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_optional_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("POLL_TEST", raising=False)
    assert optional_env("POLL_TEST", int) is None

    monkeypatch.setenv("POLL_TEST", " 12 ")
    assert optional_env("POLL_TEST", int) == 12

    monkeypatch.setenv("POLL_TEST", "twelve")
    with pytest.raises(ConfigurationError, match="POLL_TEST"):
        optional_env("POLL_TEST", int)


@pytest.mark.usefixtures("catalog_env")
def test_catalog_config_from_env() -> None:
    config = get_catalog_config()

    assert config.base_url == "https://catalog.test"
    assert config.tenant_id == "acme"
    assert config.resilience.default_headers == {
        "Authorization": "Bearer secret",
        "X-Tenant-Id": "acme",
    }
    assert config.resilience.ratelimit is not None


@pytest.mark.usefixtures("catalog_env")
def test_client_carries_tenant_headers() -> None:
    client = ResilientClient(get_catalog_config().resilience)

    assert client._client.headers["X-Tenant-Id"] == "acme"  # noqa: SLF001  # type: ignore[reportPrivateUsage]
    assert client._client.base_url.host == "catalog.test"  # noqa: SLF001  # type: ignore[reportPrivateUsage]


def test_catalog_config_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CATALOG_API_TOKEN", raising=False)
    monkeypatch.setenv("CATALOG_BASE_URL", "https://catalog.test")
    monkeypatch.setenv("CATALOG_TENANT_ID", "acme")

    with pytest.raises(MissingConfigurationError, match="CATALOG_API_TOKEN"):
        get_catalog_config()


def test_transport_retries_only_reads() -> None:
    policy = RetryPolicy()

    assert isinstance(build_retry(policy), Retry)
    assert "POST" not in policy.allowed_methods
    assert policy.allowed_methods == frozenset({"GET", "HEAD", "OPTIONS"})


def test_sync_config_poll_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CATALOGSYNC_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("CATALOGSYNC_POLL_MAX_ATTEMPTS", "8")

    config = get_sync_config()

    assert config.poll.interval == 2.5
    assert config.poll.max_attempts == 8


def test_sync_config_rejects_invalid_poll(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CATALOGSYNC_POLL_INTERVAL", raising=False)
    monkeypatch.setenv("CATALOGSYNC_POLL_MAX_ATTEMPTS", "0")

    with pytest.raises(ConfigurationError, match="max_attempts"):
        get_sync_config()


def test_batch_sizes_are_capped_by_type_limit() -> None:
    assert SyncConfig(batch_sizes={EntityType.PRODUCT: 100}).batch_sizes[EntityType.PRODUCT] == 100
    with pytest.raises(ConfigurationError, match="between 1 and 50"):
        SyncConfig(batch_sizes={EntityType.CATEGORY: 51})
