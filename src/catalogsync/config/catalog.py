"""Remote catalog connection settings."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

CATALOG_TIMEOUT_SECONDS = 30.0
CATALOG_REQUESTS_PER_SECOND = 10


@dataclass(frozen=True)
class CatalogConfig:
    """Holds the remote catalog endpoint and credentials."""

    base_url: str
    tenant_id: str
    api_token: str
    resilience: ResilienceConfig


def get_catalog_config(*, resilience: ResilienceConfig | None = None) -> CatalogConfig:
    values = require_env_vars(("CATALOG_BASE_URL", "CATALOG_TENANT_ID", "CATALOG_API_TOKEN"))
    base_url = values["CATALOG_BASE_URL"].rstrip("/")
    tenant_id = values["CATALOG_TENANT_ID"]
    return CatalogConfig(
        base_url=base_url,
        tenant_id=tenant_id,
        api_token=values["CATALOG_API_TOKEN"],
        resilience=resilience
        or ResilienceConfig(
            name="catalog",
            base_url=base_url,
            timeout_seconds=CATALOG_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=CATALOG_REQUESTS_PER_SECOND, per_seconds=1.0),
            default_headers={
                "Authorization": f"Bearer {values['CATALOG_API_TOKEN']}",
                "X-Tenant-Id": tenant_id,
            },
        ),
    )
