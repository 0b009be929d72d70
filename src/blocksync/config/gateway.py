"""Cloudflare Zero Trust Gateway configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

CLOUDFLARE_API_BASE_URL = "https://api.cloudflare.com/client/v4"
GATEWAY_TIMEOUT_SECONDS = 30.0
# Cloudflare allows 1200 requests per five minutes per user
GATEWAY_RATE_LIMIT = RateLimit(max_calls=4, per_seconds=1.0)


@dataclass(frozen=True)
class GatewayConfig:
    """Holds the account-scoped API credentials and HTTP behaviour."""

    account_id: str
    api_token: str
    resilience: ResilienceConfig

    def __repr__(self) -> str:
        return f"GatewayConfig(account_id={self.account_id!r}, api_token='***')"


def gateway_base_url(account_id: str) -> str:
    return f"{CLOUDFLARE_API_BASE_URL}/accounts/{account_id}/gateway"


def build_gateway_resilience(account_id: str, api_token: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="cloudflare-gateway",
        base_url=gateway_base_url(account_id),
        timeout_seconds=GATEWAY_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=3),
        ratelimit=GATEWAY_RATE_LIMIT,
        cache=None,
        default_headers={
            "Authorization": f"Bearer {api_token}",
            "Content-Type": "application/json",
        },
    )


def get_gateway_config(*, resilience: ResilienceConfig | None = None) -> GatewayConfig:
    values = require_env_vars(("CLOUDFLARE_ACCOUNT_ID", "CLOUDFLARE_API_TOKEN"))
    account_id = values["CLOUDFLARE_ACCOUNT_ID"]
    api_token = values["CLOUDFLARE_API_TOKEN"]
    return GatewayConfig(
        account_id=account_id,
        api_token=api_token,
        resilience=resilience or build_gateway_resilience(account_id, api_token),
    )
