"""Remote domain feed configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .http_resilience import CacheConfig, ResilienceConfig, RetryPolicy
from .storage import StorageConfig, get_storage_config

FEED_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True, slots=True)
class FeedConfig:
    resilience: ResilienceConfig


def get_feed_config(*, storage: StorageConfig | None = None) -> FeedConfig:
    storage_config = storage or get_storage_config()
    return FeedConfig(
        resilience=ResilienceConfig(
            name="domain-feed",
            timeout_seconds=FEED_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=4),
            cache=CacheConfig(
                backend="sqlite",
                sqlite_path=str(storage_config.http_cache_path()),
            ),
        )
    )
