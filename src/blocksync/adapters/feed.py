"""Fetch the blocked-domain feed over HTTP."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx

from blocksync.adapters.http_resilience import ResilientClient
from blocksync.domain.errors import SourceUnavailable
from blocksync.domain.source import parse_domain_text

if TYPE_CHECKING:
    from collections.abc import Callable

    from blocksync.config.feed import FeedConfig
    from blocksync.config.http_resilience import ResilienceConfig
    from blocksync.domain.model import Domain

log = getLogger(__name__)

FEED_SCHEMES = frozenset({"http", "https"})


def is_feed_url(source: str) -> bool:
    return urlparse(source).scheme.lower() in FEED_SCHEMES


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


async def fetch_domain_feed(
    url: str,
    *,
    config: FeedConfig,
    client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
) -> tuple[Domain, ...]:
    """Download a newline-separated domain list and normalise it.

    Transport failures and non-success statuses are both reported as
    ``SourceUnavailable`` so that nothing downstream runs on a partial list.
    """

    factory = client_factory or _default_client_factory
    async with factory(config.resilience) as client:
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"download failed: {exc}", resource=url) from exc

    if not response.is_success:
        raise SourceUnavailable(f"download returned HTTP {response.status_code}", resource=url)

    try:
        text = response.content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise SourceUnavailable(f"download is not valid UTF-8: {exc}", resource=url) from exc

    domains = parse_domain_text(text)
    log.info("Fetched %s unique domains from %s", len(domains), url)
    return domains
