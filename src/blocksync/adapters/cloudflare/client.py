"""HTTP client for the Cloudflare Zero Trust Gateway API."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from blocksync.adapters.http_resilience import ResilientClient
from blocksync.domain.errors import ExternalRejected, ExternalRequestFailed
from blocksync.domain.model import LIST_TYPE_DOMAIN

from .schema import (
    CloudflareEnvelope,
    GatewayListItemPayload,
    GatewayListPayload,
    GatewayRulePayload,
)
from .translator import remote_list_from_payload, rule_body, rule_from_payload

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from types import TracebackType

    from blocksync.config.gateway import GatewayConfig
    from blocksync.config.http_resilience import ResilienceConfig
    from blocksync.domain.model import BlockRule, Domain, ListId, RemoteList
    from blocksync.domain.ports import GatewayPort

log = getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
ITEMS_PAGE_SIZE = 1000


class CloudflareGatewayClient:
    """Gateway port backed by the Cloudflare v4 API.

    One ``ResilientClient`` is shared by every call made inside the
    ``async with`` block so the rate limiter covers the whole pass.
    """

    def __init__(
        self,
        *,
        config: GatewayConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._page_size = page_size
        self._client: ResilientClient | None = None

    async def __aenter__(self) -> CloudflareGatewayClient:
        self._client = self._client_factory(self._resilience)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def list_lists(self) -> list[RemoteList]:
        payloads = await self._paginate("lists", resource="gateway lists")
        return [
            remote_list_from_payload(GatewayListPayload.model_validate(payload))
            for payload in payloads
        ]

    async def list_items(self, list_id: ListId) -> frozenset[Domain]:
        payloads = await self._paginate(
            f"lists/{list_id}/items",
            resource=f"list {list_id}",
            page_size=ITEMS_PAGE_SIZE,
        )
        return frozenset(
            GatewayListItemPayload.model_validate(payload).value for payload in payloads
        )

    async def create_list(self, name: str, members: Iterable[Domain]) -> RemoteList:
        domains = list(members)
        envelope = await self._request(
            "POST",
            "lists",
            resource=name,
            json={
                "name": name,
                "type": LIST_TYPE_DOMAIN,
                "items": [{"value": domain} for domain in domains],
            },
        )
        remote = remote_list_from_payload(GatewayListPayload.model_validate(envelope.result))
        remote.members = frozenset(domains)
        return remote

    async def update_list(self, remote: RemoteList, members: Iterable[Domain]) -> RemoteList:
        if remote.members is None:
            raise ValueError(f"Members of list {remote.name} must be loaded before updating")
        desired = frozenset(members)
        append = sorted(desired - remote.members)
        remove = sorted(remote.members - desired)
        if not append and not remove:
            return remote

        body: dict[str, object] = {}
        if append:
            body["append"] = [{"value": domain} for domain in append]
        if remove:
            body["remove"] = remove
        envelope = await self._request(
            "PATCH",
            f"lists/{remote.id}",
            resource=remote.name,
            json=body,
        )
        log.debug("Patched %s: +%s / -%s", remote.name, len(append), len(remove))

        updated = remote_list_from_payload(GatewayListPayload.model_validate(envelope.result))
        updated.members = desired
        return updated

    async def delete_list(self, list_id: ListId) -> None:
        await self._request("DELETE", f"lists/{list_id}", resource=f"list {list_id}")

    async def list_rules(self) -> list[BlockRule]:
        payloads = await self._paginate("rules", resource="gateway rules")
        return [
            rule_from_payload(GatewayRulePayload.model_validate(payload)) for payload in payloads
        ]

    async def create_rule(self, rule: BlockRule) -> BlockRule:
        envelope = await self._request("POST", "rules", resource=rule.name, json=rule_body(rule))
        return rule_from_payload(GatewayRulePayload.model_validate(envelope.result))

    async def update_rule(self, rule: BlockRule) -> BlockRule:
        if rule.id is None:
            raise ValueError(f"Rule {rule.name!r} has no id to update")
        envelope = await self._request(
            "PUT",
            f"rules/{rule.id}",
            resource=rule.name,
            json=rule_body(rule),
        )
        return rule_from_payload(GatewayRulePayload.model_validate(envelope.result))

    async def delete_rule(self, rule_id: str) -> None:
        await self._request("DELETE", f"rules/{rule_id}", resource=f"rule {rule_id}")

    async def _paginate(
        self,
        path: str,
        *,
        resource: str,
        page_size: int | None = None,
    ) -> list[object]:
        per_page = page_size or self._page_size
        collected: list[object] = []
        page = 1
        while True:
            envelope = await self._request(
                "GET",
                path,
                resource=resource,
                params={"page": page, "per_page": per_page},
            )
            batch = _flatten_result(envelope.result)
            collected.extend(batch)

            info = envelope.result_info
            if info is None or not batch:
                break
            if page * (info.per_page or per_page) >= info.total_count:
                break
            page += 1
        return collected

    async def _request(
        self,
        method: str,
        path: str,
        *,
        resource: str,
        json: object | None = None,
        params: dict[str, int] | None = None,
    ) -> CloudflareEnvelope:
        if self._client is None:
            raise RuntimeError("CloudflareGatewayClient must be used inside 'async with'")

        try:
            if json is None:
                response = await self._client.request(method, path, params=params)
            else:
                response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            raise ExternalRequestFailed(
                f"{method} {path} failed: {exc}",
                resource=resource,
            ) from exc

        status = response.status_code
        if status in self._resilience.retry.status_forcelist:
            raise ExternalRequestFailed(
                f"{method} {path} returned HTTP {status}",
                resource=resource,
                status_code=status,
            )

        try:
            envelope = CloudflareEnvelope.model_validate(response.json())
        except ValueError as exc:
            if response.is_success:
                raise ExternalRequestFailed(
                    f"{method} {path} returned an unreadable payload",
                    resource=resource,
                    status_code=status,
                ) from exc
            raise ExternalRejected(
                [f"HTTP {status}"],
                resource=resource,
                status_code=status,
            ) from exc

        if not response.is_success or not envelope.success:
            messages = [error.render() for error in envelope.errors] or [f"HTTP {status}"]
            log.error(
                "Cloudflare rejected %s %s for %s: %s",
                method,
                path,
                resource,
                "; ".join(messages),
            )
            raise ExternalRejected(
                messages,
                resource=resource,
                status_code=status,
                codes=[error.code for error in envelope.errors if error.code is not None],
            )
        return envelope


def _flatten_result(result: object) -> list[object]:
    if result is None:
        return []
    if not isinstance(result, list):
        return [result]
    flattened: list[object] = []
    for entry in result:
        if isinstance(entry, list):
            flattened.extend(entry)
        else:
            flattened.append(entry)
    return flattened


if TYPE_CHECKING:
    _port_check: type[GatewayPort] = CloudflareGatewayClient
