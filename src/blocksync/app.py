"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from logging import getLogger
from typing import TYPE_CHECKING

from blocksync.adapters.cloudflare import CloudflareGatewayClient
from blocksync.adapters.feed import fetch_domain_feed, is_feed_url
from blocksync.config import (
    FeedConfig,
    GatewayConfig,
    ReconcileConfig,
    get_feed_config,
    get_gateway_config,
    get_reconcile_config,
)
from blocksync.domain.model import RuleTemplate
from blocksync.domain.ports import GatewayPort
from blocksync.domain.reconciliation import (
    Command,
    CommandReport,
    GatewayReconciler,
    ReconcileSettings,
)
from blocksync.domain.source import read_domain_file

if TYPE_CHECKING:
    from collections.abc import Awaitable, Sequence

    from blocksync.domain.model import Domain

GatewayFactory = Callable[[GatewayConfig], AbstractAsyncContextManager[GatewayPort]]


log = getLogger(__name__)


def _default_gateway_factory(config: GatewayConfig) -> CloudflareGatewayClient:
    return CloudflareGatewayClient(config=config)


def settings_from(config: ReconcileConfig) -> ReconcileSettings:
    return ReconcileSettings(
        capacity=config.capacity,
        slot_count=config.slot_count,
        slot_policy=config.slot_policy,
        rule=RuleTemplate(precedence=config.precedence),
        max_concurrency=config.max_concurrency,
        settle_seconds=config.settle_seconds,
    )


def load_domains(source: str, *, feed_config: FeedConfig | None = None) -> tuple[Domain, ...]:
    """Read the domain list from a local file or an ``http(s)`` feed."""

    if is_feed_url(source):
        return asyncio.run(fetch_domain_feed(source, config=feed_config or get_feed_config()))
    return read_domain_file(source)


def run_command(
    command: Command | str,
    *,
    config: ReconcileConfig | None = None,
    gateway_config: GatewayConfig | None = None,
    gateway_factory: GatewayFactory | None = None,
    feed_config: FeedConfig | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> CommandReport:
    """Run one operator command against the configured gateway.

    The domain source is read (and the slot table checked) before any
    request reaches the gateway, so a bad input never touches remote state.
    """

    effective_command = Command(command)
    effective_config = config or get_reconcile_config()
    domains: tuple[Domain, ...] = ()
    if effective_command.needs_domains:
        domains = load_domains(effective_config.domain_source, feed_config=feed_config)

    effective_gateway_config = gateway_config or get_gateway_config()
    factory = gateway_factory or _default_gateway_factory
    settings = settings_from(effective_config)
    log.info(
        "Starting %s: policy=%s, slots=%s, domains=%s, concurrency=%s",
        effective_command,
        settings.slot_policy,
        settings.slot_count,
        len(domains),
        settings.max_concurrency,
    )

    report = asyncio.run(
        _execute(
            effective_command,
            domains,
            gateway=factory(effective_gateway_config),
            settings=settings,
            sleep=sleep or asyncio.sleep,
        )
    )
    log_report(report)
    return report


async def _execute(
    command: Command,
    domains: Sequence[Domain],
    *,
    gateway: AbstractAsyncContextManager[GatewayPort],
    settings: ReconcileSettings,
    sleep: Callable[[float], Awaitable[None]],
) -> CommandReport:
    async with gateway as port:
        reconciler = GatewayReconciler(port, settings, sleep)
        if command is Command.PLAN:
            return await reconciler.plan(domains)
        if command is Command.CREATE_LISTS:
            return await reconciler.create_lists(domains)
        if command is Command.CREATE_POLICY:
            return await reconciler.create_policy()
        if command is Command.APPLY:
            return await reconciler.apply(domains)
        if command is Command.DELETE_LISTS:
            return await reconciler.delete_lists()
        if command is Command.DELETE_POLICIES:
            return await reconciler.delete_policies()
        if command is Command.DELETE_ALL:
            return await reconciler.delete_all()
        if command is Command.RESET:
            return await reconciler.reset(domains)
    raise ValueError(f"Unsupported command: {command}")


def log_report(report: CommandReport) -> None:
    counts = Counter(outcome.action for outcome in report.outcomes if outcome.ok)
    summary = ", ".join(f"{action}={count}" for action, count in sorted(counts.items()))
    log.info(
        f"Finished {report.command}: {summary or 'no changes'}, "
        f"failures={len(report.failures)}, ok={report.ok}"
    )
    for failure in report.failures:
        log.error("%s %s failed: %s", failure.action, failure.name, failure.error)
    if report.aborted is not None:
        log.error("%s stopped early: %s", report.command, report.aborted)
