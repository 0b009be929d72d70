"""Operator commands composed from the reconciliation phases.

Ordering rules enforced here:

- lists are reconciled before the rule, and the rule phase is skipped when a
  slot holding real domains failed;
- stale lists (``exact-resize`` only) are deleted after the rule stopped
  referencing them;
- teardown deletes the rule before the lists, and ``reset`` waits for a
  settling delay before recreating anything.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from blocksync.domain.errors import ReconciliationError
from blocksync.domain.model import (
    DEFAULT_SLOT_COUNT,
    LIST_NAME_PREFIX,
    MAX_ITEMS_PER_LIST,
    RuleTemplate,
    SlotPolicy,
)

from .lists import DEFAULT_MAX_CONCURRENCY, ListReconciler
from .partition import partition_domains
from .plan import ResourceAction, ResourceOutcome
from .policy import PolicyReconciler
from .teardown import Teardown

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from blocksync.domain.model import Domain, ListId, SlotTable
    from blocksync.domain.ports import GatewayPort

    from .plan import ListPhaseResult, SlotBindings
    from .policy import PolicyOutcome
    from .teardown import TeardownResult

log = getLogger(__name__)

DEFAULT_SETTLE_SECONDS = 5.0


class Command(StrEnum):
    PLAN = "plan"
    CREATE_LISTS = "create-lists"
    CREATE_POLICY = "create-policy"
    APPLY = "apply"
    DELETE_LISTS = "delete-lists"
    DELETE_POLICIES = "delete-policies"
    DELETE_ALL = "delete-all"
    RESET = "reset"

    @property
    def needs_domains(self) -> bool:
        return self in {Command.PLAN, Command.CREATE_LISTS, Command.APPLY, Command.RESET}


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconcileSettings:
    capacity: int = MAX_ITEMS_PER_LIST
    slot_count: int = DEFAULT_SLOT_COUNT
    slot_policy: SlotPolicy = SlotPolicy.STABLE_SLOTS
    prefix: str = LIST_NAME_PREFIX
    rule: RuleTemplate = field(default_factory=RuleTemplate)
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    settle_seconds: float = DEFAULT_SETTLE_SECONDS


@dataclass(slots=True, kw_only=True)
class CommandReport:
    """Machine-checkable result of one operator command."""

    command: Command
    outcomes: list[ResourceOutcome] = field(default_factory=list["ResourceOutcome"])
    aborted: str | None = None
    lists: ListPhaseResult | None = None
    policy: PolicyOutcome | None = None
    teardown: TeardownResult | None = None

    @property
    def ok(self) -> bool:
        return self.aborted is None and all(outcome.ok for outcome in self.outcomes)

    @property
    def failures(self) -> list[ResourceOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def abort(self, reason: str) -> None:
        log.error("%s aborted: %s", self.command, reason)
        self.aborted = reason

    def merge(self, other: CommandReport) -> None:
        self.outcomes.extend(other.outcomes)
        self.lists = other.lists or self.lists
        self.policy = other.policy or self.policy
        self.teardown = other.teardown or self.teardown
        if other.aborted is not None:
            self.aborted = other.aborted


@dataclass(slots=True)
class GatewayReconciler:
    gateway: GatewayPort
    settings: ReconcileSettings = field(default_factory=ReconcileSettings)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @property
    def _lists(self) -> ListReconciler:
        return ListReconciler(
            self.gateway,
            prefix=self.settings.prefix,
            max_concurrency=self.settings.max_concurrency,
        )

    @property
    def _policy(self) -> PolicyReconciler:
        return PolicyReconciler(self.gateway, template=self.settings.rule)

    @property
    def _teardown(self) -> Teardown:
        return Teardown(
            self.gateway,
            rule_name=self.settings.rule.name,
            prefix=self.settings.prefix,
            max_concurrency=self.settings.max_concurrency,
        )

    def partition(self, domains: Sequence[Domain]) -> SlotTable:
        table = partition_domains(
            domains,
            capacity=self.settings.capacity,
            policy=self.settings.slot_policy,
            slot_count=self.settings.slot_count,
        )
        log.info(
            "Partitioned %s domains into %s slots (%s active, %s placeholder, policy=%s)",
            len(domains),
            len(table),
            len(table.active),
            len(table.placeholders),
            table.policy,
        )
        return table

    async def plan(self, domains: Sequence[Domain]) -> CommandReport:
        table = self.partition(domains)
        result = await self._lists.reconcile(table, dry_run=True)
        report = CommandReport(command=Command.PLAN, lists=result)
        report.outcomes.extend(result.outcomes)
        report.outcomes.extend(
            ResourceOutcome(name=remote.name, action=ResourceAction.DELETE, resource_id=remote.id)
            for remote in result.stale
        )
        return report

    async def create_lists(self, domains: Sequence[Domain]) -> CommandReport:
        result = await self._lists.reconcile(self.partition(domains))
        return CommandReport(
            command=Command.CREATE_LISTS,
            outcomes=list(result.outcomes),
            lists=result,
        )

    async def create_policy(self, bindings: SlotBindings | None = None) -> CommandReport:
        """Reconcile the rule; without ``bindings`` they are read from the platform."""

        report = CommandReport(command=Command.CREATE_POLICY)
        if bindings is None:
            stable = self.settings.slot_policy is SlotPolicy.STABLE_SLOTS
            limit = self.settings.slot_count if stable else None
            bindings = await self._lists.discover(slot_limit=limit)
        await self._run_policy_phase(report, bindings, known_list_ids=bindings.list_ids())
        return report

    async def apply(self, domains: Sequence[Domain]) -> CommandReport:
        report = CommandReport(command=Command.APPLY)
        table = self.partition(domains)
        remote_lists = await self.gateway.list_lists()
        result = await self._lists.reconcile(table, remote_lists=remote_lists)
        report.lists = result
        report.outcomes.extend(result.outcomes)

        blocking = result.blocking_failures
        if blocking:
            names = ", ".join(outcome.name for outcome in blocking)
            report.abort(f"lists holding domains did not converge: {names}")
            return report

        known = {remote.id for remote in remote_lists} | result.bindings.list_ids()
        if not await self._run_policy_phase(report, result.bindings, known_list_ids=known):
            return report

        if result.stale:
            rules = await self.gateway.list_rules()
            report.outcomes.extend(
                await self._teardown.delete_lists(lists=result.stale, rules=rules)
            )
        return report

    async def delete_policies(self) -> CommandReport:
        deletion = await self._teardown.delete_rules()
        return CommandReport(command=Command.DELETE_POLICIES, outcomes=deletion.outcomes)

    async def delete_lists(self) -> CommandReport:
        outcomes = await self._teardown.delete_lists()
        return CommandReport(command=Command.DELETE_LISTS, outcomes=outcomes)

    async def delete_all(self) -> CommandReport:
        result = await self._teardown.run()
        report = CommandReport(
            command=Command.DELETE_ALL,
            outcomes=list(result.outcomes),
            teardown=result,
        )
        if not result.ok:
            report.abort(f"teardown stopped in state {result.state}")
        return report

    async def reset(self, domains: Sequence[Domain]) -> CommandReport:
        """Tear everything down, wait for the platform to settle, then apply."""

        report = CommandReport(command=Command.RESET)
        # capacity is checked before anything is torn down
        self.partition(domains)

        report.merge(await self.delete_all())
        if not report.ok:
            return report

        log.info("Waiting %.1f seconds before recreating resources", self.settings.settle_seconds)
        await self.sleep(self.settings.settle_seconds)
        report.merge(await self.apply(domains))
        return report

    async def _run_policy_phase(
        self,
        report: CommandReport,
        bindings: SlotBindings,
        *,
        known_list_ids: set[ListId],
    ) -> bool:
        try:
            outcome = await self._policy.reconcile(bindings, known_list_ids=known_list_ids)
        except ReconciliationError as exc:
            report.outcomes.append(
                ResourceOutcome(
                    name=self.settings.rule.name,
                    action=ResourceAction.UPDATE,
                    error=exc,
                )
            )
            report.abort(str(exc))
            return False
        report.policy = outcome
        report.outcomes.append(outcome.as_resource_outcome())
        return True
