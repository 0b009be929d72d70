"""Remove the managed rule, then the managed lists.

The rule has to be gone before the lists it references are deleted. A list
that some remaining rule still references is never deleted; it is reported as
an ordering violation instead.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from blocksync.domain.errors import OrderingViolation, ReconciliationError
from blocksync.domain.model import LIST_NAME_PREFIX, RULE_NAME

from .filters import referenced_list_ids
from .lists import DEFAULT_MAX_CONCURRENCY
from .plan import ResourceAction, ResourceOutcome

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from blocksync.domain.model import BlockRule, ListId, RemoteList, Slot
    from blocksync.domain.ports import GatewayPort

log = getLogger(__name__)


class TeardownState(StrEnum):
    PENDING = "pending"
    RULE_DELETED = "rule-deleted"
    CONVERGED = "converged"


@dataclass(slots=True, kw_only=True)
class TeardownResult:
    state: TeardownState
    outcomes: list[ResourceOutcome] = field(default_factory=list["ResourceOutcome"])

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)


@dataclass(slots=True, kw_only=True)
class RuleDeletion:
    outcomes: list[ResourceOutcome]
    remaining_rules: list[BlockRule]

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)


def references_of(rules: Iterable[BlockRule]) -> set[ListId]:
    referenced: set[ListId] = set()
    for rule in rules:
        referenced.update(referenced_list_ids(rule.traffic))
    return referenced


@dataclass(slots=True)
class Teardown:
    gateway: GatewayPort
    rule_name: str = RULE_NAME
    prefix: str = LIST_NAME_PREFIX
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY

    async def run(self) -> TeardownResult:
        """Delete the rule, and only once that succeeded, the managed lists."""

        deletion = await self.delete_rules()
        if not deletion.ok:
            log.error("Rule deletion failed; leaving managed lists in place")
            return TeardownResult(state=TeardownState.PENDING, outcomes=deletion.outcomes)

        list_outcomes = await self.delete_lists(rules=deletion.remaining_rules)
        outcomes = deletion.outcomes + list_outcomes
        converged = all(outcome.ok for outcome in list_outcomes)
        return TeardownResult(
            state=TeardownState.CONVERGED if converged else TeardownState.RULE_DELETED,
            outcomes=outcomes,
        )

    async def delete_rules(self, rules: Sequence[BlockRule] | None = None) -> RuleDeletion:
        """Delete every rule carrying the managed name."""

        if rules is None:
            rules = await self.gateway.list_rules()
        targets = [rule for rule in rules if rule.name == self.rule_name]
        remaining = [rule for rule in rules if rule.name != self.rule_name]
        if not targets:
            log.info("No rule named %r found", self.rule_name)

        outcomes: list[ResourceOutcome] = []
        for rule in targets:
            if rule.id is None:
                raise ValueError(f"Rule {rule.name!r} has no platform identity to delete")
            try:
                await self.gateway.delete_rule(rule.id)
            except ReconciliationError as exc:
                log.error("Deleting rule %r (%s) failed: %s", rule.name, rule.id, exc)  # noqa: TRY400
                outcomes.append(_deletion(rule.name, rule.id, error=exc))
                remaining.append(rule)
                continue
            log.info("Deleted rule %r (%s)", rule.name, rule.id)
            outcomes.append(_deletion(rule.name, rule.id))
        return RuleDeletion(outcomes=outcomes, remaining_rules=remaining)

    async def delete_lists(
        self,
        *,
        lists: Sequence[RemoteList] | None = None,
        rules: Sequence[BlockRule] | None = None,
    ) -> list[ResourceOutcome]:
        """Delete managed lists that no remaining rule references.

        ``lists`` defaults to every list matching the managed naming convention;
        ``rules`` defaults to the rules currently on the platform.
        """

        if lists is None:
            enumerated = await self.gateway.list_lists()
            lists = [remote for remote in enumerated if remote.slot(self.prefix) is not None]
        if not lists:
            log.info("No managed lists found")
            return []
        if rules is None:
            rules = await self.gateway.list_rules()
        referenced = references_of(rules)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def delete(remote: RemoteList) -> ResourceOutcome:
            slot = remote.slot(self.prefix)
            if remote.id in referenced:
                error = OrderingViolation(
                    "list is still referenced by a gateway rule",
                    resource=remote.name,
                )
                log.error("Refusing to delete %s (%s): %s", remote.name, remote.id, error.reason)
                return _deletion(remote.name, remote.id, slot=slot, error=error)
            try:
                async with semaphore:
                    await self.gateway.delete_list(remote.id)
            except ReconciliationError as exc:
                log.error("Deleting list %s (%s) failed: %s", remote.name, remote.id, exc)  # noqa: TRY400
                return _deletion(remote.name, remote.id, slot=slot, error=exc)
            log.debug("Deleted list %s (%s)", remote.name, remote.id)
            return _deletion(remote.name, remote.id, slot=slot)

        outcomes = list(await asyncio.gather(*(delete(remote) for remote in lists)))
        deleted = sum(1 for outcome in outcomes if outcome.ok)
        log.info("Deleted %s of %s managed lists", deleted, len(outcomes))
        return outcomes


def _deletion(
    name: str,
    resource_id: str,
    *,
    slot: Slot | None = None,
    error: ReconciliationError | None = None,
) -> ResourceOutcome:
    return ResourceOutcome(
        name=name,
        action=ResourceAction.DELETE,
        resource_id=resource_id,
        slot=slot,
        applied=error is None,
        error=error,
    )
