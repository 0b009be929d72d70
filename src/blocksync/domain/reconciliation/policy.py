"""Create or update the single managed blocking rule.

The rule is looked up by its fixed name. Only the traffic expression and the
enabled flag are compared, so operator edits to other fields (precedence,
settings) survive and the platform's audit log only records real changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

from blocksync.domain.errors import ExternalRejected, OrderingViolation
from blocksync.domain.model import RuleTemplate

from .filters import compile_filter, referenced_list_ids
from .plan import ResourceAction, ResourceOutcome

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Collection

    from blocksync.domain.model import BlockRule, ListId
    from blocksync.domain.ports import GatewayPort

    from .plan import SlotBindings

log = getLogger(__name__)

COMPARED_FIELDS = ("traffic", "enabled")


@dataclass(slots=True, kw_only=True)
class PolicyOutcome:
    action: ResourceAction
    rule: BlockRule
    changed_fields: tuple[str, ...] = ()
    applied: bool = False

    def as_resource_outcome(self) -> ResourceOutcome:
        return ResourceOutcome(
            name=self.rule.name,
            action=self.action,
            resource_id=self.rule.id,
            applied=self.applied,
        )


def find_rules(rules: Collection[BlockRule], name: str) -> list[BlockRule]:
    return [rule for rule in rules if rule.name == name]


def diff_rule(current: BlockRule, desired: BlockRule) -> tuple[str, ...]:
    return tuple(
        name for name in COMPARED_FIELDS if getattr(current, name) != getattr(desired, name)
    )


def ensure_references_exist(
    traffic: str,
    *,
    known_list_ids: Collection[ListId],
    rule_name: str,
) -> None:
    missing = sorted(referenced_list_ids(traffic).difference(known_list_ids))
    if missing:
        raise OrderingViolation(
            f"filter references lists that do not exist: {', '.join(missing)}",
            resource=rule_name,
        )


@dataclass(slots=True)
class PolicyReconciler:
    gateway: GatewayPort
    template: RuleTemplate = field(default_factory=RuleTemplate)

    async def reconcile(
        self,
        bindings: SlotBindings,
        *,
        known_list_ids: Collection[ListId] | None = None,
        dry_run: bool = False,
    ) -> PolicyOutcome:
        """Point the managed rule at the active lists in ``bindings``.

        ``known_list_ids`` is the set of list identities that currently exist on
        the platform; it defaults to the identities bound in ``bindings``.
        """

        traffic = compile_filter(bindings.active_lists())
        known = bindings.list_ids() if known_list_ids is None else set(known_list_ids)
        return await self.apply_traffic(traffic, known_list_ids=known, dry_run=dry_run)

    async def apply_traffic(
        self,
        traffic: str,
        *,
        known_list_ids: Collection[ListId],
        dry_run: bool = False,
    ) -> PolicyOutcome:
        ensure_references_exist(
            traffic,
            known_list_ids=known_list_ids,
            rule_name=self.template.name,
        )
        desired = self.template.build(traffic)

        matches = find_rules(await self.gateway.list_rules(), self.template.name)
        if len(matches) > 1:
            log.warning(
                "Found %s rules named %r; reconciling %s",
                len(matches),
                self.template.name,
                matches[0].id,
            )

        if not matches:
            if dry_run:
                return PolicyOutcome(action=ResourceAction.CREATE, rule=desired)
            created = await self._write(self.gateway.create_rule, desired)
            log.info("Created rule %r (%s)", created.name, created.id)
            return PolicyOutcome(action=ResourceAction.CREATE, rule=created, applied=True)

        current = matches[0]
        changed = diff_rule(current, desired)
        if not changed:
            log.info("Rule %r is up to date", current.name)
            return PolicyOutcome(action=ResourceAction.NOOP, rule=current)

        merged = replace(current, traffic=desired.traffic, enabled=desired.enabled)
        if dry_run:
            return PolicyOutcome(action=ResourceAction.UPDATE, rule=merged, changed_fields=changed)
        updated = await self._write(self.gateway.update_rule, merged)
        log.info("Updated rule %r (%s): %s", updated.name, updated.id, ", ".join(changed))
        return PolicyOutcome(
            action=ResourceAction.UPDATE,
            rule=updated,
            changed_fields=changed,
            applied=True,
        )

    async def _write(
        self,
        write: Callable[[BlockRule], Awaitable[BlockRule]],
        rule: BlockRule,
    ) -> BlockRule:
        """Send ``rule``; a rejection caused by a vanished list becomes ``OrderingViolation``."""

        try:
            return await write(rule)
        except ExternalRejected as exc:
            existing = {remote.id for remote in await self.gateway.list_lists()}
            missing = sorted(referenced_list_ids(rule.traffic).difference(existing))
            if not missing:
                raise
            raise OrderingViolation(
                f"platform rejected rule referencing missing lists: {', '.join(missing)}",
                resource=rule.name,
            ) from exc
