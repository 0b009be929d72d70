"""Drive the managed gateway lists toward a slot table.

Each slot is handled independently: a failure on one slot is recorded in its
outcome while the remaining slots keep going. Bounded-slot tables never delete
a list; an unused slot is rewritten to the placeholder membership instead.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from blocksync.domain.errors import ReconciliationError
from blocksync.domain.model import LIST_NAME_PREFIX, SlotPolicy

from .plan import ListOperation, ListPhaseResult, ResourceAction, ResourceOutcome, SlotBindings

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from blocksync.domain.model import Chunk, RemoteList, Slot, SlotTable
    from blocksync.domain.ports import GatewayPort

log = getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4


@dataclass(slots=True, kw_only=True)
class ManagedIndex:
    """Managed lists on the platform, keyed by slot."""

    by_slot: dict[Slot, RemoteList]
    duplicates: tuple[RemoteList, ...] = ()


def index_managed_lists(
    remote_lists: Iterable[RemoteList],
    *,
    prefix: str = LIST_NAME_PREFIX,
) -> ManagedIndex:
    """Bind each managed name to the first list enumerated with that name."""

    by_slot: dict[Slot, RemoteList] = {}
    duplicates: list[RemoteList] = []
    for remote in remote_lists:
        slot = remote.slot(prefix)
        if slot is None:
            continue
        if slot in by_slot:
            log.warning(
                "Duplicate managed list %s (%s); keeping %s",
                remote.name,
                remote.id,
                by_slot[slot].id,
            )
            duplicates.append(remote)
            continue
        by_slot[slot] = remote
    return ManagedIndex(by_slot=by_slot, duplicates=tuple(duplicates))


@dataclass(slots=True)
class ListReconciler:
    gateway: GatewayPort
    prefix: str = LIST_NAME_PREFIX
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be positive, got {self.max_concurrency}")

    async def reconcile(
        self,
        table: SlotTable,
        *,
        remote_lists: Sequence[RemoteList] | None = None,
        dry_run: bool = False,
    ) -> ListPhaseResult:
        """Create or update one list per slot of ``table``.

        With ``dry_run`` the decisions are computed (members are still read)
        but nothing is written.
        """

        if remote_lists is None:
            remote_lists = await self.gateway.list_lists()
        index = index_managed_lists(remote_lists, prefix=self.prefix)
        bindings = SlotBindings()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_slot(chunk: Chunk) -> ResourceOutcome:
            name = chunk.slot.list_name(self.prefix)
            remote = index.by_slot.get(chunk.slot)
            try:
                async with semaphore:
                    operation = await self._decide(chunk, remote)
                    if dry_run:
                        return _planned(operation)
                    bound = await self._execute(operation)
            except ReconciliationError as exc:
                log.error("List %s failed: %s", name, exc)  # noqa: TRY400
                return ResourceOutcome(
                    name=name,
                    slot=chunk.slot,
                    action=ResourceAction.CREATE if remote is None else ResourceAction.UPDATE,
                    resource_id=remote.id if remote else None,
                    error=exc,
                )
            bindings.bind(chunk.slot, bound)
            return ResourceOutcome(
                name=name,
                slot=chunk.slot,
                action=operation.action,
                resource_id=bound.id,
                applied=operation.action is not ResourceAction.NOOP,
            )

        outcomes = list(await asyncio.gather(*(run_slot(chunk) for chunk in table)))

        outside = tuple(
            remote
            for slot, remote in sorted(index.by_slot.items())
            if table.chunk_for(slot) is None
        )
        stale: tuple[RemoteList, ...] = ()
        orphans: tuple[RemoteList, ...] = ()
        if table.policy is SlotPolicy.EXACT_RESIZE:
            stale = outside
        else:
            orphans = outside
            for remote in orphans:
                log.warning("List %s lies outside the %s configured slots", remote.name, len(table))

        result = ListPhaseResult(
            table=table,
            outcomes=outcomes,
            bindings=bindings,
            prefix=self.prefix,
            stale=stale,
            orphans=orphans,
            duplicates=index.duplicates,
        )
        log.info(
            "List phase%s: created=%s, updated=%s, unchanged=%s, failed=%s, stale=%s",
            " (dry run)" if dry_run else "",
            result.count(ResourceAction.CREATE),
            result.count(ResourceAction.UPDATE),
            result.count(ResourceAction.NOOP),
            len(result.failures),
            len(stale),
        )
        return result

    async def discover(self, *, slot_limit: int | None = None) -> SlotBindings:
        """Bind slots from the lists already on the platform, members loaded.

        With ``slot_limit`` only slots below it are bound; lists beyond it are
        orphans of a bounded-slot table and stay out of the filter.
        """

        index = index_managed_lists(await self.gateway.list_lists(), prefix=self.prefix)
        bound = {
            slot: remote
            for slot, remote in index.by_slot.items()
            if slot_limit is None or slot.index < slot_limit
        }
        for slot in sorted(index.by_slot.keys() - bound.keys()):
            log.warning(
                "List %s lies outside the %s configured slots",
                index.by_slot[slot].name,
                slot_limit,
            )
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def load(remote: RemoteList) -> None:
            async with semaphore:
                await self._ensure_members(remote)

        await asyncio.gather(*(load(remote) for remote in bound.values()))
        return SlotBindings(bound)

    async def _decide(self, chunk: Chunk, remote: RemoteList | None) -> ListOperation:
        name = chunk.slot.list_name(self.prefix)
        if remote is None:
            return ListOperation(chunk=chunk, name=name, action=ResourceAction.CREATE)

        current = await self._ensure_members(remote)
        action = ResourceAction.NOOP if current == chunk.members else ResourceAction.UPDATE
        return ListOperation(chunk=chunk, name=name, action=action, remote=remote)

    async def _execute(self, operation: ListOperation) -> RemoteList:
        chunk = operation.chunk
        existing = operation.remote
        if existing is None:
            remote = await self.gateway.create_list(operation.name, chunk.domains)
            verb = "Created"
        elif operation.action is ResourceAction.NOOP:
            return existing
        else:
            remote = await self.gateway.update_list(existing, chunk.domains)
            verb = "Updated"

        remote.members = chunk.members
        log.info(
            "%s list %s (%s, %s domains%s)",
            verb,
            operation.name,
            remote.id,
            len(chunk.domains),
            ", placeholder" if chunk.is_placeholder else "",
        )
        return remote

    async def _ensure_members(self, remote: RemoteList) -> frozenset[str]:
        if remote.members is None:
            remote.members = await self.gateway.list_items(remote.id)
        return remote.members


def _planned(operation: ListOperation) -> ResourceOutcome:
    return ResourceOutcome(
        name=operation.name,
        slot=operation.slot,
        action=operation.action,
        resource_id=operation.remote.id if operation.remote else None,
    )
