"""Plan and outcome types shared by the list, policy, and teardown phases.

The list phase hands its ``SlotBindings`` to the policy phase explicitly, so
the phases can run separately (``create-lists`` then ``create-policy``) or
back to back without any ambient state between them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from blocksync.domain.model import LIST_NAME_PREFIX, is_active_membership

if TYPE_CHECKING:
    from blocksync.domain.errors import ReconciliationError
    from blocksync.domain.model import Chunk, ListId, RemoteList, Slot, SlotTable


class ResourceAction(StrEnum):
    """What a reconciler decided to do with one remote resource."""

    CREATE = "create"
    UPDATE = "update"
    NOOP = "noop"
    DELETE = "delete"


@dataclass(slots=True, kw_only=True)
class ListOperation:
    """Planned change for one slot."""

    chunk: Chunk
    name: str
    action: ResourceAction
    remote: RemoteList | None = None

    @property
    def slot(self) -> Slot:
        return self.chunk.slot


@dataclass(slots=True, kw_only=True)
class ResourceOutcome:
    """Result of acting (or planning to act) on one list or rule."""

    name: str
    action: ResourceAction
    resource_id: str | None = None
    slot: Slot | None = None
    applied: bool = False
    error: ReconciliationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class SlotBindings:
    """Slot -> remote list bindings after the list phase."""

    lists: dict[Slot, RemoteList] = field(default_factory=dict["Slot", "RemoteList"])

    def bind(self, slot: Slot, remote: RemoteList) -> None:
        self.lists[slot] = remote

    def get(self, slot: Slot) -> RemoteList | None:
        return self.lists.get(slot)

    def active_lists(self) -> list[RemoteList]:
        """Lists holding real domains, in ascending slot order."""

        return [
            remote
            for _slot, remote in sorted(self.lists.items())
            if is_active_membership(remote.members)
        ]

    def list_ids(self) -> set[ListId]:
        return {remote.id for remote in self.lists.values()}


@dataclass(slots=True, kw_only=True)
class ListPhaseResult:
    """Aggregate outcome of one list reconciliation pass."""

    table: SlotTable
    outcomes: list[ResourceOutcome]
    bindings: SlotBindings
    prefix: str = LIST_NAME_PREFIX
    stale: tuple[RemoteList, ...] = ()
    orphans: tuple[RemoteList, ...] = ()
    duplicates: tuple[RemoteList, ...] = ()

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failures(self) -> list[ResourceOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def blocking_failures(self) -> list[ResourceOutcome]:
        """Failures on slots that hold real domains; these stop the policy phase."""

        active_slots = {chunk.slot for chunk in self.table.active}
        return [outcome for outcome in self.failures if outcome.slot in active_slots]

    def count(self, action: ResourceAction) -> int:
        return sum(1 for outcome in self.outcomes if outcome.action is action)
