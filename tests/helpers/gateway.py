"""In-memory gateway platform for reconciliation tests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from itertools import count
from typing import TYPE_CHECKING

from blocksync.domain.errors import ExternalRejected, ReconciliationError
from blocksync.domain.model import (
    LIST_NAME_PREFIX,
    LIST_TYPE_DOMAIN,
    PLACEHOLDER_DOMAIN,
    BlockRule,
    RemoteList,
    Slot,
)
from blocksync.domain.reconciliation.filters import referenced_list_ids

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from blocksync.domain.model import Domain, ListId


def make_domains(total: int, *, start: int = 0) -> tuple[Domain, ...]:
    return tuple(f"ads{index:05d}.example" for index in range(start, start + total))


@dataclass(slots=True)
class StoredList:
    id: ListId
    name: str
    members: set[Domain]


@dataclass
class FakeGateway:
    """Records every call and enforces the platform's reference checks.

    Failures are injected per operation and resource name (or id) with
    :meth:`fail_on`; they are raised each time the call is made.
    """

    lists: dict[ListId, StoredList] = field(default_factory=dict["ListId", "StoredList"])
    rules: dict[str, BlockRule] = field(default_factory=dict[str, BlockRule])
    calls: list[tuple[str, str]] = field(default_factory=list[tuple[str, str]])
    failures: dict[tuple[str, str], ReconciliationError] = field(
        default_factory=dict[tuple[str, str], ReconciliationError]
    )
    entered: int = 0
    _ids: count[int] = field(default_factory=count)

    async def __aenter__(self) -> FakeGateway:
        self.entered += 1
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        return None

    def fail_on(self, operation: str, key: str, error: ReconciliationError) -> None:
        self.failures[(operation, key)] = error

    def seed_list(self, name: str, members: Iterable[Domain]) -> ListId:
        list_id = self._next_id("list")
        self.lists[list_id] = StoredList(id=list_id, name=name, members=set(members))
        return list_id

    def seed_slot(self, index: int, members: Iterable[Domain]) -> ListId:
        return self.seed_list(Slot(index).list_name(LIST_NAME_PREFIX), members)

    def seed_rule(self, rule: BlockRule) -> BlockRule:
        stored = replace(rule, id=rule.id or self._next_id("rule"))
        assert stored.id is not None
        self.rules[stored.id] = stored
        return stored

    def list_by_name(self, name: str) -> StoredList:
        matches = [stored for stored in self.lists.values() if stored.name == name]
        assert len(matches) == 1, f"expected one list named {name}, found {len(matches)}"
        return matches[0]

    def members_of(self, name: str) -> set[Domain]:
        return self.list_by_name(name).members

    def managed_names(self) -> list[str]:
        return sorted(
            stored.name for stored in self.lists.values() if Slot.from_list_name(stored.name)
        )

    def placeholder_names(self) -> list[str]:
        return sorted(
            stored.name
            for stored in self.lists.values()
            if stored.members == {PLACEHOLDER_DOMAIN}
        )

    def rule_named(self, name: str) -> BlockRule:
        matches = [rule for rule in self.rules.values() if rule.name == name]
        assert len(matches) == 1, f"expected one rule named {name}, found {len(matches)}"
        return matches[0]

    def mutations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if not call[0].startswith("list_")]

    def calls_to(self, operation: str) -> list[str]:
        return [key for name, key in self.calls if name == operation]

    async def list_lists(self) -> list[RemoteList]:
        self._record("list_lists", "*")
        return [
            RemoteList(
                id=stored.id,
                name=stored.name,
                type=LIST_TYPE_DOMAIN,
                item_count=len(stored.members),
            )
            for stored in self.lists.values()
        ]

    async def list_items(self, list_id: ListId) -> frozenset[Domain]:
        self._record("list_items", list_id)
        return frozenset(self._stored(list_id).members)

    async def create_list(self, name: str, members: Iterable[Domain]) -> RemoteList:
        self._record("create_list", name)
        if any(stored.name == name for stored in self.lists.values()):
            raise ExternalRejected(
                [f"a list named {name} already exists"],
                resource=name,
                status_code=400,
            )
        list_id = self.seed_list(name, members)
        stored = self.lists[list_id]
        return RemoteList(id=list_id, name=name, item_count=len(stored.members))

    async def update_list(self, remote: RemoteList, members: Iterable[Domain]) -> RemoteList:
        self._record("update_list", remote.name)
        stored = self._stored(remote.id)
        stored.members = set(members)
        return RemoteList(id=stored.id, name=stored.name, item_count=len(stored.members))

    async def delete_list(self, list_id: ListId) -> None:
        stored = self._stored(list_id)
        self._record("delete_list", stored.name)
        if any(list_id in referenced_list_ids(rule.traffic) for rule in self.rules.values()):
            raise ExternalRejected(
                ["list is referenced by a rule"],
                resource=stored.name,
                status_code=400,
            )
        del self.lists[list_id]

    async def list_rules(self) -> list[BlockRule]:
        self._record("list_rules", "*")
        return [replace(rule) for rule in self.rules.values()]

    async def create_rule(self, rule: BlockRule) -> BlockRule:
        self._record("create_rule", rule.name)
        self._check_references(rule)
        return self.seed_rule(replace(rule, id=None))

    async def update_rule(self, rule: BlockRule) -> BlockRule:
        self._record("update_rule", rule.name)
        assert rule.id in self.rules
        self._check_references(rule)
        self.rules[rule.id] = replace(rule)
        return replace(rule)

    async def delete_rule(self, rule_id: str) -> None:
        self._record("delete_rule", self.rules[rule_id].name)
        del self.rules[rule_id]

    def _record(self, operation: str, key: str) -> None:
        self.calls.append((operation, key))
        error = self.failures.get((operation, key))
        if error is not None:
            raise error

    def _stored(self, list_id: ListId) -> StoredList:
        try:
            return self.lists[list_id]
        except KeyError:
            raise ExternalRejected(
                [f"list {list_id} not found"],
                resource=list_id,
                status_code=404,
            ) from None

    def _check_references(self, rule: BlockRule) -> None:
        missing = referenced_list_ids(rule.traffic) - self.lists.keys()
        if missing:
            raise ExternalRejected(
                [f"unknown list {list_id}" for list_id in sorted(missing)],
                resource=rule.name,
                status_code=400,
            )

    def _next_id(self, kind: str) -> str:
        return f"{kind}-{next(self._ids):04d}"
