"""Port for the remote gateway-policy platform."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from blocksync.domain.model import BlockRule, Domain, ListId, RemoteList


@runtime_checkable
class GatewayPort(Protocol):
    """Async CRUD surface for gateway lists and rules.

    Implementations raise ``ExternalRequestFailed`` for transport failures that
    survived retries and ``ExternalRejected`` for application-level errors.
    """

    async def list_lists(self) -> list[RemoteList]:
        """Enumerate every list on the account, without members."""
        ...

    async def list_items(self, list_id: ListId) -> frozenset[Domain]: ...

    async def create_list(self, name: str, members: Iterable[Domain]) -> RemoteList: ...

    async def update_list(self, remote: RemoteList, members: Iterable[Domain]) -> RemoteList:
        """Replace the membership of ``remote``; ``remote.members`` must be loaded."""
        ...

    async def delete_list(self, list_id: ListId) -> None: ...

    async def list_rules(self) -> list[BlockRule]: ...

    async def create_rule(self, rule: BlockRule) -> BlockRule: ...

    async def update_rule(self, rule: BlockRule) -> BlockRule:
        """Overwrite the rule identified by ``rule.id`` with ``rule``."""
        ...

    async def delete_rule(self, rule_id: str) -> None: ...


__all__ = ["GatewayPort"]
