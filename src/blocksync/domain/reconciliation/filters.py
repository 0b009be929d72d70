"""Compile the blocking rule's traffic expression from list identities."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from blocksync.domain.model import LIST_NAME_PREFIX, PLACEHOLDER_DOMAIN, is_active_membership

if TYPE_CHECKING:
    from collections.abc import Iterable

    from blocksync.domain.model import ListId, RemoteList

DOMAIN_FIELD: Final[str] = "dns.domains[*]"
NEVER_MATCH_EXPRESSION: Final[str] = f'dns.fqdn == "{PLACEHOLDER_DOMAIN}"'
CLAUSE_SEPARATOR: Final[str] = " or "

_LIST_REFERENCE = re.compile(r"\$([A-Za-z0-9-]+)")


def membership_clause(list_id: ListId) -> str:
    return f"any({DOMAIN_FIELD} in ${list_id})"


def compile_filter(lists: Iterable[RemoteList], *, prefix: str = LIST_NAME_PREFIX) -> str:
    """OR together one clause per list that holds real domains.

    Clauses follow ascending slot order (unmanaged names sort after managed
    ones, by name) so the same lists always yield the same string. Without any
    active list the result is a predicate that cannot match a real domain.
    """

    def order(remote: RemoteList) -> tuple[int, str]:
        slot = remote.slot(prefix)
        return (slot.index if slot is not None else 1000, remote.name)

    active = sorted((remote for remote in lists if is_active_membership(remote.members)), key=order)
    if not active:
        return NEVER_MATCH_EXPRESSION
    return CLAUSE_SEPARATOR.join(membership_clause(remote.id) for remote in active)


def referenced_list_ids(expression: str) -> set[ListId]:
    """Return the list identities an expression refers to."""

    return set(_LIST_REFERENCE.findall(expression))
