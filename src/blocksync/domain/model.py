"""Domain types for partitioned block lists and the blocking rule."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

type Domain = str
type ListId = str

MAX_ITEMS_PER_LIST: Final[int] = 1000
DEFAULT_SLOT_COUNT: Final[int] = 15
PLACEHOLDER_DOMAIN: Final[Domain] = "placeholder.invalid"

LIST_NAME_PREFIX: Final[str] = "pihole_domain_list"
LIST_TYPE_DOMAIN: Final[str] = "DOMAIN"
RULE_NAME: Final[str] = "Block Ads"
RULE_DESCRIPTION: Final[str] = "Block Ads domains"
RULE_PRECEDENCE: Final[int] = 11
RULE_ACTION_BLOCK: Final[str] = "block"


class SlotPolicy(StrEnum):
    """How the slot table reacts to a changing domain count."""

    STABLE_SLOTS = "stable-slots"
    EXACT_RESIZE = "exact-resize"


@dataclass(frozen=True, slots=True, order=True)
class Slot:
    """Positional identity of one managed list."""

    index: int

    def __post_init__(self) -> None:
        if not 0 <= self.index <= 999:  # noqa: PLR2004
            raise ValueError(f"Slot index out of range: {self.index}")

    @property
    def label(self) -> str:
        return f"{self.index:03d}"

    def list_name(self, prefix: str = LIST_NAME_PREFIX) -> str:
        return f"{prefix}_{self.label}"

    @classmethod
    def from_list_name(cls, name: str, prefix: str = LIST_NAME_PREFIX) -> Slot | None:
        """Parse a managed list name back into its slot, or ``None`` if unmanaged."""

        match = re.fullmatch(rf"{re.escape(prefix)}_(\d{{3}})", name)
        if match is None:
            return None
        return cls(int(match.group(1)))


@dataclass(frozen=True, slots=True)
class Chunk:
    """Domains bound to one slot; the placeholder chunk is the tombstone value."""

    slot: Slot
    domains: tuple[Domain, ...]

    @classmethod
    def placeholder(cls, slot: Slot) -> Chunk:
        return cls(slot=slot, domains=(PLACEHOLDER_DOMAIN,))

    @property
    def is_placeholder(self) -> bool:
        return is_placeholder_membership(self.domains)

    @property
    def members(self) -> frozenset[Domain]:
        return frozenset(self.domains)


def is_placeholder_membership(members: tuple[Domain, ...] | frozenset[Domain]) -> bool:
    return set(members) == {PLACEHOLDER_DOMAIN}


def is_active_membership(members: tuple[Domain, ...] | frozenset[Domain] | None) -> bool:
    """True when a list holds real domains and belongs in the compiled filter."""

    if not members:
        return False
    return not is_placeholder_membership(members)


@dataclass(frozen=True, slots=True)
class SlotTable:
    """Arena of slot -> chunk bindings produced by the partitioner."""

    policy: SlotPolicy
    capacity: int
    chunks: tuple[Chunk, ...]

    def __iter__(self) -> Iterator[Chunk]:
        return iter(self.chunks)

    def __len__(self) -> int:
        return len(self.chunks)

    @property
    def slots(self) -> tuple[Slot, ...]:
        return tuple(chunk.slot for chunk in self.chunks)

    @property
    def active(self) -> tuple[Chunk, ...]:
        return tuple(chunk for chunk in self.chunks if not chunk.is_placeholder)

    @property
    def placeholders(self) -> tuple[Chunk, ...]:
        return tuple(chunk for chunk in self.chunks if chunk.is_placeholder)

    def chunk_for(self, slot: Slot) -> Chunk | None:
        for chunk in self.chunks:
            if chunk.slot == slot:
                return chunk
        return None

    def domains(self) -> tuple[Domain, ...]:
        """Real domains in slot order; reproduces the partitioned input."""

        return tuple(domain for chunk in self.active for domain in chunk.domains)


@dataclass(slots=True, kw_only=True)
class RemoteList:
    """A list resource on the gateway platform.

    ``members`` is ``None`` until the items have been loaded; enumeration only
    returns metadata.
    """

    id: ListId
    name: str
    type: str = LIST_TYPE_DOMAIN
    description: str | None = None
    item_count: int = 0
    members: frozenset[Domain] | None = None

    def slot(self, prefix: str = LIST_NAME_PREFIX) -> Slot | None:
        return Slot.from_list_name(self.name, prefix)


@dataclass(slots=True, kw_only=True)
class BlockRule:
    """The gateway rule that blocks DNS resolution for listed domains."""

    name: str = RULE_NAME
    traffic: str
    id: str | None = None
    description: str = RULE_DESCRIPTION
    enabled: bool = True
    precedence: int = RULE_PRECEDENCE
    action: str = RULE_ACTION_BLOCK
    filters: tuple[str, ...] = ("dns",)
    rule_settings: Mapping[str, object] = field(
        default_factory=lambda: {"block_page_enabled": False}
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class RuleTemplate:
    """Desired static attributes of the managed rule."""

    name: str = RULE_NAME
    description: str = RULE_DESCRIPTION
    enabled: bool = True
    precedence: int = RULE_PRECEDENCE

    def build(self, traffic: str) -> BlockRule:
        return BlockRule(
            name=self.name,
            description=self.description,
            enabled=self.enabled,
            precedence=self.precedence,
            traffic=traffic,
        )
