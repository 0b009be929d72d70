"""Split the domain sequence into fixed-capacity chunks bound to slots."""

from __future__ import annotations

from typing import TYPE_CHECKING

from blocksync.domain.errors import CapacityExceeded
from blocksync.domain.model import (
    DEFAULT_SLOT_COUNT,
    MAX_ITEMS_PER_LIST,
    Chunk,
    Slot,
    SlotPolicy,
    SlotTable,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from blocksync.domain.model import Domain


def iter_windows(domains: Sequence[Domain], capacity: int) -> Iterator[tuple[Domain, ...]]:
    for start in range(0, len(domains), capacity):
        yield tuple(domains[start : start + capacity])


def required_slots(domain_count: int, capacity: int = MAX_ITEMS_PER_LIST) -> int:
    return -(-domain_count // capacity)


def partition_domains(
    domains: Sequence[Domain],
    *,
    capacity: int = MAX_ITEMS_PER_LIST,
    policy: SlotPolicy = SlotPolicy.STABLE_SLOTS,
    slot_count: int = DEFAULT_SLOT_COUNT,
) -> SlotTable:
    """Bind contiguous windows of ``domains`` to slots ``000``, ``001``, ...

    With ``STABLE_SLOTS`` exactly ``slot_count`` slots are produced and the
    unused ones hold the placeholder chunk. ``EXACT_RESIZE`` produces one slot
    per window and nothing else.
    """

    if capacity < 1:
        raise ValueError(f"List capacity must be positive, got {capacity}")
    if policy is SlotPolicy.STABLE_SLOTS and slot_count < 1:
        raise ValueError(f"Slot count must be positive, got {slot_count}")

    windows = list(iter_windows(domains, capacity))
    if policy is SlotPolicy.STABLE_SLOTS and len(windows) > slot_count:
        raise CapacityExceeded(
            domain_count=len(domains),
            capacity=capacity,
            slot_count=slot_count,
        )

    chunks = [Chunk(slot=Slot(index), domains=window) for index, window in enumerate(windows)]
    if policy is SlotPolicy.STABLE_SLOTS:
        chunks.extend(Chunk.placeholder(Slot(index)) for index in range(len(windows), slot_count))

    return SlotTable(policy=policy, capacity=capacity, chunks=tuple(chunks))
