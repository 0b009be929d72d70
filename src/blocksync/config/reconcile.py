"""Reconciliation defaults and their environment overrides."""

from __future__ import annotations

from dataclasses import dataclass

from blocksync.domain.model import (
    DEFAULT_SLOT_COUNT,
    MAX_ITEMS_PER_LIST,
    RULE_PRECEDENCE,
    SlotPolicy,
)
from blocksync.domain.reconciliation.engine import DEFAULT_SETTLE_SECONDS
from blocksync.domain.reconciliation.lists import DEFAULT_MAX_CONCURRENCY

from .env import env_float, env_int, optional_env_var
from .errors import ConfigurationError

DEFAULT_DOMAIN_SOURCE = "./cloudflare/lists/pihole_domain_list.txt"


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    domain_source: str = DEFAULT_DOMAIN_SOURCE
    slot_policy: SlotPolicy = SlotPolicy.STABLE_SLOTS
    slot_count: int = DEFAULT_SLOT_COUNT
    capacity: int = MAX_ITEMS_PER_LIST
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    settle_seconds: float = DEFAULT_SETTLE_SECONDS
    precedence: int = RULE_PRECEDENCE


def parse_slot_policy(value: str) -> SlotPolicy:
    try:
        return SlotPolicy(value.strip().lower())
    except ValueError as exc:
        choices = ", ".join(policy.value for policy in SlotPolicy)
        raise ConfigurationError(f"Unknown slot policy {value!r} (choose from {choices})") from exc


def get_reconcile_config() -> ReconcileConfig:
    return ReconcileConfig(
        domain_source=optional_env_var("BLOCKSYNC_DOMAIN_SOURCE", DEFAULT_DOMAIN_SOURCE),
        slot_policy=parse_slot_policy(
            optional_env_var("BLOCKSYNC_SLOT_POLICY", SlotPolicy.STABLE_SLOTS.value)
        ),
        slot_count=env_int("BLOCKSYNC_SLOT_COUNT", DEFAULT_SLOT_COUNT, minimum=1),
        max_concurrency=env_int("BLOCKSYNC_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY, minimum=1),
        settle_seconds=env_float("BLOCKSYNC_SETTLE_SECONDS", DEFAULT_SETTLE_SECONDS, minimum=0.0),
        precedence=env_int("BLOCKSYNC_PRECEDENCE", RULE_PRECEDENCE),
    )
