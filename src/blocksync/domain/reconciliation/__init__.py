"""Partitioning and reconciliation of managed gateway lists and the block rule.

Layered flow for ``apply``:
1) partition the normalized domains into a slot table
2) reconcile one remote list per slot (create / update / noop)
3) compile the traffic expression over the active lists
4) create or update the block rule once every active list exists
5) delete stale lists that the rule no longer references (``exact-resize``)

Teardown runs the rule and list phases in reverse.
"""

from __future__ import annotations

from .engine import Command, CommandReport, GatewayReconciler, ReconcileSettings
from .filters import NEVER_MATCH_EXPRESSION, compile_filter, referenced_list_ids
from .lists import ListReconciler, index_managed_lists
from .partition import partition_domains, required_slots
from .plan import (
    ListOperation,
    ListPhaseResult,
    ResourceAction,
    ResourceOutcome,
    SlotBindings,
)
from .policy import PolicyOutcome, PolicyReconciler
from .teardown import Teardown, TeardownResult, TeardownState

__all__ = [
    "NEVER_MATCH_EXPRESSION",
    "Command",
    "CommandReport",
    "GatewayReconciler",
    "ListOperation",
    "ListPhaseResult",
    "ListReconciler",
    "PolicyOutcome",
    "PolicyReconciler",
    "ReconcileSettings",
    "ResourceAction",
    "ResourceOutcome",
    "SlotBindings",
    "Teardown",
    "TeardownResult",
    "TeardownState",
    "compile_filter",
    "index_managed_lists",
    "partition_domains",
    "referenced_list_ids",
    "required_slots",
]
