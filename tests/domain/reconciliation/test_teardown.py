from __future__ import annotations

import asyncio

import pytest

from blocksync.domain.errors import ExternalRequestFailed, OrderingViolation
from blocksync.domain.model import BlockRule
from blocksync.domain.reconciliation import Teardown, TeardownState
from blocksync.domain.reconciliation.filters import membership_clause
from tests.helpers.gateway import FakeGateway


def _seed_managed_state(gateway: FakeGateway) -> list[str]:
    list_ids = [gateway.seed_slot(index, [f"{index}.example"]) for index in range(3)]
    gateway.seed_rule(
        BlockRule(traffic=" or ".join(membership_clause(list_id) for list_id in list_ids))
    )
    return list_ids


def test_deletes_rule_then_lists() -> None:
    gateway = FakeGateway()
    _seed_managed_state(gateway)

    result = asyncio.run(Teardown(gateway).run())

    assert result.ok
    assert result.state is TeardownState.CONVERGED
    deletes = [call for call in gateway.calls if call[0].startswith("delete_")]
    assert deletes[0] == ("delete_rule", "Block Ads")
    assert sorted(name for _, name in deletes[1:]) == [
        "pihole_domain_list_000",
        "pihole_domain_list_001",
        "pihole_domain_list_002",
    ]
    assert gateway.rules == {}
    assert gateway.lists == {}


def test_failed_rule_delete_leaves_lists_alone() -> None:
    gateway = FakeGateway()
    _seed_managed_state(gateway)
    gateway.fail_on(
        "delete_rule",
        "Block Ads",
        ExternalRequestFailed("HTTP 502", resource="Block Ads", status_code=502),
    )

    result = asyncio.run(Teardown(gateway).run())

    assert not result.ok
    assert result.state is TeardownState.PENDING
    assert gateway.calls_to("delete_list") == []
    assert len(gateway.lists) == 3


def test_list_failure_leaves_state_rule_deleted() -> None:
    gateway = FakeGateway()
    _seed_managed_state(gateway)
    gateway.fail_on(
        "delete_list",
        "pihole_domain_list_001",
        ExternalRequestFailed("timeout", resource="pihole_domain_list_001"),
    )

    result = asyncio.run(Teardown(gateway).run())

    assert result.state is TeardownState.RULE_DELETED
    assert [outcome.name for outcome in result.outcomes if not outcome.ok] == [
        "pihole_domain_list_001"
    ]
    assert [stored.name for stored in gateway.lists.values()] == ["pihole_domain_list_001"]


def test_delete_lists_refuses_lists_still_referenced() -> None:
    gateway = FakeGateway()
    _seed_managed_state(gateway)

    outcomes = asyncio.run(Teardown(gateway).delete_lists())

    assert len(outcomes) == 3
    assert all(isinstance(outcome.error, OrderingViolation) for outcome in outcomes)
    assert gateway.calls_to("delete_list") == []


def test_delete_lists_ignores_unmanaged_lists() -> None:
    gateway = FakeGateway()
    gateway.seed_slot(0, ["a.example"])
    gateway.seed_list("allowlist", ["intranet.example"])

    outcomes = asyncio.run(Teardown(gateway).delete_lists())

    assert [outcome.name for outcome in outcomes] == ["pihole_domain_list_000"]
    assert [stored.name for stored in gateway.lists.values()] == ["allowlist"]


def test_delete_rules_keeps_other_rules() -> None:
    gateway = FakeGateway()
    gateway.seed_rule(BlockRule(traffic='dns.fqdn == "a.example"'))
    other = gateway.seed_rule(BlockRule(name="Allow Corp", traffic='dns.fqdn == "b.example"'))

    deletion = asyncio.run(Teardown(gateway).delete_rules())

    assert deletion.ok
    assert [rule.name for rule in deletion.remaining_rules] == ["Allow Corp"]
    assert list(gateway.rules) == [other.id]


def test_empty_platform_converges_without_calls() -> None:
    gateway = FakeGateway()

    result = asyncio.run(Teardown(gateway).run())

    assert result.state is TeardownState.CONVERGED
    assert result.outcomes == []
    assert gateway.mutations() == []


def test_delete_rules_rejects_rule_without_identity() -> None:
    gateway = FakeGateway()

    with pytest.raises(ValueError, match="no platform identity"):
        asyncio.run(Teardown(gateway).delete_rules([BlockRule(traffic="dns.fqdn == \"x\"")]))

    assert gateway.mutations() == []
