from __future__ import annotations

import asyncio

import pytest

from blocksync.domain.errors import CapacityExceeded, ExternalRejected, ExternalRequestFailed
from blocksync.domain.model import PLACEHOLDER_DOMAIN, BlockRule, SlotPolicy
from blocksync.domain.reconciliation import (
    NEVER_MATCH_EXPRESSION,
    Command,
    GatewayReconciler,
    ReconcileSettings,
    ResourceAction,
    referenced_list_ids,
)
from tests.helpers.gateway import FakeGateway, make_domains


class RecordingSleep:
    def __init__(self, gateway: FakeGateway) -> None:
        self.gateway = gateway
        self.delays: list[float] = []
        self.calls_before: list[int] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.calls_before.append(len(self.gateway.calls))


def _reconciler(gateway: FakeGateway, **settings: object) -> GatewayReconciler:
    return GatewayReconciler(gateway, ReconcileSettings(**settings))  # type: ignore[arg-type]


def test_apply_end_to_end() -> None:
    gateway = FakeGateway()
    domains = make_domains(2500)

    report = asyncio.run(_reconciler(gateway).apply(domains))

    assert report.ok
    assert report.command is Command.APPLY
    sizes = sorted(
        (len(gateway.members_of(name)) for name in gateway.managed_names()),
        reverse=True,
    )
    assert sizes[:3] == [1000, 1000, 500]
    assert len(gateway.placeholder_names()) == 12
    rule = gateway.rule_named("Block Ads")
    assert rule.traffic.count("any(dns.domains[*] in $") == 3
    assert rule.traffic.count(" or ") == 2
    assert referenced_list_ids(rule.traffic) == {
        gateway.list_by_name(f"pihole_domain_list_{index:03d}").id for index in range(3)
    }


def test_apply_twice_is_idempotent() -> None:
    gateway = FakeGateway()
    domains = make_domains(2500)
    reconciler = _reconciler(gateway)
    asyncio.run(reconciler.apply(domains))
    gateway.calls.clear()

    report = asyncio.run(reconciler.apply(domains))

    assert report.ok
    assert gateway.mutations() == []
    assert {outcome.action for outcome in report.outcomes} == {ResourceAction.NOOP}


def test_apply_lists_before_rule() -> None:
    gateway = FakeGateway()

    asyncio.run(_reconciler(gateway, slot_count=3).apply(make_domains(1500)))

    mutations = [operation for operation, _ in gateway.mutations()]
    assert mutations == ["create_list", "create_list", "create_list", "create_rule"]


def test_apply_skips_rule_when_active_slot_fails() -> None:
    gateway = FakeGateway()
    gateway.fail_on(
        "create_list",
        "pihole_domain_list_001",
        ExternalRejected(["1: bad request"], resource="pihole_domain_list_001"),
    )

    report = asyncio.run(_reconciler(gateway, slot_count=3).apply(make_domains(1500)))

    assert not report.ok
    assert report.aborted is not None
    assert "pihole_domain_list_001" in report.aborted
    assert gateway.calls_to("create_rule") == []
    assert gateway.calls_to("list_rules") == []


def test_apply_continues_when_only_placeholder_fails() -> None:
    gateway = FakeGateway()
    gateway.fail_on(
        "create_list",
        "pihole_domain_list_002",
        ExternalRequestFailed("HTTP 503", resource="pihole_domain_list_002", status_code=503),
    )

    report = asyncio.run(_reconciler(gateway, slot_count=3).apply(make_domains(1500)))

    assert not report.ok
    assert report.aborted is None
    assert [failure.name for failure in report.failures] == ["pihole_domain_list_002"]
    assert gateway.rule_named("Block Ads").traffic.count(" or ") == 1


def test_apply_rejects_over_capacity_before_any_call() -> None:
    gateway = FakeGateway()

    with pytest.raises(CapacityExceeded):
        asyncio.run(_reconciler(gateway, slot_count=2).apply(make_domains(2001)))

    assert gateway.calls == []


def test_apply_with_empty_source_disables_matching() -> None:
    gateway = FakeGateway()

    report = asyncio.run(_reconciler(gateway, slot_count=2).apply(()))

    assert report.ok
    assert gateway.placeholder_names() == ["pihole_domain_list_000", "pihole_domain_list_001"]
    assert gateway.rule_named("Block Ads").traffic == NEVER_MATCH_EXPRESSION


def test_exact_resize_prunes_stale_lists_after_rule_update() -> None:
    gateway = FakeGateway()
    reconciler = _reconciler(gateway, slot_policy=SlotPolicy.EXACT_RESIZE)
    asyncio.run(reconciler.apply(make_domains(2500)))
    gateway.calls.clear()

    report = asyncio.run(reconciler.apply(make_domains(900)))

    assert report.ok
    assert gateway.managed_names() == ["pihole_domain_list_000"]
    mutations = [operation for operation, _ in gateway.mutations()]
    assert mutations.index("update_rule") < mutations.index("delete_list")
    assert sorted(gateway.calls_to("delete_list")) == [
        "pihole_domain_list_001",
        "pihole_domain_list_002",
    ]


def test_create_policy_discovers_bindings_from_platform() -> None:
    gateway = FakeGateway()
    first = gateway.seed_slot(0, ["a.example"])
    gateway.seed_slot(1, [PLACEHOLDER_DOMAIN])

    report = asyncio.run(_reconciler(gateway).create_policy())

    assert report.ok
    assert gateway.rule_named("Block Ads").traffic == f"any(dns.domains[*] in ${first})"


def test_plan_reports_without_writing() -> None:
    gateway = FakeGateway()
    gateway.seed_slot(0, make_domains(5))
    gateway.seed_slot(1, make_domains(5, start=5))

    report = asyncio.run(
        _reconciler(gateway, slot_policy=SlotPolicy.EXACT_RESIZE).plan(make_domains(5))
    )

    assert gateway.mutations() == []
    assert [(outcome.name, outcome.action) for outcome in report.outcomes] == [
        ("pihole_domain_list_000", ResourceAction.NOOP),
        ("pihole_domain_list_001", ResourceAction.DELETE),
    ]


def test_delete_all_then_nothing_remains() -> None:
    gateway = FakeGateway()
    reconciler = _reconciler(gateway, slot_count=3)
    asyncio.run(reconciler.apply(make_domains(1500)))

    report = asyncio.run(reconciler.delete_all())

    assert report.ok
    assert gateway.lists == {}
    assert gateway.rules == {}


def test_delete_policies_then_delete_lists() -> None:
    gateway = FakeGateway()
    reconciler = _reconciler(gateway, slot_count=2)
    asyncio.run(reconciler.apply(make_domains(10)))

    refused = asyncio.run(reconciler.delete_lists())
    assert not refused.ok
    assert gateway.managed_names() == ["pihole_domain_list_000"]

    assert asyncio.run(reconciler.delete_policies()).ok
    assert asyncio.run(reconciler.delete_lists()).ok
    assert gateway.lists == {}


def test_reset_waits_between_teardown_and_apply() -> None:
    gateway = FakeGateway()
    gateway.seed_slot(0, ["old.example"])
    gateway.seed_rule(BlockRule(traffic=NEVER_MATCH_EXPRESSION))
    sleep = RecordingSleep(gateway)
    reconciler = GatewayReconciler(
        gateway,
        ReconcileSettings(slot_count=2, settle_seconds=0.25),
        sleep,
    )

    report = asyncio.run(reconciler.reset(make_domains(10)))

    assert report.ok
    assert report.command is Command.RESET
    assert sleep.delays == [0.25]
    before_sleep = [operation for operation, _ in gateway.calls[: sleep.calls_before[0]]]
    after_sleep = [operation for operation, _ in gateway.calls[sleep.calls_before[0] :]]
    assert "create_list" not in before_sleep
    assert "delete_rule" in before_sleep
    assert "delete_list" in before_sleep
    assert "delete_list" not in after_sleep
    assert after_sleep.count("create_list") == 2
    assert gateway.members_of("pihole_domain_list_000") == set(make_domains(10))


def test_reset_stops_when_teardown_fails() -> None:
    gateway = FakeGateway()
    gateway.seed_rule(BlockRule(traffic=NEVER_MATCH_EXPRESSION))
    gateway.fail_on("delete_rule", "Block Ads", ExternalRequestFailed("boom", resource="Block Ads"))
    sleep = RecordingSleep(gateway)
    reconciler = GatewayReconciler(gateway, ReconcileSettings(slot_count=2), sleep)

    report = asyncio.run(reconciler.reset(make_domains(10)))

    assert not report.ok
    assert sleep.delays == []
    assert gateway.calls_to("create_list") == []


def test_reset_checks_capacity_before_teardown() -> None:
    gateway = FakeGateway()
    gateway.seed_slot(0, ["old.example"])

    with pytest.raises(CapacityExceeded):
        asyncio.run(_reconciler(gateway, slot_count=1).reset(make_domains(1001)))

    assert gateway.calls == []


def test_create_policy_skips_lists_beyond_configured_slots() -> None:
    gateway = FakeGateway()
    first = gateway.seed_slot(0, ["a.example"])
    gateway.seed_slot(1, [PLACEHOLDER_DOMAIN])
    gateway.seed_slot(4, ["orphan.example"])

    report = asyncio.run(_reconciler(gateway, slot_count=2).create_policy())

    assert report.ok
    assert gateway.rule_named("Block Ads").traffic == f"any(dns.domains[*] in ${first})"


def test_create_policy_in_exact_mode_binds_every_managed_list() -> None:
    gateway = FakeGateway()
    first = gateway.seed_slot(0, ["a.example"])
    later = gateway.seed_slot(4, ["b.example"])

    reconciler = _reconciler(gateway, slot_count=2, slot_policy=SlotPolicy.EXACT_RESIZE)
    report = asyncio.run(reconciler.create_policy())

    assert report.ok
    assert gateway.rule_named("Block Ads").traffic == (
        f"any(dns.domains[*] in ${first}) or any(dns.domains[*] in ${later})"
    )
