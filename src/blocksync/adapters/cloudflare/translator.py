"""Translate Cloudflare payloads to domain objects and back."""

from __future__ import annotations

from typing import TYPE_CHECKING

from blocksync.domain.model import BlockRule, RemoteList

if TYPE_CHECKING:
    from .schema import GatewayListPayload, GatewayRulePayload


def remote_list_from_payload(payload: GatewayListPayload) -> RemoteList:
    return RemoteList(
        id=payload.id,
        name=payload.name,
        type=payload.type,
        description=payload.description,
        item_count=payload.count,
    )


def rule_from_payload(payload: GatewayRulePayload) -> BlockRule:
    return BlockRule(
        id=payload.id,
        name=payload.name,
        description=payload.description,
        enabled=payload.enabled,
        precedence=payload.precedence,
        action=payload.action,
        filters=tuple(payload.filters),
        traffic=payload.traffic,
        rule_settings=payload.rule_settings.model_dump(exclude_none=True),
    )


def rule_body(rule: BlockRule) -> dict[str, object]:
    """Request body for creating or replacing a rule."""

    return {
        "name": rule.name,
        "description": rule.description,
        "enabled": rule.enabled,
        "precedence": rule.precedence,
        "filters": list(rule.filters),
        "action": rule.action,
        "traffic": rule.traffic,
        "rule_settings": dict(rule.rule_settings),
    }
