"""Public interface for the Cloudflare Gateway adapter."""

from __future__ import annotations

from .client import CloudflareGatewayClient
from .schema import CloudflareEnvelope, GatewayListPayload, GatewayRulePayload
from .translator import remote_list_from_payload, rule_body, rule_from_payload

__all__ = [
    "CloudflareEnvelope",
    "CloudflareGatewayClient",
    "GatewayListPayload",
    "GatewayRulePayload",
    "remote_list_from_payload",
    "rule_body",
    "rule_from_payload",
]
