"""Cloudflare API v4 response schemas for Gateway lists and rules."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CloudflareBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CloudflareMessage(CloudflareBaseModel):
    code: int | None = None
    message: str = ""

    def render(self) -> str:
        return f"{self.code}: {self.message}" if self.code is not None else self.message


class ResultInfo(CloudflareBaseModel):
    page: int = 1
    per_page: int = 0
    count: int = 0
    total_count: int = 0


class CloudflareEnvelope(CloudflareBaseModel):
    """Common wrapper around every v4 API response."""

    success: bool
    errors: list[CloudflareMessage] = Field(default_factory=list["CloudflareMessage"])
    messages: list[CloudflareMessage] = Field(default_factory=list["CloudflareMessage"])
    result: Any = None
    result_info: ResultInfo | None = None


class GatewayListPayload(CloudflareBaseModel):
    id: str
    name: str
    type: str = "DOMAIN"
    description: str | None = None
    count: int = 0


class GatewayListItemPayload(CloudflareBaseModel):
    value: str


class GatewayRuleSettingsPayload(CloudflareBaseModel):
    model_config = ConfigDict(extra="allow")

    block_page_enabled: bool | None = None


class GatewayRulePayload(CloudflareBaseModel):
    id: str
    name: str
    description: str = ""
    enabled: bool = False
    precedence: int = 0
    action: str = ""
    filters: list[str] = Field(default_factory=list)
    traffic: str = ""
    rule_settings: GatewayRuleSettingsPayload = Field(default_factory=GatewayRuleSettingsPayload)
