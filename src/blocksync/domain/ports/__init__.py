"""Domain port definitions for adapters."""

from __future__ import annotations

from .gateway import GatewayPort

__all__ = ["GatewayPort"]
