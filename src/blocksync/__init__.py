"""Sync a flat domain blocklist into Cloudflare Zero Trust Gateway lists and one DNS rule."""

from __future__ import annotations

from importlib import metadata

DISTRIBUTION = "blocksync"


def _installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "0.0.0+local"


__version__ = _installed_version()
