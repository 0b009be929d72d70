"""Errors raised while reading blocksync settings from the environment."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    """A setting is present but unusable (malformed number, unknown slot policy, ...)."""


class MissingConfigurationError(ConfigurationError):
    """One or more required variables, such as the Cloudflare credentials, are unset."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(sorted(names))
        super().__init__(f"Missing configuration for: {', '.join(self.names)}")
