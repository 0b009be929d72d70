"""Failure taxonomy for gateway reconciliation.

Every error names the resource it concerns so operators can tell which list or
rule needs attention. Per-resource failures are collected into reports by the
reconcilers; anything raised across a phase boundary stops the command.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ReconciliationError(RuntimeError):
    """Base class for failures while driving gateway state."""

    def __init__(self, message: str, *, resource: str) -> None:
        super().__init__(f"{resource}: {message}")
        self.resource = resource
        self.reason = message


class SourceUnavailable(ReconciliationError):  # noqa: N818
    """The domain list file or feed could not be read."""


class CapacityExceeded(ReconciliationError):  # noqa: N818
    """More domains than the bounded slot table can hold."""

    def __init__(self, *, domain_count: int, capacity: int, slot_count: int) -> None:
        needed = -(-domain_count // capacity)
        super().__init__(
            f"{domain_count} domains need {needed} lists of {capacity}, "
            f"but only {slot_count} slots are configured",
            resource="slot-table",
        )
        self.domain_count = domain_count
        self.capacity = capacity
        self.slot_count = slot_count


class ExternalRequestFailed(ReconciliationError):  # noqa: N818
    """Transport or server failure that persisted after retries."""

    def __init__(
        self,
        message: str,
        *,
        resource: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, resource=resource)
        self.status_code = status_code


class ExternalRejected(ReconciliationError):  # noqa: N818
    """The platform answered with an application-level error."""

    def __init__(
        self,
        messages: Sequence[str],
        *,
        resource: str,
        status_code: int | None = None,
        codes: Sequence[int] = (),
    ) -> None:
        text = "; ".join(messages) if messages else "request rejected"
        super().__init__(text, resource=resource)
        self.messages = tuple(messages)
        self.codes = tuple(codes)
        self.status_code = status_code


class OrderingViolation(ReconciliationError):  # noqa: N818
    """A rule would reference a missing list, or a referenced list would be deleted."""
