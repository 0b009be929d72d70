"""Load and normalize the flat domain blocklist."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import SourceUnavailable
from .model import PLACEHOLDER_DOMAIN

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .model import Domain

log = getLogger(__name__)

COMMENT_PREFIX = "#"
BYTE_ORDER_MARK = "\ufeff"


def normalize_domains(lines: Iterable[str]) -> tuple[Domain, ...]:
    """Return unique, lower-cased domains in first-seen order.

    Blank lines and lines starting with ``#`` (after trimming) are dropped. The
    placeholder domain is reserved for empty slots and never accepted as input.
    """

    seen: set[Domain] = set()
    domains: list[Domain] = []
    for raw in lines:
        candidate = raw.strip().lower()
        if not candidate or candidate.startswith(COMMENT_PREFIX):
            continue
        if candidate == PLACEHOLDER_DOMAIN:
            log.warning("Ignoring reserved placeholder domain %s in source", PLACEHOLDER_DOMAIN)
            continue
        if candidate in seen:
            continue
        seen.add(candidate)
        domains.append(candidate)
    return tuple(domains)


def parse_domain_text(text: str) -> tuple[Domain, ...]:
    return normalize_domains(text.removeprefix(BYTE_ORDER_MARK).splitlines())


def read_domain_file(path: str | Path) -> tuple[Domain, ...]:
    """Read a domain list from disk, raising ``SourceUnavailable`` on failure."""

    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceUnavailable(str(exc), resource=str(source)) from exc

    domains = parse_domain_text(text)
    log.info("Read %s unique domains from %s", len(domains), source)
    return domains
