"""Domain allowlist matchers.

A :class:`DomainMatcher` is compiled once from a list of domain patterns and is
never mutated afterwards.  Patterns are either exact hosts (``example.org``) or
wildcard suffixes (``*.example.org``).  Matchers built with
``allow_subdomains=True`` additionally treat every exact entry as covering its
subdomains, which is how the general ``https``/``http`` families behave.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Pattern, Tuple

from .errors import ConfigurationError

__all__ = ["DomainMatcher", "normalize_host"]

_LABEL_RE = re.compile(r"[a-z0-9_](?:[a-z0-9_-]{0,61}[a-z0-9_])?")


def normalize_host(host: str) -> str:
    """Lowercase and IDNA-encode ``host``; raise ``ValueError`` when impossible."""

    candidate = host.strip().rstrip(".").lower()
    if not candidate:
        raise ValueError("empty host")
    if all(ord(char) < 128 for char in candidate):
        return candidate
    try:
        return candidate.encode("idna").decode("ascii")
    except UnicodeError as exc:
        raise ValueError(f"invalid internationalized host {host!r}") from exc


def _parse_pattern(entry: str) -> Tuple[str, bool]:
    """Split an allowlist entry into ``(domain, wildcard)``."""

    working = entry.strip()
    wildcard = False
    if working.startswith("*."):
        wildcard = True
        working = working[2:]
    elif working.startswith("."):
        wildcard = True
        working = working[1:]

    try:
        domain = normalize_host(working)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid allowlist entry {entry!r}", details={"entry": entry}
        ) from exc
    if not all(_LABEL_RE.fullmatch(label) for label in domain.split(".")):
        raise ConfigurationError(
            f"Invalid allowlist entry {entry!r}", details={"entry": entry}
        )
    return domain, wildcard


class DomainMatcher:
    """Immutable host matcher over a fixed list of domain patterns."""

    __slots__ = ("_patterns", "_regex", "_allow_subdomains")

    def __init__(self, patterns: Iterable[str], *, allow_subdomains: bool = False) -> None:
        parsed = [_parse_pattern(entry) for entry in patterns if entry and entry.strip()]
        self._allow_subdomains = allow_subdomains
        self._patterns: Tuple[str, ...] = tuple(
            f"*.{domain}" if wildcard else domain for domain, wildcard in parsed
        )
        self._regex: Optional[Pattern[str]] = self._compile(parsed, allow_subdomains)

    @staticmethod
    def _compile(parsed: Iterable[Tuple[str, bool]], allow_subdomains: bool) -> Optional[Pattern[str]]:
        alternatives = []
        for domain, wildcard in parsed:
            escaped = re.escape(domain)
            if wildcard:
                alternatives.append(rf"(?:[a-z0-9_-]+\.)+{escaped}")
            elif allow_subdomains:
                alternatives.append(rf"(?:[a-z0-9_-]+\.)*{escaped}")
            else:
                alternatives.append(escaped)
        if not alternatives:
            return None
        return re.compile(r"(?:" + "|".join(alternatives) + r")")

    @property
    def patterns(self) -> Tuple[str, ...]:
        """Normalized patterns in configuration order."""
        return self._patterns

    def matches(self, host: Optional[str]) -> bool:
        """Return ``True`` when ``host`` is covered by one of the patterns.

        Hosts carrying a port or userinfo never match because subdomain labels
        are restricted to ``[a-z0-9_-]``.
        """
        if not host or self._regex is None:
            return False
        try:
            candidate = normalize_host(host)
        except ValueError:
            return False
        return self._regex.fullmatch(candidate) is not None

    def __repr__(self) -> str:
        return f"DomainMatcher({list(self._patterns)!r}, allow_subdomains={self._allow_subdomains})"
