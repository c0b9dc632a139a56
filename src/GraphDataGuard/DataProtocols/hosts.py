"""Host normalization: alias substitution and transport scheme selection."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping, Optional

from .allowlist import DomainMatcher, normalize_host
from .descriptors import ResolvedHost
from .errors import UntrustedHostError

__all__ = ["HostNormalizer"]

LOGGER = logging.getLogger(__name__)


class HostNormalizer:
    """Resolve a caller-supplied host to a canonical, allowlisted host.

    The secure matcher is consulted before the insecure one, so a host present
    in both resolves to ``https``.
    """

    def __init__(
        self,
        secure: DomainMatcher,
        insecure: DomainMatcher,
        domain_map: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._secure = secure
        self._insecure = insecure
        self._domain_map: Mapping[str, str] = MappingProxyType(
            {key.strip().lower(): value.strip().lower() for key, value in (domain_map or {}).items()}
        )

    def apply_alias(self, host: str) -> str:
        """Return the canonical host for ``host`` (unchanged when not aliased)."""

        key = host.strip().lower()
        return self._domain_map.get(key, key)

    def resolve(self, host: str) -> ResolvedHost:
        """Return the canonical host and the transport scheme to reach it.

        Raises:
            UntrustedHostError: when the host matches neither general allowlist
        """

        return self.select_scheme(self.apply_alias(host), requested=host)

    def select_scheme(self, canonical: str, *, requested: Optional[str] = None) -> ResolvedHost:
        """Pick the transport for an already canonical host; aliases are not applied."""

        host = canonical if requested is None else requested
        if self._secure.matches(canonical):
            return ResolvedHost(host=normalize_host(canonical), scheme="https")
        if self._insecure.matches(canonical):
            return ResolvedHost(host=normalize_host(canonical), scheme="http")

        LOGGER.debug(
            "host rejected by allowlists",
            extra={"stage": "resolve", "host": host, "canonical_host": canonical},
        )
        raise UntrustedHostError(
            f"URL hostname is not allowlisted: {host!r}",
            details={"host": host, "canonical_host": canonical},
        )
