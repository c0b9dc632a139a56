# === NAVMAP v1 ===
# {
#   "module": "GraphDataGuard.DataProtocols.engine",
#   "purpose": "Protocol resolution and response normalization facade",
#   "sections": [
#     {"id": "engine", "name": "ProtocolEngine", "anchor": "class-protocolengine", "kind": "class"},
#     {"id": "resolve", "name": "Resolution", "anchor": "RES", "kind": "api"},
#     {"id": "links", "name": "Link Resolution", "anchor": "LNK", "kind": "api"},
#     {"id": "parse", "name": "Response Parsing", "anchor": "PRS", "kind": "api"},
#     {"id": "internals", "name": "Dispatch Internals", "anchor": "INT", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===

"""Security boundary between graph specifications and the network.

:class:`ProtocolEngine` turns a declarative data reference into a
:class:`~GraphDataGuard.DataProtocols.descriptors.SanitizedURL` that is safe to
fetch, and validates/normalizes whatever comes back::

    engine = ProtocolEngine(
        trusted=False,
        domains={"https": ["example.org"], "sparql": ["query.example.org"]},
        domain_map={"example": "example.org"},
    )
    url = engine.resolve({"type": "wikiraw", "host": "example", "title": "Page"})
    content = engine.parse(body, url.kind)

All configuration is compiled at construction and never mutated afterwards, so
an engine may be shared by any number of threads.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union
from urllib.parse import unquote

from .allowlist import DomainMatcher
from .descriptors import (
    RequestDescriptor,
    ResolvedHost,
    SanitizedURL,
    descriptor_from_mapping,
)
from .errors import (
    ConfigurationError,
    DataProtocolError,
    DisabledProtocolError,
    InvalidParameterFormatError,
    InvalidParameterTypeError,
    MissingHostError,
    MissingRequiredParameterError,
    UnknownSchemeError,
    UntrustedHostError,
    UntrustedSchemeError,
)
from .hosts import HostNormalizer
from .metrics import record_parse, record_resolution
from .responses import parse_response
from .schemes import DESCRIPTOR_FIELDS, SchemeDefinition, SchemeRequest, default_schemes
from .settings import DEDICATED_FAMILIES, EngineSettings
from .urls import UrlParts, encode_component
from .urls import format_url as default_format_url
from .urls import parse_url as default_parse_url

__all__ = ["DataReference", "ProtocolEngine"]

LOGGER = logging.getLogger(__name__)

DataReference = Union[str, RequestDescriptor, Mapping[str, Any]]

GENERAL_FAMILIES = ("https", "http")
LINK_KIND = "wikititle"

_LITERAL_TYPES = (str, int, float, bool)
_INVALID_TITLE_CHARS = frozenset("|\x7f") | frozenset(chr(code) for code in range(0x20))


class ProtocolEngine:
    """Resolve data references to allowlisted URLs and normalize responses.

    Args:
        trusted: Whether the graph comes from a trusted context; plain
            ``http``/``https`` references are refused otherwise.
        domains: Allowlisted domain patterns per family.  ``https`` and
            ``http`` are the general families; ``upload``, ``sparql`` and
            ``maps`` are dedicated families that enable the kinds using them.
        domain_map: Host aliases (``{"example": "example.org"}``).
        language_code: Display language used by the tabular and map kinds.
        logger: Callback receiving upstream warnings; defaults to the module
            logger's ``warning``.
        parse_url: URL decomposition collaborator.
        format_url: URL assembly collaborator.
        schemes: Scheme table; defaults to the built-in kinds.
        default_host: Host used for relative references when the caller does
            not provide one.
    """

    def __init__(
        self,
        trusted: bool = False,
        domains: Optional[Mapping[str, Optional[Iterable[str]]]] = None,
        domain_map: Optional[Mapping[str, str]] = None,
        language_code: str = "en",
        logger: Optional[Callable[[str], None]] = None,
        parse_url: Callable[[str], UrlParts] = default_parse_url,
        format_url: Callable[[UrlParts], str] = default_format_url,
        schemes: Optional[Mapping[str, SchemeDefinition]] = None,
        *,
        default_host: Optional[str] = None,
    ) -> None:
        domains = dict(domains or {})
        unknown = set(domains) - set(GENERAL_FAMILIES) - set(DEDICATED_FAMILIES)
        if unknown:
            raise ConfigurationError(
                f"Unknown domain families: {sorted(unknown)}",
                details={"families": sorted(unknown)},
            )

        self._trusted = bool(trusted)
        self._hosts = HostNormalizer(
            DomainMatcher(domains.get("https") or (), allow_subdomains=True),
            DomainMatcher(domains.get("http") or (), allow_subdomains=True),
            domain_map,
        )
        self._dedicated: Dict[str, DomainMatcher] = {
            family: DomainMatcher(domains[family])
            for family in DEDICATED_FAMILIES
            if domains.get(family) is not None
        }
        self._language_code = language_code
        self._warn = logger if logger is not None else LOGGER.warning
        self._parse_url = parse_url
        self._format_url = format_url
        self._schemes = schemes if schemes is not None else default_schemes()
        self._default_host = default_host

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        logger: Optional[Callable[[str], None]] = None,
        **collaborators: Any,
    ) -> "ProtocolEngine":
        """Build an engine from validated :class:`EngineSettings`.

        ``collaborators`` may replace ``parse_url``/``format_url``/``schemes``
        or override ``default_host``.
        """

        options: Dict[str, Any] = {"default_host": settings.default_host}
        options.update(collaborators)
        return cls(
            trusted=settings.trusted,
            domains=settings.domains.as_mapping(),
            domain_map=settings.domain_map,
            language_code=settings.language_code,
            logger=logger,
            **options,
        )

    @property
    def trusted(self) -> bool:
        return self._trusted

    @property
    def schemes(self) -> Mapping[str, SchemeDefinition]:
        return self._schemes

    @property
    def enabled_families(self) -> tuple:
        """Dedicated families that are configured (in declaration order)."""
        return tuple(self._dedicated)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, reference: DataReference, default_host: Optional[str] = None) -> SanitizedURL:
        """Resolve a URL string, a graph-spec mapping or a descriptor.

        Raises:
            ResolutionError: any subtype describing why the reference is unsafe
        """

        if isinstance(reference, str):
            return self.resolve_url(reference, default_host)
        if isinstance(reference, RequestDescriptor):
            descriptor = reference
            if descriptor.default_host is None:
                descriptor = dataclasses.replace(
                    descriptor, default_host=default_host or self._default_host
                )
        elif isinstance(reference, Mapping):
            descriptor = descriptor_from_mapping(
                reference, default_host=default_host or self._default_host
            )
        else:
            raise InvalidParameterTypeError(
                f"Data reference must be a URL, a mapping or a RequestDescriptor, "
                f"got {type(reference).__name__}",
                details={"type": type(reference).__name__},
            )
        return self._observe(descriptor.kind, lambda: self._dispatch(descriptor))

    def resolve_url(self, url: str, default_host: Optional[str] = None) -> SanitizedURL:
        """Decompose ``url`` into a descriptor and resolve it.

        A URL without a scheme takes its kind from the transport scheme of its
        host (or of the default host), which makes it a plain-transport
        reference available to trusted graphs only.
        """

        default_host = default_host or self._default_host
        parts = self._decompose(url)
        kind = parts.scheme
        if kind is None:
            base = parts.host or default_host
            if not base:
                raise MissingHostError(
                    f"URL {url!r} has no scheme and no default host is available",
                    details={"url": url},
                )
            kind = self._observe_host(base).scheme

        def run() -> SanitizedURL:
            definition = self._definition(kind)
            fields = definition.from_url(parts)
            descriptor = RequestDescriptor(
                kind=kind, host=parts.host, default_host=default_host, **fields
            )
            return self._dispatch(descriptor)

        return self._observe(kind, run)

    # ------------------------------------------------------------------
    # Link Resolution
    # ------------------------------------------------------------------

    def resolve_link(self, url: str, default_host: Optional[str] = None) -> SanitizedURL:
        """Resolve a link to a wiki page (``wikititle:///Title`` and friends).

        Links are allowed in untrusted graphs.  Accepted forms are
        ``wikititle:`` URLs, scheme-less or protocol-relative URLs, and
        ``http(s)`` URLs whose path starts with ``/wiki/``.
        """

        return self._observe(LINK_KIND, lambda: self._link(url, default_host or self._default_host))

    def _link(self, url: str, default_host: Optional[str]) -> SanitizedURL:
        parts = self._decompose(url)
        if parts.raw_query or parts.query:
            raise InvalidParameterFormatError(
                f"{LINK_KIND}: links must not contain query parameters", details={"url": url}
            )

        if parts.scheme in (None, LINK_KIND):
            encoded_title = parts.path[1:] if parts.path.startswith("/") else parts.path
        elif parts.scheme in GENERAL_FAMILIES:
            if not parts.path.startswith("/wiki/"):
                raise InvalidParameterFormatError(
                    f"{LINK_KIND}: {parts.scheme} links must begin with the /wiki/ prefix",
                    details={"url": url},
                )
            encoded_title = parts.path[len("/wiki/"):]
        else:
            raise UnknownSchemeError(
                f"Unknown link protocol: {parts.scheme!r}", details={"kind": parts.scheme}
            )

        title = unquote(encoded_title).replace(" ", "_")
        if not title:
            raise MissingRequiredParameterError(
                f"{LINK_KIND}: link does not name a page", details={"url": url}
            )
        if title in (".", "..") or any(char in _INVALID_TITLE_CHARS for char in title):
            raise InvalidParameterFormatError(f"{LINK_KIND}: invalid title", details={"url": url})

        host = parts.host or default_host
        if not host:
            raise MissingHostError(
                f"{LINK_KIND}: link has no host and no default host is available",
                details={"url": url},
            )
        resolved = self._hosts.resolve(host)
        link = self._format_url(
            UrlParts(scheme=resolved.scheme, host=resolved.host, path="/wiki/" + encode_component(title))
        )
        return SanitizedURL(url=link, kind=LINK_KIND)

    # ------------------------------------------------------------------
    # Response Parsing
    # ------------------------------------------------------------------

    def parse(self, payload: Any, kind: str, *, decoded: bool = False) -> Any:
        """Validate and normalize ``payload`` returned for a ``kind`` request.

        Args:
            payload: Raw response text/bytes, or a decoded value with ``decoded``.
            kind: Kind of the :class:`SanitizedURL` the payload was fetched for.
            decoded: Skip JSON decoding.

        Raises:
            UnknownSchemeError: ``kind`` is not registered.
            MalformedResponseError: any subtype describing the structural problem.
        """

        label = self._label(kind)
        try:
            if kind not in self._schemes:
                raise UnknownSchemeError(
                    f"Unknown type parameter: {kind!r}", details={"kind": kind}
                )
            result = parse_response(payload, kind, self._warn, decoded=decoded)
        except DataProtocolError as exc:
            record_parse(label, exc)
            LOGGER.debug(
                "response rejected",
                extra={"stage": "parse", "kind": label, "error_code": exc.error_code.value},
            )
            raise
        record_parse(label)
        return result

    # ------------------------------------------------------------------
    # Dispatch Internals
    # ------------------------------------------------------------------

    def _label(self, kind: Optional[str]) -> str:
        return kind if kind in self._schemes or kind == LINK_KIND else "unknown"

    def _observe(self, kind: str, call: Callable[[], SanitizedURL]) -> SanitizedURL:
        label = self._label(kind)
        start = time.perf_counter()
        try:
            result = call()
        except DataProtocolError as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            record_resolution(label, elapsed_ms, exc)
            LOGGER.debug(
                "data reference rejected: %s",
                exc.message,
                extra={"stage": "resolve", "kind": label, "error_code": exc.error_code.value},
            )
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        record_resolution(label, elapsed_ms)
        LOGGER.debug(
            "data reference resolved",
            extra={"stage": "resolve", "kind": label, "elapsed_ms": round(elapsed_ms, 3)},
        )
        return result

    def _observe_host(self, host: str) -> ResolvedHost:
        try:
            return self._hosts.resolve(host)
        except DataProtocolError as exc:
            record_resolution("unknown", 0.0, exc)
            raise

    def _decompose(self, url: str) -> UrlParts:
        if not isinstance(url, str):
            raise InvalidParameterTypeError(
                f"URL should be a string, got {type(url).__name__}",
                details={"type": type(url).__name__},
            )
        try:
            return self._parse_url(url)
        except ValueError as exc:
            raise InvalidParameterFormatError(
                f"Cannot parse URL {url!r}: {exc}", details={"url": url}
            ) from exc

    def _definition(self, kind: str) -> SchemeDefinition:
        definition = self._schemes.get(kind)
        if definition is None:
            raise UnknownSchemeError(f"Unknown type parameter: {kind!r}", details={"kind": kind})
        return definition

    def _dispatch(self, descriptor: RequestDescriptor) -> SanitizedURL:
        kind = descriptor.kind
        definition = self._definition(kind)
        if definition.requires_trusted and not self._trusted:
            raise UntrustedSchemeError(
                f"{kind}: protocol is only allowed in trusted graphs", details={"kind": kind}
            )

        params = self._validated_params(definition, descriptor)
        host = self._resolve_host(definition, descriptor)
        endpoint = definition.build(
            SchemeRequest(
                kind=kind,
                host=host,
                path=descriptor.path,
                title=descriptor.title,
                params=params,
                raw_query=descriptor.raw_query,
                language_code=self._language_code,
            )
        )

        url = self._format_url(
            UrlParts(
                scheme=kind if definition.keeps_scheme else host.scheme,
                host=host.host,
                path=endpoint.path,
                query=dict(endpoint.query),
                raw_query=endpoint.raw_query,
            )
        )
        return SanitizedURL(url=url, kind=kind, add_cors_origin=definition.cors)

    def _validated_params(
        self, definition: SchemeDefinition, descriptor: RequestDescriptor
    ) -> Mapping[str, Any]:
        kind = descriptor.kind
        for name in DESCRIPTOR_FIELDS:
            value = getattr(descriptor, name)
            if value is not None and not isinstance(value, str):
                raise InvalidParameterTypeError(
                    f"{kind}: {name} should be a string", details={"kind": kind, "parameter": name}
                )

        for name, value in descriptor.params.items():
            if name in definition.list_params and isinstance(value, (list, tuple)):
                literal = all(isinstance(item, _LITERAL_TYPES) for item in value)
            else:
                literal = isinstance(value, _LITERAL_TYPES)
            if not literal:
                raise InvalidParameterTypeError(
                    f"{kind}: parameter {name} should be a literal value",
                    details={"kind": kind, "parameter": name},
                )

        params = {key: value for key, value in definition.optional.items() if value is not None}
        params.update(descriptor.params)

        for name in sorted(definition.required):
            value = getattr(descriptor, name) if name in DESCRIPTOR_FIELDS else params.get(name)
            if value is None or value == "":
                raise MissingRequiredParameterError(
                    f"{kind}: parameter {name} is not set",
                    details={"kind": kind, "parameter": name},
                )
        return params

    def _resolve_host(
        self, definition: SchemeDefinition, descriptor: RequestDescriptor
    ) -> ResolvedHost:
        kind = descriptor.kind
        family = definition.host_family
        if family is None:
            host = descriptor.host or descriptor.default_host
            if not host:
                raise MissingHostError(
                    f"{kind}: host is not set and no default host is available",
                    details={"kind": kind},
                )
            return self._hosts.resolve(host)

        matcher = self._dedicated.get(family)
        if matcher is None:
            raise DisabledProtocolError(
                f"{kind}: protocol is disabled, no {family} domains are configured",
                details={"kind": kind, "family": family},
            )
        host = descriptor.host
        if not host:
            exact = [pattern for pattern in matcher.patterns if not pattern.startswith("*.")]
            if not exact:
                raise MissingHostError(
                    f"{kind}: host is not set and the {family} allowlist has no default host",
                    details={"kind": kind, "family": family},
                )
            host = exact[0]

        canonical = self._hosts.apply_alias(host)
        if not matcher.matches(canonical):
            raise UntrustedHostError(
                f"{kind}: URL hostname is not allowlisted for {family}: {host!r}",
                details={"kind": kind, "family": family, "host": host},
            )
        return self._hosts.select_scheme(canonical, requested=host)
