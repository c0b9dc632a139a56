"""Value types passed between the resolver, the URL assembler, and callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .errors import InvalidParameterTypeError, UnknownSchemeError

__all__ = [
    "RequestDescriptor",
    "ResolvedHost",
    "SanitizedURL",
    "descriptor_from_mapping",
]


@dataclass(frozen=True, slots=True)
class ResolvedHost:
    """Canonical host plus the transport scheme chosen for it."""

    host: str
    scheme: str


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """A declarative data reference as written in a graph specification.

    Attributes:
        kind: Resource kind, e.g. ``wikiraw`` or ``wikidatasparql``.
        host: Explicit host, possibly an alias; ``None`` means relative.
        path: Caller path for kinds that use one.
        title: Page title for title-based kinds.
        params: Literal query parameters.
        default_host: Host of the page embedding the graph, used when
            ``host`` is omitted and the kind resolves relative to it.
        raw_query: Original query string when the descriptor was decoded from
            a URL; plain transport kinds pass it through verbatim.
    """

    kind: str
    host: Optional[str] = None
    path: Optional[str] = None
    title: Optional[str] = None
    params: Mapping[str, Any] = field(default_factory=dict)
    default_host: Optional[str] = None
    raw_query: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.params, MappingProxyType):
            object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


@dataclass(frozen=True, slots=True)
class SanitizedURL:
    """Final request URL; ``add_cors_origin`` asks the caller to attach an origin hint."""

    url: str
    kind: str
    add_cors_origin: bool = False

    def __str__(self) -> str:
        return self.url


_HOST_KEYS = ("host", "wiki")


def descriptor_from_mapping(
    spec: Mapping[str, Any], default_host: Optional[str] = None
) -> RequestDescriptor:
    """Build a :class:`RequestDescriptor` from a graph-spec style mapping.

    ``type`` names the kind, ``host`` (or ``wiki``) the host, ``path`` and
    ``title`` map directly, and ``params`` must itself be a mapping.  Any other
    key is treated as a query parameter.
    """

    kind = spec.get("type")
    if not isinstance(kind, str) or not kind:
        raise UnknownSchemeError(
            "Unknown type parameter: a data reference must declare its type",
            details={"type": repr(kind)},
        )

    host = None
    for key in _HOST_KEYS:
        if spec.get(key) is not None:
            host = spec[key]
            break
    if host is not None and not isinstance(host, str):
        raise InvalidParameterTypeError(
            f"{kind}: host should be a string", details={"kind": kind, "parameter": "host"}
        )

    params = {
        key: value
        for key, value in spec.items()
        if key not in ("type", "path", "title", "params") + _HOST_KEYS
    }
    if "params" in spec:
        nested = spec["params"]
        if not isinstance(nested, Mapping):
            raise InvalidParameterTypeError(
                f"{kind}: params should be an object",
                details={"kind": kind, "parameter": "params"},
            )
        params.update(nested)

    return RequestDescriptor(
        kind=kind,
        host=host,
        path=spec.get("path"),
        title=spec.get("title"),
        params=params,
        default_host=default_host,
    )
