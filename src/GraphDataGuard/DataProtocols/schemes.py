# === NAVMAP v1 ===
# {
#   "module": "GraphDataGuard.DataProtocols.schemes",
#   "purpose": "Table-driven registry of data protocol kinds and their per-kind validation and URL building",
#   "sections": [
#     {"id": "definitions", "name": "Scheme Data Structures", "anchor": "DEF", "kind": "api"},
#     {"id": "registry", "name": "SchemeRegistry", "anchor": "class-schemeregistry", "kind": "class"},
#     {"id": "validation", "name": "Parameter Validation Helpers", "anchor": "VAL", "kind": "helpers"},
#     {"id": "url-hooks", "name": "URL Decomposition Hooks", "anchor": "URL", "kind": "helpers"},
#     {"id": "kinds", "name": "Built-in Kinds", "anchor": "KND", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Scheme definitions for every data protocol a graph may reference.

Each kind is described by a frozen :class:`SchemeDefinition` that declares
which allowlist family governs its host, which parameters it requires, whether
it is restricted to trusted graphs, whether the caller must attach a CORS
origin, and two hooks:

- ``build`` validates kind-specific parameter formats and returns the
  :class:`Endpoint` (path and query) to request;
- ``from_url`` maps a decomposed URL such as ``wikiraw:///Page`` onto the
  fields of a :class:`~GraphDataGuard.DataProtocols.descriptors.RequestDescriptor`.

Kinds register through :func:`scheme` on the module-level registry, so adding
a new kind is a matter of writing one decorated builder.  The engine takes an
immutable snapshot of the registry when it is constructed.
"""

from __future__ import annotations

import math
import re
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple
from urllib.parse import unquote

from .descriptors import ResolvedHost
from .errors import (
    InvalidParameterFormatError,
    MissingRequiredParameterError,
)
from .urls import QueryValue, UrlParts, encode_component, format_query_value

__all__ = [
    "DESCRIPTOR_FIELDS",
    "Endpoint",
    "SchemeDefinition",
    "SchemeRegistry",
    "SchemeRequest",
    "default_schemes",
    "iter_definitions",
    "scheme",
]

#: Required-parameter names that live on the descriptor rather than in ``params``
DESCRIPTOR_FIELDS = frozenset({"path", "title"})

API_PATH = "/w/api.php"
API_FORMAT: Mapping[str, str] = MappingProxyType({"format": "json", "formatversion": "2"})

# ============================================================================
# Scheme Data Structures
# ============================================================================


@dataclass(frozen=True, slots=True)
class SchemeRequest:
    """Validated inputs handed to a scheme's ``build`` hook."""

    kind: str
    host: ResolvedHost
    path: Optional[str]
    title: Optional[str]
    params: Mapping[str, Any]
    raw_query: Optional[str]
    language_code: str


@dataclass(frozen=True, slots=True)
class Endpoint:
    """Path and query produced by a scheme; ``raw_query`` wins over ``query``."""

    path: str
    query: Mapping[str, QueryValue] = field(default_factory=dict)
    raw_query: Optional[str] = None


def _default_from_url(parts: UrlParts) -> Dict[str, Any]:
    return {"path": parts.path, "params": dict(parts.query)}


@dataclass(frozen=True)
class SchemeDefinition:
    """Static description of one resource kind.

    Attributes:
        name: Kind name as written in graph specs (``wikiraw``).
        build: Callable turning a :class:`SchemeRequest` into an :class:`Endpoint`.
        description: One-line summary shown by ``graphguard schemes``.
        required: Parameters that must be present and non-empty.
        optional: Optional parameters with their defaults.
        host_family: Dedicated allowlist family, or ``None`` for the general
            ``https``/``http`` allowlists.
        requires_trusted: Only usable by engines constructed as trusted.
        cors: Whether callers must attach a CORS origin hint.
        keeps_scheme: Use the kind itself as transport scheme instead of the
            one chosen for the host (plain http/https kinds).
        list_params: Parameters permitted to carry a list of literals.
        from_url: Hook mapping decomposed URL parts to descriptor fields.
    """

    name: str
    build: Callable[[SchemeRequest], Endpoint]
    description: str = ""
    required: FrozenSet[str] = frozenset()
    optional: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    host_family: Optional[str] = None
    requires_trusted: bool = False
    cors: bool = False
    keeps_scheme: bool = False
    list_params: FrozenSet[str] = frozenset()
    from_url: Callable[[UrlParts], Dict[str, Any]] = _default_from_url


# ============================================================================
# SchemeRegistry
# ============================================================================


class SchemeRegistry:
    """Registry of scheme definitions keyed by kind name."""

    def __init__(self) -> None:
        self._schemes: Dict[str, SchemeDefinition] = {}
        self._lock = threading.Lock()

    def register(self, definition: SchemeDefinition) -> SchemeDefinition:
        with self._lock:
            if definition.name in self._schemes:
                raise ValueError(f"Scheme '{definition.name}' already registered")
            self._schemes[definition.name] = definition
        return definition

    def scheme(self, *names: str, **options: Any) -> Callable:
        """Decorator registering ``build`` under one or more kind names.

        Example:
            @registry.scheme("geoshape", "geoline", host_family="maps")
            def _build_geo(request: SchemeRequest) -> Endpoint:
                ...
        """

        def decorator(build: Callable[[SchemeRequest], Endpoint]) -> Callable:
            for name in names:
                self.register(SchemeDefinition(name=name, build=build, **options))
            return build

        return decorator

    def snapshot(self) -> Mapping[str, SchemeDefinition]:
        """Return an immutable copy of the current table."""
        with self._lock:
            return MappingProxyType(dict(self._schemes))


_registry = SchemeRegistry()


def scheme(*names: str, **options: Any) -> Callable:
    """Register a builder on the module-level registry."""
    return _registry.scheme(*names, **options)


def default_schemes() -> Mapping[str, SchemeDefinition]:
    return _registry.snapshot()


# ============================================================================
# Parameter Validation Helpers
# ============================================================================

_TITLE_RE = re.compile(r"[^|\x00-\x1f\x7f]+")
_WIKIDATA_ID_RE = re.compile(r"Q[1-9][0-9]{0,19}")
_IDENTIFIER_RE = re.compile(r"[-_0-9a-zA-Z]+")
_INTEGER_RE = re.compile(r"-?[0-9]+")
_DECIMAL_RE = re.compile(r"-?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


def _format_error(kind: str, parameter: str, message: str, value: Any = None) -> InvalidParameterFormatError:
    details: Dict[str, Any] = {"kind": kind, "parameter": parameter}
    if value is not None:
        details["value"] = repr(value)
    return InvalidParameterFormatError(f"{kind}: {message}", details=details)


def _valid_title(request: SchemeRequest) -> str:
    title = request.title
    if not isinstance(title, str) or not _TITLE_RE.fullmatch(title):
        raise _format_error(request.kind, "title", "invalid title", title)
    return title


def _safe_path(kind: str, path: Any, *, prefix: str = "/") -> str:
    """Return ``path`` with a leading slash, rejecting dot segments."""

    if not isinstance(path, str):
        raise _format_error(kind, "path", "url path should be a string", path)
    if not path.startswith(prefix):
        path = "/" + path.lstrip("/")
        if not path.startswith(prefix):
            path = prefix + path[1:]
    segments = unquote(path).split("/")
    if any(segment in (".", "..") for segment in segments):
        raise _format_error(kind, "path", "url path must not contain '.' or '..' segments", path)
    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in path):
        raise _format_error(kind, "path", "url path must not contain control characters", path)
    return path


def _literal_query(params: Mapping[str, Any]) -> Dict[str, QueryValue]:
    query: Dict[str, QueryValue] = {}
    for key, value in params.items():
        rendered = format_query_value(value)
        if rendered is not None:
            query[key] = rendered
    return query


def _non_empty_string(kind: str, name: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise _format_error(kind, name, f"{name} should be a non-empty string", value)
    return value


def _number(
    kind: str,
    params: Mapping[str, Any],
    name: str,
    *,
    integer: bool,
    low: float,
    high: float,
) -> float:
    value = params.get(name)
    if isinstance(value, bool):
        raise _format_error(kind, name, f"parameter {name} is not valid", value)
    if isinstance(value, str):
        pattern = _INTEGER_RE if integer else _DECIMAL_RE
        if not pattern.fullmatch(value):
            raise _format_error(kind, name, f"parameter {name} is not valid", value)
        value = int(value) if integer else float(value)
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        raise _format_error(kind, name, f"parameter {name} is not valid", value)
    if integer:
        if isinstance(value, float) and not value.is_integer():
            raise _format_error(kind, name, f"parameter {name} must be an integer", value)
        value = int(value)
    if not low <= value <= high:
        raise _format_error(kind, name, f"parameter {name} must be between {low} and {high}", value)
    return value


def _identifier(kind: str, params: Mapping[str, Any], name: str) -> Optional[str]:
    value = params.get(name)
    if value is None:
        return None
    if not isinstance(value, str) or not _IDENTIFIER_RE.fullmatch(value):
        raise _format_error(
            kind,
            name,
            f"if {name} is given, it must be letters/numbers/dash/underscores only",
            value,
        )
    return value


def _wikidata_ids(kind: str, value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)) or not value:
        raise _format_error(kind, "ids", "ids must be a non-empty list of Wikidata IDs", value)
    for item in value:
        if not isinstance(item, str) or not _WIKIDATA_ID_RE.fullmatch(item):
            raise _format_error(kind, "ids", f"Invalid Wikidata ID {item!r}", item)
    return tuple(value)


# ============================================================================
# URL Decomposition Hooks
# ============================================================================


def _plain_from_url(parts: UrlParts) -> Dict[str, Any]:
    return {"path": parts.path, "raw_query": parts.raw_query}


def _title_from_url(parts: UrlParts) -> Dict[str, Any]:
    # wikiraw:///Page/sub -> title "Page/sub"
    path = parts.path or ""
    title = unquote(path[1:]) if path.startswith("/") and len(path) > 1 else None
    return {"title": title, "params": dict(parts.query)}


def _rest_from_url(parts: UrlParts) -> Dict[str, Any]:
    if not parts.path.startswith("/api/"):
        raise _format_error("wikirest", "path", "protocol must begin with the /api/ prefix", parts.path)
    return {"path": parts.path, "params": dict(parts.query)}


# ============================================================================
# Built-in Kinds
# ============================================================================


@scheme(
    "http",
    "https",
    description="Plain transport; path and query kept verbatim (trusted graphs only)",
    requires_trusted=True,
    keeps_scheme=True,
    from_url=_plain_from_url,
)
def _build_plain(request: SchemeRequest) -> Endpoint:
    path = "" if request.path in (None, "") else request.path
    if not isinstance(path, str):
        raise _format_error(request.kind, "path", "url path should be a string", path)
    if request.raw_query is not None:
        return Endpoint(path=path, raw_query=request.raw_query)
    return Endpoint(path=path, query=_literal_query(request.params))


@scheme(
    "wikiapi",
    description="MediaWiki action API call with literal parameters",
    cors=True,
)
def _build_api(request: SchemeRequest) -> Endpoint:
    query = _literal_query(request.params)
    query.update(API_FORMAT)
    return Endpoint(path=API_PATH, query=query)


@scheme(
    "wikirest",
    description="REST API call below the /api/ prefix",
    required=frozenset({"path"}),
    from_url=_rest_from_url,
)
def _build_rest(request: SchemeRequest) -> Endpoint:
    path = _safe_path(request.kind, request.path, prefix="/api/")
    if path == "/api/":
        raise _format_error(request.kind, "path", "url path should be a non-empty string", request.path)
    return Endpoint(path=path, query=_literal_query(request.params))


@scheme(
    "wikiraw",
    description="Raw content of a wiki page fetched through the action API",
    required=frozenset({"title"}),
    cors=True,
    from_url=_title_from_url,
)
def _build_raw(request: SchemeRequest) -> Endpoint:
    title = _valid_title(request)
    query: Dict[str, QueryValue] = dict(API_FORMAT)
    query.update(action="query", prop="revisions", rvprop="content", titles=title)
    return Endpoint(path=API_PATH, query=query)


@scheme(
    "wikifile",
    description="File served through Special:Redirect, optionally scaled",
    required=frozenset({"title"}),
    optional=MappingProxyType({"width": None}),
    from_url=_title_from_url,
)
def _build_file(request: SchemeRequest) -> Endpoint:
    title = _valid_title(request)
    if title in (".", ".."):
        raise _format_error(request.kind, "title", "invalid title", title)
    query: Dict[str, QueryValue] = {}
    if request.params.get("width") is not None:
        width = _number(request.kind, request.params, "width", integer=True, low=1, high=100000)
        query["width"] = format_query_value(width)
    return Endpoint(path="/wiki/Special:Redirect/file/" + encode_component(title), query=query)


@scheme(
    "wikirawupload",
    description="Uploaded media from a dedicated upload host; query dropped",
    host_family="upload",
)
def _build_upload(request: SchemeRequest) -> Endpoint:
    path = _safe_path(request.kind, request.path or "/")
    if path == "/":
        raise _format_error(request.kind, "path", "url path should reference a file", request.path)
    return Endpoint(path=path)


@scheme(
    "wikidatasparql",
    description="SPARQL query against a dedicated query service",
    required=frozenset({"query"}),
    host_family="sparql",
)
def _build_sparql(request: SchemeRequest) -> Endpoint:
    query_text = _non_empty_string(request.kind, "query", request.params.get("query"))
    return Endpoint(path="/bigdata/namespace/wdq/sparql", query={"query": query_text})


@scheme(
    "geoshape",
    "geoline",
    description="Shapes or lines for Wikidata items from the maps service",
    host_family="maps",
    list_params=frozenset({"ids"}),
)
def _build_geo(request: SchemeRequest) -> Endpoint:
    ids = request.params.get("ids")
    query_text = request.params.get("query")
    if ids in (None, "") and query_text in (None, ""):
        raise MissingRequiredParameterError(
            f"{request.kind}: missing ids or query parameter",
            details={"kind": request.kind, "parameter": "ids|query"},
        )

    query: Dict[str, QueryValue] = {}
    if ids not in (None, ""):
        query["ids"] = ",".join(_wikidata_ids(request.kind, ids))
    if query_text not in (None, ""):
        query["query"] = _non_empty_string(request.kind, "query", query_text)
    return Endpoint(path="/" + request.kind, query=query)


@scheme(
    "mapsnapshot",
    description="Static map image rendered by the maps service",
    required=frozenset({"width", "height", "lat", "lon", "zoom"}),
    optional=MappingProxyType({"style": "osm-intl", "lang": None}),
    host_family="maps",
)
def _build_snapshot(request: SchemeRequest) -> Endpoint:
    kind, params = request.kind, request.params
    width = _number(kind, params, "width", integer=True, low=1, high=4096)
    height = _number(kind, params, "height", integer=True, low=1, high=4096)
    zoom = _number(kind, params, "zoom", integer=True, low=0, high=22)
    lat = _number(kind, params, "lat", integer=False, low=-90, high=90)
    lon = _number(kind, params, "lon", integer=False, low=-180, high=180)
    style = _identifier(kind, params, "style")
    lang = _identifier(kind, params, "lang")

    coordinates = ",".join(format_query_value(value) for value in (zoom, lat, lon))
    path = f"/img/{style},{coordinates},{width}x{height}@2x.png"
    return Endpoint(path=path, query={"lang": lang} if lang else {})


@scheme(
    "tabular",
    "map",
    description="Structured data page (.tab/.map) fetched through action=jsondata",
    required=frozenset({"title"}),
    cors=True,
    from_url=_title_from_url,
)
def _build_jsondata(request: SchemeRequest) -> Endpoint:
    title = _valid_title(request)
    query: Dict[str, QueryValue] = dict(API_FORMAT)
    query.update(action="jsondata", title=title, uselang=request.language_code)
    return Endpoint(path=API_PATH, query=query)


def iter_definitions(schemes: Mapping[str, SchemeDefinition]) -> Iterable[SchemeDefinition]:
    """Yield definitions sorted by name (used for listings)."""
    return (schemes[name] for name in sorted(schemes))
