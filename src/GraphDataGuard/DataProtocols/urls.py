# === NAVMAP v1 ===
# {
#   "module": "GraphDataGuard.DataProtocols.urls",
#   "purpose": "URL decomposition and re-assembly collaborators plus query encoding helpers",
#   "sections": [
#     {"id": "urlparts", "name": "UrlParts", "anchor": "class-urlparts", "kind": "class"},
#     {"id": "parse-url", "name": "parse_url", "anchor": "function-parse-url", "kind": "function"},
#     {"id": "format-url", "name": "format_url", "anchor": "function-format-url", "kind": "function"},
#     {"id": "encoding", "name": "Query Encoding", "anchor": "ENC", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===

"""URL parse/format collaborators used by the resolver.

The engine never concatenates URL strings itself: it hands a :class:`UrlParts`
to an injected ``format_url`` callable and receives decomposed URLs from an
injected ``parse_url`` callable.  The defaults below are built on
:mod:`urllib.parse` and encode query values the way browsers'
``encodeURIComponent`` does, so URLs produced here match what the graph
runtime would request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl, quote, urlsplit

__all__ = [
    "QueryValue",
    "UrlParts",
    "encode_component",
    "encode_query",
    "format_query_value",
    "format_url",
    "parse_url",
]

QueryValue = Union[str, List[str]]

#: Characters ``encodeURIComponent`` leaves untouched besides alphanumerics
_COMPONENT_SAFE = "-_.!~*'()"


@dataclass(slots=True)
class UrlParts:
    """Decomposed URL.

    ``host`` keeps the full authority (userinfo and port included) so that
    allowlist checks see exactly what the caller wrote.  ``raw_query`` is the
    undecoded query string; when set, :func:`format_url` emits it verbatim
    instead of re-encoding ``query``.
    """

    scheme: Optional[str] = None
    host: Optional[str] = None
    path: str = ""
    query: Dict[str, QueryValue] = field(default_factory=dict)
    raw_query: Optional[str] = None


def parse_url(url: str) -> UrlParts:
    """Decompose ``url`` into :class:`UrlParts`.

    Repeated query keys are collected into a list; fragments are dropped.
    Relative (``//host/x``) and scheme-less (``x/y``) URLs are accepted and
    leave ``scheme`` (and possibly ``host``) unset.
    """

    split = urlsplit(url)
    scheme = split.scheme.lower() or None
    host = split.netloc or None
    path = split.path
    if scheme in ("http", "https") and host and not path:
        path = "/"

    query: Dict[str, QueryValue] = {}
    for key, value in parse_qsl(split.query, keep_blank_values=True):
        if key in query:
            existing = query[key]
            query[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            query[key] = value

    return UrlParts(
        scheme=scheme,
        host=host,
        path=path,
        query=query,
        raw_query=split.query or None,
    )


def format_url(parts: UrlParts) -> str:
    """Assemble ``scheme://host/path?query`` from ``parts``."""

    if not parts.scheme or not parts.host:
        raise ValueError("format_url requires both scheme and host")

    path = parts.path or ""
    if path and not path.startswith("/"):
        path = "/" + path

    if parts.raw_query is not None:
        query = parts.raw_query
    else:
        query = encode_query(parts.query)

    url = f"{parts.scheme}://{parts.host}{path}"
    if query:
        url = f"{url}?{query}"
    return url


# --- Query Encoding ---


def encode_component(value: str) -> str:
    """Percent-encode ``value`` like JavaScript's ``encodeURIComponent``."""

    return quote(value, safe=_COMPONENT_SAFE)


def format_query_value(value: Any) -> Optional[str]:
    """Render a literal parameter value; ``None`` means the key is omitted.

    Booleans follow the MediaWiki API convention: ``True`` becomes ``"1"`` and
    ``False`` drops the key.  Integral floats render without a fractional part.
    """

    if isinstance(value, bool):
        return "1" if value else None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def encode_query(query: Mapping[str, Any]) -> str:
    """Encode ``query`` preserving insertion order; list values repeat the key."""

    pieces = []
    for key, value in query.items():
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            rendered = format_query_value(item)
            if rendered is None:
                continue
            pieces.append(f"{encode_component(str(key))}={encode_component(rendered)}")
    return "&".join(pieces)
