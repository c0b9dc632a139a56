# === NAVMAP v1 ===
# {
#   "module": "GraphDataGuard.DataProtocols.responses",
#   "purpose": "Per-kind response validation and normalization rules",
#   "sections": [
#     {"id": "decoding", "name": "Payload Decoding", "anchor": "DEC", "kind": "helpers"},
#     {"id": "rules", "name": "Response Rules", "anchor": "RUL", "kind": "api"},
#     {"id": "sparql", "name": "SPARQL Bindings", "anchor": "SPQ", "kind": "helpers"},
#     {"id": "jsondata", "name": "Tabular and Map Pages", "anchor": "JSD", "kind": "helpers"},
#     {"id": "dispatch", "name": "parse_response", "anchor": "function-parse-response", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Response validators that turn raw upstream payloads into well-defined shapes.

Every rule receives the decoded payload and a ``warn`` callback and either
returns the normalized value or raises a
:class:`~GraphDataGuard.DataProtocols.errors.MalformedResponseError` subtype.
Rules never mutate the payload they were given.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import (
    ContentNotAvailableError,
    MalformedResponseError,
    MissingBindingsError,
    UnknownSchemeError,
    UpstreamAPIError,
)

__all__ = [
    "PASSTHROUGH",
    "RESPONSE_RULES",
    "check_api_result",
    "decode_payload",
    "normalize_bindings",
    "parse_response",
]

Warn = Callable[[str], None]
ResponseRule = Callable[[Any, str, Warn], Any]

XSD_PREFIX = "http://www.w3.org/2001/XMLSchema#"
WKT_LITERAL = "http://www.opengis.net/ont/geosparql#wktLiteral"
ENTITY_PREFIX = "http://www.wikidata.org/entity/"

_INTEGER_TYPES = frozenset(
    {
        "int",
        "integer",
        "long",
        "short",
        "byte",
        "nonNegativeInteger",
        "nonPositiveInteger",
        "negativeInteger",
        "positiveInteger",
        "unsignedInt",
        "unsignedLong",
        "unsignedShort",
        "unsignedByte",
    }
)
_FLOAT_TYPES = frozenset({"decimal", "float", "double"})
_POINT_RE = re.compile(r"Point\(\s*(\S+)\s+(\S+)\s*\)")

# ============================================================================
# Payload Decoding
# ============================================================================


def decode_payload(payload: Any, kind: str) -> Any:
    """JSON-decode ``payload`` (``str`` or ``bytes``)."""

    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedResponseError(
                f"{kind}: response is not valid UTF-8", details={"kind": kind}
            ) from exc
    if not isinstance(payload, str):
        raise MalformedResponseError(
            f"{kind}: response payload must be text, got {type(payload).__name__}",
            details={"kind": kind},
        )
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(
            f"{kind}: response is not valid JSON: {exc.msg}",
            details={"kind": kind, "position": exc.pos},
        ) from exc


def check_api_result(data: Any, kind: str, warn: Warn) -> Mapping[str, Any]:
    """Fail on an API ``error`` member and report ``warnings`` to ``warn``."""

    if not isinstance(data, Mapping):
        raise MalformedResponseError(
            f"{kind}: API response must be a JSON object", details={"kind": kind}
        )
    if data.get("error") is not None:
        raise UpstreamAPIError(
            "API error: " + json.dumps(data["error"]),
            details={"kind": kind},
        )
    if data.get("warnings"):
        warn("API warnings: " + json.dumps(data["warnings"]))
    return data


# ============================================================================
# Response Rules
# ============================================================================

RESPONSE_RULES: Dict[str, ResponseRule] = {}

#: Registered kinds whose payload is returned untouched
PASSTHROUGH = frozenset({"http", "https", "wikifile", "wikirawupload", "mapsnapshot"})


def response_rule(*kinds: str) -> Callable[[ResponseRule], ResponseRule]:
    def decorator(rule: ResponseRule) -> ResponseRule:
        for kind in kinds:
            RESPONSE_RULES[kind] = rule
        return rule

    return decorator


@response_rule("wikiapi", "wikirest", "geoshape", "geoline")
def _api_rule(data: Any, kind: str, warn: Warn) -> Any:
    return check_api_result(data, kind, warn)


@response_rule("wikiraw")
def _raw_rule(data: Any, kind: str, warn: Warn) -> Any:
    check_api_result(data, kind, warn)
    try:
        content = data["query"]["pages"][0]["revisions"][0]["content"]
    except (KeyError, IndexError, TypeError):
        raise ContentNotAvailableError(
            "Page content not available", details={"kind": kind}
        ) from None
    return content


@response_rule("wikidatasparql")
def _sparql_rule(data: Any, kind: str, warn: Warn) -> Any:
    bindings = None
    if isinstance(data, Mapping) and isinstance(data.get("results"), Mapping):
        bindings = data["results"].get("bindings")
    if not isinstance(bindings, list):
        raise MissingBindingsError(
            'SPARQL query result does not have "results.bindings"',
            details={"kind": "wikidatasparql"},
        )
    return normalize_bindings(bindings)


@response_rule("tabular")
def _tabular_rule(data: Any, kind: str, warn: Warn) -> Any:
    page = _jsondata(data, kind, warn)
    schema = page.get("schema")
    fields = schema.get("fields") if isinstance(schema, Mapping) else None
    if not isinstance(fields, list) or not all(
        isinstance(column, Mapping) and isinstance(column.get("name"), str) for column in fields
    ):
        raise MalformedResponseError(
            "tabular: schema.fields must be a list of named columns",
            details={"kind": "tabular"},
        )
    names = [column["name"] for column in fields]

    rows = page.get("data", [])
    if not isinstance(rows, list) or not all(isinstance(row, list) for row in rows):
        raise MalformedResponseError(
            "tabular: data must be a list of rows", details={"kind": "tabular"}
        )
    return {
        "meta": [_meta(page)],
        "fields": fields,
        "data": [dict(zip(names, row)) for row in rows],
    }


@response_rule("map")
def _map_rule(data: Any, kind: str, warn: Warn) -> Any:
    page = _jsondata(data, kind, warn)
    meta = _meta(page)
    for key in ("longitude", "latitude", "zoom"):
        meta[key] = page.get(key)
    return {"meta": [meta], "data": page.get("data")}


# ============================================================================
# SPARQL Bindings
# ============================================================================


def _coerce_literal(datatype: Optional[str], value: str) -> Any:
    if not datatype:
        return value
    if datatype == WKT_LITERAL:
        match = _POINT_RE.fullmatch(value)
        if match:
            try:
                return [float(match.group(1)), float(match.group(2))]
            except ValueError:
                return value
        return value
    if not datatype.startswith(XSD_PREFIX):
        return value

    local = datatype[len(XSD_PREFIX):]
    if local in _INTEGER_TYPES:
        try:
            number = int(value)
        except ValueError:
            return value
        return number if str(number) == value else value
    if local in _FLOAT_TYPES:
        try:
            return float(value)
        except ValueError:
            return value
    return value


def _binding_value(cell: Any) -> Any:
    if not isinstance(cell, Mapping) or not isinstance(cell.get("value"), str):
        raise MalformedResponseError(
            "SPARQL binding values must be objects with a string value",
            details={"kind": "wikidatasparql"},
        )
    value = cell["value"]
    if cell.get("type") == "uri":
        return value[len(ENTITY_PREFIX):] if value.startswith(ENTITY_PREFIX) else value
    if cell.get("type") in ("literal", "typed-literal"):
        return _coerce_literal(cell.get("datatype"), value)
    return value


def normalize_bindings(bindings: List[Any]) -> List[Dict[str, Any]]:
    """Flatten SPARQL JSON bindings into plain ``{variable: value}`` rows."""

    rows = []
    for binding in bindings:
        if not isinstance(binding, Mapping):
            raise MalformedResponseError(
                "SPARQL bindings must be objects", details={"kind": "wikidatasparql"}
            )
        rows.append({name: _binding_value(cell) for name, cell in binding.items()})
    return rows


# ============================================================================
# Tabular and Map Pages
# ============================================================================


def _jsondata(data: Any, kind: str, warn: Warn) -> Mapping[str, Any]:
    check_api_result(data, kind, warn)
    page = data.get("jsondata")
    if not isinstance(page, Mapping):
        raise MalformedResponseError(
            f"{kind}: response does not have a jsondata object", details={"kind": kind}
        )
    return page


def _meta(page: Mapping[str, Any]) -> Dict[str, Any]:
    license_info = page.get("license")
    if not isinstance(license_info, Mapping):
        license_info = {}
    return {
        "description": page.get("description"),
        "license_code": license_info.get("code"),
        "license_text": license_info.get("text"),
        "license_url": license_info.get("url"),
        "sources": page.get("sources"),
    }


# ============================================================================
# parse_response
# ============================================================================


def parse_response(payload: Any, kind: str, warn: Warn, *, decoded: bool = False) -> Any:
    """Validate and normalize ``payload`` fetched for a resource of ``kind``.

    Args:
        payload: Raw response body, or an already-decoded value when
            ``decoded`` is true.
        kind: Registered kind the request was resolved for.
        warn: Callback receiving non-fatal upstream warnings.
        decoded: Skip JSON decoding.

    Returns:
        The normalized value for ``kind``.

    Raises:
        MalformedResponseError: payload cannot be decoded or has the wrong shape.
        UpstreamAPIError: an API-style payload carried an ``error`` member.
        ContentNotAvailableError: a raw-content payload has no revision content.
        MissingBindingsError: a SPARQL payload has no ``results.bindings`` list.
        UnknownSchemeError: ``kind`` has no response rule.
    """

    if kind in PASSTHROUGH:
        return payload
    rule = RESPONSE_RULES.get(kind)
    if rule is None:
        raise UnknownSchemeError(f"Unknown type parameter: {kind!r}", details={"kind": kind})
    data = payload if decoded else decode_payload(payload, kind)
    return rule(data, kind, warn)
