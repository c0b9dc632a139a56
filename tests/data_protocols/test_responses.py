"""Tests for response validation and normalization.

Tests verify:
- API error and warning handling
- Raw page content extraction
- SPARQL binding coercion
- Tabular and map page flattening
- Pass-through and decoded payloads
"""

from __future__ import annotations

import json

import pytest

from GraphDataGuard.DataProtocols.errors import (
    ContentNotAvailableError,
    MalformedResponseError,
    MissingBindingsError,
    UnknownSchemeError,
    UpstreamAPIError,
)
from GraphDataGuard.DataProtocols.responses import normalize_bindings, parse_response

XSD = "http://www.w3.org/2001/XMLSchema#"

PAGE = {
    "description": "desc",
    "sources": "src",
    "license": {"code": "CC0-1.0+", "text": "abc", "url": "URL"},
}
META = {
    "description": "desc",
    "license_code": "CC0-1.0+",
    "license_text": "abc",
    "license_url": "URL",
    "sources": "src",
}


def _parse(engine, data, kind):
    return engine.parse(json.dumps(data), kind)


class TestApiResponses:
    """Tests for API-style kinds."""

    @pytest.mark.parametrize("kind", ["wikiapi", "wikirest", "wikiraw", "tabular", "map", "geoshape"])
    def test_error_member_fails(self, engine, kind):
        with pytest.raises(UpstreamAPIError) as excinfo:
            _parse(engine, {"error": "blah", "query": {}}, kind)
        assert excinfo.value.message == 'API error: "blah"'

    def test_structured_error_detail(self, engine):
        with pytest.raises(UpstreamAPIError, match='"code": "badtitle"'):
            _parse(engine, {"error": {"code": "badtitle"}}, "wikiapi")

    def test_success_passes_data(self, engine):
        assert _parse(engine, {"blah": 1}, "wikiapi") == {"blah": 1}

    def test_warnings_are_logged_not_raised(self, engine, warnings_seen):
        data = {"warnings": {"main": "deprecated"}, "batchcomplete": True}
        assert _parse(engine, data, "wikiapi") == data
        assert warnings_seen == ['API warnings: {"main": "deprecated"}']

    def test_default_logger_receives_warnings(self, make_engine, caplog):
        engine = make_engine(logger=None)
        with caplog.at_level("WARNING", logger="GraphDataGuard.DataProtocols"):
            _parse(engine, {"warnings": ["x"]}, "wikiapi")
        assert "API warnings" in caplog.text

    def test_invalid_json(self, engine):
        with pytest.raises(MalformedResponseError):
            engine.parse("{not json", "wikiapi")

    def test_non_object_payload(self, engine):
        with pytest.raises(MalformedResponseError):
            engine.parse("[1, 2]", "wikiapi")

    def test_bytes_payload(self, engine):
        assert engine.parse(b'{"a": 1}', "wikiapi") == {"a": 1}


class TestRawContent:
    """Tests for the wikiraw response rule."""

    def test_content(self, engine):
        data = {"query": {"pages": [{"revisions": [{"content": "blah"}]}]}}
        assert _parse(engine, data, "wikiraw") == "blah"

    @pytest.mark.parametrize(
        "data",
        [
            {"blah": 1},
            {"query": {"pages": []}},
            {"query": {"pages": [{"missing": True}]}},
            {"query": {"pages": [{"revisions": [{}]}]}},
            {"query": "nope"},
        ],
    )
    def test_missing_content(self, engine, data):
        with pytest.raises(ContentNotAvailableError, match="Page content not available"):
            _parse(engine, data, "wikiraw")


class TestSparql:
    """Tests for the wikidatasparql response rule."""

    @pytest.mark.parametrize(
        "data",
        [
            {"error": "blah"},
            {"blah": 1},
            {"results": False},
            {"results": {"bindings": False}},
            {"results": {"bindings": 100}},
        ],
    )
    def test_missing_bindings(self, engine, data):
        with pytest.raises(MissingBindingsError, match='does not have "results.bindings"'):
            _parse(engine, data, "wikidatasparql")

    def test_empty_bindings(self, engine):
        assert _parse(engine, {"results": {"bindings": []}}, "wikidatasparql") == []

    def test_coercion(self, engine):
        data = {
            "results": {
                "bindings": [
                    {
                        "int": {"type": "literal", "datatype": XSD + "int", "value": "42"},
                        "float": {"type": "literal", "datatype": XSD + "float", "value": "42.5"},
                        "geo": {
                            "type": "literal",
                            "datatype": "http://www.opengis.net/ont/geosparql#wktLiteral",
                            "value": "Point(42 144.5)",
                        },
                    },
                    {"uri": {"type": "uri", "value": "http://www.wikidata.org/entity/Q42"}},
                ]
            }
        }
        assert _parse(engine, data, "wikidatasparql") == [
            {"int": 42, "float": 42.5, "geo": [42, 144.5]},
            {"uri": "Q42"},
        ]

    @pytest.mark.parametrize(
        "cell,expected",
        [
            ({"type": "literal", "datatype": XSD + "integer", "value": "007"}, "007"),
            ({"type": "literal", "datatype": XSD + "decimal", "value": "1.25"}, 1.25),
            ({"type": "literal", "datatype": XSD + "string", "value": "42"}, "42"),
            ({"type": "literal", "value": "plain"}, "plain"),
            ({"type": "literal", "xml:lang": "en", "value": "label"}, "label"),
            ({"type": "uri", "value": "http://example.org/thing"}, "http://example.org/thing"),
            ({"type": "bnode", "value": "b0"}, "b0"),
            (
                {
                    "type": "literal",
                    "datatype": "http://www.opengis.net/ont/geosparql#wktLiteral",
                    "value": "Polygon((0 0, 1 1))",
                },
                "Polygon((0 0, 1 1))",
            ),
        ],
    )
    def test_value_rules(self, cell, expected):
        assert normalize_bindings([{"v": cell}]) == [{"v": expected}]

    def test_malformed_binding(self, engine):
        with pytest.raises(MalformedResponseError):
            _parse(engine, {"results": {"bindings": [{"v": "raw"}]}}, "wikidatasparql")


class TestJsonData:
    """Tests for the tabular and map response rules."""

    def test_tabular(self, engine):
        data = {
            "jsondata": {
                **PAGE,
                "schema": {"fields": [{"name": "fld1"}]},
                "data": [[42]],
            }
        }
        assert _parse(engine, data, "tabular") == {
            "meta": [META],
            "fields": [{"name": "fld1"}],
            "data": [{"fld1": 42}],
        }

    def test_tabular_multiple_columns(self, engine):
        data = {
            "jsondata": {
                **PAGE,
                "schema": {"fields": [{"name": "a", "type": "number"}, {"name": "b"}]},
                "data": [[1, "x"], [2, "y"]],
            }
        }
        assert _parse(engine, data, "tabular")["data"] == [{"a": 1, "b": "x"}, {"a": 2, "b": "y"}]

    @pytest.mark.parametrize(
        "jsondata",
        [
            {"schema": {}},
            {"schema": {"fields": [{"title": "no name"}]}},
            {"schema": {"fields": [{"name": "a"}]}, "data": [42]},
        ],
    )
    def test_tabular_malformed(self, engine, jsondata):
        with pytest.raises(MalformedResponseError):
            _parse(engine, {"jsondata": jsondata}, "tabular")

    def test_tabular_without_jsondata(self, engine):
        with pytest.raises(MalformedResponseError):
            _parse(engine, {"blah": 1}, "tabular")

    def test_map(self, engine):
        data = {"jsondata": {**PAGE, "longitude": 10, "latitude": 20, "zoom": 3, "data": "map"}}
        assert _parse(engine, data, "map") == {
            "meta": [{**META, "longitude": 10, "latitude": 20, "zoom": 3}],
            "data": "map",
        }


class TestPassThrough:
    """Tests for kinds without decoding requirements."""

    @pytest.mark.parametrize("kind", ["http", "https", "wikifile", "wikirawupload", "mapsnapshot"])
    def test_payload_unchanged(self, engine, kind):
        payload = b"\x89PNG not json"
        assert engine.parse(payload, kind) is payload

    def test_decoded_payload_skips_json(self, engine):
        assert engine.parse({"blah": 1}, "wikiapi", decoded=True) == {"blah": 1}

    def test_decoded_payload_still_validated(self, engine):
        with pytest.raises(UpstreamAPIError):
            engine.parse({"error": "x"}, "wikiapi", decoded=True)

    @pytest.mark.parametrize("kind", ["test:", "wikititle", ""])
    def test_unknown_kind(self, engine, kind):
        with pytest.raises(UnknownSchemeError):
            engine.parse("1", kind)

    def test_module_level_unknown_kind(self):
        with pytest.raises(UnknownSchemeError):
            parse_response("1", "nope", lambda message: None)
