"""Tests for URL decomposition, assembly and query encoding."""

from __future__ import annotations

import pytest

from GraphDataGuard.DataProtocols.urls import (
    UrlParts,
    encode_component,
    encode_query,
    format_query_value,
    format_url,
    parse_url,
)


class TestParseUrl:
    """Tests for parse_url."""

    def test_full_url(self):
        parts = parse_url("WikiRaw://Sec.org/Page%20One?a=1&b=&a=2#frag")
        assert parts.scheme == "wikiraw"
        assert parts.host == "Sec.org"
        assert parts.path == "/Page%20One"
        assert parts.query == {"a": ["1", "2"], "b": ""}
        assert parts.raw_query == "a=1&b=&a=2"

    def test_scheme_less(self):
        parts = parse_url("blah")
        assert parts.scheme is None
        assert parts.host is None
        assert parts.path == "blah"
        assert parts.raw_query is None

    def test_protocol_relative(self):
        parts = parse_url("//my.sec.org/x")
        assert parts.scheme is None
        assert parts.host == "my.sec.org"

    def test_http_empty_path_becomes_root(self):
        assert parse_url("http://sec.org").path == "/"
        assert parse_url("wikiapi://sec.org").path == ""

    def test_empty_authority(self):
        parts = parse_url("wikiraw:///Page")
        assert parts.host is None
        assert parts.path == "/Page"


class TestFormatUrl:
    """Tests for format_url."""

    def test_assembles_encoded_query(self):
        parts = UrlParts(scheme="https", host="sec.org", path="w/api.php", query={"a": "x y", "b": ["1", "2"]})
        assert format_url(parts) == "https://sec.org/w/api.php?a=x%20y&b=1&b=2"

    def test_raw_query_verbatim(self):
        parts = UrlParts(scheme="http", host="sec.org", path="/p", query={"ignored": "1"}, raw_query="a=%41&b")
        assert format_url(parts) == "http://sec.org/p?a=%41&b"

    def test_no_path_no_query(self):
        assert format_url(UrlParts(scheme="https", host="sec.org")) == "https://sec.org"

    @pytest.mark.parametrize("parts", [UrlParts(host="sec.org"), UrlParts(scheme="https")])
    def test_requires_scheme_and_host(self, parts):
        with pytest.raises(ValueError):
            format_url(parts)


class TestQueryEncoding:
    """Tests for query value rendering."""

    @pytest.mark.parametrize(
        "value,expected",
        [(True, "1"), (False, None), (0, "0"), (3.0, "3"), (2.5, "2.5"), ("", ""), ("x", "x")],
    )
    def test_format_query_value(self, value, expected):
        assert format_query_value(value) == expected

    def test_encode_component_matches_javascript(self):
        assert encode_component("-_.!~*'() ;,/?:@&=+$#") == "-_.!~*'()%20%3B%2C%2F%3F%3A%40%26%3D%2B%24%23"
        assert encode_component("é") == "%C3%A9"

    def test_encode_query_keeps_order_and_drops_false(self):
        assert encode_query({"z": 1, "flag": False, "a": True}) == "z=1&a=1"
