"""Tests for the DataLoader glue between resolution, transport and parsing."""

from __future__ import annotations

import json
from typing import List

import pytest

from GraphDataGuard.DataProtocols.descriptors import SanitizedURL
from GraphDataGuard.DataProtocols.errors import (
    ContentNotAvailableError,
    UntrustedHostError,
)
from GraphDataGuard.DataProtocols.loader import DataLoader


class _RecordingFetch:
    """Fetch double returning a canned body and remembering every URL."""

    def __init__(self, body):
        self.body = body
        self.calls: List[SanitizedURL] = []

    def __call__(self, url: SanitizedURL):
        self.calls.append(url)
        return self.body


class TestDataLoader:
    """Tests for DataLoader.load and DataLoader.sanitize."""

    def test_load_parses_fetched_body(self, engine):
        fetch = _RecordingFetch(json.dumps({"query": {"pages": [{"revisions": [{"content": "hello"}]}]}}))
        loader = DataLoader(engine, fetch)
        assert loader.load("wikiraw://sec/Main_Page") == "hello"
        assert len(fetch.calls) == 1
        assert fetch.calls[0].kind == "wikiraw"
        assert fetch.calls[0].url.startswith("https://sec.org/w/api.php?")

    def test_rejected_reference_never_reaches_fetch(self, engine):
        fetch = _RecordingFetch("{}")
        loader = DataLoader(engine, fetch)
        with pytest.raises(UntrustedHostError):
            loader.load("wikiraw://evil.com/Page")
        assert fetch.calls == []

    def test_decoded_payloads(self, engine):
        fetch = _RecordingFetch({"query": {"pages": [{"missing": True}]}})
        loader = DataLoader(engine, fetch, decoded=True)
        with pytest.raises(ContentNotAvailableError):
            loader.load({"type": "wikiraw", "title": "Gone"})

    def test_sanitize_uses_loader_default_host(self, make_engine):
        loader = DataLoader(make_engine(default_host=None), _RecordingFetch(""), default_host="nonsec.org")
        result = loader.sanitize("wikiraw:///Page")
        assert result.url.startswith("http://nonsec.org/w/api.php?")

    def test_passthrough_kinds_return_body(self, engine):
        body = b"\x89PNG"
        loader = DataLoader(engine, _RecordingFetch(body))
        assert loader.load("wikifile:///Example.png?width=80") == body

    def test_fetch_errors_propagate(self, engine):
        def failing_fetch(url: SanitizedURL):
            raise ConnectionError("offline")

        loader = DataLoader(engine, failing_fetch)
        with pytest.raises(ConnectionError):
            loader.load("wikiapi://sec?action=query")
