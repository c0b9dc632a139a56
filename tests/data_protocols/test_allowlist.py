"""Tests for domain matchers and host normalization."""

from __future__ import annotations

import pytest

from GraphDataGuard.DataProtocols.allowlist import DomainMatcher, normalize_host
from GraphDataGuard.DataProtocols.errors import ConfigurationError, UntrustedHostError
from GraphDataGuard.DataProtocols.hosts import HostNormalizer


class TestDomainMatcher:
    """Tests for DomainMatcher."""

    def test_exact_match_only_by_default(self):
        matcher = DomainMatcher(["upload.example.org"])
        assert matcher.matches("upload.example.org")
        assert matcher.matches("UPLOAD.Example.org.")
        assert not matcher.matches("a.upload.example.org")
        assert not matcher.matches("example.org")

    def test_subdomains_when_enabled(self):
        matcher = DomainMatcher(["example.org"], allow_subdomains=True)
        assert matcher.matches("example.org")
        assert matcher.matches("a.b.example.org")
        assert not matcher.matches("badexample.org")
        assert not matcher.matches("example.org.evil.com")

    @pytest.mark.parametrize("pattern", ["*.example.org", ".example.org"])
    def test_wildcard_requires_a_label(self, pattern):
        matcher = DomainMatcher([pattern])
        assert matcher.patterns == ("*.example.org",)
        assert matcher.matches("a.example.org")
        assert not matcher.matches("example.org")

    @pytest.mark.parametrize(
        "host",
        [
            "evil.com@x.example.org",
            "example.org:443",
            "x.example.org/path",
            "",
            None,
            "exa mple.org",
        ],
    )
    def test_rejects_authority_tricks(self, host):
        matcher = DomainMatcher(["example.org"], allow_subdomains=True)
        assert not matcher.matches(host)

    def test_internationalized_hosts(self):
        matcher = DomainMatcher(["bücher.example"])
        assert matcher.patterns == ("xn--bcher-kva.example",)
        assert matcher.matches("BÜCHER.example")
        assert matcher.matches("xn--bcher-kva.example")

    def test_empty_matcher_matches_nothing(self):
        matcher = DomainMatcher([])
        assert not matcher.matches("example.org")

    @pytest.mark.parametrize("entry", ["bad host", "-lead.example.org", "a..b", "http://example.org"])
    def test_invalid_entries(self, entry):
        with pytest.raises(ConfigurationError):
            DomainMatcher([entry])


def test_normalize_host():
    assert normalize_host(" Example.ORG. ") == "example.org"
    with pytest.raises(ValueError):
        normalize_host("  ")


class TestHostNormalizer:
    """Tests for HostNormalizer."""

    @pytest.fixture
    def normalizer(self):
        return HostNormalizer(
            DomainMatcher(["sec.org"], allow_subdomains=True),
            DomainMatcher(["nonsec.org", "both.org"], allow_subdomains=True),
            {"Sec": "SEC.org", "nonsec": "nonsec.org"},
        )

    def test_alias(self, normalizer):
        assert normalizer.apply_alias("sec") == "sec.org"
        assert normalizer.apply_alias("other.org") == "other.org"
        assert normalizer.apply_alias(" NONSEC ") == "nonsec.org"

    @pytest.mark.parametrize(
        "host,canonical,scheme",
        [
            ("sec", "sec.org", "https"),
            ("a.sec.org", "a.sec.org", "https"),
            ("NONSEC", "nonsec.org", "http"),
            ("x.nonsec.org", "x.nonsec.org", "http"),
        ],
    )
    def test_resolve(self, normalizer, host, canonical, scheme):
        resolved = normalizer.resolve(host)
        assert resolved.host == canonical
        assert resolved.scheme == scheme

    def test_secure_list_wins(self):
        normalizer = HostNormalizer(
            DomainMatcher(["both.org"], allow_subdomains=True),
            DomainMatcher(["both.org"], allow_subdomains=True),
        )
        assert normalizer.resolve("both.org").scheme == "https"

    def test_select_scheme_skips_aliases(self, normalizer):
        """A host that is itself an alias key is looked up as written."""
        with pytest.raises(UntrustedHostError):
            normalizer.select_scheme("sec")
        resolved = normalizer.select_scheme("a.sec.org", requested="alias")
        assert (resolved.host, resolved.scheme) == ("a.sec.org", "https")

    def test_unlisted_host(self, normalizer):
        with pytest.raises(UntrustedHostError) as excinfo:
            normalizer.resolve("evil.org")
        assert excinfo.value.details["canonical_host"] == "evil.org"
