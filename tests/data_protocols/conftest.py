"""Shared fixtures for data_protocols test suite."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List

import pytest
import yaml

from GraphDataGuard.DataProtocols.engine import ProtocolEngine
from GraphDataGuard.DataProtocols.logging_utils import LOGGER_NAME

DOMAINS = {
    "https": ["sec.org"],
    "http": ["nonsec.org"],
    "upload": ["wikirawupload.nonsec.org", "wikirawupload.sec.org"],
    "sparql": ["wikidatasparql.nonsec.org", "wikidatasparql.sec.org"],
    "maps": ["maps.nonsec.org", "maps.sec.org"],
}
DOMAIN_MAP = {"sec": "sec.org", "nonsec": "nonsec.org"}
DEFAULT_HOST = "domain.sec.org"


@pytest.fixture
def warnings_seen() -> List[str]:
    """Messages delivered to the engine's logger callback."""

    return []


@pytest.fixture
def make_engine(warnings_seen: List[str]) -> Callable[..., ProtocolEngine]:
    """Factory building engines over the shared test allowlists."""

    def _make(trusted: bool = False, **overrides) -> ProtocolEngine:
        options = {
            "trusted": trusted,
            "domains": DOMAINS,
            "domain_map": DOMAIN_MAP,
            "language_code": "en",
            "logger": warnings_seen.append,
            "default_host": DEFAULT_HOST,
        }
        options.update(overrides)
        return ProtocolEngine(**options)

    return _make


@pytest.fixture
def engine(make_engine) -> ProtocolEngine:
    return make_engine(trusted=False)


@pytest.fixture
def trusted_engine(make_engine) -> ProtocolEngine:
    return make_engine(trusted=True)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """YAML configuration mirroring the shared test allowlists."""

    path = tmp_path / "graphguard.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "trusted": False,
                "language_code": "en",
                "default_host": DEFAULT_HOST,
                "domains": DOMAINS,
                "domain_map": DOMAIN_MAP,
                "logging": {"level": "WARNING"},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def _clear_graphguard_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GRAPHGUARD_TRUSTED", "GRAPHGUARD_LANGUAGE_CODE", "GRAPHGUARD_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo handlers installed by setup_logging (the CLI calls it)."""

    package_logger = logging.getLogger(LOGGER_NAME)
    handlers = list(package_logger.handlers)
    level = package_logger.level
    propagate = package_logger.propagate
    yield
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)
    package_logger.propagate = propagate
