# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest configuration for the suite",
#   "sections": [
#     {
#       "id": "configure-hypothesis",
#       "name": "_configure_hypothesis",
#       "anchor": "function-configure-hypothesis",
#       "kind": "function"
#     },
#     {
#       "id": "pytest-configure",
#       "name": "pytest_configure",
#       "anchor": "function-pytest-configure",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Makes ``src`` and the repository root importable (suites share constants via
``tests.<suite>.conftest``) and loads a deterministic Hypothesis profile.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from hypothesis import HealthCheck, settings

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
for _path in (SRC, ROOT):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))


def _configure_hypothesis() -> None:
    settings.register_profile(
        "test",
        max_examples=100,
        deadline=None,
        derandomize=True,
        suppress_health_check=[HealthCheck.too_slow],
    )
    settings.load_profile("test")


_configure_hypothesis()


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "cli: tests driving the graphguard command line")
