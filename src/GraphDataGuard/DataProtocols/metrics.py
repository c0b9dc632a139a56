"""Prometheus instrumentation for resolution and parsing outcomes."""

from __future__ import annotations

from typing import Optional

from prometheus_client import Counter, Histogram

from .errors import DataProtocolError

__all__ = ["record_parse", "record_resolution"]

# ============================================================================
# Prometheus Metrics Registration
# ============================================================================

# Counter: resolutions by kind and outcome (ok or error code)
_resolutions = Counter(
    "graphguard_resolutions_total",
    "Data reference resolutions by kind and outcome",
    ["kind", "outcome"],
)

# Counter: response parses by kind and outcome
_parses = Counter(
    "graphguard_parses_total",
    "Response parses by kind and outcome",
    ["kind", "outcome"],
)

# Histogram: resolution latency (milliseconds)
_resolution_latency = Histogram(
    "graphguard_resolution_ms",
    "Resolution latency in milliseconds",
    ["kind"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, float("inf")),
)


def _outcome(error: Optional[DataProtocolError]) -> str:
    return "ok" if error is None else error.error_code.value


def record_resolution(kind: str, elapsed_ms: float, error: Optional[DataProtocolError] = None) -> None:
    """Count one resolution; ``kind`` must already be a registered name or ``unknown``."""

    _resolutions.labels(kind=kind, outcome=_outcome(error)).inc()
    _resolution_latency.labels(kind=kind).observe(elapsed_ms)


def record_parse(kind: str, error: Optional[DataProtocolError] = None) -> None:
    _parses.labels(kind=kind, outcome=_outcome(error)).inc()
