"""Public API for the GraphDataGuard data protocol engine.

This facade exposes the resolver that turns graph data references into
allowlisted request URLs, the response normalizer paired with it, and the
configuration and error types callers need to drive both.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any, Dict, Tuple

__version__ = "0.1.0"

_EXPORT_MAP: Dict[str, Tuple[str, str]] = {
    "ProtocolEngine": (".engine", "ProtocolEngine"),
    "DataLoader": (".loader", "DataLoader"),
    "RequestDescriptor": (".descriptors", "RequestDescriptor"),
    "SanitizedURL": (".descriptors", "SanitizedURL"),
    "descriptor_from_mapping": (".descriptors", "descriptor_from_mapping"),
    "DomainMatcher": (".allowlist", "DomainMatcher"),
    "SchemeDefinition": (".schemes", "SchemeDefinition"),
    "EngineSettings": (".settings", "EngineSettings"),
    "load_settings": (".settings", "load_settings"),
    "setup_logging": (".logging_utils", "setup_logging"),
    "parse_url": (".urls", "parse_url"),
    "format_url": (".urls", "format_url"),
    "DataProtocolError": (".errors", "DataProtocolError"),
    "ConfigurationError": (".errors", "ConfigurationError"),
    "ResolutionError": (".errors", "ResolutionError"),
    "UnknownSchemeError": (".errors", "UnknownSchemeError"),
    "UntrustedSchemeError": (".errors", "UntrustedSchemeError"),
    "UntrustedHostError": (".errors", "UntrustedHostError"),
    "MissingHostError": (".errors", "MissingHostError"),
    "DisabledProtocolError": (".errors", "DisabledProtocolError"),
    "ParameterError": (".errors", "ParameterError"),
    "MissingRequiredParameterError": (".errors", "MissingRequiredParameterError"),
    "InvalidParameterTypeError": (".errors", "InvalidParameterTypeError"),
    "InvalidParameterFormatError": (".errors", "InvalidParameterFormatError"),
    "MalformedResponseError": (".errors", "MalformedResponseError"),
    "UpstreamAPIError": (".errors", "UpstreamAPIError"),
    "ContentNotAvailableError": (".errors", "ContentNotAvailableError"),
    "MissingBindingsError": (".errors", "MissingBindingsError"),
}

__all__ = [*_EXPORT_MAP, "__version__"]

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .descriptors import RequestDescriptor, SanitizedURL, descriptor_from_mapping
    from .engine import ProtocolEngine
    from .errors import DataProtocolError
    from .loader import DataLoader
    from .settings import EngineSettings, load_settings


def __getattr__(name: str) -> Any:
    """Lazily import exports so the CLI and metrics load only when used."""

    target = _EXPORT_MAP.get(name)
    if target is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    module = import_module(target[0], __name__)
    value = getattr(module, target[1])
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))
