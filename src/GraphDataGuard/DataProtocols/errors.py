# === NAVMAP v1 ===
# {
#   "module": "GraphDataGuard.DataProtocols.errors",
#   "purpose": "Error catalog and exception hierarchy for protocol resolution and response parsing",
#   "sections": [
#     {"id": "codes", "name": "Error Codes", "anchor": "COD", "kind": "api"},
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "resolution", "name": "Resolution Errors", "anchor": "RES", "kind": "api"},
#     {"id": "responses", "name": "Response Errors", "anchor": "RSP", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Error codes and exceptions shared by the resolver and the response parser.

Failures fall into two families: resolution errors, raised while turning a
graph data reference into a URL, and malformed-response errors, raised while
checking what the transport brought back.  Every exception carries a canonical
:class:`ErrorCode` plus a scrubbed ``details`` mapping so callers can react to
categories without parsing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

# ============================================================================
# Error Codes (Canonical Catalog)
# ============================================================================


class ErrorCode(str, Enum):
    """Canonical error codes for rejected requests and responses."""

    # Resolution
    E_UNKNOWN_SCHEME = "E_UNKNOWN_SCHEME"
    E_UNTRUSTED_SCHEME = "E_UNTRUSTED_SCHEME"
    E_HOST_DENY = "E_HOST_DENY"
    E_HOST_MISSING = "E_HOST_MISSING"
    E_PROTOCOL_DISABLED = "E_PROTOCOL_DISABLED"
    E_PARAM_MISSING = "E_PARAM_MISSING"
    E_PARAM_TYPE = "E_PARAM_TYPE"
    E_PARAM_FORMAT = "E_PARAM_FORMAT"

    # Responses
    E_RESPONSE_MALFORMED = "E_RESPONSE_MALFORMED"
    E_UPSTREAM_API = "E_UPSTREAM_API"
    E_CONTENT_MISSING = "E_CONTENT_MISSING"
    E_BINDINGS_MISSING = "E_BINDINGS_MISSING"

    # Configuration
    E_CONFIG_INVALID = "E_CONFIG_INVALID"


# ============================================================================
# Base Exceptions
# ============================================================================


class DataProtocolError(Exception):
    """Base exception for every resolution, parsing, or configuration failure."""

    error_code: ErrorCode = ErrorCode.E_RESPONSE_MALFORMED

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[ErrorCode] = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable message naming the offending kind/parameter
            details: Additional context; sensitive keys are dropped
            error_code: Override for the class-level error code
        """
        if error_code is not None:
            self.error_code = error_code
        self.message = message
        self.details = _scrub_details(details or {})
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly representation used by the CLI and logs."""
        return {
            "error_code": self.error_code.value,
            "error": type(self).__name__,
            "message": self.message,
            "details": dict(self.details),
        }


class ConfigurationError(DataProtocolError):
    """Raised when engine configuration is missing, unreadable, or invalid."""

    error_code = ErrorCode.E_CONFIG_INVALID


# ============================================================================
# Resolution Errors
# ============================================================================


class ResolutionError(DataProtocolError):
    """Raised when a data reference cannot be turned into a safe URL."""


class UnknownSchemeError(ResolutionError):
    """The declared kind has no registered scheme definition."""

    error_code = ErrorCode.E_UNKNOWN_SCHEME


class UntrustedSchemeError(ResolutionError):
    """The kind is only available to engines running in trusted mode."""

    error_code = ErrorCode.E_UNTRUSTED_SCHEME


class UntrustedHostError(ResolutionError):
    """The host is not present in any allowlist applicable to the kind."""

    error_code = ErrorCode.E_HOST_DENY


class MissingHostError(ResolutionError):
    """No explicit host was given and no default host is available."""

    error_code = ErrorCode.E_HOST_MISSING


class DisabledProtocolError(ResolutionError):
    """The dedicated allowlist family required by the kind is not configured."""

    error_code = ErrorCode.E_PROTOCOL_DISABLED


class ParameterError(ResolutionError):
    """Base class for parameter validation failures."""

    error_code = ErrorCode.E_PARAM_FORMAT


class MissingRequiredParameterError(ParameterError):
    error_code = ErrorCode.E_PARAM_MISSING


class InvalidParameterTypeError(ParameterError):
    error_code = ErrorCode.E_PARAM_TYPE


class InvalidParameterFormatError(ParameterError):
    error_code = ErrorCode.E_PARAM_FORMAT


# ============================================================================
# Response Errors
# ============================================================================


class MalformedResponseError(DataProtocolError):
    """Raised when an upstream payload does not match its kind's contract."""

    error_code = ErrorCode.E_RESPONSE_MALFORMED


class UpstreamAPIError(MalformedResponseError):
    """The upstream API reported an error in an otherwise well-formed payload."""

    error_code = ErrorCode.E_UPSTREAM_API


class ContentNotAvailableError(MalformedResponseError):
    """Raw page content could not be located inside the API payload."""

    error_code = ErrorCode.E_CONTENT_MISSING


class MissingBindingsError(MalformedResponseError):
    """A SPARQL result lacks the ``results.bindings`` list."""

    error_code = ErrorCode.E_BINDINGS_MISSING


# ============================================================================
# Helpers
# ============================================================================

_SENSITIVE_KEYS = ("password", "token", "secret", "auth", "cookie")


def _scrub_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys that look like credentials from an error detail mapping."""
    return {
        key: value
        for key, value in details.items()
        if not any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS)
    }


__all__ = [
    "ErrorCode",
    "DataProtocolError",
    "ConfigurationError",
    "ResolutionError",
    "UnknownSchemeError",
    "UntrustedSchemeError",
    "UntrustedHostError",
    "MissingHostError",
    "DisabledProtocolError",
    "ParameterError",
    "MissingRequiredParameterError",
    "InvalidParameterTypeError",
    "InvalidParameterFormatError",
    "MalformedResponseError",
    "UpstreamAPIError",
    "ContentNotAvailableError",
    "MissingBindingsError",
]
