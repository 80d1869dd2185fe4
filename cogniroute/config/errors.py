"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from cogniroute.config.errors import ErrorCode, ProviderError

    raise ProviderError("Backend returned 503", agent_id="claude-analyst")
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Request validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SECURITY_VIOLATION = "SECURITY_VIOLATION"

    # Backend model errors
    PROVIDER_FAILED = "PROVIDER_FAILED"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    PROVIDER_RATE_LIMITED = "PROVIDER_RATE_LIMITED"
    PROVIDER_INVALID_RESPONSE = "PROVIDER_INVALID_RESPONSE"

    # Cache errors
    CACHE_FAILED = "CACHE_FAILED"
    CACHE_DIMENSION_MISMATCH = "CACHE_DIMENSION_MISMATCH"

    # Orchestration errors
    TIMEOUT = "TIMEOUT"
    NO_CONCLUSION = "NO_CONCLUSION"
    UNKNOWN_AGENT = "UNKNOWN_AGENT"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CogniRouteError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(CogniRouteError):
    """Malformed request or guardrail violation. Never retried."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ) -> None:
        super().__init__(code, message, details)


class ProviderError(CogniRouteError):
    """Backend model call failed."""

    def __init__(
        self,
        message: str,
        agent_id: str | None = None,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.PROVIDER_FAILED,
    ) -> None:
        self.agent_id = agent_id
        details = dict(details or {})
        if agent_id:
            details.setdefault("agent_id", agent_id)
        super().__init__(code, message, details)


class CacheError(CogniRouteError):
    """Embedding or storage failure inside the semantic cache."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.CACHE_FAILED,
    ) -> None:
        super().__init__(code, message, details)


class OrchestrationTimeoutError(CogniRouteError, TimeoutError):
    """Global wall-clock budget exceeded."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.TIMEOUT, message, details)


class CompositionError(CogniRouteError):
    """Reasoning or decomposition produced nothing to conclude from."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.NO_CONCLUSION, message, details)
