"""
Custom exceptions for the readiness engine.

This module defines the error taxonomy used across the engine. Each
exception includes:
- A descriptive message
- An error code for structured reporting
- Optional details for debugging

Provider failures and missing history are expected conditions. They are
raised at the lowest layer and absorbed at component boundaries, so only
a total absence of usable signal reaches the caller.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes for consistent error reporting."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Provider errors
    SOURCE_UNAVAILABLE = "SOURCE_UNAVAILABLE"
    SOURCE_UNAUTHORIZED = "SOURCE_UNAUTHORIZED"
    SOURCE_RATE_LIMITED = "SOURCE_RATE_LIMITED"

    # Data errors
    NO_SCORE_AVAILABLE = "NO_SCORE_AVAILABLE"

    # Scheduling errors
    CALCULATION_TIMEOUT = "CALCULATION_TIMEOUT"


class ReadinessError(Exception):
    """
    Base exception for all readiness engine errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        """Whether the same call may succeed if attempted again later."""
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging or display."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


class ConfigurationError(ReadinessError):
    """Raised when settings cannot be clamped to a usable value."""

    def __init__(self, message: str, setting: Optional[str] = None) -> None:
        details = {"setting": setting} if setting else None
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


# ============================================================================
# Provider Errors
# ============================================================================

class SourceUnavailableError(ReadinessError):
    """A data provider is unreachable or not yet queryable."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        code: ErrorCode = ErrorCode.SOURCE_UNAVAILABLE,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.provider = provider
        error_details = details or {}
        if provider:
            error_details["provider"] = provider
        super().__init__(message, code, error_details)

    @property
    def retryable(self) -> bool:
        return True


# ============================================================================
# Data Errors
# ============================================================================

class NoScoreAvailableError(ReadinessError):
    """Every input for a score is missing."""

    def __init__(self, score_type: str) -> None:
        super().__init__(
            f"No usable signal for {score_type} score",
            ErrorCode.NO_SCORE_AVAILABLE,
            {"score_type": score_type},
        )
        self.score_type = score_type


# ============================================================================
# Scheduling Errors
# ============================================================================

class CalculationTimeoutError(ReadinessError):
    """A calculation pass exceeded its deadline."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Calculation did not finish within {timeout_seconds}s",
            ErrorCode.CALCULATION_TIMEOUT,
            {"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds

    @property
    def retryable(self) -> bool:
        return True
