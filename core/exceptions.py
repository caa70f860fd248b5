"""
Custom exceptions for the analytics export pipeline with structured error context.

Every error raised by the exporter carries a message, a context dictionary
and optionally the exception it wraps, so failures can be logged with enough
detail to re-run the affected export.

Exception Hierarchy:
    ExportException (base)
    ├── AuthError
    │   └── NotAuthenticatedError
    ├── InvalidInputError
    ├── MetadataError
    │   ├── DateRangeError
    │   └── IncompleteDataError
    ├── ApiError
    │   ├── RateLimitError
    │   └── ServerError
    ├── NetworkError
    ├── DataFormatError
    ├── SinkInitError
    ├── SinkWriteError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ExportException(Exception):
    """
    Base exception for all export-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (measure, dimension, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ExportException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts and connection resets
    - Rate limiting (HTTP 429)
    - Intermittent provider failures (HTTP 500)
    """
    pass


class NonRetryableError(ExportException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures
    - Invalid arguments
    - Undecodable provider payloads
    """
    pass


# ============================================================================
# Authentication and Input Errors
# ============================================================================

class AuthError(NonRetryableError):
    """Login failed or the provider rejected the credentials."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.status_code = status_code
        if status_code is not None:
            self.context["status_code"] = status_code


class NotAuthenticatedError(AuthError):
    """An authenticated call was attempted with an incomplete session."""
    pass


class InvalidInputError(NonRetryableError):
    """
    Exception raised for malformed arguments, e.g. a date window that does not
    parse or whose start falls after its end.
    """
    pass


# ============================================================================
# Metadata Errors
# ============================================================================

class MetadataError(ExportException):
    """Base exception for failures while resolving provider metadata."""
    pass


class DateRangeError(MetadataError):
    """
    Requested window falls outside the provider's published data range.

    Context should include:
        - data_start_date / data_end_date: Provider's valid range
        - start_date / end_date: Requested window
    """
    pass


class IncompleteDataError(MetadataError):
    """Requested window ends on the provider's most recent, incomplete day."""
    pass


# ============================================================================
# Provider API Errors
# ============================================================================

class ApiError(ExportException):
    """
    Exception raised when the analytics provider returns a non-success status.

    Attributes:
        status_code: HTTP status code, the only field used for retry decisions
        provider_message: Error payload returned by the provider
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        provider_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message, context, original_exception)
        self.status_code = status_code
        self.provider_message = provider_message
        self.context["status_code"] = status_code

    @classmethod
    def from_status(
        cls,
        message: str,
        status_code: int,
        provider_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> "ApiError":
        """Build the most specific ApiError subclass for a status code."""
        if status_code == 429:
            error_cls = RateLimitError
        elif status_code >= 500:
            error_cls = ServerError
        else:
            error_cls = ApiError
        return error_cls(
            message,
            status_code=status_code,
            provider_message=provider_message,
            context=context
        )


class RateLimitError(RetryableError, ApiError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""
    pass


class ServerError(RetryableError, ApiError):
    """Provider-side errors (HTTP 5xx)."""
    pass


class NetworkError(RetryableError):
    """Transport-level failures (timeouts, connection resets) that should be retried."""
    pass


class DataFormatError(NonRetryableError):
    """Provider returned a payload that could not be decoded."""
    pass


# ============================================================================
# Warehouse Errors
# ============================================================================

class SinkInitError(ExportException):
    """
    Exception raised when the warehouse sink cannot be initialized.

    Context should include:
        - backend: Warehouse backend name
        - target: Dataset or database the sink points at
    """
    pass


class SinkWriteError(ExportException):
    """
    Exception raised when writing a partition fails.

    Context should include:
        - table_name: Name of the target table
        - date: Partition date
    """
    pass
