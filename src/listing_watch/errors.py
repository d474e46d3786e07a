"""Typed failure classes for the scraping pipeline.

Every failure that crosses a guarded stage is given exactly one ErrorKind
and a retry disposition. Errors raised by third-party layers (Playwright,
asyncio) carry no explicit disposition; they participate through the
substring matchers of the active RetryConfig instead.

Classification priority (see is_retryable_error):
1. An explicit ``retryable`` attribute on the error.
2. A substring match of the error's class name or message against
   ``retry_config.retryable_error_matchers``.
3. Non-retryable.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .retry_config import RetryConfig


class ErrorKind(Enum):
    """Retry disposition categories for pipeline failures."""

    RETRYABLE = "retryable"  # generic transient failure
    NON_RETRYABLE = "non_retryable"  # generic permanent failure
    EXTRACTION = "extraction"  # extraction step failed
    NO_DATA_FOUND = "no_data_found"  # extraction returned nothing
    BROWSER_LAUNCH = "browser_launch"  # browser process did not start
    CIRCUIT_BREAKER_OPEN = "circuit_breaker_open"  # breaker already decided


class ScraperError(Exception):
    """Base class for all typed pipeline failures.

    Attributes:
        kind: The ErrorKind of this failure.
        retryable: Explicit retry disposition declared by the emitter.
        cause: The underlying exception, if any.
    """

    kind: ErrorKind = ErrorKind.NON_RETRYABLE
    retryable: bool = False

    def __init__(self, message: str = "", cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message or self.kind.value)


class RetryableError(ScraperError):
    """Transient failure; re-attempting may succeed."""

    kind = ErrorKind.RETRYABLE
    retryable = True


class NonRetryableError(ScraperError):
    """Permanent failure (auth, validation); never retried locally."""

    kind = ErrorKind.NON_RETRYABLE
    retryable = False


class ExtractionError(RetryableError):
    """Raised when record extraction from the page fails."""

    kind = ErrorKind.EXTRACTION


class NoDataFoundError(RetryableError):
    """Raised when extraction succeeds but finds no records."""

    kind = ErrorKind.NO_DATA_FOUND


class BrowserLaunchError(RetryableError):
    """Raised when the browser process cannot be started."""

    kind = ErrorKind.BROWSER_LAUNCH


class CircuitBreakerOpenError(ScraperError):
    """Raised when a breaker rejects a call; the operation was never invoked."""

    kind = ErrorKind.CIRCUIT_BREAKER_OPEN
    retryable = False

    def __init__(self, name: str, time_until_retry_ms: float, message: str = "") -> None:
        self.name = name
        self.time_until_retry_ms = time_until_retry_ms
        super().__init__(
            message
            or f"Circuit breaker '{name}' is OPEN. Retry in {time_until_retry_ms / 1000:.1f}s"
        )


class RetryExhaustedError(ScraperError):
    """Raised when every attempt of a retried operation failed."""

    kind = ErrorKind.NON_RETRYABLE
    retryable = False

    def __init__(self, operation_type: str, attempts: int, last_error: BaseException) -> None:
        self.operation_type = operation_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation_type} failed after {attempts} attempts: {last_error}",
            cause=last_error,
        )


class StageBusyError(ScraperError):
    """Raised when a stage is entered while a previous invocation is in flight."""

    kind = ErrorKind.NON_RETRYABLE
    retryable = False


def is_retryable_error(error: BaseException, retry_config: RetryConfig) -> bool:
    """Decide whether ``error`` may be retried under ``retry_config``.

    Args:
        error: The exception raised by the operation.
        retry_config: Active retry configuration, providing the matchers.

    Returns:
        True if the error may be retried.
    """
    explicit = getattr(error, "retryable", None)
    if isinstance(explicit, bool):
        return explicit

    name = type(error).__name__
    message = str(error)
    for matcher in retry_config.retryable_error_matchers:
        if matcher in name or matcher in message:
            return True

    return False


def error_kind(error: BaseException, retry_config: RetryConfig) -> ErrorKind:
    """Map any exception onto exactly one ErrorKind."""
    if isinstance(error, ScraperError):
        return error.kind
    if is_retryable_error(error, retry_config):
        return ErrorKind.RETRYABLE
    return ErrorKind.NON_RETRYABLE


def summarize_error(error: BaseException) -> str:
    """Short one-line description for log messages."""
    message = str(error).strip().splitlines()
    first = message[0] if message else ""
    return f"{type(error).__name__}: {first}" if first else type(error).__name__
