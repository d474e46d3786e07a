"""Retry configuration for guarded pipeline operations.

Defines the immutable RetryConfig record and one preset per operation
category. Network operations tolerate the most attempts and the largest
delay ceiling; browser launch uses fewer attempts with a steeper multiplier.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OperationCategory(Enum):
    """Operation categories that carry their own retry tunables."""

    NETWORK = "network"  # page loads, navigation
    ELEMENT_WAIT = "element_wait"  # waiting for dynamic content
    DATA_EXTRACTION = "data_extraction"  # pulling records out of the DOM
    BROWSER_LAUNCH = "browser_launch"  # starting the browser process


@dataclass(frozen=True)
class RetryConfig:
    """Tunables for one retried operation.

    Attributes:
        max_attempts: Total invocations allowed, including the first.
        base_delay_ms: Delay before the first retry.
        max_delay_ms: Ceiling for any single delay.
        backoff_multiplier: Growth factor between consecutive delays.
        jitter: If True, perturb each delay uniformly by +/-10%.
        retryable_error_matchers: Substrings matched against an error's class
            name and message when the error declares no disposition itself.
    """

    max_attempts: int = 3
    base_delay_ms: float = 1000
    max_delay_ms: float = 30000
    backoff_multiplier: float = 2.0
    jitter: bool = True
    retryable_error_matchers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= base_delay_ms "
                f"({self.base_delay_ms})"
            )
        if self.backoff_multiplier <= 1:
            raise ValueError(
                f"backoff_multiplier must be > 1, got {self.backoff_multiplier}"
            )
        # Lists from TOML become tuples so the record stays hashable
        object.__setattr__(
            self, "retryable_error_matchers", tuple(self.retryable_error_matchers)
        )


NETWORK_RETRY = RetryConfig(
    max_attempts=5,
    base_delay_ms=1000,
    max_delay_ms=30000,
    backoff_multiplier=2.0,
    jitter=True,
    retryable_error_matchers=(
        "TimeoutError",
        "ProtocolError",
        "NetworkError",
        "TargetClosedError",
        "ERR_NETWORK_CHANGED",
        "ERR_INTERNET_DISCONNECTED",
        "ERR_CONNECTION_RESET",
        "ERR_CONNECTION_REFUSED",
    ),
)

ELEMENT_WAIT_RETRY = RetryConfig(
    max_attempts=3,
    base_delay_ms=2000,
    max_delay_ms=10000,
    backoff_multiplier=1.5,
    jitter=True,
    retryable_error_matchers=(
        "TimeoutError",
        "ElementNotFoundError",
        "WaitForSelectorTimeoutError",
    ),
)

DATA_EXTRACTION_RETRY = RetryConfig(
    max_attempts=4,
    base_delay_ms=1500,
    max_delay_ms=15000,
    backoff_multiplier=1.8,
    jitter=True,
    retryable_error_matchers=(
        "ExtractionError",
        "NoDataFoundError",
        "InvalidDataError",
    ),
)

BROWSER_LAUNCH_RETRY = RetryConfig(
    max_attempts=3,
    base_delay_ms=3000,
    max_delay_ms=20000,
    backoff_multiplier=2.5,
    jitter=True,
    retryable_error_matchers=(
        "BrowserLaunchError",
        "ProtocolError",
        "TargetClosedError",
    ),
)

RETRY_PRESETS: dict[OperationCategory, RetryConfig] = {
    OperationCategory.NETWORK: NETWORK_RETRY,
    OperationCategory.ELEMENT_WAIT: ELEMENT_WAIT_RETRY,
    OperationCategory.DATA_EXTRACTION: DATA_EXTRACTION_RETRY,
    OperationCategory.BROWSER_LAUNCH: BROWSER_LAUNCH_RETRY,
}
