"""Listing Watch.

Fault-tolerant marketplace listing scraper. Every browser-touching stage
runs behind a per-resource circuit breaker wrapped around a retry
controller with exponential backoff and a typed error taxonomy.
"""

from __future__ import annotations

from .app import Application, build_application
from .circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, CircuitStats, FailureRecord
from .circuit_breaker_config import (
    CIRCUIT_BREAKER_PRESETS,
    CircuitBreakerConfig,
    CircuitState,
)
from .config import AppConfig, ScraperConfig, load_config, validate_config
from .errors import (
    BrowserLaunchError,
    CircuitBreakerOpenError,
    ErrorKind,
    ExtractionError,
    NoDataFoundError,
    NonRetryableError,
    RetryableError,
    RetryExhaustedError,
    ScraperError,
    StageBusyError,
    error_kind,
    is_retryable_error,
)
from .health import CircuitHealthStatus, HealthReport, summarize_circuits
from .models import STAGE_BINDINGS, CycleResult, Stage, StageBinding
from .pipeline import ScrapePipeline
from .retry import RetryController
from .retry_config import RETRY_PRESETS, OperationCategory, RetryConfig
from .scheduler import ScrapeScheduler
from .stage_runner import StageRunner

__all__ = [
    # Application
    "Application",
    "build_application",
    # Errors
    "ErrorKind",
    "ScraperError",
    "RetryableError",
    "NonRetryableError",
    "ExtractionError",
    "NoDataFoundError",
    "BrowserLaunchError",
    "CircuitBreakerOpenError",
    "RetryExhaustedError",
    "StageBusyError",
    "is_retryable_error",
    "error_kind",
    # Retry
    "RetryController",
    "RetryConfig",
    "OperationCategory",
    "RETRY_PRESETS",
    # Circuit breakers
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    "CircuitStats",
    "FailureRecord",
    "CIRCUIT_BREAKER_PRESETS",
    # Pipeline
    "Stage",
    "StageBinding",
    "STAGE_BINDINGS",
    "StageRunner",
    "ScrapePipeline",
    "ScrapeScheduler",
    "CycleResult",
    # Config
    "AppConfig",
    "ScraperConfig",
    "load_config",
    "validate_config",
    # Health
    "HealthReport",
    "CircuitHealthStatus",
    "summarize_circuits",
]
