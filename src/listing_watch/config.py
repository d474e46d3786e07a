"""Application configuration for listing-watch.

Loaded from an optional TOML file with ``[scraper]``, ``[breakers.<NAME>]``
and ``[retry.<category>]`` tables, then overridden by environment variables
(TARGET_URL, SCRAPE_INTERVAL_MS, CHROME_EXECUTABLE, HEADLESS). Partial
breaker/retry tables override individual preset fields.

Example:
    [scraper]
    target_url = "https://www.gate.io/p2p/buy/USDT-KES"
    scrape_interval_ms = 60000

    [breakers.BROWSER_LAUNCH]
    failure_threshold = 3

    [retry.network]
    max_attempts = 4
"""

from __future__ import annotations

import dataclasses
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

from .circuit_breaker_config import CIRCUIT_BREAKER_PRESETS, DEFAULT_CONFIG, CircuitBreakerConfig
from .retry_config import RETRY_PRESETS, OperationCategory, RetryConfig

logger = logging.getLogger(__name__)

DEFAULT_TARGET_URL = "https://www.gate.io/p2p/buy/USDT-KES"

# Matches common listing containers on marketplace pages
DEFAULT_CONTENT_SELECTOR = (
    'div[class*="list"], div[class*="item"], div[class*="card"], '
    'div[class*="merchant"], div[class*="trader"]'
)
DEFAULT_LISTING_SELECTOR = 'div[class*="item"], tr[class*="row"], div[class*="card"]'

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ScraperConfig:
    """Scrape target and browser settings."""

    target_url: str = DEFAULT_TARGET_URL
    scrape_interval_ms: int = 60000
    chrome_executable: str | None = None
    headless: bool = True
    navigation_timeout_ms: int = 30000
    content_timeout_ms: int = 15000
    content_selector: str = DEFAULT_CONTENT_SELECTOR
    listing_selector: str = DEFAULT_LISTING_SELECTOR
    scroll_passes: int = 5
    scroll_pause_ms: int = 400


@dataclass(frozen=True)
class AppConfig:
    """Complete configuration handed to the composition root.

    Attributes:
        scraper: Target and browser settings.
        breakers: Breaker name -> configuration.
        retry: Operation category -> retry configuration.
    """

    scraper: ScraperConfig = field(default_factory=ScraperConfig)
    breakers: dict[str, CircuitBreakerConfig] = field(
        default_factory=lambda: dict(CIRCUIT_BREAKER_PRESETS)
    )
    retry: dict[OperationCategory, RetryConfig] = field(
        default_factory=lambda: dict(RETRY_PRESETS)
    )


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Build the effective configuration.

    Args:
        path: Optional TOML file. None means presets plus environment only.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Parsed AppConfig.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: On invalid TOML or invalid values.
    """
    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as exc:
            msg = f"Invalid TOML in {path}: {exc}"
            raise ValueError(msg) from exc
        logger.info("Loaded configuration from %s", path)

    config = _parse_config(data)
    return _apply_env(config, os.environ if environ is None else environ)


def validate_config(config: AppConfig) -> None:
    """Check the settings a scrape run cannot work without.

    Raises:
        ValueError: If the target URL or interval is invalid.
    """
    parsed = urlparse(config.scraper.target_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        msg = f"Invalid target_url: {config.scraper.target_url!r}"
        raise ValueError(msg)
    if config.scraper.scrape_interval_ms <= 0:
        msg = f"scrape_interval_ms must be positive, got {config.scraper.scrape_interval_ms}"
        raise ValueError(msg)


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse raw TOML data into an AppConfig.

    Unknown scraper fields are ignored for forward compatibility.
    """
    scraper_data = _table(data, "scraper")
    known = {f.name for f in dataclasses.fields(ScraperConfig)}
    scraper = _build(ScraperConfig, {k: v for k, v in scraper_data.items() if k in known})

    breakers = dict(CIRCUIT_BREAKER_PRESETS)
    for name, overrides in _table(data, "breakers").items():
        if not isinstance(overrides, dict):
            msg = f"[breakers.{name}] section must be a table"
            raise ValueError(msg)
        base = breakers.get(name, DEFAULT_CONFIG)
        breakers[name] = _build(CircuitBreakerConfig, overrides, base=base)

    retry = dict(RETRY_PRESETS)
    for key, overrides in _table(data, "retry").items():
        if not isinstance(overrides, dict):
            msg = f"[retry.{key}] section must be a table"
            raise ValueError(msg)
        try:
            category = OperationCategory(key)
        except ValueError as exc:
            valid = ", ".join(c.value for c in OperationCategory)
            msg = f"Unknown retry category {key!r} (expected one of: {valid})"
            raise ValueError(msg) from exc
        retry[category] = _build(RetryConfig, overrides, base=retry[category])

    return AppConfig(scraper=scraper, breakers=breakers, retry=retry)


def _apply_env(config: AppConfig, environ: Mapping[str, str]) -> AppConfig:
    overrides: dict[str, Any] = {}
    if environ.get("TARGET_URL"):
        overrides["target_url"] = environ["TARGET_URL"]
    if environ.get("SCRAPE_INTERVAL_MS"):
        try:
            overrides["scrape_interval_ms"] = int(environ["SCRAPE_INTERVAL_MS"])
        except ValueError as exc:
            msg = f"SCRAPE_INTERVAL_MS must be an integer, got {environ['SCRAPE_INTERVAL_MS']!r}"
            raise ValueError(msg) from exc
    if environ.get("CHROME_EXECUTABLE"):
        overrides["chrome_executable"] = environ["CHROME_EXECUTABLE"]
    if environ.get("HEADLESS"):
        overrides["headless"] = _parse_bool("HEADLESS", environ["HEADLESS"])

    if not overrides:
        return config
    return dataclasses.replace(config, scraper=dataclasses.replace(config.scraper, **overrides))


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        msg = f"[{key}] section must be a table"
        raise ValueError(msg)
    return value


def _build(cls: type[Any], values: dict[str, Any], base: Any = None) -> Any:
    """Construct ``cls`` from ``values``, layered over ``base`` when given."""
    _check_types(cls, values)
    try:
        if base is not None:
            return dataclasses.replace(base, **values)
        return cls(**values)
    except TypeError as exc:
        msg = f"Invalid {cls.__name__} fields: {exc}"
        raise ValueError(msg) from exc


def _check_types(cls: type[Any], values: dict[str, Any]) -> None:
    """Reject TOML values whose type does not match the field annotation.

    Unknown keys are left for the constructor to reject.

    Raises:
        ValueError: If a value has the wrong type.
    """
    annotations = {f.name: f.type for f in dataclasses.fields(cls)}
    for key, value in values.items():
        annotation = annotations.get(key)
        if annotation is None or _matches_annotation(str(annotation), value):
            continue
        msg = f"{cls.__name__}.{key} must be {annotation}, got {value!r}"
        raise ValueError(msg)


def _matches_annotation(annotation: str, value: Any) -> bool:
    # bool is an int subclass; only bool fields accept it
    if annotation == "bool":
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if annotation == "int":
        return isinstance(value, int)
    if annotation == "float":
        return isinstance(value, (int, float))
    if annotation == "str":
        return isinstance(value, str)
    if annotation == "str | None":
        return value is None or isinstance(value, str)
    if annotation == "tuple[str, ...]":
        return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)
    return True


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean, got {raw!r}"
    raise ValueError(msg)
