"""CLI for listing-watch.

Provides commands for scheduled scraping, one-shot cycles and inspecting
the effective breaker and retry presets.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

import click

from .app import Application, build_application
from .config import AppConfig, load_config, validate_config
from .health import summarize_circuits
from .models import CycleResult

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """Listing Watch - fault-tolerant marketplace listing scraper."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.option("--config", "config_path", type=click.Path(), help="TOML config file")
@click.option("--url", help="Override target URL")
@click.option("--interval-ms", type=int, default=None, help="Override scrape interval (ms)")
def run(config_path: str | None, url: str | None, interval_ms: int | None) -> None:
    """Scrape on a fixed interval until interrupted."""
    config = _resolve_config(config_path, url=url, interval_ms=interval_ms)
    app = build_application(config)
    asyncio.run(_run_async(app))


async def _run_async(app: Application) -> None:
    """Async implementation of run command."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, stop, sig)
        except NotImplementedError:
            # Windows event loops lack add_signal_handler; Ctrl+C still raises
            pass

    await app.scheduler.run_forever(stop)


def _request_stop(stop: asyncio.Event, sig: signal.Signals) -> None:
    logger.info("Received %s, stopping after the current cycle", sig.name)
    stop.set()


@cli.command()
@click.option("--config", "config_path", type=click.Path(), help="TOML config file")
@click.option("--url", help="Override target URL")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def once(config_path: str | None, url: str | None, as_json: bool) -> None:
    """Run a single guarded scrape cycle."""
    config = _resolve_config(config_path, url=url)
    app = build_application(config)
    result = asyncio.run(_once_async(app))

    if as_json:
        payload = result.to_dict()
        payload["health"] = summarize_circuits(app.registry).to_dict()
        click.echo(json.dumps(payload, indent=2, default=str))
    else:
        _print_cycle(result, app)

    if not result.success:
        sys.exit(1)


async def _once_async(app: Application) -> CycleResult:
    """Async implementation of once command."""
    result = await app.scheduler.run_cycle_safely()
    if result is None:
        msg = "A scrape cycle is already running; no cycle was started"
        raise click.ClickException(msg)
    return result


@cli.command()
@click.option("--config", "config_path", type=click.Path(), help="TOML config file")
def presets(config_path: str | None) -> None:
    """Show effective circuit breaker and retry presets."""
    config = _resolve_config(config_path)

    click.echo("\n" + "=" * 60)
    click.echo("Circuit Breaker Presets")
    click.echo("=" * 60)
    for name, breaker in sorted(config.breakers.items()):
        click.echo(
            f"  {name}: threshold={breaker.failure_threshold}, "
            f"recovery={breaker.recovery_timeout_ms / 1000:.0f}s, "
            f"successes={breaker.success_threshold}, "
            f"window={breaker.monitor_window_ms / 1000:.0f}s"
        )

    click.echo("\n" + "=" * 60)
    click.echo("Retry Presets")
    click.echo("=" * 60)
    for category, retry in config.retry.items():
        click.echo(
            f"  {category.value}: attempts={retry.max_attempts}, "
            f"base={retry.base_delay_ms:.0f}ms, max={retry.max_delay_ms:.0f}ms, "
            f"x{retry.backoff_multiplier}, jitter={'on' if retry.jitter else 'off'}"
        )
        if retry.retryable_error_matchers:
            click.echo(f"    retry on: {', '.join(retry.retryable_error_matchers)}")


def _resolve_config(
    config_path: str | None,
    url: str | None = None,
    interval_ms: int | None = None,
) -> AppConfig:
    """Load, override and validate configuration, exiting on error."""
    try:
        config = load_config(Path(config_path) if config_path else None)
        overrides: dict[str, Any] = {}
        if url:
            overrides["target_url"] = url
        if interval_ms is not None:
            overrides["scrape_interval_ms"] = interval_ms
        if overrides:
            config = dataclasses.replace(
                config, scraper=dataclasses.replace(config.scraper, **overrides)
            )
        validate_config(config)
    except (FileNotFoundError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    return config


def _print_cycle(result: CycleResult, app: Application) -> None:
    """Print a human-readable cycle summary."""
    click.echo("\n" + "=" * 60)
    click.echo("Scrape Cycle")
    click.echo("=" * 60)
    if result.success:
        click.echo(f"  Records: {len(result.records)}")
    else:
        stage = result.failed_stage.value if result.failed_stage else "unknown"
        click.echo(f"  FAILED at {stage}: {result.error}")
    click.echo(f"  Duration: {result.duration_ms / 1000:.1f}s")

    health = summarize_circuits(app.registry)
    click.echo(f"\nCircuits ({health.status.value}):")
    state_icons = {"closed": "[OK]", "open": "[X]", "half_open": "[~]"}
    for name, stats in sorted(result.circuit_stats.items()):
        click.echo(
            f"  {state_icons.get(stats.state.value, '?')} {name}: {stats.state.value} "
            f"(recent_failures={stats.recent_failures})"
        )


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
