#!/usr/bin/env python3
"""Main CLI entry point for browser-console-tap using Typer.

Loads configuration from flags, environment and config file, then runs a
single capture through TapRunner and exits with its exit code.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any, Dict, Optional

import typer

from .. import __version__
from .config import ConfigurationError, TapConfig, load_configuration, validate_url
from .render import ConsoleRenderer
from .runner import ExitCode, TapRunner

HEADERS_EXAMPLE = '--headers \'{"Authorization": "Bearer token", "X-Custom": "value"}\''

app = typer.Typer(
    name="browser-console-tap",
    help="Capture browser console logs from a URL after a specified delay",
    add_completion=False,
)


def version_callback(value: bool):
    """Show version information."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _config_error(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    if message.startswith("Invalid headers"):
        typer.secho(f"Example: {HEADERS_EXAMPLE}", fg=typer.colors.BRIGHT_BLACK, err=True)
    raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)


def build_cli_overrides(**flags: Any) -> Dict[str, Any]:
    """Nest explicitly provided flags by config section; None means not provided."""
    sections = {
        "headless": "browser",
        "user_agent": "browser",
        "extra_headers": "browser",
        "delay_ms": "capture",
        "timeout_ms": "capture",
        "track_network": "capture",
        "network_verbose": "capture",
        "stale_threshold_ms": "capture",
        "max_value_length": "capture",
        "fail_status": "capture",
        "verbose": "output",
        "json_output": "output",
        "color": "output",
    }
    overrides: Dict[str, Dict[str, Any]] = {}
    for name, value in flags.items():
        if value is not None:
            overrides.setdefault(sections[name], {})[name] = value
    return overrides


@app.command()
def tap(
    url: Annotated[
        Optional[str],
        typer.Argument(help="URL to capture console logs from", show_default=False)
    ] = None,

    delay: Annotated[
        Optional[str],
        typer.Option("--delay", "-d", metavar="MS", help="Delay in milliseconds after page load [default: 3000]")
    ] = None,

    timeout: Annotated[
        Optional[str],
        typer.Option("--timeout", "-t", metavar="MS", help="Page load timeout in milliseconds [default: 30000]")
    ] = None,

    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging", show_default=False)
    ] = False,

    no_headless: Annotated[
        bool,
        typer.Option("--no-headless", help="Run browser in non-headless mode (for debugging)", show_default=False)
    ] = False,

    user_agent: Annotated[
        Optional[str],
        typer.Option("--user-agent", help="Custom user agent string")
    ] = None,

    headers: Annotated[
        Optional[str],
        typer.Option("--headers", help=f"Custom HTTP headers in JSON format (e.g. {HEADERS_EXAMPLE})")
    ] = None,

    network: Annotated[
        bool,
        typer.Option("--network", help="Track and display network requests and responses", show_default=False)
    ] = False,

    network_verbose: Annotated[
        bool,
        typer.Option("--network-verbose", help="Track network requests with detailed headers (implies --network)", show_default=False)
    ] = False,

    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", help="Path to a YAML configuration file")
    ] = None,

    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the capture result as JSON", show_default=False)
    ] = False,

    stale_ms: Annotated[
        Optional[int],
        typer.Option("--stale-ms", help="Pending age in milliseconds reported as stuck [default: 5000]")
    ] = None,

    fail_status: Annotated[
        Optional[int],
        typer.Option("--fail-status", help="Lowest HTTP status counted as failed [default: 400]")
    ] = None,

    max_length: Annotated[
        Optional[int],
        typer.Option("--max-length", help="Maximum length of displayed values [default: 512]")
    ] = None,

    version: Annotated[
        bool,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit")
    ] = False,
):
    """
    Capture browser console logs from a URL after a specified delay.

    Examples:

        # Console output for five seconds after load
        browser-console-tap https://example.com --delay 5000

        # Network tracking with detailed headers
        browser-console-tap https://example.com --network-verbose

        # Authenticated page
        browser-console-tap https://example.com --headers '{"Authorization": "Bearer token"}'
    """
    try:
        url = validate_url(url)
        config: TapConfig = load_configuration(
            config_file=config_file,
            cli_overrides=build_cli_overrides(
                headless=False if no_headless else None,
                user_agent=user_agent,
                extra_headers=headers,
                delay_ms=delay,
                timeout_ms=timeout,
                track_network=network or None,
                network_verbose=network_verbose or None,
                stale_threshold_ms=stale_ms,
                max_value_length=max_length,
                fail_status=fail_status,
                verbose=verbose or None,
                json_output=json_output or None,
            ),
        )
    except ConfigurationError as e:
        _config_error(str(e))

    configure_logging(config.output.verbose)
    logging.getLogger(__name__).debug(f"Configuration loaded from: {' -> '.join(config.loaded_from)}")

    renderer = ConsoleRenderer(
        color=config.output.color,
        verbose=config.output.verbose,
        track_network=config.capture.track_network,
        network_verbose=config.capture.network_verbose,
        max_value_length=config.capture.max_value_length,
    )
    runner = TapRunner(url, config, renderer=renderer)

    try:
        exit_code = asyncio.run(runner.run())
    except KeyboardInterrupt:
        renderer.interrupted()
        raise typer.Exit(code=ExitCode.INTERRUPTED.value)

    raise typer.Exit(code=exit_code.value)


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
