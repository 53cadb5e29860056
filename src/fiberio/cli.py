"""fiberio CLI - run fiber scripts on the cooperative scheduler.

Commands:
    run       Run a script's entry point as the root fiber
    validate  Validate a runtime configuration file
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from fiberio import __version__
from fiberio.core.config import LogConfig, RuntimeConfig
from fiberio.core.errors import (
    ConfigError,
    DeadlockError,
    ScriptLoadError,
    StepLimitExceededError,
    UnhandledFiberFailure,
)
from fiberio.core.logging import configure_logging, get_logger
from fiberio.io.http import HttpFetchProvider
from fiberio.loader import load_entry
from fiberio.runtime.scheduler import Scheduler

logger = get_logger("cli")

app = typer.Typer(
    name="fiberio",
    help="Run generator fibers on a single-threaded cooperative scheduler",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"fiberio v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Print the fiberio version and exit",
    ),
) -> None:
    """fiberio - cooperative fibers with sleep, fork, fetch and wait."""


def _load_config(config_file: Path | None) -> RuntimeConfig:
    if config_file is None:
        return RuntimeConfig()
    try:
        return RuntimeConfig.from_yaml(config_file)
    except ConfigError as e:
        err_console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1) from None


def _apply_log_overrides(
    log: LogConfig,
    level: str | None,
    log_format: str | None,
    log_file: Path | None,
) -> LogConfig:
    updates: dict[str, object] = {}
    if level:
        updates["level"] = level.upper()
    if log_format:
        updates["format"] = log_format
    if log_file:
        updates["file_path"] = log_file
    if not updates:
        return log
    try:
        return LogConfig.model_validate({**log.model_dump(), **updates})
    except ValueError as e:
        err_console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


@app.command()
def run(
    script: Path = typer.Argument(
        ...,
        help="Python file defining the entry point",
        exists=True,
        readable=True,
        dir_okay=False,
    ),
    entry: str = typer.Option(
        "main",
        "--entry",
        "-e",
        help="Name of the entry point function in the script",
    ),
    config_file: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Runtime configuration YAML file",
            envvar="FIBERIO_CONFIG",
        ),
    ] = None,
    virtual_clock: bool = typer.Option(
        False,
        "--virtual-clock",
        help="Use simulated time: sleeps complete instantly, in order",
    ),
    max_steps: int | None = typer.Option(
        None,
        "--max-steps",
        min=1,
        help="Abort if the run has not drained after this many fiber steps",
    ),
    show_result: bool = typer.Option(
        False,
        "--show-result",
        help="Print the root fiber's return value",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            help="Minimum log level; DEBUG traces every fiber step",
            envvar="FIBERIO_LOG_LEVEL",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            help="console, json, or both (both needs --log-file)",
            envvar="FIBERIO_LOG_FORMAT",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            help="Write JSON log entries to this file",
            envvar="FIBERIO_LOG_FILE",
        ),
    ] = None,
) -> None:
    """Run a script's entry point as the root fiber until all fibers finish."""
    config = _load_config(config_file)
    log = _apply_log_overrides(config.log, log_level, log_format, log_file)
    configure_logging(
        level=log.level,
        format=log.format,
        file_path=log.file_path,
        max_file_size_mb=log.max_file_size_mb,
        backup_count=log.backup_count,
        include_timestamps=log.include_timestamps,
        include_context=log.include_context,
    )

    overrides: dict[str, object] = {}
    if virtual_clock:
        overrides["clock"] = "virtual"
    if max_steps is not None:
        overrides["max_steps"] = max_steps
    if overrides:
        config = config.model_copy(update=overrides)

    try:
        entry_point = load_entry(script, entry)
    except ScriptLoadError as e:
        err_console.print(f"[red]Cannot load script:[/red] {e}")
        raise typer.Exit(1) from None

    logger.info("run_starting", script=str(script), entry=entry, clock=config.clock)
    with HttpFetchProvider(config.fetch) as provider:
        scheduler = Scheduler.from_config(config, provider=provider)
        try:
            result = scheduler.run(entry_point)
        except UnhandledFiberFailure as e:
            err_console.print(f"[red]Root fiber failed:[/red] {e.error!r}")
            raise typer.Exit(1) from None
        except (StepLimitExceededError, DeadlockError) as e:
            err_console.print(f"[red]Run aborted:[/red] {e}")
            raise typer.Exit(1) from None

    stats = scheduler.stats()
    logger.info("run_finished", steps=stats.steps, jobs=stats.jobs, now=stats.now)
    if show_result:
        console.print(repr(result))


@app.command()
def validate(
    config_file: Path = typer.Argument(
        ...,
        help="Path to runtime configuration YAML file",
        exists=True,
        readable=True,
    ),
) -> None:
    """Validate a runtime configuration file."""
    try:
        config = RuntimeConfig.from_yaml(config_file)
    except ConfigError as e:
        err_console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1) from None

    console.print("[green]Valid configuration[/green]")
    console.print(f"  Clock: {config.clock}")
    console.print(f"  Max steps: {config.max_steps or 'unbounded'}")
    console.print(f"  Fetch timeout: {config.fetch.timeout}s")
    console.print(f"  Log level: {config.log.level}")


if __name__ == "__main__":
    app()
