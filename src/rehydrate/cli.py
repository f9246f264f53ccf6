"""Command-line interface for rehydrate."""

from __future__ import annotations

import functools
import importlib
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from rehydrate.config import ConfigError, Settings, configure_logging
from rehydrate.migration.base import MigrationError, MigrationOutcome
from rehydrate.migration.executor import MigrationExecutor
from rehydrate.migration.registry import SchemaRegistry
from rehydrate.report import MigrationReport
from rehydrate.runtime import unwrap_envelope, wrap_envelope

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

app = typer.Typer(
    name="rehydrate",
    help="Inspect and repair persisted store state",
    add_completion=False,
)


class CLIError(Exception):
    """Error reported to the user with an exit code."""

    def __init__(self, message: str, code: int = 1, hint: str | None = None) -> None:
        self.message = message
        self.code = code
        self.hint = hint
        super().__init__(message)


def error_boundary(func: F) -> F:
    """Convert exceptions raised by a command into CLI errors."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except CLIError as e:
            typer.echo(typer.style(f"Error: {e.message}", fg="red"), err=True)
            if e.hint:
                typer.echo(typer.style(f"Hint: {e.hint}", fg="yellow"), err=True)
            raise typer.Exit(e.code)
        except (MigrationError, ConfigError) as e:
            typer.echo(typer.style(f"Error: {e}", fg="red"), err=True)
            raise typer.Exit(2)
        except Exception as e:
            logger.debug("Unexpected error in %s", func.__name__, exc_info=True)
            typer.echo(typer.style(f"Error: {e}", fg="red"), err=True)
            raise typer.Exit(1)

    return wrapper  # type: ignore


# =============================================================================
# Helpers
# =============================================================================


def load_registry(target: str | None) -> SchemaRegistry:
    """Import a registry from ``module:attribute``.

    The attribute may be a SchemaRegistry or a zero-argument callable
    returning one.

    Raises:
        CLIError: If the target cannot be resolved.
    """
    target = target or Settings.from_env().registry
    if not target:
        raise CLIError(
            "No registry given",
            code=2,
            hint="Pass --registry module:attribute or set REHYDRATE_REGISTRY",
        )

    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise CLIError(f"Invalid registry target '{target}'", code=2, hint="Use module:attribute")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise CLIError(f"Cannot import '{module_name}': {e}", code=2) from e

    obj = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise CLIError(f"'{target}' not found", code=2) from e

    if not isinstance(obj, SchemaRegistry) and callable(obj):
        obj = obj()
    if not isinstance(obj, SchemaRegistry):
        raise CLIError(f"'{target}' is not a SchemaRegistry", code=2)

    logger.debug("Loaded registry '%s' with %d stores", target, len(obj))
    return obj


def read_blob(path: Path) -> Any:
    """Read a persisted JSON file; undecodable content counts as no data."""
    if not path.exists():
        raise CLIError(f"File not found: {path}", code=10)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        typer.echo(typer.style(f"Warning: {path} is not valid JSON ({e})", fg="yellow"), err=True)
        return None


def _migrate_file(
    file: Path,
    registry: Optional[str],
    store: str,
    version: Optional[int],
    debug: bool,
):
    executor = MigrationExecutor(load_registry(registry), debug=debug)
    blob, recorded = unwrap_envelope(read_blob(file))
    if version is not None:
        recorded = version
    return executor, executor.run(store, blob, recorded)


RegistryOpt = Annotated[
    Optional[str],
    typer.Option("--registry", "-r", help="Registry location as module:attribute"),
]
StoreOpt = Annotated[str, typer.Option("--store", "-s", help="Registered store name")]
VersionOpt = Annotated[
    Optional[int],
    typer.Option("--version", "-V", help="Override the recorded version"),
]
DebugOpt = Annotated[bool, typer.Option("--debug", help="Trace every migration step")]


# =============================================================================
# Commands
# =============================================================================


@app.callback()
def main_callback(
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)"),
    ] = None,
) -> None:
    """Inspect and repair persisted store state."""
    configure_logging(log_level or Settings.from_env().log_level)


@app.command(name="check")
@error_boundary
def check_cmd(
    file: Annotated[Path, typer.Argument(help="Persisted JSON file (envelope or bare state)")],
    store: StoreOpt,
    registry: RegistryOpt = None,
    version: VersionOpt = None,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (console, json)"),
    ] = "console",
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output file path"),
    ] = None,
    show_state: Annotated[
        bool,
        typer.Option("--show-state", help="Print the migrated state"),
    ] = False,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Exit with code 1 unless the blob migrates cleanly"),
    ] = False,
    debug: DebugOpt = False,
) -> None:
    """Run a persisted blob through its store's migration and report the outcome."""
    if format not in ("console", "json"):
        raise CLIError(f"Unknown format: {format}", code=2)

    _, result = _migrate_file(file, registry, store, version, debug)
    report = MigrationReport(results=[result], source=str(file))

    if format == "json":
        text = report.to_json()
        if output:
            output.write_text(text)
            typer.echo(f"Report written to {output}")
        else:
            typer.echo(text)
    elif output:
        output.write_text(str(report))
        typer.echo(f"Report written to {output}")
    else:
        report.print(show_state=show_state)

    if strict and result.outcome is not MigrationOutcome.VALID:
        raise typer.Exit(1)


@app.command(name="repair")
@error_boundary
def repair_cmd(
    file: Annotated[Path, typer.Argument(help="Persisted JSON file (envelope or bare state)")],
    store: StoreOpt,
    registry: RegistryOpt = None,
    version: VersionOpt = None,
    in_place: Annotated[
        bool,
        typer.Option("--in-place", "-i", help="Overwrite the input file"),
    ] = False,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Where to write the repaired envelope"),
    ] = None,
    debug: DebugOpt = False,
) -> None:
    """Migrate a persisted blob and write it back as a current-version envelope."""
    if in_place and output:
        raise CLIError("Use either --in-place or --output, not both", code=2)

    executor, result = _migrate_file(file, registry, store, version, debug)
    config = executor.registry.require(store)
    text = json.dumps(wrap_envelope(result.state, config.current_version), indent=2)

    target = file if in_place else output
    if target is None:
        typer.echo(text)
        return

    target.write_text(text + "\n")
    typer.echo(f"{store}: {result.outcome.value}, written to {target}")
    if result.dropped_fields:
        typer.echo(f"  Reset fields: {', '.join(result.dropped_fields)}")


@app.command(name="stores")
@error_boundary
def stores_cmd(registry: RegistryOpt = None) -> None:
    """List registered stores."""
    schema_registry = load_registry(registry)

    if not len(schema_registry):
        typer.echo("No stores registered")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Store", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("Transformers from", justify="center")
    table.add_column("Fields")

    for name in schema_registry:
        config = schema_registry.require(name)
        table.add_row(
            config.display_name if config.display_name == name else f"{name} ({config.display_name})",
            str(config.current_version),
            ", ".join(str(v) for v in sorted(config.transformers, key=str)) or "-",
            ", ".join(config.initial_state),
        )

    Console().print(table)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
