# src/spillway/cli.py
"""Spillway Command Line Interface.

Entry point for the spillway CLI tool.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from spillway import __version__
from spillway.contracts import FileProcessingError, ProgressEvent, PublishRequest
from spillway.core.config import PublisherSettings, SpillwaySettings, load_settings, load_settings_from_env
from spillway.engine.partitioner import partition, range_count

if TYPE_CHECKING:
    from spillway.plugins.manager import PluginManager

__all__ = ["app"]

_plugin_manager_cache: PluginManager | None = None


def _get_plugin_manager() -> PluginManager:
    """Get initialized plugin manager (singleton)."""
    global _plugin_manager_cache

    from spillway.plugins.manager import PluginManager

    if _plugin_manager_cache is None:
        manager = PluginManager()
        manager.register_builtin_plugins()
        _plugin_manager_cache = manager
    return _plugin_manager_cache


app = typer.Typer(
    name="spillway",
    help="Spillway: publish every row of large Parquet files to a queue.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"spillway version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(False, "--no-dotenv", help="Skip loading .env file."),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose/debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Output structured JSON logs (for machine processing)."),
) -> None:
    """Spillway: publish every row of large Parquet files to a queue."""
    from spillway.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)


def _load_config(settings: str | None) -> SpillwaySettings:
    """Load settings from a file or, without one, from SPILLWAY_* variables.

    Raises:
        typer.Exit: On any configuration error (message already printed)
    """
    try:
        if settings is None:
            return load_settings_from_env()
        return load_settings(Path(settings).expanduser())
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        _echo_validation_errors("Configuration errors:", e)
        raise typer.Exit(1) from None


def _echo_validation_errors(heading: str, error: ValidationError) -> None:
    typer.echo(heading, err=True)
    for detail in error.errors():
        loc = ".".join(str(x) for x in detail["loc"])
        typer.echo(f"  - {loc}: {detail['msg']}", err=True)


@app.command()
def plan(
    rows: int = typer.Option(..., "--rows", "-r", min=0, help="Total rows in the file."),
    rows_per_worker: int = typer.Option(100_000, "--rows-per-worker", "-w", min=1, help="Rows per range worker."),
    batch_size: int = typer.Option(10, "--batch-size", "-b", min=1, help="Records per publish call."),
    output_format: Literal["console", "json"] = typer.Option("console", "--format", "-f", help="Output format."),
) -> None:
    """Show how a row count would be split into ranges and batches."""
    ranges = partition(rows, rows_per_worker)
    batches = [range_count(len(r), batch_size) for r in ranges]

    if output_format == "json":
        typer.echo(
            json.dumps(
                {
                    "total_rows": rows,
                    "ranges": [{"start": r.start, "end": r.end, "batches": b} for r, b in zip(ranges, batches, strict=True)],
                    "total_batches": sum(batches),
                }
            )
        )
        return

    typer.echo(f"{rows} rows -> {len(ranges)} ranges, {sum(batches)} batches of <= {batch_size}")
    for r, b in zip(ranges, batches, strict=True):
        typer.echo(f"  [{r.start}, {r.end})  {len(r)} rows, {b} batches")


def _echo_progress(event: ProgressEvent) -> None:
    typer.echo(
        f"  ranges {event.units_completed}/{event.units_total} done"
        f" ({event.units_failed} failed), {event.rows_processed} rows, {event.elapsed_seconds:.1f}s",
        err=True,
    )


@app.command()
def publish(
    paths: list[str] = typer.Argument(..., help="Local files, or object keys with --bucket."),
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file (default: SPILLWAY_* environment variables).",
    ),
    bucket: str | None = typer.Option(None, "--bucket", help="Fetch PATHS as keys from this S3 bucket."),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Read and encode every row but publish nothing.",
    ),
    output_format: Literal["console", "json"] = typer.Option("console", "--format", "-f", help="Output format."),
) -> None:
    """Publish every row of each file as one message."""
    from spillway.engine.handler import RecordPublisherHandler
    from spillway.engine.pipeline import FilePipeline
    from spillway.plugins.config_base import PluginConfigError

    config = _load_config(settings)
    if dry_run:
        null_publisher = PublisherSettings(plugin="null", options={"max_batch_size": config.partitioning.max_batch_size})
        config = config.model_copy(update={"publisher": null_publisher})

    request: PublishRequest | None = None
    if bucket is not None:
        try:
            request = PublishRequest(bucket=bucket, paths=paths)
        except ValidationError as e:
            _echo_validation_errors("Invalid request:", e)
            raise typer.Exit(1) from None

    on_progress = _echo_progress if output_format == "console" else None
    rows_by_path: dict[str, int] = {}
    try:
        if request is not None:
            handler = RecordPublisherHandler.from_settings(config, manager=_get_plugin_manager(), on_progress=on_progress)
            try:
                rows_by_path = handler.process(request)
            finally:
                handler.close()
        else:
            plugins = _get_plugin_manager().instantiate_plugins(config)
            pipeline = FilePipeline(plugins.source, plugins.publisher, config, on_progress=on_progress)
            try:
                for path in paths:
                    result = pipeline.run(Path(path))
                    if result.cause is not None:
                        raise FileProcessingError(path, result.cause) from result.cause
                    rows_by_path[path] = result.rows_processed
            finally:
                pipeline.close()
    except (ValueError, PluginConfigError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    except FileProcessingError as e:
        if output_format == "json":
            typer.echo(json.dumps({"event": "error", **e.details()}), err=True)
        else:
            typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if output_format == "json":
        typer.echo(json.dumps({"event": "completed", "paths": paths, "rows": rows_by_path, "dry_run": dry_run}))
    else:
        for path in paths:
            rows = rows_by_path.get(path)
            typer.echo(f"Published {path}" + (f" ({rows} rows)" if rows is not None else ""))


@app.command()
def generate(
    output: Path = typer.Argument(..., help="Parquet file to write."),
    rows: int = typer.Option(10_000, "--rows", "-r", min=0, help="Number of records."),
    rows_per_group: int = typer.Option(10_000, "--rows-per-group", "-g", min=1, help="Rows per Parquet row group."),
    seed: int | None = typer.Option(None, "--seed", help="RNG seed for reproducible data."),
) -> None:
    """Write a Parquet file of synthetic account records."""
    from spillway.testing.data_generator import generate_records, write_parquet

    written = write_parquet(output, generate_records(rows, seed), rows_per_group)
    typer.echo(f"Wrote {written} records to {output}")


if __name__ == "__main__":
    app()
