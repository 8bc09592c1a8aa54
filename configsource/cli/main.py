"""CLI commands for resolving configuration documents."""

import json
import sys
import uuid
from typing import Any

import click
import structlog
import yaml

from configsource.errors import ConfigSourceError
from configsource.observability.logging import bind_run_context, configure_logging
from configsource.provider.file import FileProvider
from configsource.provider.http import HttpProvider
from configsource.provider.resolving import ResolvingProvider
from configsource.provider.router import SchemeRouter
from configsource.settings import AppSettings, get_settings
from configsource.sources.registry import FactoryRegistry, discover_factories


logger = structlog.get_logger()


def _setup_logging(settings: AppSettings, *, verbose: bool, json_logs: bool | None) -> str:
    """Configure logging and bind a fresh run id.

    Returns:
        The run id.
    """
    run_id = str(uuid.uuid4())
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.json_logs if json_logs is None else json_logs,
    )
    bind_run_context(run_id)
    return run_id


def _build_router(settings: AppSettings) -> SchemeRouter:
    """Create the document provider used by the CLI."""
    return SchemeRouter(
        [
            FileProvider(),
            HttpProvider("http", timeout_seconds=settings.http_timeout_seconds),
            HttpProvider("https", timeout_seconds=settings.http_timeout_seconds),
        ]
    )


def _render(documents: list[dict[str, Any]], output_format: str) -> str:
    """Serialize resolved documents for stdout."""
    if output_format == "json":
        payload: object = documents[0] if len(documents) == 1 else documents
        return json.dumps(payload, indent=2, sort_keys=True, default=str)
    return yaml.safe_dump_all(documents, sort_keys=False, default_flow_style=False)


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Resolve config source references in configuration documents."""


@cli.command()
@click.argument("locations", nargs=-1, required=True)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    help="Output format for resolved documents (default: yaml).",
)
@click.option(
    "--workers",
    "max_workers",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum parallel retrievals per document.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Time budget in seconds for resolving each document.",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=None,
    help="Use JSON format for logs (default: from settings).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
def resolve(  # noqa: PLR0913
    locations: tuple[str, ...],
    output_format: str,
    max_workers: int | None,
    timeout: float | None,
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """Resolve each LOCATION and print the literal configuration.

    Every location is resolved in its own cycle; documents are not merged.
    Locations may be file paths, file:<path>, or http(s) URLs.
    """
    settings = get_settings()
    run_id = _setup_logging(settings, verbose=verbose, json_logs=json_logs)
    log = logger.bind(component="cli", command="resolve", run_id=run_id)

    try:
        provider = ResolvingProvider(
            _build_router(settings),
            factories=discover_factories(settings.entry_point_group),
            max_workers=max_workers or settings.max_workers,
        )
    except ConfigSourceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    budget = timeout if timeout is not None else settings.resolve_timeout_seconds
    documents: list[dict[str, Any]] = []
    failed = False

    try:
        for location in locations:
            retrieved = provider.retrieve(location, timeout=budget)
            documents.append(retrieved.as_map())
            retrieved.close()
    except Exception as e:  # noqa: BLE001
        log.error("resolve_failed", error_type=type(e).__name__, error=str(e))
        click.echo(f"Error: {e}", err=True)
        failed = True
    finally:
        try:
            provider.shutdown()
        except ConfigSourceError as e:
            click.echo(f"Error: {e}", err=True)
            failed = True

    if failed:
        sys.exit(1)

    log.info("resolve_complete", document_count=len(documents))
    click.echo(_render(documents, output_format), nl=False)


@cli.command()
def sources() -> None:
    """List the config source types installed in this environment."""
    settings = get_settings()
    _setup_logging(settings, verbose=False, json_logs=None)

    try:
        registry = FactoryRegistry(discover_factories(settings.entry_point_group))
    except ConfigSourceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not registry:
        click.echo("No config sources installed.")
        return
    for type_name in registry.types():
        click.echo(type_name)


if __name__ == "__main__":
    cli()
