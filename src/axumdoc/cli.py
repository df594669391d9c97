from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from axumdoc.config import (
    DEFAULT_API_VERSION,
    DEFAULT_HANDLER_FILE,
    DEFAULT_MODEL_FILES,
    DEFAULT_OUTPUT,
    DEFAULT_TITLE,
    GeneratorConfig,
)
from axumdoc.errors import AxumDocError
from axumdoc.orchestrator.pipeline import resolve_routes, run_generate


app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, show_time=False)],
        force=True,
    )


def _fail(err: AxumDocError) -> None:
    err_console.print(f"[bold red]error[/bold red]: {err}")
    raise typer.Exit(code=1)


@app.command()
def generate(
    base_dir: str = typer.Option(".", "--base-dir", "-b", help="Base directory of the Axum project"),
    handler_file: str = typer.Option(
        DEFAULT_HANDLER_FILE, "--handler-file", "-f", help="File holding the root router, relative to base dir"
    ),
    model_files: str = typer.Option(
        DEFAULT_MODEL_FILES, "--model-files", "-m", help="Comma-separated struct files, relative to base dir"
    ),
    output: str = typer.Option(DEFAULT_OUTPUT, "--output", "-o", help="Output file, relative to base dir"),
    title: str = typer.Option(DEFAULT_TITLE, help="info.title of the document"),
    api_version: str = typer.Option(DEFAULT_API_VERSION, help="info.version of the document"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug diagnostics"),
) -> None:
    """Generate an OpenAPI document from Axum router code."""
    _setup_logging(verbose)
    config = GeneratorConfig(
        base_dir=Path(base_dir).expanduser(),
        handler_file=handler_file,
        model_files=model_files,
        output=output,
        title=title,
        api_version=api_version,
    )

    try:
        result = run_generate(config)
    except AxumDocError as e:
        _fail(e)
        return

    console.print(f"[bold green]axumdoc[/bold green] generate: {config.base_dir}")
    console.print(f"Routes found: [bold]{len(result.routes)}[/bold]")
    console.print(f"Handlers resolved: {len(result.handlers)}")
    console.print(f"Models found: {len(result.models)}")
    console.print(f"Paths documented: {len(result.document['paths'])}")
    console.print(f"[bold green]Wrote[/bold green] OpenAPI spec to: {result.output_path}")


@app.command()
def routes(
    base_dir: str = typer.Option(".", "--base-dir", "-b", help="Base directory of the Axum project"),
    handler_file: str = typer.Option(
        DEFAULT_HANDLER_FILE, "--handler-file", "-f", help="File holding the root router, relative to base dir"
    ),
    format: str = typer.Option("table", help="Output format: table|json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug diagnostics"),
) -> None:
    """List the routes recovered from the router chain (nothing is written)."""
    _setup_logging(verbose)
    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    config = GeneratorConfig(base_dir=Path(base_dir).expanduser(), handler_file=handler_file)
    try:
        _, found = resolve_routes(config)
    except AxumDocError as e:
        _fail(e)
        return

    if fmt == "json":
        rows = [
            {
                "method": r.method,
                "path": r.path,
                "handler": r.handler_name,
                "module": list(r.module_qualifier) if r.module_qualifier else None,
            }
            for r in found
        ]
        console.print_json(json.dumps(rows))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("HANDLER")
    table.add_column("MODULE", no_wrap=True)

    for r in found:
        table.add_row(r.method, r.path, r.handler_name, r.tag or "-")

    console.print(f"[bold]Routes:[/bold] {len(found)}")
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
