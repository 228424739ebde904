"""CLI entry point for vectorlane."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
import yaml
from rich import print as rprint
from rich.syntax import Syntax
from rich.table import Table

from vectorlane.config import VectorlaneConfig, load_config
from vectorlane.config.loader import DEFAULT_CONFIG_TEMPLATE
from vectorlane.interfaces import HybridSearchOptions, TextRequest, VectorDatabase
from vectorlane.vectordb import VectorDatabaseError, create_vector_database

T = TypeVar("T")

app = typer.Typer(
    name="vectorlane",
    help="Inspect and search LanceDB collections of embedded code chunks.",
)

config_app = typer.Typer(help="Manage vectorlane configuration.")
app.add_typer(config_app, name="config")

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# Global state
_config: VectorlaneConfig | None = None


def _get_config() -> VectorlaneConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to vectorlane.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    logging.basicConfig(
        level=_LOG_LEVELS[_config.log_level],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run(op: Callable[[VectorDatabase], Awaitable[T]]) -> T:
    """Open the configured database, run ``op`` against it, always close it."""

    async def _main() -> T:
        db = create_vector_database(_get_config())
        try:
            return await op(db)
        finally:
            await db.close()

    try:
        return asyncio.run(_main())
    except VectorDatabaseError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def collections() -> None:
    """List collections in the configured database."""
    names = _run(lambda db: db.list_collections())
    if not names:
        rprint("[yellow]No collections found.[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Collections ({len(names)})")
    table.add_column("name", style="cyan")
    for name in sorted(names):
        table.add_row(name)
    rprint(table)


@app.command()
def drop(
    name: str = typer.Argument(..., help="Collection to drop"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Drop a collection and all of its documents."""
    if not yes and not typer.confirm(f"Drop collection '{name}'?"):
        raise typer.Exit(0)
    _run(lambda db: db.drop_collection(name))
    rprint(f"[green]Dropped[/green] {name}")


@app.command()
def query(
    name: str = typer.Argument(..., help="Collection to query"),
    filter_expr: str = typer.Option("", "--filter", help="Boolean filter, e.g. \"fileExtension = '.py'\""),
    fields: list[str] = typer.Option([], "--field", help="Column to return (repeatable)"),
    limit: int | None = typer.Option(None, "--limit", min=1, help="Maximum rows"),
) -> None:
    """Print rows matching a filter as JSON."""
    rows = _run(lambda db: db.query(name, filter_expr, fields, limit))
    typer.echo(json.dumps(rows, indent=2, default=str))


@app.command()
def search(
    name: str = typer.Argument(..., help="Collection to search"),
    text: str = typer.Argument(..., help="Full-text query"),
    limit: int = typer.Option(10, "--limit", min=1, help="Number of results to return"),
    filter_expr: str | None = typer.Option(None, "--filter", help="Boolean filter expression"),
) -> None:
    """Full-text search through the hybrid (RRF-ranked) search path."""
    options = HybridSearchOptions(limit=limit, filter_expr=filter_expr)
    results = _run(lambda db: db.hybrid_search(name, [TextRequest(query=text)], options))

    if not results:
        rprint("[yellow]No results found.[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Search Results ({len(results)})")
    table.add_column("id", style="cyan")
    table.add_column("location", style="magenta")
    table.add_column("score", justify="right", style="green")
    table.add_column("snippet", style="dim")

    for r in results:
        doc = r.document
        snippet = doc.content[:80] + ("..." if len(doc.content) > 80 else "")
        location = f"{doc.relative_path}:{doc.start_line}-{doc.end_line}"
        table.add_row(doc.id, location, f"{r.score:.4f}", snippet)

    rprint(table)


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default vectorlane.yaml in current directory."""
    target = Path("vectorlane.yaml")
    if target.exists() and not force:
        rprint("[yellow]vectorlane.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
