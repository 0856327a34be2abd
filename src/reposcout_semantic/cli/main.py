"""reposcout-semantic command-line interface."""

import asyncio
import sys
from pathlib import Path

import typer
from loguru import logger

from .. import __version__
from ..config.settings import SemanticConfig
from ..core.bm25 import score_keyword_results
from ..core.exceptions import RepoScoutError
from ..core.providers import load_records_file
from ..core.search import HybridSearchEngine
from .output import (
    console,
    print_error,
    print_index_stats,
    print_info,
    print_search_results,
    print_success,
    print_warning,
)

app = typer.Typer(
    name="reposcout-semantic",
    help="Semantic and hybrid search over repository records",
    no_args_is_help=True,
)


def _setup_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"reposcout-semantic {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file",
        dir_okay=False,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug logging"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """🔎 Semantic repository search.

    [bold cyan]Examples:[/bold cyan]

    [green]Index repositories from a JSON file:[/green]
        $ reposcout-semantic index repos.json

    [green]Search the index:[/green]
        $ reposcout-semantic search "logging library"
    """
    _setup_logging(verbose)
    ctx.obj = {"config_path": config}


def _load_config(ctx: typer.Context, require_enabled: bool = True) -> SemanticConfig:
    try:
        config = SemanticConfig.load(ctx.obj.get("config_path") if ctx.obj else None)
    except RepoScoutError as e:
        print_error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from e
    if require_enabled and not config.enabled:
        print_warning("Semantic search is disabled in the configuration")
        raise typer.Exit(1)
    return config


def _run(coro) -> None:
    """Run a command coroutine, mapping library errors to exit code 1."""
    try:
        asyncio.run(coro)
    except RepoScoutError as e:
        logger.error(f"Command failed: {e}")
        print_error(str(e))
        raise typer.Exit(1)
    except OSError as e:
        logger.error(f"I/O error: {e}")
        print_error(f"I/O error: {e}")
        raise typer.Exit(1)


@app.command()
def index(
    ctx: typer.Context,
    records: Path = typer.Argument(..., help="JSON file with repository records"),
    save: bool = typer.Option(True, "--save/--no-save", help="Persist the index"),
) -> None:
    """Index repositories from a records file."""
    config = _load_config(ctx)

    async def _index() -> None:
        registry = await load_records_file(records)
        pairs = await registry.fetch_all()
        engine = HybridSearchEngine(config)
        count = await engine.index_repositories(pairs)
        if save:
            await engine.save()
        print_success(f"Indexed {count} of {len(pairs)} repositories")

    _run(_index())


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Natural-language query"),
    limit: int = typer.Option(10, "--limit", "-l", min=1, help="Maximum results"),
) -> None:
    """Semantic search over the saved index."""
    config = _load_config(ctx)

    async def _search() -> None:
        engine = HybridSearchEngine(config)
        if await engine.indexed_count() == 0:
            print_warning("The semantic index is empty. Run 'index' first.")
            return
        results = await engine.search(query, limit)
        print_search_results(results, query)

    _run(_search())


@app.command()
def hybrid(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Natural-language query"),
    records: Path = typer.Argument(..., help="JSON file with keyword search results"),
    limit: int = typer.Option(10, "--limit", "-l", min=1, help="Maximum results"),
    weight: float | None = typer.Option(
        None, "--weight", "-w", min=0.0, max=1.0, help="Semantic weight override"
    ),
    save: bool = typer.Option(True, "--save/--no-save", help="Persist the index"),
) -> None:
    """Blend semantic search with BM25 scores over a records file."""
    config = _load_config(ctx)
    if weight is not None:
        config.semantic_weight = weight

    async def _hybrid() -> None:
        registry = await load_records_file(records)
        repos = [repo for repo, _ in await registry.fetch_all()]
        keyword_results = score_keyword_results(repos, query)

        engine = HybridSearchEngine(config)
        results = await engine.hybrid_search(query, keyword_results, limit)
        if save and config.auto_build:
            await engine.save()
        print_search_results(results, query, show_keyword=True)

    _run(_hybrid())


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show semantic index statistics."""
    config = _load_config(ctx, require_enabled=False)

    async def _stats() -> None:
        engine = HybridSearchEngine(config)
        print_index_stats(
            await engine.stats(), await engine.indexed_count(), str(config.index_path)
        )

    _run(_stats())


@app.command()
def remove(
    ctx: typer.Context,
    record_id: str = typer.Argument(..., help="Repository id, e.g. GitHub:owner/name"),
) -> None:
    """Remove a repository from the index."""
    config = _load_config(ctx, require_enabled=False)

    async def _remove() -> None:
        engine = HybridSearchEngine(config)
        await engine.remove_repository(record_id)
        await engine.save()
        print_success(f"Removed {record_id}")

    _run(_remove())


@app.command()
def rebuild(
    ctx: typer.Context,
    records: Path = typer.Argument(..., help="JSON file with repository records"),
) -> None:
    """Rebuild the index from scratch from a records file."""
    config = _load_config(ctx)

    async def _rebuild() -> None:
        registry = await load_records_file(records)
        pairs = await registry.fetch_all()
        engine = HybridSearchEngine(config)
        count = await engine.rebuild(pairs)
        print_success(f"Rebuilt index with {count} repositories")

    _run(_rebuild())


@app.command()
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete every entry from the saved index."""
    config = _load_config(ctx, require_enabled=False)
    if not yes and not typer.confirm("Clear the semantic index?"):
        print_info("Aborted")
        raise typer.Exit()

    async def _clear() -> None:
        engine = HybridSearchEngine(config)
        await engine.clear()
        await engine.save()
        print_success("Semantic index cleared")

    _run(_clear())


if __name__ == "__main__":
    app()
