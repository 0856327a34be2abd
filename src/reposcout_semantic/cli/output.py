"""Console output helpers for the reposcout-semantic CLI."""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.models import IndexStats, SearchResult

console = Console()


def print_error(message: str) -> None:
    console.print(f"[red]✗ {escape(message)}[/red]")


def print_success(message: str) -> None:
    console.print(f"[green]✓ {escape(message)}[/green]")


def print_info(message: str) -> None:
    console.print(f"[blue]ℹ {escape(message)}[/blue]")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠ {escape(message)}[/yellow]")


def print_search_results(
    results: list[SearchResult], query: str, show_keyword: bool = False
) -> None:
    """Render ranked results as a table."""
    if not results:
        print_warning(f"No results for '{query}'")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Repository", style="cyan")
    table.add_column("Language", style="yellow")
    table.add_column("Semantic", justify="right")
    if show_keyword:
        table.add_column("Keyword", justify="right")
        table.add_column("Hybrid", justify="right", style="green")
    table.add_column("Description", style="dim")

    for rank, result in enumerate(results, start=1):
        repo = result.record
        row = [
            str(rank),
            escape(repo.id),
            repo.language or "-",
            f"{result.semantic_score:.3f}",
        ]
        if show_keyword:
            row.append(f"{result.keyword_score or 0.0:.3f}")
            row.append(f"{result.hybrid_score:.3f}")
        row.append(escape(repo.description or ""))
        table.add_row(*row)

    console.print(table)


def print_index_stats(stats: IndexStats, indexed: int, index_path: str) -> None:
    table = Table(title="Semantic Index Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Repositories", f"[green]{indexed:,}[/green]")
    table.add_row("Model", stats.model_name)
    table.add_row("Dimension", str(stats.dimension))
    table.add_row("Size on disk", f"{stats.index_size_bytes / 1024:.1f} KB")
    table.add_row("Last saved", stats.last_updated.strftime("%Y-%m-%d %H:%M:%S"))
    table.add_row("Location", index_path)

    console.print(table)
