"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all CLI terminal output:
status messages, spinners, and tables for pages, versions, search results,
categories and stats. Supports verbosity levels and the --no-color flag.
"""

import json
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table

from src.wiki_core.models import (
    Category,
    Page,
    PageVersion,
    Pagination,
    SearchResult,
    WikiStats,
)


class OutputHandler:
    """Handles all terminal output using Rich library.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.success("Page created")
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False):
        self.verbosity = verbosity
        self.console = Console(
            no_color=no_color,
            highlight=False,
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}", style="red")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(message)

    def print(self, message: str) -> None:
        self.console.print(message)

    def print_json(self, data: Any) -> None:
        """Print data as JSON (the external camelCase shape)."""
        self.console.print_json(json.dumps(data))

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display spinner while a store call runs.

        Example:
            >>> with handler.spinner("Loading pages..."):
            ...     result = store.list_pages()
        """
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10, transient=True):
            yield

    def print_backends(self, backends: List[Dict[str, str]], active: str) -> None:
        table = Table(title="Storage backends")
        table.add_column("Backend")
        table.add_column("History")
        table.add_column("Active")
        for backend in backends:
            marker = "[green]●[/green]" if backend["name"] == active else ""
            table.add_row(backend["name"], backend["history"], marker)
        self.console.print(table)

    def print_pages(self, pages: List[Page], pagination: Pagination) -> None:
        table = Table(title="Wiki pages")
        table.add_column("Slug", style="cyan")
        table.add_column("Title")
        table.add_column("Version", justify="right")
        table.add_column("Category")
        table.add_column("Tags")
        table.add_column("Updated")
        for page in pages:
            title = page.title if page.is_published else f"{page.title} [dim](draft)[/dim]"
            table.add_row(
                page.slug,
                title,
                str(page.version),
                page.category_id or "",
                ", ".join(page.tags),
                page.updated_at,
            )
        self.console.print(table)
        self.console.print(
            f"Page {pagination.current_page} of {pagination.total_pages} "
            f"({pagination.total_count} page(s) total)"
        )

    def print_page(self, page: Page) -> None:
        header = (
            f"[bold]{page.title}[/bold]  [dim]{page.slug} · id {page.id} · v{page.version}[/dim]\n"
            f"Author: {page.author_name} · Last edited by: {page.last_edited_by_name} "
            f"at {page.updated_at}"
        )
        if page.tags:
            header += f"\nTags: {', '.join(page.tags)}"
        if page.is_locked:
            header += "\n[yellow]Locked[/yellow]"
        self.console.print(Panel(header, expand=False))
        self.console.print(page.content, markup=False)

    def print_versions(self, versions: List[PageVersion]) -> None:
        table = Table(title="Version history")
        table.add_column("Version", justify="right")
        table.add_column("Author")
        table.add_column("Created")
        table.add_column("Change")
        table.add_column("Title")
        for version in versions:
            title = version.title if version.title is not None else "[dim]not loaded[/dim]"
            table.add_row(
                str(version.version),
                version.author_name,
                version.created_at,
                version.change_description,
                title,
            )
        self.console.print(table)

    def print_search_results(self, results: List[SearchResult]) -> None:
        if not results:
            self.console.print("[yellow]No matching pages[/yellow]")
            return
        table = Table(title="Search results")
        table.add_column("Score", justify="right")
        table.add_column("Slug", style="cyan")
        table.add_column("Title")
        table.add_column("Match")
        for result in results:
            table.add_row(
                str(result.relevance_score),
                result.page.slug,
                result.page.title,
                result.matched_content,
            )
        self.console.print(table)

    def print_categories(self, categories: List[Category]) -> None:
        table = Table(title="Categories")
        table.add_column("Order", justify="right")
        table.add_column("Slug", style="cyan")
        table.add_column("Name")
        table.add_column("Description")
        for category in categories:
            table.add_row(str(category.order), category.slug, category.name, category.description)
        self.console.print(table)

    def print_stats(self, stats: WikiStats) -> None:
        self.console.print("\n[bold]Wiki Summary:[/bold]")
        self.console.print(f"  Published pages: {stats.total_pages}")
        self.console.print(f"  Active categories: {stats.total_categories}")

        if stats.recent_pages:
            self.console.print("\n[bold]Recently updated:[/bold]")
            for page in stats.recent_pages:
                self.console.print(f"  • {page.title} [dim]({page.slug}, {page.updated_at})[/dim]")

        if stats.top_contributors:
            self.console.print("\n[bold]Top contributors:[/bold]")
            for contributor in stats.top_contributors:
                self.console.print(f"  • {contributor.author_name}: {contributor.edit_count} edit(s)")
