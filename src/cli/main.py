"""Main CLI entry point for the wiki-store command.

This module provides the Typer application used to administer a wiki
content store from the terminal: list, inspect, search, create, update and
delete pages on whichever backend the configuration selects.
"""

import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from src.backends.config_loader import ConfigLoader
from src.backends.selector import BackendKind, BackendSelector
from src.cli.errors import ContentFileError
from src.cli.models import ExitCode
from src.cli.output import OutputHandler
from src.storage_clients.auth import EnvIdentityProvider
from src.wiki_core.errors import ConfigError
from src.wiki_core.models import CreatePageData, StoreResult, UpdatePageData, WikiFilters
from src.wiki_core.page_store import PageStore
from src.wiki_core.version_history import VersionHistoryCapability

VERSION = "0.1.0"

app = typer.Typer(
    name="wiki-store",
    help="""Administer a versioned wiki content store.

EXAMPLES:
  wiki-store list --search intro                 # Pages matching "intro"
  wiki-store show getting-started                # Show one page
  wiki-store create "Getting Started" --content-file intro.md
  wiki-store history <page-id>                   # Version history

The acting identity comes from WIKI_USER_ID, WIKI_USER_NAME and WIKI_USER_ROLES.""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=True,
)

# Module logger
logger = logging.getLogger(__name__)

# Capability of each backend, shown by the "backends" command
BACKEND_HISTORY = {
    BackendKind.TABLE: VersionHistoryCapability.FULL,
    BackendKind.BLOB_INDEX: VersionHistoryCapability.FULL,
    BackendKind.REVISION: VersionHistoryCapability.LIMITED,
}


@dataclass
class CLIState:
    """Global options shared by every command."""
    config_path: Optional[str]
    verbosity: int
    output: OutputHandler


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'src' namespace logger to avoid affecting third-party
    libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    app_logger = logging.getLogger("src")
    app_logger.setLevel(level)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)

    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter("%(asctime)s [%(levelname)8s] %(message)s", datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"wiki-store_{timestamp}.log"

        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt=date_format
        )
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def _state(ctx: typer.Context) -> CLIState:
    return ctx.find_root().obj


def _open_store(ctx: typer.Context) -> PageStore:
    """Load configuration and activate the configured backend.

    The store is closed when the command finishes.
    """
    state = _state(ctx)
    try:
        config = ConfigLoader.load(state.config_path)
        store = BackendSelector.configure(config, EnvIdentityProvider())
    except ConfigError as e:
        logger.error(f"Configuration failed: {e}")
        state.output.error(str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    ctx.call_on_close(BackendSelector.reset)
    state.output.info(f"Backend: {store.backend_name}")
    return store


def _require_success(ctx: typer.Context, result: StoreResult, action: str):
    """Return the result data, or report the error and exit."""
    if result.success:
        if result.error is not None:
            _state(ctx).output.warning(f"{action} returned partial results: {result.error}")
        return result.data

    _state(ctx).output.error(f"{action} failed [{result.error_code}]: {result.error_message}")
    raise typer.Exit(ExitCode.for_error(result.error))


def _load_content(content_file: str) -> str:
    """Read a page body from a file, or stdin for '-'.

    Raises:
        ContentFileError: If the file cannot be read
    """
    if content_file == "-":
        return sys.stdin.read()
    try:
        with open(content_file, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise ContentFileError(content_file, e.strerror or str(e))


def _read_content(ctx: typer.Context, content_file: str) -> str:
    try:
        return _load_content(content_file)
    except ContentFileError as e:
        _state(ctx).output.error(str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="WIKI_CONFIG",
        help="Path to the YAML configuration file",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
) -> None:
    if version:
        typer.echo(f"wiki-store version {VERSION}")
        raise typer.Exit()

    _configure_logging(verbosity, logdir)
    ctx.obj = CLIState(
        config_path=config,
        verbosity=verbosity,
        output=OutputHandler(verbosity=verbosity, no_color=no_color),
    )


@app.command("backends")
def backends_command(ctx: typer.Context) -> None:
    """List available storage backends and the configured one."""
    state = _state(ctx)
    try:
        active = ConfigLoader.load(state.config_path).backend
    except ConfigError as e:
        state.output.error(str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    state.output.print_backends(
        [{"name": kind.value, "history": BACKEND_HISTORY[kind].value} for kind in BackendKind],
        active,
    )


@app.command("list")
def list_command(
    ctx: typer.Context,
    page: int = typer.Option(1, "--page", "-p", help="Page number (1-based)"),
    limit: int = typer.Option(20, "--limit", "-n", help="Pages per listing page (max 100)"),
    category: Optional[str] = typer.Option(None, "--category", help="Filter by category id"),
    author: Optional[str] = typer.Option(None, "--author", help="Filter by author id"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Title/tag substring"),
    sort_by: Optional[str] = typer.Option(
        None, "--sort-by", help="createdAt, updatedAt, title or version"
    ),
    sort_order: Optional[str] = typer.Option(None, "--sort-order", help="asc or desc"),
    published: Optional[bool] = typer.Option(
        None, "--published/--drafts", help="Only published pages, or only drafts"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """List pages with filtering, sorting and pagination."""
    store = _open_store(ctx)
    output = _state(ctx).output

    filters = WikiFilters(
        page=page,
        limit=limit,
        category_id=category,
        author_id=author,
        is_published=published,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    with output.spinner("Loading pages..."):
        result = store.list_pages(filters)
    pages = _require_success(ctx, result, "List pages")

    if as_json:
        output.print_json({
            "data": [p.to_dict() for p in pages],
            "pagination": result.pagination.to_dict(),
        })
    else:
        output.print_pages(pages, result.pagination)


@app.command("show")
def show_command(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Page slug"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of text"),
) -> None:
    """Show a page by slug."""
    store = _open_store(ctx)
    page = _require_success(ctx, store.get_page_by_slug(slug), "Get page")

    output = _state(ctx).output
    if as_json:
        output.print_json(page.to_dict())
    else:
        output.print_page(page)


@app.command("search")
def search_command(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Free-text query"),
) -> None:
    """Search published pages by title, tags and excerpt."""
    store = _open_store(ctx)
    results = _require_success(ctx, store.search_pages(query), "Search")
    _state(ctx).output.print_search_results(results)


@app.command("history")
def history_command(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="Page id"),
) -> None:
    """Show the version history of a page (newest first)."""
    store = _open_store(ctx)
    versions = _require_success(ctx, store.get_page_versions(page_id), "Get versions")

    output = _state(ctx).output
    output.print_versions(versions)
    if store.version_history_capability == VersionHistoryCapability.LIMITED:
        output.info("History is derived from the revision log; older snapshots are not loaded.")


@app.command("stats")
def stats_command(ctx: typer.Context) -> None:
    """Show page, category and contributor statistics."""
    store = _open_store(ctx)
    stats = _require_success(ctx, store.get_stats(), "Get stats")
    _state(ctx).output.print_stats(stats)


@app.command("categories")
def categories_command(ctx: typer.Context) -> None:
    """List active categories."""
    store = _open_store(ctx)
    categories = _require_success(ctx, store.get_categories(), "Get categories")
    _state(ctx).output.print_categories(categories)


@app.command("create")
def create_command(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Page title (the slug is derived from it)"),
    content_file: str = typer.Option(
        ..., "--content-file", "-f", help="File with the page body ('-' for stdin)"
    ),
    category: Optional[str] = typer.Option(None, "--category", help="Category id"),
    tags: Optional[List[str]] = typer.Option(
        None, "--tag", "-t", help="Tag (can be used multiple times)"
    ),
    draft: bool = typer.Option(False, "--draft", help="Create unpublished"),
) -> None:
    """Create a page."""
    content = _read_content(ctx, content_file)
    store = _open_store(ctx)

    data = CreatePageData(
        title=title,
        content=content,
        category_id=category,
        tags=tags or [],
        is_published=not draft,
    )
    page = _require_success(ctx, store.create_page(data), "Create page")
    _state(ctx).output.success(f"Created page '{page.slug}' (id {page.id}, version {page.version})")


@app.command("update")
def update_command(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="Page id"),
    title: Optional[str] = typer.Option(None, "--title", help="New title (slug is kept)"),
    content_file: Optional[str] = typer.Option(
        None, "--content-file", "-f", help="File with the new body ('-' for stdin)"
    ),
    category: Optional[str] = typer.Option(None, "--category", help="New category id"),
    tags: Optional[List[str]] = typer.Option(
        None, "--tag", "-t", help="Replace tags (can be used multiple times)"
    ),
    published: Optional[bool] = typer.Option(None, "--publish/--unpublish", help="Publish state"),
    locked: Optional[bool] = typer.Option(None, "--lock/--unlock", help="Lock flag"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Change description"),
) -> None:
    """Update a page; only the given fields change."""
    patch = UpdatePageData(change_description=message)
    if title is not None:
        patch.title = title
    if content_file is not None:
        patch.content = _read_content(ctx, content_file)
    if category is not None:
        patch.category_id = category
    if tags:
        patch.tags = tags
    if published is not None:
        patch.is_published = published
    if locked is not None:
        patch.is_locked = locked

    store = _open_store(ctx)
    page = _require_success(ctx, store.update_page(page_id, patch), "Update page")
    _state(ctx).output.success(f"Updated page '{page.slug}' (version {page.version})")


@app.command("delete")
def delete_command(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="Page id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a page and its version history."""
    if not yes:
        typer.confirm(f"Delete page {page_id} and all of its versions?", abort=True)

    store = _open_store(ctx)
    _require_success(ctx, store.delete_page(page_id), "Delete page")
    _state(ctx).output.success(f"Deleted page {page_id}")


def main() -> None:
    """Main entry point for the CLI application."""
    app()


# Allow running as: python -m src.cli.main
if __name__ == "__main__":
    main()
