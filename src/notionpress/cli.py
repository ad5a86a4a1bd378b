"""Command-line interface for notionpress.

Built with Typer for commands and Rich for output. Commands only call the
sync, batch and routing operations and print their structured results.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import get_config
from .db import Database, get_db
from .db.schemas import BatchStatus, LinkStatus
from .log import setup_logging

if TYPE_CHECKING:
    from .media import MediaPipeline
    from .router import LinkRegistry, LinkResolver
    from .sync import JobQueue

# Create the main app
app = typer.Typer(
    name="notionpress",
    help="Sync Notion pages and databases into a WordPress-style content store.",
    no_args_is_help=True,
)

# Sub-apps for command groups
batch_app = typer.Typer(help="Inspect and cancel batched database syncs.")
app.add_typer(batch_app, name="batch")

jobs_app = typer.Typer(help="Run background jobs.")
app.add_typer(jobs_app, name="jobs")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


# Friendly guidance keyed by known error message fragments
ERROR_HINTS = {
    "Could not connect to Notion": "Check your network connection and try again.",
    "Failed to fetch page properties": "Check your API token and that the page is shared with the integration.",
    "Failed to fetch database schema": "Check that the database is shared with the integration.",
    "Block conversion failed": "A block could not be converted. Run with --verbose for details.",
    "WordPress post creation failed": "The document store rejected the write.",
}


def hint_for(error: Optional[str]) -> Optional[str]:
    """Guidance for a sync error message, if any."""
    for fragment, hint in ERROR_HINTS.items():
        if error and fragment in error:
            return hint
    return None


@dataclass
class Services:
    """Wired collaborators for one CLI invocation."""

    db: Database
    queue: "JobQueue"
    media: "MediaPipeline"
    links: "LinkRegistry"
    resolver: "LinkResolver"


def _services() -> Services:
    from .media import MediaPipeline, MediaRegistry
    from .router import LinkRegistry, LinkResolver
    from .sync import JobQueue

    db = get_db()
    queue = JobQueue(db)
    links = LinkRegistry(db)
    return Services(
        db=db,
        queue=queue,
        media=MediaPipeline(MediaRegistry(db), queue=queue),
        links=links,
        resolver=LinkResolver(links),
    )


def _notion_client():
    from .api import NotionClient, NotionConfigError

    try:
        return NotionClient()
    except NotionConfigError as e:
        print_error(str(e))
        console.print("[dim]Set NOTION_API_KEY in your environment or .env file.[/dim]")
        raise typer.Exit(1)


def _batch_processor(services: Services, with_fetcher: bool = False):
    from .sync import BatchProcessor, DatabaseFetcher

    fetcher = DatabaseFetcher(_notion_client()) if with_fetcher else None
    return BatchProcessor(
        services.queue, db=services.db, fetcher=fetcher, links=services.links
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Sync Notion content into local drafts."""
    setup_logging(verbose)


# ============================================================================
# Page Commands
# ============================================================================


@app.command()
def sync(
    page_ids: list[str] = typer.Argument(..., help="Notion page IDs to sync"),
    run_jobs: bool = typer.Option(
        True, "--run-jobs/--no-run-jobs", help="Download queued images before exiting"
    ),
) -> None:
    """Sync one or more Notion pages into draft documents."""
    from .sync import ContentFetcher, SyncManager

    services = _services()
    manager = SyncManager(
        ContentFetcher(_notion_client()),
        db=services.db,
        links=services.links,
        resolver=services.resolver,
        media=services.media,
    )

    results = manager.sync_pages(page_ids, show_progress=len(page_ids) > 1)

    table = Table(title="Sync Results", show_header=True, header_style="bold magenta")
    table.add_column("Page", style="cyan")
    table.add_column("Result")
    table.add_column("Document", justify="right")
    table.add_column("Details", max_width=60)

    for page_id, result in zip(page_ids, results):
        if result.success:
            table.add_row(
                page_id,
                "[green]created[/green]" if result.created else "[green]updated[/green]",
                str(result.target_document_id),
                "",
            )
        else:
            details = result.error or ""
            hint = hint_for(result.error)
            if hint:
                details = f"{details}\n[dim]{hint}[/dim]"
            table.add_row(page_id, f"[red]{result.error_kind}[/red]", "-", details)

    console.print(table)

    if run_jobs and services.queue.pending_count():
        ran = services.queue.run_until_idle()
        print_info(f"Ran {ran} background job(s)")

    if any(not r.success for r in results):
        raise typer.Exit(1)


@app.command()
def status(
    page_id: str = typer.Argument(..., help="Notion page or database ID"),
) -> None:
    """Show the sync status of a page without calling Notion."""
    from .store import DocumentStore

    services = _services()
    store = DocumentStore(services.db)
    record = store.get_sync_record(page_id)
    detail = services.links.get_comprehensive_status(page_id)

    lines = [f"Status: [bold]{detail.value}[/bold]"]
    if record is not None:
        lines.append(f"Document: {record.document_id}")
        lines.append(f"Last synced: {record.last_synced_at}")
        if record.source_last_edited_at:
            lines.append(f"Last edited in Notion: {record.source_last_edited_at}")

    entry = services.links.find_by_source_id(page_id)
    if entry is not None:
        lines.append(f"URL: {services.resolver.resolve(entry.source_id)}")
        if entry.sync_error:
            lines.append(f"[red]Last error: {entry.sync_error}[/red]")

    console.print(Panel("\n".join(lines), title=page_id))


@app.command()
def pages(
    limit: int = typer.Option(20, "--limit", "-l", help="Max pages to list (up to 100)"),
) -> None:
    """List pages shared with the integration."""
    from .sync import ContentFetcher

    services = _services()
    fetcher = ContentFetcher(_notion_client())
    summaries = fetcher.fetch_pages_list(limit)

    if not summaries:
        print_warning("No pages found. Share pages with your integration in Notion.")
        return

    table = Table(title="Notion Pages", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan", max_width=50)
    table.add_column("Last Edited")
    table.add_column("Status", style="yellow")

    for page in summaries:
        table.add_row(
            page.id,
            page.title,
            page.last_edited_time or "-",
            services.links.get_comprehensive_status(page.id).value,
        )

    console.print(table)


@app.command()
def render(
    document_id: int = typer.Argument(..., help="Target document ID"),
) -> None:
    """Print a document's content with downloaded images filled in."""
    from .store import DocumentStore

    services = _services()
    content = DocumentStore(services.db).render(document_id, media=services.media)
    if content is None:
        print_error(f"Document {document_id} not found")
        raise typer.Exit(1)
    console.print(content, markup=False, highlight=False)


@app.command()
def route(
    path: str = typer.Argument(..., help="Routing path such as /notion/my-page"),
) -> None:
    """Resolve a /notion/<slug-or-id> path to its target URL."""
    services = _services()
    target = services.resolver.route(path)
    if target is None:
        print_error(f"No page registered for {path}")
        raise typer.Exit(1)
    console.print(target)


@app.command()
def links(
    pending: bool = typer.Option(False, "--pending", help="Only show unsynced targets"),
) -> None:
    """List the link registry."""
    services = _services()
    entries = services.links.list_entries(LinkStatus.PENDING if pending else None)

    table = Table(title="Link Registry", show_header=True, header_style="bold magenta")
    table.add_column("Source ID", style="dim")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Slug")
    table.add_column("Status", style="yellow")
    table.add_column("Hits", justify="right")

    for entry in entries:
        table.add_row(
            entry.source_id,
            entry.source_title,
            entry.slug or "-",
            entry.sync_status.value,
            str(entry.access_count),
        )

    console.print(table)


# ============================================================================
# Database Commands
# ============================================================================


@app.command()
def databases() -> None:
    """List databases shared with the integration."""
    from .sync import DatabaseFetcher

    found = DatabaseFetcher(_notion_client()).list_databases()
    if not found:
        print_warning("No databases found. Share databases with your integration in Notion.")
        return

    table = Table(title="Notion Databases", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan", max_width=50)
    table.add_column("Last Edited")

    for database in found:
        table.add_row(database["id"], database["title"], database["last_edited_time"] or "-")

    console.print(table)


@app.command("sync-db")
def sync_db(
    database_id: str = typer.Argument(..., help="Notion database ID"),
    run_jobs: bool = typer.Option(
        True, "--run-jobs/--no-run-jobs", help="Process queued batches before exiting"
    ),
) -> None:
    """Sync every row of a Notion database."""
    services = _services()
    processor = _batch_processor(services, with_fetcher=True)

    result = processor.sync_database(database_id)
    if not result.success:
        print_error(result.error or "Database sync failed")
        hint = hint_for(result.error)
        if hint:
            print_info(hint)
        raise typer.Exit(1)

    if result.batch_id is None:
        print_success(f"Synced {result.row_count} rows into document {result.target_document_id}")
        return

    print_info(f"Queued {result.row_count} rows as batch {result.batch_id}")
    if run_jobs:
        services.queue.run_until_idle()
        _print_batch(processor.get_batch(result.batch_id))


@app.command()
def rows(
    document_id: int = typer.Argument(..., help="Database document ID"),
    status_filter: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by Status"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Search titles"),
    limit: int = typer.Option(50, "--limit", "-l", help="Max rows"),
    offset: int = typer.Option(0, "--offset", help="Rows to skip"),
) -> None:
    """List the synced rows of a database."""
    from .rows import RowRepository

    repository = RowRepository(get_db())
    found = repository.get_rows(document_id, limit, offset, status=status_filter, search=search)
    total = repository.count_rows(document_id, status=status_filter, search=search)

    table = Table(
        title=f"Rows ({len(found)} of {total})", show_header=True, header_style="bold magenta"
    )
    table.add_column("Title", style="cyan", max_width=50)
    table.add_column("Status", style="yellow")
    table.add_column("Last Edited")

    for row in found:
        table.add_row(row.title, row.status or "-", row.last_edited_time or "-")

    console.print(table)


# ============================================================================
# Batch and Job Commands
# ============================================================================


def _print_batch(batch) -> None:
    if batch is None:
        print_warning("No batch job found")
        return

    colors = {
        BatchStatus.COMPLETED: "green",
        BatchStatus.FAILED: "red",
        BatchStatus.CANCELLED: "yellow",
    }
    color = colors.get(batch.status, "cyan")
    filled = batch.percentage // 5
    bar = "█" * filled + "░" * (20 - filled)
    lines = [
        f"Status: [{color}]{batch.status.value}[/{color}]",
        f"Batches: {batch.current_batch_number}/{batch.total_batches}",
        f"Rows: {batch.processed_items} synced, {batch.failed_items} failed, {batch.total_items} total",
        f"Progress: [{bar}] {batch.percentage}%",
    ]
    if batch.last_error:
        lines.append(f"[red]Error: {batch.last_error}[/red]")
    console.print(Panel("\n".join(lines), title=batch.batch_id))


@batch_app.command("status")
def batch_status(
    document_id: int = typer.Argument(..., help="Database document ID"),
) -> None:
    """Show progress of the latest batch for a database document."""
    services = _services()
    _print_batch(_batch_processor(services).get_status(document_id))


@batch_app.command("cancel")
def batch_cancel(
    batch_id: str = typer.Argument(..., help="Batch ID"),
) -> None:
    """Stop a batch between batches."""
    services = _services()
    if _batch_processor(services).cancel(batch_id):
        print_success(f"Cancelled {batch_id}")
    else:
        print_warning(f"{batch_id} is not running")


@jobs_app.command("run")
def jobs_run(
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for delayed retries"),
) -> None:
    """Run queued background jobs until the queue is empty."""
    services = _services()
    # Handlers register themselves when their owners are built
    _batch_processor(services)
    ran = services.queue.run_until_idle(wait=wait)
    print_success(f"Ran {ran} job(s)")


@app.command()
def config() -> None:
    """Show configuration and check it for problems."""
    cfg = get_config()
    lines = [
        f"Database: {cfg.db_path}",
        f"Media: {cfg.media_dir}",
        f"Site URL: {cfg.site_url}",
        f"Notion token: {'set' if cfg.has_notion_config() else '[red]missing[/red]'}",
        f"Batch size: {cfg.batch_size}",
        f"External media: {cfg.external_media_strategy}",
        f"Defer media: {cfg.defer_media}",
    ]
    console.print(Panel("\n".join(lines), title="Configuration"))

    problems = cfg.validate()
    for problem in problems:
        print_error(problem)
    if problems:
        raise typer.Exit(1)
