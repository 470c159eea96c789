"""
Wins CLI - Typer Commands

Terminal front end for the ledger. Each command starts a reconciler
(migrations + initial load), does its work and closes the store.
"""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from wins.config import WinsConfig, load_config
from wins.exceptions import ConfigError, MigrationError, StoreError
from wins.persistence.migrations import MigrationRegistry
from wins.persistence.models import MigrationPhase, MigrationStatus, ViewEntry, parse_timestamp
from wins.persistence.repository import WinRepository
from wins.persistence.store import WinStore
from wins.reconciler import ReconcilerCallbacks, WinReconciler

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(
    name="wins",
    help="Log small wins, newest first",
    add_completion=False,
    no_args_is_help=True,
)

_db_override: Path | None = None


@app.callback()
def callback(
    db: Path = typer.Option(None, "--db", help="Path to the wins database"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr"),
) -> None:
    """Wins ledger."""
    global _db_override
    _db_override = db
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _load_config() -> WinsConfig:
    try:
        config = load_config()
    except ConfigError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if _db_override:
        config.db_path = _db_override
    return config


def _make_reconciler(config: WinsConfig) -> WinReconciler:
    callbacks = ReconcilerCallbacks(on_migration_failed=_show_migration_failure)
    return WinReconciler(WinStore(config.db_path), callbacks=callbacks)


def _show_migration_failure(error: MigrationError) -> None:
    console.print("[bold red]Migration Error[/bold red]")
    console.print(str(error))


def _format_time(created_at: str) -> str:
    moment = parse_timestamp(created_at)
    if moment is None:
        return created_at
    return moment.astimezone().strftime("%Y-%m-%d %H:%M")


def render_wins(entries: tuple[ViewEntry, ...]) -> None:
    """Print the win stream as a table."""
    if not entries:
        console.print("[dim]No wins recorded yet. Do something small to start![/dim]")
        return

    table = Table(show_header=True, header_style="bold", title="My Wins")
    table.add_column("", width=2)
    table.add_column("Win", style="bold")
    table.add_column("Category", style="cyan")
    table.add_column("When", style="dim")

    for entry in entries:
        if entry.is_failed:
            marker = "[red]✗[/red]"
        elif entry.is_pending:
            marker = "[yellow]…[/yellow]"
        else:
            marker = "[green]✓[/green]"
        table.add_row(marker, entry.title, entry.category, _format_time(entry.created_at))

    console.print(table)


async def _run_add(config: WinsConfig, title: str, category: str) -> bool:
    reconciler = _make_reconciler(config)
    try:
        await reconciler.start()
        pending = await reconciler.append(title, category)
        render_wins(reconciler.view())
        if pending.is_failed:
            console.print(f"[bold red]Not saved:[/bold red] {pending.error}")
            return False
        return True
    finally:
        await reconciler.aclose()


async def _run_list(config: WinsConfig) -> None:
    reconciler = _make_reconciler(config)
    try:
        await reconciler.start()
        render_wins(reconciler.view())
    finally:
        await reconciler.aclose()


async def _run_migrate(config: WinsConfig) -> int:
    reconciler = _make_reconciler(config)
    try:
        return await reconciler.start()
    finally:
        await reconciler.aclose()


@app.command()
def add(
    title: str = typer.Argument(..., help="What did you do?"),
    category: str = typer.Option(None, "--category", "-c", help="Category (default: general)"),
) -> None:
    """Record a new win."""
    config = _load_config()
    try:
        saved = asyncio.run(_run_add(config, title, category or config.default_category))
    except MigrationError:
        raise typer.Exit(1)
    except StoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not saved:
        raise typer.Exit(1)
    console.print("[green]Nice work![/green]")


@app.command(name="list")
def list_wins() -> None:
    """Show every win, newest first."""
    try:
        asyncio.run(_run_list(_load_config()))
    except MigrationError:
        raise typer.Exit(1)
    except StoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def migrate() -> None:
    """Apply pending schema migrations."""
    try:
        applied = asyncio.run(_run_migrate(_load_config()))
    except MigrationError:
        raise typer.Exit(1)
    except StoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if applied:
        console.print(f"[green]Applied {applied} migration(s)[/green]")
    else:
        console.print("[dim]Schema is up to date[/dim]")


def _inspect_migrations(db_path: Path) -> MigrationStatus:
    registry = MigrationRegistry()
    if not db_path.exists():
        pending = registry.migrations
    else:
        repo = WinRepository(db_path, read_only=True)
        try:
            pending = registry.pending(repo)
        except MigrationError as e:
            return MigrationStatus(phase=MigrationPhase.FAILED, reason=str(e))
        finally:
            repo.close()

    if pending:
        return MigrationStatus(
            phase=MigrationPhase.PENDING,
            reason=", ".join(m.label for m in pending) + " not applied",
        )
    return MigrationStatus(phase=MigrationPhase.READY)


@app.command()
def status() -> None:
    """Show migration status and database location, without touching the database."""
    config = _load_config()
    current = _inspect_migrations(config.db_path)

    style = {
        MigrationPhase.READY: "green",
        MigrationPhase.PENDING: "yellow",
        MigrationPhase.FAILED: "red",
    }[current.phase]
    console.print(f"Database: {config.db_path}")
    console.print(f"Migrations: [{style}]{current.phase.value}[/{style}]")
    if current.reason:
        console.print(f"Reason: {current.reason}")
    if current.phase == MigrationPhase.FAILED:
        raise typer.Exit(1)


def main() -> None:
    """Entry point for the wins command."""
    app()


if __name__ == "__main__":
    main()
