"""
LedgerMirror - Command Line Interface
======================================
CLI per avvio sync e ispezione del ledger locale.

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0

Commands:
- init-db: crea lo schema
- sync: avvia la sincronizzazione
- status: height locale (e remota con --remote)
- rollback: elimina i blocchi sopra una height
- asset / assets: asset registrati
- version
"""

import asyncio
import signal
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Internal imports
from ledger_mirror.config import MirrorSettings, reload_settings, validate_config
from ledger_mirror.errors import InvalidConfigError, LedgerMirrorException
from ledger_mirror.logging_setup import setup_logging
from ledger_mirror.network.chain_client import ChainClient
from ledger_mirror.network.sync import BlockSync, SyncResult
from ledger_mirror.services.sync_service import SyncService
from ledger_mirror.storage.db import LedgerStore
from ledger_mirror.version import get_version_string


# ============================================================================
# CLI APP
# ============================================================================

app = typer.Typer(
    name="ledgermirror",
    help="LedgerMirror - local mirror of a remote block ledger",
    add_completion=False
)

console = Console()


def _settings(database_url: Optional[str]) -> MirrorSettings:
    config = reload_settings()
    if database_url:
        config = config.model_copy(update={"database_url": database_url})
    return config


def _setup_logging(config: MirrorSettings) -> None:
    setup_logging(
        log_level=config.log_level,
        log_to_file=config.log_to_file,
        log_dir=config.log_dir,
        log_format=config.log_format,
        log_rotation_mb=config.log_rotation_mb,
        log_backup_count=config.log_backup_count,
    )


DatabaseOption = typer.Option(
    None,
    "--database-url",
    "-D",
    help="SQLAlchemy database URL (default from settings)"
)


# ============================================================================
# STORAGE COMMANDS
# ============================================================================

@app.command("init-db")
def init_db(database_url: Optional[str] = DatabaseOption):
    """Create the ledger schema"""
    config = _settings(database_url)
    try:
        store = LedgerStore.from_settings(config)
        height = store.highest_height()
        store.close()
    except LedgerMirrorException as e:
        console.print(f"[red]Error initializing database: {e}[/red]")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[green]Database ready[/green]\n\n"
        f"URL: [cyan]{config.database_url}[/cyan]\n"
        f"Height: [cyan]{height if height is not None else 'empty'}[/cyan]",
        title="LedgerMirror",
        border_style="green"
    ))


@app.command("rollback")
def rollback(
    height: int = typer.Argument(..., min=0, help="Keep blocks up to this height"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    database_url: Optional[str] = DatabaseOption
):
    """Delete every block above HEIGHT"""
    config = _settings(database_url)
    store = LedgerStore.from_settings(config)

    try:
        current = store.highest_height()
        if current is None or current <= height:
            console.print(f"[yellow]Nothing to delete (local height: {current})[/yellow]")
            return

        if not yes:
            typer.confirm(f"Delete blocks {height + 1}..{current}?", abort=True)

        deleted = store.delete_above(height)
        console.print(f"[green]Deleted {deleted} blocks, local height is now {height}[/green]")
    except LedgerMirrorException as e:
        console.print(f"[red]Rollback failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()


# ============================================================================
# SYNC COMMANDS
# ============================================================================

async def _run_sync(config: MirrorSettings, seed: int, max_cycles: Optional[int]) -> Optional[SyncResult]:
    store = LedgerStore.from_settings(config)

    try:
        async with ChainClient.from_settings(config) as client:
            loop = asyncio.get_running_loop()

            if max_cycles is not None:
                sync = BlockSync.from_settings(config, store, client, seed=seed)
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.add_signal_handler(sig, sync.shutdown.set)
                return await sync.run(max_cycles=max_cycles)

            service = SyncService(config, store, client)
            service.start(seed)
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, service.request_stop)
            return await service.wait()
    finally:
        store.close()


@app.command("sync")
def sync(
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Seed index (default from settings)"),
    max_cycles: Optional[int] = typer.Option(
        None, "--max-cycles", "-n", min=1, help="Stop after N cycles (no supervisor restarts)"
    ),
    database_url: Optional[str] = DatabaseOption
):
    """Start synchronizing with the remote node"""
    config = _settings(database_url)
    _setup_logging(config)

    is_valid, errors = validate_config(config)
    for error in errors:
        console.print(f"[yellow]{error}[/yellow]")
    if not is_valid and not all(e.startswith("WARNING") for e in errors):
        raise typer.Exit(1)

    seed = config.default_seed if seed is None else seed

    try:
        console.print(f"[cyan]Syncing from seed {seed}: {config.seed_url(seed)}[/cyan]")
    except InvalidConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    try:
        result = asyncio.run(_run_sync(config, seed, max_cycles))
    except LedgerMirrorException as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        raise typer.Exit(1)

    if result is not None and result.faulted:
        console.print(f"[red]Sync faulted: {result.error}[/red]")
        raise typer.Exit(2)

    console.print(f"[green]Sync finished ({result.status.value if result else 'n/a'})[/green]")


@app.command("status")
def status(
    remote: bool = typer.Option(False, "--remote", "-r", help="Also query the remote height"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Seed index for --remote"),
    database_url: Optional[str] = DatabaseOption
):
    """Show local (and remote) height"""
    config = _settings(database_url)
    store = LedgerStore.from_settings(config)

    try:
        local = store.highest_height()
        count = store.get_block_count()
        assets = len(store.list_assets())
    except LedgerMirrorException as e:
        console.print(f"[red]Error reading store: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    table = Table(title="LedgerMirror Status", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database", str(config.database_url))
    table.add_row("Local height", str(local) if local is not None else "empty")
    table.add_row("Blocks", str(count))
    table.add_row("Assets", str(assets))

    if remote:
        seed = config.default_seed if seed is None else seed

        async def _remote_height() -> int:
            async with ChainClient.from_settings(config) as client:
                return await client.current_height(seed)

        try:
            remote_height = asyncio.run(_remote_height())
            table.add_row("Seed", f"{seed} ({config.seed_url(seed)})")
            table.add_row("Remote height", str(remote_height))
            table.add_row("Behind", str(max(remote_height - (local or 0), 0)))
        except LedgerMirrorException as e:
            table.add_row("Remote height", f"[red]{e.code}[/red]")

    console.print(table)


# ============================================================================
# QUERY COMMANDS
# ============================================================================

@app.command("asset")
def asset(
    txid: str = typer.Argument(..., help="Issuing transaction id"),
    database_url: Optional[str] = DatabaseOption
):
    """Show a registered asset"""
    config = _settings(database_url)
    store = LedgerStore.from_settings(config)

    try:
        found = store.get_asset(txid)
    finally:
        store.close()

    if found is None:
        console.print(f"[red]Asset not found: {txid}[/red]")
        raise typer.Exit(1)

    table = Table(title=found.display_name or txid, show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("TxID", found.txid)
    table.add_row("Type", found.type)
    table.add_row("Amount", str(found.amount))
    table.add_row("Precision", str(found.precision))
    table.add_row("Admin", found.admin or "-")
    table.add_row("Owner", found.owner or "-")
    table.add_row("Block", str(found.block_height))
    for variant in found.name:
        table.add_row(f"Name [{variant.get('lang')}]", variant.get("name", ""))

    console.print(table)


@app.command("assets")
def assets(database_url: Optional[str] = DatabaseOption):
    """List registered assets"""
    config = _settings(database_url)
    store = LedgerStore.from_settings(config)

    try:
        items = store.list_assets()
    finally:
        store.close()

    table = Table(title=f"Assets ({len(items)})")
    table.add_column("Name", style="green")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("TxID", style="cyan")

    for item in items:
        table.add_row(item.display_name or "-", item.type, str(item.amount), item.txid)

    console.print(table)


@app.command("version")
def version():
    """Show version"""
    console.print(f"LedgerMirror {get_version_string()}")


if __name__ == "__main__":
    app()
