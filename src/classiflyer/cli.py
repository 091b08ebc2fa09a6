"""Typer-based CLI for Classiflyer."""

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from .config import ClassiflyerConfig
from .errors import ClassiflyerError, ConfigError
from .hierarchy import HierarchyEngine
from .index_store import IndexStore
from .ledger import read_ledger_tail
from .lifecycle import LifecycleCoordinator
from .models import Binder, Folder
from .service import build_store
from .tree import count_content

app = typer.Typer(
    name="classiflyer",
    help="Classiflyer - binders, folders and files on your own disk",
    add_completion=False,
)

console = Console()

ROOT_HELP = "Root directory (default: CLASSIFLYER_ROOT env, then the config file)"


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
):
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@contextmanager
def handle_errors() -> Iterator[None]:
    """Print store errors in red and exit with status 1."""
    try:
        yield
    except ClassiflyerError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(code=1)


def _open_store(root: Optional[str]) -> IndexStore:
    config = ClassiflyerConfig.from_env(cli_root=root)
    store = build_store(config)
    if not store.paths.db_file.exists():
        console.print(f"[red]Error: No index found at {store.paths.db_file}[/red]")
        console.print("[yellow]Run 'classiflyer init' first[/yellow]")
        raise typer.Exit(code=1)
    return store


def _engine(root: Optional[str]) -> HierarchyEngine:
    return HierarchyEngine(_open_store(root))


def _lifecycle(root: Optional[str]) -> LifecycleCoordinator:
    return LifecycleCoordinator(_open_store(root))


def _binder_table(title: str, binders: list[tuple[str, Binder]]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Folders", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("Location", style="dim")
    for key, binder in binders:
        n_folders, n_files = count_content(binder)
        table.add_row(key, binder.name, str(n_folders), str(n_files), binder.app_path)
    return table


def _add_folders(node: Tree, folders: dict[str, Folder]) -> None:
    for key, folder in folders.items():
        branch = node.add(f"[bold]{folder.name}[/bold] [dim]{key}[/dim]")
        _add_folders(branch, folder.folders)
        for file_key, ref in folder.files.items():
            branch.add(f"{ref.name} [dim]{file_key}[/dim]")


@app.command()
def init(
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Create the root directory layout and an empty index.

    Idempotent: an existing index is left untouched.
    """
    config = ClassiflyerConfig.from_env(cli_root=root)
    store = build_store(config)
    with handle_errors():
        created = store.bootstrap()
    if created:
        console.print(f"[green]Initialized Classiflyer root at:[/green] {config.root_path}")
    else:
        console.print(f"[yellow]Index already exists at:[/yellow] {store.paths.db_file}")
    for directory in store.paths.get_all_directories():
        console.print(f"  [dim]{directory}[/dim]")


# Config

config_app = typer.Typer(help="Root directory configuration")
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show():
    """Show the resolved root and where it comes from."""
    config = ClassiflyerConfig.from_env()
    config_store = config.config_store()
    console.print(f"[bold]Root:[/bold]        {config.root_path}")
    console.print(f"[bold]Config file:[/bold] {config_store.config_file}")
    console.print(f"[bold]Journal:[/bold]     {'enabled' if config.journal_enabled else 'disabled'}")


@config_app.command("set-root")
def config_set_root(path: str = typer.Argument(..., help="New root directory")):
    """Bootstrap a root directory and make it the configured one."""
    with handle_errors():
        if not path.strip():
            raise ConfigError("Invalid path: the root directory cannot be empty")
        config = ClassiflyerConfig.from_env(cli_root=path)
        build_store(config).bootstrap()
        new_root = config.config_store().set_root(config.root_path)
    console.print(f"[green]Root set to:[/green] {new_root}")


# Binders

binder_app = typer.Typer(help="Binder commands")
app.add_typer(binder_app, name="binder")


@binder_app.command("create")
def binder_create(
    name: str = typer.Argument(..., help="Binder name"),
    primary: str = typer.Option(None, "--primary", help="Primary color"),
    secondary: str = typer.Option(None, "--secondary", help="Secondary color"),
    tertiary: str = typer.Option(None, "--tertiary", help="Tertiary color"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Create an empty binder."""
    with handle_errors():
        key, binder = _engine(root).create_binder(name, primary, secondary, tertiary)
    console.print(f"[green]Created binder {key}:[/green] {binder.sys_path}")


@binder_app.command("create-from")
def binder_create_from(
    source: Path = typer.Argument(..., help="Existing directory to import"),
    name: str = typer.Option(None, "--name", "-n", help="Binder name (default: directory name)"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Import a directory (copied, never moved) as a new binder."""
    with handle_errors():
        key, binder = _engine(root).create_binder_from_folder(source, name)
    n_folders, n_files = count_content(binder)
    console.print(
        f"[green]Imported {source} as {key}:[/green] {n_folders} folder(s), {n_files} file(s)"
    )


@binder_app.command("list")
def binder_list(root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP)):
    """List active binders."""
    with handle_errors():
        binders = _engine(root).list_binders()
    if not binders:
        console.print("[dim]No binders[/dim]")
        return
    console.print(_binder_table(f"{len(binders)} Binder(s)", binders))


@binder_app.command("show")
def binder_show(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Show a binder and its folder tree."""
    with handle_errors():
        binder = _engine(root).get_binder(binder_id)
    tree = Tree(f"[bold magenta]{binder.name}[/bold magenta] [dim]{binder_id} ({binder.zone.value})[/dim]")
    _add_folders(tree, binder.folders)
    for file_key, ref in binder.files.items():
        tree.add(f"{ref.name} [dim]{file_key}[/dim]")
    console.print(tree)
    console.print(f"[dim]{binder.sys_path}[/dim]")


@binder_app.command("rename")
def binder_rename(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    name: str = typer.Argument(..., help="New name"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Rename a binder (active or archived)."""
    with handle_errors():
        binder = _engine(root).update_binder(binder_id, name=name)
    console.print(f"[green]Renamed {binder_id}:[/green] {binder.sys_path}")


@binder_app.command("delete")
def binder_delete(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Permanently delete a binder, bypassing the trash."""
    with handle_errors():
        deleted = _engine(root).delete_binder(binder_id)
    if not deleted:
        console.print(f"[red]Error: Binder not found: {binder_id}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Deleted {binder_id}[/green]")


@binder_app.command("archive")
def binder_archive(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    folder: str = typer.Option(None, "--folder", help="Archive folder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Archive an active binder."""
    with handle_errors():
        binder = _lifecycle(root).archive(binder_id, folder)
    console.print(f"[green]Archived {binder_id}:[/green] {binder.sys_path}")


@binder_app.command("unarchive")
def binder_unarchive(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Bring an archived binder back to the active binders."""
    with handle_errors():
        binder = _lifecycle(root).unarchive(binder_id)
    console.print(f"[green]Unarchived {binder_id}:[/green] {binder.sys_path}")


@binder_app.command("move")
def binder_move(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    folder: str = typer.Option("root", "--folder", help="Target archive folder ID, or 'root'"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Move an archived binder to another archive folder."""
    with handle_errors():
        binder = _lifecycle(root).move_to_archive_folder(binder_id, folder)
    console.print(f"[green]Moved {binder_id}:[/green] {binder.app_path}")


@binder_app.command("trash")
def binder_trash(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    origin: str = typer.Option("mes", "--from", help="Origin zone: 'mes' or 'archives'"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Move a binder to the trash."""
    with handle_errors():
        _lifecycle(root).trash(binder_id, origin)
    console.print(f"[green]Moved {binder_id} to trash[/green]")


# Folders and files

folder_app = typer.Typer(help="Folder commands")
app.add_typer(folder_app, name="folder")


@folder_app.command("create")
def folder_create(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    name: str = typer.Argument(..., help="Folder name"),
    parent: str = typer.Option(None, "--parent", help="Parent folder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Create a folder in a binder."""
    with handle_errors():
        key, folder = _engine(root).create_folder(binder_id, name, parent)
    console.print(f"[green]Created folder {key}:[/green] {folder.sys_path}")


@folder_app.command("rename")
def folder_rename(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    folder_id: str = typer.Argument(..., help="Folder ID"),
    name: str = typer.Argument(..., help="New name"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    with handle_errors():
        folder = _engine(root).rename_folder(binder_id, folder_id, name)
    console.print(f"[green]Renamed {folder_id}:[/green] {folder.sys_path}")


@folder_app.command("delete")
def folder_delete(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    folder_id: str = typer.Argument(..., help="Folder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Delete a folder and everything inside it."""
    with handle_errors():
        _engine(root).delete_folder(binder_id, folder_id)
    console.print(f"[green]Deleted folder {folder_id}[/green]")


@app.command()
def upload(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    files: list[Path] = typer.Argument(..., help="Files to copy into the binder"),
    folder: str = typer.Option(None, "--folder", help="Target folder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Copy files into a binder or one of its folders."""
    with handle_errors():
        saved = _engine(root).upload_files(binder_id, files, folder)
    for key, ref in saved:
        console.print(f"  [green]✓[/green] {ref.name} [dim]{key}[/dim]")
    skipped = len(files) - len(saved)
    if skipped:
        console.print(f"[yellow]{skipped} file(s) could not be copied[/yellow]")


# Archive folders

archive_folder_app = typer.Typer(help="Archive folder commands")
app.add_typer(archive_folder_app, name="archive-folder")


@archive_folder_app.command("create")
def archive_folder_create(
    name: str = typer.Argument(..., help="Folder name"),
    parent: str = typer.Option(None, "--parent", help="Parent archive folder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    with handle_errors():
        folder = _lifecycle(root).create_archive_folder(name, parent)
    console.print(f"[green]Created archive folder {folder.id}:[/green] {folder.app_path}")


@archive_folder_app.command("list")
def archive_folder_list(root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP)):
    """List archive folders with the binders archived in each."""
    with handle_errors():
        lifecycle = _lifecycle(root)
        folders = lifecycle.list_archive_folders()
        archived = lifecycle.list_archives()

    table = Table(title=f"{len(folders)} Archive Folder(s)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Path", style="magenta")
    table.add_column("Binders", justify="right")
    table.add_row("root", "/archives", str(sum(1 for _, b in archived if not b.archive_folder_id)))
    for folder in sorted(folders, key=lambda f: f.app_path):
        count = sum(1 for _, b in archived if b.archive_folder_id == folder.id)
        table.add_row(folder.id, folder.app_path, str(count))
    console.print(table)


@archive_folder_app.command("rename")
def archive_folder_rename(
    folder_id: str = typer.Argument(..., help="Archive folder ID"),
    name: str = typer.Argument(..., help="New name"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    with handle_errors():
        folder = _lifecycle(root).rename_archive_folder(folder_id, name)
    console.print(f"[green]Renamed {folder_id}:[/green] {folder.app_path}")


@archive_folder_app.command("delete")
def archive_folder_delete(
    folder_id: str = typer.Argument(..., help="Archive folder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Permanently delete an archive folder and its directory."""
    with handle_errors():
        _lifecycle(root).delete_archive_folder(folder_id)
    console.print(f"[green]Deleted archive folder {folder_id}[/green]")


@archive_folder_app.command("trash")
def archive_folder_trash(
    folder_id: str = typer.Argument(..., help="Archive folder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Move an archive folder and its binders to the trash."""
    with handle_errors():
        group = _lifecycle(root).trash_archive_folder(folder_id)
    console.print(f"[green]Moved {folder_id} to trash with {len(group.classeurs)} binder(s)[/green]")


# Binder groups

group_app = typer.Typer(help="Binder group commands")
app.add_typer(group_app, name="group")


@group_app.command("create")
def group_create(
    name: str = typer.Argument(..., help="Group name"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    with handle_errors():
        group = _engine(root).create_binder_group(name)
    console.print(f"[green]Created group {group.id}:[/green] {group.name}")


@group_app.command("list")
def group_list(root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP)):
    with handle_errors():
        groups = _engine(root).list_binder_groups()
    if not groups:
        console.print("[dim]No binder groups[/dim]")
        return
    table = Table(title=f"{len(groups)} Binder Group(s)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Binders", style="yellow")
    for group, members in groups:
        table.add_row(group.id, group.name, ", ".join(members) or "-")
    console.print(table)


@group_app.command("rename")
def group_rename(
    group_id: str = typer.Argument(..., help="Group ID"),
    name: str = typer.Argument(..., help="New name"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    with handle_errors():
        _engine(root).rename_binder_group(group_id, name)
    console.print(f"[green]Renamed {group_id}[/green]")


@group_app.command("assign")
def group_assign(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    group_id: Optional[str] = typer.Argument(None, help="Group ID (omit to ungroup)"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Put an active binder in a group, or take it out."""
    with handle_errors():
        _engine(root).move_binder_to_group(binder_id, group_id)
    target = group_id or "no group"
    console.print(f"[green]{binder_id} -> {target}[/green]")


@group_app.command("trash")
def group_trash(
    group_id: str = typer.Argument(..., help="Group ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Move a group and all its binders to the trash."""
    with handle_errors():
        group = _lifecycle(root).trash_binder_group(group_id)
    console.print(f"[green]Moved {group_id} to trash with {len(group.classeurs)} binder(s)[/green]")


# Trash

trash_app = typer.Typer(help="Trash commands")
app.add_typer(trash_app, name="trash")


@trash_app.command("list")
def trash_list(root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP)):
    with handle_errors():
        binders, groups = _lifecycle(root).list_trash()
    if not binders and not groups:
        console.print("[dim]Trash is empty[/dim]")
        return
    table = Table(title="Trash")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Kind", style="magenta")
    table.add_column("Name")
    table.add_column("From", style="yellow")
    table.add_column("Deleted (UTC)", style="dim")
    for key, binder in binders:
        deleted = binder.deleted_at.strftime("%Y-%m-%d %H:%M:%S") if binder.deleted_at else "-"
        table.add_row(key, "binder", binder.name, binder.deleted_from or "-", deleted)
    for group in groups:
        name = f"{group.name} ({len(group.classeurs)} binders)"
        table.add_row(
            group.id, group.kind, name, group.deleted_from, group.deleted_at.strftime("%Y-%m-%d %H:%M:%S")
        )
    console.print(table)


@trash_app.command("restore")
def trash_restore(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    with handle_errors():
        binder = _lifecycle(root).restore(binder_id)
    console.print(f"[green]Restored {binder_id}:[/green] {binder.app_path}")


@trash_app.command("restore-group")
def trash_restore_group(
    group_key: str = typer.Argument(..., help="Trashed group ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    with handle_errors():
        group = _lifecycle(root).restore_group(group_key)
    console.print(f"[green]Restored {group.kind} {group_key}[/green]")


@trash_app.command("purge")
def trash_purge(
    binder_id: str = typer.Argument(..., help="Binder ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Permanently delete one trashed binder."""
    with handle_errors():
        _lifecycle(root).purge_one(binder_id)
    console.print(f"[green]Purged {binder_id}[/green]")


@trash_app.command("purge-group")
def trash_purge_group(
    group_key: str = typer.Argument(..., help="Trashed group ID"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    with handle_errors():
        _lifecycle(root).purge_group(group_key)
    console.print(f"[green]Purged {group_key}[/green]")


@trash_app.command("empty")
def trash_empty(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Permanently delete everything in the trash."""
    if not yes and not typer.confirm("Permanently delete everything in the trash?"):
        raise typer.Exit(code=0)
    with handle_errors():
        count = _lifecycle(root).purge_all()
    console.print(f"[green]Purged {count} trash entr{'y' if count == 1 else 'ies'}[/green]")


# Journal

journal_app = typer.Typer(help="Journal commands")
app.add_typer(journal_app, name="journal")


@journal_app.command("tail")
def journal_tail(
    n: int = typer.Option(20, "--n", help="Number of recent events to display"),
    full: bool = typer.Option(False, "--full", help="Show full payloads with JSON pretty-print"),
    event_type: str = typer.Option(None, "--type", help="Only show events of this type"),
    root: str = typer.Option(None, "--root", "-r", help=ROOT_HELP),
):
    """Display the last N events from the journal."""
    store = _open_store(root)
    events = read_ledger_tail(store.paths.journal_file, n=n, event_type=event_type)

    if not events:
        console.print("[dim]No events in journal[/dim]")
        return

    if full:
        for i, event in enumerate(events, 1):
            console.print(f"[cyan]Event {i}/{len(events)}[/cyan]")
            console.print(f"  [dim]Event ID:[/dim]    {event.event_id}")
            console.print(f"  [dim]Timestamp:[/dim]   {event.ts.strftime('%Y-%m-%d %H:%M:%S')} UTC")
            console.print(f"  [dim]Event Type:[/dim]  [magenta]{event.event_type}[/magenta]")
            console.print(f"  [dim]Entity:[/dim]      {event.entity_id or '-'}")
            for line in json.dumps(event.payload, indent=2, ensure_ascii=False).split("\n"):
                console.print(f"    {line}")
            console.print()
        return

    table = Table(title=f"Last {len(events)} Journal Event(s)")
    table.add_column("Timestamp (UTC)", style="cyan", no_wrap=True)
    table.add_column("Event Type", style="magenta")
    table.add_column("Entity", style="yellow")
    table.add_column("Payload", style="dim")
    for event in events:
        payload_str = str(event.payload)
        if len(payload_str) > 60:
            payload_str = payload_str[:57] + "..."
        table.add_row(
            event.ts.strftime("%Y-%m-%d %H:%M:%S"), event.event_type, event.entity_id or "-", payload_str
        )
    console.print(table)


@app.command()
def version():
    """Show Classiflyer version."""
    from . import __version__

    console.print(f"Classiflyer v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
