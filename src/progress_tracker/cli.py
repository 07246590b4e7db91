"""CLI for the progress tracker (show, check, next, MCP server)."""

import json
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from progress_tracker.config import SETTINGS_FILENAME, resolve_data_directory
from progress_tracker.core.document.checklist import ChecklistDocument
from progress_tracker.core.parser.markdown import (
    parse,
    read_markdown_file,
    reconstruct,
    write_markdown_file,
)
from progress_tracker.core.reconcile.reconciler import reconcile
from progress_tracker.core.store.progress_store import ProgressStore
from progress_tracker.core.store.settings import Settings, load_settings
from progress_tracker.core.tree.render import render_document, render_summary
from progress_tracker.logging_config import configure_logging
from progress_tracker.models.item import Item, ItemKind

app = typer.Typer(help="Track progress of markdown checklists.")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Directory for saved progress"),
]

WriteOption = Annotated[
    bool | None,
    typer.Option("--write/--no-write", help="Write the updated markdown back to the file"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _store_and_settings(data_dir: Path | None) -> tuple[ProgressStore, Settings]:
    root = data_dir or resolve_data_directory()
    return ProgressStore(root), load_settings(root / SETTINGS_FILENAME)


def _load_document(path: Path, store: ProgressStore) -> ChecklistDocument:
    """Parse ``path`` and reconcile it with its stored snapshot."""
    try:
        raw = read_markdown_file(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Cannot read {}: {}", path, e)
        raise typer.Exit(1) from e

    merged, expanded = reconcile(parse(raw), store.load_for_path(path))
    document = ChecklistDocument(path.name)
    document.load_items(merged, expanded)
    return document


def _resolve_item(document: ChecklistDocument, ref: str) -> Item:
    """Find an item by exact ID, else by a unique case-insensitive text prefix."""
    item = document.get_item(ref)
    if item is not None:
        return item
    needle = ref.lower()
    matches = [i for i in document.items if i.text.lower().startswith(needle)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        typer.echo(f"No item matches '{ref}'.")
    else:
        typer.echo(f"'{ref}' is ambiguous ({len(matches)} items match), use an ID.")
    raise typer.Exit(1)


def _save(
    document: ChecklistDocument,
    path: Path,
    store: ProgressStore,
    *,
    write_back: bool,
) -> None:
    if not store.save_for_path(document, path):
        logger.warning("Progress could not be saved")
    if write_back:
        try:
            write_markdown_file(path, reconstruct(document.items) + "\n")
        except OSError as e:
            logger.error("Cannot write {}: {}", path, e)
            raise typer.Exit(1) from e
        logger.debug("Wrote {}", path)


@app.command()
def show(
    file: Path = typer.Argument(..., help="Markdown checklist"),
    ids: bool = typer.Option(False, "--ids", "-i", help="Show item IDs"),
    show_all: bool = typer.Option(False, "--all", "-a", help="Include collapsed sections"),
    data_dir: DataDirOption = None,
) -> None:
    """Show the checklist with progress per section."""
    store, _ = _store_and_settings(data_dir)
    document = _load_document(file, store)
    typer.echo(render_summary(document))
    typer.echo()
    typer.echo(render_document(document, show_ids=ids, respect_collapsed=not show_all), nl=False)


@app.command()
def stats(
    file: Path = typer.Argument(..., help="Markdown checklist"),
    data_dir: DataDirOption = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Print completion statistics per header."""
    store, _ = _store_and_settings(data_dir)
    document = _load_document(file, store)

    sections = []
    for item in document.items:
        if item.kind is ItemKind.HEADER:
            s = document.header_stats(item.id)
            sections.append({"header": item.text, "level": item.header_level,
                             "checked": s.checked, "total": s.total})

    if output_json:
        data = {
            "filename": document.filename,
            "checked": len(document.checked_items),
            "total": len(document.checkbox_items),
            "percentage": round(document.completion_percentage, 2),
            "sections": sections,
        }
        typer.echo(json.dumps(data, indent=2))
        return

    typer.echo(render_summary(document))
    for section in sections:
        indent = "  " * (section["level"] - 1)
        typer.echo(f"  {indent}{section['header']}: {section['checked']}/{section['total']}")


def _set_checked(
    file: Path,
    ref: str,
    checked: bool,
    data_dir: Path | None,
    write: bool | None,
) -> None:
    store, settings = _store_and_settings(data_dir)
    document = _load_document(file, store)
    item = _resolve_item(document, ref)
    if item.kind is not ItemKind.CHECKBOX:
        typer.echo(f"'{item.text}' is not a checkbox.")
        raise typer.Exit(1)

    document.set_checked(item.id, checked)
    _save(document, file, store,
          write_back=settings.write_back_markdown if write is None else write)
    typer.echo(f"{'Checked' if checked else 'Unchecked'}: {item.text}")
    typer.echo(render_summary(document))


@app.command()
def check(
    file: Path = typer.Argument(..., help="Markdown checklist"),
    item: str = typer.Argument(..., help="Item ID or unique text prefix"),
    data_dir: DataDirOption = None,
    write: WriteOption = None,
) -> None:
    """Check a checkbox (cascades to children and completed parents)."""
    _set_checked(file, item, True, data_dir, write)


@app.command()
def uncheck(
    file: Path = typer.Argument(..., help="Markdown checklist"),
    item: str = typer.Argument(..., help="Item ID or unique text prefix"),
    data_dir: DataDirOption = None,
    write: WriteOption = None,
) -> None:
    """Uncheck a checkbox and its children."""
    _set_checked(file, item, False, data_dir, write)


@app.command(name="next")
def next_cmd(
    file: Path = typer.Argument(..., help="Markdown checklist"),
    count: int = typer.Option(3, "--count", "-n", help="How many upcoming items"),
    data_dir: DataDirOption = None,
) -> None:
    """Show the last completed item and what is up next."""
    store, _ = _store_and_settings(data_dir)
    document = _load_document(file, store)
    last, upcoming = document.next_items(count)

    if last is not None:
        typer.echo(f"Last completed: {last.text}")
    if not upcoming:
        typer.echo("All done!")
        return
    typer.echo("Up next:")
    for item in upcoming:
        if item.kind is ItemKind.HEADER:
            typer.echo(f"  {'#' * item.header_level} {item.text}")
        else:
            typer.echo(f"  - [ ] {item.text}")


@app.command()
def header(
    file: Path = typer.Argument(..., help="Markdown checklist"),
    item: str = typer.Argument(..., help="Header ID or unique text prefix"),
    data_dir: DataDirOption = None,
) -> None:
    """Toggle a header between expanded and collapsed."""
    store, _ = _store_and_settings(data_dir)
    document = _load_document(file, store)
    target = _resolve_item(document, item)
    if target.kind is not ItemKind.HEADER:
        typer.echo(f"'{target.text}' is not a header.")
        raise typer.Exit(1)

    expanded = document.toggle_header(target.id)
    _save(document, file, store, write_back=False)
    typer.echo(f"{'Expanded' if expanded else 'Collapsed'}: {target.text}")


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from progress_tracker.mcp.server import run_mcp_server

    run_mcp_server()
