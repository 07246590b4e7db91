"""MCP server exposing checklist progress tools."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from progress_tracker.config import SETTINGS_FILENAME, resolve_data_directory
from progress_tracker.core.document.checklist import ChecklistDocument
from progress_tracker.core.session.app_state import AppState
from progress_tracker.core.session.project import DocumentLoadError, ProjectSession
from progress_tracker.core.store.progress_store import ProgressStore
from progress_tracker.core.store.settings import SortOption, load_settings, save_settings
from progress_tracker.core.tree.render import render_document
from progress_tracker.models.item import Item, ItemKind


def _serialize_item(document: ChecklistDocument, item: Item) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": item.id,
        "kind": item.kind.value,
        "text": item.text,
        "indentation": item.indentation,
        "position": item.position,
    }
    if item.kind is ItemKind.HEADER:
        stats = document.header_stats(item.id)
        entry["level"] = item.header_level
        entry["expanded"] = document.is_header_expanded(item.id)
        entry["checked_count"] = stats.checked
        entry["total_count"] = stats.total
    elif item.kind is ItemKind.CHECKBOX:
        entry["checked"] = item.checked
        children = document.child_stats(item.id)
        if children.total:
            entry["children_checked"] = children.checked
            entry["children_total"] = children.total
        if item.due_date is not None:
            entry["due_date"] = item.due_date.isoformat()
    return entry


def _summary(project: ProjectSession) -> dict[str, Any]:
    document = project.document
    return {
        "path": str(project.path),
        "filename": project.filename,
        "checked": len(document.checked_items),
        "total": len(document.checkbox_items),
        "completion": round(document.completion_percentage, 2),
        "can_undo": document.can_undo,
        "can_redo": document.can_redo,
    }


def _resolve_project(state: AppState, path: str | None) -> ProjectSession | None:
    if path:
        return state.get_project(path)
    return state.active_project


def _not_open(path: str | None) -> dict[str, Any]:
    if path:
        return {"error": f"Project '{path}' is not open."}
    return {"error": "No project is open."}


# --- Core functions (testable without MCP context) ---


async def progress_open(state: AppState, *, path: str) -> dict[str, Any]:
    """Open a markdown checklist (or return the already open one)."""
    try:
        project = await state.open_project(path)
    except DocumentLoadError as e:
        return {"error": f"Failed to load '{path}': {e}"}
    return _summary(project)


async def progress_close(state: AppState, *, path: str) -> dict[str, Any]:
    if not await state.close_project(path):
        return _not_open(path)
    return {"closed": path}


def progress_list_projects(state: AppState, *, sort: str | None = None) -> dict[str, Any]:
    """List open projects, sorted by name, last_accessed or completion."""
    try:
        option = SortOption(sort) if sort else None
    except ValueError:
        return {"error": f"Invalid sort '{sort}'. Use one of: {', '.join(SortOption)}."}

    active = state.active_project
    projects = []
    for project in state.sorted_projects(option):
        entry = _summary(project)
        entry["active"] = project is active
        entry["has_external_changes"] = project.has_external_changes()
        projects.append(entry)
    return {"projects": projects, "count": len(projects)}


def progress_read(
    state: AppState,
    *,
    path: str | None = None,
    output_format: str = "markdown",
    include_collapsed: bool = False,
) -> dict[str, Any]:
    """Read a project's checklist as annotated markdown or structured JSON.

    Args:
        path: Project path (defaults to the active project).
        output_format: "markdown" or "json".
        include_collapsed: Include sections under collapsed headers.
    """
    project = _resolve_project(state, path)
    if project is None:
        return _not_open(path)
    document = project.document

    result = _summary(project)
    if output_format == "markdown":
        result["content"] = render_document(
            document, show_ids=True, respect_collapsed=not include_collapsed
        )
    elif output_format == "json":
        result["items"] = [_serialize_item(document, item) for item in document.items]
    else:
        return {"error": f"Invalid output_format '{output_format}'. Use markdown or json."}
    return result


def progress_set_checked(
    state: AppState,
    *,
    item_id: str,
    checked: bool,
    path: str | None = None,
) -> dict[str, Any]:
    """Check or uncheck a checkbox, cascading to children and completed parents."""
    project = _resolve_project(state, path)
    if project is None:
        return _not_open(path)

    item = project.document.get_item(item_id)
    if item is None:
        return {"error": f"Item '{item_id}' not found."}
    if item.kind is not ItemKind.CHECKBOX:
        return {"error": f"Item '{item_id}' is not a checkbox."}

    before = {i.id: i.checked for i in project.document.checkbox_items}
    project.set_checked(item_id, checked)
    changed = [i.id for i in project.document.checkbox_items if before.get(i.id) != i.checked]

    result = _summary(project)
    result["changed"] = changed
    return result


def progress_undo(state: AppState, *, path: str | None = None) -> dict[str, Any]:
    project = _resolve_project(state, path)
    if project is None:
        return _not_open(path)
    undone = project.undo()
    result = _summary(project)
    result["undone"] = undone
    return result


def progress_redo(state: AppState, *, path: str | None = None) -> dict[str, Any]:
    project = _resolve_project(state, path)
    if project is None:
        return _not_open(path)
    redone = project.redo()
    result = _summary(project)
    result["redone"] = redone
    return result


def progress_toggle_header(
    state: AppState,
    *,
    header_id: str,
    path: str | None = None,
) -> dict[str, Any]:
    project = _resolve_project(state, path)
    if project is None:
        return _not_open(path)
    item = project.document.get_item(header_id)
    if item is None or item.kind is not ItemKind.HEADER:
        return {"error": f"Header '{header_id}' not found."}
    return {"header_id": header_id, "expanded": project.toggle_header(header_id)}


def progress_next_items(
    state: AppState,
    *,
    path: str | None = None,
    count: int = 3,
) -> dict[str, Any]:
    """Last completed checkbox and the next unchecked ones (with their header)."""
    project = _resolve_project(state, path)
    if project is None:
        return _not_open(path)
    document = project.document
    last, upcoming = document.next_items(max(1, min(count, 50)))
    return {
        "last_completed": _serialize_item(document, last) if last else None,
        "upcoming": [_serialize_item(document, item) for item in upcoming],
        "completion": round(document.completion_percentage, 2),
    }


async def progress_reload(state: AppState, *, path: str | None = None) -> dict[str, Any]:
    """Re-read the file from disk, keeping progress for lines that still match."""
    project = _resolve_project(state, path)
    if project is None:
        return _not_open(path)
    try:
        applied = await project.reload()
    except DocumentLoadError as e:
        return {"error": f"Reload failed: {e}"}
    result = _summary(project)
    result["applied"] = applied
    return result


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    state: AppState
    data_dir: Path
    # Document mutations are serialized through this lock.
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Create application state on startup, flush saves on shutdown."""
    data_dir = resolve_data_directory()
    settings_path = data_dir / SETTINGS_FILENAME
    state = AppState(ProgressStore(data_dir), load_settings(settings_path))
    logger.info("Progress tracker data directory: {}", data_dir)
    try:
        yield ServerContext(state=state, data_dir=data_dir)
    finally:
        await state.shutdown()
        try:
            save_settings(state.settings, settings_path)
        except OSError:
            logger.warning("Could not save settings to {}", settings_path, exc_info=True)


mcp_server = FastMCP(
    "progress-tracker",
    instructions="""\
Tracks completion of markdown checklists (`- [ ]` / `- [x]` lines under `#` headers).

1. Open a file with progress_open_tool.
2. Read it with progress_read_tool; every line carries an [id=...] you pass to
   the other tools.
3. Checking a checkbox also checks its indented children, and checks its parent
   once all siblings are done. Unchecking never unchecks a parent.
4. progress_undo_tool / progress_redo_tool revert the last checkbox actions.

Progress is saved automatically and survives edits to the markdown file.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def progress_open_tool(ctx: Context, path: str) -> dict[str, Any]:
    """Open a markdown checklist file and restore its saved progress.

    Args:
        path: Path to the markdown file.
    """
    server = _ctx(ctx)
    async with server.lock:
        return await progress_open(server.state, path=path)


@mcp_server.tool()
async def progress_close_tool(ctx: Context, path: str) -> dict[str, Any]:
    """Close an open checklist, saving pending progress."""
    server = _ctx(ctx)
    async with server.lock:
        return await progress_close(server.state, path=path)


@mcp_server.tool()
async def progress_list_projects_tool(ctx: Context, sort: str | None = None) -> dict[str, Any]:
    """List open checklists with their completion.

    Args:
        sort: "name", "last_accessed" or "completion".
    """
    server = _ctx(ctx)
    async with server.lock:
        return progress_list_projects(server.state, sort=sort)


@mcp_server.tool()
async def progress_read_tool(
    ctx: Context,
    path: str | None = None,
    output_format: str = "markdown",
    include_collapsed: bool = False,
) -> dict[str, Any]:
    """Read a checklist with per-section progress and item IDs.

    Args:
        path: Project path (defaults to the active project).
        output_format: "markdown" (human-readable) or "json" (structured).
        include_collapsed: Include sections under collapsed headers.
    """
    server = _ctx(ctx)
    async with server.lock:
        return progress_read(
            server.state,
            path=path,
            output_format=output_format,
            include_collapsed=include_collapsed,
        )


@mcp_server.tool()
async def progress_set_checked_tool(
    ctx: Context,
    item_id: str,
    checked: bool,
    path: str | None = None,
) -> dict[str, Any]:
    """Check or uncheck a checkbox.

    Args:
        item_id: Checkbox ID from progress_read_tool.
        checked: New state.
        path: Project path (defaults to the active project).
    """
    server = _ctx(ctx)
    async with server.lock:
        return progress_set_checked(server.state, item_id=item_id, checked=checked, path=path)


@mcp_server.tool()
async def progress_undo_tool(ctx: Context, path: str | None = None) -> dict[str, Any]:
    """Undo the last checkbox action (up to 10 steps)."""
    server = _ctx(ctx)
    async with server.lock:
        return progress_undo(server.state, path=path)


@mcp_server.tool()
async def progress_redo_tool(ctx: Context, path: str | None = None) -> dict[str, Any]:
    """Redo the last undone checkbox action."""
    server = _ctx(ctx)
    async with server.lock:
        return progress_redo(server.state, path=path)


@mcp_server.tool()
async def progress_toggle_header_tool(
    ctx: Context,
    header_id: str,
    path: str | None = None,
) -> dict[str, Any]:
    """Expand or collapse a header section."""
    server = _ctx(ctx)
    async with server.lock:
        return progress_toggle_header(server.state, header_id=header_id, path=path)


@mcp_server.tool()
async def progress_next_items_tool(
    ctx: Context,
    path: str | None = None,
    count: int = 3,
) -> dict[str, Any]:
    """Show the last completed checkbox and the next open ones.

    Args:
        path: Project path (defaults to the active project).
        count: Number of upcoming checkboxes (1-50).
    """
    server = _ctx(ctx)
    async with server.lock:
        return progress_next_items(server.state, path=path, count=count)


@mcp_server.tool()
async def progress_reload_tool(ctx: Context, path: str | None = None) -> dict[str, Any]:
    """Reload a checklist after the file was edited, keeping matched progress."""
    server = _ctx(ctx)
    async with server.lock:
        return await progress_reload(server.state, path=path)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from progress_tracker.logging_config import LOG_FILENAME, configure_logging

    configure_logging(verbose=False, log_file=resolve_data_directory() / LOG_FILENAME)
    mcp_server.run(transport="stdio")
