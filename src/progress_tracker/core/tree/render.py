"""Render a checklist document as an annotated markdown progress view."""

import io

from progress_tracker.core.document.checklist import ChecklistDocument
from progress_tracker.core.tree.navigation import visible_items
from progress_tracker.models.item import ItemKind


def render_document(
    document: ChecklistDocument,
    *,
    show_ids: bool = False,
    respect_collapsed: bool = True,
) -> str:
    """Render the document with per-section progress.

    Args:
        document: The document to render.
        show_ids: Append each item's ID (needed to address items from the CLI).
        respect_collapsed: Hide the sections of collapsed headers.

    Returns:
        Markdown text, headers annotated with ``(checked/total)``.
    """
    items = document.items
    if respect_collapsed:
        items = visible_items(items, document.expanded_headers)

    out = io.StringIO()
    for item in items:
        indent = " " * item.indentation
        if item.kind is ItemKind.HEADER:
            stats = document.header_stats(item.id)
            line = f"{'#' * item.header_level} {item.text}"
            if stats.total:
                line += f" ({stats.checked}/{stats.total})"
            if not document.is_header_expanded(item.id):
                line += " [+]"
        elif item.kind is ItemKind.CHECKBOX:
            mark = "x" if item.checked else " "
            line = f"{indent}- [{mark}] {item.text}"
            children = document.child_stats(item.id)
            if children.total:
                line += f" ({children.checked}/{children.total})"
            if item.due_date is not None:
                line += f" due:{item.due_date.isoformat()}"
        else:
            line = f"{indent}{item.text}"

        if show_ids:
            line += f"  [id={item.id}]"
        out.write(line + "\n")

    return out.getvalue()


def render_summary(document: ChecklistDocument) -> str:
    """One-line completion summary."""
    total = len(document.checkbox_items)
    checked = len(document.checked_items)
    return f"{document.filename}: {checked}/{total} done ({document.completion_percentage:.0f}%)"
