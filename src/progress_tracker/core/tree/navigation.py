"""Hierarchy queries over a flat item sequence.

Items hold no parent/child pointers; every query is a linear scan bounded
by indentation (or header level) with an early exit.
"""

from collections.abc import Sequence

from progress_tracker.models.item import Item, ItemKind


def index_of(items: Sequence[Item], item_id: str) -> int | None:
    """Return the index of the item with the given ID, or None."""
    for i, item in enumerate(items):
        if item.id == item_id:
            return i
    return None


def subtree_end(items: Sequence[Item], index: int) -> int:
    """Return the first index after ``index`` that leaves its indentation subtree."""
    base = items[index].indentation
    end = index + 1
    while end < len(items) and items[end].indentation > base:
        end += 1
    return end


def parent_checkbox_index(items: Sequence[Item], index: int) -> int | None:
    """Nearest preceding checkbox with strictly smaller indentation."""
    indentation = items[index].indentation
    for i in range(index - 1, -1, -1):
        candidate = items[i]
        if candidate.kind is ItemKind.CHECKBOX and candidate.indentation < indentation:
            return i
    return None


def header_section_end(items: Sequence[Item], index: int) -> int:
    """Return the index of the next header at the same or shallower level (or len)."""
    level = items[index].header_level
    for i in range(index + 1, len(items)):
        item = items[i]
        if item.kind is ItemKind.HEADER and item.header_level <= level:
            return i
    return len(items)


def enclosing_header_index(items: Sequence[Item], index: int) -> int | None:
    """Nearest header preceding ``index``."""
    for i in range(index - 1, -1, -1):
        if items[i].kind is ItemKind.HEADER:
            return i
    return None


def visible_items(items: Sequence[Item], expanded_headers: set[str] | frozenset[str]) -> list[Item]:
    """Return items not hidden under a collapsed header.

    A collapsed header stays visible itself; its section (up to the next
    header of the same or shallower level) is hidden.
    """
    result: list[Item] = []
    i = 0
    while i < len(items):
        item = items[i]
        result.append(item)
        if item.kind is ItemKind.HEADER and item.id not in expanded_headers:
            i = header_section_end(items, i)
            continue
        i += 1
    return result
