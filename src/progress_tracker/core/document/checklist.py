"""Checklist document: cascade-aware checkbox state, stats and undo/redo."""

from collections import deque
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from loguru import logger

from progress_tracker.config import MAX_UNDO_STEPS
from progress_tracker.core.tree.navigation import (
    enclosing_header_index,
    header_section_end,
    index_of,
    parent_checkbox_index,
    subtree_end,
)
from progress_tracker.models.item import CheckboxStats, Item, ItemKind, UndoRecord


class ChecklistDocument:
    """The item sequence of one open markdown file plus its UI state.

    All mutations are expected to happen on a single coordination context
    (see ``ProjectSession``). ``on_change`` is invoked after every mutation
    and is where the owner hooks its debounced persist.
    """

    def __init__(
        self,
        filename: str = "",
        items: Iterable[Item] | None = None,
        *,
        expanded_headers: Iterable[str] | None = None,
        max_undo_steps: int = MAX_UNDO_STEPS,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.filename = filename
        self.items: list[Item] = list(items or [])
        self.expanded_headers: set[str] = set(expanded_headers or ())
        self.last_checked_id: str | None = None
        self.last_checked_at: datetime | None = None
        self.last_accessed_at = datetime.now(tz=UTC)
        self.on_change = on_change

        self._undo_stack: deque[UndoRecord] = deque(maxlen=max_undo_steps)
        self._redo_stack: deque[UndoRecord] = deque(maxlen=max_undo_steps)

    def __repr__(self) -> str:
        return f"ChecklistDocument({self.filename!r}, {len(self.items)} items)"

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_items(self, items: Iterable[Item], expanded_headers: Iterable[str] = ()) -> None:
        """Replace the item sequence after a (re)load.

        When no expanded headers survive reconciliation, every header is
        expanded.
        """
        self.items = list(items)
        expanded = set(expanded_headers)
        if not expanded:
            expanded = {item.id for item in self.items if item.kind is ItemKind.HEADER}
        self.expanded_headers = expanded
        self.last_accessed_at = datetime.now(tz=UTC)

    # ------------------------------------------------------------------
    # Checkbox mutation
    # ------------------------------------------------------------------

    def get_item(self, item_id: str) -> Item | None:
        index = index_of(self.items, item_id)
        return None if index is None else self.items[index]

    def set_checked(self, item_id: str, checked: bool) -> None:
        """Set a checkbox and cascade to its subtree and, on check, its ancestors.

        Unknown IDs and non-checkbox items are ignored.
        """
        index = index_of(self.items, item_id)
        if index is None or self.items[index].kind is not ItemKind.CHECKBOX:
            logger.debug("set_checked ignored for {!r}: not a checkbox", item_id)
            return

        previous_last_checked = self.last_checked_id
        target = self.items[index]
        changes: list[tuple[str, bool]] = [(target.id, target.checked)]
        self.items[index] = target.with_checked(checked)

        # Cascade down through the deeper-indented span.
        for i in range(index + 1, subtree_end(self.items, index)):
            child = self.items[i]
            if child.kind is ItemKind.CHECKBOX and child.checked != checked:
                changes.append((child.id, child.checked))
                self.items[i] = child.with_checked(checked)

        if checked:
            self._check_completed_parents(index, changes)
            self.last_checked_id = item_id
            self.last_checked_at = datetime.now(tz=UTC)

        self._undo_stack.append(UndoRecord(tuple(changes), previous_last_checked))
        self._redo_stack.clear()
        logger.debug("Set {!r} checked={} ({} items changed)", item_id, checked, len(changes))
        self._changed()

    def toggle(self, item_id: str) -> None:
        item = self.get_item(item_id)
        if item is not None:
            self.set_checked(item_id, not item.checked)

    def _check_completed_parents(self, child_index: int, changes: list[tuple[str, bool]]) -> None:
        """Check the parent checkbox once all its direct children are checked, recursively."""
        parent_index = parent_checkbox_index(self.items, child_index)
        if parent_index is None:
            return

        sibling_indentation = self.items[child_index].indentation
        all_checked = all(
            item.checked
            for item in self.items[parent_index + 1 : subtree_end(self.items, parent_index)]
            if item.kind is ItemKind.CHECKBOX and item.indentation == sibling_indentation
        )

        parent = self.items[parent_index]
        if all_checked and not parent.checked:
            changes.append((parent.id, parent.checked))
            self.items[parent_index] = parent.with_checked(True)
            self._check_completed_parents(parent_index, changes)

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    @property
    def undo_depth(self) -> int:
        return len(self._undo_stack)

    @property
    def redo_depth(self) -> int:
        return len(self._redo_stack)

    def undo(self) -> bool:
        """Revert the last checkbox action. Returns False when there is nothing to undo."""
        if not self._undo_stack:
            return False
        record = self._undo_stack.pop()
        self._redo_stack.append(self._apply_record(record))
        self._changed()
        return True

    def redo(self) -> bool:
        """Re-apply the last undone action. Returns False when there is nothing to redo."""
        if not self._redo_stack:
            return False
        record = self._redo_stack.pop()
        self._undo_stack.append(self._apply_record(record))
        self._changed()
        return True

    def _apply_record(self, record: UndoRecord) -> UndoRecord:
        """Apply exactly the recorded states, returning the inverse record.

        IDs no longer present (after a reload) are skipped. No cascade.
        """
        inverse: list[tuple[str, bool]] = []
        for item_id, _ in record.changes:
            index = index_of(self.items, item_id)
            if index is not None:
                inverse.append((item_id, self.items[index].checked))
        inverse_record = UndoRecord(tuple(inverse), self.last_checked_id)

        for item_id, was_checked in record.changes:
            index = index_of(self.items, item_id)
            if index is not None:
                self.items[index] = self.items[index].with_checked(was_checked)
        self.last_checked_id = record.previous_last_checked_id
        return inverse_record

    # ------------------------------------------------------------------
    # Header expansion
    # ------------------------------------------------------------------

    def is_header_expanded(self, header_id: str) -> bool:
        return header_id in self.expanded_headers

    def toggle_header(self, header_id: str) -> bool:
        """Flip a header between expanded and collapsed. Returns the new state."""
        if header_id in self.expanded_headers:
            self.expanded_headers.discard(header_id)
            expanded = False
        else:
            self.expanded_headers.add(header_id)
            expanded = True
        self._changed()
        return expanded

    def expand_all(self) -> None:
        self.expanded_headers = {i.id for i in self.items if i.kind is ItemKind.HEADER}
        self._changed()

    def collapse_all(self) -> None:
        self.expanded_headers = set()
        self._changed()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def checkbox_items(self) -> list[Item]:
        return [i for i in self.items if i.kind is ItemKind.CHECKBOX]

    @property
    def checked_items(self) -> list[Item]:
        return [i for i in self.items if i.kind is ItemKind.CHECKBOX and i.checked]

    @property
    def unchecked_items(self) -> list[Item]:
        return [i for i in self.items if i.kind is ItemKind.CHECKBOX and not i.checked]

    @property
    def completion_percentage(self) -> float:
        total = len(self.checkbox_items)
        if total == 0:
            return 0.0
        return len(self.checked_items) / total * 100

    def header_stats(self, header_id: str) -> CheckboxStats:
        """Checkbox counts between a header and the next header of same or shallower level."""
        index = index_of(self.items, header_id)
        if index is None or self.items[index].kind is not ItemKind.HEADER:
            return CheckboxStats(total=0, checked=0)
        span = self.items[index + 1 : header_section_end(self.items, index)]
        return _count_checkboxes(span)

    def child_stats(self, checkbox_id: str) -> CheckboxStats:
        """Checkbox counts within the deeper-indented span below a checkbox."""
        index = index_of(self.items, checkbox_id)
        if index is None or self.items[index].kind is not ItemKind.CHECKBOX:
            return CheckboxStats(total=0, checked=0)
        span = self.items[index + 1 : subtree_end(self.items, index)]
        return _count_checkboxes(span)

    def last_checked_item(self) -> Item | None:
        """The most recently checked checkbox, else the last checked one in document order."""
        if self.last_checked_id is not None:
            item = self.get_item(self.last_checked_id)
            if item is not None and item.checked:
                return item
        checked = self.checked_items
        return checked[-1] if checked else None

    def next_items(self, count: int = 3) -> tuple[Item | None, list[Item]]:
        """Return the last completed checkbox and what comes up next.

        The upcoming list holds the header enclosing the first unchecked
        checkbox (if any) followed by up to ``count`` unchecked checkboxes.
        """
        last_checked = self.last_checked_item()
        upcoming = self.unchecked_items
        if not upcoming:
            return last_checked, []

        results: list[Item] = []
        first_index = index_of(self.items, upcoming[0].id)
        if first_index is not None:
            header_index = enclosing_header_index(self.items, first_index)
            if header_index is not None:
                results.append(self.items[header_index])
        results.extend(upcoming[:count])
        return last_checked, results

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()


def _count_checkboxes(items: Iterable[Item]) -> CheckboxStats:
    total = 0
    checked = 0
    for item in items:
        if item.kind is ItemKind.CHECKBOX:
            total += 1
            checked += item.checked
    return CheckboxStats(total=total, checked=checked)
