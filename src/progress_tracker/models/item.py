"""Domain models for markdown checklists and their saved progress."""

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import StrEnum


class ItemKind(StrEnum):
    """Kind of a parsed markdown line."""

    HEADER = "header"
    CHECKBOX = "checkbox"
    TEXT = "text"


@dataclass(frozen=True)
class Item:
    """A single non-blank markdown line.

    Hierarchy is implicit: an item is a descendant of the nearest preceding
    item with strictly smaller indentation.
    """

    id: str
    kind: ItemKind
    text: str
    header_level: int = 0
    checked: bool = False
    indentation: int = 0
    position: int = 0
    due_date: date | None = None

    @property
    def is_header(self) -> bool:
        return self.kind is ItemKind.HEADER

    @property
    def is_checkbox(self) -> bool:
        return self.kind is ItemKind.CHECKBOX

    def with_checked(self, checked: bool) -> "Item":
        """Return a copy with a new checked state and the same ID."""
        return replace(self, checked=checked)

    def with_id(self, item_id: str) -> "Item":
        return replace(self, id=item_id)


@dataclass(frozen=True)
class SavedItem:
    """Lightweight item descriptor stored in a snapshot for reconciliation."""

    id: str
    kind: ItemKind
    text: str
    header_level: int
    indentation: int
    position: int

    @classmethod
    def from_item(cls, item: Item) -> "SavedItem":
        return cls(
            id=item.id,
            kind=item.kind,
            text=item.text,
            header_level=item.header_level,
            indentation=item.indentation,
            position=item.position,
        )


@dataclass(frozen=True)
class SavedSnapshot:
    """Persisted progress for one markdown file.

    ``items`` is None for legacy records written before item descriptors
    were stored; those reconcile by exact ID only.
    """

    filename: str
    saved_at: datetime
    checkbox_states: dict[str, bool]
    expanded_headers: frozenset[str] = frozenset()
    items: tuple[SavedItem, ...] | None = None


@dataclass(frozen=True)
class CheckboxStats:
    """Checked/total counts for a span of checkboxes."""

    total: int
    checked: int

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return self.checked / self.total * 100


@dataclass(frozen=True)
class UndoRecord:
    """One undoable checkbox action: (item_id, previous_checked) pairs."""

    changes: tuple[tuple[str, bool], ...]
    previous_last_checked_id: str | None
