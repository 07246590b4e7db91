"""Protocols for dependency injection in the progress tracker."""

from typing import Protocol, runtime_checkable

from progress_tracker.core.document.checklist import ChecklistDocument
from progress_tracker.models.item import SavedSnapshot


@runtime_checkable
class SnapshotStoreProtocol(Protocol):
    """Protocol for progress snapshot storage keyed by file identity hash."""

    def load(self, identity: str) -> SavedSnapshot | None:
        """Return the saved snapshot, or None if there is none usable."""
        ...

    def save(self, document: ChecklistDocument, identity: str) -> bool:
        """Persist the document's progress, returning False on failure."""
        ...

    def save_snapshot(self, snapshot: SavedSnapshot, identity: str) -> bool:
        """Persist an already captured snapshot, returning False on failure."""
        ...
