"""Fake implementations for testing the progress tracker."""

from progress_tracker.core.document.checklist import ChecklistDocument
from progress_tracker.core.store.progress_store import snapshot_from_document
from progress_tracker.models.item import SavedSnapshot


class FakeStore:
    """In-memory fake for ProgressStore.

    Keeps snapshots in a dict and records every save for assertions.
    """

    def __init__(self, *, fail_saves: bool = False) -> None:
        self.snapshots: dict[str, SavedSnapshot] = {}
        self.saves: list[str] = []
        self.loads: list[str] = []
        self.fail_saves = fail_saves

    def load(self, identity: str) -> SavedSnapshot | None:
        self.loads.append(identity)
        return self.snapshots.get(identity)

    def save(self, document: ChecklistDocument, identity: str) -> bool:
        return self.save_snapshot(snapshot_from_document(document), identity)

    def save_snapshot(self, snapshot: SavedSnapshot, identity: str) -> bool:
        self.saves.append(identity)
        if self.fail_saves:
            return False
        self.snapshots[identity] = snapshot
        return True
