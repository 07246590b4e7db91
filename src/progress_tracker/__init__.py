"""Progress tracking for markdown checklists."""

from progress_tracker.core.document.checklist import ChecklistDocument
from progress_tracker.core.parser.markdown import parse, reconstruct
from progress_tracker.core.reconcile.reconciler import reconcile
from progress_tracker.core.store.progress_store import ProgressStore
from progress_tracker.protocols import SnapshotStoreProtocol

__all__ = [
    "ChecklistDocument",
    "ProgressStore",
    "SnapshotStoreProtocol",
    "parse",
    "reconcile",
    "reconstruct",
]
