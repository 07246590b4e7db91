"""One open markdown file: loading, reconciliation, mutation and autosave."""

import asyncio
import itertools
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from progress_tracker.core.document.checklist import ChecklistDocument
from progress_tracker.core.parser.markdown import (
    parse,
    read_markdown_file,
    reconstruct,
    write_markdown_file,
)
from progress_tracker.core.reconcile.reconciler import reconcile
from progress_tracker.core.session.autosave import Debouncer
from progress_tracker.core.store.progress_store import file_identity_hash, snapshot_from_document
from progress_tracker.core.store.settings import Settings
from progress_tracker.models.item import Item, SavedSnapshot
from progress_tracker.protocols import SnapshotStoreProtocol


class DocumentLoadError(RuntimeError):
    """The markdown file could not be read or decoded."""


def _read_and_parse(path: Path) -> tuple[list[Item], float]:
    mtime = path.stat().st_mtime
    return parse(read_markdown_file(path)), mtime


class ProjectSession:
    """Owner of a single document and its undo stack, snapshot and autosave.

    All document mutations go through this object on one event loop. File
    reads and writes run in worker threads and their results are applied
    back on the loop. Concurrent reloads are tagged with a load token and
    only the most recent one is applied.
    """

    def __init__(
        self,
        path: str | Path,
        store: SnapshotStoreProtocol,
        *,
        settings: Settings | None = None,
    ) -> None:
        self.path = Path(path).expanduser().resolve()
        self.identity = file_identity_hash(self.path)
        self.store = store
        self.settings = settings or Settings()
        self.document = ChecklistDocument(self.path.name, on_change=self._schedule_save)
        self.reload_error: str | None = None
        self.last_save_ok: bool | None = None
        self.last_saved_at: datetime | None = None
        self.file_mtime: float | None = None
        self.loaded = False

        self._load_tokens = itertools.count(1)
        self._latest_token = 0
        self._saver = Debouncer(self.settings.save_debounce_seconds, self.persist)

    def __repr__(self) -> str:
        return f"ProjectSession({str(self.path)!r})"

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def save_pending(self) -> bool:
        return self._saver.pending

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def reload(self) -> bool:
        """Re-read the file and reconcile it with the current progress.

        The first load reconciles against the stored snapshot; later reloads
        use the in-memory document, which may hold changes not yet saved.

        Returns False when a newer reload superseded this one.

        Raises:
            DocumentLoadError: the file is unreadable or not valid UTF-8; the
                current document is left untouched.
        """
        token = next(self._load_tokens)
        self._latest_token = token

        try:
            items, mtime = await asyncio.to_thread(_read_and_parse, self.path)
        except (OSError, UnicodeDecodeError) as e:
            if token == self._latest_token:
                self.reload_error = f"Failed to load {self.path}: {e}"
            logger.error("Failed to load {}: {}", self.path, e)
            raise DocumentLoadError(str(e)) from e

        stored: SavedSnapshot | None = None
        if not self.loaded:
            stored = await asyncio.to_thread(self.store.load, self.identity)

        if token != self._latest_token:
            logger.debug("Discarding stale load #{} of {}", token, self.path)
            return False

        snapshot = snapshot_from_document(self.document) if self.loaded else stored
        merged, expanded = reconcile(items, snapshot)
        self.document.load_items(merged, expanded)
        self.file_mtime = mtime
        self.reload_error = None
        self.loaded = True
        logger.info("Loaded {} ({} items, {:.0f}% complete)",
                    self.filename, len(merged), self.document.completion_percentage)
        return True

    def has_external_changes(self) -> bool:
        """True if the file was modified on disk since it was last loaded."""
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            return True
        return self.file_mtime is None or mtime != self.file_mtime

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_checked(self, item_id: str, checked: bool) -> None:
        self.document.set_checked(item_id, checked)

    def toggle(self, item_id: str) -> None:
        self.document.toggle(item_id)

    def undo(self) -> bool:
        return self.document.undo()

    def redo(self) -> bool:
        return self.document.redo()

    def toggle_header(self, header_id: str) -> bool:
        return self.document.toggle_header(header_id)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _schedule_save(self) -> None:
        self._saver.schedule()

    async def persist(self) -> bool:
        """Save the snapshot and, if enabled, write the markdown back.

        Both payloads are captured from the document on the loop before any
        I/O is handed to a worker thread. Failures are logged and reported;
        in-memory state stays authoritative.
        """
        snapshot = snapshot_from_document(self.document)
        content = None
        if self.settings.write_back_markdown:
            content = reconstruct(self.document.items) + "\n"

        ok = await asyncio.to_thread(self.store.save_snapshot, snapshot, self.identity)
        if ok and content is not None:
            ok = await self._write_markdown(content)
        self.last_save_ok = ok
        if ok:
            self.last_saved_at = datetime.now(tz=UTC)
        else:
            logger.warning("Saving progress for {} failed", self.filename)
        return ok

    async def _write_markdown(self, content: str) -> bool:
        try:
            self.file_mtime = await asyncio.to_thread(write_markdown_file, self.path, content)
        except OSError:
            logger.exception("Failed to write {}", self.path)
            return False
        return True

    async def flush(self) -> None:
        """Run a pending debounced save immediately."""
        await self._saver.flush()

    async def close(self) -> None:
        await self.flush()
        self._saver.cancel()
        logger.debug("Closed {}", self.filename)
