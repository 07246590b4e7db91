"""Persist per-file progress snapshots as JSON, keyed by a hash of the file path."""

import hashlib
import json
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from loguru import logger

from progress_tracker.config import PROGRESS_FILE_SUFFIX, PROGRESS_SUBDIR
from progress_tracker.core.document.checklist import ChecklistDocument
from progress_tracker.models.item import ItemKind, SavedItem, SavedSnapshot

# savedAt is stored as seconds since this reference date, matching records
# written by earlier versions of the tracker.
REFERENCE_DATE = datetime(2001, 1, 1, tzinfo=UTC)


def file_identity_hash(path: str | Path) -> str:
    """SHA-256 of the absolute path.

    Moving or renaming a file orphans its snapshot; existing stored records
    depend on this exact key.
    """
    absolute = os.path.abspath(os.fspath(Path(path).expanduser()))
    return hashlib.sha256(absolute.encode("utf-8")).hexdigest()


def _encode_date(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - REFERENCE_DATE).total_seconds()


def _decode_date(value: Any) -> datetime:
    if isinstance(value, bool):
        msg = f"Invalid savedAt value: {value!r}"
        raise ValueError(msg)
    if isinstance(value, int | float):
        return REFERENCE_DATE + timedelta(seconds=value)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    msg = f"Invalid savedAt value: {value!r}"
    raise ValueError(msg)


def snapshot_to_dict(snapshot: SavedSnapshot) -> dict[str, Any]:
    data: dict[str, Any] = {
        "filename": snapshot.filename,
        "savedAt": _encode_date(snapshot.saved_at),
        "checkboxStates": dict(snapshot.checkbox_states),
        "expandedHeaders": sorted(snapshot.expanded_headers),
    }
    if snapshot.items is not None:
        data["items"] = [
            {
                "id": item.id,
                "type": item.kind.value,
                "text": item.text,
                "level": item.header_level,
                "indentationLevel": item.indentation,
                "position": item.position,
            }
            for item in snapshot.items
        ]
    return data


def _saved_item_from_dict(raw: dict[str, Any]) -> SavedItem:
    # "kind"/"headerLevel"/"indentation" are accepted as aliases.
    return SavedItem(
        id=str(raw["id"]),
        kind=ItemKind(raw.get("type", raw.get("kind"))),
        text=str(raw.get("text", "")),
        header_level=int(raw.get("level", raw.get("headerLevel", 0))),
        indentation=int(raw.get("indentationLevel", raw.get("indentation", 0))),
        position=int(raw.get("position", 0)),
    )


def _decode_expanded_headers(raw: Any) -> frozenset[str]:
    if raw is None:
        return frozenset()
    if not isinstance(raw, list) or not all(isinstance(h, str) for h in raw):
        logger.warning("Ignoring malformed expandedHeaders: {!r}", raw)
        return frozenset()
    return frozenset(raw)


def _decode_items(raw: Any) -> tuple[SavedItem, ...] | None:
    """Decode item descriptors; a malformed list degrades to a legacy record."""
    if raw is None:
        return None
    try:
        return tuple(_saved_item_from_dict(i) for i in raw)
    except (ValueError, KeyError, TypeError, AttributeError):
        logger.warning("Ignoring malformed items, matching by ID only", exc_info=True)
        return None


def snapshot_from_dict(data: dict[str, Any]) -> SavedSnapshot:
    """Decode a stored record.

    Missing or malformed optional fields (``expandedHeaders``, ``items``)
    become empty defaults; a bad ``items`` list makes it a legacy record.

    Raises:
        ValueError, TypeError: if the record or its checkbox states are
            malformed.
    """
    if not isinstance(data, dict):
        msg = f"Progress record must be an object, got {type(data).__name__}"
        raise TypeError(msg)

    states = data.get("checkboxStates") or {}
    if not isinstance(states, dict):
        msg = "checkboxStates must be an object"
        raise TypeError(msg)

    checkbox_states: dict[str, bool] = {}
    for key, value in states.items():
        if not isinstance(value, bool):
            msg = f"checkboxStates[{key!r}] must be a boolean, got {value!r}"
            raise TypeError(msg)
        checkbox_states[str(key)] = value

    saved_at = data.get("savedAt")
    return SavedSnapshot(
        filename=str(data.get("filename", "")),
        saved_at=REFERENCE_DATE if saved_at is None else _decode_date(saved_at),
        checkbox_states=checkbox_states,
        expanded_headers=_decode_expanded_headers(data.get("expandedHeaders")),
        items=_decode_items(data.get("items")),
    )


def snapshot_from_document(document: ChecklistDocument) -> SavedSnapshot:
    """Capture checkbox states, expanded headers and item descriptors."""
    return SavedSnapshot(
        filename=document.filename,
        saved_at=datetime.now(tz=UTC),
        checkbox_states={i.id: i.checked for i in document.items if i.kind is ItemKind.CHECKBOX},
        expanded_headers=frozenset(document.expanded_headers),
        items=tuple(SavedItem.from_item(i) for i in document.items),
    )


class ProgressStore:
    """Read and write ``<data_dir>/progress/<path-hash>.progress.json`` records.

    Loading never raises: a missing or corrupt record means "no snapshot".
    Saving reports failure through its return value.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir).expanduser()
        self.progress_dir = self.data_dir / PROGRESS_SUBDIR
        logger.debug("Progress store ready at {}", self.progress_dir)

    def progress_file(self, identity: str) -> Path:
        return self.progress_dir / f"{identity}{PROGRESS_FILE_SUFFIX}"

    def load(self, identity: str) -> SavedSnapshot | None:
        """Return the stored snapshot, or None if missing or undecodable."""
        path = self.progress_file(identity)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError):
            logger.warning("Cannot read progress file {}", path, exc_info=True)
            return None

        try:
            snapshot = snapshot_from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring corrupt progress file {}", path, exc_info=True)
            return None

        logger.debug("Loaded snapshot for {!r} from {}", snapshot.filename, path)
        return snapshot

    def save(self, document: ChecklistDocument, identity: str) -> bool:
        """Write the document's snapshot. Returns False on failure."""
        return self.save_snapshot(snapshot_from_document(document), identity)

    def save_snapshot(self, snapshot: SavedSnapshot, identity: str) -> bool:
        path = self.progress_file(identity)
        contents = json.dumps(snapshot_to_dict(snapshot), sort_keys=True, indent=4) + "\n"
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(contents, encoding="utf-8")
            tmp_path.replace(path)
        except OSError:
            logger.exception("Failed to save progress to {}", path)
            return False
        logger.debug("Saved progress for {!r} to {}", snapshot.filename, path)
        return True

    def load_for_path(self, markdown_path: str | Path) -> SavedSnapshot | None:
        return self.load(file_identity_hash(markdown_path))

    def save_for_path(self, document: ChecklistDocument, markdown_path: str | Path) -> bool:
        return self.save(document, file_identity_hash(markdown_path))
