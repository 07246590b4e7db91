"""Parse markdown checklists into flat item sequences and write them back."""

import io
import re
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from loguru import logger
from striprtf.striprtf import rtf_to_text

from progress_tracker.config import MAX_HEADER_LEVEL, TAB_WIDTH
from progress_tracker.core.parser.ids import generate_stable_id
from progress_tracker.models.item import Item, ItemKind

RTF_PREFIX = "{\\rtf"

_CHECKBOX_MARKERS = {"- [ ]": False, "- [x]": True, "- [X]": True}
_MARKER_LENGTH = 5

# "due:" token delimited by whitespace; the value is validated separately.
_DUE_TOKEN_PATTERN = re.compile(r"(?<!\S)due:(\S+)")
_DUE_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


def convert_rtf(raw: str) -> str:
    """Convert RTF to plain text, falling back to the raw input on failure."""
    try:
        return rtf_to_text(raw)
    except Exception:
        logger.warning("RTF conversion failed, treating input as plain text", exc_info=True)
        return raw


def read_markdown_file(path: str | Path) -> str:
    """Read a markdown file as UTF-8 text.

    Raises OSError if unreadable and UnicodeDecodeError if not valid UTF-8.
    """
    return Path(path).read_bytes().decode("utf-8-sig")


def write_markdown_file(path: str | Path, content: str) -> float:
    """Atomically replace ``path`` with ``content`` and return the new mtime.

    Raises OSError on failure; the original file is then left untouched.
    """
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(content, encoding="utf-8")
    tmp_path.replace(path)
    return path.stat().st_mtime


def count_indentation(line: str) -> int:
    """Count leading whitespace, a tab counts as TAB_WIDTH spaces."""
    count = 0
    for char in line:
        if char == " ":
            count += 1
        elif char == "\t":
            count += TAB_WIDTH
        else:
            break
    return count


def extract_due_date(label: str) -> tuple[str, date | None]:
    """Split a ``due:YYYY-MM-DD`` token out of a checkbox label.

    Malformed tokens are left in the text untouched.
    """
    for match in _DUE_TOKEN_PATTERN.finditer(label):
        value = match.group(1)
        if not _DUE_DATE_PATTERN.fullmatch(value):
            continue
        try:
            due = date.fromisoformat(value)
        except ValueError:
            continue
        before = label[: match.start()].rstrip()
        after = label[match.end() :].lstrip()
        text = " ".join(part for part in (before, after) if part)
        return text, due
    return label, None


def _parse_header(trimmed: str, position: int) -> Item | None:
    if not trimmed.startswith("#"):
        return None
    marks = len(trimmed) - len(trimmed.lstrip("#"))
    level = min(max(marks, 1), MAX_HEADER_LEVEL)
    text = trimmed[marks:].strip()
    # A header's indentation is its level, not its physical whitespace.
    return Item(
        id=generate_stable_id(ItemKind.HEADER, text, level, level, position),
        kind=ItemKind.HEADER,
        text=text,
        header_level=level,
        indentation=level,
        position=position,
    )


def _parse_checkbox(trimmed: str, indentation: int, position: int) -> Item | None:
    checked = _CHECKBOX_MARKERS.get(trimmed[:_MARKER_LENGTH])
    if checked is None:
        return None
    text, due = extract_due_date(trimmed[_MARKER_LENGTH:].strip())
    return Item(
        id=generate_stable_id(ItemKind.CHECKBOX, text, 0, indentation, position),
        kind=ItemKind.CHECKBOX,
        text=text,
        checked=checked,
        indentation=indentation,
        position=position,
        due_date=due,
    )


def parse(raw: str | bytes) -> list[Item]:
    """Parse markdown text into an ordered list of items.

    Blank lines are dropped and do not consume a position. Bytes input is
    decoded as UTF-8 (UnicodeDecodeError propagates). RTF input is converted
    to plain text first.

    Args:
        raw: Markdown (or RTF) source.

    Returns:
        Items in source order with positions 0..n-1.
    """
    text = raw.decode("utf-8-sig") if isinstance(raw, bytes) else raw.removeprefix("\ufeff")
    if text.startswith(RTF_PREFIX):
        text = convert_rtf(text)

    items: list[Item] = []
    for line in text.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue

        position = len(items)
        indentation = count_indentation(line)

        item = _parse_header(trimmed, position) or _parse_checkbox(trimmed, indentation, position)
        if item is None:
            item = Item(
                id=generate_stable_id(ItemKind.TEXT, trimmed, 0, indentation, position),
                kind=ItemKind.TEXT,
                text=trimmed,
                indentation=indentation,
                position=position,
            )
        items.append(item)

    logger.debug("Parsed {} items", len(items))
    return items


def reconstruct(items: Iterable[Item]) -> str:
    """Render items back to markdown text, one line per item.

    Headers carry no physical indent since their indentation is derived from
    the header level.
    """
    out = io.StringIO()
    for i, item in enumerate(items):
        if i:
            out.write("\n")
        indent = " " * item.indentation
        if item.kind is ItemKind.HEADER:
            out.write(f"{'#' * item.header_level} {item.text}")
        elif item.kind is ItemKind.CHECKBOX:
            mark = "x" if item.checked else " "
            out.write(f"{indent}- [{mark}] {item.text}")
            if item.due_date is not None:
                out.write(f" due:{item.due_date.isoformat()}")
        else:
            out.write(f"{indent}{item.text}")
    return out.getvalue()
