"""Match a fresh parse against a saved snapshot to recover stable IDs and state.

Generated IDs embed the item's position, so inserting or deleting a line
shifts every ID below it. On reload each new item is matched against the
previous snapshot's item descriptors by structure and fuzzy text similarity,
and a confident match carries the old ID and checked state forward.
"""

from collections.abc import Sequence
from typing import NamedTuple

from loguru import logger

from progress_tracker.config import (
    EXTENSION_SIMILARITY,
    MATCH_THRESHOLD,
    POSITION_PENALTY_CAP,
    POSITION_PENALTY_WEIGHT,
)
from progress_tracker.models.item import Item, ItemKind, SavedItem, SavedSnapshot


class ReconcileResult(NamedTuple):
    items: list[Item]
    expanded_headers: set[str]


def levenshtein(a: str, b: str) -> int:
    """Classic character edit distance (insert, delete, substitute)."""
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + cost,  # substitution
                )
            )
        previous = current
    return previous[-1]


def _is_word_extension(shorter: str, longer: str) -> bool:
    """True if ``shorter`` is a whole-word prefix or suffix of ``longer``."""
    if not shorter or len(shorter) >= len(longer):
        return False
    if longer.startswith(shorter) and longer[len(shorter)].isspace():
        return True
    return longer.endswith(shorter) and longer[-len(shorter) - 1].isspace()


def text_similarity(
    a: str,
    b: str,
    *,
    extension_similarity: float = EXTENSION_SIMILARITY,
) -> float:
    """Edit-distance similarity in [0, 1]; 1.0 when both texts are empty.

    A line that only gained or lost whole words at one end scores at least
    ``extension_similarity``.
    """
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    similarity = 1.0 - levenshtein(a, b) / max_len
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if _is_word_extension(shorter, longer):
        similarity = max(similarity, extension_similarity)
    return similarity


def position_penalty(
    new_position: int,
    old_position: int,
    *,
    weight: float = POSITION_PENALTY_WEIGHT,
    cap: float = POSITION_PENALTY_CAP,
) -> float:
    return min(abs(new_position - old_position) * weight, cap)


def match_score(new_item: Item, old_item: SavedItem) -> float:
    """Text similarity less the position drift penalty."""
    return text_similarity(new_item.text, old_item.text) - position_penalty(
        new_item.position, old_item.position
    )


def is_structural_candidate(new_item: Item, old_item: SavedItem) -> bool:
    return (
        new_item.kind == old_item.kind
        and new_item.indentation == old_item.indentation
        and new_item.header_level == old_item.header_level
    )


def _take_exact_match(new_item: Item, available: list[SavedItem]) -> SavedItem | None:
    """Remove and return the first structurally equal candidate with identical text."""
    for i, old_item in enumerate(available):
        if is_structural_candidate(new_item, old_item) and new_item.text == old_item.text:
            return available.pop(i)
    return None


def find_best_match(
    new_item: Item,
    candidates: Sequence[SavedItem],
) -> tuple[SavedItem | None, float]:
    """Pick the best candidate for ``new_item``.

    Only candidates with the same kind, indentation and header level are
    considered. An exact text match wins immediately with score 1.0;
    otherwise the highest ``similarity - position penalty`` wins, ties going
    to the first candidate.
    """
    best: SavedItem | None = None
    best_score = -1.0
    for old_item in candidates:
        if not is_structural_candidate(new_item, old_item):
            continue
        if new_item.text == old_item.text:
            return old_item, 1.0
        score = match_score(new_item, old_item)
        if score > best_score:
            best = old_item
            best_score = score
    return best, best_score


def reconcile(
    new_items: Sequence[Item],
    snapshot: SavedSnapshot | None,
    *,
    threshold: float = MATCH_THRESHOLD,
) -> ReconcileResult:
    """Merge a fresh parse with the saved snapshot.

    Args:
        new_items: Items from the latest parse, in order.
        snapshot: Previously saved progress, or None.
        threshold: Minimum score for a match to be accepted.

    Returns:
        The merged items and the restored set of expanded header IDs.
    """
    if snapshot is None:
        return ReconcileResult(list(new_items), set())

    if snapshot.items is None:
        return _reconcile_legacy(new_items, snapshot)

    available = list(snapshot.items)
    matches: dict[int, SavedItem] = {}

    # Unchanged lines claim their old item before any fuzzy matching runs.
    for index, new_item in enumerate(new_items):
        exact = _take_exact_match(new_item, available)
        if exact is not None:
            matches[index] = exact

    for index, new_item in enumerate(new_items):
        if index in matches:
            continue
        match, score = find_best_match(new_item, available)
        if match is not None and score >= threshold:
            available.remove(match)
            matches[index] = match

    merged: list[Item] = []
    reused_ids: set[str] = set()
    for index, new_item in enumerate(new_items):
        match = matches.get(index)
        if match is None:
            merged.append(new_item)
            continue
        reused_ids.add(match.id)
        checked = snapshot.checkbox_states.get(match.id, new_item.checked)
        merged.append(new_item.with_id(match.id).with_checked(checked))

    logger.debug(
        "Reconciled {} items: {} matched, {} new",
        len(merged), len(reused_ids), len(merged) - len(reused_ids),
    )
    return ReconcileResult(merged, set(snapshot.expanded_headers) & reused_ids)


def _reconcile_legacy(new_items: Sequence[Item], snapshot: SavedSnapshot) -> ReconcileResult:
    """Exact-ID matching for snapshots saved without item descriptors."""
    merged: list[Item] = []
    for item in new_items:
        saved_state = snapshot.checkbox_states.get(item.id)
        if item.kind is ItemKind.CHECKBOX and saved_state is not None:
            item = item.with_checked(saved_state)
        merged.append(item)
    current_ids = {item.id for item in merged}
    logger.debug("Reconciled {} items against legacy snapshot", len(merged))
    return ReconcileResult(merged, set(snapshot.expanded_headers) & current_ids)
