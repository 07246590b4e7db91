"""Content-derived identifiers for parsed markdown lines."""

import hashlib

from progress_tracker.models.item import ItemKind


def text_hash(text: str, *, length: int = 8) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]


def generate_stable_id(
    kind: ItemKind,
    text: str,
    header_level: int,
    indentation: int,
    position: int,
) -> str:
    """Build a deterministic ID: ``{kind}_{indentation}_{header_level}_{hash8}_{position}``.

    Identical lines at the same structural slot reparse to the same ID. The
    position component shifts on every insertion or deletion above the line,
    so reloads go through reconciliation to recover the previous IDs.
    """
    return f"{kind.value}_{indentation}_{header_level}_{text_hash(text)}_{position}"
