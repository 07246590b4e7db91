"""Application settings, stored as JSON in the data directory."""

import json
from dataclasses import asdict, dataclass, field, fields
from enum import StrEnum
from pathlib import Path
from typing import Any

from loguru import logger

from progress_tracker.config import SAVE_DEBOUNCE_SECONDS


class SortOption(StrEnum):
    """How open projects are ordered."""

    NAME = "name"
    LAST_ACCESSED = "last_accessed"
    COMPLETION = "completion"


@dataclass
class Settings:
    """User preferences passed explicitly to the parts that need them."""

    default_sort: SortOption = SortOption.LAST_ACCESSED
    sort_ascending: bool = False
    save_debounce_seconds: float = SAVE_DEBOUNCE_SECONDS
    write_back_markdown: bool = False
    recent_files: list[str] = field(default_factory=list)

    def remember_file(self, path: str | Path, *, limit: int = 10) -> None:
        """Move ``path`` to the front of the recent files list."""
        entry = str(path)
        self.recent_files = [entry, *(p for p in self.recent_files if p != entry)][:limit]


def settings_from_dict(data: dict[str, Any]) -> Settings:
    """Build Settings from a dict, ignoring unknown keys."""
    known = {f.name for f in fields(Settings)}
    values = {k: v for k, v in data.items() if k in known}
    if "default_sort" in values:
        values["default_sort"] = SortOption(values["default_sort"])
    if "save_debounce_seconds" in values:
        values["save_debounce_seconds"] = float(values["save_debounce_seconds"])
    if "recent_files" in values:
        values["recent_files"] = [str(p) for p in values["recent_files"]]
    return Settings(**values)


def load_settings(path: str | Path) -> Settings:
    """Read settings from ``path``; missing or corrupt files yield defaults."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return Settings()
    try:
        return settings_from_dict(json.loads(raw))
    except (ValueError, TypeError, AttributeError):
        logger.warning("Ignoring corrupt settings file {}", path, exc_info=True)
        return Settings()


def save_settings(settings: Settings, path: str | Path) -> None:
    """Write settings to ``path`` as pretty JSON."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    data = asdict(settings)
    data["default_sort"] = settings.default_sort.value
    target.write_text(json.dumps(data, sort_keys=True, indent=4) + "\n", encoding="utf-8")
    logger.debug("Saved settings to {}", target)
