"""Configuration constants for progress-tracker."""

import os
from pathlib import Path

# Environment override for the data directory (progress snapshots, settings).
DATA_DIR_ENV = "PROGRESS_TRACKER_DATA_DIR"

# Candidate data directories; the first one that exists is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/progress-tracker").expanduser(),
    Path("~/.config/progress-tracker").expanduser(),
]

PROGRESS_SUBDIR = "progress"
PROGRESS_FILE_SUFFIX = ".progress.json"
SETTINGS_FILENAME = "settings.json"

# Reconciliation policy. Not derived from anything principled; tune freely.
MATCH_THRESHOLD = 0.70
POSITION_PENALTY_WEIGHT = 0.05
POSITION_PENALTY_CAP = 0.5
# Similarity given to a line that only grew (or shrank) by whole words at one end.
EXTENSION_SIMILARITY = 0.95

MAX_UNDO_STEPS = 10

# Quiet period before a burst of checkbox changes is written to disk.
SAVE_DEBOUNCE_SECONDS = 1.0

TAB_WIDTH = 4
MAX_HEADER_LEVEL = 6


def resolve_data_directory() -> Path:
    """Return the data directory: env override, first existing candidate, or the default."""
    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
