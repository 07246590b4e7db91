"""Shared test fixtures."""

from pathlib import Path

import pytest

from progress_tracker.core.document.checklist import ChecklistDocument
from progress_tracker.core.parser.markdown import parse
from progress_tracker.core.store.progress_store import ProgressStore
from progress_tracker.core.store.settings import Settings
from tests.unit.fakes import FakeStore

SAMPLE_MARKDOWN = """\
# Groceries
- [ ] Buy milk
- [x] Buy bread
Notes about shopping

# Project
- [ ] Setup
    - [ ] Install tools
    - [ ] Configure editor
- [ ] Write code due:2024-05-01
## Release
- [ ] Tag version
"""


@pytest.fixture
def sample_markdown() -> str:
    return SAMPLE_MARKDOWN


@pytest.fixture
def document() -> ChecklistDocument:
    """A document loaded from SAMPLE_MARKDOWN, all headers expanded."""
    doc = ChecklistDocument("sample.md")
    doc.load_items(parse(SAMPLE_MARKDOWN))
    return doc


@pytest.fixture
def markdown_file(tmp_path: Path) -> Path:
    path = tmp_path / "checklist.md"
    path.write_text(SAMPLE_MARKDOWN, encoding="utf-8")
    return path


@pytest.fixture
def store(tmp_path: Path) -> ProgressStore:
    return ProgressStore(tmp_path / "data")


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with a tiny debounce so autosave tests stay quick."""
    return Settings(save_debounce_seconds=0.01)
