"""Tests for the progress-tracker CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from progress_tracker.cli import app

runner = CliRunner()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


def test_show_renders_checklist(markdown_file: Path, data_dir: Path) -> None:
    result = runner.invoke(app, ["show", str(markdown_file), "--data-dir", str(data_dir)])
    assert result.exit_code == 0, result.output
    assert "checklist.md: 1/7 done (14%)" in result.output
    assert "# Groceries (1/2)" in result.output


def test_show_missing_file_fails(tmp_path: Path, data_dir: Path) -> None:
    result = runner.invoke(app, ["show", str(tmp_path / "nope.md"), "--data-dir", str(data_dir)])
    assert result.exit_code == 1


def test_check_by_text_prefix_persists(markdown_file: Path, data_dir: Path) -> None:
    result = runner.invoke(
        app, ["check", str(markdown_file), "buy milk", "--data-dir", str(data_dir)]
    )
    assert result.exit_code == 0, result.output
    assert "Checked: Buy milk" in result.output
    assert "2/7 done" in result.output

    shown = runner.invoke(app, ["show", str(markdown_file), "--data-dir", str(data_dir)])
    assert "- [x] Buy milk" in shown.output
    # Progress lives in the data directory, not the markdown file.
    assert "- [ ] Buy milk" in markdown_file.read_text()


def test_check_with_write_updates_markdown(markdown_file: Path, data_dir: Path) -> None:
    result = runner.invoke(
        app, ["check", str(markdown_file), "Setup", "--write", "--data-dir", str(data_dir)]
    )
    assert result.exit_code == 0, result.output
    text = markdown_file.read_text()
    assert "- [x] Setup" in text
    assert "    - [x] Install tools" in text


def test_write_failure_exits_and_keeps_markdown(
    markdown_file: Path, data_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    original = markdown_file.read_text()

    def fail(path: Path, content: str) -> float:
        msg = "read-only file system"
        raise OSError(msg)

    monkeypatch.setattr("progress_tracker.cli.write_markdown_file", fail)
    result = runner.invoke(
        app, ["check", str(markdown_file), "Setup", "--write", "--data-dir", str(data_dir)]
    )
    assert result.exit_code == 1
    assert markdown_file.read_text() == original
    assert not markdown_file.with_name("checklist.md.tmp").exists()


def test_uncheck(markdown_file: Path, data_dir: Path) -> None:
    result = runner.invoke(
        app, ["uncheck", str(markdown_file), "Buy bread", "--data-dir", str(data_dir)]
    )
    assert result.exit_code == 0, result.output
    assert "0/7 done" in result.output


def test_check_ambiguous_prefix_fails(markdown_file: Path, data_dir: Path) -> None:
    result = runner.invoke(app, ["check", str(markdown_file), "Buy", "--data-dir", str(data_dir)])
    assert result.exit_code == 1
    assert "ambiguous" in result.output


def test_check_header_fails(markdown_file: Path, data_dir: Path) -> None:
    result = runner.invoke(
        app, ["check", str(markdown_file), "Groceries", "--data-dir", str(data_dir)]
    )
    assert result.exit_code == 1
    assert "not a checkbox" in result.output


def test_check_by_id(markdown_file: Path, data_dir: Path) -> None:
    shown = runner.invoke(app, ["show", str(markdown_file), "--ids", "--data-dir", str(data_dir)])
    line = next(line for line in shown.output.splitlines() if "Tag version" in line)
    item_id = line.split("[id=")[1].rstrip("]")

    result = runner.invoke(
        app, ["check", str(markdown_file), item_id, "--data-dir", str(data_dir)]
    )
    assert result.exit_code == 0, result.output
    assert "Checked: Tag version" in result.output


def test_stats_json(markdown_file: Path, data_dir: Path) -> None:
    result = runner.invoke(
        app, ["stats", str(markdown_file), "--json", "--data-dir", str(data_dir)]
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["checked"] == 1
    assert data["total"] == 7
    assert [s["header"] for s in data["sections"]] == ["Groceries", "Project", "Release"]


def test_next(markdown_file: Path, data_dir: Path) -> None:
    result = runner.invoke(
        app, ["next", str(markdown_file), "-n", "2", "--data-dir", str(data_dir)]
    )
    assert result.exit_code == 0, result.output
    assert "Last completed: Buy bread" in result.output
    assert "# Groceries" in result.output
    assert "- [ ] Buy milk" in result.output
    assert "Install tools" not in result.output


def test_header_toggle_persists(markdown_file: Path, data_dir: Path) -> None:
    result = runner.invoke(
        app, ["header", str(markdown_file), "Project", "--data-dir", str(data_dir)]
    )
    assert result.exit_code == 0, result.output
    assert "Collapsed: Project" in result.output

    shown = runner.invoke(app, ["show", str(markdown_file), "--data-dir", str(data_dir)])
    assert "[+]" in shown.output
    assert "Setup" not in shown.output
