"""Tests for the markdown parser and reconstruct."""

from datetime import date
from pathlib import Path

import pytest

from progress_tracker.core.parser import markdown
from progress_tracker.core.parser.markdown import (
    convert_rtf,
    count_indentation,
    extract_due_date,
    parse,
    read_markdown_file,
    reconstruct,
    write_markdown_file,
)
from progress_tracker.models.item import ItemKind


def test_parse_classifies_lines(sample_markdown: str) -> None:
    items = parse(sample_markdown)
    kinds = [item.kind for item in items]
    assert kinds[:4] == [ItemKind.HEADER, ItemKind.CHECKBOX, ItemKind.CHECKBOX, ItemKind.TEXT]
    assert items[0].text == "Groceries"
    assert items[1].text == "Buy milk"
    assert not items[1].checked
    assert items[2].checked
    assert items[3].text == "Notes about shopping"


def test_parse_skips_blank_lines_without_consuming_positions() -> None:
    items = parse("# A\n\n   \n- [ ] one\n\n- [ ] two\n")
    assert [item.position for item in items] == [0, 1, 2]


def test_parse_header_levels_and_indentation() -> None:
    items = parse("# One\n### Three\n####### Seven")
    assert [item.header_level for item in items] == [1, 3, 6]
    assert [item.indentation for item in items] == [1, 3, 6]
    assert items[2].text == "Seven"


def test_parse_header_text_is_stripped() -> None:
    (item,) = parse("##   Spaced out   ")
    assert item.text == "Spaced out"
    assert item.header_level == 2


def test_parse_checkbox_markers() -> None:
    items = parse("- [ ] open\n- [x] done\n- [X] also done\n- [] not a box\n-[ ] nor this")
    assert [item.kind for item in items[:3]] == [ItemKind.CHECKBOX] * 3
    assert [item.checked for item in items[:3]] == [False, True, True]
    assert items[3].kind is ItemKind.TEXT
    assert items[3].text == "- [] not a box"
    assert items[4].kind is ItemKind.TEXT


def test_parse_counts_tabs_as_four_spaces() -> None:
    items = parse("- [ ] parent\n\t- [ ] tabbed\n  \t- [ ] mixed")
    assert [item.indentation for item in items] == [0, 4, 6]


def test_count_indentation_stops_at_content() -> None:
    assert count_indentation("   x  ") == 3
    assert count_indentation("") == 0


def test_parse_text_line_keeps_indentation() -> None:
    (item,) = parse("   just a note")
    assert item.kind is ItemKind.TEXT
    assert item.indentation == 3
    assert item.text == "just a note"


def test_parse_extracts_due_date() -> None:
    (item,) = parse("- [ ] Pay rent due:2024-02-29")
    assert item.text == "Pay rent"
    assert item.due_date == date(2024, 2, 29)


@pytest.mark.parametrize(
    "label",
    [
        "Pay rent due:2024-13-01",
        "Pay rent due:tomorrow",
        "Pay rent due:2024-2-1",
        "overdue:2024-01-01",
    ],
)
def test_malformed_due_date_stays_in_text(label: str) -> None:
    (item,) = parse(f"- [ ] {label}")
    assert item.text == label
    assert item.due_date is None


def test_extract_due_date_from_middle_of_label() -> None:
    text, due = extract_due_date("Ship due:2025-01-15 before lunch")
    assert text == "Ship before lunch"
    assert due == date(2025, 1, 15)


def test_parse_ids_are_stable_across_reparse(sample_markdown: str) -> None:
    assert [i.id for i in parse(sample_markdown)] == [i.id for i in parse(sample_markdown)]


def test_inserting_a_line_shifts_ids_below() -> None:
    before = parse("- [ ] a\n- [ ] b")
    after = parse("- [ ] new\n- [ ] a\n- [ ] b")
    assert before[0].id != after[1].id
    assert before[0].text == after[1].text


def test_parse_bytes_strips_bom() -> None:
    (item,) = parse("\ufeff# Title\n".encode())
    assert item.kind is ItemKind.HEADER
    assert item.text == "Title"


def test_parse_str_strips_bom() -> None:
    (item,) = parse("\ufeff- [ ] Task")
    assert item.kind is ItemKind.CHECKBOX


def test_parse_invalid_utf8_bytes_raises() -> None:
    with pytest.raises(UnicodeDecodeError):
        parse(b"- [ ] caf\xe9")


def test_parse_converts_rtf() -> None:
    items = parse(r"{\rtf1\ansi - [ ] Task\par - [x] Done\par}")
    checkboxes = [item for item in items if item.kind is ItemKind.CHECKBOX]
    assert [(c.text, c.checked) for c in checkboxes] == [("Task", False), ("Done", True)]


def test_convert_rtf_falls_back_to_raw_text(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(_raw: str) -> str:
        msg = "bad rtf"
        raise ValueError(msg)

    monkeypatch.setattr(markdown, "rtf_to_text", broken)
    assert convert_rtf("{\\rtf garbage") == "{\\rtf garbage"


def test_reconstruct_round_trips_canonical_markdown() -> None:
    text = "# A\n- [ ] one\n    - [x] two due:2024-01-02\n  plain note\n## B\n- [ ] three"
    assert reconstruct(parse(text)) == text


def test_reconstruct_then_parse_preserves_items(sample_markdown: str) -> None:
    items = parse(sample_markdown)
    reparsed = parse(reconstruct(items))
    assert reparsed == items


def test_reconstruct_writes_headers_without_indent() -> None:
    assert reconstruct(parse("  ### Indented header")) == "### Indented header"


def test_reconstruct_reflects_checked_state() -> None:
    items = parse("- [ ] one")
    assert reconstruct([items[0].with_checked(True)]) == "- [x] one"


def test_read_markdown_file_handles_bom(tmp_path: Path) -> None:
    path = tmp_path / "bom.md"
    path.write_bytes("\ufeff# Title\n".encode())
    assert read_markdown_file(path) == "# Title\n"


def test_read_markdown_file_rejects_invalid_utf8(tmp_path: Path) -> None:
    path = tmp_path / "latin1.md"
    path.write_bytes(b"- [ ] caf\xe9\n")
    with pytest.raises(UnicodeDecodeError):
        read_markdown_file(path)


def test_write_markdown_file_replaces_contents(tmp_path: Path) -> None:
    path = tmp_path / "list.md"
    path.write_text("- [ ] old\n")
    mtime = write_markdown_file(path, "- [x] new\n")
    assert path.read_text() == "- [x] new\n"
    assert mtime == path.stat().st_mtime
    assert [p.name for p in tmp_path.iterdir()] == ["list.md"]
