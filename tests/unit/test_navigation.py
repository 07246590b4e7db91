"""Tests for flat-sequence hierarchy queries."""

from progress_tracker.core.parser.markdown import parse
from progress_tracker.core.tree.navigation import (
    enclosing_header_index,
    header_section_end,
    index_of,
    parent_checkbox_index,
    subtree_end,
    visible_items,
)

NESTED = """\
# Top
- [ ] a
    - [ ] a1
        - [ ] a1x
    - [ ] a2
- [ ] b
## Sub
- [ ] c
# Next
- [ ] d
"""


def test_index_of() -> None:
    items = parse(NESTED)
    assert index_of(items, items[3].id) == 3
    assert index_of(items, "missing") is None


def test_subtree_end_covers_deeper_indentation() -> None:
    items = parse(NESTED)
    assert subtree_end(items, 1) == 5  # a -> a1, a1x, a2
    assert subtree_end(items, 2) == 4  # a1 -> a1x
    assert subtree_end(items, 3) == 4  # leaf


def test_parent_checkbox_index() -> None:
    items = parse(NESTED)
    assert parent_checkbox_index(items, 3) == 2
    assert parent_checkbox_index(items, 4) == 1
    assert parent_checkbox_index(items, 1) is None


def test_header_section_end() -> None:
    items = parse(NESTED)
    assert header_section_end(items, 0) == 8  # "# Top" ends at "# Next"
    assert header_section_end(items, 6) == 8  # "## Sub" ends at "# Next"
    assert header_section_end(items, 8) == len(items)


def test_enclosing_header_index() -> None:
    items = parse(NESTED)
    assert enclosing_header_index(items, 7) == 6
    assert enclosing_header_index(items, 5) == 0
    assert enclosing_header_index(items, 0) is None


def test_visible_items_hides_collapsed_sections() -> None:
    items = parse(NESTED)
    expanded = {items[8].id}
    visible = [item.text for item in visible_items(items, expanded)]
    assert visible == ["Top", "Next", "d"]


def test_visible_items_all_expanded() -> None:
    items = parse(NESTED)
    expanded = {item.id for item in items if item.is_header}
    assert visible_items(items, expanded) == items
