from anvil.adapters.markdown import (
    extract_bold_blocks,
    extract_bold_value,
    extract_code_block,
    extract_fields,
    extract_labeled_list,
    extract_list_items,
    extract_table,
    extract_top_level_items,
    field_label,
    find_clarifications,
    find_section,
    find_title,
    iter_sections,
    normalize_key,
    preamble,
    section_intro,
    truncate,
)
from anvil.adapters.rendering import field_value


DOCUMENT = """\
# Title

**Branch**: `001-x` | **Date**: 2025-01-02 | **Spec**: [spec.md](./spec.md)

## First

Intro text.

### Child

Child body.

```text
## not a heading
```

## Second

- one
  - nested
1. numbered
"""


def test_sections_run_to_next_sibling():
    sections = iter_sections(DOCUMENT, 2)
    assert [s.title for s in sections] == ["First", "Second"]
    assert "### Child" in sections[0].body
    assert "## not a heading" in sections[0].body
    assert sections[0].line == 5


def test_find_section_is_case_insensitive_and_anchored():
    assert find_section(DOCUMENT, r"second", 2).title == "Second"
    assert find_section(DOCUMENT, r"econd", 2) is None
    assert find_section(DOCUMENT, r"Child", 3).body.strip().startswith("Child body.")


def test_title_preamble_and_intro():
    assert find_title(DOCUMENT).title == "Title"
    assert "**Branch**" in preamble(DOCUMENT)
    assert "Intro text." == section_intro(find_section(DOCUMENT, "First", 2).body)


def test_extract_fields_handles_code_links_and_pipes():
    fields = extract_fields(preamble(DOCUMENT))
    assert fields == {"branch": "001-x", "date": "2025-01-02", "spec": "spec.md"}


def test_field_labels_round_trip():
    assert normalize_key("Feature Branch") == "feature_branch"
    assert normalize_key(field_label("feature_branch")) == "feature_branch"


def test_field_value_protects_pipes():
    assert field_value("a | b") == "`a | b`"
    assert extract_fields(f"**Note**: {field_value('a | b')}") == {"note": "a | b"}
    assert field_value("plain") == "plain"


def test_list_items():
    body = find_section(DOCUMENT, "Second", 2).body
    assert extract_list_items(body) == ["one", "nested", "numbered"]
    assert extract_top_level_items(body) == ["one", "numbered"]


def test_bold_values_and_blocks():
    text = "**Problem**: slow\nreally slow\n**Solution:** cache\n- **Recommended**: MVP"
    assert extract_bold_value(text, "Solution") == "cache"
    assert extract_bold_value(text, "Missing") is None
    assert extract_bold_value(text, "Recommended") == "MVP"
    blocks = extract_bold_blocks(text, ("Problem", "Solution"))
    assert blocks["Problem"] == "slow\nreally slow"


def test_labeled_list_stops_at_next_label():
    text = "**Acceptance Scenarios:**\n\n1. first\n2. second\n\n**Edge Cases:**\n- edge"
    assert extract_labeled_list(text, "Acceptance Scenarios?") == ["first", "second"]
    assert extract_labeled_list(text, "Edge Cases?") == ["edge"]
    assert extract_labeled_list(text, "Nothing") == []


def test_code_block():
    assert extract_code_block(DOCUMENT) == "## not a heading"
    assert extract_code_block("no code") is None


def test_extract_table():
    text = "intro\n\n| A | B |\n| --- | :---: |\n| 1 | 2 |\n| 3 | 4 |\n\nafter"
    assert extract_table(text) == (["A", "B"], [["1", "2"], ["3", "4"]])
    assert extract_table("| not | a table |") is None


def test_find_clarifications():
    texts = ["plain", "[NEEDS CLARIFICATION: first?] and [needs clarification:  second ]"]
    assert find_clarifications(texts) == ["first?", "second"]
    assert find_clarifications("[NEEDS CLARIFICATION: only]") == ["only"]


def test_truncate():
    assert truncate("short", 10) == "short"
    assert truncate("a" * 20, 10) == "aaaaaaa..."
