"""
Markdown section primitives.

Parsing is two-pass: first locate heading boundaries generically, then
apply a small local grammar inside each captured span. A section runs
from its heading to the next heading of equal or higher level, or to the
end of the text. Headings inside fenced code blocks are ignored.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple, Union


HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.*?)[ \t]*$")
FENCE_RE = re.compile(r"^[ \t]*(```|~~~)")
CODE_BLOCK_RE = re.compile(r"^[ \t]*(?:```|~~~)[^\n]*\n(.*?)^[ \t]*(?:```|~~~)[ \t]*$", re.MULTILINE | re.DOTALL)
LIST_ITEM_RE = re.compile(r"^[ \t]*(?:[-*+]|\d+[.):])[ \t]+(.*?)[ \t]*$")
BOLD_LABEL_LINE_RE = re.compile(r"^[ \t]*\*\*[^*\n]+\*\*")
CLARIFICATION_RE = re.compile(r"\[NEEDS CLARIFICATION:\s*([^\]]*?)\s*\]", re.IGNORECASE)
TABLE_ROW_RE = re.compile(r"^[ \t]*\|")
TABLE_SEPARATOR_RE = re.compile(r"^[ \t]*\|?[ \t]*:?-{3,}:?[ \t]*(?:\|[ \t]*:?-{3,}:?[ \t]*)*\|?[ \t]*$")

# **Label**: `code` | [text](link) | plain text (plain values stop at "|")
FIELD_RE = re.compile(
    r"\*\*([^*\n]+?)\*\*:[ \t]*(?:`([^`\n]+)`|\[([^\]\n]+)\]\([^)\n]*\)|([^\n|]*))"
)


@dataclass(frozen=True)
class Heading:
    level: int
    title: str
    line: int  # 0-based index into the text's lines


@dataclass(frozen=True)
class Section:
    title: str
    level: int
    body: str
    line: int  # 1-based line of the heading


def scan_headings(text: str) -> List[Heading]:
    """All ATX headings outside fenced code blocks, in document order."""
    headings = []
    in_fence = False
    for index, line in enumerate(text.split("\n")):
        if FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = HEADING_RE.match(line)
        if match:
            headings.append(Heading(level=len(match.group(1)), title=match.group(2), line=index))
    return headings


def iter_sections(text: str, level: int) -> List[Section]:
    """Every section at ``level``, each captured up to its next sibling or parent heading."""
    lines = text.split("\n")
    headings = scan_headings(text)
    sections = []
    for position, heading in enumerate(headings):
        if heading.level != level:
            continue
        end = len(lines)
        for following in headings[position + 1:]:
            if following.level <= level:
                end = following.line
                break
        sections.append(Section(
            title=heading.title,
            level=level,
            body="\n".join(lines[heading.line + 1:end]),
            line=heading.line + 1,
        ))
    return sections


def find_section(text: str, pattern: Union[str, Pattern[str]], level: int) -> Optional[Section]:
    """First section at ``level`` whose title matches ``pattern`` (case-insensitive, anchored at start)."""
    if isinstance(pattern, str):
        pattern = re.compile(pattern, re.IGNORECASE)
    for section in iter_sections(text, level):
        if pattern.match(section.title):
            return section
    return None


def find_sections(text: str, pattern: Union[str, Pattern[str]], level: int) -> List[Section]:
    if isinstance(pattern, str):
        pattern = re.compile(pattern, re.IGNORECASE)
    return [s for s in iter_sections(text, level) if pattern.match(s.title)]


def find_title(text: str) -> Optional[Heading]:
    """The first level-1 heading."""
    for heading in scan_headings(text):
        if heading.level == 1:
            return heading
    return None


def section_intro(body: str) -> str:
    """Text of a section body before its first sub-heading."""
    headings = scan_headings(body)
    if not headings:
        return body.strip()
    return "\n".join(body.split("\n")[:headings[0].line]).strip()


def preamble(text: str) -> str:
    """Text between the title and the first level-1 or level-2 heading that follows it."""
    lines = text.split("\n")
    title = find_title(text)
    start = title.line + 1 if title else 0
    end = len(lines)
    for heading in scan_headings(text):
        if heading.line >= start and heading.level <= 2:
            end = heading.line
            break
    return "\n".join(lines[start:end])


def normalize_key(label: str) -> str:
    """``"Feature Branch"`` -> ``"feature_branch"``."""
    return re.sub(r"\s+", "_", label.strip().lower())


def field_label(key: str) -> str:
    """Inverse of ``normalize_key`` up to letter case."""
    return key.replace("_", " ").title()


def extract_fields(text: str) -> Dict[str, str]:
    """
    Collect ``**Label**: value`` pairs.

    Code spans contribute their content, links their text, plain values
    run to the end of the line or the next ``|`` separator.
    """
    fields: Dict[str, str] = {}
    for match in FIELD_RE.finditer(text):
        key = normalize_key(match.group(1))
        value = next((g for g in match.group(2, 3, 4) if g is not None), "")
        fields[key] = value.strip()
    return fields


def extract_list_items(text: str) -> List[str]:
    """Bullet and numbered list items at any depth, one item per line."""
    items = []
    for line in text.split("\n"):
        match = LIST_ITEM_RE.match(line)
        if match:
            items.append(match.group(1))
    return items


def extract_top_level_items(text: str) -> List[str]:
    """List items that are not indented."""
    items = []
    for line in text.split("\n"):
        if line[:1] in (" ", "\t"):
            continue
        match = LIST_ITEM_RE.match(line)
        if match:
            items.append(match.group(1))
    return items


def _label_line_re(labels: str) -> Pattern[str]:
    # **Label**: value, **Label:** value, optionally as a bullet
    return re.compile(
        rf"^[ \t]*(?:[-*+][ \t]+)?\*\*({labels}):?\*\*:?[ \t]*(.*?)[ \t]*$",
        re.IGNORECASE,
    )


def extract_bold_value(text: str, label: str) -> Optional[str]:
    """Value of the first ``**Label**: value`` line, or None when absent."""
    pattern = _label_line_re(label)
    for line in text.split("\n"):
        match = pattern.match(line)
        if match:
            return match.group(2)
    return None


def extract_labeled_list(text: str, label: str) -> List[str]:
    """List items that follow a ``**Label:**`` line, up to the next bold label line."""
    pattern = _label_line_re(label)
    lines = text.split("\n")
    for index, line in enumerate(lines):
        if not pattern.match(line):
            continue
        block = []
        for following in lines[index + 1:]:
            if BOLD_LABEL_LINE_RE.match(following):
                break
            block.append(following)
        return extract_list_items("\n".join(block))
    return []


def extract_bold_blocks(text: str, labels: Sequence[str]) -> Dict[str, str]:
    """
    Multi-line values introduced by ``**Label**:`` lines.

    A value runs until the next line introducing one of ``labels``.
    Keys are the labels as given.
    """
    pattern = _label_line_re("|".join(re.escape(label) for label in labels))
    canonical = {label.lower(): label for label in labels}
    values: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for line in text.split("\n"):
        match = pattern.match(line)
        if match:
            current = canonical[match.group(1).lower()]
            values[current] = [match.group(2)]
        elif current is not None:
            values[current].append(line)
    return {label: "\n".join(parts).strip() for label, parts in values.items()}


def extract_code_block(text: str) -> Optional[str]:
    """Content of the first fenced code block, without surrounding blank lines."""
    match = CODE_BLOCK_RE.search(text)
    if match is None:
        return None
    return match.group(1).strip("\n")


def _table_cells(line: str) -> List[str]:
    row = line.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|"):
        row = row[:-1]
    return [cell.strip() for cell in row.split("|")]


def extract_table(text: str) -> Optional[Tuple[List[str], List[List[str]]]]:
    """
    First pipe table in ``text`` as (header cells, data rows).

    The row after the header must be a ``---`` separator; the table ends at
    the first line that does not start with ``|``.
    """
    lines = text.split("\n")
    for index in range(len(lines) - 1):
        if not TABLE_ROW_RE.match(lines[index]) or not TABLE_SEPARATOR_RE.match(lines[index + 1]):
            continue
        rows = []
        for line in lines[index + 2:]:
            if not TABLE_ROW_RE.match(line):
                break
            rows.append(_table_cells(line))
        return _table_cells(lines[index]), rows
    return None


def find_clarifications(texts: Union[str, Iterable[str]]) -> List[str]:
    """Questions embedded in ``[NEEDS CLARIFICATION: ...]`` markers, in order."""
    if isinstance(texts, str):
        texts = [texts]
    questions = []
    for text in texts:
        questions.extend(m.group(1) for m in CLARIFICATION_RE.finditer(text))
    return questions


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, ending in an ellipsis when shortened."""
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."
