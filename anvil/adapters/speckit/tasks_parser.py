"""
Task breakdown parser.

Reads ``# Tasks: <name>`` documents: numbered phases of task lines,
dependency and execution-order notes, and implementation strategies.

Task lines look like ``- [001] [P] [US1] Create the user model`` or
``- [ ] T001 [P] [US1] Create the user model``. The parallel marker and
the story reference are both optional and may appear in either order.
Tasks keep document order; the numeric id is exposed separately.
"""

import re
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

from anvil.adapters.markdown import (
    extract_bold_value,
    extract_fields,
    extract_list_items,
    find_clarifications,
    find_section,
    find_title,
    iter_sections,
    preamble,
    section_intro,
)


TITLE_PATTERN = r"^Tasks:\s*(.+?)\s*$"

_PHASE_TITLE_RE = re.compile(r"^Phase\s+(\d+)\s*:\s*(.+?)\s*$", re.IGNORECASE)
_TASK_RE = re.compile(
    r"^[ \t]*[-*+][ \t]+(?:\[(?P<done>[ xX])\][ \t]+)?(?:\[(?P<num>\d+)\]|(?P<tid>T\d+)\b)[ \t]*(?P<rest>.*?)[ \t]*$"
)
_MARKER_RE = re.compile(r"^\[([^\]]+)\][ \t]*")
_STRATEGY_TITLE_RE = re.compile(r"^Strategy\s+\d+\s*:\s*(.+?)\s*$", re.IGNORECASE)
_RECOMMENDED_SUFFIX_RE = re.compile(r"\s*\((?:recommended)\)\s*$", re.IGNORECASE)
_RECOMMENDED_LINE_RE = re.compile(r"^[ \t]*\*\*Recommended\*\*", re.IGNORECASE | re.MULTILINE)


class TaskItem(BaseModel):
    """A single task line."""
    id: str = Field(..., description="Id as written, e.g. 001 or T001")
    number: int = Field(..., description="Numeric part of the id")
    parallel: bool = False
    story: Optional[str] = None
    description: str = ""
    completed: Optional[bool] = Field(None, description="Checkbox state; None without a checkbox")


class Phase(BaseModel):
    order: int
    name: str
    purpose: Optional[str] = None
    tasks: List[TaskItem] = Field(default_factory=list)
    checkpoint: Optional[str] = None


class DependencyGroup(BaseModel):
    title: str
    kind: str = Field("other", description="sequential, parallel or other")
    items: List[str] = Field(default_factory=list)


class Strategy(BaseModel):
    name: str
    description: str = ""
    recommended: bool = False


class ParsedTasks(BaseModel):
    """Structured content of a task breakdown."""
    feature: str = ""
    fields: Dict[str, str] = Field(default_factory=dict)
    phases: List[Phase] = Field(default_factory=list)
    dependencies: List[DependencyGroup] = Field(default_factory=list)
    strategies: List[Strategy] = Field(default_factory=list)
    clarifications: List[str] = Field(default_factory=list)

    def all_tasks(self) -> List[Tuple[Phase, TaskItem]]:
        """Every task with its phase, in document order."""
        return [(phase, task) for phase in self.phases for task in phase.tasks]


def parse_task_line(line: str) -> Optional[TaskItem]:
    """
    Parse one task line, or return None when the line is not a task.

    Markers after the id are consumed left to right: the first ``[P]``
    sets ``parallel``, the first other bracket sets ``story``; anything
    after that is description.
    """
    match = _TASK_RE.match(line)
    if not match:
        return None

    if match.group("num") is not None:
        task_id, number = match.group("num"), int(match.group("num"))
    else:
        task_id, number = match.group("tid"), int(match.group("tid")[1:])

    done = match.group("done")
    task = TaskItem(id=task_id, number=number, completed=None if done is None else done != " ")

    rest = match.group("rest")
    while True:
        marker = _MARKER_RE.match(rest)
        if not marker:
            break
        token = marker.group(1).strip()
        if token.upper() == "P" and not task.parallel:
            task.parallel = True
        elif task.story is None and token.upper() != "P":
            task.story = token
        else:
            break
        rest = rest[marker.end():]
    task.description = rest.strip()
    return task


class TasksParser:
    """Parses task breakdown markdown."""

    def parse(self, text: str) -> ParsedTasks:
        """
        Parse a task breakdown.

        Args:
            text: Markdown without aps annotations

        Returns:
            ParsedTasks
        """
        tasks = ParsedTasks(feature=self._parse_feature(text), fields=extract_fields(preamble(text)))

        for section in iter_sections(text, 2):
            match = _PHASE_TITLE_RE.match(section.title)
            if match:
                tasks.phases.append(self._parse_phase(int(match.group(1)), match.group(2), section.body))

        dependencies = find_section(text, r"Dependencies\s*(?:&|and)\s*Execution Order\b", 2)
        if dependencies is not None:
            tasks.dependencies = [
                DependencyGroup(title=block.title, kind=_dependency_kind(block.title),
                                items=extract_list_items(block.body))
                for block in iter_sections(dependencies.body, 3)
            ]

        strategies = find_section(text, r"Implementation Strateg(?:y|ies)\b", 2)
        if strategies is not None:
            tasks.strategies = self._parse_strategies(strategies.body)

        sources = [*tasks.fields.values()]
        for phase, task in tasks.all_tasks():
            sources.append(task.description)
        tasks.clarifications = find_clarifications(sources)
        return tasks

    def _parse_feature(self, text: str) -> str:
        title = find_title(text)
        if title is None:
            return ""
        match = re.match(TITLE_PATTERN, title.title, re.IGNORECASE)
        return match.group(1) if match else ""

    def _parse_phase(self, order: int, name: str, body: str) -> Phase:
        phase = Phase(
            order=order,
            name=name,
            purpose=extract_bold_value(body, "Purpose"),
            checkpoint=extract_bold_value(body, "Checkpoint"),
        )
        for line in body.split("\n"):
            task = parse_task_line(line)
            if task is not None:
                phase.tasks.append(task)
        return phase

    def _parse_strategies(self, body: str) -> List[Strategy]:
        # "**Recommended**: <name>" in the section intro marks one strategy by name
        recommended_name = extract_bold_value(section_intro(body), "Recommended")
        strategies = []
        for block in iter_sections(body, 3):
            title = block.title
            recommended = bool(_RECOMMENDED_SUFFIX_RE.search(title))
            title = _RECOMMENDED_SUFFIX_RE.sub("", title)
            match = _STRATEGY_TITLE_RE.match(title)
            name = match.group(1) if match else title.strip()
            description = block.body.strip()
            if _RECOMMENDED_LINE_RE.search(description):
                recommended = True
            if recommended_name and recommended_name.lower() in block.title.lower():
                recommended = True
            strategies.append(Strategy(name=name, description=description, recommended=recommended))
        return strategies


def _dependency_kind(title: str) -> str:
    lowered = title.lower()
    if "sequential" in lowered:
        return "sequential"
    if "parallel" in lowered:
        return "parallel"
    return "other"
