"""
BMAD document parsers.

A BMAD project plans work in four document kinds: the product
requirements document (goals, FR/NFR requirements, epics and stories),
the architecture document (tech stack table, components, source tree),
individual story files (YAML front matter, acceptance criteria and
checkbox tasks) and QA results (gate decision and per-check outcomes).
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field

from anvil.adapters.markdown import (
    collapse_whitespace,
    extract_bold_value,
    extract_code_block,
    extract_fields,
    extract_list_items,
    extract_table,
    find_clarifications,
    find_section,
    find_title,
    iter_sections,
    preamble,
    section_intro,
)
from anvil.engine.errors import CanonicalizationError
from anvil.engine.hashing import canonicalize


PRD_TITLE_PATTERN = r"^(?:(?:(.+?)\s+)?Product Requirements Document(?:\s*\(PRD\))?|PRD\s*:\s*(.*?))\s*$"
ARCHITECTURE_TITLE_PATTERN = r"^(?!Story\s+\d|QA\s|PRD\s*:)(?:(.+?)\s+)?Architecture(?:\s+Document)?\s*$"
STORY_TITLE_PATTERN = r"^Story\s+(\d+)\.(\d+)\s*[:.\-–]?\s*(.*?)\s*$"
QA_TITLE_PATTERN = r"^QA\s+(?:Results|Review|Gate)\b\s*:?\s*(.*?)\s*$"

GATE_DECISIONS = ("PASS", "CONCERNS", "FAIL", "WAIVED")

_EPIC_TITLE_RE = re.compile(r"^Epic\s+(\d+)\s*[:.\-–]?\s*(.+?)\s*$", re.IGNORECASE)
_STORY_TITLE_RE = re.compile(STORY_TITLE_PATTERN, re.IGNORECASE)
_REQUIREMENT_RE = re.compile(r"^[ \t]*(?:[-*+][ \t]+)?\**(N?FR\d+)\**[ \t]*:\**[ \t]*(.*?)[ \t]*$")
_USER_STORY_RE = re.compile(
    r"As an?\s+(.+?),\s*I want\s+(.+?),\s*so that\s+(.+?)\.?$", re.IGNORECASE | re.DOTALL
)
_FRONT_MATTER_RE = re.compile(r"\A\s*---[ \t]*\n(.*?)^---[ \t]*$\n?", re.MULTILINE | re.DOTALL)
_TASK_RE = re.compile(r"^([ \t]*)[-*+][ \t]+(?:\[([ xX])\][ \t]+)?(.*?)[ \t]*$")
_AC_REF_RE = re.compile(r"\s*\(AC:?\s*([^)]*)\)\s*$", re.IGNORECASE)
_QA_CHECK_RE = re.compile(r"^[ \t]*[-*+][ \t]+\[(PASS|FAIL|SKIP|WARN)\][ \t]+(.+?)(?:[ \t]*:[ \t]+(.*?))?[ \t]*$")


class UserStory(BaseModel):
    """The ``As a ..., I want ..., so that ...`` sentence; all parts or none."""
    as_a: str = ""
    i_want: str = ""
    so_that: str = ""

    @property
    def present(self) -> bool:
        return bool(self.as_a and self.i_want)


def parse_user_story(text: str) -> UserStory:
    """Find the user-story sentence in ``text``, ignoring bold markers and line breaks."""
    match = _USER_STORY_RE.search(collapse_whitespace(text.replace("**", "")))
    if match is None:
        return UserStory()
    return UserStory(as_a=match.group(1), i_want=match.group(2), so_that=match.group(3))


# -- PRD ---------------------------------------------------------------------


class Requirement(BaseModel):
    code: str = Field(..., description="FR1, NFR2, ...")
    description: str


class PrdStory(BaseModel):
    epic: int
    number: int
    title: str
    user_story: UserStory = Field(default_factory=UserStory)
    acceptance_criteria: List[str] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.epic}.{self.number}"


class Epic(BaseModel):
    number: int
    title: str
    goal: str = ""
    stories: List[PrdStory] = Field(default_factory=list)


class ParsedPrd(BaseModel):
    """Structured content of a product requirements document."""
    project: str = ""
    fields: Dict[str, str] = Field(default_factory=dict)
    goals: List[str] = Field(default_factory=list)
    background: str = ""
    functional: List[Requirement] = Field(default_factory=list)
    non_functional: List[Requirement] = Field(default_factory=list)
    epics: List[Epic] = Field(default_factory=list)
    clarifications: List[str] = Field(default_factory=list)


def _title_match(text: str, pattern: str) -> Optional["re.Match"]:
    title = find_title(text)
    if title is None:
        return None
    return re.match(pattern, title.title, re.IGNORECASE)


class PrdParser:
    """Parses BMAD product requirements documents."""

    def parse(self, text: str) -> ParsedPrd:
        match = _title_match(text, PRD_TITLE_PATTERN)
        prd = ParsedPrd(
            project=(match.group(1) or match.group(2) or "") if match else "",
            fields=extract_fields(preamble(text)),
        )

        goals = find_section(text, r"Goals\b", 2)
        if goals is not None:
            goal_list = find_section(goals.body, r"Goals\b", 3)
            if goal_list is not None:
                prd.goals = extract_list_items(goal_list.body)
            background = find_section(goals.body, r"Background(?:\s+Context)?\b", 3)
            if background is not None:
                prd.background = background.body.strip()

        requirements = find_section(text, r"Requirements\b", 2)
        if requirements is not None:
            functional = find_section(requirements.body, r"Functional\b", 3)
            if functional is not None:
                prd.functional = _parse_requirements(functional.body)
            non_functional = find_section(requirements.body, r"Non[- ]?Functional\b", 3)
            if non_functional is not None:
                prd.non_functional = _parse_requirements(non_functional.body)

        for section in iter_sections(text, 2):
            epic_match = _EPIC_TITLE_RE.match(section.title)
            if epic_match:
                prd.epics.append(self._parse_epic(int(epic_match.group(1)), epic_match.group(2), section.body))

        sources = [*prd.fields.values(), *prd.goals, prd.background]
        sources.extend(r.description for r in prd.functional + prd.non_functional)
        for epic in prd.epics:
            sources.append(epic.goal)
            for story in epic.stories:
                sources.extend([story.title, *story.acceptance_criteria])
        prd.clarifications = find_clarifications(sources)
        return prd

    def _parse_epic(self, number: int, title: str, body: str) -> Epic:
        epic = Epic(number=number, title=title, goal=section_intro(body))
        for block in iter_sections(body, 3):
            match = _STORY_TITLE_RE.match(block.title)
            if not match:
                continue
            story = PrdStory(
                epic=int(match.group(1)),
                number=int(match.group(2)),
                title=match.group(3),
                user_story=parse_user_story(section_intro(block.body)),
            )
            criteria = find_section(block.body, r"Acceptance Criteria\b", 4)
            if criteria is not None:
                story.acceptance_criteria = extract_list_items(criteria.body)
            epic.stories.append(story)
        return epic


def _parse_requirements(body: str) -> List[Requirement]:
    requirements = []
    for line in body.split("\n"):
        match = _REQUIREMENT_RE.match(line)
        if match:
            requirements.append(Requirement(code=match.group(1), description=match.group(2)))
    return requirements


# -- Architecture ------------------------------------------------------------


class TechStack(BaseModel):
    columns: List[str] = Field(default_factory=list)
    rows: List[List[str]] = Field(default_factory=list)

    def column(self, *names: str) -> Optional[int]:
        """Index of the first column whose header matches one of ``names``."""
        wanted = [name.lower() for name in names]
        for index, header in enumerate(self.columns):
            if header.replace("*", "").strip().lower() in wanted:
                return index
        return None


class Component(BaseModel):
    name: str
    responsibility: Optional[str] = None
    content: str = ""


class ParsedArchitecture(BaseModel):
    """Structured content of an architecture document."""
    project: str = ""
    fields: Dict[str, str] = Field(default_factory=dict)
    introduction: str = ""
    high_level: str = ""
    tech_stack: TechStack = Field(default_factory=TechStack)
    components: List[Component] = Field(default_factory=list)
    source_tree: Optional[str] = None
    clarifications: List[str] = Field(default_factory=list)


class ArchitectureParser:
    """Parses BMAD architecture documents."""

    def parse(self, text: str) -> ParsedArchitecture:
        match = _title_match(text, ARCHITECTURE_TITLE_PATTERN)
        architecture = ParsedArchitecture(
            project=(match.group(1) or "") if match else "",
            fields=extract_fields(preamble(text)),
        )

        introduction = find_section(text, r"Introduction\b", 2)
        if introduction is not None:
            architecture.introduction = introduction.body.strip()

        high_level = find_section(text, r"High[- ]Level Architecture\b", 2)
        if high_level is not None:
            architecture.high_level = high_level.body.strip()

        tech_stack = find_section(text, r"Tech(?:nology)? Stack\b", 2)
        if tech_stack is not None:
            table = extract_table(tech_stack.body)
            if table is not None:
                architecture.tech_stack = TechStack(columns=table[0], rows=table[1])

        components = find_section(text, r"Components\b", 2)
        if components is not None:
            architecture.components = [
                Component(
                    name=block.title,
                    responsibility=extract_bold_value(block.body, "Responsibility"),
                    content=block.body.strip(),
                )
                for block in iter_sections(components.body, 3)
            ]

        source_tree = find_section(text, r"Source Tree\b", 2)
        if source_tree is not None:
            architecture.source_tree = extract_code_block(source_tree.body)

        architecture.clarifications = find_clarifications(
            [*architecture.fields.values(), architecture.introduction, architecture.high_level]
        )
        return architecture


# -- Story -------------------------------------------------------------------


class Subtask(BaseModel):
    description: str
    completed: Optional[bool] = None


class StoryTask(BaseModel):
    description: str
    completed: Optional[bool] = None
    acceptance_criteria: List[str] = Field(default_factory=list, description="Referenced AC numbers")
    subtasks: List[Subtask] = Field(default_factory=list)


class ParsedStory(BaseModel):
    """Structured content of a story file."""
    epic: int = 0
    number: int = 0
    title: str = ""
    front_matter: Optional[Dict[str, Any]] = None
    front_matter_raw: Optional[str] = Field(None, description="Front matter text that is not a YAML mapping")
    fields: Dict[str, str] = Field(default_factory=dict)
    status: Optional[str] = None
    user_story: UserStory = Field(default_factory=UserStory)
    acceptance_criteria: List[str] = Field(default_factory=list)
    tasks: List[StoryTask] = Field(default_factory=list)
    dev_notes: Optional[str] = None
    qa_results: Optional[str] = None
    clarifications: List[str] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.epic}.{self.number}"


def split_front_matter(text: str) -> Tuple[Optional[str], str]:
    """Split a leading ``---`` YAML block from the markdown body."""
    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return None, text
    return match.group(1), text[match.end():]


def load_front_matter(raw: str) -> Optional[Dict[str, Any]]:
    """
    Load front matter as a JSON-compatible mapping.

    Returns:
        The mapping, or None when the block is not a YAML mapping
    """
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError:
        return None
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    try:
        # dates and other YAML scalars become their JSON form
        return json.loads(canonicalize(data))
    except CanonicalizationError:
        return None


class StoryParser:
    """Parses BMAD story files."""

    def parse(self, text: str) -> ParsedStory:
        raw, body = split_front_matter(text)
        story = ParsedStory(fields=extract_fields(preamble(body)))
        if raw is not None:
            story.front_matter = load_front_matter(raw)
            if story.front_matter is None:
                story.front_matter_raw = raw.strip("\n")

        match = _title_match(body, STORY_TITLE_PATTERN)
        if match:
            story.epic, story.number, story.title = int(match.group(1)), int(match.group(2)), match.group(3)

        status = find_section(body, r"Status\b", 2)
        if status is not None:
            story.status = status.body.strip()

        user_story = find_section(body, r"Story\b", 2)
        if user_story is not None:
            story.user_story = parse_user_story(user_story.body)

        criteria = find_section(body, r"Acceptance Criteria\b", 2)
        if criteria is not None:
            story.acceptance_criteria = extract_list_items(criteria.body)

        tasks = find_section(body, r"Tasks(?:\s*/\s*Subtasks)?\b", 2)
        if tasks is not None:
            story.tasks = _parse_story_tasks(tasks.body)

        dev_notes = find_section(body, r"Dev Notes\b", 2)
        if dev_notes is not None:
            story.dev_notes = dev_notes.body.strip()

        qa_results = find_section(body, r"QA Results\b", 2)
        if qa_results is not None:
            story.qa_results = qa_results.body.strip()

        sources = [*story.fields.values(), story.title, *story.acceptance_criteria]
        for task in story.tasks:
            sources.append(task.description)
            sources.extend(subtask.description for subtask in task.subtasks)
        story.clarifications = find_clarifications(sources)
        return story


def _parse_story_tasks(body: str) -> List[StoryTask]:
    tasks: List[StoryTask] = []
    for line in body.split("\n"):
        match = _TASK_RE.match(line)
        if not match or not match.group(3):
            continue
        done = match.group(2)
        completed = None if done is None else done != " "
        if match.group(1):
            if tasks:
                tasks[-1].subtasks.append(Subtask(description=match.group(3), completed=completed))
            continue
        description = match.group(3)
        references: List[str] = []
        ac = _AC_REF_RE.search(description)
        if ac:
            references = [ref.strip() for ref in ac.group(1).split(",") if ref.strip()]
            description = description[:ac.start()]
        tasks.append(StoryTask(description=description, completed=completed, acceptance_criteria=references))
    return tasks


# -- QA ----------------------------------------------------------------------


class QACheck(BaseModel):
    name: str
    status: str = Field(..., description="PASS, FAIL, SKIP or WARN")
    message: Optional[str] = None


class ParsedQA(BaseModel):
    """Structured content of a QA results document."""
    subject: str = ""
    fields: Dict[str, str] = Field(default_factory=dict)
    gate: Optional[str] = Field(None, description="PASS, CONCERNS, FAIL or WAIVED")
    findings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    checks: List[QACheck] = Field(default_factory=list)
    clarifications: List[str] = Field(default_factory=list)


class QAParser:
    """Parses BMAD QA result documents."""

    def parse(self, text: str) -> ParsedQA:
        match = _title_match(text, QA_TITLE_PATTERN)
        fields = extract_fields(preamble(text))
        qa = ParsedQA(subject=match.group(1) if match else "", fields=fields)

        gate = fields.get("gate")
        if gate:
            decision = gate.split()[0].upper().strip(".,;:")
            qa.gate = decision if decision in GATE_DECISIONS else gate

        findings = find_section(text, r"Findings\b", 2)
        if findings is not None:
            qa.findings = extract_list_items(findings.body)

        recommendations = find_section(text, r"Recommendations\b", 2)
        if recommendations is not None:
            qa.recommendations = extract_list_items(recommendations.body)

        checks = find_section(text, r"Checks\b", 2)
        if checks is not None:
            for line in checks.body.split("\n"):
                check = _QA_CHECK_RE.match(line)
                if check:
                    qa.checks.append(QACheck(name=check.group(2), status=check.group(1), message=check.group(3)))

        qa.clarifications = find_clarifications([*fields.values(), *qa.findings, *qa.recommendations])
        return qa
