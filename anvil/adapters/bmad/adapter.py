"""
BMAD adapter.

Converts BMAD planning documents (PRD, architecture, story files and QA
results) to and from canonical plans. PRD stories and story tasks become
changes, tech stack rows become dependency changes, and a QA gate becomes
an evidence record.
"""

from typing import Any, Dict, List, Mapping, Sequence, Tuple

from pydantic import BaseModel

from anvil.adapters.base import create_warning
from anvil.adapters.bmad.parsers import (
    ARCHITECTURE_TITLE_PATTERN,
    PRD_TITLE_PATTERN,
    QA_TITLE_PATTERN,
    STORY_TITLE_PATTERN,
    ArchitectureParser,
    ParsedArchitecture,
    ParsedPrd,
    ParsedQA,
    ParsedStory,
    PrdParser,
    QAParser,
    Requirement,
    StoryParser,
)
from anvil.adapters.bmad.templates import render_architecture, render_prd, render_qa, render_story
from anvil.adapters.changes import infer_change_path, infer_change_type, make_change, slugify
from anvil.adapters.detection import Indicator
from anvil.adapters.dialect import DocumentBuild, DocumentKind, MarkdownDialectAdapter
from anvil.adapters.markdown import collapse_whitespace, truncate
from anvil.engine.evidence import determine_overall_status
from anvil.models.adapter import AdapterMetadata
from anvil.models.plan import INTENT_MIN_LENGTH, APSPlan, ChangeType, CheckResult, Evidence, OverallStatus


GATE_STATUSES = {
    "PASS": OverallStatus.PASSED,
    "WAIVED": OverallStatus.PASSED,
    "CONCERNS": OverallStatus.PARTIAL,
    "FAIL": OverallStatus.FAILED,
}
CHECK_STATUSES = {"PASS": "passed", "FAIL": "failed", "SKIP": "skipped", "WARN": "warning"}


class BmadAdapter(MarkdownDialectAdapter):
    """Adapter for BMAD PRD / architecture / story / QA documents."""

    metadata = AdapterMetadata(
        name="bmad",
        version="1.0.0",
        display_name="BMAD",
        description="BMAD method product requirements, architecture, story and QA documents",
        extensions=(".md",),
        formats=("bmad", "prd", "architecture", "story", "qa"),
    )

    indicators = (
        Indicator(r"^#\s+.*Product Requirements Document", 35, "prd title"),
        Indicator(r"^#\s+PRD\s*:", 35, "prd short title"),
        Indicator(r"^#\s+Story\s+\d+\.\d+", 35, "story title"),
        Indicator(r"^#\s+QA\s+(?:Results|Review|Gate)\b", 35, "qa title"),
        Indicator(r"^#\s+.*Architecture(?:\s+Document)?\s*$", 30, "architecture title"),
        Indicator(r"^##\s+Goals and Background Context", 15, "goals"),
        Indicator(r"^##\s+Epic\s+\d+", 20, "epic heading"),
        Indicator(r"^###\s+Story\s+\d+\.\d+", 20, "story heading"),
        Indicator(r"^\s*(?:[-*+]\s+)?\**N?FR\d+\**\s*:", 15, "numbered requirement"),
        Indicator(r"^##\s+Tasks\s*/\s*Subtasks", 20, "tasks / subtasks"),
        Indicator(r"^##\s+Dev Notes", 15, "dev notes"),
        Indicator(r"\(AC:\s*[\d, ]+\)", 10, "acceptance criteria reference"),
        Indicator(r"^##\s+Tech Stack", 15, "tech stack"),
        Indicator(r"\*\*Gate\*\*", 10, "gate decision"),
    )

    intent_kinds = ("prd", "story", "architecture", "qa")
    bundle_required = ("prd", "story")

    def __init__(self, id_generator=None, clock=None):
        self._prd_parser = PrdParser()
        self._architecture_parser = ArchitectureParser()
        self._story_parser = StoryParser()
        self._qa_parser = QAParser()
        super().__init__(id_generator=id_generator, clock=clock)

    def document_kinds(self) -> Sequence[DocumentKind]:
        return (
            DocumentKind(
                "prd",
                PRD_TITLE_PATTERN,
                ParsedPrd,
                self._prd_parser.parse,
                render_prd,
                expected_sections=(("Goals and Background Context", r"Goals\b"), ("Requirements", r"Requirements\b")),
            ),
            DocumentKind(
                "architecture",
                ARCHITECTURE_TITLE_PATTERN,
                ParsedArchitecture,
                self._architecture_parser.parse,
                render_architecture,
                expected_sections=(("Tech Stack", r"Tech(?:nology)? Stack\b"),),
            ),
            DocumentKind(
                "story",
                STORY_TITLE_PATTERN,
                ParsedStory,
                self._story_parser.parse,
                render_story,
                expected_sections=(
                    ("Acceptance Criteria", r"Acceptance Criteria\b"),
                    ("Tasks / Subtasks", r"Tasks(?:\s*/\s*Subtasks)?\b"),
                ),
            ),
            DocumentKind(
                "qa",
                QA_TITLE_PATTERN,
                ParsedQA,
                self._qa_parser.parse,
                render_qa,
            ),
        )

    def build_document(self, kind: str, record: BaseModel, records: Mapping[str, BaseModel],
                       timestamp: str) -> DocumentBuild:
        if kind == "prd":
            return self._build_prd(record)
        if kind == "architecture":
            return self._build_architecture(record)
        if kind == "story":
            return self._build_story(record)
        return self._build_qa(record, timestamp)

    def fallback_record(self, plan: APSPlan) -> Tuple[str, BaseModel]:
        requirements = [
            Requirement(
                code=f"FR{index}",
                description=f"{change.type.value} `{change.path}`: {collapse_whitespace(change.description)}",
            )
            for index, change in enumerate(plan.proposed_changes, start=1)
        ]
        prd = ParsedPrd(
            project=truncate(collapse_whitespace(plan.intent), 80),
            goals=[collapse_whitespace(plan.intent)],
            functional=requirements,
        )
        return "prd", prd

    # -- prd -----------------------------------------------------------------

    def _build_prd(self, prd: ParsedPrd) -> DocumentBuild:
        project = prd.project or "product"
        intent = ""
        if prd.goals:
            intent = f"{project}: " + "; ".join(prd.goals)
        elif prd.epics:
            intent = f"Deliver {project}: " + ", ".join(epic.title for epic in prd.epics)
        if len(intent) < INTENT_MIN_LENGTH:
            intent = f"Implement {project} requirements"

        changes = []
        for epic in prd.epics:
            for story in epic.stories:
                metadata: Dict[str, Any] = {"epic": story.epic, "story": story.key}
                if story.acceptance_criteria:
                    metadata["acceptance_criteria"] = list(story.acceptance_criteria)
                changes.append(make_change(
                    ChangeType.FILE_CREATE,
                    f"docs/stories/{story.key}.{slugify(story.title)}.md",
                    f"Story {story.key}: {story.title}",
                    metadata,
                ))
        return DocumentBuild(intent=intent, changes=changes)

    # -- architecture --------------------------------------------------------

    def _build_architecture(self, architecture: ParsedArchitecture) -> DocumentBuild:
        introduction = collapse_whitespace(architecture.introduction)
        if len(introduction) >= INTENT_MIN_LENGTH:
            intent = introduction
        else:
            intent = f"Implement {architecture.project or 'system'} architecture"

        stack = architecture.tech_stack
        technology = stack.column("technology", "tool", "framework")
        if technology is None:
            technology = 1 if len(stack.columns) > 1 else 0
        category = stack.column("category", "layer")
        version = stack.column("version")

        changes = []
        for row in stack.rows:
            name = _cell(row, technology)
            if not name:
                continue
            description = f"Add {name}"
            if _cell(row, version):
                description += f" {_cell(row, version)}"
            if _cell(row, category):
                description += f" ({_cell(row, category)})"
            metadata = {
                header.replace("*", "").strip().lower(): value
                for header, value in zip(stack.columns, row)
                if header.strip() and value
            }
            changes.append(make_change(ChangeType.DEPENDENCY_ADD, name, description, metadata))
        return DocumentBuild(intent=intent, changes=changes)

    # -- story ---------------------------------------------------------------

    def _build_story(self, story: ParsedStory) -> DocumentBuild:
        user_story = story.user_story
        if user_story.present:
            intent = (
                f"Story {story.key} {story.title}: As a {user_story.as_a}, "
                f"I want {user_story.i_want}, so that {user_story.so_that}"
            )
        else:
            intent = f"Implement story {story.key}: {story.title}"

        warnings = []
        if story.front_matter_raw is not None:
            warnings.append(create_warning(
                "INVALID_FRONT_MATTER",
                "Story front matter is not a YAML mapping; it is kept verbatim",
                path="story",
            ))

        changes = []
        for index, task in enumerate(story.tasks, start=1):
            description = task.description or f"Task {index}"
            metadata: Dict[str, Any] = {"story": story.key, "task_index": index}
            if task.acceptance_criteria:
                metadata["acceptance_criteria"] = list(task.acceptance_criteria)
            if task.completed is not None:
                metadata["completed"] = task.completed
            if task.subtasks:
                metadata["subtasks"] = [subtask.description for subtask in task.subtasks]
            changes.append(make_change(
                infer_change_type(description),
                infer_change_path(description) or f"docs/stories/{story.key}/task-{index}",
                description,
                metadata,
            ))
        return DocumentBuild(intent=intent, changes=changes, warnings=warnings)

    # -- qa ------------------------------------------------------------------

    def _build_qa(self, qa: ParsedQA, timestamp: str) -> DocumentBuild:
        subject = qa.subject or "story"
        intent = f"QA review of {subject}"
        if qa.gate:
            intent += f": gate {qa.gate}"

        evidence: List[Dict[str, Any]] = []
        if qa.gate is not None or qa.checks:
            checks = [
                CheckResult(
                    check=check.name,
                    status=CHECK_STATUSES[check.status],
                    timestamp=timestamp,
                    message=check.message or None,
                )
                for check in qa.checks
            ]
            overall = GATE_STATUSES.get(qa.gate or "")
            if overall is None:
                overall = determine_overall_status(checks)
            summary = f"QA gate {qa.gate}" if qa.gate else "QA checks"
            summary += f": {len(qa.findings)} finding(s), {len(qa.recommendations)} recommendation(s)"
            record = Evidence(
                gate_version=f"bmad-qa/{self.metadata.version}",
                timestamp=timestamp,
                overall_status=overall,
                checks=checks,
                summary=summary,
            )
            evidence.append(record.model_dump(mode="json", exclude_none=True))
        return DocumentBuild(intent=intent, evidence=evidence)


def _cell(row: List[str], index) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index].replace("**", "").strip()
