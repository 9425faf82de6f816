"""
Spec-kit adapter.

Converts the spec-kit document triad (feature spec, implementation plan,
task breakdown) to and from canonical plans.
"""

import re
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

from anvil.adapters.changes import infer_change_path, infer_change_type, make_change, slugify
from anvil.adapters.detection import Indicator
from anvil.adapters.dialect import DocumentBuild, DocumentKind, MarkdownDialectAdapter
from anvil.adapters.markdown import collapse_whitespace, find_clarifications, truncate
from anvil.adapters.speckit.plan_parser import ParsedPlan, PlanParser
from anvil.adapters.speckit.spec_parser import (
    REQUIREMENTS_SECTION,
    SCENARIOS_SECTION,
    SUCCESS_SECTION,
    FunctionalRequirement,
    ParsedSpec,
    SpecParser,
)
from anvil.adapters.speckit.tasks_parser import ParsedTasks, TasksParser
from anvil.adapters.speckit.templates import render_plan, render_spec, render_tasks
from anvil.models.adapter import AdapterMetadata
from anvil.models.plan import INTENT_MIN_LENGTH, APSPlan, ChangeType


# Manifest that receives dependency changes, by language keyword
DEPENDENCY_MANIFESTS = (
    (r"\bpython\b", "pyproject.toml"),
    (r"\b(?:typescript|javascript|node(?:\.js)?|deno|bun)\b", "package.json"),
    (r"\bgo(?:lang)?\b", "go.mod"),
    (r"\brust\b", "Cargo.toml"),
    (r"\b(?:java|kotlin)\b", "build.gradle"),
    (r"\bruby\b", "Gemfile"),
)
DEFAULT_MANIFEST = "dependencies"
MAX_LISTED_DEPENDENCIES = 5


class SpecKitAdapter(MarkdownDialectAdapter):
    """Adapter for spec-kit ``spec.md`` / ``plan.md`` / ``tasks.md`` documents."""

    metadata = AdapterMetadata(
        name="speckit",
        version="2.0.0",
        display_name="Spec-Kit",
        description="GitHub spec-kit feature specifications, implementation plans and task lists",
        extensions=(".md",),
        formats=("speckit", "spec-kit", "spec.md", "plan.md", "tasks.md"),
    )

    indicators = (
        Indicator(r"^#\s+Feature(?:\s+Specification)?:", 30, "feature title"),
        Indicator(r"^#\s+Implementation Plan:", 30, "plan title"),
        Indicator(r"^#\s+Tasks:", 30, "tasks title"),
        Indicator(r"^##\s+User Scenarios?\s*(?:&|and)\s*Testing", 20, "user scenarios"),
        Indicator(r"\*\*FR-\d+\*\*", 20, "functional requirement"),
        Indicator(r"\[NEEDS CLARIFICATION", 10, "clarification marker"),
        Indicator(r"^##\s+Technical Context", 20, "technical context"),
        Indicator(r"^##\s+Constitution Check", 15, "constitution check"),
        Indicator(r"^##\s+Phase\s+\d+:", 20, "phase heading"),
        Indicator(r"^\s*[-*]\s+(?:\[[ xX]\]\s+)?(?:\[\d+\]|T\d+\b)", 20, "task line"),
        Indicator(r"^##\s+Success Criteria", 15, "success criteria"),
        Indicator(r"^##\s+Dependencies\s*(?:&|and)\s*Execution Order", 15, "execution order"),
        Indicator(r"\*\*Checkpoint\*\*", 10, "checkpoint"),
    )

    intent_kinds = ("spec", "plan", "tasks")
    bundle_required = ("spec",)

    def __init__(self, id_generator=None, clock=None):
        self._spec_parser = SpecParser()
        self._plan_parser = PlanParser()
        self._tasks_parser = TasksParser()
        super().__init__(id_generator=id_generator, clock=clock)

    def document_kinds(self) -> Sequence[DocumentKind]:
        return (
            DocumentKind(
                "spec",
                r"^Feature(?:\s+Specification)?:",
                ParsedSpec,
                self._spec_parser.parse,
                render_spec,
                expected_sections=(
                    ("User Scenarios & Testing", SCENARIOS_SECTION),
                    ("Requirements", REQUIREMENTS_SECTION),
                    ("Success Criteria", SUCCESS_SECTION),
                ),
            ),
            DocumentKind(
                "plan",
                r"^Implementation Plan:",
                ParsedPlan,
                self._plan_parser.parse,
                render_plan,
                expected_sections=(
                    ("Summary", r"Summary\b"),
                    ("Technical Context", r"Technical Context\b"),
                    ("Project Structure", r"Project Structure\b"),
                ),
            ),
            DocumentKind(
                "tasks",
                r"^Tasks:",
                ParsedTasks,
                self._tasks_parser.parse,
                render_tasks,
                expected_sections=(
                    ("Dependencies & Execution Order", r"Dependencies\s*(?:&|and)\s*Execution Order\b"),
                ),
            ),
        )

    def build_document(self, kind: str, record: BaseModel, records: Mapping[str, BaseModel],
                       timestamp: str) -> DocumentBuild:
        if kind == "spec":
            return self._build_spec(record, records.get("plan"))
        if kind == "plan":
            return self._build_plan(record)
        return self._build_tasks(record)

    def fallback_record(self, plan: APSPlan) -> Tuple[str, BaseModel]:
        requirements = []
        for index, change in enumerate(plan.proposed_changes, start=1):
            description = f"{change.type.value} `{change.path}`: {collapse_whitespace(change.description)}"
            questions = find_clarifications(description)
            requirements.append(FunctionalRequirement(
                code=f"FR-{index:03d}",
                description=description,
                needs_clarification=bool(questions),
                clarification_question=questions[0] if questions else None,
            ))
        spec = ParsedSpec(
            feature=truncate(collapse_whitespace(plan.intent), 80),
            functional_requirements=requirements,
        )
        return "spec", spec

    # -- spec ----------------------------------------------------------------

    def _build_spec(self, spec: ParsedSpec, plan: Optional[ParsedPlan]) -> DocumentBuild:
        feature = _feature_name(spec.feature)
        stories = [
            f"{s.as_a} wants to {s.i_want_to} so that {s.so_that}"
            for s in spec.scenarios
            if s.priority == "P1" and s.as_a and s.i_want_to
        ]
        intent = ". ".join(f"{feature}: {story}" for story in stories) if stories else f"Implement {feature}"

        root = _scenario_root(plan)
        changes = []
        for scenario in spec.scenarios:
            if scenario.priority not in ("P1", "P2"):
                continue
            metadata: Dict[str, Any] = {"priority": scenario.priority, "user_story": scenario.title}
            if scenario.acceptance_scenarios:
                metadata["acceptance_scenarios"] = list(scenario.acceptance_scenarios)
            if scenario.edge_cases:
                metadata["edge_cases"] = list(scenario.edge_cases)
            description = f"Implement {scenario.title}"
            if scenario.i_want_to:
                description += f": {scenario.i_want_to}"
            changes.append(make_change(
                ChangeType.FILE_CREATE,
                f"{root}{slugify(scenario.title)}/",
                description,
                metadata,
            ))
        return DocumentBuild(intent=intent, changes=changes)

    # -- plan ----------------------------------------------------------------

    def _build_plan(self, plan: ParsedPlan) -> DocumentBuild:
        feature = _feature_name(plan.feature)
        summary = collapse_whitespace(plan.summary)
        intent = summary if len(summary) >= INTENT_MIN_LENGTH else f"Implement {feature}"

        source_layout = plan.project_structure.source_code or ""
        changes = []
        for detail in plan.implementation_details:
            if re.search(r"\bdatabase\b", detail.title, re.IGNORECASE):
                changes.append(make_change(
                    ChangeType.FILE_CREATE,
                    "database/migrations/",
                    f"Create database migrations: {detail.title}",
                    {"detail": detail.title},
                ))
            elif re.search(r"\bAPI\b", detail.title):
                changes.append(make_change(
                    ChangeType.FILE_CREATE,
                    _api_root(source_layout),
                    f"Implement API: {detail.title}",
                    {"detail": detail.title},
                ))

        dependencies = plan.technical_context.dependencies or []
        if dependencies:
            listed = ", ".join(dependencies[:MAX_LISTED_DEPENDENCIES])
            if len(dependencies) > MAX_LISTED_DEPENDENCIES:
                listed += "..."
            changes.append(make_change(
                ChangeType.DEPENDENCY_ADD,
                _dependency_manifest(plan.technical_context.language),
                f"Install dependencies: {listed}",
                {"dependencies": list(dependencies)},
            ))
        return DocumentBuild(intent=intent, changes=changes)

    # -- tasks ---------------------------------------------------------------

    def _build_tasks(self, tasks: ParsedTasks) -> DocumentBuild:
        feature = _feature_name(tasks.feature)
        if tasks.phases:
            intent = f"Implement {feature}: " + ", ".join(phase.name for phase in tasks.phases)
        else:
            intent = f"Implement {feature}"

        changes = []
        for phase, task in tasks.all_tasks():
            description = task.description or f"Task {task.id}"
            metadata: Dict[str, Any] = {
                "task_id": task.id,
                "phase": phase.name,
                "phase_order": phase.order,
                "parallel": task.parallel,
            }
            if task.story:
                metadata["story"] = task.story
            if task.completed is not None:
                metadata["completed"] = task.completed
            changes.append(make_change(
                infer_change_type(description),
                infer_change_path(description) or f"tasks/{task.id}",
                description,
                metadata,
            ))
        return DocumentBuild(intent=intent, changes=changes)


def _feature_name(feature: str) -> str:
    return feature or "feature"


def _scenario_root(plan: Optional[ParsedPlan]) -> str:
    layout = plan.project_structure.source_code if plan is not None else None
    if layout:
        if "src/modules" in layout or re.search(r"^\s*[│├└─\s]*modules/", layout, re.MULTILINE):
            return "src/modules/"
        if "src/features" in layout or re.search(r"^\s*[│├└─\s]*features/", layout, re.MULTILINE):
            return "src/features/"
    return "src/"


def _api_root(layout: str) -> str:
    if "controllers/" in layout:
        return "src/controllers/"
    if "routes/" in layout:
        return "src/routes/"
    return "src/api/"


def _dependency_manifest(language: Optional[str]) -> str:
    if not language:
        return DEFAULT_MANIFEST
    for pattern, manifest in DEPENDENCY_MANIFESTS:
        if re.search(pattern, language, re.IGNORECASE):
            return manifest
    return DEFAULT_MANIFEST
