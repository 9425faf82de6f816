"""
Implementation plan parser.

Reads ``# Implementation Plan: <name>`` documents: summary, technical
context, constitution check, project structure, implementation details
and complexity tracking.
"""

import re
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from anvil.adapters.markdown import (
    extract_bold_blocks,
    extract_code_block,
    extract_fields,
    find_clarifications,
    find_section,
    find_title,
    iter_sections,
    preamble,
)


TITLE_PATTERN = r"^Implementation Plan:\s*(.+?)\s*$"

# field -> accepted labels (first is the rendered one)
SCALAR_FIELDS = {
    "language": ("Language/Version", "Language"),
    "storage": ("Storage",),
    "testing": ("Testing",),
    "target": ("Target", "Target Platform"),
    "type": ("Type", "Project Type"),
    "scale": ("Scale", "Scale/Scope"),
}
LIST_FIELDS = {
    "dependencies": ("Dependencies", "Primary Dependencies"),
    "performance_goals": ("Performance Goals",),
    "constraints": ("Constraints",),
}

_CHECK_RE = re.compile(r"^[ \t]*(?:[-*+][ \t]+)?([✅❌✓✗×])[ \t]+\*\*([^*]+)\*\*[ \t]*:[ \t]*(.*?)[ \t]*$")
_PASSING_MARKS = ("✅", "✓")
_SELECTED_OPTION_RE = re.compile(r"^Option\s+\d+\s*:\s*(.+?)\s*\(Selected\)\s*$", re.IGNORECASE)
_NESTED_ITEM_RE = re.compile(r"^[ \t]+[-*+][ \t]+(.*?)[ \t]*$")


class TechnicalContext(BaseModel):
    """Technical context fields; None means the field was absent."""
    language: Optional[str] = None
    dependencies: Optional[List[str]] = None
    storage: Optional[str] = None
    testing: Optional[str] = None
    target: Optional[str] = None
    type: Optional[str] = None
    performance_goals: Optional[List[str]] = None
    constraints: Optional[List[str]] = None
    scale: Optional[str] = None


class ConstitutionCheck(BaseModel):
    name: str
    passed: bool
    description: str = ""


class ProjectStructure(BaseModel):
    documentation: Optional[str] = None
    source_code: Optional[str] = None
    selected_option: Optional[str] = None


class DetailBlock(BaseModel):
    title: str
    content: str = ""


class ComplexityDecision(BaseModel):
    title: str
    problem: str = ""
    solution: str = ""
    justification: str = ""


class ParsedPlan(BaseModel):
    """Structured content of an implementation plan."""
    feature: str = ""
    fields: Dict[str, str] = Field(default_factory=dict)
    summary: str = ""
    technical_context: TechnicalContext = Field(default_factory=TechnicalContext)
    constitution_check: List[ConstitutionCheck] = Field(default_factory=list)
    project_structure: ProjectStructure = Field(default_factory=ProjectStructure)
    implementation_details: List[DetailBlock] = Field(default_factory=list)
    complexity_decisions: List[ComplexityDecision] = Field(default_factory=list)
    clarifications: List[str] = Field(default_factory=list)


class PlanParser:
    """Parses implementation plan markdown."""

    def parse(self, text: str) -> ParsedPlan:
        """
        Parse an implementation plan.

        Args:
            text: Markdown without aps annotations

        Returns:
            ParsedPlan
        """
        plan = ParsedPlan(feature=self._parse_feature(text), fields=extract_fields(preamble(text)))

        summary = find_section(text, r"Summary\b", 2)
        if summary is not None:
            plan.summary = summary.body.strip()

        context = find_section(text, r"Technical Context\b", 2)
        if context is not None:
            plan.technical_context = self._parse_technical_context(context.body)

        constitution = find_section(text, r"Constitution Check\b", 2)
        if constitution is not None:
            plan.constitution_check = self._parse_constitution(constitution.body)

        structure = find_section(text, r"Project Structure\b", 2)
        if structure is not None:
            plan.project_structure = self._parse_structure(structure.body)

        details = find_section(text, r"Implementation Details\b", 2)
        if details is not None:
            plan.implementation_details = [
                DetailBlock(title=block.title, content=block.body.strip())
                for block in iter_sections(details.body, 3)
            ]

        complexity = find_section(text, r"Complexity Tracking\b", 2)
        if complexity is not None:
            plan.complexity_decisions = self._parse_complexity(complexity.body)

        plan.clarifications = find_clarifications(
            [*plan.fields.values(), plan.summary, *self._context_values(plan.technical_context)]
        )
        return plan

    def _parse_feature(self, text: str) -> str:
        title = find_title(text)
        if title is None:
            return ""
        match = re.match(TITLE_PATTERN, title.title, re.IGNORECASE)
        return match.group(1) if match else ""

    def _parse_technical_context(self, body: str) -> TechnicalContext:
        context = TechnicalContext()
        lines = body.split("\n")
        for attr, labels in {**SCALAR_FIELDS, **LIST_FIELDS}.items():
            pattern = _field_line_re(labels)
            for index, line in enumerate(lines):
                match = pattern.match(line)
                if not match:
                    continue
                inline = match.group(1)
                if attr in SCALAR_FIELDS:
                    setattr(context, attr, inline)
                else:
                    items = [item.strip() for item in inline.split(",") if item.strip()]
                    for following in lines[index + 1:]:
                        nested = _NESTED_ITEM_RE.match(following)
                        if nested:
                            items.append(nested.group(1))
                        elif following.strip():
                            break
                    setattr(context, attr, items)
                break
        return context

    def _parse_constitution(self, body: str) -> List[ConstitutionCheck]:
        checks = []
        for line in body.split("\n"):
            match = _CHECK_RE.match(line)
            if match:
                checks.append(ConstitutionCheck(
                    name=match.group(2).strip(),
                    passed=match.group(1) in _PASSING_MARKS,
                    description=match.group(3),
                ))
        return checks

    def _parse_structure(self, body: str) -> ProjectStructure:
        structure = ProjectStructure()
        documentation = find_section(body, r"Documentation\b", 3)
        if documentation is not None:
            structure.documentation = extract_code_block(documentation.body)

        source = find_section(body, r"Source Code\b", 3)
        scope = source.body if source is not None else body
        for option in iter_sections(scope, 4):
            match = _SELECTED_OPTION_RE.match(option.title)
            if match:
                structure.selected_option = match.group(1)
                structure.source_code = extract_code_block(option.body)
                break
        if structure.source_code is None and source is not None:
            structure.source_code = extract_code_block(source.body)
        return structure

    def _parse_complexity(self, body: str) -> List[ComplexityDecision]:
        decisions = []
        for block in iter_sections(body, 3):
            values = extract_bold_blocks(block.body, ("Problem", "Solution", "Justification"))
            decisions.append(ComplexityDecision(
                title=block.title,
                problem=values.get("Problem", ""),
                solution=values.get("Solution", ""),
                justification=values.get("Justification", ""),
            ))
        return decisions

    @staticmethod
    def _context_values(context: TechnicalContext) -> List[str]:
        values = []
        for value in context.model_dump(exclude_none=True).values():
            values.extend(value if isinstance(value, list) else [value])
        return values


def _field_line_re(labels) -> "re.Pattern":
    alternatives = "|".join(re.escape(label) for label in labels)
    return re.compile(rf"^[ \t]*(?:[-*+][ \t]+)?\*\*(?:{alternatives})\*\*[ \t]*:[ \t]*(.*?)[ \t]*$", re.IGNORECASE)
