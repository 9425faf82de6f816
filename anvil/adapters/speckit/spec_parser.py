"""
Feature specification parser.

Reads ``# Feature: <name>`` documents: prioritized user scenarios,
functional requirements, key entities and success criteria.
"""

import re
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from anvil.adapters.markdown import (
    Section,
    extract_fields,
    extract_labeled_list,
    extract_list_items,
    find_clarifications,
    find_section,
    find_title,
    iter_sections,
    preamble,
)


TITLE_PATTERN = r"^Feature(?:\s+Specification)?:\s*(.+?)\s*$"

SCENARIOS_SECTION = r"User Scenarios?\s*(?:&|and)?\s*Testing"
REQUIREMENTS_SECTION = r"Requirements\b"
SUCCESS_SECTION = r"Success Criteria\b"

# "P1: Title" or "User Story 1 - Title (Priority: P1)"
_SCENARIO_TITLE_RE = re.compile(r"^(P\d+)\s*:\s*(.+?)\s*$", re.IGNORECASE)
_USER_STORY_TITLE_RE = re.compile(
    r"^User Story\s+\d+\s*[-–:]\s*(.+?)\s*\(Priority:\s*(P\d+)\)\s*$", re.IGNORECASE
)
_AS_A_RE = re.compile(r"^[ \t]*\*\*As an?\*\*[ \t]*(.*?)[ \t]*$", re.IGNORECASE)
_I_WANT_RE = re.compile(r"^[ \t]*\*\*I want(?: to)?\*\*[ \t]*(.*?)[ \t]*$", re.IGNORECASE)
_SO_THAT_RE = re.compile(r"^[ \t]*\*\*So that\*\*[ \t]*(.*?)[ \t]*$", re.IGNORECASE)
_FR_RE = re.compile(r"^[ \t]*(?:[-*+][ \t]+)?\*\*(FR-\d+)\*\*[ \t]*:[ \t]*(.*?)[ \t]*$")
_ENTITY_RE = re.compile(r"^[ \t]*(?:[-*+][ \t]+)?\*\*([^*]+?)\*\*[ \t]*(?::[ \t]*(.*?))?[ \t]*$")
_ENTITY_FIELD_RE = re.compile(
    r"^[ \t]*[-*+][ \t]+(Represents|Key Attributes|Relationships)[ \t]*:[ \t]*(.*?)[ \t]*$", re.IGNORECASE
)
_METRIC_SECTIONS = {
    "quantitative": r"(?:Quantitative Metrics|Measurable Outcomes)\b",
    "qualitative": r"Qualitative Metrics\b",
    "security": r"Security Metrics\b",
    "performance": r"Performance Metrics\b",
}


class UserScenario(BaseModel):
    """A prioritized user story with its acceptance scenarios."""
    priority: str = Field(..., description="Priority label, e.g. P1")
    title: str
    as_a: str = ""
    i_want_to: str = ""
    so_that: str = ""
    acceptance_scenarios: List[str] = Field(default_factory=list)
    edge_cases: List[str] = Field(default_factory=list)


class FunctionalRequirement(BaseModel):
    """An ``FR-###`` requirement; the description keeps any clarification marker verbatim."""
    code: str = Field(..., description="Requirement id, e.g. FR-001")
    description: str
    needs_clarification: bool = False
    clarification_question: Optional[str] = None


class KeyEntity(BaseModel):
    name: str
    represents: str = ""
    key_attributes: List[str] = Field(default_factory=list)
    relationships: List[str] = Field(default_factory=list)


class SuccessCriteria(BaseModel):
    quantitative: List[str] = Field(default_factory=list)
    qualitative: List[str] = Field(default_factory=list)
    security: Optional[List[str]] = None
    performance: Optional[List[str]] = None


class ParsedSpec(BaseModel):
    """Structured content of a feature specification."""
    feature: str = ""
    fields: Dict[str, str] = Field(default_factory=dict)
    scenarios: List[UserScenario] = Field(default_factory=list)
    edge_cases: List[str] = Field(default_factory=list)
    functional_requirements: List[FunctionalRequirement] = Field(default_factory=list)
    entities: List[KeyEntity] = Field(default_factory=list)
    success_criteria: SuccessCriteria = Field(default_factory=SuccessCriteria)
    clarifications: List[str] = Field(default_factory=list)


class SpecParser:
    """Parses feature specification markdown."""

    def parse(self, text: str) -> ParsedSpec:
        """
        Parse a feature specification.

        Missing sections give empty results; only the title is structural,
        and its absence leaves ``feature`` empty.

        Args:
            text: Markdown without aps annotations

        Returns:
            ParsedSpec
        """
        spec = ParsedSpec(
            feature=self._parse_feature(text),
            fields=extract_fields(preamble(text)),
        )

        scenarios_section = find_section(text, SCENARIOS_SECTION, 2)
        if scenarios_section is not None:
            spec.scenarios = self._parse_scenarios(scenarios_section)
            edge_cases = find_section(scenarios_section.body, r"Edge Cases\b", 3)
            if edge_cases is not None:
                spec.edge_cases = extract_list_items(edge_cases.body)

        requirements = find_section(text, REQUIREMENTS_SECTION, 2)
        if requirements is not None:
            functional = find_section(requirements.body, r"Functional Requirements\b", 3)
            if functional is not None:
                spec.functional_requirements = self._parse_requirements(functional.body)
            entities = find_section(requirements.body, r"Key Entities\b", 3)
            if entities is not None:
                spec.entities = self._parse_entities(entities.body)

        success = find_section(text, SUCCESS_SECTION, 2)
        if success is not None:
            spec.success_criteria = self._parse_success_criteria(success.body)

        spec.clarifications = find_clarifications(self._clarification_sources(spec))
        return spec

    def _parse_feature(self, text: str) -> str:
        title = find_title(text)
        if title is None:
            return ""
        match = re.match(TITLE_PATTERN, title.title, re.IGNORECASE)
        return match.group(1) if match else ""

    def _parse_scenarios(self, section: Section) -> List[UserScenario]:
        scenarios = []
        for block in iter_sections(section.body, 3):
            match = _SCENARIO_TITLE_RE.match(block.title)
            if match:
                priority, title = match.group(1).upper(), match.group(2)
            else:
                match = _USER_STORY_TITLE_RE.match(block.title)
                if not match:
                    continue
                title, priority = match.group(1), match.group(2).upper()

            scenario = UserScenario(priority=priority, title=title)
            for line in block.body.split("\n"):
                for pattern, attr in ((_AS_A_RE, "as_a"), (_I_WANT_RE, "i_want_to"), (_SO_THAT_RE, "so_that")):
                    found = pattern.match(line)
                    if found and not getattr(scenario, attr):
                        setattr(scenario, attr, found.group(1))
            scenario.acceptance_scenarios = extract_labeled_list(block.body, r"Acceptance Scenarios?")
            scenario.edge_cases = extract_labeled_list(block.body, r"Edge Cases?")
            scenarios.append(scenario)
        return scenarios

    def _parse_requirements(self, body: str) -> List[FunctionalRequirement]:
        requirements: List[FunctionalRequirement] = []
        descriptions: List[List[str]] = []
        for line in body.split("\n"):
            match = _FR_RE.match(line)
            if match:
                requirements.append(FunctionalRequirement(code=match.group(1), description=""))
                descriptions.append([match.group(2)])
            elif descriptions and line.strip() and not line.lstrip().startswith(("-", "*", "#")):
                # wrapped continuation of the previous requirement
                descriptions[-1].append(line.strip())

        for requirement, parts in zip(requirements, descriptions):
            requirement.description = " ".join(p for p in parts if p)
            questions = find_clarifications(requirement.description)
            if questions:
                requirement.needs_clarification = True
                requirement.clarification_question = questions[0]
        return requirements

    def _parse_entities(self, body: str) -> List[KeyEntity]:
        entities: List[KeyEntity] = []
        for line in body.split("\n"):
            field = _ENTITY_FIELD_RE.match(line)
            if field and entities:
                label, value = field.group(1).lower(), field.group(2)
                entity = entities[-1]
                if label == "represents":
                    entity.represents = value
                elif label == "key attributes":
                    entity.key_attributes = _split_list(value)
                else:
                    entity.relationships = _split_list(value)
                continue
            match = _ENTITY_RE.match(line)
            if match:
                entities.append(KeyEntity(name=match.group(1).strip(), represents=match.group(2) or ""))
        return entities

    def _parse_success_criteria(self, body: str) -> SuccessCriteria:
        criteria = SuccessCriteria()
        for attr, pattern in _METRIC_SECTIONS.items():
            section = find_section(body, pattern, 3)
            if section is not None:
                setattr(criteria, attr, extract_list_items(section.body))
        return criteria

    @staticmethod
    def _clarification_sources(spec: ParsedSpec) -> List[str]:
        # Structured content only, in a fixed order, so that a rendered
        # document yields the same questions again
        sources = list(spec.fields.values())
        for scenario in spec.scenarios:
            sources.extend([scenario.title, scenario.as_a, scenario.i_want_to, scenario.so_that])
            sources.extend(scenario.acceptance_scenarios)
            sources.extend(scenario.edge_cases)
        sources.extend(spec.edge_cases)
        sources.extend(r.description for r in spec.functional_requirements)
        for entity in spec.entities:
            sources.extend([entity.name, entity.represents, *entity.key_attributes, *entity.relationships])
        criteria = spec.success_criteria
        for metrics in (criteria.quantitative, criteria.qualitative, criteria.security, criteria.performance):
            sources.extend(metrics or [])
        return sources


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]
