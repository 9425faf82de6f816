import pytest

from anvil.adapters.speckit import PlanParser, SpecParser, TasksParser
from anvil.adapters.speckit.tasks_parser import parse_task_line


AUTH_SPEC = """\
# Feature: Authentication

## User Scenarios & Testing

### P1: User Login

**As a** registered user
**I want to** log in with my password
**So that** I can see my dashboard

**Acceptance Scenarios:**

1. Given valid credentials, Then a session starts
2. Given a wrong password, Then an error is shown

## Requirements

### Functional Requirements

- **FR-001**: System MUST hash passwords [NEEDS CLARIFICATION: which hashing algorithm?]
"""


def test_requirements_parser_reads_scenario_and_clarification():
    spec = SpecParser().parse(AUTH_SPEC)

    assert spec.feature == "Authentication"
    assert len(spec.scenarios) == 1
    scenario = spec.scenarios[0]
    assert scenario.priority == "P1"
    assert scenario.as_a == "registered user"
    assert scenario.i_want_to == "log in with my password"
    assert scenario.so_that == "I can see my dashboard"
    assert len(scenario.acceptance_scenarios) == 2

    assert len(spec.functional_requirements) == 1
    requirement = spec.functional_requirements[0]
    assert requirement.needs_clarification is True
    assert requirement.clarification_question == "which hashing algorithm?"
    assert spec.clarifications == ["which hashing algorithm?"]


def test_spec_parser_full_document(spec_md):
    spec = SpecParser().parse(spec_md)

    assert spec.fields == {"feature_branch": "001-auth", "status": "Draft"}
    entity = spec.entities[0]
    assert entity.name == "User"
    assert entity.represents == "A registered account holder"
    assert entity.key_attributes == ["email", "password_hash"]
    assert entity.relationships == ["has many Sessions"]
    assert spec.success_criteria.quantitative == ["Login completes in under 2 seconds"]
    assert spec.success_criteria.qualitative == ["Users understand login errors"]
    assert spec.success_criteria.security is None


def test_spec_parser_user_story_titles():
    text = "# Feature: X\n\n## User Scenarios & Testing\n\n### User Story 2 - Reset password (Priority: P2)\n\n**As a** user\n"
    scenario = SpecParser().parse(text).scenarios[0]
    assert scenario.priority == "P2"
    assert scenario.title == "Reset password"


def test_spec_parser_without_title():
    spec = SpecParser().parse("no headings at all")
    assert spec.feature == ""
    assert spec.scenarios == []


def test_plan_parser(plan_md):
    plan = PlanParser().parse(plan_md)

    assert plan.feature == "Authentication"
    assert plan.fields == {"branch": "001-auth", "date": "2025-01-02"}
    assert plan.summary == "Add email and password login backed by a session store."
    context = plan.technical_context
    assert context.language == "Python 3.11"
    assert context.dependencies == ["fastapi", "sqlalchemy", "bcrypt"]
    assert context.storage == "PostgreSQL"
    assert context.testing == "pytest"
    assert context.scale is None
    assert [(c.name, c.passed) for c in plan.constitution_check] == [("Simplicity", True), ("Observability", False)]
    assert plan.project_structure.selected_option == "Single project"
    assert "modules/" in plan.project_structure.source_code
    assert [d.title for d in plan.implementation_details] == ["Database Schema", "API Endpoints"]


def test_plan_parser_nested_list_fields():
    text = (
        "# Implementation Plan: X\n\n## Technical Context\n\n"
        "- **Performance Goals**:\n  - p95 under 200ms\n  - 1k rps\n- **Storage**: none\n"
    )
    context = PlanParser().parse(text).technical_context
    assert context.performance_goals == ["p95 under 200ms", "1k rps"]
    assert context.storage == "none"


def test_plan_parser_complexity_tracking():
    text = (
        "# Implementation Plan: X\n\n## Complexity Tracking\n\n### Extra queue\n\n"
        "**Problem**: Bursty load\n**Solution**: Add a queue\n**Justification**: Keeps p95 flat\n"
    )
    decision = PlanParser().parse(text).complexity_decisions[0]
    assert decision.title == "Extra queue"
    assert decision.problem == "Bursty load"
    assert decision.solution == "Add a queue"
    assert decision.justification == "Keeps p95 flat"


def test_tasks_parser(tasks_md):
    tasks = TasksParser().parse(tasks_md)

    assert tasks.feature == "Authentication"
    assert [(p.order, p.name) for p in tasks.phases] == [(1, "Setup"), (2, "User Login")]
    setup = tasks.phases[0]
    assert setup.purpose == "Project initialization"
    assert setup.checkpoint == "Project builds"
    assert [t.id for _, t in tasks.all_tasks()] == ["T001", "T002", "T003", "T004"]

    model_task = tasks.phases[1].tasks[0]
    assert model_task.parallel
    assert model_task.story == "US1"
    assert model_task.completed is True
    assert model_task.description == "Create User model in src/models/user.py"

    assert [(g.title, g.kind) for g in tasks.dependencies] == [
        ("Sequential", "sequential"),
        ("Parallel Opportunities", "parallel"),
    ]
    assert [(s.name, s.recommended) for s in tasks.strategies] == [("MVP First", True), ("Incremental", False)]


def test_recommended_strategy_named_in_intro():
    text = (
        "# Tasks: X\n\n## Implementation Strategy\n\n**Recommended**: Incremental\n\n"
        "### Strategy 1: MVP First\n\nFast.\n\n### Strategy 2: Incremental\n\nSteady.\n"
    )
    strategies = TasksParser().parse(text).strategies
    assert [(s.name, s.recommended) for s in strategies] == [("MVP First", False), ("Incremental", True)]


@pytest.mark.parametrize("line, expected", [
    ("- [001] [P] [US1] Create the user model", ("001", 1, True, "US1", "Create the user model", None)),
    ("- [002] [US2] [P] Add login form", ("002", 2, True, "US2", "Add login form", None)),
    ("- [ ] T010 Write docs", ("T010", 10, False, None, "Write docs", False)),
    ("* [X] T011 [P] Ship it", ("T011", 11, True, None, "Ship it", True)),
])
def test_parse_task_line(line, expected):
    task = parse_task_line(line)
    assert (task.id, task.number, task.parallel, task.story, task.description, task.completed) == expected


@pytest.mark.parametrize("line", ["- plain bullet", "T001 no bullet", "- [ ] no id"])
def test_parse_task_line_rejects_non_tasks(line):
    assert parse_task_line(line) is None
