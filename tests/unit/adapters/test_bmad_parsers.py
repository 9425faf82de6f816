import pytest

from anvil.adapters.bmad import ArchitectureParser, PrdParser, QAParser, StoryParser, parse_user_story
from anvil.adapters.bmad.parsers import load_front_matter, split_front_matter


def test_prd_parser(prd_md):
    prd = PrdParser().parse(prd_md)

    assert prd.project == "Task Tracker"
    assert prd.goals == ["Let teams track tasks in one place", "Reduce status meetings"]
    assert prd.background == "Teams juggle spreadsheets today."
    assert [r.code for r in prd.functional] == ["FR1", "FR2"]
    assert [(r.code, r.description) for r in prd.non_functional] == [("NFR1", "Pages load in under 1 second")]
    assert prd.clarifications == ["can tasks have several assignees?"]

    [epic] = prd.epics
    assert (epic.number, epic.title) == (1, "Foundation")
    assert epic.goal == "Set up the project and core task model."
    [story] = epic.stories
    assert story.key == "1.1"
    assert story.title == "Create Task"
    assert story.user_story.as_a == "team member"
    assert story.user_story.i_want == "to create a task"
    assert story.user_story.so_that == "work is visible"
    assert story.acceptance_criteria == ["A task has a title", "A task has a status"]


def test_prd_short_title():
    prd = PrdParser().parse("# PRD: Billing\n\n## Requirements\n\n### Functional\n\n- **FR1**: Charge cards\n")
    assert prd.project == "Billing"
    assert [(r.code, r.description) for r in prd.functional] == [("FR1", "Charge cards")]


def test_architecture_parser(architecture_md):
    architecture = ArchitectureParser().parse(architecture_md)

    assert architecture.project == "Task Tracker"
    assert architecture.introduction == "This document describes the Task Tracker backend architecture."
    assert architecture.high_level == "A single service backed by PostgreSQL."
    stack = architecture.tech_stack
    assert stack.columns == ["Category", "Technology", "Version", "Purpose"]
    assert stack.rows[1] == ["Database", "PostgreSQL", "15", "Primary store"]
    assert stack.column("technology", "tool") == 1
    assert stack.column("owner") is None
    assert [(c.name, c.responsibility) for c in architecture.components] == [("TaskService", "Task lifecycle")]
    assert architecture.source_tree == "src/\n└── tasks/"


def test_story_parser(story_md):
    story = StoryParser().parse(story_md)

    assert story.key == "1.1"
    assert story.title == "Create Task"
    assert story.front_matter == {"status": "Draft", "epic": 1}
    assert story.front_matter_raw is None
    assert story.status == "Draft"
    assert story.user_story.present
    assert story.user_story.i_want == "to create a task"
    assert story.acceptance_criteria == ["A task has a title", "A task has a status"]
    assert story.dev_notes == "Use the existing repository layer."

    first, second = story.tasks
    assert first.description == "Create the task model in `src/models/task.py`"
    assert first.acceptance_criteria == ["1", "2"]
    assert first.completed is False
    assert [(s.description, s.completed) for s in first.subtasks] == [
        ("Add title field", False),
        ("Add status field", True),
    ]
    assert second.acceptance_criteria == ["1"]
    assert second.subtasks == []


def test_story_front_matter_that_is_not_a_mapping():
    story = StoryParser().parse("---\n- one\n- two\n---\n# Story 2.3: Export\n")
    assert story.front_matter is None
    assert story.front_matter_raw == "- one\n- two"
    assert (story.epic, story.number) == (2, 3)


def test_front_matter_helpers():
    raw, body = split_front_matter("---\ncreated: 2025-01-02\n---\n# Story 1.1: X\n")
    assert raw == "created: 2025-01-02\n"
    assert body == "# Story 1.1: X\n"
    assert load_front_matter(raw) == {"created": "2025-01-02"}
    assert load_front_matter("") == {}
    assert load_front_matter("key: [unclosed") is None
    assert split_front_matter("# No front matter") == (None, "# No front matter")


def test_qa_parser(qa_md):
    qa = QAParser().parse(qa_md)

    assert qa.subject == "Story 1.1"
    assert qa.gate == "PASS"
    assert qa.fields["reviewer"] == "Quinn"
    assert qa.findings == ["Validation covers empty titles"]
    assert qa.recommendations == ["Add a test for long titles"]
    assert [(c.name, c.status, c.message) for c in qa.checks] == [
        ("unit tests", "PASS", "12 passed"),
        ("coverage", "WARN", "78%"),
    ]


@pytest.mark.parametrize("gate, expected", [
    ("CONCERNS - missing edge case tests", "CONCERNS"),
    ("fail.", "FAIL"),
    ("Pending review", "Pending review"),
])
def test_qa_gate_decision(gate, expected):
    assert QAParser().parse(f"# QA Review: Story 2.1\n\n**Gate**: {gate}\n").gate == expected


@pytest.mark.parametrize("text, expected", [
    ("As a user, I want to log in, so that I see my data.", ("user", "to log in", "I see my data")),
    ("**As an** admin,\n**I want** reports,\n**so that** I can plan", ("admin", "reports", "I can plan")),
    ("Just a description", ("", "", "")),
])
def test_parse_user_story(text, expected):
    story = parse_user_story(text)
    assert (story.as_a, story.i_want, story.so_that) == expected
