import pytest

from anvil.adapters.annotations import read_plan_header
from anvil.models.adapter import AdapterOptions
from anvil.models.plan import OverallStatus
from anvil.models.validation import IssueCode

from tests.samples import FIXED_TIMESTAMP


def _codes(messages):
    return [m.code for m in messages]


def test_parse_prd(bmad_adapter, prd_md):
    result = bmad_adapter.parse(prd_md)

    assert result.success
    plan = result.data
    assert plan.intent == "Task Tracker: Let teams track tasks in one place; Reduce status meetings"
    [change] = plan.proposed_changes
    assert change.type.value == "file_create"
    assert change.path == "docs/stories/1.1.create-task.md"
    assert change.description == "Story 1.1: Create Task"
    assert change.metadata == {
        "epic": 1,
        "story": "1.1",
        "acceptance_criteria": ["A task has a title", "A task has a status"],
    }
    assert _codes(result.warnings) == ["UNRESOLVED_CLARIFICATION"]
    assert plan.provenance.version == "1.0.0"


@pytest.mark.parametrize("text", [
    "# PRD: X\n\n## Goals and Background Context\n\n### Goals\n\n- Go\n",
    "# PRD: X\n",
])
def test_short_prd_intent_falls_back(bmad_adapter, text):
    result = bmad_adapter.parse(text)

    assert result.success, result.errors
    assert result.data.intent == "Implement X requirements"
    assert "NO_CHANGES" in _codes(result.warnings)


def test_parse_architecture(bmad_adapter, architecture_md):
    plan = bmad_adapter.parse(architecture_md).data

    assert plan.intent == "This document describes the Task Tracker backend architecture."
    assert [(c.type.value, c.path, c.description) for c in plan.proposed_changes] == [
        ("dependency_add", "Python", "Add Python 3.11 (Language)"),
        ("dependency_add", "PostgreSQL", "Add PostgreSQL 15 (Database)"),
    ]
    assert plan.proposed_changes[0].metadata == {
        "category": "Language",
        "technology": "Python",
        "version": "3.11",
        "purpose": "Backend language",
    }


def test_parse_story(bmad_adapter, story_md):
    result = bmad_adapter.parse(story_md)

    assert result.success
    plan = result.data
    assert plan.intent == (
        "Story 1.1 Create Task: As a team member, I want to create a task, so that work is visible"
    )
    first, second = plan.proposed_changes
    assert (first.type.value, first.path) == ("file_create", "src/models/task.py")
    assert first.metadata == {
        "story": "1.1",
        "task_index": 1,
        "acceptance_criteria": ["1", "2"],
        "completed": False,
        "subtasks": ["Add title field", "Add status field"],
    }
    assert (second.type.value, second.path) == ("file_update", "src/api/tasks.py")
    assert plan.metadata["story"]["front_matter"] == {"status": "Draft", "epic": 1}
    assert result.warnings == []


def test_story_with_unreadable_front_matter_warns(bmad_adapter):
    text = "---\n- one\n---\n# Story 2.1: Export\n\n## Acceptance Criteria\n\n1. Works\n\n## Tasks / Subtasks\n\n- [ ] Write exporter\n"
    result = bmad_adapter.parse(text)

    assert result.success
    assert _codes(result.warnings) == ["INVALID_FRONT_MATTER"]
    assert result.data.proposed_changes[0].path == "docs/stories/2.1/task-1"

    content = bmad_adapter.serialize(result.data).content
    assert "---\n- one\n---" in content


def test_parse_qa_produces_evidence(bmad_adapter, qa_md):
    result = bmad_adapter.parse(qa_md)

    assert result.success
    plan = result.data
    assert plan.intent == "QA review of Story 1.1: gate PASS"
    assert plan.proposed_changes == []
    assert _codes(result.warnings) == ["NO_CHANGES"]

    [evidence] = plan.evidence
    assert evidence.overall_status == OverallStatus.PASSED
    assert evidence.gate_version == "bmad-qa/1.0.0"
    assert evidence.timestamp == FIXED_TIMESTAMP
    assert evidence.summary == "QA gate PASS: 1 finding(s), 1 recommendation(s)"
    assert [(c.check, c.status.value, c.message) for c in evidence.checks] == [
        ("unit tests", "passed", "12 passed"),
        ("coverage", "warning", "78%"),
    ]


def test_qa_gate_maps_to_overall_status(bmad_adapter):
    concerns = bmad_adapter.parse("# QA Results: Story 1.2\n\n**Gate**: CONCERNS\n").data
    assert concerns.evidence[0].overall_status == OverallStatus.PARTIAL

    waived = bmad_adapter.parse("# QA Results: Story 1.2\n\n**Gate**: WAIVED\n").data
    assert waived.evidence[0].overall_status == OverallStatus.PASSED

    # An unrecognized gate falls back to the check outcomes
    text = "# QA Results: Story 1.2\n\n**Gate**: Pending\n\n## Checks\n\n- [FAIL] lint: 3 errors\n"
    pending = bmad_adapter.parse(text).data
    assert pending.evidence[0].overall_status == OverallStatus.FAILED


def test_qa_without_gate_or_checks_has_no_evidence(bmad_adapter):
    plan = bmad_adapter.parse("# QA Results: Story 1.3\n\n## Findings\n\n- none\n").data
    assert plan.evidence is None


def test_bundle_round_trip(bmad_adapter, prd_md, story_md, architecture_md):
    original = bmad_adapter.parse_documents({"story": story_md, "prd": prd_md, "architecture": architecture_md}).data

    assert original.metadata["source_document"] == "bundle"
    assert [c.path for c in original.proposed_changes] == [
        "docs/stories/1.1.create-task.md",
        "Python",
        "PostgreSQL",
        "src/models/task.py",
        "src/api/tasks.py",
    ]

    exported = bmad_adapter.serialize(original)
    assert exported.success
    assert exported.metadata["document"] == "prd"
    assert list(exported.documents) == ["prd", "architecture", "story"]

    reparsed = bmad_adapter.parse_documents(exported.documents).data
    assert reparsed.intent == original.intent
    assert reparsed.proposed_changes == original.proposed_changes
    assert reparsed.metadata == original.metadata
    assert reparsed.hash == original.hash


def test_story_round_trip(bmad_adapter, story_md):
    original = bmad_adapter.parse(story_md).data
    content = bmad_adapter.serialize(original).content

    assert "---\nepic: 1\nstatus: Draft\n---" in content
    reparsed = bmad_adapter.parse(content).data
    assert reparsed.proposed_changes == original.proposed_changes
    assert reparsed.hash == original.hash


def test_qa_round_trip_keeps_gate(bmad_adapter, qa_md):
    original = bmad_adapter.parse(qa_md).data
    exported = bmad_adapter.serialize(original)

    assert "**Gate**: PASS" in exported.content
    assert "- [WARN] coverage: 78%" in exported.content
    # the plan evidence is rendered as the trailing annotation too
    assert "Gate Version: bmad-qa/1.0.0" in exported.content
    assert bmad_adapter.parse(exported.content).data.hash == original.hash


def test_bundle_needs_prd_or_story(bmad_adapter, architecture_md, qa_md):
    result = bmad_adapter.parse_documents({"architecture": architecture_md, "qa": qa_md})
    assert not result.success
    assert _codes(result.errors) == ["MISSING_DOCUMENT"]


def test_serialize_foreign_plan_is_lossy(bmad_adapter, sample_plan):
    result = bmad_adapter.serialize(sample_plan)

    assert result.success
    assert _codes(result.warnings) == ["LOSSY_EXPORT"]
    assert result.content.count("Product Requirements Document (PRD)") == 1
    assert "- FR1: file_create `src/limits.py`: Create the limiter" in result.content
    assert read_plan_header(result.content)["id"] == sample_plan.id


def test_speckit_plan_is_lossy_for_bmad(bmad_adapter, speckit_adapter, spec_md):
    plan = speckit_adapter.parse(spec_md).data
    result = bmad_adapter.serialize(plan, AdapterOptions(format_options={"document": "prd"}))
    assert result.success
    assert _codes(result.warnings) == ["LOSSY_EXPORT"]


def test_detection(bmad_adapter, prd_md, story_md, qa_md):
    assert bmad_adapter.detect(prd_md).confidence == 100
    assert bmad_adapter.detect(story_md).confidence == 80
    qa = bmad_adapter.detect(qa_md)
    assert qa.confidence == 45
    assert not qa.detected


def test_classify(bmad_adapter, prd_md, architecture_md, story_md, qa_md, spec_md):
    assert bmad_adapter.classify(prd_md) == "prd"
    assert bmad_adapter.classify(architecture_md) == "architecture"
    assert bmad_adapter.classify(story_md) == "story"
    assert bmad_adapter.classify(qa_md) == "qa"
    assert bmad_adapter.classify(spec_md) is None


def test_validate_story_missing_sections(bmad_adapter):
    result = bmad_adapter.validate("# Story 3.1: Draft idea\n")
    assert result.valid
    assert result.has_code(IssueCode.MISSING_SECTION)
    assert len(result.warnings) == 2
