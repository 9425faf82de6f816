import pytest

from anvil.adapters.annotations import (
    parse_evidence_annotation,
    read_plan_header,
    render_evidence_annotation,
    render_plan_header,
    strip_annotations,
)
from anvil.engine.evidence import build_evidence
from anvil.engine.plans import append_execution, record_approval

from tests.samples import FIXED_TIMESTAMP


def test_header_round_trip(sample_plan):
    plan = record_approval(sample_plan, {"approved": True, "approved_by": "lead", "approved_at": FIXED_TIMESTAMP})
    plan = append_execution(plan, {"operation": "apply", "status": "success", "timestamp": FIXED_TIMESTAMP})

    header = render_plan_header(plan)
    assert header.startswith("<!-- aps:document {")
    assert header.endswith("} -->")

    decoded = read_plan_header(f"{header}\n# Feature: X\n")
    document = plan.to_document()
    assert decoded == {
        "id": document["id"],
        "provenance": document["provenance"],
        "validations": document["validations"],
        "approval": document["approval"],
        "executions": document["executions"],
    }


def test_header_cannot_close_the_comment_early(sample_plan):
    plan = sample_plan.model_copy(update={"tags": ["a-->b", "<!-- x -->"]})
    header = render_plan_header(plan)

    assert header.count("-->") == 1
    assert read_plan_header(header)["tags"] == ["a-->b", "<!-- x -->"]


def test_read_header_absent_or_invalid():
    assert read_plan_header("# Feature: X\n") is None
    with pytest.raises(ValueError):
        read_plan_header("<!-- aps:document [1, 2] -->\n")
    with pytest.raises(ValueError):
        read_plan_header("<!-- aps:document {not json} -->\n")


def test_evidence_annotation_round_trip(fixed_clock):
    evidence = build_evidence(
        "gate/2.0.0",
        [
            {"check": "lint", "status": "passed"},
            {"check": "test", "status": "failed", "message": "2 failures"},
            {"check": "secrets", "status": "skipped"},
        ],
        clock=fixed_clock,
    )
    annotation = render_evidence_annotation(evidence, "ab" * 32)

    assert annotation.startswith("<!-- aps:evidence\nAPS Evidence\nGate Status: PARTIAL")
    assert annotation.endswith("-->")
    assert parse_evidence_annotation(f"# Doc\n\n{annotation}\n") == {
        "overall_status": "partial",
        "gate_version": "gate/2.0.0",
        "timestamp": FIXED_TIMESTAMP,
        "plan_hash": "ab" * 32,
        "summary": "1/3 checks passed, 1 failed, 1 skipped",
        "checks": [
            {"check": "lint", "status": "passed", "message": None},
            {"check": "test", "status": "failed", "message": "2 failures"},
            {"check": "secrets", "status": "skipped", "message": None},
        ],
    }


def test_evidence_annotation_escapes_comment_close(fixed_clock):
    evidence = build_evidence("gate-->1", [{"check": "x", "status": "passed", "message": "a\nb --> c"}],
                              clock=fixed_clock)
    annotation = render_evidence_annotation(evidence, "0" * 64)
    assert annotation.count("-->") == 1


def test_last_evidence_annotation_wins(fixed_clock):
    failed = build_evidence("g/1", [{"check": "lint", "status": "failed"}], clock=fixed_clock)
    passed = build_evidence("g/2", [{"check": "lint", "status": "passed"}], clock=fixed_clock)
    text = "\n".join([
        render_evidence_annotation(failed, "0" * 64),
        render_evidence_annotation(passed, "0" * 64),
    ])
    assert parse_evidence_annotation(text)["gate_version"] == "g/2"
    assert parse_evidence_annotation("no annotation") is None


def test_strip_annotations(sample_plan, fixed_clock):
    evidence = build_evidence("g/1", [{"check": "lint", "status": "passed"}], clock=fixed_clock)
    text = "\n".join([
        render_plan_header(sample_plan),
        "# Feature: X",
        "",
        "Body.",
        "",
        render_evidence_annotation(evidence, sample_plan.hash),
        "",
    ])
    stripped = strip_annotations(text)
    assert "aps:" not in stripped
    assert stripped.startswith("# Feature: X\n")
    assert "Body." in stripped
