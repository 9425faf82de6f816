import json

import pytest

from anvil.engine.errors import HashValidationError, SchemaValidationError
from anvil.engine.evidence import build_evidence
from anvil.engine.plans import append_evidence
from anvil.store.plan_store import PlanStore

from tests.samples import FIXED_TIMESTAMP


@pytest.fixture
def store(tmp_path):
    return PlanStore(tmp_path / "plans")


@pytest.fixture
def evidence(fixed_clock):
    return build_evidence("gate/1.0.0", [{"check": "lint", "status": "passed"}], clock=fixed_clock)


def test_save_and_load(store, sample_plan):
    path = store.save(sample_plan)

    assert path.name == "aps-a1b2c3d4.json"
    assert path.read_text(encoding="utf-8").endswith("}\n")
    assert store.load(sample_plan.id) == sample_plan
    assert store.exists(sample_plan.id)
    assert store.list_plans() == ["aps-a1b2c3d4"]


def test_load_missing_returns_none(store):
    assert store.load("aps-00000000") is None
    assert not store.exists("aps-00000000")


def test_invalid_ids_are_rejected(store):
    with pytest.raises(ValueError):
        store.path_for("../etc/passwd")
    with pytest.raises(ValueError):
        store.load("APS-1234")


def test_list_ignores_other_files(store, sample_plan):
    store.save(sample_plan)
    (store.plans_dir / "notes.json").write_text("{}", encoding="utf-8")
    (store.plans_dir / "aps-zzzzzzzz.json").write_text("{}", encoding="utf-8")
    assert store.list_plans() == ["aps-a1b2c3d4"]


def test_delete(store, sample_plan):
    store.save(sample_plan)
    assert store.delete(sample_plan.id)
    assert not store.delete(sample_plan.id)
    assert store.list_plans() == []


def test_save_refuses_different_hash(store, sample_plan):
    store.save(sample_plan)
    changed = sample_plan.model_copy(update={"intent": "Something else entirely", "hash": "f" * 64})
    with pytest.raises(ValueError, match="refusing to overwrite"):
        store.save(changed)


def test_save_allows_extending_evidence(store, sample_plan, evidence):
    store.save(append_evidence(sample_plan, evidence))
    extended = append_evidence(store.load(sample_plan.id), evidence)
    store.save(extended)
    assert len(store.load(sample_plan.id).evidence) == 2


def test_save_refuses_rewritten_evidence(store, sample_plan, evidence, fixed_clock):
    store.save(append_evidence(sample_plan, evidence))
    other = build_evidence("gate/1.0.0", [{"check": "lint", "status": "failed"}], clock=fixed_clock)
    with pytest.raises(ValueError, match="must extend"):
        store.save(append_evidence(sample_plan, other))


def test_append_evidence_keeps_hash(store, sample_plan, evidence):
    store.save(sample_plan)
    updated = store.append_evidence(sample_plan.id, evidence)

    assert updated.hash == sample_plan.hash
    assert store.load(sample_plan.id).evidence == [evidence]


def test_append_execution_rehashes(store, sample_plan):
    store.save(sample_plan)
    updated = store.append_execution(
        sample_plan.id,
        {"operation": "apply", "status": "success", "timestamp": FIXED_TIMESTAMP},
    )

    assert updated.hash != sample_plan.hash
    assert store.load(sample_plan.id).hash == updated.hash


def test_append_to_missing_plan(store, evidence):
    with pytest.raises(KeyError):
        store.append_evidence("aps-00000000", evidence)


def test_load_detects_tampering(store, sample_plan):
    path = store.save(sample_plan)
    document = json.loads(path.read_text(encoding="utf-8"))
    document["intent"] = "Tampered intent for the plan"
    path.write_text(json.dumps(document), encoding="utf-8")

    with pytest.raises(HashValidationError):
        store.load(sample_plan.id)


def test_load_rejects_malformed_document(store):
    store.path_for("aps-11111111").write_text(json.dumps({"id": "aps-11111111"}), encoding="utf-8")
    with pytest.raises(SchemaValidationError):
        store.load("aps-11111111")
