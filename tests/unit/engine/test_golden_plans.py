import json
from pathlib import Path

import pytest

from anvil.engine.hashing import compute_plan_hash, plan_hash_payload, verify_hash
from anvil.engine.validator import validate_aps_plan
from anvil.models.validation import IssueCode


GOLDEN_DIR = Path(__file__).resolve().parents[2] / "fixtures" / "golden"

# Digests pinned when the fixtures were written; a change here changes every stored plan.
GOLDEN_HASHES = {
    "minimal-plan.json": "b9ae8913af953847840a2e74f1102265ac79a7ce07e462f16548510b9806c1a9",
    "complex-plan.json": "de0162a07ad883efdae5e79870eee8d55fa06e95e3cea8d91d52742ff4a6e6bd",
}


def _load(name):
    return json.loads((GOLDEN_DIR / name).read_text(encoding="utf-8"))


def _reversed_keys(value):
    if isinstance(value, dict):
        return {key: _reversed_keys(value[key]) for key in reversed(list(value))}
    if isinstance(value, list):
        return [_reversed_keys(item) for item in value]
    return value


@pytest.mark.parametrize("name, digest", sorted(GOLDEN_HASHES.items()))
def test_golden_hash_is_stable(name, digest):
    document = _load(name)

    assert document["hash"] == digest
    assert compute_plan_hash(document) == digest
    assert verify_hash(plan_hash_payload(document), digest)

    result = validate_aps_plan(document)
    assert result.valid, result.formatted_errors
    assert compute_plan_hash(result.data) == digest


@pytest.mark.parametrize("name", sorted(GOLDEN_HASHES))
def test_key_order_does_not_change_the_hash(name):
    document = _reversed_keys(_load(name))
    assert list(document)[0] != "id"
    assert compute_plan_hash(document) == GOLDEN_HASHES[name]


def test_evidence_is_outside_the_digest():
    document = _load("complex-plan.json")
    assert document["evidence"]

    del document["evidence"]
    assert compute_plan_hash(document) == GOLDEN_HASHES["complex-plan.json"]


def test_tampered_golden_plan_is_detected():
    document = _load("complex-plan.json")
    document["proposed_changes"][0]["content"] += "# extra\n"

    assert not verify_hash(plan_hash_payload(document), GOLDEN_HASHES["complex-plan.json"])
    assert validate_aps_plan(document).has_code(IssueCode.HASH_MISMATCH)
