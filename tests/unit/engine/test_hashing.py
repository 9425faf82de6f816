import copy
import math
from datetime import date, datetime, timedelta, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from anvil.engine.errors import CanonicalizationError
from anvil.engine.hashing import (
    canonicalize,
    compute_plan_hash,
    format_timestamp,
    generate_hash,
    generate_plan_id,
    is_valid_hash,
    is_valid_plan_id,
    plan_hash_payload,
    verify_hash,
)
from anvil.models.plan import ChangeType


json_scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-10**12, max_value=10**12),
    st.floats(allow_nan=False, allow_infinity=False),
    st.text(max_size=12),
)
json_values = st.recursive(
    json_scalars,
    lambda children: st.one_of(
        st.lists(children, max_size=4),
        st.dictionaries(st.text(max_size=8), children, max_size=4),
    ),
    max_leaves=20,
)


@given(json_values)
def test_generate_hash_is_deterministic(value):
    assert generate_hash(value) == generate_hash(value)


@given(st.dictionaries(st.text(max_size=8), json_values, max_size=6))
def test_canonicalize_ignores_insertion_order(mapping):
    reversed_mapping = dict(reversed(list(mapping.items())))
    assert canonicalize(mapping) == canonicalize(reversed_mapping)


@given(json_values)
def test_canonicalize_does_not_mutate_input(value):
    before = copy.deepcopy(value)
    canonicalize(value)
    assert value == before


def test_canonical_form_sorts_nested_keys():
    assert canonicalize({"b": 1, "a": {"d": [3, 1], "c": None}}) == '{"a":{"c":null,"d":[3,1]},"b":1}'


def test_canonical_scalars():
    assert canonicalize(True) == "true"
    assert canonicalize(1.0) == "1"
    assert canonicalize(1.5) == "1.5"
    assert canonicalize("é") == '"\\u00e9"'
    assert canonicalize(ChangeType.FILE_CREATE) == '"file_create"'
    assert canonicalize(date(2025, 1, 2)) == '"2025-01-02"'


@pytest.mark.parametrize("value", [math.nan, math.inf, {1: "x"}, {"a": object()}, b"bytes"])
def test_canonicalize_rejects_values_without_canonical_form(value):
    with pytest.raises(CanonicalizationError):
        canonicalize(value)


def test_format_timestamp_normalizes_to_utc():
    offset = timezone(timedelta(hours=2))
    assert format_timestamp(datetime(2025, 1, 2, 5, 4, 5, 123456, tzinfo=offset)) == "2025-01-02T03:04:05.123Z"
    assert format_timestamp(datetime(2025, 1, 2, 3, 4, 5)) == "2025-01-02T03:04:05.000Z"


def test_plan_hash_excludes_hash_and_evidence(minimal_document):
    digest = compute_plan_hash(minimal_document)
    minimal_document["hash"] = "f" * 64
    minimal_document["evidence"] = [{"anything": True}]
    assert compute_plan_hash(minimal_document) == digest
    assert "hash" not in plan_hash_payload(minimal_document)
    assert "evidence" in minimal_document


def test_plan_hash_matches_model_and_dict(sample_plan):
    assert compute_plan_hash(sample_plan) == compute_plan_hash(sample_plan.to_document()) == sample_plan.hash


def test_verify_hash(minimal_document):
    payload = plan_hash_payload(minimal_document)
    assert verify_hash(payload, minimal_document["hash"])
    assert not verify_hash(payload, "0" * 64)
    assert not verify_hash(payload, None)


def test_plan_id_patterns():
    assert is_valid_plan_id("aps-12345678")
    assert not is_valid_plan_id("aps-ABCDEF00")
    assert not is_valid_plan_id("aps-1234567")
    assert not is_valid_plan_id(12345678)


def test_hash_patterns():
    assert is_valid_hash("a" * 64)
    assert not is_valid_hash("A" * 64)
    assert not is_valid_hash("a" * 63)
    assert not is_valid_hash("a" * 65)
    assert not is_valid_hash("g" * 64)


def test_generate_plan_id():
    assert generate_plan_id(lambda n: bytes(range(n))) == "aps-00010203"
    assert is_valid_plan_id(generate_plan_id())
