"""
Plan construction and append-only updates.

A plan's hash is computed once, when the plan is created. Evidence is
appended afterwards without touching the hash. Executions and approval are
covered by the hash, so recording one produces a new plan with a freshly
computed hash. In every case the original object is left untouched.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from anvil import __version__
from anvil.engine.hashing import compute_plan_hash, format_timestamp, generate_plan_id, utc_now
from anvil.models.plan import (
    APSPlan,
    Approval,
    Change,
    DEFAULT_REQUIRED_CHECKS,
    Evidence,
    Execution,
    Provenance,
    ProvenanceSource,
    SCHEMA_VERSION,
    Validations,
)


_PLACEHOLDER_HASH = "0" * 64


def create_plan(
    intent: str,
    changes: Optional[Sequence[Union[Change, Mapping[str, Any]]]] = None,
    provenance: Optional[Union[Provenance, Mapping[str, Any]]] = None,
    validations: Optional[Union[Validations, Mapping[str, Any]]] = None,
    plan_id: Optional[str] = None,
    tags: Optional[List[str]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    source: ProvenanceSource = ProvenanceSource.CLI,
    author: Optional[str] = None,
    id_generator: Callable[[], str] = generate_plan_id,
    clock: Callable[[], datetime] = utc_now,
) -> APSPlan:
    """
    Build a new plan and compute its hash.

    Args:
        intent: Purpose of the plan (10-500 characters)
        changes: Proposed changes in application order
        provenance: Explicit provenance; built from ``source``, ``author``
            and ``clock`` when omitted
        validations: Declared checks; defaults to lint/test/coverage/secrets
        plan_id: Explicit id; generated when omitted
        tags: Optional tags
        metadata: Optional extension map
        source: Origin used for generated provenance
        author: Author used for generated provenance
        id_generator: Id factory, overridable for tests
        clock: Time source, overridable for tests

    Returns:
        The new plan with its hash set

    Raises:
        pydantic.ValidationError: If any field is invalid
    """
    if provenance is None:
        provenance = Provenance(
            timestamp=format_timestamp(clock()),
            source=source,
            version=__version__,
            author=author,
        )
    if validations is None:
        validations = Validations(required_checks=list(DEFAULT_REQUIRED_CHECKS))

    draft = APSPlan.model_validate({
        "id": plan_id or id_generator(),
        "hash": _PLACEHOLDER_HASH,
        "intent": intent,
        "schema_version": SCHEMA_VERSION,
        "proposed_changes": [_as_dict(c) for c in (changes or [])],
        "provenance": _as_dict(provenance),
        "validations": _as_dict(validations),
        "tags": tags,
        "metadata": metadata,
    })
    return draft.model_copy(update={"hash": compute_plan_hash(draft)})


def append_evidence(plan: APSPlan, evidence: Union[Evidence, Mapping[str, Any]]) -> APSPlan:
    """
    Return a new plan with ``evidence`` appended to its evidence log.

    Earlier entries are carried over unchanged; the hash is not touched
    because evidence is not covered by it.
    """
    record = evidence if isinstance(evidence, Evidence) else Evidence.model_validate(evidence)
    return plan.model_copy(update={"evidence": [*(plan.evidence or []), record]})


def append_execution(plan: APSPlan, execution: Union[Execution, Mapping[str, Any]]) -> APSPlan:
    """Return a new plan, with a recomputed hash, that has ``execution`` appended."""
    record = execution if isinstance(execution, Execution) else Execution.model_validate(execution)
    return _rehash(plan.model_copy(update={"executions": [*(plan.executions or []), record]}))


def record_approval(plan: APSPlan, approval: Union[Approval, Mapping[str, Any]]) -> APSPlan:
    """
    Return a new plan, with a recomputed hash, carrying ``approval``.

    Raises:
        ValueError: If the plan already carries a positive approval
    """
    if plan.approval is not None and plan.approval.approved:
        raise ValueError(f"Plan {plan.id} is already approved by {plan.approval.approved_by or 'unknown'}")
    record = approval if isinstance(approval, Approval) else Approval.model_validate(approval)
    return _rehash(plan.model_copy(update={"approval": record}))


def _as_dict(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json", exclude_none=True)
    return value


def _rehash(plan: APSPlan) -> APSPlan:
    return plan.model_copy(update={"hash": compute_plan_hash(plan)})
