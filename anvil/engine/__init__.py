"""Engine modules for the Anvil system."""

from anvil.engine.errors import (
    APSError,
    CanonicalizationError,
    PlanValidationError,
    SchemaValidationError,
    HashValidationError,
    format_validation_errors,
    create_validation_summary,
)
from anvil.engine.hashing import (
    canonicalize,
    generate_hash,
    verify_hash,
    compute_plan_hash,
    generate_plan_id,
    is_valid_plan_id,
    is_valid_hash,
    format_timestamp,
    utc_now,
)
from anvil.engine.validator import (
    APSValidator,
    validate_aps_plan,
    assert_valid_plan,
)
from anvil.engine.plans import (
    create_plan,
    append_evidence,
    append_execution,
    record_approval,
)
from anvil.engine.evidence import (
    build_evidence,
    determine_overall_status,
)

__all__ = [
    # Errors
    "APSError",
    "CanonicalizationError",
    "PlanValidationError",
    "SchemaValidationError",
    "HashValidationError",
    "format_validation_errors",
    "create_validation_summary",
    # Hashing
    "canonicalize",
    "generate_hash",
    "verify_hash",
    "compute_plan_hash",
    "generate_plan_id",
    "is_valid_plan_id",
    "is_valid_hash",
    "format_timestamp",
    "utc_now",
    # Validation
    "APSValidator",
    "validate_aps_plan",
    "assert_valid_plan",
    # Plan construction
    "create_plan",
    "append_evidence",
    "append_execution",
    "record_approval",
    # Evidence
    "build_evidence",
    "determine_overall_status",
]
