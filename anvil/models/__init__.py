"""Data models for the Anvil system."""

from anvil.models.plan import (
    APSPlan,
    Change,
    ChangeType,
    Provenance,
    ProvenanceSource,
    Validations,
    CheckResult,
    CheckStatus,
    Evidence,
    OverallStatus,
    Approval,
    Execution,
    ExecutionOperation,
    ExecutionStatus,
    SCHEMA_VERSION,
    DEFAULT_REQUIRED_CHECKS,
)
from anvil.models.validation import (
    ValidationIssue,
    ValidationOptions,
    ValidationResult,
    IssueCode,
    IssueSeverity,
    HashStatus,
    OutputFormat,
    ROOT_PATH,
)
from anvil.models.adapter import (
    DetectionResult,
    ParseResult,
    SerializeResult,
    AdapterError,
    AdapterWarning,
    ParseContext,
    AdapterOptions,
    AdapterMetadata,
)
from anvil.models.json_schema import generate_json_schema, get_json_schema_string

__all__ = [
    # Plan models
    "APSPlan",
    "Change",
    "ChangeType",
    "Provenance",
    "ProvenanceSource",
    "Validations",
    "CheckResult",
    "CheckStatus",
    "Evidence",
    "OverallStatus",
    "Approval",
    "Execution",
    "ExecutionOperation",
    "ExecutionStatus",
    "SCHEMA_VERSION",
    "DEFAULT_REQUIRED_CHECKS",
    # Validation models
    "ValidationIssue",
    "ValidationOptions",
    "ValidationResult",
    "IssueCode",
    "IssueSeverity",
    "HashStatus",
    "OutputFormat",
    "ROOT_PATH",
    # Adapter models
    "DetectionResult",
    "ParseResult",
    "SerializeResult",
    "AdapterError",
    "AdapterWarning",
    "ParseContext",
    "AdapterOptions",
    "AdapterMetadata",
    # JSON Schema export
    "generate_json_schema",
    "get_json_schema_string",
]
